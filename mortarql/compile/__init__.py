"""Template compilation: options, handlers, translator and compiler."""
from mortarql.compile.base import Fragment, RenderedSql
from mortarql.compile.registry import HandlerRegistry
from mortarql.compile.state import RenderState
from mortarql.compile.template import CompiledTemplate, PlaceholderSite, TemplateCompiler
from mortarql.compile.translator import PredicateTranslator

__all__ = [
    "CompiledTemplate",
    "Fragment",
    "HandlerRegistry",
    "PlaceholderSite",
    "PredicateTranslator",
    "RenderState",
    "RenderedSql",
    "TemplateCompiler",
]
