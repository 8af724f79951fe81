"""mortarQL – Dialect-aware SQL template rendering for code generators.

Write the query once, render it for every database.

Public API
----------
``prepare``
    Parse and validate a ``{{...}}`` template against an entity and dialect.
    Fails fast on any syntax, placeholder, option or column error.

``render``
    Bind runtime values to a prepared template and return parameterized SQL.

``prepare_and_render``
    One-shot ``prepare`` followed by ``render``.

``translate``
    Translate a predicate tree on its own into a SQL boolean fragment.

Re-exported types
-----------------
``PlaceholderContext``, ``EntityMapping``, ``ColumnMeta``,
``DialectDescriptor``, ``DialectRegistry``, ``CompiledTemplate``,
``RenderedSql``, ``EngineConfig``, the predicate node types and all error
classes.

Extensibility
-------------
New placeholders are added by registering a handler on a new registry::

    from mortarql import HandlerRegistry, TemplateCompiler
    from mortarql.compile.handlers import StaticHandler

    class NotDeletedHandler(StaticHandler):
        name = "not_deleted"

        def build(self, ctx, options):
            return f"{ctx.dialect.quote_identifier('deleted_at')} IS NULL"

    compiler = TemplateCompiler(handlers=HandlerRegistry.default().with_handler(NotDeletedHandler()))

New dialects are added the same way with ``DialectRegistry.with_dialect``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from mortarql.compile.base import Fragment, RenderedSql
from mortarql.compile.registry import HandlerRegistry
from mortarql.compile.state import RenderState
from mortarql.compile.template import CompiledTemplate, PlaceholderSite, TemplateCompiler
from mortarql.compile.translator import PredicateTranslator
from mortarql.config import EngineConfig
from mortarql.errors import (
    MissingParameterError,
    MortarQLError,
    RenderError,
    TemplateError,
    TemplateSyntaxError,
    TranslationError,
    UnknownColumnError,
    UnknownPlaceholderError,
    UnsupportedDialectError,
    UnsupportedExpressionNodeError,
    UnsupportedOptionError,
)
from mortarql.schema.context import PlaceholderContext
from mortarql.schema.converters import entity_from_engine, entity_from_model, entity_from_table
from mortarql.schema.dialect import (
    DialectDescriptor,
    DialectRegistry,
    PagingStyle,
    UpsertStyle,
)
from mortarql.schema.entity import ColumnMeta, EntityMapping
from mortarql.schema.expressions import (
    Aggregate,
    And,
    Comparison,
    ComparisonOp,
    Constant,
    InList,
    MemberAccess,
    MemberBoolean,
    MethodCall,
    Not,
    Or,
    Predicate,
    StringContains,
)

__all__ = [
    # Core pipeline
    "prepare",
    "render",
    "prepare_and_render",
    "translate",
    "TemplateCompiler",
    "CompiledTemplate",
    "PlaceholderSite",
    "RenderedSql",
    "Fragment",
    "RenderState",
    "PredicateTranslator",
    "HandlerRegistry",
    "EngineConfig",
    # Schema types
    "PlaceholderContext",
    "EntityMapping",
    "ColumnMeta",
    "DialectDescriptor",
    "DialectRegistry",
    "PagingStyle",
    "UpsertStyle",
    # Converters
    "entity_from_table",
    "entity_from_engine",
    "entity_from_model",
    # Predicate nodes
    "Predicate",
    "Comparison",
    "ComparisonOp",
    "And",
    "Or",
    "Not",
    "MemberAccess",
    "MemberBoolean",
    "Constant",
    "StringContains",
    "InList",
    "Aggregate",
    "MethodCall",
    # Errors
    "MortarQLError",
    "TemplateError",
    "TemplateSyntaxError",
    "UnknownPlaceholderError",
    "UnsupportedOptionError",
    "UnknownColumnError",
    "UnsupportedDialectError",
    "TranslationError",
    "UnsupportedExpressionNodeError",
    "RenderError",
    "MissingParameterError",
]

_DEFAULT_COMPILER = TemplateCompiler()


def prepare(text: str, context: PlaceholderContext) -> CompiledTemplate:
    """Parse and validate a template with the default compiler.

    The compiled template is immutable and can be rendered any number of
    times, from any thread::

        ctx = PlaceholderContext.build("users", ["Id", "Name", "Email"], "sqlserver")
        update = mortarql.prepare(
            "UPDATE {{table}} SET {{set --exclude id}} WHERE {{where id}}", ctx
        )
        rendered = mortarql.render(update, {"Id": 7, "Name": "Ada", "Email": "ada@example.com"})
        cursor.execute(rendered.sql, rendered.parameters)

    Args:
        text: Template text with ``{{...}}`` placeholders.
        context: Entity and dialect the template targets.

    Returns:
        ``CompiledTemplate`` ready for :func:`render`.

    Raises:
        TemplateError: (or subclass) for syntax, placeholder, option or
            column errors, annotated with the offending span.
        UnsupportedDialectError: If the dialect cannot express a placeholder.
    """
    return _DEFAULT_COMPILER.prepare(text, context)


def render(compiled: CompiledTemplate, values: Mapping[str, Any] | None = None) -> RenderedSql:
    """Render a prepared template with runtime values.

    Args:
        compiled: Output of :func:`prepare`.
        values: Runtime values keyed by parameter name.

    Returns:
        ``RenderedSql`` with ``sql``, ``parameters`` and ``dialect``.

    Raises:
        RenderError: (or subclass) if a value that shapes the SQL is missing
            or malformed.
        TranslationError: (or subclass) if a bound predicate cannot be translated.
    """
    return _DEFAULT_COMPILER.render(compiled, values)


def prepare_and_render(
    text: str, context: PlaceholderContext, values: Mapping[str, Any] | None = None
) -> RenderedSql:
    """One-shot :func:`prepare` followed by :func:`render`."""
    return _DEFAULT_COMPILER.prepare_and_render(text, context, values)


def translate(predicate: Any, context: PlaceholderContext) -> RenderedSql:
    """Translate a predicate tree (or its dict form) into a SQL fragment.

    Literals are bound as ``param_0``, ``param_1``, ... in order of
    appearance::

        pred = and_(gte("age", 25), lte("age", 34))
        mortarql.translate(pred, ctx).sql
        # '("age" >= $param_0 AND "age" <= $param_1)'

    Raises:
        UnsupportedExpressionNodeError: For node kinds outside the supported set.
        UnknownColumnError: If a member does not resolve to a column.
    """
    state = RenderState(parameter_base=_DEFAULT_COMPILER.config.parameter_base)
    fragment = PredicateTranslator(context, state).translate(predicate)
    return RenderedSql(sql=fragment.sql, parameters=dict(fragment.parameters), dialect=context.dialect.name)
