"""Template compiler: prepare once, render many times.

:meth:`TemplateCompiler.prepare` scans the template for ``{{...}}`` spans,
resolves each to its handler, validates the options, folds every site
whose SQL does not depend on runtime values, and records the parameter
names the template introduces.  The result is an immutable
:class:`CompiledTemplate`.

:meth:`TemplateCompiler.render` replays the compiled sites with fresh
runtime values and returns a new :class:`~mortarql.compile.base.RenderedSql`.
It never re-parses the template text and never mutates the compiled
template, so one compiled template can be rendered concurrently.

Usage::

    compiler = TemplateCompiler()
    compiled = compiler.prepare(
        "SELECT {{columns}} FROM {{table}} WHERE {{where --param filter}} {{limit --count 20}}",
        ctx,
    )
    rendered = compiler.render(compiled, {"filter": gte("age", 18)})
    cursor.execute(rendered.sql, rendered.parameters)
"""
from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from mortarql.compile.base import Fragment, RenderedSql
from mortarql.compile.handlers.base import PlaceholderHandler
from mortarql.compile.markers import find_markers
from mortarql.compile.options import OptionBag, parse_options
from mortarql.compile.registry import HandlerRegistry
from mortarql.compile.state import RenderState
from mortarql.config import EngineConfig
from mortarql.errors import RenderError, TemplateError, TemplateSyntaxError
from mortarql.schema.context import PlaceholderContext

logger = logging.getLogger(__name__)

_OPEN, _CLOSE = "{{", "}}"
_HEAD_RE = re.compile(r"([A-Za-z_]\w*)(?:\s+(.*))?\Z", re.S)


# ---------------------------------------------------------------------------
# Compiled form
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PlaceholderSite:
    """One ``{{...}}`` occurrence in a prepared template.

    Attributes:
        kind: Placeholder name (``columns``, ``where``, ...).
        options: Tokenized options.
        index: Insertion index: the site sits after ``segments[index]``.
        span: The raw ``{{...}}`` text.
        position: Offset of ``span`` in the template.
        handler: The handler that renders this site.
        prerendered: The fragment, when it does not depend on runtime values.
    """

    kind: str
    options: OptionBag
    index: int
    span: str
    position: int
    handler: PlaceholderHandler = field(compare=False, repr=False)
    prerendered: Fragment | None = None


@dataclass(frozen=True)
class CompiledTemplate:
    """An immutable, validated template bound to one placeholder context.

    Attributes:
        text: The original template text.
        context: The context every site was validated against.
        segments: Literal text between sites; ``len(segments) == len(sites) + 1``.
        segment_markers: Parameter markers written in each literal segment.
        sites: Placeholder sites in template order.
        reserved: Every parameter name the template binds explicitly.
    """

    text: str
    context: PlaceholderContext
    segments: tuple[str, ...]
    segment_markers: tuple[tuple[str, ...], ...]
    sites: tuple[PlaceholderSite, ...]
    reserved: frozenset[str]

    @property
    def is_static(self) -> bool:
        """``True`` when every site was folded at prepare time."""
        return all(site.prerendered is not None for site in self.sites)

    @property
    def placeholder_kinds(self) -> list[str]:
        return [site.kind for site in self.sites]


# ---------------------------------------------------------------------------
# Scanning
# ---------------------------------------------------------------------------


def _scan(text: str) -> tuple[list[str], list[tuple[str, str, str, int]]]:
    """Split ``text`` into literal segments and ``(kind, rest, span, position)`` sites.

    Raises:
        TemplateSyntaxError: For unbalanced, nested, empty or malformed spans.
    """
    segments: list[str] = []
    sites: list[tuple[str, str, str, int]] = []
    pos = 0
    while True:
        start = text.find(_OPEN, pos)
        stray = text.find(_CLOSE, pos)
        if stray != -1 and (start == -1 or stray < start):
            raise TemplateSyntaxError("Unmatched '}}'.", span=_CLOSE, position=stray)
        if start == -1:
            segments.append(text[pos:])
            return segments, sites
        end = text.find(_CLOSE, start + len(_OPEN))
        if end == -1:
            raise TemplateSyntaxError("Unclosed '{{'.", span=text[start : start + 40], position=start)
        span = text[start : end + len(_CLOSE)]
        inner = text[start + len(_OPEN) : end]
        if _OPEN in inner:
            raise TemplateSyntaxError("Nested '{{' inside a placeholder.", span=span, position=start)
        m = _HEAD_RE.match(inner.strip())
        if m is None:
            message = "Empty placeholder." if not inner.strip() else "Invalid placeholder name."
            raise TemplateSyntaxError(message, span=span, position=start)
        segments.append(text[pos:start])
        sites.append((m.group(1), m.group(2) or "", span, start))
        pos = end + len(_CLOSE)


# ---------------------------------------------------------------------------
# Compiler
# ---------------------------------------------------------------------------


class TemplateCompiler:
    """Prepares and renders SQL templates.

    Args:
        handlers: Placeholder registry; defaults to the built-in handlers.
        config: Engine settings; defaults to ``EngineConfig()``.
    """

    def __init__(self, handlers: HandlerRegistry | None = None, config: EngineConfig | None = None) -> None:
        self._handlers = handlers or HandlerRegistry.default()
        self._config = config or EngineConfig()

    @property
    def handlers(self) -> HandlerRegistry:
        return self._handlers

    @property
    def config(self) -> EngineConfig:
        return self._config

    # ------------------------------------------------------------------
    # Prepare
    # ------------------------------------------------------------------

    def prepare(self, text: str, context: PlaceholderContext) -> CompiledTemplate:
        """Parse and validate ``text`` against ``context``.

        Args:
            text: Template text with ``{{...}}`` placeholders.
            context: Entity and dialect the template targets.

        Returns:
            The immutable :class:`CompiledTemplate`.

        Raises:
            TemplateSyntaxError: For malformed ``{{...}}`` spans.
            UnknownPlaceholderError: For unregistered placeholder names.
            UnsupportedOptionError: For invalid options.
            UnknownColumnError: For a subject column that does not exist.
            UnsupportedDialectError: For constructs the dialect cannot express.
        """
        segments, raw_sites = _scan(text)
        kinds = frozenset(kind for kind, _, _, _ in raw_sites)
        segment_markers = tuple(tuple(find_markers(seg, context.dialect)) for seg in segments)
        reserved: set[str] = {name for markers in segment_markers for name in markers}

        sites: list[PlaceholderSite] = []
        for index, (kind, rest, span, position) in enumerate(raw_sites):
            try:
                handler = self._handlers.require(kind)
                options = parse_options(kind, rest)
                handler.validate(context, options, kinds)
                reserved.update(handler.declared_parameters(context, options))
                prerendered = handler.prerender(context, options)
            except TemplateError as exc:
                raise exc.locate(span, position)
            sites.append(
                PlaceholderSite(
                    kind=kind,
                    options=options,
                    index=index,
                    span=span,
                    position=position,
                    handler=handler,
                    prerendered=prerendered,
                )
            )

        compiled = CompiledTemplate(
            text=text,
            context=context,
            segments=tuple(segments),
            segment_markers=segment_markers,
            sites=tuple(sites),
            reserved=frozenset(reserved),
        )
        logger.debug(
            "Prepared template for %r (%s): %d site(s), %d folded",
            context.table_name,
            context.dialect.name,
            len(sites),
            sum(1 for s in sites if s.prerendered is not None),
        )
        return compiled

    # ------------------------------------------------------------------
    # Render
    # ------------------------------------------------------------------

    def render(self, compiled: CompiledTemplate, values: Mapping[str, Any] | None = None) -> RenderedSql:
        """Render a prepared template with runtime values.

        Args:
            compiled: Output of :meth:`prepare`.
            values: Runtime values keyed by parameter or option name.

        Returns:
            A new :class:`RenderedSql`.

        Raises:
            RenderError: (or subclass) if a required value is missing or
                malformed, or the statement exceeds ``max_parameters``.
            TranslationError: (or subclass) if a bound predicate cannot be
                translated.
        """
        ctx = compiled.context
        state = RenderState(
            values=values or {},
            reserved=compiled.reserved,
            parameter_base=self._config.parameter_base,
        )
        parts: list[str] = []
        parameters: dict[str, Any] = {}
        for i, segment in enumerate(compiled.segments):
            parts.append(segment)
            for name in compiled.segment_markers[i]:
                parameters.setdefault(name, state.value(name))
            if i < len(compiled.sites):
                site = compiled.sites[i]
                fragment = site.prerendered or site.handler.render(ctx, site.options, state)
                parts.append(fragment.sql)
                for name, value in fragment.parameters.items():
                    parameters.setdefault(name, value)

        limit = self._config.max_parameters
        if limit is not None and len(parameters) > limit:
            raise RenderError(f"Statement binds {len(parameters)} parameters; the limit is {limit}.")

        sql = "".join(parts)
        if self._config.log_rendered_sql:
            logger.debug("Rendered SQL (%s, %d params): %s", ctx.dialect.name, len(parameters), sql)
        return RenderedSql(sql=sql, parameters=parameters, dialect=ctx.dialect.name)

    def prepare_and_render(
        self, text: str, context: PlaceholderContext, values: Mapping[str, Any] | None = None
    ) -> RenderedSql:
        """One-shot :meth:`prepare` followed by :meth:`render`."""
        return self.render(self.prepare(text, context), values)
