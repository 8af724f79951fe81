"""Abstract placeholder handler and helpers shared by the built-in handlers.

A handler owns one placeholder kind.  The compiler calls it twice:

* at prepare time, :meth:`PlaceholderHandler.validate` checks the options
  against the handler's :class:`~mortarql.compile.options.OptionSpec` and
  the column table, :meth:`~PlaceholderHandler.declared_parameters` reports
  the names the site will introduce, and :meth:`~PlaceholderHandler.prerender`
  may return a fragment that does not depend on runtime values;
* at render time, :meth:`~PlaceholderHandler.render` produces the fragment
  for sites that could not be prerendered.

Handlers hold no per-template state and are shared by every template.
"""
from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Collection, Iterable
from functools import lru_cache
from typing import ClassVar

from mortarql.compile.base import Fragment
from mortarql.compile.markers import find_markers
from mortarql.compile.options import OptionBag, OptionSpec
from mortarql.compile.state import RenderState
from mortarql.errors import UnsupportedOptionError
from mortarql.schema.context import PlaceholderContext
from mortarql.schema.dialect import DialectDescriptor
from mortarql.schema.entity import ColumnMeta


class PlaceholderHandler(ABC):
    """Base class for every ``{{name ...}}`` handler.

    Subclasses set :attr:`name` and :attr:`spec` and implement :meth:`render`.
    """

    name: str = ""
    spec: ClassVar[OptionSpec] = OptionSpec()

    def validate(self, ctx: PlaceholderContext, options: OptionBag, kinds: Collection[str]) -> None:
        """Prepare-time validation.

        Args:
            ctx: The placeholder context the template is prepared against.
            options: This site's options.
            kinds: Names of every placeholder in the template, for handlers
                whose output depends on sibling sites.

        Raises:
            TemplateError: (or subclass) on any invalid usage.
            UnsupportedDialectError: If the dialect cannot express the site.
        """
        self.spec.check(self.name, options)
        self.check(ctx, options, kinds)

    def check(self, ctx: PlaceholderContext, options: OptionBag, kinds: Collection[str]) -> None:
        """Handler-specific checks beyond the declarative option spec."""

    def declared_parameters(self, ctx: PlaceholderContext, options: OptionBag) -> Iterable[str]:
        """Names this site binds explicitly, reserved against minted names."""
        param = options.get("param")
        return (param,) if param else ()

    def prerender(self, ctx: PlaceholderContext, options: OptionBag) -> Fragment | None:
        """Return the fragment if it does not depend on runtime values."""
        return None

    @abstractmethod
    def render(self, ctx: PlaceholderContext, options: OptionBag, state: RenderState) -> Fragment:
        """Render this site for one call."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class StaticHandler(PlaceholderHandler):
    """A handler whose output depends only on the context and options.

    Markers written inside option expressions (``--default @fallback``)
    are the exception: they are reserved at prepare time, and a site that
    contains any is rendered per call, binding them from the render values.
    """

    @abstractmethod
    def build(self, ctx: PlaceholderContext, options: OptionBag) -> str:
        """Return the SQL for this site."""

    def declared_parameters(self, ctx: PlaceholderContext, options: OptionBag) -> Iterable[str]:
        return find_markers(self.build(ctx, options), ctx.dialect)

    def prerender(self, ctx: PlaceholderContext, options: OptionBag) -> Fragment | None:
        sql = self.build(ctx, options)
        if find_markers(sql, ctx.dialect):
            return None
        return Fragment.text(sql)

    def render(self, ctx: PlaceholderContext, options: OptionBag, state: RenderState) -> Fragment:
        sql = self.build(ctx, options)
        return Fragment(sql, {name: state.value(name) for name in find_markers(sql, ctx.dialect)})


# ---------------------------------------------------------------------------
# Column selection helpers
# ---------------------------------------------------------------------------


def select_columns(ctx: PlaceholderContext, options: OptionBag) -> list[ColumnMeta]:
    """Columns in declared order after ``--only`` and ``--exclude``.

    Unknown names in either option are dropped (or raise, for strict
    contexts); see :meth:`PlaceholderContext.resolve_optional`.
    """
    columns = list(ctx.columns)
    if options.has("only"):
        keep = {
            col.column_name
            for name in options.get_list("only")
            if (col := ctx.resolve_optional(name, "--only")) is not None
        }
        columns = [c for c in columns if c.column_name in keep]
    if options.has("exclude"):
        drop = {
            col.column_name
            for name in options.get_list("exclude")
            if (col := ctx.resolve_optional(name, "--exclude")) is not None
        }
        columns = [c for c in columns if c.column_name not in drop]
    return columns


def subject_columns(ctx: PlaceholderContext, options: OptionBag) -> list[ColumnMeta]:
    """Resolve every positional subject; unknown names raise."""
    return [ctx.require_column(name) for name in options.subjects]


def single_subject(placeholder: str, ctx: PlaceholderContext, options: OptionBag) -> ColumnMeta:
    """Resolve a subject that must name exactly one column."""
    names = options.subjects
    if len(names) != 1:
        raise UnsupportedOptionError(
            f"'{placeholder}' takes exactly one column, got '{options.subject}'.",
            placeholder=placeholder,
        )
    return ctx.require_column(names[0])


_DIRECTIONS = {"asc": "ASC", "desc": "DESC"}


def ordering_terms(
    placeholder: str, ctx: PlaceholderContext, items: Iterable[str], default: str = "ASC"
) -> list[str]:
    """Render ``name [asc|desc]`` items as quoted ``col ASC`` terms."""
    terms: list[str] = []
    for item in items:
        parts = item.split()
        if len(parts) > 2 or (len(parts) == 2 and parts[1].lower() not in _DIRECTIONS):
            raise UnsupportedOptionError(
                f"Invalid ordering term '{item}' for '{placeholder}'.", placeholder=placeholder
            )
        col = ctx.require_column(parts[0])
        direction = _DIRECTIONS[parts[1].lower()] if len(parts) == 2 else default
        terms.append(f"{ctx.quote(col)} {direction}")
    return terms


def alias_suffix(ctx: PlaceholderContext, options: OptionBag) -> str:
    alias = options.get("as")
    return f" AS {ctx.dialect.quote_identifier(alias)}" if alias else ""


# ---------------------------------------------------------------------------
# Raw expression re-quoting
# ---------------------------------------------------------------------------


@lru_cache(maxsize=64)
def _expression_scanner(dialect: DialectDescriptor) -> re.Pattern[str]:
    sl, sr = re.escape(dialect.string_left), re.escape(dialect.string_right)
    il, ir = re.escape(dialect.identifier_left), re.escape(dialect.identifier_right)
    p = re.escape(dialect.parameter_prefix)
    return re.compile(
        rf"{sl}(?:[^{sr}]|{sr}{sr})*{sr}"
        rf"|{il}(?:[^{ir}]|{ir}{ir})*{ir}"
        rf"|(?<![\w{p}]){p}(?P<marker>[A-Za-z_]\w*)"
        rf"|(?<![\w.])(?P<ident>[A-Za-z_]\w*)\b(?!\s*\()"
    )


def requote_expression(ctx: PlaceholderContext, expr: str) -> tuple[str, list[str]]:
    """Re-quote column references inside a raw SQL expression.

    Bare identifiers that resolve to a column (by logical or physical name)
    become quoted physical names.  String literals, quoted identifiers,
    qualified names (``excluded.x``) and function names are left alone.

    Returns:
        ``(expression, marker_names)`` where ``marker_names`` lists the
        parameter markers found in the expression.
    """
    markers: list[str] = []

    def _sub(m: re.Match[str]) -> str:
        if m.group("marker"):
            if m.group("marker") not in markers:
                markers.append(m.group("marker"))
            return m.group(0)
        ident = m.group("ident")
        if ident:
            col = ctx.find_column(ident)
            if col is not None:
                return ctx.quote(col)
        return m.group(0)

    return _expression_scanner(ctx.dialect).sub(_sub, expr), markers
