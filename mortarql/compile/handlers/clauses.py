"""Clause handlers: orderby, groupby, distinct, limit, offset."""
from __future__ import annotations

from collections.abc import Collection, Iterable

from mortarql.compile.base import Fragment
from mortarql.compile.handlers.base import (
    PlaceholderHandler,
    StaticHandler,
    ordering_terms,
    subject_columns,
)
from mortarql.compile.options import OptionBag, OptionKind, OptionSpec, Subject
from mortarql.compile.state import RenderState
from mortarql.errors import UnsupportedDialectError
from mortarql.schema.context import PlaceholderContext
from mortarql.schema.dialect import PagingStyle


class OrderByHandler(StaticHandler):
    """``{{orderby name, created_at desc --desc}}`` -> ``ORDER BY ...``.

    Each item may carry its own direction; ``--desc`` / ``--asc`` set the
    default for items that do not.
    """

    name = "orderby"
    spec = OptionSpec(
        options={"asc": OptionKind.FLAG, "desc": OptionKind.FLAG},
        subject=Subject.REQUIRED,
        exclusive=(frozenset({"asc", "desc"}),),
    )

    def build(self, ctx: PlaceholderContext, options: OptionBag) -> str:
        default = "DESC" if options.has("desc") else "ASC"
        return "ORDER BY " + ", ".join(ordering_terms(self.name, ctx, options.subjects, default))


class GroupByHandler(StaticHandler):
    """``{{groupby dept, status}}`` -> ``GROUP BY [dept], [status]``."""

    name = "groupby"
    spec = OptionSpec(subject=Subject.REQUIRED)

    def build(self, ctx: PlaceholderContext, options: OptionBag) -> str:
        return "GROUP BY " + ", ".join(ctx.quote(c) for c in subject_columns(ctx, options))


class DistinctHandler(StaticHandler):
    """``{{distinct}}`` -> ``DISTINCT``; ``{{distinct a, b}}`` -> ``DISTINCT [a], [b]``."""

    name = "distinct"
    spec = OptionSpec(subject=Subject.OPTIONAL)

    def build(self, ctx: PlaceholderContext, options: OptionBag) -> str:
        columns = subject_columns(ctx, options)
        if not columns:
            return "DISTINCT"
        return "DISTINCT " + ", ".join(ctx.quote(c) for c in columns)


# ---------------------------------------------------------------------------
# Paging
# ---------------------------------------------------------------------------


def _amount(ctx: PlaceholderContext, options: OptionBag, count: str, param: str) -> str | None:
    """A literal integer or a parameter marker, or ``None`` if neither is set."""
    if options.has(count):
        return str(options.get_int(count))
    name = options.get(param)
    return ctx.marker(name) if name else None


class LimitHandler(PlaceholderHandler):
    """``{{limit --count 10}}`` / ``{{limit --param take --offset-param skip}}``.

    Renders per paging style:

    * ``LIMIT_OFFSET``: ``LIMIT n [OFFSET m]``
    * ``OFFSET_FETCH``: ``OFFSET m ROWS FETCH NEXT n ROWS ONLY`` (m defaults to 0)
    * ``TOP``: ``TOP (n)``, placed by the template right after ``SELECT``

    A zero count is valid in every style and returns no rows.
    """

    name = "limit"
    spec = OptionSpec(
        options={
            "count": OptionKind.INT,
            "param": OptionKind.VALUE,
            "offset": OptionKind.INT,
            "offset-param": OptionKind.VALUE,
        },
        exclusive=(frozenset({"count", "param"}), frozenset({"offset", "offset-param"})),
        required=(frozenset({"count", "param"}),),
    )

    def check(self, ctx: PlaceholderContext, options: OptionBag, kinds: Collection[str]) -> None:
        style = ctx.dialect.paging_style
        has_offset = options.has("offset") or options.has("offset-param")
        if style is PagingStyle.TOP and has_offset:
            raise UnsupportedDialectError(
                f"Dialect '{ctx.dialect.name}' pages with TOP and cannot express an offset.",
                dialect=ctx.dialect.name,
            )
        if style is PagingStyle.OFFSET_FETCH and "offset" in kinds:
            raise UnsupportedDialectError(
                f"Dialect '{ctx.dialect.name}' pages with OFFSET/FETCH; "
                "use {{limit --offset ...}} instead of separate limit and offset placeholders.",
                dialect=ctx.dialect.name,
            )

    def declared_parameters(self, ctx: PlaceholderContext, options: OptionBag) -> Iterable[str]:
        return [n for n in (options.get("param"), options.get("offset-param")) if n]

    def prerender(self, ctx: PlaceholderContext, options: OptionBag) -> Fragment | None:
        if options.has("param") or options.has("offset-param"):
            return None
        return Fragment.text(self._sql(ctx, options))

    def render(self, ctx: PlaceholderContext, options: OptionBag, state: RenderState) -> Fragment:
        params = {name: state.value(name) for name in self.declared_parameters(ctx, options)}
        return Fragment(self._sql(ctx, options), params)

    def _sql(self, ctx: PlaceholderContext, options: OptionBag) -> str:
        count = _amount(ctx, options, "count", "param")
        offset = _amount(ctx, options, "offset", "offset-param")
        style = ctx.dialect.paging_style
        if style is PagingStyle.TOP:
            return f"TOP ({count})"
        if style is PagingStyle.OFFSET_FETCH:
            return f"OFFSET {offset or 0} ROWS FETCH NEXT {count} ROWS ONLY"
        return f"LIMIT {count}" + (f" OFFSET {offset}" if offset else "")


class OffsetHandler(PlaceholderHandler):
    """``{{offset --count 20}}`` / ``{{offset --param skip}}`` for LIMIT_OFFSET dialects."""

    name = "offset"
    spec = OptionSpec(
        options={"count": OptionKind.INT, "param": OptionKind.VALUE},
        exclusive=(frozenset({"count", "param"}),),
        required=(frozenset({"count", "param"}),),
    )

    def check(self, ctx: PlaceholderContext, options: OptionBag, kinds: Collection[str]) -> None:
        style = ctx.dialect.paging_style
        if style is PagingStyle.TOP:
            raise UnsupportedDialectError(
                f"Dialect '{ctx.dialect.name}' pages with TOP and cannot express an offset.",
                dialect=ctx.dialect.name,
            )
        if style is PagingStyle.OFFSET_FETCH and "limit" in kinds:
            raise UnsupportedDialectError(
                f"Dialect '{ctx.dialect.name}' pages with OFFSET/FETCH; "
                "use {{limit --offset ...}} instead of separate limit and offset placeholders.",
                dialect=ctx.dialect.name,
            )

    def prerender(self, ctx: PlaceholderContext, options: OptionBag) -> Fragment | None:
        if options.has("param"):
            return None
        return Fragment.text(self._sql(ctx, options))

    def render(self, ctx: PlaceholderContext, options: OptionBag, state: RenderState) -> Fragment:
        param = options.get("param")
        params = {param: state.value(param)} if param else {}
        return Fragment(self._sql(ctx, options), params)

    def _sql(self, ctx: PlaceholderContext, options: OptionBag) -> str:
        amount = _amount(ctx, options, "count", "param")
        if ctx.dialect.paging_style is PagingStyle.OFFSET_FETCH:
            return f"OFFSET {amount} ROWS"
        return f"OFFSET {amount}"
