"""Sub-query handlers: exists, in_subquery, union, subquery.

The inner query is either written in the template (``--query "..."``) or
bound at render time (``--param name``) as a
:class:`~mortarql.compile.base.RenderedSql`, typically produced by
rendering another template for the same dialect, or as a plain string.
Parameters of a bound ``RenderedSql`` are merged into the outer
statement, renaming any that collide.
"""
from __future__ import annotations

from collections.abc import Collection, Iterable
from typing import Any

from mortarql.compile.base import Fragment, RenderedSql
from mortarql.compile.handlers.base import PlaceholderHandler, single_subject
from mortarql.compile.markers import find_markers
from mortarql.compile.options import OptionBag, OptionKind, OptionSpec, Subject
from mortarql.compile.state import RenderState
from mortarql.errors import RenderError, UnsupportedOptionError
from mortarql.schema.context import PlaceholderContext

_SOURCE = {"param": OptionKind.VALUE, "query": OptionKind.VALUE}
_ONE_SOURCE = (frozenset({"param", "query"}),)


def _bind_markers(ctx: PlaceholderContext, sql: str, state: RenderState) -> dict[str, Any]:
    """Values for the markers written inside raw sub-query text."""
    return {name: state.value(name) for name in find_markers(sql, ctx.dialect)}


class SubqueryHandler(PlaceholderHandler):
    """Base for handlers wrapping an inner query.

    Subclasses implement :meth:`wrap` to place the inner SQL.
    """

    name = "subquery"
    spec = OptionSpec(
        options={**_SOURCE, "as": OptionKind.VALUE},
        exclusive=_ONE_SOURCE,
        required=_ONE_SOURCE,
    )

    def declared_parameters(self, ctx: PlaceholderContext, options: OptionBag) -> Iterable[str]:
        query = options.get("query")
        if query is None:
            return super().declared_parameters(ctx, options)
        return find_markers(query, ctx.dialect)

    def prerender(self, ctx: PlaceholderContext, options: OptionBag) -> Fragment | None:
        query = options.get("query")
        if query is None or find_markers(query, ctx.dialect):
            return None
        return Fragment.text(self.wrap(ctx, options, query))

    def render(self, ctx: PlaceholderContext, options: OptionBag, state: RenderState) -> Fragment:
        query = options.get("query")
        if query is not None:
            return Fragment(self.wrap(ctx, options, query), _bind_markers(ctx, query, state))
        param = options.get("param") or ""
        inner = state.require(param, self.name)
        sql, params = self._inner(ctx, param, inner, state)
        return Fragment(self.wrap(ctx, options, sql), params)

    def _inner(
        self, ctx: PlaceholderContext, param: str, inner: Any, state: RenderState
    ) -> tuple[str, dict[str, Any]]:
        if isinstance(inner, str):
            return inner, _bind_markers(ctx, inner, state)
        if isinstance(inner, RenderedSql):
            if inner.dialect != ctx.dialect.name:
                raise RenderError(
                    f"'{param}' was rendered for '{inner.dialect}', not '{ctx.dialect.name}'.",
                    placeholder=self.name,
                )
            return state.absorb(inner, ctx.dialect)
        raise RenderError(
            f"'{param}' must be a RenderedSql or a SQL string, got {type(inner).__name__}.",
            placeholder=self.name,
        )

    def wrap(self, ctx: PlaceholderContext, options: OptionBag, sql: str) -> str:
        """``(inner) alias`` as a derived table."""
        alias = options.get("as")
        if not alias:
            return f"({sql})"
        return f"({sql}) {ctx.dialect.quote_identifier(alias)}"


class ExistsHandler(SubqueryHandler):
    """``{{exists --param orders}}`` -> ``EXISTS (inner)``; ``--not`` negates."""

    name = "exists"
    spec = OptionSpec(
        options={**_SOURCE, "not": OptionKind.FLAG},
        exclusive=_ONE_SOURCE,
        required=_ONE_SOURCE,
    )

    def wrap(self, ctx: PlaceholderContext, options: OptionBag, sql: str) -> str:
        keyword = "NOT EXISTS" if options.has("not") else "EXISTS"
        return f"{keyword} ({sql})"


class InSubqueryHandler(SubqueryHandler):
    """``{{in_subquery user_id --param active_users}}`` -> ``[user_id] IN (inner)``."""

    name = "in_subquery"
    spec = OptionSpec(
        options={**_SOURCE, "not": OptionKind.FLAG},
        subject=Subject.REQUIRED,
        exclusive=_ONE_SOURCE,
        required=_ONE_SOURCE,
    )

    def check(self, ctx: PlaceholderContext, options: OptionBag, kinds: Collection[str]) -> None:
        single_subject(self.name, ctx, options)

    def wrap(self, ctx: PlaceholderContext, options: OptionBag, sql: str) -> str:
        col = single_subject(self.name, ctx, options)
        keyword = "NOT IN" if options.has("not") else "IN"
        return f"{ctx.quote(col)} {keyword} ({sql})"


class UnionHandler(SubqueryHandler):
    """``{{union --param archived --all}}`` -> ``UNION ALL inner``."""

    name = "union"
    spec = OptionSpec(
        options={**_SOURCE, "all": OptionKind.FLAG},
        exclusive=_ONE_SOURCE,
        required=_ONE_SOURCE,
    )

    def check(self, ctx: PlaceholderContext, options: OptionBag, kinds: Collection[str]) -> None:
        query = options.get("query")
        if query is not None and not query.strip():
            raise UnsupportedOptionError("'union' needs a non-empty --query.", placeholder=self.name, option="query")

    def wrap(self, ctx: PlaceholderContext, options: OptionBag, sql: str) -> str:
        keyword = "UNION ALL" if options.has("all") else "UNION"
        return f"{keyword} {sql}"
