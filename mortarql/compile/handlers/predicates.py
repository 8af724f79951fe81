"""Predicate handlers: where, between, in, like, isnull / notnull, having.

Each renders a boolean fragment meant to sit after ``WHERE`` / ``AND`` in
the template, except ``having`` which renders the whole ``HAVING`` clause
(or nothing).  Predicate trees bound at render time are translated with
:class:`~mortarql.compile.translator.PredicateTranslator`.
"""
from __future__ import annotations

from collections.abc import Collection, Iterable
from typing import Any

from mortarql.compile.base import Fragment
from mortarql.compile.handlers.base import (
    PlaceholderHandler,
    StaticHandler,
    single_subject,
    subject_columns,
)
from mortarql.compile.options import OptionBag, OptionKind, OptionSpec, Subject
from mortarql.compile.state import RenderState
from mortarql.compile.translator import PredicateTranslator
from mortarql.errors import RenderError, UnsupportedOptionError
from mortarql.schema.context import PlaceholderContext

#: Fragment that matches every row / no row, valid in every dialect.
ALWAYS_TRUE = "1 = 1"
ALWAYS_FALSE = "1 = 0"


class WhereHandler(PlaceholderHandler):
    """``{{where id}}`` / ``{{where --param filter}}``.

    With subject columns, renders ``col = marker`` joined by AND.  With
    ``--param``, the runtime value is a predicate tree (or its dict form);
    ``None`` renders ``1 = 1``.
    """

    name = "where"
    spec = OptionSpec(options={"param": OptionKind.VALUE}, subject=Subject.OPTIONAL)

    def check(self, ctx: PlaceholderContext, options: OptionBag, kinds: Collection[str]) -> None:
        if options.subject and options.has("param"):
            raise UnsupportedOptionError(
                "'where' takes either columns or --param, not both.", placeholder=self.name, option="param"
            )
        if not options.subject and not options.has("param"):
            raise UnsupportedOptionError("'where' requires columns or --param.", placeholder=self.name)
        subject_columns(ctx, options)

    def declared_parameters(self, ctx: PlaceholderContext, options: OptionBag) -> Iterable[str]:
        if options.has("param"):
            return ()
        return [c.property_name for c in subject_columns(ctx, options)]

    def render(self, ctx: PlaceholderContext, options: OptionBag, state: RenderState) -> Fragment:
        param = options.get("param")
        if param:
            predicate = state.require(param, self.name)
            if predicate is None:
                return Fragment.text(ALWAYS_TRUE)
            return PredicateTranslator(ctx, state).translate(predicate)
        columns = subject_columns(ctx, options)
        sql = " AND ".join(f"{ctx.quote(c)} = {ctx.marker(c.property_name)}" for c in columns)
        return Fragment(sql, {c.property_name: state.value(c.property_name) for c in columns})


class BetweenHandler(PlaceholderHandler):
    """``{{between age --min lo --max hi}}`` or ``{{between age --param range}}``.

    Without options the markers are ``<property>_min`` / ``<property>_max``.
    With ``--param r`` the runtime value is a ``(low, high)`` pair bound as
    ``r_min`` / ``r_max``.
    """

    name = "between"
    spec = OptionSpec(
        options={
            "min": OptionKind.VALUE,
            "max": OptionKind.VALUE,
            "param": OptionKind.VALUE,
            "not": OptionKind.FLAG,
        },
        subject=Subject.REQUIRED,
        exclusive=(frozenset({"param", "min"}), frozenset({"param", "max"})),
    )

    def check(self, ctx: PlaceholderContext, options: OptionBag, kinds: Collection[str]) -> None:
        single_subject(self.name, ctx, options)

    def _names(self, ctx: PlaceholderContext, options: OptionBag) -> tuple[str, str]:
        col = single_subject(self.name, ctx, options)
        param = options.get("param")
        if param:
            return f"{param}_min", f"{param}_max"
        return (
            options.get("min") or f"{col.property_name}_min",
            options.get("max") or f"{col.property_name}_max",
        )

    def declared_parameters(self, ctx: PlaceholderContext, options: OptionBag) -> Iterable[str]:
        return self._names(ctx, options)

    def render(self, ctx: PlaceholderContext, options: OptionBag, state: RenderState) -> Fragment:
        col = single_subject(self.name, ctx, options)
        low_name, high_name = self._names(ctx, options)
        param = options.get("param")
        if param:
            bounds = state.require(param, self.name)
            try:
                low, high = bounds
            except (TypeError, ValueError) as exc:
                raise RenderError(f"'{param}' must be a (low, high) pair.", placeholder=self.name) from exc
        else:
            low, high = state.value(low_name), state.value(high_name)
        keyword = "NOT BETWEEN" if options.has("not") else "BETWEEN"
        sql = f"{ctx.quote(col)} {keyword} {ctx.marker(low_name)} AND {ctx.marker(high_name)}"
        return Fragment(sql, {low_name: low, high_name: high})


class InHandler(PlaceholderHandler):
    """``{{in id --param ids}}`` -> ``col IN (ids_0, ids_1, ...)``.

    An empty collection renders ``1 = 0`` (``1 = 1`` with ``--not``) so
    the statement stays valid and matches no row (every row).
    """

    name = "in"
    spec = OptionSpec(
        options={"param": OptionKind.VALUE, "not": OptionKind.FLAG},
        subject=Subject.REQUIRED,
        required=(frozenset({"param"}),),
    )

    def check(self, ctx: PlaceholderContext, options: OptionBag, kinds: Collection[str]) -> None:
        single_subject(self.name, ctx, options)

    def declared_parameters(self, ctx: PlaceholderContext, options: OptionBag) -> Iterable[str]:
        return ()

    def render(self, ctx: PlaceholderContext, options: OptionBag, state: RenderState) -> Fragment:
        col = single_subject(self.name, ctx, options)
        param = options.get("param") or ""
        values = state.require(param, self.name)
        if isinstance(values, (str, bytes)) or not isinstance(values, Iterable):
            raise RenderError(f"'{param}' must be a collection of values.", placeholder=self.name)
        values = list(values)
        negate = options.has("not")
        if not values:
            return Fragment.text(ALWAYS_TRUE if negate else ALWAYS_FALSE)
        params: dict[str, Any] = {}
        for i, value in enumerate(values):
            params[state.derive(f"{param}_{i}")] = value
        keyword = "NOT IN" if negate else "IN"
        markers = ", ".join(ctx.marker(n) for n in params)
        return Fragment(f"{ctx.quote(col)} {keyword} ({markers})", params)


class LikeHandler(PlaceholderHandler):
    """``{{like name --param q [--mode contains|starts|ends|exact]}}``.

    For contains / starts / ends the runtime text is escaped and wrapped in
    ``%`` here, so callers never build patterns themselves.  ``exact`` binds
    the caller's pattern unchanged.
    """

    name = "like"
    spec = OptionSpec(
        options={"param": OptionKind.VALUE, "mode": OptionKind.VALUE, "not": OptionKind.FLAG},
        subject=Subject.REQUIRED,
        required=(frozenset({"param"}),),
    )
    _MODES = ("contains", "starts", "ends", "exact")

    def check(self, ctx: PlaceholderContext, options: OptionBag, kinds: Collection[str]) -> None:
        single_subject(self.name, ctx, options)
        mode = options.get("mode", "contains")
        if mode not in self._MODES:
            raise UnsupportedOptionError(
                f"Unknown like mode '{mode}'; expected one of {list(self._MODES)}.",
                placeholder=self.name,
                option="mode",
            )

    def render(self, ctx: PlaceholderContext, options: OptionBag, state: RenderState) -> Fragment:
        col = single_subject(self.name, ctx, options)
        param = options.get("param") or ""
        mode = options.get("mode", "contains")
        value = state.value(param)
        keyword = "NOT LIKE" if options.has("not") else "LIKE"
        sql = f"{ctx.quote(col)} {keyword} {ctx.marker(param)}"
        if mode != "exact":
            if value is not None:
                value = ctx.dialect.like_pattern(str(value), mode)
            sql = f"{sql} {ctx.dialect.like_escape_clause}"
        return Fragment(sql, {param: value})


class NullCheckHandler(StaticHandler):
    """``{{isnull col}}`` / ``{{notnull col}}``."""

    spec = OptionSpec(subject=Subject.REQUIRED)

    def __init__(self, name: str, negate: bool) -> None:
        self.name = name
        self._negate = negate

    def build(self, ctx: PlaceholderContext, options: OptionBag) -> str:
        col = single_subject(self.name, ctx, options)
        return f"{ctx.quote(col)} IS {'NOT ' if self._negate else ''}NULL"


class HavingHandler(PlaceholderHandler):
    """``{{having --param p}}`` -> ``HAVING <predicate>``, or nothing when ``p`` is ``None``."""

    name = "having"
    spec = OptionSpec(options={"param": OptionKind.VALUE}, required=(frozenset({"param"}),))

    def declared_parameters(self, ctx: PlaceholderContext, options: OptionBag) -> Iterable[str]:
        return ()

    def render(self, ctx: PlaceholderContext, options: OptionBag, state: RenderState) -> Fragment:
        param = options.get("param") or ""
        predicate = state.require(param, self.name)
        if predicate is None:
            return Fragment.text("")
        fragment = PredicateTranslator(ctx, state).translate(predicate)
        return Fragment(f"HAVING {fragment.sql}", fragment.parameters)
