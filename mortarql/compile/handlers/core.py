"""Column-list handlers: table, columns, values, set, batch_values, wrap.

These are the placeholders every CRUD template uses::

    INSERT INTO {{table}} ({{columns --exclude id}}) VALUES ({{values --exclude id}})
    UPDATE {{table}} SET {{set --exclude id --inline version=version+1}} WHERE {{where id}}

Markers are named after the column's logical (property) name and their
values are looked up under the same name in the render values.
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from mortarql.compile.base import Fragment
from mortarql.compile.handlers.base import (
    PlaceholderHandler,
    StaticHandler,
    requote_expression,
    select_columns,
)
from mortarql.compile.options import OptionBag, OptionKind, OptionSpec, Subject
from mortarql.compile.state import RenderState
from mortarql.errors import RenderError
from mortarql.schema.context import PlaceholderContext
from mortarql.schema.entity import ColumnMeta

_FILTERS = {"only": OptionKind.LIST, "exclude": OptionKind.LIST}


class TableHandler(StaticHandler):
    """``{{table}}`` -> quoted table name; ``--alias u`` appends an alias."""

    name = "table"
    spec = OptionSpec(options={"alias": OptionKind.VALUE})

    def build(self, ctx: PlaceholderContext, options: OptionBag) -> str:
        sql = ctx.dialect.quote_qualified(ctx.table_name)
        alias = options.get("alias")
        return f"{sql} {ctx.dialect.quote_identifier(alias)}" if alias else sql


class ColumnsHandler(StaticHandler):
    """``{{columns}}`` -> quoted, comma-joined column list in declared order."""

    name = "columns"
    spec = OptionSpec(options=_FILTERS)

    def build(self, ctx: PlaceholderContext, options: OptionBag) -> str:
        return ", ".join(ctx.quote(c) for c in select_columns(ctx, options))


class ValuesHandler(PlaceholderHandler):
    """``{{values}}`` -> one marker per remaining column.

    ``--param name`` emits the single marker ``name`` instead and wins over
    ``--only`` / ``--exclude``.
    """

    name = "values"
    spec = OptionSpec(options={**_FILTERS, "param": OptionKind.VALUE})

    def declared_parameters(self, ctx: PlaceholderContext, options: OptionBag) -> Iterable[str]:
        param = options.get("param")
        if param:
            return (param,)
        return [c.property_name for c in select_columns(ctx, options)]

    def render(self, ctx: PlaceholderContext, options: OptionBag, state: RenderState) -> Fragment:
        param = options.get("param")
        if param:
            return Fragment(ctx.marker(param), {param: state.value(param)})
        columns = select_columns(ctx, options)
        params = {c.property_name: state.value(c.property_name) for c in columns}
        return Fragment(", ".join(ctx.marker(c.property_name) for c in columns), params)


class SetHandler(PlaceholderHandler):
    """``{{set}}`` -> ``col = marker`` assignments for UPDATE statements.

    ``--inline col=expr`` replaces the marker with a raw expression whose
    column references are re-quoted.  Excluded columns are dropped even if
    they are also inlined.  Nothing left renders as an empty string.
    """

    name = "set"
    spec = OptionSpec(options={**_FILTERS, "inline": OptionKind.PAIRS})

    def _inline(self, ctx: PlaceholderContext, options: OptionBag) -> dict[str, tuple[str, list[str]]]:
        inline: dict[str, tuple[str, list[str]]] = {}
        for key, expr in options.get_pairs("inline"):
            col = ctx.resolve_optional(key, "--inline")
            if col is not None:
                inline[col.column_name] = requote_expression(ctx, expr)
        return inline

    def _terms(
        self, ctx: PlaceholderContext, options: OptionBag
    ) -> list[tuple[ColumnMeta, tuple[str, list[str]] | None]]:
        inline = self._inline(ctx, options)
        return [(col, inline.get(col.column_name)) for col in select_columns(ctx, options)]

    def declared_parameters(self, ctx: PlaceholderContext, options: OptionBag) -> Iterable[str]:
        names: list[str] = []
        for col, inline in self._terms(ctx, options):
            names.extend(inline[1] if inline else [col.property_name])
        return names

    def render(self, ctx: PlaceholderContext, options: OptionBag, state: RenderState) -> Fragment:
        parts: list[str] = []
        params: dict[str, Any] = {}
        for col, inline in self._terms(ctx, options):
            if inline is None:
                parts.append(f"{ctx.quote(col)} = {ctx.marker(col.property_name)}")
                params[col.property_name] = state.value(col.property_name)
            else:
                expr, markers = inline
                parts.append(f"{ctx.quote(col)} = {expr}")
                params.update((m, state.value(m)) for m in markers)
        return Fragment(", ".join(parts), params)


def _row_value(row: Any, col: ColumnMeta) -> Any:
    if isinstance(row, Mapping):
        if col.property_name in row:
            return row[col.property_name]
        return row.get(col.column_name)
    return getattr(row, col.property_name, None)


class BatchValuesHandler(PlaceholderHandler):
    """``{{batch_values --param rows}}`` -> ``(m_0, ...), (m_1, ...)`` for multi-row INSERT.

    Rows are mappings (keyed by logical or physical name) or objects with
    attributes named after the logical names.
    """

    name = "batch_values"
    spec = OptionSpec(options={**_FILTERS, "param": OptionKind.VALUE}, required=(frozenset({"param"}),))

    def declared_parameters(self, ctx: PlaceholderContext, options: OptionBag) -> Iterable[str]:
        return ()

    def render(self, ctx: PlaceholderContext, options: OptionBag, state: RenderState) -> Fragment:
        param = options.get("param") or ""
        rows = state.require(param, self.name)
        if isinstance(rows, (str, bytes)) or not isinstance(rows, Iterable):
            raise RenderError(f"'{param}' must be a sequence of rows.", placeholder=self.name)
        rows = list(rows)
        if not rows:
            raise RenderError(f"'{param}' is empty; a batch INSERT needs at least one row.", placeholder=self.name)
        columns = select_columns(ctx, options)
        tuples: list[str] = []
        params: dict[str, Any] = {}
        for i, row in enumerate(rows):
            markers: list[str] = []
            for col in columns:
                marker_name = state.derive(f"{col.property_name}_{i}")
                params[marker_name] = _row_value(row, col)
                markers.append(ctx.marker(marker_name))
            tuples.append("(" + ", ".join(markers) + ")")
        return Fragment(", ".join(tuples), params)


class WrapHandler(StaticHandler):
    """``{{wrap name}}`` -> the column's quoted physical name, or ``name`` quoted as-is."""

    name = "wrap"
    spec = OptionSpec(subject=Subject.REQUIRED)

    def build(self, ctx: PlaceholderContext, options: OptionBag) -> str:
        parts: list[str] = []
        for name in options.subjects:
            col = ctx.find_column(name)
            parts.append(ctx.quote(col) if col else ctx.dialect.quote_qualified(name))
        return ", ".join(parts)
