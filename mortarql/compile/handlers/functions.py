"""Expression handlers: coalesce, ifnull, case, aggregates, window functions,
date, string and math functions, and dialect literals.

All of them are static: their SQL depends only on the context and the
options, so the compiler folds them into the literal text at prepare time.
A site whose option expressions contain parameter markers
(``--default @fallback``) is rendered per call instead, binding those markers.
"""
from __future__ import annotations

from collections.abc import Callable, Collection

from mortarql.compile.handlers.base import (
    StaticHandler,
    alias_suffix,
    ordering_terms,
    requote_expression,
    single_subject,
)
from mortarql.compile.options import OptionBag, OptionKind, OptionSpec, Subject
from mortarql.errors import UnsupportedDialectError, UnsupportedOptionError
from mortarql.schema.context import PlaceholderContext
from mortarql.schema.dialect import DialectDescriptor


class CoalesceHandler(StaticHandler):
    """``{{coalesce email, backup_email --default 'n/a' --as contact}}``.

    The first item must be a column; later items may be columns or raw SQL
    (literals, functions).
    """

    name = "coalesce"
    spec = OptionSpec(
        options={"default": OptionKind.VALUE, "as": OptionKind.VALUE},
        subject=Subject.REQUIRED,
    )

    def build(self, ctx: PlaceholderContext, options: OptionBag) -> str:
        first, *rest = options.subjects
        args = [ctx.quote(ctx.require_column(first))]
        args.extend(requote_expression(ctx, item)[0] for item in rest)
        default = options.get("default")
        if default is not None:
            args.append(requote_expression(ctx, default)[0])
        if len(args) < 2:
            raise UnsupportedOptionError(
                "'coalesce' needs at least two arguments; add a column or --default.",
                placeholder=self.name,
            )
        return f"COALESCE({', '.join(args)}){alias_suffix(ctx, options)}"


class IfNullHandler(StaticHandler):
    """``{{ifnull email --default 'n/a'}}`` using the dialect's two-argument function."""

    name = "ifnull"
    spec = OptionSpec(
        options={"default": OptionKind.VALUE, "as": OptionKind.VALUE},
        subject=Subject.REQUIRED,
        required=(frozenset({"default"}),),
    )

    def build(self, ctx: PlaceholderContext, options: OptionBag) -> str:
        col = single_subject(self.name, ctx, options)
        default = requote_expression(ctx, options.get("default") or "")[0]
        func = ctx.dialect.ifnull_function
        return f"{func}({ctx.quote(col)}, {default}){alias_suffix(ctx, options)}"


class CaseHandler(StaticHandler):
    """``{{case status --when 1='active', 2='inactive' --else 'unknown' --as label}}``."""

    name = "case"
    spec = OptionSpec(
        options={"when": OptionKind.PAIRS, "else": OptionKind.VALUE, "as": OptionKind.VALUE},
        subject=Subject.REQUIRED,
        required=(frozenset({"when"}),),
    )

    def build(self, ctx: PlaceholderContext, options: OptionBag) -> str:
        col = single_subject(self.name, ctx, options)
        parts = [f"CASE {ctx.quote(col)}"]
        for key, value in options.get_pairs("when"):
            parts.append(f"WHEN {requote_expression(ctx, key)[0]} THEN {requote_expression(ctx, value)[0]}")
        otherwise = options.get("else")
        if otherwise is not None:
            parts.append(f"ELSE {requote_expression(ctx, otherwise)[0]}")
        parts.append("END")
        return " ".join(parts) + alias_suffix(ctx, options)


class AggregateHandler(StaticHandler):
    """``{{count}}``, ``{{sum amount --as total}}``, ``{{count email --distinct}}``.

    ``--default`` wraps the aggregate in ``COALESCE`` so empty groups yield
    a value instead of NULL.
    """

    spec = OptionSpec(
        options={"distinct": OptionKind.FLAG, "default": OptionKind.VALUE, "as": OptionKind.VALUE},
        subject=Subject.OPTIONAL,
    )

    def __init__(self, name: str) -> None:
        self.name = name

    def check(self, ctx: PlaceholderContext, options: OptionBag, kinds: Collection[str]) -> None:
        if not options.subject and (self.name != "count" or options.has("distinct")):
            raise UnsupportedOptionError(f"'{self.name}' requires a column argument.", placeholder=self.name)

    def build(self, ctx: PlaceholderContext, options: OptionBag) -> str:
        func = self.name.upper()
        if options.subject:
            col = single_subject(self.name, ctx, options)
            distinct = "DISTINCT " if options.has("distinct") else ""
            sql = f"{func}({distinct}{ctx.quote(col)})"
        else:
            sql = "COUNT(*)"
        default = options.get("default")
        if default is not None:
            sql = f"COALESCE({sql}, {requote_expression(ctx, default)[0]})"
        return sql + alias_suffix(ctx, options)


class WindowHandler(StaticHandler):
    """``{{row_number --partition dept --order hired_at --desc --as rn}}``.

    Ranking functions always need ``--order``; SQL Server rejects them
    without an ORDER BY inside OVER.
    """

    spec = OptionSpec(
        options={
            "partition": OptionKind.LIST,
            "order": OptionKind.LIST,
            "desc": OptionKind.FLAG,
            "as": OptionKind.VALUE,
        },
        required=(frozenset({"order"}),),
    )

    def __init__(self, name: str) -> None:
        self.name = name

    def build(self, ctx: PlaceholderContext, options: OptionBag) -> str:
        over: list[str] = []
        partition = options.get_list("partition")
        if partition:
            over.append("PARTITION BY " + ", ".join(ctx.quote(ctx.require_column(n)) for n in partition))
        default = "DESC" if options.has("desc") else "ASC"
        over.append("ORDER BY " + ", ".join(ordering_terms(self.name, ctx, options.get_list("order"), default)))
        return f"{self.name.upper()}() OVER ({' '.join(over)}){alias_suffix(ctx, options)}"


# ---------------------------------------------------------------------------
# Date functions
# ---------------------------------------------------------------------------


def _date_operand(placeholder: str, ctx: PlaceholderContext, options: OptionBag) -> str:
    """The quoted subject column, or today's date when there is none."""
    if not options.subject:
        return ctx.dialect.current_date
    return ctx.quote(single_subject(placeholder, ctx, options))


class TodayHandler(StaticHandler):
    """``{{today}}`` -> today's date; ``--format datetime`` or ``--format utc``
    for the current timestamp in local time or UTC."""

    name = "today"
    spec = OptionSpec(options={"format": OptionKind.VALUE, "as": OptionKind.VALUE})

    _FORMATS: dict[str, Callable[[DialectDescriptor], str]] = {
        "date": lambda d: d.current_date,
        "datetime": lambda d: d.current_timestamp,
        "utc": lambda d: d.utc_timestamp,
    }

    def check(self, ctx: PlaceholderContext, options: OptionBag, kinds: Collection[str]) -> None:
        fmt = options.get("format", "date")
        if fmt not in self._FORMATS:
            raise UnsupportedOptionError(
                f"'today' --format must be one of {', '.join(self._FORMATS)}, got '{fmt}'.",
                placeholder=self.name,
                option="format",
            )

    def build(self, ctx: PlaceholderContext, options: OptionBag) -> str:
        resolve = self._FORMATS[options.get("format", "date") or "date"]
        return resolve(ctx.dialect) + alias_suffix(ctx, options)


class DatePartHandler(StaticHandler):
    """``{{year created_at}}``, ``{{week}}``, ``{{month created_at --name}}``.

    Without a column the part is taken from today's date.  ``--name``
    (``month`` only) yields the month's name instead of its number.
    """

    spec = OptionSpec(
        options={"name": OptionKind.FLAG, "as": OptionKind.VALUE},
        subject=Subject.OPTIONAL,
    )

    def __init__(self, name: str) -> None:
        self.name = name

    def _part(self, options: OptionBag) -> str:
        return "month_name" if options.has("name") else self.name

    def check(self, ctx: PlaceholderContext, options: OptionBag, kinds: Collection[str]) -> None:
        if options.has("name") and self.name != "month":
            raise UnsupportedOptionError(
                f"'{self.name}' does not support option '--name'.", placeholder=self.name, option="name"
            )
        if ctx.dialect.date_part(self._part(options), "") is None:
            raise UnsupportedDialectError(
                f"Dialect '{ctx.dialect.name}' has no spelling for '{self._part(options)}'.",
                dialect=ctx.dialect.name,
            )

    def build(self, ctx: PlaceholderContext, options: OptionBag) -> str:
        expr = _date_operand(self.name, ctx, options)
        return (ctx.dialect.date_part(self._part(options), expr) or "") + alias_suffix(ctx, options)


class DateAddHandler(StaticHandler):
    """``{{date_add created_at --interval 30 --unit day --as due}}``.

    ``--interval`` is a raw expression (a number or a marker such as
    ``@days``); ``--unit`` is ``day`` (default), ``week``, ``month`` or
    ``year``.  Weeks are added as seven days.
    """

    name = "date_add"
    spec = OptionSpec(
        options={"interval": OptionKind.VALUE, "unit": OptionKind.VALUE, "as": OptionKind.VALUE},
        subject=Subject.OPTIONAL,
        required=(frozenset({"interval"}),),
    )

    _UNITS = ("day", "week", "month", "year")

    def check(self, ctx: PlaceholderContext, options: OptionBag, kinds: Collection[str]) -> None:
        unit = options.get("unit", "day")
        if unit not in self._UNITS:
            raise UnsupportedOptionError(
                f"'date_add' --unit must be one of {', '.join(self._UNITS)}, got '{unit}'.",
                placeholder=self.name,
                option="unit",
            )

    def build(self, ctx: PlaceholderContext, options: OptionBag) -> str:
        unit = options.get("unit", "day") or "day"
        amount = requote_expression(ctx, options.get("interval") or "")[0]
        if unit == "week":
            unit = "day"
            amount = str(int(amount) * 7) if amount.lstrip("-").isdigit() else f"7 * ({amount})"
        sql = ctx.dialect.date_add(unit, _date_operand(self.name, ctx, options), amount)
        if sql is None:
            raise UnsupportedDialectError(
                f"Dialect '{ctx.dialect.name}' cannot add '{unit}' intervals.", dialect=ctx.dialect.name
            )
        return sql + alias_suffix(ctx, options)


class DateDiffHandler(StaticHandler):
    """``{{date_diff created_at, shipped_at --as days}}`` -> whole days between
    two dates.

    The first item must be a column; the second may be a column or raw SQL
    and defaults to today's date.
    """

    name = "date_diff"
    spec = OptionSpec(options={"as": OptionKind.VALUE}, subject=Subject.REQUIRED)

    def build(self, ctx: PlaceholderContext, options: OptionBag) -> str:
        items = options.subjects
        if len(items) > 2:
            raise UnsupportedOptionError(
                f"'date_diff' takes a start and an end date, got '{options.subject}'.", placeholder=self.name
            )
        start = ctx.quote(ctx.require_column(items[0]))
        end = requote_expression(ctx, items[1])[0] if len(items) == 2 else ctx.dialect.current_date
        return ctx.dialect.days_between(start, end) + alias_suffix(ctx, options)


# ---------------------------------------------------------------------------
# String and math functions
# ---------------------------------------------------------------------------


class ScalarFunctionHandler(StaticHandler):
    """One-argument column functions: ``{{upper name --as n}}`` -> ``UPPER("name") AS "n"``."""

    spec = OptionSpec(options={"as": OptionKind.VALUE}, subject=Subject.REQUIRED)

    def __init__(self, name: str, resolve: Callable[[DialectDescriptor], str]) -> None:
        self.name = name
        self._resolve = resolve

    def build(self, ctx: PlaceholderContext, options: OptionBag) -> str:
        col = single_subject(self.name, ctx, options)
        return f"{self._resolve(ctx.dialect)}({ctx.quote(col)}){alias_suffix(ctx, options)}"


class TrimHandler(StaticHandler):
    """``{{trim name --mode leading}}``; mode is ``both`` (default), ``leading``
    or ``trailing``."""

    name = "trim"
    spec = OptionSpec(
        options={"mode": OptionKind.VALUE, "as": OptionKind.VALUE},
        subject=Subject.REQUIRED,
    )

    _FUNCTIONS = {"both": "TRIM", "leading": "LTRIM", "trailing": "RTRIM"}

    def check(self, ctx: PlaceholderContext, options: OptionBag, kinds: Collection[str]) -> None:
        mode = options.get("mode", "both")
        if mode not in self._FUNCTIONS:
            raise UnsupportedOptionError(
                f"'trim' --mode must be both, leading or trailing, got '{mode}'.",
                placeholder=self.name,
                option="mode",
            )

    def build(self, ctx: PlaceholderContext, options: OptionBag) -> str:
        col = single_subject(self.name, ctx, options)
        func = self._FUNCTIONS[options.get("mode", "both") or "both"]
        return f"{func}({ctx.quote(col)}){alias_suffix(ctx, options)}"


class RoundHandler(StaticHandler):
    """``{{round amount --precision 1}}``; precision defaults to 2."""

    name = "round"
    spec = OptionSpec(
        options={"precision": OptionKind.INT, "as": OptionKind.VALUE},
        subject=Subject.REQUIRED,
    )

    def build(self, ctx: PlaceholderContext, options: OptionBag) -> str:
        col = single_subject(self.name, ctx, options)
        precision = options.get_int("precision")
        digits = 2 if precision is None else precision
        return f"ROUND({ctx.quote(col)}, {digits}){alias_suffix(ctx, options)}"


class DialectLiteralHandler(StaticHandler):
    """Placeholders that resolve directly from the dialect descriptor."""

    def __init__(self, name: str, resolve: Callable[[DialectDescriptor], str]) -> None:
        self.name = name
        self._resolve = resolve

    def build(self, ctx: PlaceholderContext, options: OptionBag) -> str:
        return self._resolve(ctx.dialect)


DIALECT_LITERALS: tuple[DialectLiteralHandler, ...] = (
    DialectLiteralHandler("bool_true", lambda d: d.true_literal),
    DialectLiteralHandler("bool_false", lambda d: d.false_literal),
    DialectLiteralHandler("current_timestamp", lambda d: d.current_timestamp),
    DialectLiteralHandler("auto_increment", lambda d: d.auto_increment),
    DialectLiteralHandler("random", lambda d: d.random_function),
)

AGGREGATES: tuple[AggregateHandler, ...] = tuple(
    AggregateHandler(name) for name in ("count", "sum", "avg", "min", "max")
)

WINDOW_FUNCTIONS: tuple[WindowHandler, ...] = tuple(
    WindowHandler(name) for name in ("row_number", "rank", "dense_rank")
)

DATE_PARTS: tuple[DatePartHandler, ...] = tuple(DatePartHandler(name) for name in ("year", "month", "week"))

SCALAR_FUNCTIONS: tuple[ScalarFunctionHandler, ...] = (
    ScalarFunctionHandler("upper", lambda d: "UPPER"),
    ScalarFunctionHandler("lower", lambda d: "LOWER"),
    ScalarFunctionHandler("abs", lambda d: "ABS"),
    ScalarFunctionHandler("floor", lambda d: "FLOOR"),
    ScalarFunctionHandler("ceiling", lambda d: d.ceiling_function),
)
