"""Statement prefixes and joins.

``{{select}}``, ``{{insert}}``, ``{{update}}`` and ``{{delete}}`` open a
statement against the context's table; ``{{join}}`` links another table to
it.  Like the clause handlers they are static and folded in at prepare time.
"""
from __future__ import annotations

from collections.abc import Collection

from mortarql.compile.handlers.base import StaticHandler
from mortarql.compile.options import OptionBag, OptionKind, OptionSpec, Subject
from mortarql.errors import UnsupportedDialectError, UnsupportedOptionError
from mortarql.schema.context import PlaceholderContext


class StatementHandler(StaticHandler):
    """``{{insert}}`` -> ``INSERT INTO "users"``, ``{{update}}``, ``{{delete}}``.

    ``{{select}}`` renders only the keyword, since the column list follows
    it; ``--distinct`` adds ``DISTINCT``.

    Args:
        name: Placeholder name.
        keyword: SQL that opens the statement.
        with_table: Whether the quoted table name follows the keyword.
    """

    spec = OptionSpec(options={"distinct": OptionKind.FLAG, "alias": OptionKind.VALUE})

    def __init__(self, name: str, keyword: str, *, with_table: bool = True) -> None:
        self.name = name
        self.keyword = keyword
        self.with_table = with_table

    def check(self, ctx: PlaceholderContext, options: OptionBag, kinds: Collection[str]) -> None:
        invalid = "alias" if not self.with_table else "distinct"
        if options.has(invalid):
            raise UnsupportedOptionError(
                f"'{self.name}' does not support option '--{invalid}'.", placeholder=self.name, option=invalid
            )

    def build(self, ctx: PlaceholderContext, options: OptionBag) -> str:
        if not self.with_table:
            return f"{self.keyword} DISTINCT" if options.has("distinct") else self.keyword
        sql = f"{self.keyword} {ctx.dialect.quote_qualified(ctx.table_name)}"
        alias = options.get("alias")
        return f"{sql} {ctx.dialect.quote_identifier(alias)}" if alias else sql


class JoinHandler(StaticHandler):
    """``{{join orders --on user_id=id --type left --alias o}}``.

    The subject is the joined table's physical name.  Each ``--on`` pair
    maps a column of the joined table (left, quoted as written) to a column
    of the context's entity (right, resolved and quoted through the column
    table).  Pairs are combined with AND.  ``--base`` names the alias the
    context's table carries in the statement.
    """

    name = "join"
    spec = OptionSpec(
        options={
            "on": OptionKind.PAIRS,
            "type": OptionKind.VALUE,
            "alias": OptionKind.VALUE,
            "base": OptionKind.VALUE,
        },
        subject=Subject.REQUIRED,
        required=(frozenset({"on"}),),
    )

    _TYPES = {"inner": "INNER JOIN", "left": "LEFT JOIN", "right": "RIGHT JOIN", "full": "FULL OUTER JOIN"}

    def check(self, ctx: PlaceholderContext, options: OptionBag, kinds: Collection[str]) -> None:
        kind = options.get("type", "inner")
        if kind not in self._TYPES:
            raise UnsupportedOptionError(
                f"'join' --type must be one of {', '.join(self._TYPES)}, got '{kind}'.",
                placeholder=self.name,
                option="type",
            )
        if kind == "full" and not ctx.dialect.supports_full_join:
            raise UnsupportedDialectError(
                f"Dialect '{ctx.dialect.name}' has no FULL OUTER JOIN.", dialect=ctx.dialect.name
            )
        if len(options.subjects) != 1:
            raise UnsupportedOptionError(
                f"'join' takes exactly one table, got '{options.subject}'.", placeholder=self.name
            )

    def build(self, ctx: PlaceholderContext, options: OptionBag) -> str:
        d = ctx.dialect
        table = options.subjects[0]
        alias = options.get("alias")
        joined = d.quote_identifier(alias) if alias else d.quote_qualified(table)
        base = options.get("base")
        outer = d.quote_identifier(base) if base else d.quote_qualified(ctx.table_name)

        conditions = [
            f"{joined}.{d.quote_identifier(left)} = {outer}.{ctx.quote(ctx.require_column(right))}"
            for left, right in options.get_pairs("on")
        ]
        target = f"{d.quote_qualified(table)} {joined}" if alias else joined
        keyword = self._TYPES[options.get("type", "inner") or "inner"]
        return f"{keyword} {target} ON {' AND '.join(conditions)}"


STATEMENTS: tuple[StatementHandler, ...] = (
    StatementHandler("select", "SELECT", with_table=False),
    StatementHandler("insert", "INSERT INTO"),
    StatementHandler("update", "UPDATE"),
    StatementHandler("delete", "DELETE FROM"),
)
