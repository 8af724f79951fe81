"""``{{upsert}}``: a complete INSERT-or-UPDATE statement per dialect idiom.

::

    {{upsert --key id --exclude created_at}}

MySQL (duplicate-key-update)::

    INSERT INTO `users` (`id`, `name`) VALUES (@id, @name)
    ON DUPLICATE KEY UPDATE `name` = VALUES(`name`)

PostgreSQL / SQLite (on-conflict)::

    INSERT INTO "users" ("id", "name") VALUES ($id, $name)
    ON CONFLICT ("id") DO UPDATE SET "name" = excluded."name"

SQL Server / Oracle / DB2 (merge)::

    MERGE INTO [users] target USING (SELECT @id AS [id], @name AS [name]) source
    ON (target.[id] = source.[id])
    WHEN MATCHED THEN UPDATE SET [name] = source.[name]
    WHEN NOT MATCHED THEN INSERT ([id], [name]) VALUES (source.[id], source.[name]);
"""
from __future__ import annotations

from collections.abc import Collection, Iterable

from mortarql.compile.base import Fragment
from mortarql.compile.handlers.base import PlaceholderHandler, select_columns
from mortarql.compile.options import OptionBag, OptionKind, OptionSpec
from mortarql.compile.state import RenderState
from mortarql.errors import UnsupportedOptionError
from mortarql.schema.context import PlaceholderContext
from mortarql.schema.dialect import UpsertStyle
from mortarql.schema.entity import ColumnMeta


class UpsertHandler(PlaceholderHandler):
    """Renders the dialect's upsert idiom.

    Key columns come from ``--key`` or, failing that, from the columns
    flagged ``is_key``.  ``--update`` narrows the updated columns; when no
    column is left to update the statement degrades to insert-if-missing.
    """

    name = "upsert"
    spec = OptionSpec(
        options={"key": OptionKind.LIST, "update": OptionKind.LIST, "only": OptionKind.LIST, "exclude": OptionKind.LIST}
    )

    # ------------------------------------------------------------------
    # Column planning
    # ------------------------------------------------------------------

    def _plan(
        self, ctx: PlaceholderContext, options: OptionBag
    ) -> tuple[list[ColumnMeta], list[ColumnMeta], list[ColumnMeta]]:
        """Return ``(insert_columns, key_columns, update_columns)``."""
        if options.has("key"):
            keys = [ctx.require_column(n) for n in options.get_list("key")]
        else:
            keys = list(ctx.entity.key_columns)
        if not keys:
            raise UnsupportedOptionError(
                f"'upsert' needs --key: table '{ctx.table_name}' declares no key columns.",
                placeholder=self.name,
                option="key",
            )
        inserted = select_columns(ctx, options)
        names = {c.column_name for c in inserted}
        for key in keys:
            if key.column_name not in names:
                raise UnsupportedOptionError(
                    f"Key column '{key.column_name}' cannot be excluded from 'upsert'.",
                    placeholder=self.name,
                    option="exclude",
                )
        key_names = {k.column_name for k in keys}
        updated = [c for c in inserted if c.column_name not in key_names]
        if options.has("update"):
            wanted = {
                col.column_name
                for n in options.get_list("update")
                if (col := ctx.resolve_optional(n, "--update")) is not None
            }
            updated = [c for c in updated if c.column_name in wanted]
        return inserted, keys, updated

    def check(self, ctx: PlaceholderContext, options: OptionBag, kinds: Collection[str]) -> None:
        self._plan(ctx, options)

    def declared_parameters(self, ctx: PlaceholderContext, options: OptionBag) -> Iterable[str]:
        return [c.property_name for c in self._plan(ctx, options)[0]]

    def render(self, ctx: PlaceholderContext, options: OptionBag, state: RenderState) -> Fragment:
        inserted, keys, updated = self._plan(ctx, options)
        style = ctx.dialect.upsert_style
        if style is UpsertStyle.MERGE:
            sql = self._merge(ctx, inserted, keys, updated)
        elif style is UpsertStyle.DUPLICATE_KEY_UPDATE:
            sql = self._duplicate_key(ctx, inserted, keys, updated)
        else:
            sql = self._on_conflict(ctx, inserted, keys, updated)
        return Fragment(sql, {c.property_name: state.value(c.property_name) for c in inserted})

    # ------------------------------------------------------------------
    # Idioms
    # ------------------------------------------------------------------

    @staticmethod
    def _insert(ctx: PlaceholderContext, inserted: list[ColumnMeta]) -> str:
        cols = ", ".join(ctx.quote(c) for c in inserted)
        markers = ", ".join(ctx.marker(c.property_name) for c in inserted)
        return f"INSERT INTO {ctx.dialect.quote_qualified(ctx.table_name)} ({cols}) VALUES ({markers})"

    def _duplicate_key(
        self, ctx: PlaceholderContext, inserted: list[ColumnMeta], keys: list[ColumnMeta], updated: list[ColumnMeta]
    ) -> str:
        if updated:
            sets = ", ".join(f"{ctx.quote(c)} = VALUES({ctx.quote(c)})" for c in updated)
        else:
            # MySQL has no DO NOTHING; a self-assignment keeps the row unchanged.
            sets = f"{ctx.quote(keys[0])} = {ctx.quote(keys[0])}"
        return f"{self._insert(ctx, inserted)} ON DUPLICATE KEY UPDATE {sets}"

    def _on_conflict(
        self, ctx: PlaceholderContext, inserted: list[ColumnMeta], keys: list[ColumnMeta], updated: list[ColumnMeta]
    ) -> str:
        target = ", ".join(ctx.quote(k) for k in keys)
        if not updated:
            return f"{self._insert(ctx, inserted)} ON CONFLICT ({target}) DO NOTHING"
        sets = ", ".join(f"{ctx.quote(c)} = excluded.{ctx.quote(c)}" for c in updated)
        return f"{self._insert(ctx, inserted)} ON CONFLICT ({target}) DO UPDATE SET {sets}"

    def _merge(
        self, ctx: PlaceholderContext, inserted: list[ColumnMeta], keys: list[ColumnMeta], updated: list[ColumnMeta]
    ) -> str:
        d = ctx.dialect
        source_cols = ", ".join(f"{ctx.marker(c.property_name)} AS {ctx.quote(c)}" for c in inserted)
        from_dual = f" FROM {d.dual_table}" if d.dual_table else ""
        on = " AND ".join(f"target.{ctx.quote(k)} = source.{ctx.quote(k)}" for k in keys)
        parts = [
            f"MERGE INTO {d.quote_qualified(ctx.table_name)} target",
            f"USING (SELECT {source_cols}{from_dual}) source",
            f"ON ({on})",
        ]
        if updated:
            sets = ", ".join(f"{ctx.quote(c)} = source.{ctx.quote(c)}" for c in updated)
            parts.append(f"WHEN MATCHED THEN UPDATE SET {sets}")
        cols = ", ".join(ctx.quote(c) for c in inserted)
        values = ", ".join(f"source.{ctx.quote(c)}" for c in inserted)
        parts.append(f"WHEN NOT MATCHED THEN INSERT ({cols}) VALUES ({values})")
        return " ".join(parts) + d.merge_terminator
