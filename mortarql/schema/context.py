"""Placeholder context value object.

Packages the ``(entity, dialect)`` pair every placeholder handler needs
into a single immutable object.  One context is built per entity and
dialect and shared by every template prepared against them.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Union

from mortarql.errors import UnknownColumnError
from mortarql.schema.dialect import DialectDescriptor, DialectRegistry
from mortarql.schema.entity import ColumnMeta, EntityMapping

logger = logging.getLogger(__name__)

ColumnSpec = Union[ColumnMeta, Mapping[str, Any], str]


@dataclass(frozen=True)
class PlaceholderContext:
    """Immutable context for every template rendered against one entity.

    Attributes:
        entity: Ordered column table and table name.
        dialect: Syntax rules of the target database.
        strict_columns: When ``True``, unknown names in ``--exclude``,
            ``--only`` and ``--inline`` raise instead of being ignored.
    """

    entity: EntityMapping
    dialect: DialectDescriptor
    strict_columns: bool = False

    @classmethod
    def build(
        cls,
        table_name: str,
        columns: Iterable[ColumnSpec],
        dialect: str | DialectDescriptor = "postgres",
        *,
        registry: DialectRegistry | None = None,
        strict_columns: bool = False,
    ) -> PlaceholderContext:
        """Build a context from loose column specifications.

        Args:
            table_name: Physical table name.
            columns: ``ColumnMeta`` instances, dicts accepted by
                ``ColumnMeta.model_validate``, or bare property names (the
                column name is derived with snake_case conversion).
            dialect: A descriptor, or a name resolved through ``registry``.
            registry: Registry used to resolve a dialect name; defaults to
                :meth:`DialectRegistry.default`.
            strict_columns: See the class attribute.

        Returns:
            A new :class:`PlaceholderContext`.

        Raises:
            UnsupportedDialectError: If ``dialect`` names an unknown dialect.
        """
        if isinstance(dialect, str):
            dialect = (registry or DialectRegistry.default()).get(dialect)
        metas: list[ColumnMeta] = []
        for item in columns:
            if isinstance(item, ColumnMeta):
                metas.append(item)
            elif isinstance(item, str):
                metas.append(ColumnMeta.from_property(item))
            else:
                metas.append(ColumnMeta.model_validate(dict(item)))
        entity = EntityMapping(table_name=table_name, columns=tuple(metas))
        return cls(entity=entity, dialect=dialect, strict_columns=strict_columns)

    # ------------------------------------------------------------------
    # Convenience accessors
    # ------------------------------------------------------------------

    @property
    def table_name(self) -> str:
        return self.entity.table_name

    @property
    def columns(self) -> tuple[ColumnMeta, ...]:
        return self.entity.columns

    def with_dialect(self, dialect: DialectDescriptor) -> PlaceholderContext:
        """Return the same entity bound to another dialect."""
        return PlaceholderContext(self.entity, dialect, self.strict_columns)

    def quote(self, col: ColumnMeta) -> str:
        return self.dialect.quote_identifier(col.column_name)

    def marker(self, name: str) -> str:
        return self.dialect.parameter(name)

    # ------------------------------------------------------------------
    # Column resolution
    # ------------------------------------------------------------------

    def find_column(self, name: str) -> ColumnMeta | None:
        return self.entity.find_column(name)

    def require_column(self, name: str) -> ColumnMeta:
        return self.entity.require_column(name)

    def resolve_optional(self, name: str, usage: str) -> ColumnMeta | None:
        """Resolve a name used in a filtering option such as ``--exclude``.

        Unknown names are dropped unless :attr:`strict_columns` is set.

        Args:
            name: Logical or physical column name.
            usage: The option the name came from, for diagnostics.

        Returns:
            The column, or ``None`` if the name is unknown and ignored.

        Raises:
            UnknownColumnError: If the name is unknown and the context is strict.
        """
        col = self.entity.find_column(name)
        if col is not None:
            return col
        if self.strict_columns:
            raise UnknownColumnError(name, self.table_name, self.entity.column_names)
        logger.debug("Ignoring unknown column %r in %s for table %r", name, usage, self.table_name)
        return None
