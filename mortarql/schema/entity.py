"""Pydantic models describing the columns of one entity.

An :class:`EntityMapping` is the ordered column table a template is
rendered against.  Each :class:`ColumnMeta` pairs the logical (property)
name used by calling code with the physical column name used in SQL.
Lookups accept either name and ignore case; order is significant and
drives the emission order of every list-producing placeholder.

Mappings are usually loaded from JSON or built from SQLAlchemy metadata
(see :mod:`mortarql.schema.converters`)::

    mapping = EntityMapping.model_validate({
        "table_name": "users",
        "columns": [
            {"column_name": "id", "property_name": "Id", "type_tag": "int", "is_key": True},
            {"column_name": "email", "property_name": "Email", "type_tag": "str"},
        ],
    })
"""
from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, Field

from mortarql.errors import UnknownColumnError

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def to_snake_case(name: str) -> str:
    """Convert ``CreatedAt`` / ``createdAt`` / ``HTTPStatus`` to snake_case."""
    return _CAMEL_BOUNDARY.sub("_", name).lower()


class ColumnMeta(BaseModel):
    """Metadata for a single mapped column.

    Attributes:
        column_name: Physical column name as it appears in SQL.
        property_name: Logical name used by calling code and for markers.
        type_tag: Coarse type name (``'int'``, ``'str'``, ``'bool'``, ...).
        is_nullable: Whether the column may hold NULL.
        is_key: Whether the column is part of the primary key.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    column_name: str
    property_name: str
    type_tag: str = "unknown"
    is_nullable: bool = True
    is_key: bool = False

    @classmethod
    def from_property(cls, property_name: str, **kwargs: object) -> ColumnMeta:
        """Build a column whose physical name is the snake_case property name."""
        return cls(
            column_name=to_snake_case(property_name),
            property_name=property_name,
            **kwargs,  # type: ignore[arg-type]
        )

    def matches(self, name: str) -> bool:
        """Case-insensitive match against either the logical or physical name."""
        folded = name.casefold()
        return folded in (self.property_name.casefold(), self.column_name.casefold())


class EntityMapping(BaseModel):
    """Ordered column table for one entity.

    Attributes:
        table_name: Physical table name, optionally schema-qualified.
        columns: Ordered column metadata.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    table_name: str
    columns: tuple[ColumnMeta, ...] = Field(default_factory=tuple)

    @property
    def column_names(self) -> list[str]:
        """Returns all physical column names in declared order."""
        return [c.column_name for c in self.columns]

    @property
    def key_columns(self) -> list[ColumnMeta]:
        return [c for c in self.columns if c.is_key]

    def find_column(self, name: str) -> ColumnMeta | None:
        """Resolve a logical or physical name, ignoring case.

        Property names win over column names when both could match, so a
        property ``Name`` mapped to ``full_name`` shadows a column ``name``.

        Returns:
            The matching column, or ``None`` when nothing matches.
        """
        folded = name.strip().casefold()
        for col in self.columns:
            if col.property_name.casefold() == folded:
                return col
        for col in self.columns:
            if col.column_name.casefold() == folded:
                return col
        return None

    def require_column(self, name: str) -> ColumnMeta:
        """Resolve ``name`` or raise.

        Raises:
            UnknownColumnError: If no column matches ``name``.
        """
        col = self.find_column(name)
        if col is None:
            raise UnknownColumnError(name, self.table_name, self.column_names)
        return col
