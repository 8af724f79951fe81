"""Utilities for building an EntityMapping from SQLAlchemy metadata.

SQLAlchemy converter
--------------------
:func:`entity_from_table` converts a :class:`sqlalchemy.Table`,
:func:`entity_from_engine` reflects a single table from a live engine and
:func:`entity_from_model` reads a mapped ORM class, keeping the attribute
key as the logical name and the column name as the physical one.

Install the optional dependency before using this module::

    pip install "mortarql[sqlalchemy]"

Example::

    from sqlalchemy import create_engine
    from mortarql.schema.converters import entity_from_engine

    engine = create_engine("sqlite:///app.db")
    users = entity_from_engine(engine, "users")
"""

from __future__ import annotations

import datetime
import decimal
import uuid
from typing import TYPE_CHECKING, Any

from mortarql.schema.entity import ColumnMeta, EntityMapping

if TYPE_CHECKING:
    from sqlalchemy import Column, Engine, Table

_TYPE_TAGS: tuple[tuple[type, str], ...] = (
    # bool before int: bool is an int subclass
    (bool, "bool"),
    (int, "int"),
    (float, "float"),
    (decimal.Decimal, "decimal"),
    (str, "str"),
    (datetime.datetime, "datetime"),
    (datetime.date, "date"),
    (datetime.time, "time"),
    (bytes, "bytes"),
    (uuid.UUID, "uuid"),
    (dict, "json"),
    (list, "json"),
)


def type_tag_for(column: Column[Any]) -> str:
    """Map a column's Python type to a coarse type tag.

    Types that do not declare a Python type (``NullType``, many dialect
    specific types) map to ``'unknown'``.  JSON types are matched by class,
    as their ``python_type`` is ``object`` on current SQLAlchemy releases.
    """
    from sqlalchemy.types import JSON

    if isinstance(column.type, JSON):
        return "json"
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return "unknown"
    for candidate, tag in _TYPE_TAGS:
        if issubclass(python_type, candidate):
            return tag
    return "unknown"


def _column_meta(column: Column[Any], property_name: str | None = None) -> ColumnMeta:
    return ColumnMeta(
        column_name=column.name,
        property_name=property_name or column.name,
        type_tag=type_tag_for(column),
        # nullable is None on some reflected columns; treat unset as nullable.
        is_nullable=column.nullable is not False,
        is_key=bool(column.primary_key),
    )


def _table_name(table: Table) -> str:
    return f"{table.schema}.{table.name}" if table.schema else table.name


def entity_from_table(table: Table) -> EntityMapping:
    """Build an :class:`EntityMapping` from a SQLAlchemy ``Table``.

    Logical and physical names are identical; columns keep table order.

    Args:
        table: A declared or reflected :class:`sqlalchemy.Table`.

    Returns:
        The entity mapping for ``table``.
    """
    return EntityMapping(
        table_name=_table_name(table),
        columns=tuple(_column_meta(col) for col in table.columns),
    )


def entity_from_engine(engine: Engine, table_name: str, *, schema: str | None = None) -> EntityMapping:
    """Reflect ``table_name`` from a live engine into an :class:`EntityMapping`.

    Args:
        engine: A :class:`sqlalchemy.engine.Engine` instance.
        table_name: Name of the table to reflect.
        schema: Optional database schema (e.g. ``"public"``).

    Returns:
        The entity mapping for the reflected table.

    Raises:
        ImportError: If ``sqlalchemy`` is not installed.
        sqlalchemy.exc.NoSuchTableError: If the table does not exist.
    """
    try:
        from sqlalchemy import MetaData as _MetaData
        from sqlalchemy import Table as _Table
    except ImportError as exc:
        raise ImportError(
            "SQLAlchemy is required for entity_from_engine(). "
            'Install it with: pip install "mortarql[sqlalchemy]"'
        ) from exc

    metadata = _MetaData()
    with engine.connect() as conn:
        table = _Table(table_name, metadata, autoload_with=conn, schema=schema)
    return entity_from_table(table)


def entity_from_model(model: type) -> EntityMapping:
    """Build an :class:`EntityMapping` from a mapped ORM class.

    Attribute keys become logical names, so ``created_at = mapped_column("CreatedAt")``
    is addressed as ``created_at`` in templates and rendered as ``"CreatedAt"``.
    Only single-table, column-backed attributes are included, in mapper order.

    Args:
        model: A declaratively mapped class.

    Returns:
        The entity mapping for the class's table.

    Raises:
        ImportError: If ``sqlalchemy`` is not installed.
        sqlalchemy.exc.NoInspectionAvailable: If ``model`` is not mapped.
    """
    try:
        from sqlalchemy import inspect as _inspect
    except ImportError as exc:
        raise ImportError(
            "SQLAlchemy is required for entity_from_model(). "
            'Install it with: pip install "mortarql[sqlalchemy]"'
        ) from exc

    mapper = _inspect(model)
    table = mapper.local_table
    columns: list[ColumnMeta] = []
    for attr in mapper.column_attrs:
        column = attr.columns[0]
        if getattr(column, "table", None) is not table:
            continue
        columns.append(_column_meta(column, property_name=attr.key))
    return EntityMapping(table_name=_table_name(table), columns=tuple(columns))
