"""Test fixtures: sample entity mappings and the matching SQLite DDL."""

from __future__ import annotations

import json
from pathlib import Path

from mortarql.schema.context import PlaceholderContext
from mortarql.schema.dialect import DialectRegistry
from mortarql.schema.entity import EntityMapping

_FIXTURES_DIR = Path(__file__).parent

SQLITE_DDL = """
CREATE TABLE users (
    id         INTEGER PRIMARY KEY,
    name       TEXT    NOT NULL,
    email      TEXT,
    age        INTEGER,
    is_active  INTEGER NOT NULL DEFAULT 1,
    version    INTEGER NOT NULL DEFAULT 0,
    created_at TEXT
);
CREATE TABLE orders (
    order_id INTEGER PRIMARY KEY,
    user_id  INTEGER NOT NULL REFERENCES users(id),
    status   TEXT    NOT NULL,
    amount   REAL
);
"""


def load_entity(name: str = "users") -> EntityMapping:
    """Load an entity mapping from ``<name>.json``."""
    data = json.loads((_FIXTURES_DIR / f"{name}.json").read_text())
    return EntityMapping.model_validate(data)


def make_context(
    dialect: str = "postgres", entity: str = "users", *, strict_columns: bool = False
) -> PlaceholderContext:
    """Return a context for a fixture entity bound to a built-in dialect."""
    return PlaceholderContext(
        entity=load_entity(entity),
        dialect=DialectRegistry.default().get(dialect),
        strict_columns=strict_columns,
    )
