"""Unit tests for ColumnMeta, EntityMapping and PlaceholderContext."""

from __future__ import annotations

import logging

import pytest

from mortarql.errors import UnknownColumnError, UnsupportedDialectError
from mortarql.schema.context import PlaceholderContext
from mortarql.schema.dialect import SQLITE, DialectRegistry
from mortarql.schema.entity import ColumnMeta, EntityMapping, to_snake_case
from tests.fixtures import load_entity, make_context

USERS = load_entity("users")


@pytest.mark.parametrize(
    "name, expected",
    [
        ("CreatedAt", "created_at"),
        ("createdAt", "created_at"),
        ("HTTPStatus", "http_status"),
        ("id", "id"),
        ("UserId2", "user_id2"),
    ],
)
def test_to_snake_case(name, expected):
    assert to_snake_case(name) == expected


class TestColumnMeta:
    def test_from_property_derives_column_name(self):
        col = ColumnMeta.from_property("CreatedAt", type_tag="datetime")
        assert col.column_name == "created_at"
        assert col.property_name == "CreatedAt"
        assert col.type_tag == "datetime"

    def test_defaults(self):
        col = ColumnMeta(column_name="x", property_name="X")
        assert col.type_tag == "unknown"
        assert col.is_nullable is True
        assert col.is_key is False

    def test_matches_either_name_ignoring_case(self):
        col = ColumnMeta(column_name="is_active", property_name="IsActive")
        assert col.matches("isactive")
        assert col.matches("IS_ACTIVE")
        assert not col.matches("active")

    def test_extra_fields_rejected(self):
        with pytest.raises(Exception):
            ColumnMeta.model_validate({"column_name": "x", "property_name": "X", "width": 3})


class TestEntityMapping:
    def test_columns_keep_declared_order(self):
        assert USERS.column_names == ["id", "name", "email", "age", "is_active", "version", "created_at"]

    def test_key_columns(self):
        assert [c.column_name for c in USERS.key_columns] == ["id"]

    def test_find_by_property_or_column_name(self):
        assert USERS.find_column("CreatedAt").column_name == "created_at"
        assert USERS.find_column("created_at").property_name == "CreatedAt"
        assert USERS.find_column("EMAIL").column_name == "email"

    def test_find_unknown_returns_none(self):
        assert USERS.find_column("nickname") is None

    def test_property_name_wins_over_column_name(self):
        entity = EntityMapping(
            table_name="people",
            columns=(
                ColumnMeta(column_name="name", property_name="Nickname"),
                ColumnMeta(column_name="full_name", property_name="Name"),
            ),
        )
        assert entity.find_column("name").column_name == "full_name"

    def test_require_unknown_raises(self):
        with pytest.raises(UnknownColumnError) as exc_info:
            USERS.require_column("nickname")
        assert exc_info.value.column == "nickname"
        assert exc_info.value.details["table"] == "users"
        assert "email" in exc_info.value.details["available"]


class TestPlaceholderContext:
    def test_build_from_names_and_dicts(self):
        ctx = PlaceholderContext.build(
            "accounts",
            ["AccountId", {"column_name": "bal", "property_name": "Balance", "type_tag": "decimal"}],
            "sqlite",
        )
        assert ctx.dialect == SQLITE
        assert [c.column_name for c in ctx.columns] == ["account_id", "bal"]
        assert ctx.table_name == "accounts"

    def test_build_with_custom_registry(self):
        custom = SQLITE.model_copy(update={"name": "lite"})
        registry = DialectRegistry.default().with_dialect(custom)
        ctx = PlaceholderContext.build("t", ["A"], "lite", registry=registry)
        assert ctx.dialect.name == "lite"

    def test_build_unknown_dialect_raises(self):
        with pytest.raises(UnsupportedDialectError):
            PlaceholderContext.build("t", ["A"], "informix")

    def test_quote_and_marker(self):
        ctx = make_context("sqlserver")
        col = ctx.require_column("Email")
        assert ctx.quote(col) == "[email]"
        assert ctx.marker("Email") == "@Email"

    def test_with_dialect_keeps_entity(self):
        pg = make_context("postgres")
        lite = pg.with_dialect(SQLITE)
        assert lite.entity is pg.entity
        assert lite.dialect.name == "sqlite"

    def test_context_is_frozen(self):
        ctx = make_context()
        with pytest.raises(Exception):
            ctx.strict_columns = True  # type: ignore[misc]

    def test_resolve_optional_ignores_unknown(self, caplog):
        ctx = make_context()
        with caplog.at_level(logging.DEBUG, logger="mortarql.schema.context"):
            assert ctx.resolve_optional("nickname", "--exclude") is None
        assert "nickname" in caplog.text

    def test_resolve_optional_strict_raises(self):
        ctx = make_context(strict_columns=True)
        with pytest.raises(UnknownColumnError):
            ctx.resolve_optional("nickname", "--exclude")

    def test_resolve_optional_known(self):
        assert make_context().resolve_optional("isactive", "--only").column_name == "is_active"
