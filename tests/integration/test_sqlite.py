"""Integration tests: render → execute against a real SQLite in-memory DB.

Every statement is rendered for the ``sqlite`` dialect (``"ident"`` quoting,
``:name`` markers) and executed with the rendered parameter dict, so the
tests check both that the SQL is valid and that it selects the right rows.
"""
from __future__ import annotations

import sqlite3
from collections.abc import Iterator

import pytest

import mortarql
from mortarql.schema.expressions import aggregate, and_, contains, eq, gt, gte, is_true, lte
from tests.fixtures import SQLITE_DDL, make_context

USERS = make_context("sqlite", "users")
ORDERS = make_context("sqlite", "orders")

USER_ROWS = [
    {"Id": 1, "Name": "Ada", "Email": "ada@example.com", "Age": 36, "IsActive": True, "Version": 0, "CreatedAt": "2025-01-01"},
    {"Id": 2, "Name": "Grace", "Email": None, "Age": 45, "IsActive": True, "Version": 0, "CreatedAt": "2025-01-02"},
    {"Id": 3, "Name": "50% off", "Email": "promo@example.com", "Age": None, "IsActive": False, "Version": 0, "CreatedAt": None},
    {"Id": 4, "Name": "500 off", "Email": None, "Age": 20, "IsActive": True, "Version": 0, "CreatedAt": None},
]
ORDER_ROWS = [
    {"OrderId": 10, "UserId": 1, "Status": "open", "Amount": 9.5},
    {"OrderId": 11, "UserId": 1, "Status": "closed", "Amount": 20.0},
    {"OrderId": 12, "UserId": 2, "Status": "open", "Amount": 5.0},
]

INSERT = "INSERT INTO {{table}} ({{columns}}) VALUES ({{values}})"


@pytest.fixture()
def db() -> Iterator[sqlite3.Connection]:
    conn = sqlite3.connect(":memory:")
    conn.executescript(SQLITE_DDL)
    for ctx, rows in ((USERS, USER_ROWS), (ORDERS, ORDER_ROWS)):
        compiled = mortarql.prepare(INSERT, ctx)
        for row in rows:
            r = mortarql.render(compiled, row)
            conn.execute(r.sql, r.parameters)
    conn.commit()
    yield conn
    conn.close()


def _rows(conn: sqlite3.Connection, template: str, values: dict | None = None, ctx=USERS) -> list[tuple]:
    r = mortarql.prepare_and_render(template, ctx, values)
    return conn.execute(r.sql, r.parameters).fetchall()


def _ids(conn: sqlite3.Connection, where: str, values: dict | None = None) -> list[int]:
    template = "SELECT {{columns --only id}} FROM {{table}} WHERE " + where + " {{orderby id}}"
    return [row[0] for row in _rows(conn, template, values)]


# ---------------------------------------------------------------------------
# SELECT
# ---------------------------------------------------------------------------


@pytest.mark.integration
def test_select_by_key(db):
    rows = _rows(db, "SELECT {{columns --only name, email}} FROM {{table}} WHERE {{where id}}", {"Id": 1})
    assert rows == [("Ada", "ada@example.com")]


@pytest.mark.integration
def test_predicate_range(db):
    assert _ids(db, "{{where --param f}}", {"f": and_(gte("age", 25), lte("age", 40))}) == [1]


@pytest.mark.integration
def test_boolean_member(db):
    assert _ids(db, "{{where --param f}}", {"f": is_true("IsActive")}) == [1, 2, 4]


@pytest.mark.integration
def test_like_wildcards_are_literal(db):
    assert _ids(db, "{{like name --param q}}", {"q": "50%"}) == [3]
    assert _ids(db, "{{where --param f}}", {"f": contains("Name", "50%")}) == [3]
    assert _ids(db, "{{like name --param q --mode ends}}", {"q": " off"}) == [3, 4]


@pytest.mark.integration
def test_in_list(db):
    assert _ids(db, "{{in id --param ids}}", {"ids": [1, 3]}) == [1, 3]
    assert _ids(db, "{{in id --param ids}}", {"ids": []}) == []
    assert _ids(db, "{{in id --param ids --not}}", {"ids": []}) == [1, 2, 3, 4]


@pytest.mark.integration
def test_between_and_null_checks(db):
    assert _ids(db, "{{between age --param r}}", {"r": (20, 36)}) == [1, 4]
    assert _ids(db, "{{isnull email}}") == [2, 4]
    assert _ids(db, "{{notnull age}} AND {{where --param f}}", {"f": None}) == [1, 2, 4]


@pytest.mark.integration
def test_paging(db):
    template = "SELECT {{columns --only id}} FROM {{table}} {{orderby id}} {{limit --count 2 --offset 1}}"
    assert [r[0] for r in _rows(db, template)] == [2, 3]
    template = "SELECT {{columns --only id}} FROM {{table}} {{orderby id --desc}} {{limit --param take}}"
    assert [r[0] for r in _rows(db, template, {"take": 1})] == [4]
    assert _rows(db, "SELECT {{columns --only id}} FROM {{table}} {{limit --count 0}}") == []


@pytest.mark.integration
def test_coalesce(db):
    rows = _rows(db, "SELECT {{coalesce email --default 'none'}} FROM {{table}} {{orderby id}}")
    assert [r[0] for r in rows] == ["ada@example.com", "none", "promo@example.com", "none"]


# ---------------------------------------------------------------------------
# Aggregates, windows, sub-queries
# ---------------------------------------------------------------------------


@pytest.mark.integration
def test_group_by_having(db):
    template = (
        "SELECT {{columns --only user_id}}, {{count --as n}} FROM {{table}} "
        "{{groupby user_id}} {{having --param h}} {{orderby user_id}}"
    )
    assert _rows(db, template, {"h": gt(aggregate("count"), 1)}, ORDERS) == [(1, 2)]
    assert _rows(db, template, {"h": None}, ORDERS) == [(1, 2), (2, 1)]


@pytest.mark.integration
def test_window_function(db):
    template = (
        "SELECT {{columns --only order_id}}, {{row_number --partition user_id --order amount --desc --as rn}} "
        "FROM {{table}} {{orderby order_id}}"
    )
    assert _rows(db, template, ctx=ORDERS) == [(10, 2), (11, 1), (12, 1)]


@pytest.mark.integration
def test_exists_with_renamed_parameters(db):
    inner = mortarql.prepare_and_render(
        "SELECT 1 FROM {{table}} WHERE user_id = users.id AND {{where --param f}}",
        ORDERS,
        {"f": eq("Status", "open")},
    )
    ids = _ids(db, "{{where --param g}} AND {{exists --param sub}}", {"g": gt("Age", 18), "sub": inner})
    assert ids == [1, 2]


@pytest.mark.integration
def test_exists_inline_query_with_marker(db):
    where = '{{exists --query "SELECT 1 FROM orders WHERE orders.user_id = users.id AND amount > :min_amount"}}'
    assert _ids(db, where, {"min_amount": 9}) == [1]


@pytest.mark.integration
def test_join(db):
    template = (
        "{{select}} o.order_id FROM {{table}} {{join orders --on user_id=id --alias o}} "
        "WHERE {{where --param f}} ORDER BY o.order_id"
    )
    assert _rows(db, template, {"f": eq("Name", "Ada")}) == [(10,), (11,)]


@pytest.mark.integration
def test_in_subquery_raw_sql(db):
    ids = _ids(db, "{{in_subquery id --param s}}", {"s": "SELECT user_id FROM orders WHERE status = 'closed'"})
    assert ids == [1]


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


@pytest.mark.integration
def test_update_with_inline_increment(db):
    r = mortarql.prepare_and_render(
        "UPDATE {{table}} SET {{set --only name, version --inline version=version + 1}} WHERE {{where id}}",
        USERS,
        {"Id": 1, "Name": "Augusta"},
    )
    db.execute(r.sql, r.parameters)
    assert _rows(db, "SELECT {{columns --only name, version}} FROM {{table}} WHERE {{where id}}", {"Id": 1}) == [
        ("Augusta", 1)
    ]


@pytest.mark.integration
def test_upsert_updates_then_inserts(db):
    compiled = mortarql.prepare("{{upsert --only id, name, email}}", USERS)
    for row in ({"Id": 2, "Name": "Grace H.", "Email": "grace@example.com"}, {"Id": 5, "Name": "Linus", "Email": None}):
        r = mortarql.render(compiled, row)
        db.execute(r.sql, r.parameters)
    rows = _rows(db, "SELECT {{columns --only id, name, email}} FROM {{table}} WHERE {{in id --param ids}} {{orderby id}}", {"ids": [2, 5]})
    assert rows == [(2, "Grace H.", "grace@example.com"), (5, "Linus", None)]


@pytest.mark.integration
def test_batch_insert(db):
    r = mortarql.prepare_and_render(
        "INSERT INTO {{table}} ({{columns --only id, name}}) VALUES {{batch_values --param rows --only id, name}}",
        USERS,
        {"rows": [{"Id": 7, "Name": "A"}, {"Id": 8, "Name": "B"}]},
    )
    db.execute(r.sql, r.parameters)
    assert _ids(db, "{{in id --param ids}}", {"ids": [7, 8]}) == [7, 8]


# ---------------------------------------------------------------------------
# Functions
# ---------------------------------------------------------------------------


@pytest.mark.integration
def test_date_functions(db):
    template = (
        "SELECT {{year created_at}}, {{month created_at}}, {{date_diff created_at, '2025-01-31'}}, "
        "{{date_add created_at --interval 1 --unit month}} FROM {{table}} WHERE {{where id}}"
    )
    assert _rows(db, template, {"Id": 1}) == [(2025, 1, 30, "2025-02-01 00:00:00")]


@pytest.mark.integration
def test_date_add_with_marker(db):
    template = "SELECT {{date_add created_at --interval :n --unit week}} FROM {{table}} WHERE {{where id}}"
    assert _rows(db, template, {"Id": 2, "n": 1}) == [("2025-01-09 00:00:00",)]


@pytest.mark.integration
def test_string_and_math_functions(db):
    template = "SELECT {{upper name}}, {{lower email}}, {{abs age}}, {{round age --precision 0}} FROM {{table}} WHERE {{where id}}"
    assert _rows(db, template, {"Id": 1}) == [("ADA", "ada@example.com", 36, 36.0)]
    rows = _rows(db, "SELECT {{trim name --mode leading}} FROM {{table}} WHERE {{where id}}", {"Id": 3})
    assert rows == [("50% off",)]
