"""Shared pytest fixtures for mortarQL unit and integration tests."""
from __future__ import annotations

import pytest

from mortarql.compile.template import TemplateCompiler
from mortarql.schema.context import PlaceholderContext
from mortarql.schema.dialect import BUILTIN_DIALECTS
from tests.fixtures import make_context

DIALECT_NAMES = [d.name for d in BUILTIN_DIALECTS]


@pytest.fixture(scope="session")
def compiler() -> TemplateCompiler:
    """Compiler with the built-in handlers and default config."""
    return TemplateCompiler()


@pytest.fixture(scope="session")
def pg() -> PlaceholderContext:
    return make_context("postgres")


@pytest.fixture(scope="session")
def mssql() -> PlaceholderContext:
    return make_context("sqlserver")


@pytest.fixture(scope="session")
def mysql() -> PlaceholderContext:
    return make_context("mysql")


@pytest.fixture(scope="session")
def oracle() -> PlaceholderContext:
    return make_context("oracle")


@pytest.fixture(scope="session")
def db2() -> PlaceholderContext:
    return make_context("db2")


@pytest.fixture(scope="session")
def lite() -> PlaceholderContext:
    return make_context("sqlite")


@pytest.fixture(scope="session", params=DIALECT_NAMES)
def any_ctx(request: pytest.FixtureRequest) -> PlaceholderContext:
    """The users entity bound to each built-in dialect in turn."""
    return make_context(request.param)
