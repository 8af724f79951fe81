"""Dialect descriptors and the immutable dialect registry.

A :class:`DialectDescriptor` is pure data: quoting rules, parameter-marker
style, boolean literals, paging syntax and upsert idiom for one database
kind.  Descriptors are frozen pydantic models, so two descriptors with the
same settings compare equal and can be used as dict keys.

Descriptors are looked up through a :class:`DialectRegistry` that is passed
explicitly wherever a name must be resolved::

    from mortarql.schema.dialect import DialectRegistry

    registry = DialectRegistry.default()
    pg = registry.get("postgres")

    # Derive a variant without touching the shared registry
    mssql_2012 = registry.get("sqlserver").model_copy(
        update={"name": "sqlserver2012", "paging_style": PagingStyle.OFFSET_FETCH}
    )
    registry = registry.with_dialect(mssql_2012)
"""
from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from enum import Enum
from types import MappingProxyType

from pydantic import BaseModel, ConfigDict, Field

from mortarql.errors import UnsupportedDialectError

# ---------------------------------------------------------------------------
# Style enums
# ---------------------------------------------------------------------------


class PagingStyle(str, Enum):
    """How row limits and offsets are spelled."""

    LIMIT_OFFSET = "limit_offset"
    OFFSET_FETCH = "offset_fetch"
    TOP = "top"


class UpsertStyle(str, Enum):
    """Which INSERT-or-UPDATE idiom the database supports."""

    DUPLICATE_KEY_UPDATE = "duplicate_key_update"
    ON_CONFLICT = "on_conflict"
    MERGE = "merge"


# ---------------------------------------------------------------------------
# Descriptor
# ---------------------------------------------------------------------------

_EXTRACT_PARTS: tuple[tuple[str, str], ...] = (
    ("year", "EXTRACT(YEAR FROM {expr})"),
    ("month", "EXTRACT(MONTH FROM {expr})"),
    ("week", "EXTRACT(WEEK FROM {expr})"),
    ("month_name", "TO_CHAR({expr}, 'FMMonth')"),
)

_INTERVAL_ADD: tuple[tuple[str, str], ...] = (
    ("day", "({expr} + ({n}) * INTERVAL '1 day')"),
    ("month", "({expr} + ({n}) * INTERVAL '1 month')"),
    ("year", "({expr} + ({n}) * INTERVAL '1 year')"),
)


class DialectDescriptor(BaseModel):
    """Immutable syntax rules for one database kind.

    Attributes:
        name: Registry key (e.g. ``'postgres'``).
        identifier_left: Opening identifier quote.
        identifier_right: Closing identifier quote.
        string_left: Opening string-literal quote.
        string_right: Closing string-literal quote.
        parameter_prefix: Character(s) that introduce a parameter marker.
        true_literal: SQL spelling of boolean true.
        false_literal: SQL spelling of boolean false.
        paging_style: How ``limit``/``offset`` are rendered.
        upsert_style: Which upsert idiom ``upsert`` renders.
        current_timestamp: Expression for the current date and time.
        auto_increment: Column attribute for generated keys.
        random_function: Expression returning a random value.
        ifnull_function: Two-argument null replacement function.
        like_wildcards: Characters with wildcard meaning inside LIKE patterns.
        like_escape: Escape character used for LIKE patterns.
        dual_table: Table required by ``SELECT`` without ``FROM``, if any.
        merge_terminator: Text appended to MERGE statements.
        current_date: Expression for today's date without a time part.
        utc_timestamp: Expression for the current UTC date and time.
        ceiling_function: Name of the round-up function.
        supports_full_join: Whether ``FULL OUTER JOIN`` is available.
        date_part_templates: ``(part, template)`` pairs for ``year``,
            ``month``, ``week`` and ``month_name``; ``{expr}`` is the date.
        date_add_templates: ``(unit, template)`` pairs for ``day``,
            ``month`` and ``year``; ``{expr}`` is the date, ``{n}`` the amount.
        date_diff_template: Whole days from ``{start}`` to ``{end}``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    identifier_left: str
    identifier_right: str
    string_left: str = "'"
    string_right: str = "'"
    parameter_prefix: str = Field(min_length=1)
    true_literal: str = "1"
    false_literal: str = "0"
    paging_style: PagingStyle = PagingStyle.LIMIT_OFFSET
    upsert_style: UpsertStyle = UpsertStyle.ON_CONFLICT
    current_timestamp: str = "CURRENT_TIMESTAMP"
    auto_increment: str = "AUTO_INCREMENT"
    random_function: str = "RANDOM()"
    ifnull_function: str = "COALESCE"
    like_wildcards: str = "%_"
    like_escape: str = Field(default="!", min_length=1, max_length=1)
    dual_table: str | None = None
    merge_terminator: str = ""
    current_date: str = "CURRENT_DATE"
    utc_timestamp: str = "CURRENT_TIMESTAMP"
    ceiling_function: str = "CEIL"
    supports_full_join: bool = True
    date_part_templates: tuple[tuple[str, str], ...] = _EXTRACT_PARTS
    date_add_templates: tuple[tuple[str, str], ...] = _INTERVAL_ADD
    date_diff_template: str = "(CAST({end} AS DATE) - CAST({start} AS DATE))"

    # ------------------------------------------------------------------
    # Quoting helpers
    # ------------------------------------------------------------------

    def quote_identifier(self, name: str) -> str:
        """Quote a single identifier, doubling any embedded closing quote."""
        escaped = name.replace(self.identifier_right, self.identifier_right * 2)
        return f"{self.identifier_left}{escaped}{self.identifier_right}"

    def quote_qualified(self, name: str) -> str:
        """Quote a possibly schema-qualified name (``dbo.users``) part by part."""
        return ".".join(self.quote_identifier(part) for part in name.split("."))

    def quote_string(self, value: str) -> str:
        """Render ``value`` as a string literal."""
        escaped = value.replace(self.string_right, self.string_right * 2)
        return f"{self.string_left}{escaped}{self.string_right}"

    def parameter(self, name: str) -> str:
        """Return the marker for a named parameter (``@name``, ``$name``, ...)."""
        return f"{self.parameter_prefix}{name}"

    def bool_literal(self, value: bool) -> str:
        return self.true_literal if value else self.false_literal

    # ------------------------------------------------------------------
    # LIKE helpers
    # ------------------------------------------------------------------

    def escape_like(self, value: str) -> str:
        """Escape the escape character and every wildcard in ``value``."""
        special = self.like_escape + self.like_wildcards
        return "".join(self.like_escape + ch if ch in special else ch for ch in value)

    def like_pattern(self, value: str, mode: str) -> str:
        """Wrap an escaped ``value`` for a contains / starts / ends match."""
        escaped = self.escape_like(value)
        if mode == "starts":
            return f"{escaped}%"
        if mode == "ends":
            return f"%{escaped}"
        return f"%{escaped}%"

    @property
    def like_escape_clause(self) -> str:
        return f"ESCAPE {self.quote_string(self.like_escape)}"

    # ------------------------------------------------------------------
    # Date helpers
    # ------------------------------------------------------------------

    def date_part(self, part: str, expr: str) -> str | None:
        """Extract ``part`` from a date expression, or ``None`` if unsupported."""
        template = dict(self.date_part_templates).get(part)
        return None if template is None else template.format(expr=expr)

    def date_add(self, unit: str, expr: str, amount: str) -> str | None:
        """Shift a date by ``amount`` units, or ``None`` if the unit is unsupported."""
        template = dict(self.date_add_templates).get(unit)
        return None if template is None else template.format(expr=expr, n=amount)

    def days_between(self, start: str, end: str) -> str:
        return self.date_diff_template.format(start=start, end=end)


# ---------------------------------------------------------------------------
# Built-in descriptors
# ---------------------------------------------------------------------------

MYSQL = DialectDescriptor(
    name="mysql",
    identifier_left="`",
    identifier_right="`",
    parameter_prefix="@",
    paging_style=PagingStyle.LIMIT_OFFSET,
    upsert_style=UpsertStyle.DUPLICATE_KEY_UPDATE,
    random_function="RAND()",
    ifnull_function="IFNULL",
    current_date="CURDATE()",
    utc_timestamp="UTC_TIMESTAMP()",
    supports_full_join=False,
    date_part_templates=(
        ("year", "YEAR({expr})"),
        ("month", "MONTH({expr})"),
        ("week", "WEEK({expr})"),
        ("month_name", "MONTHNAME({expr})"),
    ),
    date_add_templates=(
        ("day", "DATE_ADD({expr}, INTERVAL {n} DAY)"),
        ("month", "DATE_ADD({expr}, INTERVAL {n} MONTH)"),
        ("year", "DATE_ADD({expr}, INTERVAL {n} YEAR)"),
    ),
    date_diff_template="DATEDIFF({end}, {start})",
)

SQLSERVER = DialectDescriptor(
    name="sqlserver",
    identifier_left="[",
    identifier_right="]",
    parameter_prefix="@",
    paging_style=PagingStyle.TOP,
    upsert_style=UpsertStyle.MERGE,
    current_timestamp="GETDATE()",
    auto_increment="IDENTITY(1,1)",
    random_function="RAND()",
    ifnull_function="ISNULL",
    like_wildcards="%_[",
    merge_terminator=";",
    current_date="CAST(GETDATE() AS DATE)",
    utc_timestamp="GETUTCDATE()",
    ceiling_function="CEILING",
    date_part_templates=(
        ("year", "DATEPART(year, {expr})"),
        ("month", "DATEPART(month, {expr})"),
        ("week", "DATEPART(week, {expr})"),
        ("month_name", "DATENAME(month, {expr})"),
    ),
    date_add_templates=(
        ("day", "DATEADD(day, {n}, {expr})"),
        ("month", "DATEADD(month, {n}, {expr})"),
        ("year", "DATEADD(year, {n}, {expr})"),
    ),
    date_diff_template="DATEDIFF(day, {start}, {end})",
)

POSTGRES = DialectDescriptor(
    name="postgres",
    identifier_left='"',
    identifier_right='"',
    parameter_prefix="$",
    true_literal="true",
    false_literal="false",
    paging_style=PagingStyle.LIMIT_OFFSET,
    upsert_style=UpsertStyle.ON_CONFLICT,
    auto_increment="SERIAL",
    utc_timestamp="(NOW() AT TIME ZONE 'UTC')",
)

ORACLE = DialectDescriptor(
    name="oracle",
    identifier_left='"',
    identifier_right='"',
    parameter_prefix=":",
    paging_style=PagingStyle.OFFSET_FETCH,
    upsert_style=UpsertStyle.MERGE,
    current_timestamp="SYSTIMESTAMP",
    auto_increment="GENERATED BY DEFAULT AS IDENTITY",
    random_function="DBMS_RANDOM.VALUE",
    ifnull_function="NVL",
    dual_table="DUAL",
    current_date="TRUNC(SYSDATE)",
    utc_timestamp="SYS_EXTRACT_UTC(SYSTIMESTAMP)",
    date_part_templates=(
        ("year", "EXTRACT(YEAR FROM {expr})"),
        ("month", "EXTRACT(MONTH FROM {expr})"),
        ("week", "TO_NUMBER(TO_CHAR({expr}, 'IW'))"),
        ("month_name", "TO_CHAR({expr}, 'FMMonth')"),
    ),
    date_add_templates=(
        ("day", "({expr} + NUMTODSINTERVAL({n}, 'DAY'))"),
        ("month", "ADD_MONTHS({expr}, {n})"),
        ("year", "ADD_MONTHS({expr}, 12 * ({n}))"),
    ),
    date_diff_template="(TRUNC({end}) - TRUNC({start}))",
)

DB2 = DialectDescriptor(
    name="db2",
    identifier_left='"',
    identifier_right='"',
    parameter_prefix="?",
    paging_style=PagingStyle.OFFSET_FETCH,
    upsert_style=UpsertStyle.MERGE,
    current_timestamp="CURRENT TIMESTAMP",
    auto_increment="GENERATED ALWAYS AS IDENTITY",
    random_function="RAND()",
    dual_table="SYSIBM.SYSDUMMY1",
    current_date="CURRENT DATE",
    utc_timestamp="(CURRENT TIMESTAMP - CURRENT TIMEZONE)",
    date_part_templates=(
        ("year", "YEAR({expr})"),
        ("month", "MONTH({expr})"),
        ("week", "WEEK_ISO({expr})"),
        ("month_name", "MONTHNAME({expr})"),
    ),
    date_add_templates=(
        ("day", "({expr} + ({n}) DAYS)"),
        ("month", "({expr} + ({n}) MONTHS)"),
        ("year", "({expr} + ({n}) YEARS)"),
    ),
    date_diff_template="(DAYS({end}) - DAYS({start}))",
)

SQLITE = DialectDescriptor(
    name="sqlite",
    identifier_left='"',
    identifier_right='"',
    parameter_prefix=":",
    paging_style=PagingStyle.LIMIT_OFFSET,
    upsert_style=UpsertStyle.ON_CONFLICT,
    auto_increment="AUTOINCREMENT",
    ifnull_function="IFNULL",
    current_date="date('now')",
    utc_timestamp="datetime('now')",
    date_part_templates=(
        ("year", "CAST(strftime('%Y', {expr}) AS INTEGER)"),
        ("month", "CAST(strftime('%m', {expr}) AS INTEGER)"),
        ("week", "CAST(strftime('%W', {expr}) AS INTEGER)"),
    ),
    date_add_templates=(
        ("day", "datetime({expr}, ({n}) || ' days')"),
        ("month", "datetime({expr}, ({n}) || ' months')"),
        ("year", "datetime({expr}, ({n}) || ' years')"),
    ),
    date_diff_template="CAST(julianday({end}) - julianday({start}) AS INTEGER)",
)

BUILTIN_DIALECTS: tuple[DialectDescriptor, ...] = (MYSQL, SQLSERVER, POSTGRES, ORACLE, DB2, SQLITE)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class DialectRegistry(Mapping[str, DialectDescriptor]):
    """Read-only mapping of dialect names to descriptors.

    Registries never change after construction.  :meth:`with_dialect`
    returns a new registry, so a registry can be shared freely between
    threads and contexts.

    Example::

        registry = DialectRegistry.default().with_dialect(my_descriptor)
        ctx = PlaceholderContext.build("users", cols, "mine", registry=registry)
    """

    def __init__(self, dialects: Iterable[DialectDescriptor] = ()) -> None:
        self._dialects: Mapping[str, DialectDescriptor] = MappingProxyType(
            {d.name.lower(): d for d in dialects}
        )

    @classmethod
    def default(cls) -> DialectRegistry:
        """Return a registry holding the built-in dialects."""
        return _DEFAULT_REGISTRY

    def get(self, name: str) -> DialectDescriptor:  # type: ignore[override]
        """Look up a descriptor by name (case-insensitive).

        Raises:
            UnsupportedDialectError: If no descriptor is registered for ``name``.
        """
        descriptor = self._dialects.get(name.lower())
        if descriptor is None:
            raise UnsupportedDialectError(
                f"Unsupported dialect: '{name}'. Registered dialects: {self.names()}.",
                dialect=name,
                available=self.names(),
            )
        return descriptor

    def with_dialect(self, descriptor: DialectDescriptor) -> DialectRegistry:
        """Return a new registry with ``descriptor`` added or replaced."""
        merged = dict(self._dialects)
        merged[descriptor.name.lower()] = descriptor
        return DialectRegistry(merged.values())

    def names(self) -> list[str]:
        """Return the sorted list of registered dialect names."""
        return sorted(self._dialects)

    def __getitem__(self, name: str) -> DialectDescriptor:
        return self.get(name)

    def __iter__(self) -> Iterator[str]:
        return iter(self._dialects)

    def __len__(self) -> int:
        return len(self._dialects)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._dialects


_DEFAULT_REGISTRY = DialectRegistry(BUILTIN_DIALECTS)
