"""Parameter-marker scanning for literal SQL text.

Markers written by hand in a template (``WHERE id = @id``) and markers
inside a bound sub-query's SQL must be found without being fooled by
string literals (``'user@example.com'``) or quoted identifiers.  The
scanner builds one regex per dialect that matches, in order of
preference, a string literal, a quoted identifier or a marker; only the
marker alternative is reported.
"""
from __future__ import annotations

import re
from collections.abc import Callable
from functools import lru_cache

from mortarql.schema.dialect import DialectDescriptor


@lru_cache(maxsize=64)
def _scanner(dialect: DialectDescriptor) -> re.Pattern[str]:
    sl, sr = re.escape(dialect.string_left), re.escape(dialect.string_right)
    il, ir = re.escape(dialect.identifier_left), re.escape(dialect.identifier_right)
    p = re.escape(dialect.parameter_prefix)
    return re.compile(
        rf"{sl}(?:[^{sr}]|{sr}{sr})*{sr}"
        rf"|{il}(?:[^{ir}]|{ir}{ir})*{ir}"
        rf"|(?<![\w{p}]){p}(?P<name>[A-Za-z_]\w*)"
    )


def find_markers(sql: str, dialect: DialectDescriptor) -> list[str]:
    """Return marker names in ``sql`` in order of first appearance."""
    names: list[str] = []
    for m in _scanner(dialect).finditer(sql):
        name = m.group("name")
        if name and name not in names:
            names.append(name)
    return names


def rewrite_markers(sql: str, dialect: DialectDescriptor, rename: Callable[[str], str]) -> str:
    """Replace every marker ``prefix+name`` with ``prefix+rename(name)``."""

    def _sub(m: re.Match[str]) -> str:
        name = m.group("name")
        if not name:
            return m.group(0)
        return dialect.parameter(rename(name))

    return _scanner(dialect).sub(_sub, sql)
