"""Render results shared by the compiler, the handlers and the translator."""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Fragment:
    """A piece of SQL plus the parameters it introduces.

    Attributes:
        sql: SQL text, complete on its own (no dangling separators).
        parameters: Parameter name to value, in order of first appearance.
    """

    sql: str
    parameters: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def text(cls, sql: str) -> Fragment:
        """A fragment that introduces no parameters."""
        return cls(sql, {})


@dataclass
class RenderedSql:
    """The output of rendering a template or translating a predicate.

    Attributes:
        sql: The SQL string with dialect parameter markers.
        parameters: Parameter name to value, in order of appearance.
        dialect: The dialect name the SQL was rendered for.
    """

    sql: str
    parameters: dict[str, Any]
    dialect: str

    def merge_runtime_params(self, runtime_params: dict[str, Any]) -> dict[str, Any]:
        """Overlay caller values on top of the rendered parameters.

        Args:
            runtime_params: Values keyed by parameter name.  Keys that do not
                appear in :attr:`parameters` are ignored.

        Returns:
            A new dict ready to pass to the database driver.
        """
        merged = dict(self.parameters)
        for name, value in runtime_params.items():
            if name in merged:
                merged[name] = value
        return merged
