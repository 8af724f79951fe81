"""Per-render parameter state.

One :class:`RenderState` is created for every render call and threaded
through every handler and the predicate translator, so that minted
parameter names are unique across the whole statement, including
parameters merged in from bound sub-queries.  The state is never shared
between renders; the prepared template it reads from is never mutated.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from mortarql.compile.base import RenderedSql
from mortarql.compile.markers import find_markers, rewrite_markers
from mortarql.errors import MissingParameterError
from mortarql.schema.dialect import DialectDescriptor

_MISSING = object()


@dataclass
class RenderState:
    """Accumulates parameter names during a single render.

    Attributes:
        values: Runtime values supplied by the caller.
        reserved: Names the template introduces explicitly; minted names
            never take one of these.
        parameter_base: Prefix for minted names (``param`` -> ``param_0``).
    """

    values: Mapping[str, Any] = field(default_factory=dict)
    reserved: frozenset[str] = frozenset()
    parameter_base: str = "param"
    _used: set[str] = field(default_factory=set)
    _counter: int = 0

    # ------------------------------------------------------------------
    # Runtime values
    # ------------------------------------------------------------------

    def value(self, name: str, default: Any = None) -> Any:
        """Return the runtime value for ``name`` or ``default``."""
        return self.values.get(name, default)

    def require(self, name: str, placeholder: str) -> Any:
        """Return the runtime value for ``name``.

        Raises:
            MissingParameterError: If no value was supplied.
        """
        value = self.values.get(name, _MISSING)
        if value is _MISSING:
            raise MissingParameterError(name, placeholder)
        return value

    # ------------------------------------------------------------------
    # Naming
    # ------------------------------------------------------------------

    def _taken(self, name: str) -> bool:
        return name in self._used or name in self.reserved

    def mint(self) -> str:
        """Return a fresh ``{base}_{n}`` name, skipping every taken name."""
        while True:
            name = f"{self.parameter_base}_{self._counter}"
            self._counter += 1
            if not self._taken(name):
                self._used.add(name)
                return name

    def derive(self, base: str) -> str:
        """Return ``base`` if free, else ``base_1``, ``base_2``, ..."""
        name, n = base, 0
        while self._taken(name):
            n += 1
            name = f"{base}_{n}"
        self._used.add(name)
        return name

    # ------------------------------------------------------------------
    # Sub-query merging
    # ------------------------------------------------------------------

    def absorb(self, rendered: RenderedSql, dialect: DialectDescriptor) -> tuple[str, dict[str, Any]]:
        """Adopt a bound sub-query's SQL and parameters.

        Parameters whose names are already taken in this render are renamed
        and their markers rewritten, so the merged statement never binds two
        different values to one name.

        Returns:
            ``(sql, parameters)`` ready to splice into the outer statement.
        """
        renames: dict[str, str] = {}
        params: dict[str, Any] = {}
        for name in find_markers(rendered.sql, dialect):
            if name not in rendered.parameters:
                continue
            new_name = self.derive(name)
            renames[name] = new_name
            params[new_name] = rendered.parameters[name]
        sql = rewrite_markers(rendered.sql, dialect, lambda n: renames.get(n, n))
        return sql, params
