"""Placeholder handler registry.

Maps placeholder names to :class:`~mortarql.compile.handlers.base.PlaceholderHandler`
instances.  A registry is immutable: extending it returns a new registry,
so the default one can be shared by every compiler and thread.

Usage::

    from mortarql.compile.registry import HandlerRegistry

    class NotDeletedHandler(StaticHandler):
        name = "not_deleted"

        def build(self, ctx, options):
            return f"{ctx.dialect.quote_identifier('deleted_at')} IS NULL"

    registry = HandlerRegistry.default().with_handler(NotDeletedHandler())
    compiler = TemplateCompiler(handlers=registry)
"""

from __future__ import annotations

from collections.abc import Iterable
from types import MappingProxyType

from mortarql.compile.handlers import BUILTIN_HANDLERS, PlaceholderHandler
from mortarql.errors import UnknownPlaceholderError


class HandlerRegistry:
    """Read-only mapping of placeholder names to handlers.

    Names are case-sensitive, matching the template syntax.

    Example::

        registry = HandlerRegistry.default()
        handler = registry.require("columns")
    """

    def __init__(self, handlers: Iterable[PlaceholderHandler] = ()) -> None:
        self._handlers = MappingProxyType({h.name: h for h in handlers})

    @classmethod
    def default(cls) -> HandlerRegistry:
        """Return the registry of built-in handlers."""
        return _DEFAULT_REGISTRY

    def get(self, name: str) -> PlaceholderHandler | None:
        """Return the handler for ``name``, or ``None`` if not registered."""
        return self._handlers.get(name)

    def require(self, name: str) -> PlaceholderHandler:
        """Return the handler for ``name``.

        Raises:
            UnknownPlaceholderError: If no handler is registered for ``name``.
        """
        handler = self._handlers.get(name)
        if handler is None:
            raise UnknownPlaceholderError(name, self.names())
        return handler

    def with_handler(self, handler: PlaceholderHandler) -> HandlerRegistry:
        """Return a new registry with ``handler`` added or replacing its namesake."""
        if not handler.name:
            raise ValueError(f"{type(handler).__name__} has no placeholder name.")
        return HandlerRegistry([*self._handlers.values(), handler])

    def without(self, name: str) -> HandlerRegistry:
        """Return a new registry without the handler for ``name``."""
        return HandlerRegistry(h for n, h in self._handlers.items() if n != name)

    def names(self) -> list[str]:
        """Return the sorted list of registered placeholder names."""
        return sorted(self._handlers)

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)


_DEFAULT_REGISTRY = HandlerRegistry(BUILTIN_HANDLERS)
