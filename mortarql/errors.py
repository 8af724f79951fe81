"""Custom exception hierarchy for mortarQL.

All public errors inherit from MortarQLError so callers can catch the base
class for any mortarQL-specific failure.

Errors detected while preparing a template (``TemplateError`` and its
subclasses) carry the offending ``{{...}}`` span and its offset so the
generator that produced the template can point at the exact site.
"""
from __future__ import annotations

from typing import Any


class MortarQLError(Exception):
    """Base exception for all mortarQL errors."""


# ---------------------------------------------------------------------------
# Prepare-time errors
# ---------------------------------------------------------------------------


class TemplateError(MortarQLError):
    """Raised when a template cannot be prepared.

    Args:
        message: Human-readable description.
        code: Machine-readable error code (e.g. ``UNKNOWN_PLACEHOLDER``).
        details: Extra structured context.
        span: The raw ``{{...}}`` text that failed, when known.
        position: Offset of ``span`` inside the template text.
    """

    def __init__(
        self,
        message: str,
        code: str,
        details: dict[str, Any] | None = None,
        span: str | None = None,
        position: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details: dict[str, Any] = details or {}
        self.span = span
        self.position = position

    def locate(self, span: str, position: int) -> TemplateError:
        """Attach the template span unless one was already recorded."""
        if self.span is None:
            self.span = span
            self.position = position
        return self

    def __str__(self) -> str:
        if self.span is None:
            return self.message
        return f"{self.message} (in {self.span!r} at offset {self.position})"

    def to_error_response(self) -> dict[str, Any]:
        """Returns a structured error response for the calling generator."""
        return {
            "error": self.code,
            "message": self.message,
            "span": self.span,
            "position": self.position,
            "details": self.details,
        }


class TemplateSyntaxError(TemplateError):
    """Raised for malformed or unbalanced ``{{...}}`` spans."""

    def __init__(
        self, message: str, span: str | None = None, position: int | None = None
    ) -> None:
        super().__init__(message, code="TEMPLATE_SYNTAX", span=span, position=position)


class UnknownPlaceholderError(TemplateError):
    """Raised when a template names a placeholder no handler is registered for."""

    def __init__(self, name: str, available: list[str]) -> None:
        super().__init__(
            f"Unknown placeholder: '{name}'.",
            code="UNKNOWN_PLACEHOLDER",
            details={"placeholder": name, "available": available},
        )
        self.name = name


class UnsupportedOptionError(TemplateError):
    """Raised when a recognised placeholder is given options it cannot honour.

    Covers unknown flags, missing required flags, mutually exclusive flags
    given together and flag values that fail to parse.
    """

    def __init__(self, message: str, placeholder: str, option: str | None = None) -> None:
        super().__init__(
            message,
            code="UNSUPPORTED_OPTION",
            details={"placeholder": placeholder, "option": option},
        )
        self.placeholder = placeholder
        self.option = option


class UnknownColumnError(TemplateError):
    """Raised when a placeholder's subject column does not exist on the entity."""

    def __init__(self, column: str, table: str, available: list[str]) -> None:
        super().__init__(
            f"Column '{column}' does not exist on '{table}'.",
            code="UNKNOWN_COLUMN",
            details={"column": column, "table": table, "available": available},
        )
        self.column = column


# ---------------------------------------------------------------------------
# Dialect errors
# ---------------------------------------------------------------------------


class UnsupportedDialectError(MortarQLError):
    """Raised for unknown dialect names or constructs a dialect cannot express.

    Args:
        message: Human-readable description.
        dialect: The dialect name involved.
        available: Registered dialect names, when the lookup itself failed.
    """

    def __init__(
        self, message: str, dialect: str | None = None, available: list[str] | None = None
    ) -> None:
        super().__init__(message)
        self.dialect = dialect
        self.available = available or []


# ---------------------------------------------------------------------------
# Translation and render errors
# ---------------------------------------------------------------------------


class TranslationError(MortarQLError):
    """Raised when a predicate tree cannot be translated to SQL."""


class UnsupportedExpressionNodeError(TranslationError):
    """Raised for predicate shapes outside the supported node set.

    Args:
        node_kind: Name of the offending node kind (e.g. ``"call"``).
        detail: Optional extra description of the node.
    """

    def __init__(self, node_kind: str, detail: str | None = None) -> None:
        message = f"Unsupported expression node: '{node_kind}'"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message + ".")
        self.node_kind = node_kind


class RenderError(MortarQLError):
    """Raised when a prepared template cannot be rendered with the given values."""

    def __init__(self, message: str, placeholder: str | None = None) -> None:
        super().__init__(message)
        self.placeholder = placeholder


class MissingParameterError(RenderError):
    """Raised when a value that shapes the SQL text was not supplied at render."""

    def __init__(self, name: str, placeholder: str | None = None) -> None:
        where = f" for '{{{{{placeholder}}}}}'" if placeholder else ""
        super().__init__(f"Missing runtime value '{name}'{where}.", placeholder=placeholder)
        self.name = name
