"""Placeholder option parsing.

The text after a placeholder name is split into a positional *subject*
and a set of ``--flag value`` options::

    {{orderby name, created_at desc --desc}}
    {{set --exclude id --inline version=version+1, updated_at=CURRENT_TIMESTAMP}}

A flag starts with ``--`` at a whitespace boundary outside quotes and its
value runs up to the next flag, so inline expressions may contain spaces.
Double-quoted values are unquoted; single quotes are SQL string literals
and are kept verbatim.

:func:`parse_options` only tokenizes.  Whether a flag is allowed, needs a
value or clashes with another flag is decided by the handler through
:class:`OptionSpec`.
"""
from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum

from mortarql.errors import UnsupportedOptionError

_FLAG_RE = re.compile(r"--([A-Za-z][\w-]*)(?=\s|$)")


class OptionKind(str, Enum):
    """How a flag's raw value is interpreted."""

    FLAG = "flag"  # no value
    VALUE = "value"  # one raw string
    INT = "int"  # non-negative integer
    LIST = "list"  # comma-separated values
    PAIRS = "pairs"  # comma-separated name=expression pairs


# ---------------------------------------------------------------------------
# Splitting helpers
# ---------------------------------------------------------------------------


def split_top_level(text: str, sep: str = ",") -> list[str]:
    """Split on ``sep`` outside parentheses and quotes; drop empty items.

    Example::

        split_top_level("a, COALESCE(b, 0), 'x,y'")
        # ['a', 'COALESCE(b, 0)', "'x,y'"]
    """
    items: list[str] = []
    depth = 0
    quote: str | None = None
    start = 0
    for i, ch in enumerate(text):
        if quote:
            if ch == quote:
                quote = None
        elif ch in "'\"":
            quote = ch
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth = max(depth - 1, 0)
        elif ch == sep and depth == 0:
            items.append(text[start:i])
            start = i + 1
    items.append(text[start:])
    return [item.strip() for item in items if item.strip()]


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] == '"':
        return value[1:-1]
    return value


def _split_flags(text: str) -> tuple[str, list[tuple[str, str]]]:
    """Return ``(leading_text, [(flag, raw_value), ...])``."""
    leading_end: int | None = None
    found: list[tuple[str, int, int]] = []  # (name, flag_start, value_start)
    quote: str | None = None
    i = 0
    while i < len(text):
        ch = text[i]
        if quote:
            if ch == quote:
                quote = None
        elif ch in "'\"":
            quote = ch
        elif ch == "-" and (i == 0 or text[i - 1].isspace()):
            m = _FLAG_RE.match(text, i)
            if m:
                if leading_end is None:
                    leading_end = i
                found.append((m.group(1), i, m.end()))
                i = m.end()
                continue
        i += 1

    if leading_end is None:
        return text.strip(), []

    flags: list[tuple[str, str]] = []
    for idx, (name, _, value_start) in enumerate(found):
        value_end = found[idx + 1][1] if idx + 1 < len(found) else len(text)
        flags.append((name, text[value_start:value_end].strip()))
    return text[:leading_end].strip(), flags


# ---------------------------------------------------------------------------
# Option bag
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OptionBag:
    """Immutable, tokenized placeholder options.

    Attributes:
        subject: Positional text before the first flag (may be empty).
        flags: ``(name, raw_value)`` pairs in source order; names are unique.
    """

    subject: str = ""
    flags: tuple[tuple[str, str], ...] = ()
    _index: Mapping[str, str] = field(default_factory=dict, compare=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_index", dict(self.flags))

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def has(self, name: str) -> bool:
        return name in self._index

    def names(self) -> list[str]:
        return [name for name, _ in self.flags]

    def get(self, name: str, default: str | None = None) -> str | None:
        """Raw value of ``name`` with surrounding double quotes removed."""
        raw = self._index.get(name)
        return default if raw is None else _unquote(raw)

    def get_int(self, name: str) -> int | None:
        raw = self.get(name)
        return None if raw is None else int(raw)

    def get_list(self, name: str) -> list[str]:
        raw = self._index.get(name)
        return [] if raw is None else [_unquote(v) for v in split_top_level(raw)]

    def get_pairs(self, name: str) -> list[tuple[str, str]]:
        """Parse ``a=expr, b=expr`` into ``[("a", "expr"), ("b", "expr")]``."""
        pairs: list[tuple[str, str]] = []
        for item in split_top_level(self._index.get(name) or ""):
            key, _, expr = item.partition("=")
            pairs.append((key.strip(), expr.strip()))
        return pairs

    @property
    def subjects(self) -> list[str]:
        """The subject split on top-level commas."""
        return split_top_level(self.subject)


def parse_options(placeholder: str, text: str) -> OptionBag:
    """Tokenize the option text of one placeholder.

    Args:
        placeholder: Placeholder name, for error messages.
        text: Everything after the name inside ``{{...}}``.

    Returns:
        The tokenized :class:`OptionBag`.

    Raises:
        UnsupportedOptionError: If a flag is given more than once.
    """
    subject, flags = _split_flags(text)
    seen: set[str] = set()
    for name, _ in flags:
        if name in seen:
            raise UnsupportedOptionError(
                f"Option '--{name}' given more than once for '{placeholder}'.",
                placeholder=placeholder,
                option=name,
            )
        seen.add(name)
    return OptionBag(subject=subject, flags=tuple(flags))


# ---------------------------------------------------------------------------
# Declarative validation
# ---------------------------------------------------------------------------


class Subject(str, Enum):
    """Whether a placeholder takes positional text."""

    NONE = "none"
    OPTIONAL = "optional"
    REQUIRED = "required"


@dataclass(frozen=True)
class OptionSpec:
    """What a handler accepts.

    Attributes:
        options: Allowed flag names and their kinds.
        subject: Whether positional text is forbidden, allowed or required.
        exclusive: Groups of flags of which at most one may be given.
        required: Groups of flags of which at least one must be given.
    """

    options: Mapping[str, OptionKind] = field(default_factory=dict)
    subject: Subject = Subject.NONE
    exclusive: tuple[frozenset[str], ...] = ()
    required: tuple[frozenset[str], ...] = ()

    def check(self, placeholder: str, bag: OptionBag) -> None:
        """Validate ``bag`` against this spec.

        Raises:
            UnsupportedOptionError: On the first violation found.
        """

        def fail(message: str, option: str | None = None) -> None:
            raise UnsupportedOptionError(message, placeholder=placeholder, option=option)

        if self.subject is Subject.NONE and bag.subject:
            fail(f"'{placeholder}' takes no positional arguments, got '{bag.subject}'.")
        if self.subject is Subject.REQUIRED and not bag.subjects:
            fail(f"'{placeholder}' requires a column argument.")

        for name, raw in bag.flags:
            kind = self.options.get(name)
            if kind is None:
                fail(f"'{placeholder}' does not support option '--{name}'.", name)
            elif kind is OptionKind.FLAG and raw:
                fail(f"Option '--{name}' of '{placeholder}' takes no value, got '{raw}'.", name)
            elif kind is not OptionKind.FLAG and not raw:
                fail(f"Option '--{name}' of '{placeholder}' requires a value.", name)
            elif kind is OptionKind.INT and not re.fullmatch(r"\d+", _unquote(raw)):
                fail(f"Option '--{name}' of '{placeholder}' must be a non-negative integer, got '{raw}'.", name)
            elif kind is OptionKind.PAIRS:
                for key, expr in bag.get_pairs(name):
                    if not key or not expr:
                        fail(f"Option '--{name}' of '{placeholder}' expects name=expression pairs.", name)

        for group in self.exclusive:
            given = sorted(n for n in group if bag.has(n))
            if len(given) > 1:
                fail(f"Options {', '.join('--' + n for n in given)} of '{placeholder}' are mutually exclusive.", given[0])
        for group in self.required:
            if not any(bag.has(n) for n in group):
                names = " or ".join("--" + n for n in sorted(group))
                fail(f"'{placeholder}' requires {names}.")
