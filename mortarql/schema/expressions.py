"""Typed predicate tree for WHERE / HAVING translation.

Predicates are a tagged union of pydantic models, one variant per node
kind, discriminated by the ``kind`` field.  The same shapes can therefore
be built in Python with the helper functions at the bottom of this module
or parsed from JSON supplied by a code generator::

    from mortarql.schema.expressions import and_, gte, lte, to_predicate

    pred = and_(gte("age", 25), lte("age", 34))

    same = to_predicate({
        "kind": "and",
        "items": [
            {"kind": "comparison", "op": "gte",
             "left": {"kind": "member", "name": "age"},
             "right": {"kind": "constant", "value": 25}},
            {"kind": "comparison", "op": "lte",
             "left": {"kind": "member", "name": "age"},
             "right": {"kind": "constant", "value": 34}},
        ],
    })
    assert pred == same

The ``call`` variant exists so that generators can hand over method calls
they saw in source code; the translator rejects it with
:class:`~mortarql.errors.UnsupportedExpressionNodeError`.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from mortarql.errors import TranslationError, UnsupportedExpressionNodeError

# ---------------------------------------------------------------------------
# Operator enums
# ---------------------------------------------------------------------------


class ComparisonOp(str, Enum):
    """Binary comparison operators."""

    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"


class AggregateFunc(str, Enum):
    COUNT = "count"
    SUM = "sum"
    AVG = "avg"
    MIN = "min"
    MAX = "max"


_NODE = ConfigDict(frozen=True, extra="forbid")


# ---------------------------------------------------------------------------
# Operand nodes
# ---------------------------------------------------------------------------


class MemberAccess(BaseModel):
    """A reference to an entity property: ``{"kind": "member", "name": "age"}``.

    Dotted names denote traversal through related entities and are not
    translatable.
    """

    model_config = _NODE

    kind: Literal["member"] = "member"
    name: str


class Constant(BaseModel):
    """A literal value, always bound as a parameter (``None`` becomes IS NULL)."""

    model_config = _NODE

    kind: Literal["constant"] = "constant"
    value: Any = None


class Aggregate(BaseModel):
    """An aggregate over a member, for HAVING predicates.

    ``member`` may be omitted for ``count`` to mean ``COUNT(*)``.
    """

    model_config = _NODE

    kind: Literal["aggregate"] = "aggregate"
    func: AggregateFunc
    member: MemberAccess | None = None
    distinct: bool = False


class MethodCall(BaseModel):
    """An arbitrary method call captured from source; never translatable."""

    model_config = _NODE

    kind: Literal["call"] = "call"
    method: str
    target: Operand | None = None
    args: tuple[Operand, ...] = ()


Operand = Annotated[
    Union[MemberAccess, Constant, Aggregate, MethodCall],
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# Predicate nodes
# ---------------------------------------------------------------------------


class Comparison(BaseModel):
    model_config = _NODE

    kind: Literal["comparison"] = "comparison"
    op: ComparisonOp
    left: Operand
    right: Operand


class And(BaseModel):
    model_config = _NODE

    kind: Literal["and"] = "and"
    items: tuple[Predicate, ...] = Field(min_length=1)


class Or(BaseModel):
    model_config = _NODE

    kind: Literal["or"] = "or"
    items: tuple[Predicate, ...] = Field(min_length=1)


class Not(BaseModel):
    model_config = _NODE

    kind: Literal["not"] = "not"
    operand: Predicate


class MemberBoolean(BaseModel):
    """A bare boolean property used as a condition (``user.is_active``)."""

    model_config = _NODE

    kind: Literal["member_bool"] = "member_bool"
    member: MemberAccess


class StringContains(BaseModel):
    """A substring / prefix / suffix test on a string property.

    The translator escapes LIKE wildcards in ``value`` and adds the ``%``
    wrapping itself; callers pass the plain text being searched for.
    """

    model_config = _NODE

    kind: Literal["contains"] = "contains"
    member: MemberAccess
    value: Operand
    mode: Literal["contains", "starts", "ends"] = "contains"


class InList(BaseModel):
    """Membership of a property in a literal collection."""

    model_config = _NODE

    kind: Literal["in"] = "in"
    member: MemberAccess
    values: tuple[Any, ...] = ()


Predicate = Annotated[
    Union[Comparison, And, Or, Not, MemberBoolean, StringContains, InList, MethodCall],
    Field(discriminator="kind"),
]

# Resolve forward references in recursive types.
MethodCall.model_rebuild()
Comparison.model_rebuild()
And.model_rebuild()
Or.model_rebuild()
Not.model_rebuild()
StringContains.model_rebuild()

#: Parse a raw dict into a typed predicate at any call site.
PREDICATE_ADAPTER: TypeAdapter[Predicate] = TypeAdapter(Predicate)

_PREDICATE_TYPES = (Comparison, And, Or, Not, MemberBoolean, StringContains, InList, MethodCall)

_NODE_KINDS = frozenset(
    {"member", "constant", "aggregate", "call", "comparison", "and", "or", "not", "member_bool", "contains", "in"}
)


def _unknown_kind(v: Any) -> str | None:
    """Return the first ``kind`` in a raw tree that names no node variant."""
    if isinstance(v, dict):
        kind = v.get("kind")
        if kind is not None and kind not in _NODE_KINDS:
            return str(kind)
        children = v.values()
    elif isinstance(v, (list, tuple)):
        children = v
    else:
        return None
    for child in children:
        found = _unknown_kind(child)
        if found is not None:
            return found
    return None


def to_predicate(v: Any) -> Any:
    """Convert a raw predicate dict to a typed node, or return a node as-is.

    Non-dict, non-node values are returned unchanged so the translator can
    report them with the right error.

    Raises:
        UnsupportedExpressionNodeError: If the dict (or a nested one) uses a
            ``kind`` outside the supported node set.
        TranslationError: If a known node kind is malformed.
    """
    if isinstance(v, _PREDICATE_TYPES) or not isinstance(v, dict):
        return v
    try:
        return PREDICATE_ADAPTER.validate_python(v)
    except ValidationError as exc:
        kind = _unknown_kind(v)
        if kind is not None:
            raise UnsupportedExpressionNodeError(kind) from exc
        raise TranslationError(f"Malformed predicate: {exc}") from exc


# ---------------------------------------------------------------------------
# Builder helpers
# ---------------------------------------------------------------------------


def member(name: str) -> MemberAccess:
    return MemberAccess(name=name)


def const(value: Any) -> Constant:
    return Constant(value=value)


def _left(v: Any) -> Any:
    return MemberAccess(name=v) if isinstance(v, str) else v


def _right(v: Any) -> Any:
    if isinstance(v, (MemberAccess, Constant, Aggregate, MethodCall)):
        return v
    return Constant(value=v)


def compare(left: Any, op: ComparisonOp | str, right: Any) -> Comparison:
    """Build a comparison; a string ``left`` is a member name, a plain ``right`` a constant."""
    return Comparison(op=ComparisonOp(op), left=_left(left), right=_right(right))


def eq(left: Any, right: Any) -> Comparison:
    return compare(left, ComparisonOp.EQ, right)


def ne(left: Any, right: Any) -> Comparison:
    return compare(left, ComparisonOp.NE, right)


def gt(left: Any, right: Any) -> Comparison:
    return compare(left, ComparisonOp.GT, right)


def gte(left: Any, right: Any) -> Comparison:
    return compare(left, ComparisonOp.GTE, right)


def lt(left: Any, right: Any) -> Comparison:
    return compare(left, ComparisonOp.LT, right)


def lte(left: Any, right: Any) -> Comparison:
    return compare(left, ComparisonOp.LTE, right)


def and_(*items: Any) -> And:
    return And(items=items)


def or_(*items: Any) -> Or:
    return Or(items=items)


def not_(operand: Any) -> Not:
    return Not(operand=operand)


def is_true(name: str) -> MemberBoolean:
    return MemberBoolean(member=MemberAccess(name=name))


def contains(name: str, value: Any) -> StringContains:
    return StringContains(member=MemberAccess(name=name), value=_right(value))


def starts_with(name: str, value: Any) -> StringContains:
    return StringContains(member=MemberAccess(name=name), value=_right(value), mode="starts")


def ends_with(name: str, value: Any) -> StringContains:
    return StringContains(member=MemberAccess(name=name), value=_right(value), mode="ends")


def in_(name: str, values: Any) -> InList:
    return InList(member=MemberAccess(name=name), values=tuple(values))


def aggregate(func: AggregateFunc | str, name: str | None = None, distinct: bool = False) -> Aggregate:
    return Aggregate(
        func=AggregateFunc(func),
        member=MemberAccess(name=name) if name else None,
        distinct=distinct,
    )
