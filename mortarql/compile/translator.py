"""Predicate tree to SQL translation.

:class:`PredicateTranslator` is a pure recursive walk over the tagged
union in :mod:`mortarql.schema.expressions`.  It resolves member names
through the placeholder context, binds every literal as a freshly minted
parameter and never touches the tree it is given.

Output conventions:

* every AND / OR with two or more operands is parenthesised, so nested
  connectives never depend on operator precedence;
* ``NOT`` wraps its operand in parentheses, except a bare boolean member,
  which becomes ``col = <false literal>``;
* ``col = NULL`` / ``col <> NULL`` become ``IS NULL`` / ``IS NOT NULL``;
* a bool constant compared with a member is written as the dialect literal.
"""
from __future__ import annotations

from typing import Any

from mortarql.compile.base import Fragment
from mortarql.compile.state import RenderState
from mortarql.errors import TranslationError, UnsupportedExpressionNodeError
from mortarql.schema.context import PlaceholderContext
from mortarql.schema.expressions import (
    Aggregate,
    And,
    Comparison,
    ComparisonOp,
    Constant,
    InList,
    MemberAccess,
    MemberBoolean,
    MethodCall,
    Not,
    Or,
    StringContains,
    to_predicate,
)


class PredicateTranslator:
    """Compiles predicate trees to SQL boolean fragments.

    Args:
        ctx: Placeholder context (dialect + column table).
        state: Per-render parameter accumulator; minted names are unique
            across everything else rendered with the same state.
    """

    _CMP: dict[ComparisonOp, str] = {
        ComparisonOp.EQ: "=",
        ComparisonOp.NE: "<>",
        ComparisonOp.GT: ">",
        ComparisonOp.GTE: ">=",
        ComparisonOp.LT: "<",
        ComparisonOp.LTE: "<=",
    }

    def __init__(self, ctx: PlaceholderContext, state: RenderState) -> None:
        self._ctx = ctx
        self._state = state
        self._params: dict[str, Any] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def translate(self, node: Any) -> Fragment:
        """Translate a predicate node (or its dict form) to a fragment.

        Raises:
            UnsupportedExpressionNodeError: For node kinds outside the
                supported set.
            UnknownColumnError: If a member does not resolve to a column.
        """
        self._params = {}
        sql = self._predicate(to_predicate(node))
        return Fragment(sql, dict(self._params))

    # ------------------------------------------------------------------
    # Predicates
    # ------------------------------------------------------------------

    def _predicate(self, node: Any) -> str:
        if isinstance(node, Comparison):
            return self._comparison(node)
        if isinstance(node, (And, Or)):
            return self._connective(node)
        if isinstance(node, Not):
            return self._negation(node)
        if isinstance(node, MemberBoolean):
            return f"{self._member(node.member)} = {self._ctx.dialect.true_literal}"
        if isinstance(node, StringContains):
            return self._contains(node)
        if isinstance(node, InList):
            return self._in_list(node)
        if isinstance(node, MethodCall):
            raise UnsupportedExpressionNodeError("call", f"method '{node.method}'")
        raise UnsupportedExpressionNodeError(
            getattr(node, "kind", type(node).__name__), "not a predicate"
        )

    def _connective(self, node: And | Or) -> str:
        keyword = " AND " if isinstance(node, And) else " OR "
        parts = [self._predicate(item) for item in node.items]
        if len(parts) == 1:
            return parts[0]
        return "(" + keyword.join(parts) + ")"

    def _negation(self, node: Not) -> str:
        inner = node.operand
        if isinstance(inner, MemberBoolean):
            return f"{self._member(inner.member)} = {self._ctx.dialect.false_literal}"
        sql = self._predicate(inner)
        if sql.startswith("(") and isinstance(inner, (And, Or)):
            return f"NOT {sql}"
        return f"NOT ({sql})"

    def _comparison(self, node: Comparison) -> str:
        left, right, op = node.left, node.right, node.op
        # Normalise "NULL = col" to "col = NULL".
        if isinstance(left, Constant) and not isinstance(right, Constant):
            left, right = right, left
            op = _MIRRORED[op]

        if isinstance(right, Constant) and right.value is None:
            if op is ComparisonOp.EQ:
                return f"{self._operand(left)} IS NULL"
            if op is ComparisonOp.NE:
                return f"{self._operand(left)} IS NOT NULL"
            raise TranslationError(f"NULL can only be compared with eq/ne, not '{op.value}'.")

        if (
            isinstance(right, Constant)
            and isinstance(right.value, bool)
            and isinstance(left, MemberAccess)
            and op in (ComparisonOp.EQ, ComparisonOp.NE)
        ):
            return f"{self._member(left)} {self._CMP[op]} {self._ctx.dialect.bool_literal(right.value)}"

        return f"{self._operand(left)} {self._CMP[op]} {self._operand(right)}"

    def _contains(self, node: StringContains) -> str:
        if not isinstance(node.value, Constant):
            raise UnsupportedExpressionNodeError(node.value.kind, "LIKE pattern must be a constant")
        if node.value.value is None:
            raise TranslationError(f"'{node.mode}' on '{node.member.name}' needs a non-null value.")
        dialect = self._ctx.dialect
        pattern = dialect.like_pattern(str(node.value.value), node.mode)
        return f"{self._member(node.member)} LIKE {self._bind(pattern)} {dialect.like_escape_clause}"

    def _in_list(self, node: InList) -> str:
        if not node.values:
            return "1 = 0"
        markers = ", ".join(self._bind(v) for v in node.values)
        return f"{self._member(node.member)} IN ({markers})"

    # ------------------------------------------------------------------
    # Operands
    # ------------------------------------------------------------------

    def _operand(self, node: Any) -> str:
        if isinstance(node, MemberAccess):
            return self._member(node)
        if isinstance(node, Constant):
            return self._bind(node.value)
        if isinstance(node, Aggregate):
            return self._aggregate(node)
        if isinstance(node, MethodCall):
            raise UnsupportedExpressionNodeError("call", f"method '{node.method}'")
        raise UnsupportedExpressionNodeError(
            getattr(node, "kind", type(node).__name__), "not an operand"
        )

    def _member(self, node: MemberAccess) -> str:
        if "." in node.name:
            raise UnsupportedExpressionNodeError("member traversal", f"'{node.name}'")
        col = self._ctx.require_column(node.name)
        return self._ctx.quote(col)

    def _aggregate(self, node: Aggregate) -> str:
        func = node.func.value.upper()
        if node.member is None:
            if node.distinct or func != "COUNT":
                raise TranslationError(f"{func} requires a member.")
            return "COUNT(*)"
        distinct = "DISTINCT " if node.distinct else ""
        return f"{func}({distinct}{self._member(node.member)})"

    def _bind(self, value: Any) -> str:
        name = self._state.mint()
        self._params[name] = value
        return self._ctx.marker(name)


_MIRRORED: dict[ComparisonOp, ComparisonOp] = {
    ComparisonOp.EQ: ComparisonOp.EQ,
    ComparisonOp.NE: ComparisonOp.NE,
    ComparisonOp.GT: ComparisonOp.LT,
    ComparisonOp.GTE: ComparisonOp.LTE,
    ComparisonOp.LT: ComparisonOp.GT,
    ComparisonOp.LTE: ComparisonOp.GTE,
}
