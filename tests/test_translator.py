"""Unit tests for PredicateTranslator and mortarql.translate."""

from __future__ import annotations

import pytest

import mortarql
from mortarql.compile.state import RenderState
from mortarql.compile.translator import PredicateTranslator
from mortarql.errors import TranslationError, UnknownColumnError, UnsupportedExpressionNodeError
from mortarql.schema.expressions import (
    MethodCall,
    aggregate,
    and_,
    compare,
    const,
    contains,
    ends_with,
    eq,
    gt,
    gte,
    in_,
    is_true,
    lt,
    lte,
    member,
    ne,
    not_,
    or_,
    starts_with,
    to_predicate,
)
from tests.fixtures import make_context

PG = make_context("postgres")
MSSQL = make_context("sqlserver")


def _tr(pred, ctx=PG):
    return mortarql.translate(pred, ctx)


class TestComparisons:
    def test_age_range_is_parenthesised_with_distinct_params(self):
        r = _tr(and_(gte("age", 25), lte("age", 34)))
        assert r.sql == '("age" >= $param_0 AND "age" <= $param_1)'
        assert r.parameters == {"param_0": 25, "param_1": 34}
        assert r.dialect == "postgres"

    @pytest.mark.parametrize(
        "builder, op",
        [(eq, "="), (ne, "<>"), (gt, ">"), (gte, ">="), (lt, "<"), (lte, "<=")],
    )
    def test_operator_mapping(self, builder, op):
        assert _tr(builder("Age", 1)).sql == f'"age" {op} $param_0'

    def test_constant_on_left_is_mirrored(self):
        r = _tr(compare(const(18), "lt", member("Age")))
        assert r.sql == '"age" > $param_0'
        assert r.parameters == {"param_0": 18}

    def test_null_comparisons(self):
        assert _tr(eq("Email", None)).sql == '"email" IS NULL'
        assert _tr(ne("Email", None)).sql == '"email" IS NOT NULL'
        assert _tr(eq("Email", None)).parameters == {}

    def test_null_with_ordering_operator_raises(self):
        with pytest.raises(TranslationError):
            _tr(gt("Age", None))

    def test_bool_constant_uses_dialect_literal(self):
        assert _tr(eq("IsActive", True)).sql == '"is_active" = true'
        assert _tr(eq("IsActive", False), MSSQL).sql == "[is_active] = 0"
        assert _tr(eq("IsActive", True)).parameters == {}

    def test_member_on_both_sides(self):
        assert _tr(gt("Version", member("Age"))).sql == '"version" > "age"'

    def test_aggregate_operand(self):
        r = _tr(gt(aggregate("count"), 5))
        assert r.sql == "COUNT(*) > $param_0"
        assert _tr(gte(aggregate("sum", "Age", distinct=True), 1)).sql == 'SUM(DISTINCT "age") >= $param_0'


class TestConnectives:
    def test_nested_or_and(self):
        r = _tr(or_(eq("Name", "a"), and_(gt("Age", 1), lt("Age", 5))))
        assert r.sql == '("name" = $param_0 OR ("age" > $param_1 AND "age" < $param_2))'
        assert list(r.parameters) == ["param_0", "param_1", "param_2"]

    def test_single_item_is_not_wrapped(self):
        assert _tr(and_(eq("Age", 1))).sql == '"age" = $param_0'

    def test_not_wraps_operand(self):
        assert _tr(not_(eq("Age", 1))).sql == 'NOT ("age" = $param_0)'

    def test_not_of_connective_is_not_double_wrapped(self):
        assert _tr(not_(and_(eq("Age", 1), eq("Name", "x")))).sql == 'NOT ("age" = $param_0 AND "name" = $param_1)'


class TestMemberBoolean:
    def test_bare_boolean(self):
        assert _tr(is_true("IsActive")).sql == '"is_active" = true'
        assert _tr(is_true("IsActive"), MSSQL).sql == "[is_active] = 1"

    def test_negated_boolean_uses_false_literal(self):
        assert _tr(not_(is_true("IsActive"))).sql == '"is_active" = false'
        assert _tr(not_(is_true("IsActive")), MSSQL).sql == "[is_active] = 0"


class TestStringContains:
    def test_contains_escapes_and_wraps(self):
        r = _tr(contains("Name", "50%"))
        assert r.sql == "\"name\" LIKE $param_0 ESCAPE '!'"
        assert r.parameters == {"param_0": "%50!%%"}

    def test_starts_and_ends(self):
        assert _tr(starts_with("Name", "Ab")).parameters == {"param_0": "Ab%"}
        assert _tr(ends_with("Name", "son")).parameters == {"param_0": "%son"}

    def test_sqlserver_bracket_is_escaped(self):
        assert _tr(contains("Name", "[a]"), MSSQL).parameters == {"param_0": "%![a]%"}

    def test_non_constant_pattern_raises(self):
        with pytest.raises(UnsupportedExpressionNodeError):
            _tr(contains("Name", member("Email")))

    def test_null_pattern_raises(self):
        with pytest.raises(TranslationError, match="non-null"):
            _tr(contains("Name", None))
        with pytest.raises(TranslationError):
            _tr(starts_with("Name", None))


class TestInList:
    def test_values_are_bound(self):
        r = _tr(in_("Id", [1, 2, 3]))
        assert r.sql == '"id" IN ($param_0, $param_1, $param_2)'
        assert r.parameters == {"param_0": 1, "param_1": 2, "param_2": 3}

    def test_empty_matches_nothing(self):
        r = _tr(in_("Id", []))
        assert r.sql == "1 = 0"
        assert r.parameters == {}


class TestUnsupportedNodes:
    def test_member_traversal(self):
        with pytest.raises(UnsupportedExpressionNodeError) as exc_info:
            _tr(eq("customer.name", "x"))
        assert exc_info.value.node_kind == "member traversal"

    def test_method_call_operand(self):
        with pytest.raises(UnsupportedExpressionNodeError) as exc_info:
            _tr(eq(MethodCall(method="ToUpper", target=member("Name")), "A"))
        assert exc_info.value.node_kind == "call"

    def test_method_call_predicate(self):
        with pytest.raises(UnsupportedExpressionNodeError) as exc_info:
            _tr(MethodCall(method="Any"))
        assert exc_info.value.node_kind == "call"

    def test_not_a_predicate(self):
        with pytest.raises(UnsupportedExpressionNodeError):
            _tr("age > 1")

    def test_unknown_member(self):
        with pytest.raises(UnknownColumnError):
            _tr(eq("Nickname", "x"))


class TestDictForm:
    def test_dict_predicate_matches_builder(self):
        raw = {
            "kind": "and",
            "items": [
                {
                    "kind": "comparison",
                    "op": "gte",
                    "left": {"kind": "member", "name": "age"},
                    "right": {"kind": "constant", "value": 25},
                },
                {"kind": "member_bool", "member": {"kind": "member", "name": "IsActive"}},
            ],
        }
        assert to_predicate(raw) == and_(gte("age", 25), is_true("IsActive"))
        assert _tr(raw).sql == '("age" >= $param_0 AND "is_active" = true)'

    def test_unknown_kind_names_the_node(self):
        with pytest.raises(UnsupportedExpressionNodeError) as exc_info:
            to_predicate({"kind": "xor", "items": []})
        assert exc_info.value.node_kind == "xor"

    def test_nested_unknown_kind(self):
        raw = {"kind": "not", "operand": {"kind": "navigation", "path": "orders.count"}}
        with pytest.raises(UnsupportedExpressionNodeError) as exc_info:
            _tr(raw)
        assert exc_info.value.node_kind == "navigation"

    def test_malformed_known_kind(self):
        with pytest.raises(TranslationError) as exc_info:
            to_predicate({"kind": "comparison", "op": "eq", "left": {"kind": "member", "name": "age"}})
        assert not isinstance(exc_info.value, UnsupportedExpressionNodeError)

    def test_unknown_kind_bound_to_where(self):
        with pytest.raises(UnsupportedExpressionNodeError) as exc_info:
            mortarql.prepare_and_render("{{where --param f}}", PG, {"f": {"kind": "xor", "items": []}})
        assert exc_info.value.node_kind == "xor"


class TestNaming:
    def test_minted_names_skip_reserved(self):
        state = RenderState(reserved=frozenset({"param_0", "param_2"}))
        fragment = PredicateTranslator(PG, state).translate(and_(eq("Age", 1), eq("Age", 2)))
        assert list(fragment.parameters) == ["param_1", "param_3"]

    def test_shared_state_keeps_names_unique(self):
        state = RenderState()
        tr = PredicateTranslator(PG, state)
        first = tr.translate(eq("Age", 1))
        second = tr.translate(eq("Age", 2))
        assert set(first.parameters).isdisjoint(second.parameters)

    def test_custom_parameter_base(self):
        state = RenderState(parameter_base="p")
        assert PredicateTranslator(PG, state).translate(eq("Age", 1)).sql == '"age" = $p_0'

    def test_tree_is_not_mutated(self):
        pred = and_(gte("age", 25), lte("age", 34))
        before = pred.model_dump()
        _tr(pred)
        _tr(pred)
        assert pred.model_dump() == before
