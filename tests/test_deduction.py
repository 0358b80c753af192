# tests/test_deduction.py
"""
Tests for auto deduction (variables and return types) and the usual
arithmetic conversions used to type return expressions.
"""

import pytest

from declinit.deduction import (
    deduce,
    deduce_return,
    expression_type,
    integer_promote,
    usual_arithmetic_conversions,
)
from declinit.diagnostics import DiagnosticKind
from declinit.fragments import (
    BinaryExpr,
    BraceList,
    CallableDeclaration,
    CallExpr,
    Decltype,
    Empty,
    Inferred,
    InferredBraced,
    Parameter,
    ParamRef,
    ParenCall,
    ReturnPath,
    SingleValue,
    ValueExpr,
)
from declinit.type_model import (
    BOOL,
    CHAR,
    DEFAULT_RANK_TABLE,
    DOUBLE,
    FLOAT,
    INT,
    LONG_LONG,
    SHORT,
    UINT,
    ULONG_LONG,
    UNKNOWN,
    USHORT,
    FloatingPoint,
    Integral,
    ListOf,
)


def lit(v):
    return ValueExpr.floating(v) if isinstance(v, float) else ValueExpr.integer(v)


class TestListDeduction:

    def test_single_element_is_still_a_list(self, collector):
        t = deduce(InferredBraced, BraceList([lit(4.5)]), reporter=collector)
        assert t == ListOf(DOUBLE)
        assert len(collector) == 0

    def test_uniform_elements(self):
        assert deduce(InferredBraced, BraceList([lit(1), lit(2), lit(3)])) == ListOf(INT)

    def test_copy_list_initialization(self):
        assert deduce(Inferred, BraceList([lit(1), lit(2)])) == ListOf(INT)

    def test_braced_single_value(self):
        assert deduce(InferredBraced, SingleValue(lit(1), braced=True)) == ListOf(INT)

    def test_mixed_elements(self, collector):
        t = deduce(InferredBraced, BraceList([lit(1), lit(2.0)]), reporter=collector)
        assert t is UNKNOWN
        assert collector.has_kind(DiagnosticKind.AMBIGUOUS_LIST)
        assert len(collector) == 1

    def test_empty_list(self, collector):
        assert deduce(InferredBraced, BraceList([]), reporter=collector) is UNKNOWN
        assert collector.has_kind(DiagnosticKind.AMBIGUOUS_LIST)


class TestValueDeduction:

    def test_assignment(self):
        assert deduce(Inferred, SingleValue(lit(4.5))) == DOUBLE

    def test_assignment_keeps_literal_type(self):
        assert deduce(Inferred, SingleValue(ValueExpr.floating("1.0f"))) == FLOAT

    def test_parenthesized_value(self):
        assert deduce(Inferred, ParenCall([lit(5)])) == INT

    def test_parenthesized_constructor_call(self, context, widget):
        init = ParenCall([ParenCall([lit(3)], "Widget")])
        assert deduce(Inferred, init, context) == widget

    def test_copy_initialization_from_temporary(self, context, widget):
        assert deduce(Inferred, ParenCall([], "Widget"), context) == widget

    def test_free_function_result(self, context, widget):
        init = ParenCall([ParenCall([], "make_widget")])
        assert deduce(Inferred, init, context) == widget

    def test_function_declaration_is_not_a_value(self, collector):
        assert deduce(Inferred, ParenCall([]), reporter=collector) is UNKNOWN
        assert collector.has_kind(DiagnosticKind.NOT_A_VALUE)

    def test_several_expressions(self, collector):
        assert deduce(Inferred, ParenCall([lit(1), lit(2)]), reporter=collector) is UNKNOWN
        assert collector.has_kind(DiagnosticKind.NOT_A_VALUE)

    def test_missing_initializer(self, collector):
        assert deduce(Inferred, Empty(), reporter=collector) is UNKNOWN
        assert collector.has_kind(DiagnosticKind.MISSING_INITIALIZER)

    def test_exactly_one_diagnostic_per_failure(self, collector):
        deduce(Inferred, Empty(), reporter=collector)
        deduce(Inferred, ParenCall([]), reporter=collector)
        assert len(collector) == 2


class TestArithmeticConversions:

    @pytest.mark.parametrize("a, b, expected", [
        (INT, DOUBLE, DOUBLE),
        (FLOAT, DOUBLE, DOUBLE),
        (FLOAT, INT, FLOAT),
        (CHAR, CHAR, INT),
        (SHORT, USHORT, INT),
        (UINT, INT, UINT),
        (LONG_LONG, UINT, LONG_LONG),
        (ULONG_LONG, LONG_LONG, ULONG_LONG),
        (INT, LONG_LONG, LONG_LONG),
    ])
    def test_common_type(self, a, b, expected):
        assert usual_arithmetic_conversions(a, b, DEFAULT_RANK_TABLE) == expected
        assert usual_arithmetic_conversions(b, a, DEFAULT_RANK_TABLE) == expected

    def test_promotion(self):
        assert integer_promote(BOOL, DEFAULT_RANK_TABLE) == INT
        assert integer_promote(UINT, DEFAULT_RANK_TABLE) == UINT

    def test_non_scalar_operand(self, widget):
        assert usual_arithmetic_conversions(widget, INT, DEFAULT_RANK_TABLE) is UNKNOWN

    def test_operand_missing_from_rank_table(self):
        int24 = Integral(24, True)
        assert usual_arithmetic_conversions(int24, INT, DEFAULT_RANK_TABLE) is UNKNOWN
        assert usual_arithmetic_conversions(DOUBLE, FloatingPoint(16), DEFAULT_RANK_TABLE) is UNKNOWN

    def test_comparison_is_bool(self):
        assert expression_type(BinaryExpr("<", lit(1), lit(2.0))) == BOOL


def callable_(name="f", params=(), trailing=None, returns=(), has_body=None):
    paths = tuple(ReturnPath(e) for e in returns)
    return CallableDeclaration(
        name=name,
        parameters=tuple(Parameter(n, t) for n, t in params),
        trailing=trailing,
        return_paths=paths,
        has_body=bool(paths) if has_body is None else has_body,
    )


class TestReturnDeduction:

    def test_decltype_against_parameters(self, collector):
        f = callable_(params=[("a", INT)],
                      trailing=Decltype(BinaryExpr("+", ParamRef("a"), lit(1))))
        assert deduce_return(f, reporter=collector) == INT
        assert len(collector) == 0

    def test_decltype_mixed_operands(self):
        f = callable_(params=[("a", INT), ("b", DOUBLE)],
                      trailing=Decltype(BinaryExpr("*", ParamRef("a"), ParamRef("b"))))
        assert deduce_return(f) == DOUBLE

    def test_decltype_unknown_name(self, collector):
        f = callable_(params=[("a", INT)], trailing=Decltype(ParamRef("b")))
        assert deduce_return(f, reporter=collector) is UNKNOWN
        assert collector.has_kind(DiagnosticKind.NO_DEDUCIBLE_RETURN)

    def test_trailing_type_wins_over_paths(self, collector):
        f = callable_(trailing=DOUBLE, returns=[lit(1), lit(2.0)])
        assert deduce_return(f, reporter=collector) == DOUBLE
        assert len(collector) == 0

    def test_trailing_type_allows_recursion(self):
        f = callable_(params=[("n", INT)], trailing=INT,
                      returns=[CallExpr("f", (ParamRef("n"),))])
        assert deduce_return(f) == INT

    def test_single_return_path(self):
        f = callable_(params=[("a", INT)],
                      returns=[BinaryExpr("*", ParamRef("a"), lit(2))])
        assert deduce_return(f) == INT

    def test_return_of_free_function(self, context, widget):
        f = callable_(returns=[CallExpr("make_widget")])
        assert deduce_return(f, context) == widget

    def test_declaration_without_body(self, collector):
        f = callable_(params=[("a", INT)])
        assert deduce_return(f, reporter=collector) is UNKNOWN
        assert collector.has_kind(DiagnosticKind.NO_DEDUCIBLE_RETURN)

    def test_body_without_return(self, collector):
        f = callable_(has_body=True)
        assert deduce_return(f, reporter=collector) is UNKNOWN
        assert "0 return paths" in collector.diagnostics[0].message

    def test_several_return_paths(self, collector):
        f = callable_(returns=[lit(1), lit(2)])
        assert deduce_return(f, reporter=collector) is UNKNOWN
        assert collector.has_kind(DiagnosticKind.NO_DEDUCIBLE_RETURN)

    def test_recursive_return_path(self, collector):
        f = callable_(params=[("n", INT)],
                      returns=[BinaryExpr("*", ParamRef("n"), CallExpr("f", (ParamRef("n"),)))])
        assert deduce_return(f, reporter=collector) is UNKNOWN
        assert len(collector) == 1
