# tests/test_analyzer.py
"""
End-to-end tests of the classify → deduce → check pipeline.
"""

import pytest

from declinit.analyzer import Analyzer, Judgment, analyze, analyze_callable, analyze_many
from declinit.config import AnalyzerConfig
from declinit.conversions import ConversionKind
from declinit.diagnostics import DiagnosticKind, DiagnosticSeverity
from declinit.disambiguator import Role
from declinit.fragments import (
    BinaryExpr,
    BraceList,
    CallableDeclaration,
    DeclarationFragment,
    Decltype,
    Empty,
    Explicit,
    Inferred,
    InferredBraced,
    Parameter,
    ParamRef,
    ParenCall,
    SingleValue,
    TypeName,
    ValueExpr,
)
from declinit.type_model import CHAR, DOUBLE, FLOAT, INT, Aggregate, Integral, ListOf


def lit(v):
    return ValueExpr.floating(v) if isinstance(v, float) else ValueExpr.integer(v)


def var(name, t):
    return ValueExpr.variable(name, t)


class TestEndToEnd:

    def test_vexing_parse(self):
        frag = DeclarationFragment(
            "objectB", Explicit(Aggregate("ExampleClass")), ParenCall([ParenCall([])]))
        j = analyze(frag)
        assert j.role is Role.FUNCTION_DECLARATION
        assert j.deduced_type is None
        assert DiagnosticKind.POTENTIAL_VEXING_PARSE in j.kinds()
        assert not j.has_errors

    def test_narrowing_literal(self):
        frag = DeclarationFragment("aChar", Explicit(Integral(8, True)), BraceList([lit(512)]))
        j = analyze(frag)
        assert j.role is Role.VARIABLE_DEFINITION
        assert j.deduced_type == CHAR
        assert len(j.diagnostics) == 1
        d = j.diagnostics[0]
        assert d.kind is DiagnosticKind.NARROWING_CONVERSION
        assert d.target == Integral(8, True)
        assert d.source == Integral(32, True)
        assert d.value == 512
        assert d.identifier == "aChar"
        assert j.error_count == 1

    def test_repeated_analysis_is_identical(self, context, widget):
        frags = [
            DeclarationFragment("w", Explicit(widget), ParenCall([ParenCall([], "Widget")])),
            DeclarationFragment("c", Explicit(CHAR), BraceList([lit(512)])),
            DeclarationFragment("l", InferredBraced, BraceList([lit(1), lit(2.0)])),
        ]
        analyzer = Analyzer(context)
        for frag in frags:
            assert analyzer.analyze(frag) == analyzer.analyze(frag)


class TestScalarTargets:

    def test_fitting_literal(self):
        j = analyze(DeclarationFragment("c", Explicit(CHAR), BraceList([lit(65)])))
        assert j.diagnostics == ()
        assert j.conversions[0].constant_exempt

    def test_floating_into_integral(self):
        j = analyze(DeclarationFragment("i", Explicit(INT), BraceList([lit(2.0)])))
        assert j.kinds() == (DiagnosticKind.NARROWING_CONVERSION,)

    def test_non_constant_double_into_float(self):
        j = analyze(DeclarationFragment("f", Explicit(FLOAT), BraceList([var("d", DOUBLE)])))
        assert j.kinds() == (DiagnosticKind.NARROWING_CONVERSION,)

    def test_width_missing_from_rank_table(self):
        j = analyze(DeclarationFragment("x", Explicit(Integral(24, True)), BraceList((lit(5),))))
        assert j.kinds() == (DiagnosticKind.INCOMPATIBLE_INITIALIZER,)
        assert j.conversions[0].kind is ConversionKind.INCOMPATIBLE
        assert j.has_errors

    def test_braced_single_value(self):
        j = analyze(DeclarationFragment("c", Explicit(CHAR), SingleValue(var("i", INT), braced=True)))
        assert j.kinds() == (DiagnosticKind.NARROWING_CONVERSION,)

    def test_explicit_conversion(self):
        cast = ValueExpr.explicitly_converted(var("i", INT), CHAR)
        j = analyze(DeclarationFragment("c", Explicit(CHAR), BraceList([cast])))
        assert j.diagnostics == ()
        assert j.conversions[0].kind is ConversionKind.EXPLICITLY_CONVERTED

    def test_narrowing_as_warning(self, lenient_analyzer):
        j = lenient_analyzer.analyze(DeclarationFragment("c", Explicit(CHAR), BraceList([lit(512)])))
        assert j.diagnostics[0].severity is DiagnosticSeverity.WARNING
        assert not j.has_errors

    def test_implicit_narrowing_outside_braces(self):
        j = analyze(DeclarationFragment("c", Explicit(CHAR), SingleValue(lit(512))))
        assert j.kinds() == (DiagnosticKind.IMPLICIT_NARROWING,)
        assert not j.has_errors
        assert j.conversions[0].permitted

    def test_implicit_narrowing_in_parentheses(self):
        j = analyze(DeclarationFragment("c", Explicit(CHAR), ParenCall([var("i", INT)])))
        assert j.kinds() == (DiagnosticKind.IMPLICIT_NARROWING,)

    def test_implicit_narrowing_can_be_disabled(self):
        config = AnalyzerConfig(implicit_narrowing_warnings=False)
        j = analyze(DeclarationFragment("c", Explicit(CHAR), SingleValue(lit(512))), config=config)
        assert j.diagnostics == ()
        assert j.conversions[0].kind is ConversionKind.NARROWING

    def test_excess_elements(self):
        j = analyze(DeclarationFragment("i", Explicit(INT), BraceList([lit(1), lit(2)])))
        assert j.kinds() == (DiagnosticKind.EXCESS_ELEMENTS,)
        assert j.conversions == ()

    def test_empty_braces(self):
        j = analyze(DeclarationFragment("i", Explicit(INT), BraceList([])))
        assert j.diagnostics == () and j.conversions == ()

    def test_no_initializer(self):
        j = analyze(DeclarationFragment("i", Explicit(INT)))
        assert j.role is Role.VARIABLE_DEFINITION
        assert j.diagnostics == ()

    def test_functional_cast_argument(self):
        cast = ParenCall([lit(300)], "char")
        j = analyze(DeclarationFragment("c", Explicit(CHAR), ParenCall([cast])))
        assert j.diagnostics == ()
        assert j.conversions[0].kind is ConversionKind.EXPLICITLY_CONVERTED

    def test_type_name_among_values(self):
        frag = DeclarationFragment("i", Explicit(INT), ParenCall([lit(1), TypeName("int")]))
        j = analyze(frag)
        assert j.role is Role.VARIABLE_DEFINITION
        assert DiagnosticKind.INCOMPATIBLE_INITIALIZER in j.kinds()

    def test_aggregate_into_scalar(self, widget):
        j = analyze(DeclarationFragment("i", Explicit(INT), SingleValue(var("w", widget))))
        assert j.kinds() == (DiagnosticKind.INCOMPATIBLE_INITIALIZER,)

    def test_function_declaration_skips_checks(self):
        j = analyze(DeclarationFragment("i", Explicit(INT), ParenCall([TypeName("double")])))
        assert j.role is Role.FUNCTION_DECLARATION
        assert j.conversions == ()
        assert j.diagnostics == ()


class TestListTargets:

    def test_each_element_checked(self):
        frag = DeclarationFragment("l", Explicit(ListOf(INT)), BraceList([lit(1), lit(2.5)]))
        j = analyze(frag)
        assert [c.kind for c in j.conversions] == [ConversionKind.EXACT, ConversionKind.NARROWING]
        assert j.kinds() == (DiagnosticKind.NARROWING_CONVERSION,)


class TestAggregateTargets:

    def test_constructor_by_arity(self, analyzer, widget):
        j = analyzer.analyze(DeclarationFragment("w", Explicit(widget), BraceList([lit(1), lit(2.5)])))
        assert j.diagnostics == ()
        assert [c.target for c in j.conversions] == [INT, DOUBLE]

    def test_narrowing_constructor_argument(self, analyzer, widget):
        j = analyzer.analyze(DeclarationFragment("w", Explicit(widget), BraceList([lit(1.5)])))
        assert j.kinds() == (DiagnosticKind.NARROWING_CONVERSION,)

    def test_parenthesized_constructor_argument(self, analyzer, widget):
        j = analyzer.analyze(DeclarationFragment("w", Explicit(widget), ParenCall([lit(1.5)])))
        assert j.kinds() == (DiagnosticKind.IMPLICIT_NARROWING,)

    def test_no_matching_constructor(self, analyzer, widget):
        frag = DeclarationFragment("w", Explicit(widget), BraceList([lit(1), lit(2), lit(3)]))
        j = analyzer.analyze(frag)
        assert j.kinds() == (DiagnosticKind.NO_MATCHING_CONSTRUCTOR,)

    def test_default_construction(self, analyzer, widget):
        assert analyzer.analyze(DeclarationFragment("w", Explicit(widget))).diagnostics == ()

    def test_missing_default_constructor(self, analyzer, no_default):
        j = analyzer.analyze(DeclarationFragment("n", Explicit(no_default), Empty()))
        assert j.kinds() == (DiagnosticKind.NO_MATCHING_CONSTRUCTOR,)

    def test_copy_from_same_aggregate(self, analyzer, widget):
        j = analyzer.analyze(DeclarationFragment("w", Explicit(widget), SingleValue(var("v", widget))))
        assert j.diagnostics == ()
        assert j.conversions[0].kind is ConversionKind.EXACT

    def test_copy_initialization_from_temporary(self, analyzer, widget):
        frag = DeclarationFragment("w", Explicit(widget), ParenCall([lit(3)], "Widget"))
        j = analyzer.analyze(frag)
        assert j.role is Role.VARIABLE_DEFINITION
        assert j.diagnostics == ()
        assert [c.target for c in j.conversions] == [INT, widget]

    def test_shell_aggregate_resolved_from_context(self, analyzer):
        frag = DeclarationFragment("w", Explicit(Aggregate("Widget")), BraceList([lit(1)]))
        assert analyzer.analyze(frag).diagnostics == ()


class TestInferredTargets:

    def test_list_deduction(self):
        j = analyze(DeclarationFragment("l", InferredBraced, BraceList([lit(1), lit(2)])))
        assert j.deduced_type == ListOf(INT)
        assert len(j.conversions) == 2
        assert j.diagnostics == ()

    def test_ambiguous_list(self):
        j = analyze(DeclarationFragment("l", InferredBraced, BraceList([lit(1), lit(2.0)])))
        assert j.deduced_type is None
        assert j.kinds() == (DiagnosticKind.AMBIGUOUS_LIST,)
        assert j.conversions == ()

    def test_assignment(self):
        j = analyze(DeclarationFragment("x", Inferred, SingleValue(lit(4.5))))
        assert j.deduced_type == DOUBLE
        assert j.diagnostics == ()

    def test_function_declaration_is_not_a_value(self):
        j = analyze(DeclarationFragment("f", Inferred, ParenCall([])))
        assert j.role is Role.FUNCTION_DECLARATION
        assert j.deduced_type is None
        assert j.kinds() == (DiagnosticKind.NOT_A_VALUE,)

    def test_missing_initializer(self):
        j = analyze(DeclarationFragment("x", Inferred))
        assert j.kinds() == (DiagnosticKind.MISSING_INITIALIZER,)

    def test_constructed_value(self, analyzer, widget):
        frag = DeclarationFragment("v", Inferred, ParenCall([ParenCall([lit(3)], "Widget")]))
        j = analyzer.analyze(frag)
        assert j.deduced_type == widget
        assert j.diagnostics == ()


class TestCallables:

    def test_return_type(self):
        f = CallableDeclaration(
            "f", (Parameter("a", INT),),
            trailing=Decltype(BinaryExpr("+", ParamRef("a"), lit(1))))
        j = analyze_callable(f)
        assert j.role is Role.FUNCTION_DECLARATION
        assert j.return_type == INT
        assert j.to_dict()["return_type"] == "int"

    def test_undeducible_return(self):
        j = analyze_callable(CallableDeclaration("g", (Parameter("a", INT),)))
        assert j.return_type is None
        assert j.kinds() == (DiagnosticKind.NO_DEDUCIBLE_RETURN,)


class TestAnalyzeMany:

    @pytest.fixture
    def fragments(self):
        return [
            DeclarationFragment(f"x{i}", Explicit(CHAR), BraceList([lit(i * 20)]))
            for i in range(40)
        ]

    def test_order_preserved(self, fragments):
        judgments = analyze_many(fragments, max_workers=4)
        assert [j.identifier for j in judgments] == [f.identifier for f in fragments]

    def test_threaded_matches_serial(self, fragments):
        assert analyze_many(fragments, max_workers=4) == analyze_many(fragments)

    def test_workers_from_config(self, fragments):
        analyzer = Analyzer(config=AnalyzerConfig(max_workers=3))
        assert analyzer.analyze_many(fragments) == analyze_many(fragments)

    def test_mixed_items(self):
        items = [
            DeclarationFragment("x", Inferred, SingleValue(lit(1))),
            CallableDeclaration("g", trailing=DOUBLE),
        ]
        judgments = analyze_many(items)
        assert judgments[0].deduced_type == INT
        assert judgments[1].return_type == DOUBLE


class TestJudgment:

    def test_to_dict(self):
        j = analyze(DeclarationFragment("c", Explicit(CHAR), BraceList([lit(512)])))
        d = j.to_dict()
        assert d["identifier"] == "c"
        assert d["role"] == "variable-definition"
        assert d["deduced_type"] == "char"
        assert d["conversions"][0]["kind"] == "narrowing"
        assert d["diagnostics"][0]["kind"] == "narrowingConversion"
        assert "return_type" not in d

    def test_default_fields(self):
        j = Judgment("x", Role.VARIABLE_DEFINITION)
        assert j.error_count == 0 and j.kinds() == ()

    def test_data_model_from_config(self):
        assert Analyzer(config=AnalyzerConfig(data_model="ILP32")).context.data_model == "ILP32"
