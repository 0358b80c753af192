# tests/test_type_model.py
"""
Tests for the type term algebra, the conversion-rank table and the
named-type context.
"""

import pytest

from declinit.errors import TypeModelError
from declinit.type_model import (
    BOOL,
    CHAR,
    DEFAULT_CONTEXT,
    DEFAULT_RANK_TABLE,
    DOUBLE,
    FLOAT,
    INT,
    UCHAR,
    UINT,
    UNKNOWN,
    Aggregate,
    ConstructorTag,
    FloatingPoint,
    Integral,
    ListOf,
    RankTable,
    TypeContext,
    aggregate,
)


@pytest.fixture(scope="module")
def table():
    return DEFAULT_RANK_TABLE


class TestRankTable:

    def test_integral_ranks_follow_width(self, table):
        assert table.integral_rank(1) < table.integral_rank(8) < table.integral_rank(32)

    def test_floating_ranks_follow_width(self, table):
        assert table.floating_rank(32) < table.floating_rank(64) < table.floating_rank(80)

    def test_rank_of_type(self, table):
        assert table.rank(INT) == table.integral_rank(32)
        assert table.rank(DOUBLE) == table.floating_rank(64)

    def test_unknown_width_raises(self, table):
        with pytest.raises(TypeModelError):
            table.integral_rank(24)

    def test_rank_of_aggregate_raises(self, table):
        with pytest.raises(TypeModelError):
            table.rank(Aggregate("Widget"))

    def test_unsorted_widths_rejected(self):
        with pytest.raises(TypeModelError):
            RankTable(integral_widths=(8, 8, 16))

    def test_digits_must_match_floating_widths(self):
        with pytest.raises(TypeModelError):
            RankTable(floating_widths=(32, 64))

    def test_min_exponents_must_match_floating_widths(self):
        with pytest.raises(TypeModelError):
            RankTable(min_exponents=(-125, -1021))

    def test_ranked(self, table):
        assert table.ranked(INT)
        assert table.ranked(DOUBLE)
        assert not table.ranked(Integral(24, True))
        assert not table.ranked(FloatingPoint(16))
        assert not table.ranked(Aggregate("Widget"))

    def test_extended_table(self):
        wide = RankTable(integral_widths=(1, 8, 16, 32, 64, 128))
        assert wide.integral_rank(128) == 5


class TestValueRanges:

    def test_signed_char_bounds(self, table):
        assert table.integral_bounds(CHAR) == (-128, 127)

    def test_unsigned_char_bounds(self, table):
        assert table.integral_bounds(UCHAR) == (0, 255)

    def test_bool_bounds(self, table):
        assert table.integral_bounds(BOOL) == (0, 1)

    def test_value_bits(self, table):
        assert table.value_bits(INT) == 31
        assert table.value_bits(UINT) == 32

    def test_fits_integral(self, table):
        assert table.fits_integral(CHAR, 127)
        assert not table.fits_integral(CHAR, 128)
        assert table.fits_integral(CHAR, -128)
        assert not table.fits_integral(UINT, -1)

    def test_fits_integral_with_float_value(self, table):
        assert table.fits_integral(INT, 3.0)
        assert not table.fits_integral(INT, 3.5)

    def test_float_exact_integers(self, table):
        assert table.float_exact(FLOAT, 1 << 24)
        assert not table.float_exact(FLOAT, (1 << 24) + 1)
        assert table.float_exact(DOUBLE, (1 << 24) + 1)

    def test_float_exact_fractions(self, table):
        assert table.float_exact(FLOAT, 1.5)
        assert not table.float_exact(FLOAT, 0.1)
        assert table.float_exact(DOUBLE, 0.1)

    def test_zero_is_exact(self, table):
        assert table.float_exact(FLOAT, 0)

    def test_float_exact_rejects_underflow(self, table):
        assert not table.float_exact(FLOAT, 2.0 ** -200)
        assert table.float_exact(DOUBLE, 2.0 ** -200)

    def test_float_exact_subnormals(self, table):
        assert table.float_exact(FLOAT, 2.0 ** -126)
        assert table.float_exact(FLOAT, 3 * 2.0 ** -149)
        assert not table.float_exact(FLOAT, 2.0 ** -150)
        # 1 + 2**-23 scaled below the normal range loses its low bit
        assert table.float_exact(FLOAT, (1 + 2.0 ** -23) * 2.0 ** -126)
        assert not table.float_exact(FLOAT, (1 + 2.0 ** -23) * 2.0 ** -127)


class TestTypes:

    def test_spellings(self):
        assert str(INT) == "int"
        assert str(UCHAR) == "unsigned char"
        assert str(DOUBLE) == "double"
        assert str(ListOf(INT)) == "std::initializer_list<int>"
        assert str(UNKNOWN) == "<unknown>"

    def test_unnamed_width_spelling(self):
        assert str(FloatingPoint(16)) == "float16"

    def test_scalar_flags(self):
        assert INT.is_scalar and DOUBLE.is_scalar
        assert not Aggregate("Widget").is_scalar
        assert UNKNOWN.is_unknown

    def test_aggregate_identity_is_the_name(self):
        assert aggregate("Widget", (INT,)) == Aggregate("Widget")
        assert hash(aggregate("Widget", (INT,))) == hash(Aggregate("Widget"))

    def test_implicit_constructors(self):
        tag = aggregate("Tag")
        tags = [c.tag for c in tag.effective_constructors]
        assert tags == [ConstructorTag.DEFAULT, ConstructorTag.COPY]
        assert tag.default_constructible

    def test_user_constructors(self, widget):
        assert widget.default_constructible
        assert [c.arity for c in widget.effective_constructors] == [0, 1, 2]
        assert len(widget.constructors_with_arity(2)) == 1
        assert widget.constructors_with_arity(3) == ()

    def test_no_default_constructor(self, no_default):
        assert not no_default.default_constructible

    def test_self_parameter_is_copy(self):
        w = aggregate("W", (), (None,))
        assert w.effective_constructors[1].tag is ConstructorTag.COPY
        assert w.effective_constructors[1].parameters == (Aggregate("W"),)

    def test_constructor_spelling(self, widget):
        assert str(widget.effective_constructors[2]) == "Widget(int, double)"


class TestTypeContext:

    def test_builtin_lookup(self):
        assert DEFAULT_CONTEXT.lookup_type("int") == INT
        assert DEFAULT_CONTEXT.lookup_type("unsigned   int") == UINT
        assert DEFAULT_CONTEXT.lookup_type("Widget") is None

    @pytest.mark.parametrize("model, width", [("LP64", 64), ("ILP32", 32), ("LLP64", 32)])
    def test_long_width_per_data_model(self, model, width):
        ctx = TypeContext(data_model=model)
        assert ctx.lookup_type("long") == Integral(width, True)

    def test_unknown_data_model(self):
        with pytest.raises(TypeModelError):
            TypeContext(data_model="LP128")

    def test_with_aggregate_returns_new_context(self, widget):
        ctx = DEFAULT_CONTEXT.with_aggregate(widget)
        assert ctx.aggregate("Widget") is widget
        assert DEFAULT_CONTEXT.aggregate("Widget") is None
        assert ctx.is_type_name("Widget")

    def test_with_function(self):
        ctx = DEFAULT_CONTEXT.with_function("f", DOUBLE)
        assert ctx.is_function("f")
        assert ctx.functions["f"] == DOUBLE
        assert not DEFAULT_CONTEXT.is_function("f")

    def test_context_is_read_only(self):
        with pytest.raises(TypeError):
            DEFAULT_CONTEXT.types["int"] = DOUBLE

    def test_builtin_names(self):
        names = DEFAULT_CONTEXT.builtin_names()
        assert "unsigned long long" in names
        assert "size_t" in names
