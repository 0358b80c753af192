"""
declinit/type_model.py
══════════════════════

Minimal C++ type model shared by every analysis component.

We model the types a declaration initializer can involve as a small term
algebra:

    τ ::= integral(width, signed)
        | floating(width)
        | aggregate(name, {ctor_1, …, ctor_n})
        | list_of(τ)                  (std::initializer_list<τ>)
        | unknown                     (deduction failure sentinel)

Conversion legality is decided by *rank*, never by spelling: the
``RankTable`` orders the integral widths and the floating widths, so adding
a new primitive width is a table edit.  The default table is built once at
import time and is immutable afterwards.

License: MIT
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum, auto
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple, Union

from .errors import TypeModelError

_log = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════
#  PART 1: TYPE REPRESENTATION
# ═════════════════════════════════════════════════════════════════════════

class TypeCategory(Enum):
    """Discriminant for the type term algebra."""
    INTEGRAL = auto()
    FLOATING = auto()
    AGGREGATE = auto()
    LIST = auto()
    UNKNOWN = auto()


class ConstructorTag(Enum):
    DEFAULT = "default"
    COPY = "copy"
    USER = "user"


class TypeKind:
    """Base of the closed ``TypeKind`` variant."""

    category: TypeCategory = TypeCategory.UNKNOWN

    @property
    def is_scalar(self) -> bool:
        return self.category in (TypeCategory.INTEGRAL, TypeCategory.FLOATING)

    @property
    def is_unknown(self) -> bool:
        return self.category is TypeCategory.UNKNOWN


@dataclass(frozen=True)
class Integral(TypeKind):
    width: int
    signed: bool = True

    category = TypeCategory.INTEGRAL

    def __str__(self) -> str:
        return _spelling_of(self) or f"{'' if self.signed else 'u'}int{self.width}_t"


@dataclass(frozen=True)
class FloatingPoint(TypeKind):
    width: int

    category = TypeCategory.FLOATING

    def __str__(self) -> str:
        return _spelling_of(self) or f"float{self.width}"


@dataclass(frozen=True)
class ConstructorSignature:
    """One constructor of an aggregate's callable surface."""
    name: str
    parameters: Tuple[TypeKind, ...] = ()
    tag: ConstructorTag = ConstructorTag.USER

    @property
    def arity(self) -> int:
        return len(self.parameters)

    def __str__(self) -> str:
        params = ", ".join(str(p) for p in self.parameters)
        return f"{self.name}({params})"


@dataclass(frozen=True)
class Aggregate(TypeKind):
    """
    A user-defined class type.

    Identity is the name alone; ``constructors`` describes the callable
    surface and does not take part in equality.  An aggregate declared
    without constructors has the implicit default and copy constructors.
    """
    name: str
    constructors: Tuple[ConstructorSignature, ...] = field(
        default=(), compare=False, repr=False
    )

    category = TypeCategory.AGGREGATE

    @property
    def effective_constructors(self) -> Tuple[ConstructorSignature, ...]:
        if self.constructors:
            return self.constructors
        return (
            ConstructorSignature(self.name, (), ConstructorTag.DEFAULT),
            ConstructorSignature(self.name, (self,), ConstructorTag.COPY),
        )

    @property
    def default_constructible(self) -> bool:
        return any(c.arity == 0 for c in self.effective_constructors)

    def constructors_with_arity(self, arity: int) -> Tuple[ConstructorSignature, ...]:
        return tuple(c for c in self.effective_constructors if c.arity == arity)

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class ListOf(TypeKind):
    element: TypeKind

    category = TypeCategory.LIST

    def __str__(self) -> str:
        return f"std::initializer_list<{self.element}>"


@dataclass(frozen=True)
class Unknown(TypeKind):
    category = TypeCategory.UNKNOWN

    def __str__(self) -> str:
        return "<unknown>"


UNKNOWN = Unknown()

Scalar = Union[Integral, FloatingPoint]


# ═════════════════════════════════════════════════════════════════════════
#  PART 2: CONVERSION-RANK TABLE
# ═════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class RankTable:
    """
    Ordered widths per category plus floating mantissa digits.

    Ranks are indexes into the width tuples; a wider type always has the
    higher rank within its category.
    """
    integral_widths: Tuple[int, ...] = (1, 8, 16, 32, 64)
    floating_widths: Tuple[int, ...] = (32, 64, 80)
    # Parallel to floating_widths; exponents use the frexp convention,
    # value = m * 2**e with 0.5 <= |m| < 1.
    mantissa_digits: Tuple[int, ...] = (24, 53, 64)
    max_exponents: Tuple[int, ...] = (128, 1024, 16384)
    min_exponents: Tuple[int, ...] = (-125, -1021, -16381)

    def __post_init__(self) -> None:
        if list(self.integral_widths) != sorted(set(self.integral_widths)):
            raise TypeModelError("integral widths must be strictly increasing")
        if list(self.floating_widths) != sorted(set(self.floating_widths)):
            raise TypeModelError("floating widths must be strictly increasing")
        n = len(self.floating_widths)
        if (len(self.mantissa_digits) != n or len(self.max_exponents) != n
                or len(self.min_exponents) != n):
            raise TypeModelError(
                "mantissa digits and exponents must be given for every floating width"
            )

    # ── Ranks ─────────────────────────────────────────────────────────

    def integral_rank(self, width: int) -> int:
        try:
            return self.integral_widths.index(width)
        except ValueError:
            raise TypeModelError(f"integral width {width} is not in the rank table") from None

    def floating_rank(self, width: int) -> int:
        try:
            return self.floating_widths.index(width)
        except ValueError:
            raise TypeModelError(f"floating width {width} is not in the rank table") from None

    def rank(self, t: TypeKind) -> int:
        if isinstance(t, Integral):
            return self.integral_rank(t.width)
        if isinstance(t, FloatingPoint):
            return self.floating_rank(t.width)
        raise TypeModelError(f"type {t} has no conversion rank")

    def ranked(self, t: TypeKind) -> bool:
        """True when *t* is a scalar whose width appears in the table."""
        if isinstance(t, Integral):
            return t.width in self.integral_widths
        if isinstance(t, FloatingPoint):
            return t.width in self.floating_widths
        return False

    def digits(self, t: FloatingPoint) -> int:
        return self.mantissa_digits[self.floating_rank(t.width)]

    def max_exponent(self, t: FloatingPoint) -> int:
        return self.max_exponents[self.floating_rank(t.width)]

    def min_exponent(self, t: FloatingPoint) -> int:
        """Smallest exponent of a normal value; below it precision is lost bit by bit."""
        return self.min_exponents[self.floating_rank(t.width)]

    # ── Value ranges ──────────────────────────────────────────────────

    @staticmethod
    def integral_bounds(t: Integral) -> Tuple[int, int]:
        """Inclusive value range of an integral type (bool is [0, 1])."""
        if t.signed and t.width > 1:
            half = 1 << (t.width - 1)
            return -half, half - 1
        return 0, (1 << t.width) - 1

    @staticmethod
    def value_bits(t: Integral) -> int:
        """Magnitude bits of an integral type, excluding the sign bit."""
        return t.width - 1 if t.signed and t.width > 1 else t.width

    def fits_integral(self, t: Integral, value: Union[int, float]) -> bool:
        if isinstance(value, float):
            if not value.is_integer():
                return False
            value = int(value)
        lo, hi = self.integral_bounds(t)
        return lo <= value <= hi

    def float_exact(self, t: FloatingPoint, value: Union[int, float]) -> bool:
        """True when *value* survives conversion to *t* without change."""
        digits = self.digits(t)
        max_exp = self.max_exponent(t)
        if value == 0:
            return True
        if isinstance(value, int):
            magnitude = abs(value)
            if magnitude.bit_length() > max_exp:
                return False
            # strip trailing zero bits, the rest must fit the mantissa
            stripped = magnitude >> ((magnitude & -magnitude).bit_length() - 1)
            return stripped.bit_length() <= digits
        if not math.isfinite(value):
            return True
        mantissa, exponent = math.frexp(value)
        if exponent > max_exp:
            return False
        min_exp = self.min_exponent(t)
        if exponent < min_exp:
            # subnormal: one significant bit lost per step below min_exp
            digits -= min_exp - exponent
            if digits <= 0:
                return False
        scaled = math.ldexp(mantissa, digits)
        return scaled == int(scaled)


DEFAULT_RANK_TABLE = RankTable()


# ═════════════════════════════════════════════════════════════════════════
#  PART 3: NAMED TYPES AND DATA MODELS
# ═════════════════════════════════════════════════════════════════════════

_LONG_WIDTH: Dict[str, int] = {"LP64": 64, "ILP32": 32, "LLP64": 32}

BOOL = Integral(1, False)
CHAR = Integral(8, True)
UCHAR = Integral(8, False)
SHORT = Integral(16, True)
USHORT = Integral(16, False)
INT = Integral(32, True)
UINT = Integral(32, False)
LONG_LONG = Integral(64, True)
ULONG_LONG = Integral(64, False)
FLOAT = FloatingPoint(32)
DOUBLE = FloatingPoint(64)
LONG_DOUBLE = FloatingPoint(80)


def _builtin_names(data_model: str) -> Dict[str, TypeKind]:
    try:
        long_width = _LONG_WIDTH[data_model]
    except KeyError:
        raise TypeModelError(
            f"unknown data model {data_model!r} (expected one of {sorted(_LONG_WIDTH)})"
        ) from None
    long_t = Integral(long_width, True)
    ulong_t = Integral(long_width, False)
    size_t = ULONG_LONG if data_model != "ILP32" else UINT
    return {
        "bool": BOOL,
        "char": CHAR,
        "signed char": CHAR,
        "unsigned char": UCHAR,
        "short": SHORT,
        "short int": SHORT,
        "unsigned short": USHORT,
        "int": INT,
        "signed": INT,
        "signed int": INT,
        "unsigned": UINT,
        "unsigned int": UINT,
        "long": long_t,
        "long int": long_t,
        "unsigned long": ulong_t,
        "long long": LONG_LONG,
        "unsigned long long": ULONG_LONG,
        "float": FLOAT,
        "double": DOUBLE,
        "long double": LONG_DOUBLE,
        "int8_t": Integral(8, True),
        "uint8_t": Integral(8, False),
        "int16_t": Integral(16, True),
        "uint16_t": Integral(16, False),
        "int32_t": Integral(32, True),
        "uint32_t": Integral(32, False),
        "int64_t": Integral(64, True),
        "uint64_t": Integral(64, False),
        "size_t": size_t,
    }


# Canonical spelling for printing; first spelling wins.
_SPELLINGS: Mapping[TypeKind, str] = MappingProxyType({
    t: name for name, t in reversed(list(_builtin_names("LP64").items()))
    if not name.endswith("_t") and name not in ("signed char", "short int", "unsigned",
                                                  "signed", "signed int", "long int")
})


def _spelling_of(t: TypeKind) -> Optional[str]:
    return _SPELLINGS.get(t)


@dataclass(frozen=True, eq=False)
class TypeContext:
    """
    Read-only registry of the names a fragment may refer to.

    ``types`` maps spellings (builtin and aggregate) to types,
    ``functions`` maps free-function names to their return types.
    Contexts are values: ``with_*`` helpers return a new context.
    """
    data_model: str = "LP64"
    table: RankTable = DEFAULT_RANK_TABLE
    types: Mapping[str, TypeKind] = field(default_factory=lambda: MappingProxyType({}))
    functions: Mapping[str, TypeKind] = field(default_factory=lambda: MappingProxyType({}))

    def __post_init__(self) -> None:
        merged = dict(_builtin_names(self.data_model))
        merged.update(self.types)
        object.__setattr__(self, "types", MappingProxyType(merged))
        object.__setattr__(self, "functions", MappingProxyType(dict(self.functions)))

    # ── Lookup ────────────────────────────────────────────────────────

    def lookup_type(self, name: str) -> Optional[TypeKind]:
        return self.types.get(" ".join(name.split()))

    def is_type_name(self, name: Optional[str]) -> bool:
        return name is not None and self.lookup_type(name) is not None

    def is_function(self, name: Optional[str]) -> bool:
        return name is not None and name in self.functions

    def aggregate(self, name: str) -> Optional[Aggregate]:
        t = self.types.get(name)
        return t if isinstance(t, Aggregate) else None

    # ── Derivation ────────────────────────────────────────────────────

    def with_aggregate(self, aggregate: Aggregate) -> TypeContext:
        types = {k: v for k, v in self.types.items()}
        types[aggregate.name] = aggregate
        return TypeContext(self.data_model, self.table, types, self.functions)

    def with_function(self, name: str, return_type: TypeKind) -> TypeContext:
        functions = dict(self.functions)
        functions[name] = return_type
        return TypeContext(self.data_model, self.table, self.types, functions)

    def builtin_names(self) -> Tuple[str, ...]:
        return tuple(_builtin_names(self.data_model))


DEFAULT_CONTEXT = TypeContext()


def aggregate(name: str, *constructors: Tuple[Optional[TypeKind], ...]) -> Aggregate:
    """
    Build an aggregate from constructor parameter lists.

    >>> widget = aggregate("Widget", (), (INT,))
    >>> widget.default_constructible
    True
    """
    shell = Aggregate(name)
    sigs = []
    for params in constructors:
        params = tuple(shell if p is None else p for p in params)
        if not params:
            tag = ConstructorTag.DEFAULT
        elif len(params) == 1 and params[0] == shell:
            tag = ConstructorTag.COPY
        else:
            tag = ConstructorTag.USER
        sigs.append(ConstructorSignature(name, params, tag))
    return Aggregate(name, tuple(sigs))


__all__ = [
    "TypeCategory", "ConstructorTag", "TypeKind",
    "Integral", "FloatingPoint", "Aggregate", "ListOf", "Unknown", "UNKNOWN",
    "ConstructorSignature", "RankTable", "DEFAULT_RANK_TABLE",
    "TypeContext", "DEFAULT_CONTEXT", "aggregate",
    "BOOL", "CHAR", "UCHAR", "SHORT", "USHORT", "INT", "UINT",
    "LONG_LONG", "ULONG_LONG", "FLOAT", "DOUBLE", "LONG_DOUBLE",
]
