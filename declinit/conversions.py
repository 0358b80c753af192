"""
declinit/conversions.py
═══════════════════════

Narrowing detection for initializer elements.

Theory
──────
A conversion S → T is classified from the rank relationship of S and T in
the read-only ``RankTable``, never from type-name equality:

  integral → integral   same rank, same signedness          EXACT
                        higher rank, T signed or S unsigned  WIDENING
                        anything else                        NARROWING
  floating → floating   same / higher / lower rank           EXACT / WIDENING / NARROWING
  integral → floating   S value bits ≤ T mantissa digits     WIDENING, else NARROWING
  floating → integral                                        NARROWING (always)
  aggregate → aggregate same name                            EXACT
  list → list           element relationship
  unranked scalar       width missing from the table         INCOMPATIBLE
  anything else                                              INCOMPATIBLE

Inside braces a NARROWING conversion is rejected unless the value is a
literal constant exactly representable in T; such a constant is reported
as EXACT with ``constant_exempt`` set.  Floating → integral never gets the
exemption.  An explicit-conversion marker turns every scalar conversion
into EXPLICITLY_CONVERTED.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from .fragments import ValueExpr
from .type_model import (
    DEFAULT_RANK_TABLE,
    Aggregate,
    FloatingPoint,
    Integral,
    ListOf,
    RankTable,
    TypeKind,
)

_log = logging.getLogger(__name__)


class ConversionKind(Enum):
    EXACT = "exact"
    WIDENING = "widening"
    NARROWING = "narrowing"
    EXPLICITLY_CONVERTED = "explicitly-converted"
    INCOMPATIBLE = "incompatible"


@dataclass(frozen=True)
class ConversionResult:
    """Outcome of converting one initializer element to its target."""
    kind: ConversionKind
    target: TypeKind
    source: TypeKind
    value: Optional[Union[int, float]] = None
    braced: bool = True
    constant_exempt: bool = False

    @property
    def permitted(self) -> bool:
        if self.kind is ConversionKind.INCOMPATIBLE:
            return False
        if self.kind is ConversionKind.NARROWING:
            return not self.braced
        return True

    @property
    def is_narrowing(self) -> bool:
        return self.kind is ConversionKind.NARROWING

    def __str__(self) -> str:
        note = " (constant fits)" if self.constant_exempt else ""
        return f"{self.source} -> {self.target}: {self.kind.value}{note}"


def classify_types(
    target: TypeKind, source: TypeKind, table: RankTable = DEFAULT_RANK_TABLE
) -> ConversionKind:
    """Rank relationship between two types, ignoring any value."""
    if target.is_scalar and source.is_scalar and not (table.ranked(target) and table.ranked(source)):
        _log.debug("no rank for %s -> %s, treating as incompatible", source, target)
        return ConversionKind.INCOMPATIBLE

    if isinstance(target, Integral) and isinstance(source, Integral):
        rt, rs = table.integral_rank(target.width), table.integral_rank(source.width)
        if rt == rs:
            return ConversionKind.EXACT if target.signed == source.signed else ConversionKind.NARROWING
        if rt > rs and (target.signed or not source.signed):
            return ConversionKind.WIDENING
        return ConversionKind.NARROWING

    if isinstance(target, FloatingPoint) and isinstance(source, FloatingPoint):
        rt, rs = table.floating_rank(target.width), table.floating_rank(source.width)
        if rt == rs:
            return ConversionKind.EXACT
        return ConversionKind.WIDENING if rt > rs else ConversionKind.NARROWING

    if isinstance(target, FloatingPoint) and isinstance(source, Integral):
        if table.value_bits(source) <= table.digits(target):
            return ConversionKind.WIDENING
        return ConversionKind.NARROWING

    if isinstance(target, Integral) and isinstance(source, FloatingPoint):
        return ConversionKind.NARROWING

    if isinstance(target, Aggregate) and isinstance(source, Aggregate):
        return ConversionKind.EXACT if target == source else ConversionKind.INCOMPATIBLE

    if isinstance(target, ListOf) and isinstance(source, ListOf):
        return classify_types(target.element, source.element, table)

    return ConversionKind.INCOMPATIBLE


def representable(target: TypeKind, value: ValueExpr, table: RankTable = DEFAULT_RANK_TABLE) -> bool:
    """
    True when *value* is a literal constant whose exact value survives
    conversion to *target*.  Only literal constants qualify.
    """
    if not value.constant or value.value is None:
        return False
    if isinstance(target, Integral):
        if isinstance(value.type, FloatingPoint):
            return False
        return table.fits_integral(target, value.value)
    if isinstance(target, FloatingPoint):
        return table.float_exact(target, value.value)
    return False


def check(
    target: TypeKind,
    value: ValueExpr,
    braced: bool = True,
    table: RankTable = DEFAULT_RANK_TABLE,
) -> ConversionResult:
    """
    Classify the conversion of one initializer element to *target*.

    Parameters
    ----------
    target:
        Declared or deduced element type.
    value:
        The element, with its static type and, for literals, its value.
    braced:
        Whether the element sits inside a brace-delimited initializer.
        Only braced narrowing is rejected; ``ConversionResult.permitted``
        reflects that.

    Never raises; scalars whose widths are missing from *table* are
    INCOMPATIBLE.
    """
    source = value.type
    kind = classify_types(target, source, table)

    if value.explicit and kind is not ConversionKind.INCOMPATIBLE:
        return ConversionResult(ConversionKind.EXPLICITLY_CONVERTED, target, source,
                                value.value, braced)

    if kind is ConversionKind.NARROWING and representable(target, value, table):
        _log.debug("constant %s fits %s, narrowing exempt", value, target)
        return ConversionResult(ConversionKind.EXACT, target, source, value.value,
                                braced, constant_exempt=True)

    return ConversionResult(kind, target, source, value.value, braced)


__all__ = [
    "ConversionKind",
    "ConversionResult",
    "classify_types",
    "representable",
    "check",
]
