"""
declinit/fragments.py
═════════════════════

Input model of the analyzer: pre-classified declaration fragments.

A front end (``declinit.frontend`` or any other producer) has already
extracted the identifier, the qualifier kind and the initializer structure;
nothing here looks at raw tokens.  Every class is a frozen dataclass, so a
fragment is immutable once built and owns its initializer sub-structure.

    DeclarationFragment
      ├── qualifier    : Explicit(T) | Inferred | InferredBraced
      └── initializer  : Empty | ParenCall | BraceList | SingleValue
                                     │           │           │
                                     └── ValueExpr / ParenCall / TypeName

Callables with an inferred return type are described separately by
``CallableDeclaration``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple, Union

from .errors import SourceSpan
from .type_model import (
    DOUBLE,
    FLOAT,
    INT,
    LONG_DOUBLE,
    UINT,
    UNKNOWN,
    DEFAULT_CONTEXT,
    Integral,
    TypeContext,
    TypeKind,
)

Number = Union[int, float]


# ═════════════════════════════════════════════════════════════════════════
#  PART 1: VALUES
# ═════════════════════════════════════════════════════════════════════════

_INT_LITERAL = re.compile(
    r"^(?P<body>0[xX][0-9a-fA-F']+|0[bB][01']+|0[0-7']*|[1-9][0-9']*)"
    r"(?P<suffix>[uU]?(?:ll|LL|l|L)?|(?:ll|LL|l|L)[uU])$"
)
_FLOAT_SUFFIX = re.compile(r"[fFlL]$")


@dataclass(frozen=True)
class ValueExpr:
    """
    A literal or sub-expression with a static type.

    ``constant`` is set only for literals whose exact value is known
    (``value`` holds it).  ``explicit`` is the explicit-conversion marker
    (``static_cast<T>(v)`` or ``T(v)``).
    """
    type: TypeKind
    value: Optional[Number] = None
    constant: bool = False
    explicit: bool = False
    text: str = ""

    def __str__(self) -> str:
        if self.text:
            return self.text
        if self.value is not None:
            return repr(self.value)
        return f"<{self.type}>"

    # ── Factories ─────────────────────────────────────────────────────

    @classmethod
    def integer(
        cls, literal: Union[int, str], context: TypeContext = DEFAULT_CONTEXT
    ) -> ValueExpr:
        """
        An integer literal, typed the way C++ types it: the first of
        ``int``, ``long``, ``long long`` that holds the value (unsigned
        variants for a ``u`` suffix, also tried for non-decimal bodies).
        """
        if isinstance(literal, int):
            # a negative int stands for -N: N is typed, then negated
            text, value, suffix, decimal = str(literal), literal, "", True
            magnitude = abs(literal)
        else:
            text = literal
            m = _INT_LITERAL.match(literal)
            if m is None:
                raise ValueError(f"not an integer literal: {literal!r}")
            body = m.group("body").replace("'", "")
            suffix = m.group("suffix").lower()
            decimal = not body.startswith("0") or body == "0"
            if body[:2].lower() in ("0x", "0b"):
                magnitude = int(body, 0)
            else:
                magnitude = int(body, 8 if not decimal else 10)
            value = magnitude
        literal_type = _integer_literal_type(magnitude, suffix, decimal, context)
        return cls(type=literal_type, value=value, constant=True, text=text)

    @classmethod
    def floating(cls, literal: Union[float, str], context: TypeContext = DEFAULT_CONTEXT) -> ValueExpr:
        """A floating literal: ``double``, ``f`` suffix ``float``, ``l`` ``long double``."""
        if isinstance(literal, float):
            return cls(type=DOUBLE, value=literal, constant=True, text=repr(literal))
        suffix = _FLOAT_SUFFIX.search(literal)
        body = literal[:-1] if suffix else literal
        t = DOUBLE
        if suffix and suffix.group().lower() == "f":
            t = FLOAT
        elif suffix:
            t = LONG_DOUBLE
        return cls(type=t, value=float(body.replace("'", "")), constant=True, text=literal)

    @classmethod
    def variable(cls, name: str, type: TypeKind) -> ValueExpr:
        """A non-constant expression naming an object of *type*."""
        return cls(type=type, text=name)

    @classmethod
    def explicitly_converted(
        cls, inner: ValueExpr, target: Optional[TypeKind] = None, text: str = ""
    ) -> ValueExpr:
        """
        Wrap *inner* in an explicit-conversion marker.

        Without *target* the static type is unchanged (a bare marker); with
        *target* the expression takes the cast's type, as ``static_cast``
        does.  Either way conversion checks report ``EXPLICITLY_CONVERTED``.
        """
        if target is None:
            return replace(inner, explicit=True, text=text or inner.text)
        value = _convert_constant(inner.value, target) if inner.constant else None
        return cls(
            type=target,
            value=value,
            constant=inner.constant and value is not None,
            explicit=True,
            text=text or f"static_cast<{target}>({inner})",
        )

    def negated(self) -> ValueExpr:
        """
        Unary minus; a negated literal is still a literal constant.

        Operands narrower than ``int`` are promoted first.  Unsigned operands
        wrap modulo 2**width, so ``-1u`` is 4294967295.
        """
        t = self.type
        if isinstance(t, Integral) and t.width < INT.width:
            t = INT
        value = -self.value if self.value is not None else None
        if isinstance(t, Integral) and not t.signed:
            value = _convert_constant(value, t)
        text = f"-{self.text}" if self.text else ""
        return replace(self, type=t, value=value, text=text)


def _integer_literal_type(
    magnitude: int, suffix: str, decimal: bool, context: TypeContext
) -> TypeKind:
    long_t = context.lookup_type("long") or INT
    long_long = context.lookup_type("long long") or INT
    unsigned = "u" in suffix
    if "ll" in suffix:
        ladder = [long_long]
    elif "l" in suffix:
        ladder = [long_t, long_long]
    else:
        ladder = [INT, long_t, long_long]
    candidates = []
    for t in ladder:
        assert isinstance(t, Integral)
        if unsigned:
            candidates.append(Integral(t.width, False))
            continue
        candidates.append(t)
        if not decimal:
            candidates.append(Integral(t.width, False))
    for t in candidates:
        if magnitude <= context.table.integral_bounds(t)[1]:
            return t
    # too large for every type, keep the widest unsigned type
    return Integral(context.table.integral_widths[-1], False) if candidates else UINT


def _convert_constant(value: Optional[Number], target: TypeKind) -> Optional[Number]:
    if value is None:
        return None
    if isinstance(target, Integral):
        if isinstance(value, float) and not value == value:
            return None
        as_int = int(value)
        if target.width == 1:
            return int(as_int != 0)
        modulus = 1 << target.width
        as_int %= modulus
        if target.signed and as_int >= modulus >> 1:
            as_int -= modulus
        return as_int
    if target.is_scalar:
        return float(value)
    return None


@dataclass(frozen=True)
class TypeName:
    """A bare type spelling in argument position, e.g. ``T x(int);``."""
    name: str

    def __str__(self) -> str:
        return self.name


# ═════════════════════════════════════════════════════════════════════════
#  PART 2: INITIALIZER FORMS
# ═════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Empty:
    """``T x;``"""

    def __str__(self) -> str:
        return ""


@dataclass(frozen=True)
class ParenCall:
    """
    A parenthesized argument list.

    At the top level of a fragment ``callee`` is normally ``None``
    (``T x(args)``); a top-level callee denotes the functional-notation
    copy initialization ``= C(args)``.  Nested inside another
    ``ParenCall`` it is a call form ``C(args)``; ``None`` then means "the
    declared type", as in ``T x(T());``.
    """
    arguments: Tuple[Argument, ...] = ()
    callee: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "arguments", tuple(self.arguments))

    def __str__(self) -> str:
        inner = ", ".join(str(a) for a in self.arguments)
        return f"{self.callee or ''}({inner})"


@dataclass(frozen=True)
class BraceList:
    values: Tuple[ValueExpr, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", tuple(self.values))

    def __str__(self) -> str:
        return "{" + ", ".join(str(v) for v in self.values) + "}"


@dataclass(frozen=True)
class SingleValue:
    """``T x = v;`` or, with ``braced``, ``T x{v};``."""
    value: ValueExpr
    braced: bool = False

    def __str__(self) -> str:
        return "{" + str(self.value) + "}" if self.braced else f"= {self.value}"


Argument = Union[ValueExpr, ParenCall, TypeName]
InitializerForm = Union[Empty, ParenCall, BraceList, SingleValue]


# ═════════════════════════════════════════════════════════════════════════
#  PART 3: QUALIFIERS AND FRAGMENTS
# ═════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Explicit:
    type: TypeKind

    def __str__(self) -> str:
        return str(self.type)


class InferredKind(Enum):
    INFERRED = "auto"
    INFERRED_BRACED = "auto{}"

    def __str__(self) -> str:
        return "auto"


Inferred = InferredKind.INFERRED
InferredBraced = InferredKind.INFERRED_BRACED

Qualifier = Union[Explicit, InferredKind]


@dataclass(frozen=True)
class DeclarationFragment:
    identifier: str
    qualifier: Qualifier
    initializer: InitializerForm = Empty()
    location: SourceSpan = SourceSpan()

    @property
    def is_inferred(self) -> bool:
        return isinstance(self.qualifier, InferredKind)

    def __str__(self) -> str:
        init = self.initializer
        if isinstance(init, (ParenCall, BraceList)):
            return f"{self.qualifier} {self.identifier}{init};"
        if isinstance(init, SingleValue) and init.braced:
            return f"{self.qualifier} {self.identifier}{init};"
        if isinstance(init, SingleValue):
            return f"{self.qualifier} {self.identifier} {init};"
        return f"{self.qualifier} {self.identifier};"


# ═════════════════════════════════════════════════════════════════════════
#  PART 4: CALLABLES
# ═════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ParamRef:
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class BinaryExpr:
    op: str
    lhs: Expr
    rhs: Expr

    def __str__(self) -> str:
        return f"{self.lhs} {self.op} {self.rhs}"


@dataclass(frozen=True)
class CallExpr:
    callee: str
    arguments: Tuple[Expr, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "arguments", tuple(self.arguments))

    def __str__(self) -> str:
        return f"{self.callee}({', '.join(str(a) for a in self.arguments)})"


Expr = Union[ValueExpr, ParamRef, BinaryExpr, CallExpr]


@dataclass(frozen=True)
class Decltype:
    """``decltype(expr)``, typed against the callable's parameter list."""
    expr: Expr

    def __str__(self) -> str:
        return f"decltype({self.expr})"


@dataclass(frozen=True)
class Parameter:
    name: str
    type: TypeKind

    def __str__(self) -> str:
        return f"{self.type} {self.name}"


@dataclass(frozen=True)
class ReturnPath:
    expr: Expr
    location: SourceSpan = SourceSpan()


@dataclass(frozen=True)
class CallableDeclaration:
    """
    ``auto name(params) [-> trailing] [{ return …; }]``

    ``trailing`` is either a plain type or a ``Decltype``; ``has_body``
    separates a pure declaration from a definition with no return.
    """
    name: str
    parameters: Tuple[Parameter, ...] = ()
    trailing: Optional[Union[TypeKind, Decltype]] = None
    return_paths: Tuple[ReturnPath, ...] = ()
    has_body: bool = False
    location: SourceSpan = SourceSpan()

    def __post_init__(self) -> None:
        object.__setattr__(self, "parameters", tuple(self.parameters))
        object.__setattr__(self, "return_paths", tuple(self.return_paths))

    def parameter(self, name: str) -> Optional[Parameter]:
        for p in self.parameters:
            if p.name == name:
                return p
        return None

    def is_recursive(self, expr: Expr) -> bool:
        """True when *expr* calls this callable anywhere."""
        if isinstance(expr, CallExpr):
            return expr.callee == self.name or any(self.is_recursive(a) for a in expr.arguments)
        if isinstance(expr, BinaryExpr):
            return self.is_recursive(expr.lhs) or self.is_recursive(expr.rhs)
        return False

    def __str__(self) -> str:
        params = ", ".join(str(p) for p in self.parameters)
        tail = f" -> {self.trailing}" if self.trailing is not None else ""
        return f"auto {self.name}({params}){tail}"


__all__ = [
    "ValueExpr", "TypeName",
    "Empty", "ParenCall", "BraceList", "SingleValue",
    "Argument", "InitializerForm",
    "Explicit", "InferredKind", "Inferred", "InferredBraced", "Qualifier",
    "DeclarationFragment",
    "ParamRef", "BinaryExpr", "CallExpr", "Expr", "Decltype",
    "Parameter", "ReturnPath", "CallableDeclaration",
]
