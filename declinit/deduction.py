"""
declinit/deduction.py
═════════════════════

Type deduction for ``auto`` declarations and ``auto`` return types.

Rules, evaluated in order
─────────────────────────
  1. brace syntax + auto      {e₁, …, eₙ} all of type T  →  list_of(T)
                              (even for n = 1; mixed or empty → AmbiguousList)
  2. auto x = v;              →  type(v)
  3. auto x(…);               →  type named by the call's callee, once the
                                 disambiguator confirms a variable
                                 definition (else NotAValue)
  4. auto f(…) [-> R] { … }   →  R when a trailing annotation is present
                                 (decltype typed against f's parameters),
                                 else the single non-recursive return path

Every failure returns ``UNKNOWN`` and reports exactly one diagnostic; there
is no silent fallback.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from .diagnostics import DiagnosticCollector, DiagnosticKind
from .disambiguator import Role, classify
from .fragments import (
    BinaryExpr,
    BraceList,
    CallableDeclaration,
    CallExpr,
    Decltype,
    DeclarationFragment,
    Empty,
    Expr,
    InferredKind,
    InferredBraced,
    InitializerForm,
    ParamRef,
    ParenCall,
    SingleValue,
    ValueExpr,
)
from .type_model import (
    BOOL,
    DEFAULT_CONTEXT,
    INT,
    UNKNOWN,
    FloatingPoint,
    Integral,
    ListOf,
    RankTable,
    TypeContext,
    TypeKind,
)

_log = logging.getLogger(__name__)

_COMPARISON_OPS = frozenset({"==", "!=", "<", ">", "<=", ">=", "&&", "||"})


# ═════════════════════════════════════════════════════════════════════════
#  PART 1: USUAL ARITHMETIC CONVERSIONS  ([expr.arith.conv])
# ═════════════════════════════════════════════════════════════════════════

def integer_promote(t: Integral, table: RankTable) -> Integral:
    """
    Integral promotion: types of lower rank than ``int`` become ``int``
    (every narrower width fits a 32-bit int).
    """
    if table.integral_rank(t.width) < table.integral_rank(INT.width):
        return INT
    return t


def usual_arithmetic_conversions(a: TypeKind, b: TypeKind, table: RankTable) -> TypeKind:
    """
    Common type of two arithmetic operands.

      1. If either is floating → the floating type of higher rank
      2. Integral promotions on both, then:
         a. Same type → that type
         b. Same sign → higher rank
         c. Unsigned rank ≥ signed rank → unsigned type
         d. Signed rank higher → signed type
    """
    if not (table.ranked(a) and table.ranked(b)):
        return UNKNOWN

    if isinstance(a, FloatingPoint) or isinstance(b, FloatingPoint):
        floats = [t for t in (a, b) if isinstance(t, FloatingPoint)]
        return max(floats, key=lambda t: table.floating_rank(t.width))

    assert isinstance(a, Integral) and isinstance(b, Integral)
    pa = integer_promote(a, table)
    pb = integer_promote(b, table)
    if pa == pb:
        return pa

    ra, rb = table.integral_rank(pa.width), table.integral_rank(pb.width)
    if pa.signed == pb.signed:
        return pa if ra >= rb else pb

    unsigned, signed_ = (pa, pb) if not pa.signed else (pb, pa)
    ru, rs = (ra, rb) if unsigned is pa else (rb, ra)
    if ru >= rs:
        return unsigned
    return signed_


def expression_type(
    expr: Expr,
    callable_: Optional[CallableDeclaration] = None,
    context: TypeContext = DEFAULT_CONTEXT,
) -> TypeKind:
    """Static type of a return-path or decltype expression."""
    if isinstance(expr, ValueExpr):
        return expr.type
    if isinstance(expr, ParamRef):
        param = callable_.parameter(expr.name) if callable_ is not None else None
        return param.type if param is not None else UNKNOWN
    if isinstance(expr, BinaryExpr):
        if expr.op in _COMPARISON_OPS:
            return BOOL
        lhs = expression_type(expr.lhs, callable_, context)
        rhs = expression_type(expr.rhs, callable_, context)
        return usual_arithmetic_conversions(lhs, rhs, context.table)
    if isinstance(expr, CallExpr):
        if callable_ is not None and expr.callee == callable_.name:
            return UNKNOWN
        if context.is_function(expr.callee):
            return context.functions[expr.callee]
        return context.lookup_type(expr.callee) or UNKNOWN
    return UNKNOWN


# ═════════════════════════════════════════════════════════════════════════
#  PART 2: VARIABLE DEDUCTION
# ═════════════════════════════════════════════════════════════════════════

def _deduce_list(values, reporter: Optional[DiagnosticCollector]) -> TypeKind:
    if not values:
        _report(reporter, DiagnosticKind.AMBIGUOUS_LIST,
                "cannot deduce an element type from an empty brace list")
        return UNKNOWN
    first = values[0].type
    mismatched = [v for v in values[1:] if v.type != first]
    if mismatched:
        _report(reporter, DiagnosticKind.AMBIGUOUS_LIST,
                f"brace list elements disagree on their type: '{first}' and "
                f"'{mismatched[0].type}'",
                target=first, source=mismatched[0].type)
        return UNKNOWN
    return ListOf(first)


def _argument_type(arg, context: TypeContext) -> TypeKind:
    if isinstance(arg, ValueExpr):
        return arg.type
    if isinstance(arg, ParenCall) and arg.callee is not None:
        if context.is_function(arg.callee):
            return context.functions[arg.callee]
        return context.lookup_type(arg.callee) or UNKNOWN
    return UNKNOWN


def _report(reporter: Optional[DiagnosticCollector], kind: DiagnosticKind, message: str, **evidence) -> None:
    if reporter is not None:
        reporter.report(kind, message, **evidence)


def deduce(
    qualifier: InferredKind,
    initializer: InitializerForm,
    context: Optional[TypeContext] = None,
    reporter: Optional[DiagnosticCollector] = None,
    role: Optional[Role] = None,
) -> TypeKind:
    """
    Deduce the concrete type of an ``auto`` declaration.

    Parameters
    ----------
    qualifier:
        ``Inferred`` or ``InferredBraced``.
    initializer:
        The fragment's initializer form.
    context:
        Known names; ``DEFAULT_CONTEXT`` if omitted.
    reporter:
        Receives the failure diagnostic, if any.
    role:
        Result of an earlier ``classify``; computed here when omitted.

    Returns
    -------
    TypeKind
        The deduced type, or ``UNKNOWN`` when deduction failed.
    """
    ctx = context or DEFAULT_CONTEXT

    # Rule 1: brace syntax always yields a list container
    braced = isinstance(initializer, BraceList) or (
        isinstance(initializer, SingleValue) and initializer.braced
    )
    if qualifier is InferredBraced or braced:
        if isinstance(initializer, BraceList):
            return _deduce_list(initializer.values, reporter)
        if isinstance(initializer, SingleValue):
            return _deduce_list((initializer.value,), reporter)
        if isinstance(initializer, Empty):
            return _deduce_list((), reporter)

    # Rule 2
    if isinstance(initializer, SingleValue):
        return initializer.value.type

    # Rule 3
    if isinstance(initializer, ParenCall):
        if role is None:
            role = classify(DeclarationFragment("<deduced>", qualifier, initializer), ctx)
        if role is Role.FUNCTION_DECLARATION:
            _report(reporter, DiagnosticKind.NOT_A_VALUE,
                    "declaration is a function declaration and has no value type to deduce")
            return UNKNOWN
        if initializer.callee is not None:
            deduced = _argument_type(ParenCall((), initializer.callee), ctx)
        elif len(initializer.arguments) == 1:
            deduced = _argument_type(initializer.arguments[0], ctx)
        else:
            _report(reporter, DiagnosticKind.NOT_A_VALUE,
                    f"parenthesized initializer with {len(initializer.arguments)} "
                    f"expressions does not name a single value")
            return UNKNOWN
        if deduced.is_unknown:
            _report(reporter, DiagnosticKind.NOT_A_VALUE,
                    f"initializer '{initializer}' does not name a value type")
        return deduced

    _report(reporter, DiagnosticKind.MISSING_INITIALIZER,
            "declaration with deduced type requires an initializer")
    return UNKNOWN


# ═════════════════════════════════════════════════════════════════════════
#  PART 3: RETURN-TYPE DEDUCTION
# ═════════════════════════════════════════════════════════════════════════

def deduce_return(
    callable_: CallableDeclaration,
    context: Optional[TypeContext] = None,
    reporter: Optional[DiagnosticCollector] = None,
) -> TypeKind:
    """
    Deduce the return type of a callable declared with ``auto``.

    A trailing annotation always wins and is evaluated against the
    callable's own parameters, so several or recursive return paths are
    fine.  Without one, the body must hold exactly one return path, and it
    must not recurse.
    """
    ctx = context or DEFAULT_CONTEXT
    trailing: Optional[Union[TypeKind, Decltype]] = callable_.trailing

    if isinstance(trailing, Decltype):
        deduced = expression_type(trailing.expr, callable_, ctx)
        if deduced.is_unknown:
            _report(reporter, DiagnosticKind.NO_DEDUCIBLE_RETURN,
                    f"cannot evaluate '{trailing}' against the parameters of '{callable_.name}'")
        return deduced
    if trailing is not None:
        return trailing

    paths = callable_.return_paths
    if len(paths) != 1:
        reason = ("has no body" if not callable_.has_body
                  else f"has {len(paths)} return paths")
        _report(reporter, DiagnosticKind.NO_DEDUCIBLE_RETURN,
                f"'{callable_.name}' has no trailing return type and {reason}")
        return UNKNOWN

    expr = paths[0].expr
    if callable_.is_recursive(expr):
        _report(reporter, DiagnosticKind.NO_DEDUCIBLE_RETURN,
                f"'{callable_.name}' returns a call to itself before its type is known")
        return UNKNOWN

    deduced = expression_type(expr, callable_, ctx)
    if deduced.is_unknown:
        _report(reporter, DiagnosticKind.NO_DEDUCIBLE_RETURN,
                f"cannot determine the type of 'return {expr}' in '{callable_.name}'")
    _log.debug("return type of %s deduced as %s", callable_.name, deduced)
    return deduced


__all__ = [
    "deduce",
    "deduce_return",
    "expression_type",
    "usual_arithmetic_conversions",
    "integer_promote",
]
