"""
declinit/disambiguator.py
═════════════════════════

Variable definition or function declaration?

C++ resolves ``T x(U());`` as a declaration of a function ``x`` taking a
pointer to a function returning ``U``, because anything that *can* be read
as a declaration *is* one ([dcl.ambig.res]).  The front end hands us the
initializer already split into the four ``InitializerForm`` variants, so the
rule is a pure function over that tag:

  * brace, assignment and empty initializers never introduce the
    ambiguity: VARIABLE_DEFINITION;
  * a parenthesized list whose every argument is a type-id form resolves
    to FUNCTION_DECLARATION, including ``T x();``;
  * any value among the arguments makes it a VARIABLE_DEFINITION.

When the author most likely meant to construct a value, a
``PotentialVexingParse`` advisory is emitted; it cannot prove intent from
local information, so it is never an error.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from .diagnostics import DiagnosticCollector, potential_vexing_parse
from .fragments import (
    Argument,
    DeclarationFragment,
    Explicit,
    ParenCall,
    TypeName,
)
from .type_model import DEFAULT_CONTEXT, Aggregate, TypeContext, TypeKind

_log = logging.getLogger(__name__)


class Role(Enum):
    VARIABLE_DEFINITION = "variable-definition"
    FUNCTION_DECLARATION = "function-declaration"


def _declared_type(fragment: DeclarationFragment) -> Optional[TypeKind]:
    if isinstance(fragment.qualifier, Explicit):
        return fragment.qualifier.type
    return None


def _call_type(call: ParenCall, declared: Optional[TypeKind], context: TypeContext) -> Optional[TypeKind]:
    """The type a nested call form names, or None if it names no type."""
    if call.callee is None:
        return declared
    if context.is_function(call.callee):
        return None
    return context.lookup_type(call.callee)


def is_type_id(arg: Argument, declared: Optional[TypeKind], context: TypeContext) -> bool:
    """
    Can *arg* be read as a parameter declaration?

    ``TypeName`` must name a known type; a call form ``U(...)`` must name a
    type and carry only type-id arguments (the abstract declarator of a
    function returning ``U``).
    """
    if isinstance(arg, TypeName):
        return context.is_type_name(arg.name)
    if isinstance(arg, ParenCall):
        if _call_type(arg, declared, context) is None:
            return False
        return all(is_type_id(a, declared, context) for a in arg.arguments)
    return False


def _default_constructible(t: Optional[TypeKind]) -> bool:
    if isinstance(t, Aggregate):
        return t.default_constructible
    return t is not None and t.is_scalar


def _constructed_type(
    fragment: DeclarationFragment, call: ParenCall, context: TypeContext
) -> Optional[TypeKind]:
    """The type the author most likely meant to construct, if any."""
    declared = _declared_type(fragment)
    if not call.arguments:
        return declared if _default_constructible(declared) else None
    for arg in call.arguments:
        if not isinstance(arg, ParenCall) or arg.arguments:
            continue
        t = _call_type(arg, declared, context)
        if isinstance(t, Aggregate) and context.aggregate(t.name) is not None:
            t = context.aggregate(t.name)
        name = arg.callee or (str(declared) if declared is not None else None)
        if _default_constructible(t) and not context.is_function(name):
            return t
    return None


def classify(
    fragment: DeclarationFragment,
    context: Optional[TypeContext] = None,
    reporter: Optional[DiagnosticCollector] = None,
    report_vexing_parse: bool = True,
) -> Role:
    """
    Decide the syntactic role of *fragment*.

    Parameters
    ----------
    fragment:
        The pre-classified declaration.
    context:
        Known type and free-function names; ``DEFAULT_CONTEXT`` if omitted.
    reporter:
        Receives the ``PotentialVexingParse`` advisory, if any.
    report_vexing_parse:
        Set to False to suppress the advisory.
    """
    ctx = context or DEFAULT_CONTEXT
    init = fragment.initializer
    if not isinstance(init, ParenCall) or init.callee is not None:
        return Role.VARIABLE_DEFINITION

    declared = _declared_type(fragment)
    if not all(is_type_id(arg, declared, ctx) for arg in init.arguments):
        return Role.VARIABLE_DEFINITION

    _log.debug("'%s' resolves to a function declaration", fragment.identifier)
    if reporter is not None and report_vexing_parse:
        intended = _constructed_type(fragment, init, ctx)
        if intended is not None:
            reporter.emit(potential_vexing_parse(fragment.identifier, str(intended), fragment.location))
    return Role.FUNCTION_DECLARATION


__all__ = ["Role", "classify", "is_type_id"]
