"""
declinit/analyzer.py
════════════════════

The declaration pipeline: classify → deduce → check.

    DeclarationFragment ──► classify ──► Role
                                │
                                ├─ FUNCTION_DECLARATION ──► Judgment(deduced_type=None)
                                │
                                └─ VARIABLE_DEFINITION
                                        │
                              Explicit(T)?  T  :  deduce(qualifier, initializer)
                                        │
                                   check each initializer element
                                        │
                                        ▼
                                     Judgment

Every analysis owns a fresh ``DiagnosticCollector``; the type context and the
rank table are read-only, so fragments can be analysed on worker threads
(``analyze_many``) with results identical to a serial run.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from .config import DEFAULT_CONFIG, AnalyzerConfig
from .conversions import ConversionKind, ConversionResult, check
from .deduction import deduce, deduce_return
from .diagnostics import (
    Diagnostic,
    DiagnosticCollector,
    DiagnosticKind,
    DiagnosticSeverity,
    narrowing_conversion,
)
from .disambiguator import Role, classify
from .errors import SourceSpan
from .fragments import (
    Argument,
    BraceList,
    CallableDeclaration,
    DeclarationFragment,
    Empty,
    Explicit,
    InitializerForm,
    ParenCall,
    SingleValue,
    TypeName,
    ValueExpr,
)
from .type_model import (
    DEFAULT_CONTEXT,
    Aggregate,
    ConstructorSignature,
    ListOf,
    TypeContext,
    TypeKind,
)

_log = logging.getLogger(__name__)

Analyzable = Union[DeclarationFragment, CallableDeclaration]


# ═════════════════════════════════════════════════════════════════════════
#  PART 1: JUDGMENT
# ═════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Judgment:
    """
    Outcome of analysing one declaration.

    Attributes
    ----------
    identifier   : Declared name
    role         : Variable definition or function declaration
    deduced_type : Declared or deduced type; None for function declarations
                   and failed deductions
    conversions  : One ``ConversionResult`` per checked initializer element
    diagnostics  : Findings in emission order
    return_type  : Deduced return type (callable judgments only)
    location     : Where the declaration starts
    """
    identifier: str
    role: Role
    deduced_type: Optional[TypeKind] = None
    conversions: Tuple[ConversionResult, ...] = ()
    diagnostics: Tuple[Diagnostic, ...] = ()
    return_type: Optional[TypeKind] = None
    location: SourceSpan = SourceSpan()

    @property
    def error_count(self) -> int:
        return sum(1 for d in self.diagnostics if d.is_error)

    @property
    def has_errors(self) -> bool:
        return self.error_count > 0

    def kinds(self) -> Tuple[DiagnosticKind, ...]:
        return tuple(d.kind for d in self.diagnostics)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "identifier": self.identifier,
            "role": self.role.value,
            "deduced_type": str(self.deduced_type) if self.deduced_type is not None else None,
            "conversions": [
                {
                    "kind": c.kind.value,
                    "target": str(c.target),
                    "source": str(c.source),
                    "braced": c.braced,
                    "constant_exempt": c.constant_exempt,
                }
                for c in self.conversions
            ],
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }
        if self.return_type is not None:
            result["return_type"] = str(self.return_type)
        if self.location.line:
            result["line"] = self.location.line
        return result


# ═════════════════════════════════════════════════════════════════════════
#  PART 2: ANALYZER
# ═════════════════════════════════════════════════════════════════════════

class Analyzer:
    """
    Runs the declaration pipeline against one type context.

    Parameters
    ----------
    context:
        Known aggregates, builtin spellings and free functions.
    config:
        Severity and reporting switches.

    Usage
    -----
    >>> analyzer = Analyzer(unit.context)
    >>> judgments = analyzer.analyze_many(unit.fragments)
    """

    def __init__(
        self,
        context: Optional[TypeContext] = None,
        config: Optional[AnalyzerConfig] = None,
    ) -> None:
        self.config = config or DEFAULT_CONFIG
        if context is None:
            context = (DEFAULT_CONTEXT if self.config.data_model == DEFAULT_CONTEXT.data_model
                       else TypeContext(data_model=self.config.data_model))
        self.context = context

    # ── Entry points ──────────────────────────────────────────────────

    def analyze(self, fragment: DeclarationFragment) -> Judgment:
        """Classify, deduce and check one fragment."""
        run = _Run(fragment.identifier, fragment.location, self.context, self.config)
        role = classify(
            fragment,
            self.context,
            run.collector,
            report_vexing_parse=self.config.report_vexing_parse,
        )

        deduced: Optional[TypeKind] = None
        if isinstance(fragment.qualifier, Explicit):
            if role is Role.VARIABLE_DEFINITION:
                deduced = fragment.qualifier.type
                run.check_explicit(deduced, fragment.initializer)
        else:
            t = deduce(fragment.qualifier, fragment.initializer, self.context,
                       run.collector, role=role)
            if role is Role.VARIABLE_DEFINITION and not t.is_unknown:
                deduced = t
                run.check_inferred(deduced, fragment.initializer)

        judgment = run.finish(role, deduced)
        _log.debug("%s: %s, %s, %d diagnostic(s)", fragment.identifier, role.value,
                   deduced, len(judgment.diagnostics))
        return judgment

    def analyze_callable(self, callable_: CallableDeclaration) -> Judgment:
        """Deduce the return type of a callable declared with ``auto``."""
        run = _Run(callable_.name, callable_.location, self.context, self.config)
        t = deduce_return(callable_, self.context, run.collector)
        return run.finish(Role.FUNCTION_DECLARATION, None,
                          return_type=None if t.is_unknown else t)

    def analyze_any(self, item: Analyzable) -> Judgment:
        if isinstance(item, CallableDeclaration):
            return self.analyze_callable(item)
        return self.analyze(item)

    def analyze_many(
        self, items: Iterable[Analyzable], max_workers: Optional[int] = None
    ) -> List[Judgment]:
        """
        Analyse independent declarations, preserving input order.

        With more than one worker the declarations are spread over a thread
        pool; nothing is shared between analyses except read-only state.
        """
        items = list(items)
        workers = max_workers or self.config.max_workers
        if workers <= 1 or len(items) <= 1:
            return [self.analyze_any(item) for item in items]
        _log.debug("analysing %d declarations on %d threads", len(items), workers)
        with ThreadPoolExecutor(max_workers=workers) as pool:
            return list(pool.map(self.analyze_any, items))


class _Run:
    """Mutable state of a single analysis; discarded once the Judgment is built."""

    def __init__(
        self, identifier: str, location: SourceSpan, context: TypeContext, config: AnalyzerConfig
    ) -> None:
        self.identifier = identifier
        self.location = location
        self.context = context
        self.config = config
        self.collector = DiagnosticCollector(identifier, location)
        self.conversions: List[ConversionResult] = []

    def finish(
        self, role: Role, deduced: Optional[TypeKind], return_type: Optional[TypeKind] = None
    ) -> Judgment:
        return Judgment(
            identifier=self.identifier,
            role=role,
            deduced_type=deduced,
            conversions=tuple(self.conversions),
            diagnostics=self.collector.diagnostics,
            return_type=return_type,
            location=self.location,
        )

    # ── Conversions ───────────────────────────────────────────────────

    def convert(self, target: TypeKind, value: ValueExpr, braced: bool) -> ConversionResult:
        result = check(target, value, braced, self.context.table)
        self.conversions.append(result)
        self._report(result)
        return result

    def _report(self, result: ConversionResult) -> None:
        if result.kind is ConversionKind.INCOMPATIBLE:
            self.collector.report(
                DiagnosticKind.INCOMPATIBLE_INITIALIZER,
                f"cannot initialize '{self.identifier}' of type '{result.target}' "
                f"with a value of type '{result.source}'",
                target=result.target, source=result.source,
            )
            return
        if not result.is_narrowing:
            return
        if result.braced:
            severity = (DiagnosticSeverity.ERROR if self.config.narrowing_is_error
                        else DiagnosticSeverity.WARNING)
        elif self.config.implicit_narrowing_warnings:
            severity = None
        else:
            return
        self.collector.emit(narrowing_conversion(
            self.identifier, result.target, result.source, result.value,
            braced=result.braced, severity=severity, location=self.location,
        ))

    # ── Arguments ─────────────────────────────────────────────────────

    def argument_value(self, arg: Argument, declared: Optional[TypeKind]) -> Optional[ValueExpr]:
        """
        The value an argument of a variable definition stands for.

        A call form naming a scalar type with one value argument is a
        functional cast; naming an aggregate it is a temporary of that type;
        naming a free function it is the function's result.
        """
        if isinstance(arg, ValueExpr):
            return arg
        if isinstance(arg, TypeName):
            self.collector.report(
                DiagnosticKind.INCOMPATIBLE_INITIALIZER,
                f"'{arg}' names a type, not a value, in the initializer of '{self.identifier}'",
            )
            return None
        if self.context.is_function(arg.callee):
            return ValueExpr.variable(str(arg), self.context.functions[arg.callee])
        t = declared if arg.callee is None else self.context.lookup_type(arg.callee)
        if t is None:
            self.collector.report(
                DiagnosticKind.INCOMPATIBLE_INITIALIZER,
                f"'{arg.callee}' is neither a type nor a function",
            )
            return None
        if isinstance(t, Aggregate):
            self.construct(self._richest(t), arg.arguments, braced=False)
            return ValueExpr.variable(str(arg), t)
        values = [a for a in arg.arguments if isinstance(a, ValueExpr)]
        if len(arg.arguments) == 1 and values:
            return ValueExpr.explicitly_converted(values[0], t, text=str(arg))
        if not arg.arguments:
            # T() value-initializes to zero
            return ValueExpr(type=t, value=0, constant=True, text=str(arg))
        self.collector.report(
            DiagnosticKind.EXCESS_ELEMENTS,
            f"functional cast '{arg}' takes exactly one value",
        )
        return None

    def _richest(self, t: Aggregate) -> Aggregate:
        return self.context.aggregate(t.name) or t

    # ── Per-target checks ─────────────────────────────────────────────

    def construct(self, target: Aggregate, args: Sequence[Argument], braced: bool) -> None:
        """Select a constructor by arity and check each argument against it."""
        values = [self.argument_value(a, target) for a in args]
        if any(v is None for v in values):
            return
        candidates = target.constructors_with_arity(len(values))
        if not candidates:
            shown = ", ".join(str(c) for c in target.effective_constructors)
            self.collector.report(
                DiagnosticKind.NO_MATCHING_CONSTRUCTOR,
                f"no constructor of '{target}' takes {len(values)} argument(s); "
                f"candidates: {shown}",
                target=target,
            )
            return
        chosen = self._select(candidates, values, braced)
        for param, value in zip(chosen.parameters, values):
            self.convert(param, value, braced)

    def _select(
        self, candidates: Sequence[ConstructorSignature], values: Sequence[ValueExpr], braced: bool
    ) -> ConstructorSignature:
        # first viable candidate in declaration order, else the first one
        table = self.context.table
        for sig in candidates:
            results = [check(p, v, braced, table) for p, v in zip(sig.parameters, values)]
            if all(r.permitted for r in results):
                return sig
        return candidates[0]

    def check_scalar(self, target: TypeKind, elements: Sequence[ValueExpr], braced: bool) -> None:
        if len(elements) > 1:
            self.collector.report(
                DiagnosticKind.EXCESS_ELEMENTS,
                f"excess elements in initializer of scalar '{self.identifier}' "
                f"of type '{target}': {len(elements)} given, at most 1 allowed",
                target=target,
            )
            return
        for value in elements:
            self.convert(target, value, braced)

    def check_explicit(self, target: TypeKind, init: InitializerForm) -> None:
        if isinstance(target, Aggregate):
            self._check_aggregate(self._richest(target), init)
            return

        if isinstance(init, Empty):
            return
        if isinstance(init, SingleValue):
            if isinstance(target, ListOf) and init.braced:
                self.convert(target.element, init.value, braced=True)
            else:
                self.convert(target, init.value, init.braced)
            return
        if isinstance(init, BraceList):
            if isinstance(target, ListOf):
                for value in init.values:
                    self.convert(target.element, value, braced=True)
            else:
                self.check_scalar(target, init.values, braced=True)
            return
        if isinstance(init, ParenCall):
            if init.callee is not None:
                value = self.argument_value(init, target)
                if value is not None:
                    self.convert(target, value, braced=False)
                return
            values = [self.argument_value(a, target) for a in init.arguments]
            if all(v is not None for v in values):
                self.check_scalar(target, values, braced=False)

    def _check_aggregate(self, target: Aggregate, init: InitializerForm) -> None:
        if isinstance(init, Empty):
            self.construct(target, (), braced=False)
        elif isinstance(init, SingleValue):
            if init.value.type == target:
                self.convert(target, init.value, init.braced)
            else:
                self.construct(target, (init.value,), init.braced)
        elif isinstance(init, BraceList):
            if len(init.values) == 1 and init.values[0].type == target:
                self.convert(target, init.values[0], braced=True)
            else:
                self.construct(target, init.values, braced=True)
        elif isinstance(init, ParenCall):
            if init.callee is not None:
                value = self.argument_value(init, target)
                if value is not None:
                    self.convert(target, value, braced=False)
                return
            values = [self.argument_value(a, target) for a in init.arguments]
            if any(v is None for v in values):
                return
            if len(values) == 1 and values[0].type == target:
                self.convert(target, values[0], braced=False)
            else:
                self.construct(target, values, braced=False)

    def check_inferred(self, deduced: TypeKind, init: InitializerForm) -> None:
        if isinstance(deduced, ListOf) and isinstance(init, (BraceList, SingleValue)):
            elements = init.values if isinstance(init, BraceList) else (init.value,)
            for value in elements:
                self.convert(deduced.element, value, braced=True)
        elif isinstance(init, SingleValue):
            self.convert(deduced, init.value, braced=False)
        elif isinstance(init, ParenCall):
            if init.callee is not None:
                value = self.argument_value(init, deduced)
            else:
                value = self.argument_value(init.arguments[0], deduced)
            if value is not None:
                self.convert(deduced, value, braced=False)


# ═════════════════════════════════════════════════════════════════════════
#  PART 3: FUNCTIONAL INTERFACE
# ═════════════════════════════════════════════════════════════════════════

def analyze(
    fragment: DeclarationFragment,
    context: Optional[TypeContext] = None,
    config: Optional[AnalyzerConfig] = None,
) -> Judgment:
    """Analyse one fragment; see ``Analyzer.analyze``."""
    return Analyzer(context, config).analyze(fragment)


def analyze_callable(
    callable_: CallableDeclaration,
    context: Optional[TypeContext] = None,
    config: Optional[AnalyzerConfig] = None,
) -> Judgment:
    return Analyzer(context, config).analyze_callable(callable_)


def analyze_many(
    items: Iterable[Analyzable],
    context: Optional[TypeContext] = None,
    config: Optional[AnalyzerConfig] = None,
    max_workers: Optional[int] = None,
) -> List[Judgment]:
    return Analyzer(context, config).analyze_many(items, max_workers)


__all__ = [
    "Judgment",
    "Analyzer",
    "analyze",
    "analyze_callable",
    "analyze_many",
]
