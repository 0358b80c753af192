"""
declinit/diagnostics.py
═══════════════════════

Diagnostic values produced by the analyzer.

The analyzer never renders text and never raises for a bad fragment: every
problem is a ``Diagnostic`` attached to the fragment's ``Judgment``.  The
taxonomy decides what a consumer may do next:

  ADVISORY    informational, never blocks deduction
              (PotentialVexingParse, ImplicitNarrowing)
  REJECTED    one conversion or deduction is invalid; the rest of the
              fragment is still analysed
              (NarrowingConversion, AmbiguousList, IncompatibleInitializer,
               ExcessElements, NoMatchingConstructor)
  STRUCTURAL  no value-typed judgment is possible
              (NotAValue, NoTrailingAnnotationAndNoDeducibleBody,
               MissingInitializer)

Diagnostics serialise to the cppcheck addon JSON protocol and to GCC-style
one-liners, like the cppcheck addons this package sits next to.
"""

from __future__ import annotations

import json
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from fnmatch import fnmatch
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set, Tuple, Union

from .errors import SourceSpan
from .type_model import TypeKind


class DiagnosticSeverity(Enum):
    """cppcheck-compatible severity levels."""
    ERROR = "error"
    WARNING = "warning"
    INFORMATION = "information"


class DiagnosticCategory(Enum):
    ADVISORY = "advisory"
    REJECTED = "rejected"
    STRUCTURAL = "structural"


class DiagnosticKind(Enum):
    """
    Every diagnostic the analyzer can produce.

    Value: (error id, code, category, default severity).
    """
    POTENTIAL_VEXING_PARSE = (
        "potentialVexingParse", "DI-1001", DiagnosticCategory.ADVISORY, DiagnosticSeverity.WARNING)
    IMPLICIT_NARROWING = (
        "implicitNarrowing", "DI-1002", DiagnosticCategory.ADVISORY, DiagnosticSeverity.WARNING)
    NARROWING_CONVERSION = (
        "narrowingConversion", "DI-2001", DiagnosticCategory.REJECTED, DiagnosticSeverity.ERROR)
    AMBIGUOUS_LIST = (
        "ambiguousList", "DI-2002", DiagnosticCategory.REJECTED, DiagnosticSeverity.ERROR)
    INCOMPATIBLE_INITIALIZER = (
        "incompatibleInitializer", "DI-2003", DiagnosticCategory.REJECTED, DiagnosticSeverity.ERROR)
    EXCESS_ELEMENTS = (
        "excessElements", "DI-2004", DiagnosticCategory.REJECTED, DiagnosticSeverity.ERROR)
    NO_MATCHING_CONSTRUCTOR = (
        "noMatchingConstructor", "DI-2005", DiagnosticCategory.REJECTED, DiagnosticSeverity.ERROR)
    NOT_A_VALUE = (
        "notAValue", "DI-3001", DiagnosticCategory.STRUCTURAL, DiagnosticSeverity.ERROR)
    NO_DEDUCIBLE_RETURN = (
        "noTrailingAnnotationAndNoDeducibleBody", "DI-3002",
        DiagnosticCategory.STRUCTURAL, DiagnosticSeverity.ERROR)
    MISSING_INITIALIZER = (
        "missingInitializer", "DI-3003", DiagnosticCategory.STRUCTURAL, DiagnosticSeverity.ERROR)

    @property
    def error_id(self) -> str:
        return self.value[0]

    @property
    def code(self) -> str:
        return self.value[1]

    @property
    def category(self) -> DiagnosticCategory:
        return self.value[2]

    @property
    def default_severity(self) -> DiagnosticSeverity:
        return self.value[3]

    @classmethod
    def from_error_id(cls, error_id: str) -> DiagnosticKind:
        for kind in cls:
            if kind.error_id == error_id:
                return kind
        raise KeyError(error_id)


@dataclass(frozen=True)
class Diagnostic:
    """
    A single finding about one declaration.

    Attributes
    ----------
    kind       : DiagnosticKind
    message    : Human-readable description
    severity   : DiagnosticSeverity (defaults to the kind's severity)
    identifier : Declared name the finding belongs to
    location   : Source location, ``SourceSpan()`` when unknown
    target     : Conversion target type (conversion diagnostics)
    source     : Conversion source type (conversion diagnostics)
    value      : Constant value involved, if known
    """
    kind: DiagnosticKind
    message: str
    severity: Optional[DiagnosticSeverity] = None
    identifier: str = ""
    location: SourceSpan = SourceSpan()
    target: Optional[TypeKind] = None
    source: Optional[TypeKind] = None
    value: Optional[Union[int, float]] = None

    def __post_init__(self) -> None:
        if self.severity is None:
            object.__setattr__(self, "severity", self.kind.default_severity)

    @property
    def error_id(self) -> str:
        return self.kind.error_id

    @property
    def category(self) -> DiagnosticCategory:
        return self.kind.category

    @property
    def is_error(self) -> bool:
        return self.severity is DiagnosticSeverity.ERROR

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "kind": self.error_id,
            "code": self.kind.code,
            "category": self.category.value,
            "severity": self.severity.value,
            "identifier": self.identifier,
            "message": self.message,
        }
        if self.target is not None:
            result["target"] = str(self.target)
        if self.source is not None:
            result["source"] = str(self.source)
        if self.value is not None:
            result["value"] = self.value
        return result

    def to_cppcheck_json(self) -> Dict[str, Any]:
        """Serialize to cppcheck's JSON addon output format."""
        return {
            "file": self.location.file,
            "linenr": self.location.line,
            "column": self.location.column,
            "severity": self.severity.value,
            "message": self.message,
            "addon": "declinit",
            "errorId": self.error_id,
            "extra": self.identifier,
        }

    def to_json_str(self) -> str:
        return json.dumps(self.to_cppcheck_json())

    def to_gcc_format(self) -> str:
        """GCC-style diagnostic string: file:line:col: severity: message."""
        return f"{self.location}: {self.severity.value}: {self.message} [{self.error_id}]"

    def __str__(self) -> str:
        return self.to_gcc_format()


# ═════════════════════════════════════════════════════════════════════════
#  Constructors for each kind
# ═════════════════════════════════════════════════════════════════════════

def potential_vexing_parse(identifier: str, declared: str, location: SourceSpan = SourceSpan()) -> Diagnostic:
    return Diagnostic(
        DiagnosticKind.POTENTIAL_VEXING_PARSE,
        f"'{identifier}' is parsed as a function declaration, not a {declared} "
        f"object; use braces to construct a value",
        identifier=identifier, location=location,
    )


def narrowing_conversion(
    identifier: str,
    target: TypeKind,
    source: TypeKind,
    value: Optional[Union[int, float]],
    *,
    braced: bool = True,
    severity: Optional[DiagnosticSeverity] = None,
    location: SourceSpan = SourceSpan(),
) -> Diagnostic:
    shown = f" (value {value})" if value is not None else ""
    if braced:
        kind = DiagnosticKind.NARROWING_CONVERSION
        message = (f"narrowing conversion from '{source}' to '{target}'{shown} "
                   f"inside braces in initialization of '{identifier}'")
    else:
        kind = DiagnosticKind.IMPLICIT_NARROWING
        message = (f"implicit conversion from '{source}' to '{target}'{shown} "
                   f"may lose information in initialization of '{identifier}'")
    return Diagnostic(kind, message, severity=severity, identifier=identifier,
                      location=location, target=target, source=source, value=value)


def simple(
    kind: DiagnosticKind,
    identifier: str,
    message: str,
    location: SourceSpan = SourceSpan(),
    **evidence: Any,
) -> Diagnostic:
    return Diagnostic(kind, message, identifier=identifier, location=location, **evidence)


# ═════════════════════════════════════════════════════════════════════════
#  Collection and suppression
# ═════════════════════════════════════════════════════════════════════════

class DiagnosticCollector:
    """
    Ordered sink for diagnostics emitted during one analysis.

    One collector per fragment; it is never shared between analyses.
    """

    def __init__(self, identifier: str = "", location: SourceSpan = SourceSpan()) -> None:
        self.identifier = identifier
        self.location = location
        self._diagnostics: List[Diagnostic] = []

    def emit(self, diag: Diagnostic) -> Diagnostic:
        self._diagnostics.append(diag)
        return diag

    def report(self, kind: DiagnosticKind, message: str, **evidence: Any) -> Diagnostic:
        return self.emit(simple(kind, self.identifier, message, self.location, **evidence))

    @property
    def diagnostics(self) -> Tuple[Diagnostic, ...]:
        return tuple(self._diagnostics)

    @property
    def error_count(self) -> int:
        return sum(1 for d in self._diagnostics if d.is_error)

    def has_kind(self, kind: DiagnosticKind) -> bool:
        return any(d.kind is kind for d in self._diagnostics)

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self._diagnostics)

    def __len__(self) -> int:
        return len(self._diagnostics)


class SuppressionManager:
    """
    Diagnostic suppressions by error id.

    Sources:
      1. Global suppressions (command-line or config)
      2. File-level suppressions, matched exactly, by suffix or fnmatch

    Usage
    -----
    >>> sm = SuppressionManager()
    >>> sm.add_global_suppression("potentialVexingParse")
    >>> sm.add_file_suppression("implicitNarrowing", "legacy/*.decl")
    >>> kept = sm.filter(diagnostics)
    """

    def __init__(self, global_ids: Iterable[str] = ()) -> None:
        self._global: Set[str] = set(global_ids)
        self._file_level: Dict[str, Set[str]] = defaultdict(set)

    def add_global_suppression(self, error_id: str) -> None:
        self._global.add(error_id)

    def add_file_suppression(self, error_id: str, file_pattern: str) -> None:
        self._file_level[file_pattern].add(error_id)

    def is_suppressed(self, diag: Diagnostic) -> bool:
        eid = diag.error_id
        if eid in self._global or "*" in self._global:
            return True
        file = diag.location.file
        for pattern, ids in self._file_level.items():
            if eid not in ids and "*" not in ids:
                continue
            if pattern == file or file.endswith(pattern) or fnmatch(file, pattern):
                return True
        return False

    def filter(self, diagnostics: Iterable[Diagnostic]) -> List[Diagnostic]:
        return [d for d in diagnostics if not self.is_suppressed(d)]


__all__ = [
    "DiagnosticSeverity",
    "DiagnosticCategory",
    "DiagnosticKind",
    "Diagnostic",
    "DiagnosticCollector",
    "SuppressionManager",
    "potential_vexing_parse",
    "narrowing_conversion",
    "simple",
]
