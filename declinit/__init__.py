"""declinit: declaration and initialization analyzer for C++.

Given a declaration fragment (identifier, declared or ``auto`` type,
initializer form) the analyzer decides whether it defines a variable or
declares a function, checks every initializer conversion for narrowing and
deduces the type an ``auto`` declaration receives.

Submodules
----------
type_model
    Integral / floating / aggregate / list types, the conversion-rank
    table and ``TypeContext`` (named types per data model).

fragments
    Pre-classified declaration fragments and callables (the input).

disambiguator, conversions, deduction
    The three rule components: most vexing parse resolution, narrowing
    detection, ``auto`` and return-type deduction.

analyzer
    The ``classify → deduce → check`` pipeline producing ``Judgment`` values.

diagnostics, errors, config
    Diagnostic taxonomy, infrastructure exceptions, ``AnalyzerConfig``.

frontend, report, main
    Parsimonious front end for declaration text, output renderers and the
    ``declinit`` command line.

Usage
-----
Programmatic::

    from declinit import DeclarationFragment, Explicit, BraceList, ValueExpr, analyze
    from declinit.type_model import CHAR

    j = analyze(DeclarationFragment("c", Explicit(CHAR), BraceList([ValueExpr.integer(512)])))
    j.diagnostics[0].error_id        # 'narrowingConversion'

Command-line::

    python -m declinit analyze decls.cpp
"""

from __future__ import annotations

__version__: str = "0.1.0"

from .analyzer import Analyzer, Judgment, analyze, analyze_callable, analyze_many
from .config import AnalyzerConfig, load_config
from .conversions import ConversionKind, ConversionResult, check
from .deduction import deduce, deduce_return
from .diagnostics import Diagnostic, DiagnosticKind, DiagnosticSeverity
from .disambiguator import Role, classify
from .errors import ConfigError, DeclinitError, FrontendError, SourceSpan, TypeModelError
from .fragments import (
    BraceList,
    CallableDeclaration,
    DeclarationFragment,
    Empty,
    Explicit,
    Inferred,
    InferredBraced,
    ParenCall,
    SingleValue,
    TypeName,
    ValueExpr,
)
from .frontend import TranslationUnit, parse
from .type_model import DEFAULT_CONTEXT, TypeContext

__all__: list[str] = [
    "__version__",
    "Analyzer", "Judgment", "analyze", "analyze_callable", "analyze_many",
    "AnalyzerConfig", "load_config",
    "ConversionKind", "ConversionResult", "check",
    "deduce", "deduce_return",
    "Diagnostic", "DiagnosticKind", "DiagnosticSeverity",
    "Role", "classify",
    "DeclinitError", "TypeModelError", "FrontendError", "ConfigError", "SourceSpan",
    "DeclarationFragment", "Explicit", "Inferred", "InferredBraced",
    "Empty", "ParenCall", "BraceList", "SingleValue", "TypeName", "ValueExpr",
    "CallableDeclaration",
    "TranslationUnit", "parse",
    "TypeContext", "DEFAULT_CONTEXT",
]
