"""
declinit/report.py
==================

Rendering of judgments for people and tools.

Formats
-------
    gcc       file:line:col: severity: message [errorId], with the source
              line and a caret underneath when the source is available
    json      one cppcheck addon JSON object per diagnostic, one per line
    summary   one line per declaration: role and deduced type, followed by
              its diagnostics
"""

from __future__ import annotations

import os
import sys
from typing import Dict, Iterable, List, Optional, TextIO

from .analyzer import Judgment
from .diagnostics import Diagnostic, DiagnosticSeverity, SuppressionManager
from .disambiguator import Role

FORMATS = ("gcc", "json", "summary")


# ═══════════════════════════════════════════════════════════════════════════
# COLORS
# ═══════════════════════════════════════════════════════════════════════════

class _Colors:
    """ANSI color codes, disabled when not writing to a TTY."""

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled

    def _code(self, code: str) -> str:
        return code if self.enabled else ""

    @property
    def RESET(self) -> str:
        return self._code("\033[0m")

    @property
    def BOLD(self) -> str:
        return self._code("\033[1m")

    @property
    def RED(self) -> str:
        return self._code("\033[31m")

    @property
    def GREEN(self) -> str:
        return self._code("\033[32m")

    @property
    def MAGENTA(self) -> str:
        return self._code("\033[35m")

    @property
    def CYAN(self) -> str:
        return self._code("\033[36m")


def get_colors(stream: TextIO) -> _Colors:
    """Color codes appropriate for *stream*; ``NO_COLOR`` disables them."""
    try:
        is_tty = hasattr(stream, "isatty") and stream.isatty()
    except ValueError:
        is_tty = False
    return _Colors(enabled=is_tty and os.environ.get("NO_COLOR") is None)


# ═══════════════════════════════════════════════════════════════════════════
# REPORTER
# ═══════════════════════════════════════════════════════════════════════════

class Reporter:
    """
    Writes judgments in one of ``FORMATS`` and keeps severity counts.

    Suppressed diagnostics are neither written nor counted.
    """

    def __init__(
        self,
        stream: TextIO = sys.stdout,
        fmt: str = "gcc",
        suppressions: Optional[SuppressionManager] = None,
        colors: Optional[_Colors] = None,
        sources: Optional[Dict[str, str]] = None,
    ) -> None:
        if fmt not in FORMATS:
            raise ValueError(f"unknown report format {fmt!r}")
        self.stream = stream
        self.fmt = fmt
        self.suppressions = suppressions or SuppressionManager()
        self.colors = colors or _Colors(enabled=False)
        self.sources = sources or {}
        self.counts: Dict[DiagnosticSeverity, int] = {s: 0 for s in DiagnosticSeverity}

    @property
    def error_count(self) -> int:
        return self.counts[DiagnosticSeverity.ERROR]

    @property
    def has_errors(self) -> bool:
        return self.error_count > 0

    def kept(self, judgment: Judgment) -> List[Diagnostic]:
        return self.suppressions.filter(judgment.diagnostics)

    def report(self, judgments: Iterable[Judgment]) -> None:
        for judgment in judgments:
            diagnostics = self.kept(judgment)
            for d in diagnostics:
                self.counts[d.severity] += 1
            if self.fmt == "json":
                for d in diagnostics:
                    self.stream.write(d.to_json_str() + "\n")
            elif self.fmt == "summary":
                self.stream.write(format_judgment(judgment) + "\n")
                for d in diagnostics:
                    self.stream.write(f"    {d.severity.value}: {d.message} [{d.error_id}]\n")
            else:
                for d in diagnostics:
                    self._write_gcc(d)

    def _write_gcc(self, diag: Diagnostic) -> None:
        c = self.colors
        color = {
            DiagnosticSeverity.ERROR: c.RED,
            DiagnosticSeverity.WARNING: c.MAGENTA,
            DiagnosticSeverity.INFORMATION: c.CYAN,
        }[diag.severity]
        self.stream.write(
            f"{c.BOLD}{diag.location}: {color}{diag.severity.value}:{c.RESET}"
            f"{c.BOLD} {diag.message}{c.RESET} [{diag.error_id}]\n"
        )
        line = self._source_line(diag)
        if line is not None:
            self.stream.write(f"  {line.rstrip()}\n")
            if diag.location.column > 0:
                padding = " " * (diag.location.column - 1 + 2)
                self.stream.write(f"{c.GREEN}{padding}^{c.RESET}\n")

    def _source_line(self, diag: Diagnostic) -> Optional[str]:
        text = self.sources.get(diag.location.file)
        if text is None or diag.location.line < 1:
            return None
        lines = text.splitlines()
        if diag.location.line > len(lines):
            return None
        return lines[diag.location.line - 1]

    def summary(self) -> str:
        """``N error(s), M warning(s) generated.``, or an empty string."""
        parts = []
        if self.counts[DiagnosticSeverity.ERROR]:
            parts.append(f"{self.counts[DiagnosticSeverity.ERROR]} error(s)")
        if self.counts[DiagnosticSeverity.WARNING]:
            parts.append(f"{self.counts[DiagnosticSeverity.WARNING]} warning(s)")
        if self.counts[DiagnosticSeverity.INFORMATION]:
            parts.append(f"{self.counts[DiagnosticSeverity.INFORMATION]} note(s)")
        return ", ".join(parts) + " generated." if parts else ""


def format_judgment(judgment: Judgment) -> str:
    """One-line description of a judgment."""
    where = f"{judgment.location}: " if judgment.location.line else ""
    if judgment.return_type is not None:
        return f"{where}{judgment.identifier}: function returning {judgment.return_type}"
    if judgment.role is Role.FUNCTION_DECLARATION:
        return f"{where}{judgment.identifier}: function declaration"
    if judgment.deduced_type is None:
        return f"{where}{judgment.identifier}: variable of undeducible type"
    return f"{where}{judgment.identifier}: variable of type {judgment.deduced_type}"


__all__ = ["FORMATS", "Reporter", "format_judgment", "get_colors"]
