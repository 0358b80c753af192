# declinit/errors.py
"""
Infrastructure error types for declinit.

Analysis problems in a declaration are never raised: they are reported as
``Diagnostic`` values attached to the fragment's ``Judgment`` (see
``declinit.diagnostics``).  The exceptions here cover the surrounding
machinery only.

Error Hierarchy:
────────────────
    DeclinitError (base)
    ├── TypeModelError   - malformed rank table / unknown data model
    ├── FrontendError    - declaration source text could not be parsed
    └── ConfigError      - invalid analyzer configuration
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class SourceSpan:
    """A region of declaration source text (1-based line and column)."""
    line: int = 0
    column: int = 0
    end_column: Optional[int] = None
    file: str = ""

    def __str__(self) -> str:
        prefix = f"{self.file}:" if self.file else ""
        if self.column:
            return f"{prefix}{self.line}:{self.column}"
        return f"{prefix}{self.line}"

    @classmethod
    def from_offset(cls, text: str, offset: int, file: str = "") -> SourceSpan:
        """Locate a character offset within *text*."""
        line = text.count("\n", 0, offset) + 1
        column = offset - (text.rfind("\n", 0, offset) + 1) + 1
        return cls(line=line, column=column, file=file)


class DeclinitError(Exception):
    """Base class for every exception raised by declinit."""

    code: str = "DI-9000"

    def __init__(self, message: str, *, span: Optional[SourceSpan] = None) -> None:
        self.message = message
        self.span = span
        super().__init__(self.format())

    def format(self) -> str:
        if self.span is not None:
            return f"{self.span}: {self.message} [{self.code}]"
        return f"{self.message} [{self.code}]"


class TypeModelError(DeclinitError):
    code = "DI-9100"


class FrontendError(DeclinitError):
    """Declaration text is malformed or names something unknown."""
    code = "DI-9200"


class ConfigError(DeclinitError):
    code = "DI-9300"


__all__ = [
    "SourceSpan",
    "DeclinitError",
    "TypeModelError",
    "FrontendError",
    "ConfigError",
]
