"""
declinit/config.py
══════════════════

Analyzer configuration.

Configuration is a frozen dataclass; a JSON file may supply any subset of
its fields::

    {
        "data_model": "LP64",
        "narrowing_is_error": true,
        "report_vexing_parse": true,
        "implicit_narrowing_warnings": true,
        "max_workers": 4,
        "suppressions": ["potentialVexingParse"]
    }

Command-line flags override file values via ``AnalyzerConfig.merged``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Mapping, Union

from .errors import ConfigError

_log = logging.getLogger(__name__)

DATA_MODELS = ("LP64", "ILP32", "LLP64")


@dataclass(frozen=True)
class AnalyzerConfig:
    """Tuning knobs for one analysis run."""
    data_model: str = "LP64"
    narrowing_is_error: bool = True
    report_vexing_parse: bool = True
    implicit_narrowing_warnings: bool = True
    max_workers: int = 1
    suppressions: FrozenSet[str] = frozenset()

    def validate(self) -> List[str]:
        """Return a list of validation problems (empty if valid)."""
        problems: List[str] = []
        if self.data_model not in DATA_MODELS:
            problems.append(
                f"data_model must be one of {', '.join(DATA_MODELS)}, got {self.data_model!r}"
            )
        if self.max_workers < 1:
            problems.append("max_workers must be positive")
        return problems

    def merged(self, **overrides: Any) -> AnalyzerConfig:
        """Copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        if "suppressions" in changes:
            changes["suppressions"] = self.suppressions | frozenset(changes["suppressions"])
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        result = {f.name: getattr(self, f.name) for f in fields(self)}
        result["suppressions"] = sorted(self.suppressions)
        return result


DEFAULT_CONFIG = AnalyzerConfig()

_FIELD_TYPES: Mapping[str, type] = {
    "data_model": str,
    "narrowing_is_error": bool,
    "report_vexing_parse": bool,
    "implicit_narrowing_warnings": bool,
    "max_workers": int,
}


def config_from_mapping(data: Mapping[str, Any], origin: str = "<mapping>") -> AnalyzerConfig:
    """
    Build a validated ``AnalyzerConfig`` from plain data.

    Raises
    ------
    ConfigError
        On unknown keys, values of the wrong type, or failed validation.
    """
    known = {f.name for f in fields(AnalyzerConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"{origin}: unknown configuration keys: {', '.join(unknown)}")

    values: Dict[str, Any] = {}
    for key, value in data.items():
        if key == "suppressions":
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise ConfigError(f"{origin}: 'suppressions' must be a list of error ids")
            values[key] = frozenset(value)
            continue
        expected = _FIELD_TYPES[key]
        # bool is an int subclass; reject it where an int is expected
        if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
            raise ConfigError(
                f"{origin}: '{key}' must be {expected.__name__}, got {type(value).__name__}"
            )
        values[key] = value

    config = AnalyzerConfig(**values)
    problems = config.validate()
    if problems:
        raise ConfigError(f"{origin}: " + "; ".join(problems))
    return config


def load_config(path: Union[str, Path, None]) -> AnalyzerConfig:
    """Load a JSON configuration file; ``None`` gives the defaults."""
    if path is None:
        return DEFAULT_CONFIG
    p = Path(path)
    _log.info("Loading configuration from %s", p)
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"cannot read configuration {p}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"{p}: invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"{p}: configuration must be a JSON object")
    return config_from_mapping(data, origin=str(p))


__all__ = [
    "AnalyzerConfig",
    "DEFAULT_CONFIG",
    "DATA_MODELS",
    "config_from_mapping",
    "load_config",
]
