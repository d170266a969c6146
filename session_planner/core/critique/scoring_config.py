from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import yaml


DEFAULT_TESTING_KEYWORDS: tuple[str, ...] = (
    "test",
    "tests",
    "testing",
    "tdd",
    "qa",
    "e2e",
    "coverage",
    "verify",
    "validation",
)


@dataclass(frozen=True)
class CritiqueConfig:
    """Thresholds and penalties used by the critique scorer.

    scope_high_hours / scope_medium_hours: a session longer than these is a
    high / medium scope issue. timeline_median_factor: a session longer than
    factor * median duration is a timeline issue (only for plans with at least
    timeline_min_sessions sessions). Overall score starts at 100 and loses
    cycle_penalty per cycle, missing_dependency_penalty per dangling reference,
    duplicate_session_penalty per duplicated number, high_issue_penalty per
    high-severity session issue and session_quality_weight * (100 - average
    session score).
    """

    scope_high_hours: float = 8.0
    scope_medium_hours: float = 6.0
    max_objectives: int = 8
    timeline_median_factor: float = 2.0
    timeline_min_sessions: int = 3
    severity_penalties: dict[str, int] = field(
        default_factory=lambda: {"low": 5, "medium": 10, "high": 20}
    )
    cycle_penalty: int = 30
    missing_dependency_penalty: int = 10
    duplicate_session_penalty: int = 10
    high_issue_penalty: int = 5
    session_quality_weight: float = 0.5
    testing_keywords: tuple[str, ...] = DEFAULT_TESTING_KEYWORDS
    testing_session_min_sessions: int = 3


class CritiqueConfigError(ValueError):
    pass


_INT_FIELDS = {
    "max_objectives",
    "timeline_min_sessions",
    "cycle_penalty",
    "missing_dependency_penalty",
    "duplicate_session_penalty",
    "high_issue_penalty",
    "testing_session_min_sessions",
}
_FLOAT_FIELDS = {
    "scope_high_hours",
    "scope_medium_hours",
    "timeline_median_factor",
    "session_quality_weight",
}


def load_config_file(path: str | Path) -> dict[str, Any]:
    """Load scoring overrides from a YAML mapping of field name -> value."""
    p = Path(path)
    raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise CritiqueConfigError("config file must be a mapping of setting -> value")
    return raw


def config_from_overrides(overrides: dict[str, Any] | None = None) -> CritiqueConfig:
    """Return the default CritiqueConfig with validated overrides applied."""
    base = CritiqueConfig()
    if not overrides:
        return base

    known = {f.name for f in fields(CritiqueConfig)}
    changes: dict[str, Any] = {}
    for k, v in overrides.items():
        if k not in known:
            raise CritiqueConfigError(f"unknown setting: {k}")
        if k in _INT_FIELDS:
            if not isinstance(v, int) or isinstance(v, bool) or v < 0:
                raise CritiqueConfigError(f"{k} must be a non-negative integer")
            changes[k] = v
        elif k in _FLOAT_FIELDS:
            if not isinstance(v, (int, float)) or isinstance(v, bool) or v < 0:
                raise CritiqueConfigError(f"{k} must be a non-negative number")
            changes[k] = float(v)
        elif k == "severity_penalties":
            changes[k] = _severity_penalties(v, base.severity_penalties)
        elif k == "testing_keywords":
            if not isinstance(v, list) or not v or any(not isinstance(x, str) or not x.strip() for x in v):
                raise CritiqueConfigError("testing_keywords must be a non-empty list of strings")
            changes[k] = tuple(x.strip().lower() for x in v)

    cfg = replace(base, **changes)
    if cfg.scope_medium_hours > cfg.scope_high_hours:
        raise CritiqueConfigError("scope_medium_hours must not exceed scope_high_hours")
    return cfg


def load_critique_config(path: str | None) -> CritiqueConfig:
    if not path:
        return config_from_overrides()
    return config_from_overrides(load_config_file(path))


def _severity_penalties(v: Any, defaults: dict[str, int]) -> dict[str, int]:
    if not isinstance(v, dict):
        raise CritiqueConfigError("severity_penalties must be a mapping of severity -> penalty")
    merged = dict(defaults)
    for sev, penalty in v.items():
        if sev not in defaults:
            raise CritiqueConfigError(f"unknown severity: {sev} (choose one of: low, medium, high)")
        if not isinstance(penalty, int) or isinstance(penalty, bool) or penalty < 0:
            raise CritiqueConfigError(f"severity_penalties.{sev} must be a non-negative integer")
        merged[sev] = penalty
    return merged
