"""
Tuneables resolver for Correct Habits.

Each key of a section is resolved through fixed layers, later layers win:
1) schema default            (habits.tuneables_schema)
2) versioned baseline        (config/tuneables.json)
3) project runtime override  (<project>/.claude/correct-habits/tuneables.json)
4) env override              (opt-in, per key)

The merged section is then validated against the schema, so callers always
get typed, clamped values plus a list of warnings. Every key remembers which
layer supplied it (`sources`), which `correct-habits config` prints.
"""

from __future__ import annotations

import json
import os
from copy import deepcopy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from .tuneables_schema import get_section_defaults, validate_section

DEFAULT_BASELINE_PATH = Path(__file__).resolve().parent.parent / "config" / "tuneables.json"

DETECTION_SECTION = "correction_detection"
SESSION_START_SECTION = "session_start"

ParserFn = Callable[[str], Any]


@dataclass(frozen=True)
class EnvOverride:
    env_name: str
    parser: ParserFn


@dataclass
class ResolvedSection:
    data: Dict[str, Any]
    sources: Dict[str, str]
    warnings: List[str] = field(default_factory=list)

    def source_of(self, key: str) -> str:
        return self.sources.get(key, "unknown")


def _load_layer(path: Optional[Path], section_name: str) -> Dict[str, Any]:
    """One section of a tuneables JSON file; empty when missing or malformed."""
    if path is None or not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8-sig"))
    except (json.JSONDecodeError, OSError, UnicodeDecodeError):
        return {}
    if not isinstance(data, dict):
        return {}
    row = data.get(section_name)
    return dict(row) if isinstance(row, dict) else {}


# ===== Env parsers =====

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _parse_bool(raw: str) -> bool:
    text = str(raw or "").strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"invalid bool: {raw!r}")


def env_bool(name: str) -> EnvOverride:
    return EnvOverride(name, _parse_bool)


def env_str(name: str) -> EnvOverride:
    return EnvOverride(name, lambda raw: str(raw or "").strip())


def env_int(name: str, *, lo: Optional[int] = None, hi: Optional[int] = None) -> EnvOverride:
    def _parse(raw: str) -> int:
        value = int(str(raw).strip())
        if lo is not None:
            value = max(lo, value)
        if hi is not None:
            value = min(hi, value)
        return value

    return EnvOverride(name, _parse)


DETECTION_ENV_OVERRIDES: Dict[str, EnvOverride] = {
    "enabled": env_bool("CORRECT_HABITS_DETECTION"),
    "signals_file": env_str("CORRECT_HABITS_SIGNALS_FILE"),
}

SESSION_START_ENV_OVERRIDES: Dict[str, EnvOverride] = {
    "max_injected_rules": env_int("CORRECT_HABITS_MAX_RULES", lo=1, hi=200),
}

SECTION_ENV_OVERRIDES: Dict[str, Dict[str, EnvOverride]] = {
    DETECTION_SECTION: DETECTION_ENV_OVERRIDES,
    SESSION_START_SECTION: SESSION_START_ENV_OVERRIDES,
}


def _env_layer(overrides: Dict[str, EnvOverride]) -> Tuple[Dict[str, Tuple[str, Any]], List[str]]:
    """{key: (env_name, parsed value)} for every set env var, plus parse warnings."""
    values: Dict[str, Tuple[str, Any]] = {}
    warnings: List[str] = []
    for key, override in overrides.items():
        raw = os.environ.get(override.env_name)
        if raw is None or not raw.strip():
            continue
        try:
            values[key] = (override.env_name, override.parser(raw))
        except (TypeError, ValueError):
            warnings.append(f"invalid_env_override:{override.env_name}")
    return values, warnings


def resolve_section(
    section_name: str,
    *,
    baseline_path: Optional[Path] = None,
    runtime_path: Optional[Path] = None,
    env_overrides: Optional[Dict[str, EnvOverride]] = None,
) -> ResolvedSection:
    """Merge the layers for one section and validate the result."""
    merged: Dict[str, Any] = {}
    sources: Dict[str, str] = {}

    layers = (
        ("schema", get_section_defaults(section_name)),
        ("baseline", _load_layer(baseline_path or DEFAULT_BASELINE_PATH, section_name)),
        ("runtime", _load_layer(runtime_path, section_name)),
    )
    for label, layer in layers:
        for key, value in layer.items():
            merged[key] = deepcopy(value)
            sources[key] = label

    env_values, warnings = _env_layer(env_overrides or {})
    for key, (env_name, value) in env_values.items():
        merged[key] = value
        sources[key] = f"env:{env_name}"

    validated = validate_section(section_name, merged)
    return ResolvedSection(
        data=validated.data,
        sources=sources,
        warnings=warnings + validated.warnings,
    )


def resolve_detection_section(runtime_path: Optional[Path] = None, **kwargs) -> ResolvedSection:
    return resolve_section(
        DETECTION_SECTION,
        runtime_path=runtime_path,
        env_overrides=DETECTION_ENV_OVERRIDES,
        **kwargs,
    )


def resolve_session_start_section(runtime_path: Optional[Path] = None, **kwargs) -> ResolvedSection:
    return resolve_section(
        SESSION_START_SECTION,
        runtime_path=runtime_path,
        env_overrides=SESSION_START_ENV_OVERRIDES,
        **kwargs,
    )


def resolve_all(runtime_path: Optional[Path] = None, **kwargs) -> Dict[str, ResolvedSection]:
    """Every known section, keyed by section name."""
    return {
        name: resolve_section(name, runtime_path=runtime_path, env_overrides=overrides, **kwargs)
        for name, overrides in SECTION_ENV_OVERRIDES.items()
    }
