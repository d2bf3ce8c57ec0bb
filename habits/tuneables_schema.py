"""
Central schema and validator for Correct Habits tuneables.

Single source of truth for every tuneable section, key, type, default,
min/max bounds, and description. No external dependencies.

Usage:
    from habits.tuneables_schema import validate_section, SCHEMA
    result = validate_section("correction_detection", data)
    for w in result.warnings:
        print(f"[WARN] {w}")
    clean_data = result.data

The multi-signal bonus cap and the context boost cap are deliberately NOT
tuneables; see habits.correction_detection.scorer.
"""

from __future__ import annotations

from collections import namedtuple
from dataclasses import dataclass, field
from typing import Any, Dict, List

# --------------- Schema Primitives ---------------

TuneableSpec = namedtuple("TuneableSpec", [
    "type",          # "int", "float", "bool", "str"
    "default",       # Default value
    "min_val",       # Minimum (None if unbounded or non-numeric)
    "max_val",       # Maximum (None if unbounded or non-numeric)
    "description",   # Human-readable description
], defaults=[None, None, ""])


@dataclass
class ValidationResult:
    """Result of validating a section dict against the schema."""
    data: Dict[str, Any]
    warnings: List[str] = field(default_factory=list)
    clamped: List[str] = field(default_factory=list)
    defaults_applied: List[str] = field(default_factory=list)
    unknown_keys: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return len(self.warnings) == 0


# --------------- Full Schema Definition ---------------

SCHEMA: Dict[str, Dict[str, TuneableSpec]] = {
    # ---- correction_detection: per-message scoring ----
    "correction_detection": {
        "enabled": TuneableSpec("bool", True, None, None, "Enable correction detection on user prompts"),
        "min_message_length": TuneableSpec("int", 15, 1, 200, "Messages shorter than this are never scored"),
        "min_confidence": TuneableSpec("float", 0.4, 0.0, 1.0, "Confidence needed to flag a correction"),
        "detection_stale_s": TuneableSpec("int", 300, 10, 3600, "Max age of the prior-turn record for detection"),
        "signals_file": TuneableSpec("str", "", None, None, "Optional YAML signal table replacing the default"),
    },

    # ---- session_start: rule injection ----
    "session_start": {
        "enabled": TuneableSpec("bool", True, None, None, "Inject learned rules at session start"),
        "max_injected_rules": TuneableSpec("int", 20, 1, 200, "Max rules injected per session"),
        "recent_days": TuneableSpec("int", 7, 0, 365, "Rules created within this window get a recency bonus"),
        "cleanup_stale_s": TuneableSpec("int", 1800, 60, 86400, "Prior-turn records older than this are deleted"),
        "existing_names_limit": TuneableSpec("int", 10, 0, 100, "Existing rule names listed in directives"),
    },
}


def get_section_defaults(section_name: str) -> Dict[str, Any]:
    """Return {key: default} for a schema section (empty for unknown sections)."""
    section = SCHEMA.get(section_name, {})
    return {key: spec.default for key, spec in section.items()}


def _coerce(spec: TuneableSpec, value: Any) -> Any:
    if spec.type == "bool":
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in {"1", "true", "yes", "on"}:
            return True
        if text in {"0", "false", "no", "off"}:
            return False
        raise ValueError(f"invalid bool: {value!r}")
    if spec.type == "int":
        if isinstance(value, bool):
            raise ValueError(f"invalid int: {value!r}")
        return int(value)
    if spec.type == "float":
        if isinstance(value, bool):
            raise ValueError(f"invalid float: {value!r}")
        return float(value)
    if spec.type == "str":
        return "" if value is None else str(value)
    return value


def validate_section(section_name: str, data: Dict[str, Any]) -> ValidationResult:
    """Validate one section: coerce types, clamp bounds, fill defaults."""
    section = SCHEMA.get(section_name, {})
    result = ValidationResult(data={})

    for key, spec in section.items():
        if key not in data:
            result.data[key] = spec.default
            result.defaults_applied.append(key)
            continue
        try:
            value = _coerce(spec, data[key])
        except (TypeError, ValueError):
            result.warnings.append(f"{section_name}.{key}: invalid value {data[key]!r}, using default")
            result.data[key] = spec.default
            result.defaults_applied.append(key)
            continue
        if spec.min_val is not None and value < spec.min_val:
            result.clamped.append(key)
            result.warnings.append(f"{section_name}.{key}: {value} below min {spec.min_val}")
            value = type(value)(spec.min_val)
        if spec.max_val is not None and value > spec.max_val:
            result.clamped.append(key)
            result.warnings.append(f"{section_name}.{key}: {value} above max {spec.max_val}")
            value = type(value)(spec.max_val)
        result.data[key] = value

    for key in data:
        if key not in section:
            result.unknown_keys.append(key)
            result.data[key] = data[key]

    return result
