"""Tests for tuneables resolution: schema -> baseline -> runtime -> env."""

from __future__ import annotations

import json

import pytest

from habits.config_authority import (
    env_int,
    resolve_all,
    resolve_detection_section,
    resolve_section,
    resolve_session_start_section,
)
from habits.tuneables_schema import SCHEMA, get_section_defaults, validate_section


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("CORRECT_HABITS_DETECTION", "CORRECT_HABITS_SIGNALS_FILE", "CORRECT_HABITS_MAX_RULES"):
        monkeypatch.delenv(name, raising=False)


def _write(path, payload):
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_schema_defaults():
    defaults = get_section_defaults("correction_detection")
    assert defaults["min_message_length"] == 15
    assert defaults["min_confidence"] == 0.4
    assert defaults["detection_stale_s"] == 300
    assert get_section_defaults("session_start")["max_injected_rules"] == 20
    assert get_section_defaults("missing") == {}


def test_repo_baseline_matches_schema():
    section = resolve_detection_section()
    assert section.data == get_section_defaults("correction_detection")
    assert section.warnings == []


def test_precedence_runtime_over_baseline(tmp_path):
    baseline = _write(tmp_path / "baseline.json", {"correction_detection": {"min_confidence": 0.5}})
    runtime = _write(tmp_path / "runtime.json", {"correction_detection": {"min_confidence": 0.6}})

    section = resolve_section("correction_detection", baseline_path=baseline)
    assert section.data["min_confidence"] == 0.5
    assert section.sources["min_confidence"] == "baseline"
    assert section.sources["min_message_length"] == "schema"

    section = resolve_section("correction_detection", baseline_path=baseline, runtime_path=runtime)
    assert section.data["min_confidence"] == 0.6
    assert section.sources["min_confidence"] == "runtime"


def test_env_override_wins(tmp_path, monkeypatch):
    runtime = _write(tmp_path / "runtime.json", {"correction_detection": {"enabled": True}})
    monkeypatch.setenv("CORRECT_HABITS_DETECTION", "off")
    section = resolve_detection_section(runtime_path=runtime)
    assert section.data["enabled"] is False
    assert section.sources["enabled"] == "env:CORRECT_HABITS_DETECTION"


def test_invalid_env_is_reported(monkeypatch):
    monkeypatch.setenv("CORRECT_HABITS_DETECTION", "maybe")
    section = resolve_detection_section()
    assert section.data["enabled"] is True
    assert "invalid_env_override:CORRECT_HABITS_DETECTION" in section.warnings


def test_env_int_clamps(monkeypatch):
    monkeypatch.setenv("CORRECT_HABITS_MAX_RULES", "5000")
    assert resolve_session_start_section().data["max_injected_rules"] == 200
    assert env_int("X", lo=1).parser("-4") == 1


def test_out_of_range_values_are_clamped(tmp_path):
    runtime = _write(tmp_path / "runtime.json", {
        "correction_detection": {"min_confidence": 3, "min_message_length": "abc"},
    })
    section = resolve_detection_section(runtime_path=runtime)
    assert section.data["min_confidence"] == 1.0
    assert section.data["min_message_length"] == 15
    assert any("above max" in w for w in section.warnings)
    assert any("invalid value" in w for w in section.warnings)


def test_corrupt_runtime_file_is_ignored(tmp_path):
    runtime = tmp_path / "runtime.json"
    runtime.write_text("{nope", encoding="utf-8")
    assert resolve_detection_section(runtime_path=runtime).data["min_confidence"] == 0.4


def test_validate_section_keeps_unknown_keys():
    result = validate_section("session_start", {"max_injected_rules": 0, "extra": 1})
    assert result.data["max_injected_rules"] == 1
    assert result.clamped == ["max_injected_rules"]
    assert result.unknown_keys == ["extra"]
    assert result.data["extra"] == 1
    assert result.ok is False


def test_every_schema_entry_default_is_within_bounds():
    for section in SCHEMA.values():
        for spec in section.values():
            if spec.min_val is not None:
                assert spec.default >= spec.min_val
            if spec.max_val is not None:
                assert spec.default <= spec.max_val


def test_resolve_all_covers_every_section(tmp_path):
    runtime = _write(tmp_path / "runtime.json", {"session_start": {"recent_days": 3}})
    sections = resolve_all(runtime_path=runtime)
    assert set(sections) == set(SCHEMA)
    assert sections["session_start"].data["recent_days"] == 3
    assert sections["session_start"].source_of("recent_days") == "runtime"
    assert sections["session_start"].source_of("nope") == "unknown"
