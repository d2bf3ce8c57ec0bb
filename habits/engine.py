"""
Correct Habits Engine: entry points called from hooks/observe.py.

  Stop              -> on_stop:          capture the prior-turn record
  UserPromptSubmit  -> on_user_prompt:   score the message, build a directive
  SessionStart      -> on_session_start: clean up, inject learned rules

Every entry point takes explicit StoragePaths; resolving the project
directory from hook input / environment happens only in
resolve_project_dir(). Hooks must never break the session, so each entry
point logs failures via log_debug and returns an empty result.
"""

from __future__ import annotations

import os
import time
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .config_authority import resolve_detection_section, resolve_session_start_section
from .correction_detection import (
    CorrectionScorer,
    DetectionConfig,
    DetectionResult,
    PriorTurnRecord,
    format_instruction,
    load_prior_turn,
    load_signal_table,
    save_prior_turn,
)
from .diagnostics import log_debug
from .paths import StoragePaths
from .prioritizer import InjectionConfig
from .rules import RuleStore
from .session_context import build_session_context
from .transcript import build_prior_turn


def resolve_project_dir(hook_input: Optional[Dict[str, Any]] = None) -> Path:
    """Hook input cwd, then CLAUDE_PROJECT_DIR, then the process cwd."""
    cwd = (hook_input or {}).get("cwd")
    if cwd:
        return Path(str(cwd))
    env_dir = os.environ.get("CLAUDE_PROJECT_DIR", "").strip()
    if env_dir:
        return Path(env_dir)
    return Path.cwd()


def extract_prompt_text(hook_input: Dict[str, Any]) -> str:
    txt = (
        hook_input.get("prompt") or
        hook_input.get("user_prompt") or
        hook_input.get("text") or
        hook_input.get("message") or
        ""
    )
    if isinstance(txt, dict):
        txt = txt.get("text") or ""
    return str(txt).strip()


# ============= Configuration =============

def load_detection_settings(paths: StoragePaths) -> Tuple[bool, DetectionConfig, str]:
    """(enabled, scorer config, signals file) for this project."""
    section = resolve_detection_section(runtime_path=paths.tuneables_file)
    for warning in section.warnings:
        log_debug("engine", f"config: {warning}")
    data = section.data
    config = DetectionConfig(
        min_message_length=int(data["min_message_length"]),
        min_confidence=float(data["min_confidence"]),
        detection_stale_s=float(data["detection_stale_s"]),
    )
    return bool(data["enabled"]), config, str(data.get("signals_file") or "")


def load_session_settings(paths: StoragePaths) -> Tuple[bool, InjectionConfig, Dict[str, Any]]:
    section = resolve_session_start_section(runtime_path=paths.tuneables_file)
    for warning in section.warnings:
        log_debug("engine", f"config: {warning}")
    data = section.data
    config = InjectionConfig(
        max_rules=int(data["max_injected_rules"]),
        recent_days=int(data["recent_days"]),
    )
    return bool(data["enabled"]), config, data


def build_scorer(paths: StoragePaths) -> Tuple[CorrectionScorer, DetectionConfig]:
    _, config, signals_file = load_detection_settings(paths)
    return CorrectionScorer(table=load_signal_table(signals_file), config=config), config


# ============= Engine Entry Points =============

def on_stop(
    paths: StoragePaths,
    session_id: str,
    transcript_path: Optional[str],
    now: Optional[float] = None,
) -> Optional[PriorTurnRecord]:
    """Called at Stop: snapshot the assistant's turn for the next message."""
    if not transcript_path:
        return None
    try:
        record = build_prior_turn(session_id, Path(transcript_path), now)
        if record is None:
            return None
        save_prior_turn(paths.last_response_file, record)
        log_debug(
            "engine",
            f"captured turn: {len(record.tools_used)} tools, {len(record.files_modified)} files",
        )
        return record
    except Exception as e:
        log_debug("engine", "on_stop failed", e)
        return None


def analyze_message(
    paths: StoragePaths,
    message: str,
    now: Optional[float] = None,
    use_context: bool = True,
) -> Tuple[DetectionResult, Optional[PriorTurnRecord]]:
    """Score a message against this project's config and prior-turn record."""
    scorer, config = build_scorer(paths)
    now = time.time() if now is None else now
    record = None
    if use_context:
        record = load_prior_turn(paths.last_response_file, config.detection_stale_s, now)
    return scorer.score(message, record, now), record


def on_user_prompt(
    paths: StoragePaths,
    prompt_text: str,
    now: Optional[float] = None,
) -> Optional[str]:
    """Called at UserPromptSubmit: return a directive when the prompt is a correction."""
    try:
        enabled, _, _ = load_detection_settings(paths)
        if not enabled:
            return None
        result, record = analyze_message(paths, prompt_text, now)
        if result.skip_learning:
            log_debug("engine", "skip trigger matched; not learning")
            return None
        if not result.is_correction:
            return None

        _, _, session_data = load_session_settings(paths)
        limit = int(session_data.get("existing_names_limit", 10))
        names = RuleStore(paths).existing_names(limit)
        return format_instruction(
            result,
            existing_names=names,
            record=record if result.has_context else None,
            max_existing_names=limit,
        )
    except Exception as e:
        log_debug("engine", "on_user_prompt failed", e)
        return None


def on_session_start(paths: StoragePaths, now: Optional[float] = None) -> Dict[str, Any]:
    """Called at SessionStart: stale-state cleanup plus rule injection payload."""
    try:
        enabled, config, data = load_session_settings(paths)
        if not enabled:
            return {"context": "", "continue": True}
        return build_session_context(
            paths,
            config=config,
            now=now,
            cleanup_stale_s=float(data["cleanup_stale_s"]),
        )
    except Exception as e:
        log_debug("engine", "on_session_start failed", e)
        return {"context": "", "continue": True}
