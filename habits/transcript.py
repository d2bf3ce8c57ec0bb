"""
Transcript capture: turn the assistant's last message into a PriorTurnRecord.

Claude Code transcripts are JSONL; each entry looks like
    {"type": "assistant", "message": {"role": "assistant", "content": [...]}}
where content blocks are {"type": "text", "text": ...} or
{"type": "tool_use", "name": ..., "input": {...}}.
"""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from .correction_detection.prior_turn import PriorTurnRecord
from .diagnostics import log_debug

CODE_SEPARATOR = "\n---\n"


def read_transcript(path: Path) -> List[Dict[str, Any]]:
    """Parse a JSONL transcript, skipping blank and unparsable lines."""
    if not path.exists():
        return []
    entries = []
    try:
        with path.open("r", encoding="utf-8", errors="replace") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    entry = json.loads(line)
                except json.JSONDecodeError:
                    continue
                if isinstance(entry, dict):
                    entries.append(entry)
    except OSError as e:
        log_debug("transcript", f"failed to read {path}", e)
        return []
    return entries


def find_last_assistant_message(entries: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    for entry in reversed(entries):
        message = entry.get("message")
        if isinstance(message, dict) and message.get("role") == "assistant":
            return entry
    return None


def _blocks(entry: Dict[str, Any]) -> List[Dict[str, Any]]:
    content = (entry.get("message") or {}).get("content")
    if isinstance(content, str):
        return [{"type": "text", "text": content}]
    if not isinstance(content, list):
        return []
    return [b for b in content if isinstance(b, dict)]


def extract_text(blocks: List[Dict[str, Any]]) -> str:
    parts = [str(b.get("text") or "") for b in blocks if b.get("type") == "text"]
    return "\n".join(parts).strip()


def _tool_code(name: str, tool_input: Dict[str, Any]) -> List[str]:
    if name == "Edit" and tool_input.get("new_string"):
        return [str(tool_input["new_string"])]
    if name == "Write" and tool_input.get("content"):
        return [str(tool_input["content"])]
    if name == "MultiEdit":
        edits = tool_input.get("edits") or []
        return [str(e["new_string"]) for e in edits if isinstance(e, dict) and e.get("new_string")]
    return []


def build_record(
    session_id: str,
    entry: Dict[str, Any],
    now: Optional[float] = None,
) -> PriorTurnRecord:
    blocks = _blocks(entry)
    tools: List[str] = []
    files: List[str] = []
    code: List[str] = []

    for block in blocks:
        if block.get("type") != "tool_use":
            continue
        name = str(block.get("name") or "unknown")
        tool_input = block.get("input") if isinstance(block.get("input"), dict) else {}
        if name not in tools:
            tools.append(name)
        path = tool_input.get("file_path") or tool_input.get("path")
        if path and str(path) not in files:
            files.append(str(path))
        code.extend(_tool_code(name, tool_input))

    return PriorTurnRecord(
        session_id=session_id or "unknown",
        response_text=extract_text(blocks),
        tools_used=frozenset(tools),
        files_modified=tuple(files),
        code_fragments=CODE_SEPARATOR.join(code),
        captured_at=time.time() if now is None else now,
    )


def build_prior_turn(
    session_id: str,
    transcript_path: Path,
    now: Optional[float] = None,
) -> Optional[PriorTurnRecord]:
    """Record for the last assistant message, or None if there is none."""
    entries = read_transcript(Path(transcript_path))
    if not entries:
        return None
    last = find_last_assistant_message(entries)
    if last is None:
        return None
    return build_record(session_id, last, now)
