"""
Prior-turn record: a snapshot of the assistant's previous turn.

Written once per turn by the Stop hook, read by the scorer and the example
extractor to decide whether an ambiguous correction ("that's wrong")
actually refers to code the assistant just produced. One record per
project; the latest turn replaces the previous one.

Staleness is always evaluated against the caller's clock at read time.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple

from ..diagnostics import log_debug
from ..paths import read_json, write_json_atomic

DETECTION_STALE_S = 5 * 60
CLEANUP_STALE_S = 30 * 60

FILE_MODIFYING_TOOLS = frozenset({"Edit", "Write", "MultiEdit", "NotebookEdit"})


def _to_iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: Any) -> Optional[float]:
    """Parse an ISO-8601 string or epoch number into epoch seconds."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


def _unique(items: Iterable[Any]) -> Tuple[str, ...]:
    seen = []
    for item in items:
        text = str(item)
        if text and text not in seen:
            seen.append(text)
    return tuple(seen)


@dataclass(frozen=True)
class PriorTurnRecord:
    """What the assistant said and touched in its last turn."""
    session_id: str = "unknown"
    response_text: str = ""
    tools_used: FrozenSet[str] = field(default_factory=frozenset)
    files_modified: Tuple[str, ...] = ()
    code_fragments: str = ""
    captured_at: float = field(default_factory=time.time)

    def age_s(self, now: Optional[float] = None) -> float:
        return (time.time() if now is None else now) - self.captured_at

    def is_stale(self, max_age_s: float = DETECTION_STALE_S, now: Optional[float] = None) -> bool:
        return self.age_s(now) > max_age_s

    @property
    def used_file_tool(self) -> bool:
        return bool(self.tools_used & FILE_MODIFYING_TOOLS)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "response": self.response_text,
            "toolsUsed": sorted(self.tools_used),
            "filesModified": list(self.files_modified),
            "codeWritten": self.code_fragments,
            "timestamp": _to_iso(self.captured_at),
        }

    @classmethod
    def from_dict(cls, data: Any) -> Optional["PriorTurnRecord"]:
        """Build a record from its on-disk shape; None if malformed."""
        if not isinstance(data, dict):
            return None
        captured_at = parse_timestamp(data.get("timestamp"))
        if captured_at is None:
            return None
        tools = data.get("toolsUsed") or []
        files = data.get("filesModified") or []
        if not isinstance(tools, list) or not isinstance(files, list):
            return None
        return cls(
            session_id=str(data.get("sessionId") or "unknown"),
            response_text=str(data.get("response") or ""),
            tools_used=frozenset(str(t) for t in tools if t),
            files_modified=_unique(files),
            code_fragments=str(data.get("codeWritten") or ""),
            captured_at=captured_at,
        )


def fresh_or_none(
    record: Optional[PriorTurnRecord],
    max_age_s: float = DETECTION_STALE_S,
    now: Optional[float] = None,
) -> Optional[PriorTurnRecord]:
    """Return the record only if it is a usable, non-stale PriorTurnRecord."""
    if not isinstance(record, PriorTurnRecord):
        return None
    if record.is_stale(max_age_s, now):
        return None
    return record


def load_prior_turn(
    path: Path,
    max_age_s: float = DETECTION_STALE_S,
    now: Optional[float] = None,
) -> Optional[PriorTurnRecord]:
    """Load the record from disk. Missing, corrupt and stale all mean None."""
    data = read_json(path, None)
    if data is None:
        return None
    record = PriorTurnRecord.from_dict(data)
    if record is None:
        log_debug("prior_turn", f"ignoring malformed record at {path}")
        return None
    return fresh_or_none(record, max_age_s, now)


def save_prior_turn(path: Path, record: PriorTurnRecord) -> None:
    write_json_atomic(path, record.to_dict())
