"""
Rule store: the per-project collection of learned rules.

On disk (patterns.json):
    {"patterns": [{id, name, description, category, bad_example,
                   good_example, confidence, reasoning, createdAt,
                   hitCount}, ...],
     "version": 1}

Rules that still need a good example wait in pending.json until the user
supplies one. A missing or corrupt file reads as an empty collection.
Writes are whole-file replaces; concurrent sessions are not coordinated.
"""

from __future__ import annotations

import random
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .correction_detection.base import Category
from .correction_detection.prior_turn import parse_timestamp
from .diagnostics import log_debug
from .paths import StoragePaths, read_json, write_json_atomic

SCHEMA_VERSION = 1

_BASE36 = string.digits + string.ascii_lowercase


def new_rule_id(now: Optional[float] = None) -> str:
    """pat_<epoch ms>_<6 random base36 chars>"""
    ms = int((time.time() if now is None else now) * 1000)
    suffix = "".join(random.choice(_BASE36) for _ in range(6))
    return f"pat_{ms}_{suffix}"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _clamp01(value: Any, default: float = 0.0) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError):
        return default
    return max(0.0, min(1.0, v))


def _non_negative_int(value: Any) -> int:
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return 0


@dataclass
class Rule:
    """A learned rule, as persisted."""
    id: str
    name: str
    description: str
    category: Category = Category.OTHER
    bad_example: Optional[str] = None
    good_example: Optional[str] = None
    confidence: float = 0.0
    created_at: str = field(default_factory=_now_iso)
    hit_count: int = 0
    reasoning: Optional[str] = None

    def validate(self) -> None:
        if not self.id:
            raise ValueError("rule id is required")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"rule {self.id}: confidence {self.confidence} outside [0, 1]")
        if self.hit_count < 0:
            raise ValueError(f"rule {self.id}: negative hitCount")

    @property
    def created_ts(self) -> Optional[float]:
        return parse_timestamp(self.created_at)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "confidence": self.confidence,
            "createdAt": self.created_at,
            "hitCount": self.hit_count,
        }
        if self.bad_example:
            out["bad_example"] = self.bad_example
        if self.good_example:
            out["good_example"] = self.good_example
        if self.reasoning:
            out["reasoning"] = self.reasoning
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["Rule"]:
        if not isinstance(data, dict):
            return None
        rule_id = str(data.get("id") or "").strip()
        name = str(data.get("name") or "").strip()
        if not rule_id or not name:
            return None
        return cls(
            id=rule_id,
            name=name,
            description=str(data.get("description") or ""),
            category=Category.parse(data.get("category")),
            bad_example=data.get("bad_example") or None,
            good_example=data.get("good_example") or None,
            confidence=_clamp01(data.get("confidence")),
            created_at=str(data.get("createdAt") or ""),
            hit_count=_non_negative_int(data.get("hitCount")),
            reasoning=data.get("reasoning") or None,
        )


@dataclass
class PendingRule:
    """A rule waiting for the user to supply an example."""
    name: str
    description: str
    bad_example: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out = {"name": self.name, "description": self.description}
        if self.bad_example:
            out["bad_example"] = self.bad_example
        return out

    @classmethod
    def from_dict(cls, data: Any) -> Optional["PendingRule"]:
        if not isinstance(data, dict) or not data.get("name"):
            return None
        return cls(
            name=str(data["name"]),
            description=str(data.get("description") or ""),
            bad_example=data.get("bad_example") or None,
        )


@dataclass
class RuleCollection:
    rules: List[Rule] = field(default_factory=list)
    version: int = SCHEMA_VERSION

    def to_dict(self) -> Dict[str, Any]:
        return {"patterns": [r.to_dict() for r in self.rules], "version": self.version}

    def find(self, rule_id: str) -> Optional[Rule]:
        for rule in self.rules:
            if rule.id == rule_id:
                return rule
        return None

    def is_duplicate(self, rule: Rule) -> bool:
        description = rule.description.strip().lower()
        for existing in self.rules:
            if existing.name == rule.name:
                return True
            if description and existing.description.strip().lower() == description:
                return True
        return False


class RuleStore:
    """Read/modify/write access to one project's rules and pending rules."""

    def __init__(self, paths: StoragePaths):
        self.paths = paths

    def load(self) -> RuleCollection:
        data = read_json(self.paths.patterns_file, None)
        if not isinstance(data, dict):
            if data is not None:
                log_debug("rules", f"ignoring malformed {self.paths.patterns_file}")
            return RuleCollection()

        rows = data.get("patterns")
        rules: List[Rule] = []
        seen_ids = set()
        for row in rows if isinstance(rows, list) else []:
            rule = Rule.from_dict(row)
            if rule is None or rule.id in seen_ids:
                continue
            seen_ids.add(rule.id)
            rules.append(rule)

        version = data.get("version")
        return RuleCollection(
            rules=rules,
            version=version if isinstance(version, int) else SCHEMA_VERSION,
        )

    def save(self, collection: RuleCollection) -> None:
        write_json_atomic(self.paths.patterns_file, collection.to_dict())

    def add(self, rule: Rule) -> bool:
        """Append a rule unless a rule with the same name or description exists."""
        rule.validate()
        collection = self.load()
        if collection.find(rule.id) is not None or collection.is_duplicate(rule):
            return False
        collection.rules.append(rule)
        self.save(collection)
        return True

    def record_hit(self, rule_id: str) -> Optional[Rule]:
        """Increment a rule's hitCount when it was actually applied."""
        collection = self.load()
        rule = collection.find(rule_id)
        if rule is None:
            return None
        rule.hit_count += 1
        self.save(collection)
        return rule

    def existing_names(self, limit: int = 10) -> List[str]:
        """Names of the most recently added rules, oldest first."""
        if limit <= 0:
            return []
        names = [r.name for r in self.load().rules]
        return names[-limit:]

    # ===== Pending =====

    def load_pending(self) -> List[PendingRule]:
        data = read_json(self.paths.pending_file, [])
        if not isinstance(data, list):
            return []
        out = []
        for row in data:
            pending = PendingRule.from_dict(row)
            if pending is not None:
                out.append(pending)
        return out

    def add_pending(self, pending: PendingRule) -> None:
        rows = self.load_pending()
        rows.append(pending)
        write_json_atomic(self.paths.pending_file, [p.to_dict() for p in rows])

    def clear_pending(self) -> int:
        rows = self.load_pending()
        if self.paths.pending_file.exists():
            write_json_atomic(self.paths.pending_file, [])
        return len(rows)
