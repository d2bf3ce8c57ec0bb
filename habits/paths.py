"""Per-project storage layout for Correct Habits state files."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union

STATE_DIRNAME = Path(".claude") / "correct-habits"


@dataclass(frozen=True)
class StoragePaths:
    """Where one project's rules, pending rules and prior-turn record live.

    Always built from an explicit project directory; nothing here looks at
    the process working directory or the environment.
    """
    state_dir: Path

    @classmethod
    def for_project(cls, project_dir: Union[str, Path]) -> "StoragePaths":
        return cls(state_dir=Path(project_dir) / STATE_DIRNAME)

    @property
    def patterns_file(self) -> Path:
        return self.state_dir / "patterns.json"

    @property
    def pending_file(self) -> Path:
        return self.state_dir / "pending.json"

    @property
    def last_response_file(self) -> Path:
        return self.state_dir / "last-response.json"

    @property
    def tuneables_file(self) -> Path:
        return self.state_dir / "tuneables.json"

    def ensure(self) -> None:
        self.state_dir.mkdir(parents=True, exist_ok=True)


def read_json(path: Path, default: Any) -> Any:
    """Read a JSON file, returning ``default`` when missing or unparsable."""
    try:
        if path.exists():
            return json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError, UnicodeDecodeError):
        pass
    return default


def write_json_atomic(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + f".tmp.{os.getpid()}")
    try:
        tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        # os.replace is atomic even on Windows (no unlink+rename race)
        os.replace(str(tmp), str(path))
    finally:
        if tmp.exists():
            tmp.unlink()
