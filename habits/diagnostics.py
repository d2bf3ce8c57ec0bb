"""Debug output for hooks: stdout carries the assistant payload, so diagnostics go to stderr."""

from __future__ import annotations

import os
import sys
import traceback
from typing import List, Optional


_DEBUG_VALUES = {"1", "true", "yes", "on"}


def debug_enabled() -> bool:
    return os.environ.get("CORRECT_HABITS_DEBUG", "").strip().lower() in _DEBUG_VALUES


def _format(component: str, message: str, exc: Optional[BaseException]) -> List[str]:
    head = f"[HABITS][{component}] {message}"
    if exc is None:
        return [head]
    tb = traceback.format_exception(type(exc), exc, exc.__traceback__)
    return [f"{head}: {exc}", "".join(tb).rstrip("\n")]


def log_debug(component: str, message: str, exc: Optional[BaseException] = None) -> None:
    """Write one diagnostic entry when CORRECT_HABITS_DEBUG is on; stdout stays payload-only."""
    if not debug_enabled():
        return
    try:
        sys.stderr.write("\n".join(_format(component, message, exc)) + "\n")
    except (OSError, ValueError):
        # closed or broken stderr; the hook must still exit cleanly
        return
