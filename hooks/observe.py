#!/usr/bin/env python3
"""
Correct Habits Hook: learn reusable rules from the user's corrections.

One script handles every hook event; it dispatches on hook_event_name:
- Stop:             snapshot the assistant's last turn (prior-turn record)
- UserPromptSubmit: score the prompt; on a correction, print a directive
- SessionStart:     clean up stale state, print learned rules as JSON

It MUST complete quickly and never fail the session: every error is
logged (CORRECT_HABITS_DEBUG=1) and the script exits 0.

Usage in .claude/settings.json:
{
  "hooks": {
    "Stop": [{"hooks": [{"type": "command", "command": "python /path/to/correct-habits/hooks/observe.py"}]}],
    "UserPromptSubmit": [{"hooks": [{"type": "command", "command": "python /path/to/correct-habits/hooks/observe.py"}]}],
    "SessionStart": [{"hooks": [{"type": "command", "command": "python /path/to/correct-habits/hooks/observe.py"}]}]
  }
}
"""

import json
import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from habits.diagnostics import log_debug
from habits.engine import (
    extract_prompt_text,
    on_session_start,
    on_stop,
    on_user_prompt,
    resolve_project_dir,
)
from habits.paths import StoragePaths


def _emit(text: str) -> None:
    try:
        sys.stdout.write(text.rstrip("\n") + "\n")
        sys.stdout.flush()
    except Exception as e:
        log_debug("observe", "stdout write failed", e)


def main():
    """Main hook entry point."""
    try:
        input_data = json.load(sys.stdin)
    except Exception as e:
        log_debug("observe", "input JSON decode failed", e)
        sys.exit(0)

    if not isinstance(input_data, dict):
        sys.exit(0)

    session_id = input_data.get("session_id") or "unknown"
    hook_event = input_data.get("hook_event_name", "unknown")
    paths = StoragePaths.for_project(resolve_project_dir(input_data))

    try:
        if hook_event == "Stop":
            on_stop(paths, session_id, input_data.get("transcript_path"))

        elif hook_event == "UserPromptSubmit":
            txt = extract_prompt_text(input_data)
            if txt:
                directive = on_user_prompt(paths, txt)
                if directive:
                    _emit(directive)

        elif hook_event == "SessionStart":
            _emit(json.dumps(on_session_start(paths)))

        else:
            log_debug("observe", f"ignoring hook event {hook_event}")
    except Exception as e:
        log_debug("observe", f"{hook_event} handling failed", e)

    sys.exit(0)


if __name__ == "__main__":
    main()
