"""
Session-start context: restate learned rules and ask for missing examples.

Output is the JSON object the SessionStart hook prints:
    {"context": "<markdown>", "continue": true}
"""

from __future__ import annotations

import time
from typing import Any, Dict, List, Optional, Sequence

from .correction_detection.prior_turn import CLEANUP_STALE_S, PriorTurnRecord
from .diagnostics import log_debug
from .paths import StoragePaths, read_json
from .prioritizer import InjectionConfig, prioritize_rules
from .rules import PendingRule, Rule, RuleStore


def cleanup_stale_state(
    paths: StoragePaths,
    now: Optional[float] = None,
    max_age_s: float = CLEANUP_STALE_S,
) -> bool:
    """Delete the prior-turn record if it is old or unreadable. True if deleted."""
    path = paths.last_response_file
    if not path.exists():
        return False
    now = time.time() if now is None else now
    record = PriorTurnRecord.from_dict(read_json(path, None))
    if record is not None and not record.is_stale(max_age_s, now):
        return False
    try:
        path.unlink()
    except OSError as e:
        log_debug("session_context", f"could not remove {path}", e)
        return False
    return True


def format_rules_for_context(rules: Sequence[Rule]) -> str:
    """Markdown block of rules grouped by category, in first-seen order."""
    if not rules:
        return ""

    by_category: Dict[str, List[Rule]] = {}
    for rule in rules:
        by_category.setdefault(rule.category.value, []).append(rule)

    out = [
        "",
        '<learned_patterns priority="high">',
        "# User's Coding Patterns & Preferences",
        "These patterns were learned from previous corrections. Follow them strictly.",
        "",
    ]
    for category, members in by_category.items():
        out.append(f"## {category[:1].upper()}{category[1:]}")
        out.append("")
        for rule in members:
            out.append(f"### {rule.name}")
            out.append(rule.description)
            out.append("")
            if rule.bad_example:
                out.extend(["❌ Don't:", "```", rule.bad_example, "```", ""])
            if rule.good_example:
                out.extend(["✓ Do:", "```", rule.good_example, "```", ""])
    out.append("</learned_patterns>")
    return "\n".join(out) + "\n"


def format_pending_prompt(pending: Sequence[PendingRule]) -> str:
    if not pending:
        return ""
    out = [
        "",
        "<pattern_examples_needed>",
        "I learned some patterns from your corrections but need examples to apply them correctly.",
        "Please provide a quick code example for each:",
        "",
    ]
    for i, p in enumerate(pending, 1):
        out.append(f"{i}. **{p.name}**: {p.description}")
        if p.bad_example:
            out.append(f"   What NOT to do: `{p.bad_example}`")
        out.append("   → What's the correct way?")
        out.append("")
    out.append('Reply with examples or say "skip" to dismiss.')
    out.append("</pattern_examples_needed>")
    return "\n".join(out) + "\n"


def build_session_context(
    paths: StoragePaths,
    config: Optional[InjectionConfig] = None,
    now: Optional[float] = None,
    cleanup_stale_s: float = CLEANUP_STALE_S,
) -> Dict[str, Any]:
    """Clean up stale state, then render prioritized rules plus pending prompts."""
    now = time.time() if now is None else now
    cleanup_stale_state(paths, now, cleanup_stale_s)

    store = RuleStore(paths)
    top = prioritize_rules(store.load().rules, now=now, config=config)
    context = format_rules_for_context(top) + format_pending_prompt(store.load_pending())
    return {"context": context, "continue": True}
