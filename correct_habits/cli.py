#!/usr/bin/env python3
"""
Correct Habits CLI - inspect and exercise correction learning

Usage:
    python -m correct_habits.cli detect "we always use early returns"
    python -m correct_habits.cli rules       # Show learned rules, ranked
    python -m correct_habits.cli pending     # Show rules waiting for examples
    python -m correct_habits.cli context     # Print the session-start payload
    python -m correct_habits.cli capture --transcript t.jsonl
    python -m correct_habits.cli hit <rule_id>
    python -m correct_habits.cli config      # Show resolved tuneables
"""

import argparse
import json
import sys
import time
from pathlib import Path

from habits.config_authority import resolve_all
from habits.correction_detection import confidence_label, format_instruction
from habits.engine import analyze_message, load_session_settings, on_session_start, on_stop
from habits.paths import StoragePaths
from habits.prioritizer import prioritize_rules, rule_score
from habits.rules import RuleStore


def _configure_output():
    """Ensure UTF-8 output on Windows terminals to avoid UnicodeEncodeError."""
    for stream in (sys.stdout, sys.stderr):
        try:
            if hasattr(stream, "reconfigure"):
                stream.reconfigure(encoding="utf-8", errors="replace")
        except Exception:
            pass


def _paths(args) -> StoragePaths:
    return StoragePaths.for_project(Path(args.project or Path.cwd()))


def cmd_detect(args):
    """Score a message the way the UserPromptSubmit hook would."""
    paths = _paths(args)
    result, record = analyze_message(paths, args.message, use_context=not args.no_context)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
        return 0

    if result.skip_learning:
        print("Skip trigger matched: this message will not be learned from.")
        return 0

    label = confidence_label(result.confidence)
    print(f"Correction: {'yes' if result.is_correction else 'no'}")
    print(f"Confidence: {result.confidence:.2f} ({label})")
    print(f"Categories: {', '.join(c.value for c in result.category_hints) or 'none'}")
    print(f"Context:    {'yes' if result.has_context else 'no'}")
    print(f"Bad example: {result.bad_example or '-'}")
    if result.matched_signals:
        print(f"Signals:    {', '.join(result.matched_signals)}")
    if result.is_correction and args.directive:
        print()
        _, _, session_data = load_session_settings(paths)
        limit = int(session_data.get("existing_names_limit", 10))
        names = RuleStore(paths).existing_names(limit)
        print(format_instruction(
            result,
            existing_names=names,
            record=record if result.has_context else None,
            max_existing_names=limit,
        ))
    return 0


def cmd_rules(args):
    """Show learned rules in injection order."""
    paths = _paths(args)
    _, config, _ = load_session_settings(paths)
    rules = RuleStore(paths).load().rules
    ranked = prioritize_rules(rules, config=config)
    if args.limit:
        ranked = ranked[: args.limit]

    if args.json:
        print(json.dumps([r.to_dict() for r in ranked], indent=2))
        return 0

    if not ranked:
        print("No learned rules yet.")
        return 0

    print(f"Learned rules ({len(ranked)} of {len(rules)} shown)")
    for rule in ranked:
        score = rule_score(rule, time.time(), config)
        print(f"  [{score:>3}] {rule.name} ({rule.category.value}, hits={rule.hit_count}) id={rule.id}")
        if rule.description:
            print(f"        {rule.description}")
    return 0


def cmd_pending(args):
    """Show rules that still need an example."""
    store = RuleStore(_paths(args))
    if args.clear:
        print(f"Cleared {store.clear_pending()} pending rule(s).")
        return 0
    pending = store.load_pending()
    if not pending:
        print("No pending rules.")
        return 0
    for i, p in enumerate(pending, 1):
        print(f"{i}. {p.name}: {p.description}")
        if p.bad_example:
            print(f"   bad: {p.bad_example}")
    return 0


def cmd_context(args):
    """Print the SessionStart payload."""
    print(json.dumps(on_session_start(_paths(args)), indent=2 if args.pretty else None))
    return 0


def cmd_capture(args):
    """Capture a prior-turn record from a transcript, as the Stop hook does."""
    record = on_stop(_paths(args), args.session_id, args.transcript)
    if record is None:
        print("No assistant message found; nothing captured.")
        return 1
    print(f"Captured turn: tools={sorted(record.tools_used)} files={list(record.files_modified)}")
    return 0


def cmd_hit(args):
    """Record that a rule was applied."""
    rule = RuleStore(_paths(args)).record_hit(args.rule_id)
    if rule is None:
        print(f"Unknown rule id: {args.rule_id}")
        return 1
    print(f"{rule.name}: hitCount={rule.hit_count}")
    return 0


def cmd_config(args):
    """Show resolved tuneables with their sources."""
    out = {}
    for name, section in resolve_all(runtime_path=_paths(args).tuneables_file).items():
        out[name] = {"data": section.data, "sources": section.sources, "warnings": section.warnings}
    print(json.dumps(out, indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Correct Habits CLI - learn reusable rules from corrections",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  detect      Score a message as a possible correction
  rules       Show learned rules in injection order
  pending     Show (or clear) rules waiting for examples
  context     Print the session-start payload
  capture     Capture a prior-turn record from a transcript
  hit         Record that a rule was applied
  config      Show resolved tuneables

Examples:
  correct-habits detect "use const instead of var"
  correct-habits rules --limit 5
  correct-habits capture --transcript ~/.claude/projects/x/session.jsonl
""",
    )
    parser.add_argument("--project", "-p", default=None, help="project root (default: cwd)")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # detect
    detect_parser = subparsers.add_parser("detect", help="Score a message as a possible correction")
    detect_parser.add_argument("message", help="message text")
    detect_parser.add_argument("--json", action="store_true", help="print the raw detection result")
    detect_parser.add_argument("--no-context", action="store_true", help="ignore the prior-turn record")
    detect_parser.add_argument("--directive", action="store_true", help="also print the directive text")

    # rules
    rules_parser = subparsers.add_parser("rules", help="Show learned rules in injection order")
    rules_parser.add_argument("--limit", type=int, default=0, help="max rules to show")
    rules_parser.add_argument("--json", action="store_true", help="print JSON")

    # pending
    pending_parser = subparsers.add_parser("pending", help="Show rules waiting for examples")
    pending_parser.add_argument("--clear", action="store_true", help="drop all pending rules")

    # context
    context_parser = subparsers.add_parser("context", help="Print the session-start payload")
    context_parser.add_argument("--pretty", action="store_true", help="indent JSON")

    # capture
    capture_parser = subparsers.add_parser("capture", help="Capture a prior-turn record from a transcript")
    capture_parser.add_argument("--transcript", required=True, help="path to transcript JSONL")
    capture_parser.add_argument("--session-id", default="cli", help="session id to record")

    # hit
    hit_parser = subparsers.add_parser("hit", help="Record that a rule was applied")
    hit_parser.add_argument("rule_id", help="rule id (pat_...)")

    # config
    subparsers.add_parser("config", help="Show resolved tuneables")

    return parser


COMMANDS = {
    "detect": cmd_detect,
    "rules": cmd_rules,
    "pending": cmd_pending,
    "context": cmd_context,
    "capture": cmd_capture,
    "hit": cmd_hit,
    "config": cmd_config,
}


def main(argv=None):
    _configure_output()
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0
    return COMMANDS[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
