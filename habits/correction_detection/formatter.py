"""
Instruction formatter: renders a DetectionResult into a directive for the
assistant.

The directive is opaque text, but it always carries the numeric confidence
and the category hints; the assistant uses both to decide whether to
persist a new rule.
"""

from pathlib import PurePath
from typing import Iterable, List, Optional

from .base import CATEGORY_VALUES, DetectionResult
from .prior_turn import PriorTurnRecord

HEADER = "[CORRECT HABITS]"
MAX_EXISTING_NAMES = 10
MAX_FILES_SHOWN = 3

INCLUDE_CRITERIA = (
    "naming conventions",
    "error handling style",
    "preferred libraries or imports",
    "architectural preferences",
    "testing approaches",
    "code organization and formatting rules",
)

EXCLUDE_CRITERIA = (
    "typo fixes",
    "one-time bug fixes",
    "project-specific values or implementation details",
    "requests the user marked as a one-off",
)


def confidence_label(confidence: float) -> str:
    if confidence >= 0.8:
        return "HIGH"
    if confidence >= 0.6:
        return "MEDIUM"
    return "LOW"


def _basenames(paths: Iterable[str], limit: int = MAX_FILES_SHOWN) -> List[str]:
    names = []
    for path in paths:
        name = PurePath(str(path).replace("\\", "/")).name
        if name and name not in names:
            names.append(name)
        if len(names) >= limit:
            break
    return names


def format_existing_names(names: Iterable[str], limit: int = MAX_EXISTING_NAMES) -> str:
    """Comma-join the most recent rule names (input order is oldest first)."""
    listed = [str(n) for n in names if n]
    if limit <= 0:
        return ""
    return ", ".join(listed[-limit:])


def format_instruction(
    result: DetectionResult,
    existing_names: Optional[Iterable[str]] = None,
    record: Optional[PriorTurnRecord] = None,
    max_existing_names: int = MAX_EXISTING_NAMES,
) -> str:
    """Render the directive shown to the assistant after a detected correction."""
    label = confidence_label(result.confidence)
    hints = ", ".join(c.value for c in result.category_hints) or "none"

    lines = [
        f"{HEADER} Possible reusable rule in the user's last message "
        f"(confidence: {label} {result.confidence:.2f}).",
        f"Category hints: {hints}",
    ]

    if result.has_context and record is not None:
        files = _basenames(record.files_modified)
        files_text = f" (files: {', '.join(files)})" if files else ""
        lines.append(f"Context: compared against your previous response{files_text}")
    else:
        lines.append("Context: none (no recent response on record)")

    if result.bad_example:
        lines.append(f"Likely bad example: `{result.bad_example}`")
    else:
        lines.append("Likely bad example: not found; ask the user for one if needed")

    existing = format_existing_names(existing_names or [], max_existing_names)
    if existing:
        lines.append(f"Existing rules (avoid duplicates): {existing}")

    lines.append("")
    lines.append("If this correction states a reusable coding rule, record it with: "
                 f"name (kebab-case), description, category ({' | '.join(CATEGORY_VALUES)}), "
                 "bad_example, good_example.")
    lines.append("Counts as a rule: " + "; ".join(INCLUDE_CRITERIA) + ".")
    lines.append("Not a rule: " + "; ".join(EXCLUDE_CRITERIA) + ".")
    lines.append("Never invent examples. If the good example is unclear, ask the user for one.")
    return "\n".join(lines)
