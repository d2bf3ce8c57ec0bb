"""
Example extraction: best-effort guess at the "what to avoid" fragment.

Rules run in the order of EXTRACTION_RULES and the first one that yields a
term wins. Reordering changes output, so the order is part of the contract:

1. "use A instead of B"   -> B
2. "instead of B"         -> B
3. "don't use B"          -> B
4. "change B to A"        -> B
5. "that's wrong/incorrect" after a file-modifying turn
                          -> first line of the code the assistant wrote

When nothing matches the result is None; whoever finalizes the rule has to
ask the user for an example instead of inventing one.
"""

import re
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from .prior_turn import PriorTurnRecord
from .signals import TERM, TERM_STOPWORDS, strip_quotes

MAX_EXAMPLE_CHARS = 200

_USE_INSTEAD = re.compile(r"\buse\s+(?:`[^`]+`|\"[^\"]+\"|'[^']+'|\S+)\s+instead\s+of\s+" + TERM, re.I)
_INSTEAD_OF = re.compile(r"\binstead\s+of\s+" + TERM, re.I)
_DONT_USE = re.compile(r"\b(?:don'?t|do\s+not)\s+use\s+" + TERM, re.I)
_CHANGE_TO = re.compile(r"\bchange\s+" + TERM + r"\s+to\s+\S+", re.I)
_DISAGREE = re.compile(r"\b(?:that'?s|this\s+is|it'?s)\s+(?:wrong|incorrect)\b", re.I)

# Trailing sentence punctuation that a bare token picks up
_TRAILING = ".,;:!?)"


def _clean(term: Optional[str]) -> Optional[str]:
    if not term:
        return None
    text = term.strip()
    if not (text[:1] in "`'\"" and text[:1] == text[-1:]):
        text = text.rstrip(_TRAILING)
        if text.lower() in TERM_STOPWORDS:
            return None
    text = strip_quotes(text)
    if not text:
        return None
    return text[:MAX_EXAMPLE_CHARS]


def _term_rule(pattern: "re.Pattern") -> Callable[[str, Optional[PriorTurnRecord]], Optional[str]]:
    def _apply(message: str, record: Optional[PriorTurnRecord]) -> Optional[str]:
        match = pattern.search(message)
        return _clean(match.group("term")) if match else None
    return _apply


def _from_prior_code(message: str, record: Optional[PriorTurnRecord]) -> Optional[str]:
    if record is None or not _DISAGREE.search(message):
        return None
    if not record.used_file_tool:
        return None
    for line in record.code_fragments.splitlines():
        if line.strip():
            return line.strip()[:MAX_EXAMPLE_CHARS]
    return None


@dataclass(frozen=True)
class ExtractionRule:
    name: str
    apply: Callable[[str, Optional[PriorTurnRecord]], Optional[str]]


EXTRACTION_RULES: Tuple[ExtractionRule, ...] = (
    ExtractionRule("use_instead_of", _term_rule(_USE_INSTEAD)),
    ExtractionRule("instead_of", _term_rule(_INSTEAD_OF)),
    ExtractionRule("dont_use", _term_rule(_DONT_USE)),
    ExtractionRule("change_to", _term_rule(_CHANGE_TO)),
    ExtractionRule("disagreement_prior_code", _from_prior_code),
)


def extract_bad_example(
    message: str,
    record: Optional[PriorTurnRecord] = None,
    rules: Tuple[ExtractionRule, ...] = EXTRACTION_RULES,
) -> Optional[str]:
    """Return the fragment the user wants avoided, or None.

    ``record`` must already be checked for staleness by the caller.
    """
    if not isinstance(message, str) or not message.strip():
        return None
    for rule in rules:
        found = rule.apply(message, record)
        if found:
            return found
    return None
