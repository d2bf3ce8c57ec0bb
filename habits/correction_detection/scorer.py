"""
CorrectionScorer: decides whether a user message is a reusable correction.

Scoring, in order:
1. Skip triggers veto everything (skip_learning=True, confidence 0).
2. Messages under the minimum length are not scored.
3. Plain signals: sum and max of matched weights, union of category hints.
4. With a fresh prior-turn record: context-aware signals (context_weight
   when validated, base_weight otherwise) and an identifier-overlap boost
   when the message quotes a name from the code the assistant just wrote.
5. base = max + min((total - max) * 0.3, 0.2)
   The strongest signal dominates; corroboration adds a capped bonus.
6. Code multiplier: fenced block 1.3, inline code 1.15, code-ish
   punctuation in a longer message 1.05.
7. + min(context_boost, 0.25), clamped to [0, 1].

The scorer is a pure function of (message, record, now): no I/O and no
shared state. The 0.3 / 0.2 / 0.25 constants are fixed, not tuneables.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from typing import FrozenSet, List, Optional, Set

from .base import Category, DetectionResult
from .extractor import extract_bad_example
from .prior_turn import DETECTION_STALE_S, PriorTurnRecord, fresh_or_none
from .signals import DEFAULT_SIGNAL_TABLE, SignalTable, iter_matches, strip_quotes
from .skip import find_skip_trigger

log = logging.getLogger("habits.scorer")

MIN_MESSAGE_LENGTH = 15
MIN_CONFIDENCE = 0.4

MULTI_SIGNAL_FACTOR = 0.3
MULTI_SIGNAL_CAP = 0.2
CONTEXT_BOOST_CAP = 0.25
IDENTIFIER_OVERLAP_BOOST = 0.1

FENCED_CODE_BOOST = 1.3
INLINE_CODE_BOOST = 1.15
CODE_PUNCTUATION_BOOST = 1.05
CODE_PUNCTUATION_MIN_LENGTH = 30

_FENCED_BLOCK = re.compile(r"```[\s\S]*?\n[\s\S]*?```")
_INLINE_CODE = re.compile(r"`[^`\n]+`")
_CODE_PUNCTUATION = re.compile(r"[{}\[\];=<>]|\(\)|=>|::|->")

_IDENTIFIER = re.compile(r"\b[A-Za-z_][A-Za-z0-9_]{2,}\b")
# Apostrophes inside words (don't, it's) never open or close a quoted span
_QUOTED = re.compile(r"`([^`\n]+)`|\"([^\"\n]+)\"|(?<!\w)'([^'\n]+)'(?!\w)")

# English/JS/Python flavored; other vocabularies may slip through
IDENTIFIER_STOPWORDS: FrozenSet[str] = frozenset({
    "and", "async", "await", "break", "case", "catch", "class", "const",
    "continue", "def", "default", "del", "elif", "else", "export", "extends",
    "false", "finally", "for", "from", "function", "global", "import", "lambda",
    "let", "new", "none", "not", "null", "pass", "return", "self", "static",
    "super", "switch", "this", "throw", "true", "try", "typeof", "undefined",
    "var", "void", "while", "with", "yield",
})

_CURLY_QUOTES = str.maketrans({"‘": "'", "’": "'", "“": '"', "”": '"'})


@dataclass(frozen=True)
class DetectionConfig:
    """Resolved knobs the scorer needs; built at the hook/CLI boundary."""
    min_message_length: int = MIN_MESSAGE_LENGTH
    min_confidence: float = MIN_CONFIDENCE
    detection_stale_s: float = DETECTION_STALE_S


def normalize_message(message: str) -> str:
    return message.translate(_CURLY_QUOTES).strip()


def code_multiplier(message: str) -> float:
    """Evidence multiplier for code in the message; never below 1.0."""
    if _FENCED_BLOCK.search(message):
        return FENCED_CODE_BOOST
    if _INLINE_CODE.search(message):
        return INLINE_CODE_BOOST
    if len(message) > CODE_PUNCTUATION_MIN_LENGTH and _CODE_PUNCTUATION.search(message):
        return CODE_PUNCTUATION_BOOST
    return 1.0


def extract_identifiers(code: str) -> Set[str]:
    """Identifier-shaped tokens from code, minus language keywords."""
    if not code:
        return set()
    return {
        token for token in _IDENTIFIER.findall(code)
        if token.lower() not in IDENTIFIER_STOPWORDS
    }


def quoted_terms(message: str) -> List[str]:
    terms = []
    for groups in _QUOTED.findall(message):
        for group in groups:
            if group:
                terms.append(strip_quotes(group))
    return terms


def identifier_overlap(message: str, record: PriorTurnRecord) -> bool:
    identifiers = extract_identifiers(record.code_fragments)
    if not identifiers:
        return False
    return any(term in identifiers for term in quoted_terms(message))


def combine(total_weight: float, max_weight: float) -> float:
    return max_weight + min((total_weight - max_weight) * MULTI_SIGNAL_FACTOR, MULTI_SIGNAL_CAP)


class CorrectionScorer:
    """
    Scores user messages against an injected SignalTable.

    Usage:
        scorer = CorrectionScorer()
        result = scorer.score("We always use early returns", record)
    """

    def __init__(
        self,
        table: SignalTable = DEFAULT_SIGNAL_TABLE,
        config: Optional[DetectionConfig] = None,
    ):
        self.table = table
        self.config = config or DetectionConfig()

    def score(
        self,
        message: str,
        record: Optional[PriorTurnRecord] = None,
        now: Optional[float] = None,
    ) -> DetectionResult:
        if not isinstance(message, str):
            return DetectionResult.empty()
        text = normalize_message(message)

        skip = find_skip_trigger(text, self.table)
        if skip is not None:
            log.debug("Skip trigger %s matched; not learning", skip.name)
            return DetectionResult.skipped()

        if len(text) < self.config.min_message_length:
            return DetectionResult.empty()

        # Staleness is re-checked on every call
        now = time.time() if now is None else now
        context = fresh_or_none(record, self.config.detection_stale_s, now)

        total_weight = 0.0
        max_weight = 0.0
        context_boost = 0.0
        hints: List[Category] = []
        matched: List[str] = []

        def _note_hint(category: Optional[Category]) -> None:
            if category is not None and category not in hints:
                hints.append(category)

        for signal, _ in iter_matches(self.table.signals, text):
            total_weight += signal.weight
            max_weight = max(max_weight, signal.weight)
            _note_hint(signal.category_hint)
            matched.append(signal.name)

        if context is not None:
            for signal, match in iter_matches(self.table.context_signals, text):
                validated = signal.validate(match, context)
                weight = signal.context_weight if validated else signal.base_weight
                total_weight += weight
                max_weight = max(max_weight, weight)
                if validated:
                    context_boost += signal.context_weight - signal.base_weight
                _note_hint(signal.category_hint)
                matched.append(signal.name if validated else f"{signal.name}:unvalidated")

            if identifier_overlap(text, context):
                context_boost += IDENTIFIER_OVERLAP_BOOST
                matched.append("identifier_overlap")

        bad_example = extract_bad_example(text, context)

        confidence = 0.0
        if max_weight > 0:
            confidence = combine(total_weight, max_weight) * code_multiplier(text)
        confidence += min(context_boost, CONTEXT_BOOST_CAP)
        confidence = max(0.0, min(1.0, confidence))

        return DetectionResult(
            is_correction=confidence >= self.config.min_confidence,
            confidence=confidence,
            category_hints=tuple(hints),
            skip_learning=False,
            bad_example=bad_example,
            has_context=context is not None,
            matched_signals=tuple(matched),
        )


_default_scorer: Optional[CorrectionScorer] = None


def get_scorer() -> CorrectionScorer:
    """Shared scorer over the built-in signal table."""
    global _default_scorer
    if _default_scorer is None:
        _default_scorer = CorrectionScorer()
    return _default_scorer


def detect_correction(
    message: str,
    record: Optional[PriorTurnRecord] = None,
    now: Optional[float] = None,
) -> DetectionResult:
    return get_scorer().score(message, record, now)
