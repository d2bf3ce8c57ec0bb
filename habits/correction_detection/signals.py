"""
Signal table: weighted textual triggers for correction detection.

Three kinds of entries:
- Signal: plain trigger tested against the message alone.
- ContextSignal: trigger whose weight depends on a validator run against
  the prior-turn record (context_weight when validated, base_weight when not).
- SkipTrigger: "don't learn this" declarations that veto learning.

Weight tiers for plain signals:
- 0.80-0.95 explicit convention language ("we always", "our convention")
- 0.50-0.70 preference / correction language ("instead of", "prefer X over Y")
- 0.20-0.40 weak fix language ("fix this")
- 0.15 category keywords, which mostly exist to carry a category hint

A SignalTable is immutable and versioned. The scorer receives one at
construction; alternate tables can be loaded from YAML.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

import yaml

from .base import Category
from .prior_turn import PriorTurnRecord

log = logging.getLogger("habits.signals")

DEFAULT_TABLE_VERSION = "builtin-3"

Validator = Callable[[re.Match, PriorTurnRecord], bool]

# Quoted span or a bare identifier-ish token; used by term-capturing triggers
TERM = r"(?P<term>`[^`]+`|\"[^\"]+\"|'[^']+'|[\w.$@-]+)"


def _compile(pattern: Union[str, re.Pattern]) -> re.Pattern:
    if isinstance(pattern, re.Pattern):
        return pattern
    return re.compile(pattern, re.IGNORECASE)


def strip_quotes(text: str) -> str:
    text = (text or "").strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "`'\"":
        return text[1:-1].strip()
    return text


def _term(match: re.Match) -> str:
    try:
        raw = (match.group("term") or "").strip()
    except IndexError:
        return ""
    text = strip_quotes(raw)
    # bare tokens pick up sentence-ending dots ("instead of tabs.")
    return text.rstrip(".") if text == raw else text


# Filler words a bare TERM picks up ("don't use a ternary"); never evidence
TERM_STOPWORDS = frozenset({
    "a", "an", "the", "this", "that", "these", "those", "it", "its", "them",
    "my", "your", "our", "their", "some", "any", "one", "to", "of", "in", "on",
})
MIN_TERM_LENGTH = 2


def is_meaningful_term(term: str) -> bool:
    text = (term or "").strip().lower()
    return len(text) >= MIN_TERM_LENGTH and text not in TERM_STOPWORDS


def term_occurs(term: str, text: str) -> bool:
    """Whole-token, case-insensitive occurrence of ``term`` in ``text``."""
    if not term or not text:
        return False
    pattern = r"(?<![\w$])" + re.escape(term) + r"(?![\w$])"
    return re.search(pattern, text, re.IGNORECASE) is not None


# ===== Validators =====

def _code_written(match: re.Match, record: PriorTurnRecord) -> bool:
    return bool(record.code_fragments.strip()) or record.used_file_tool


def _file_tool_used(match: re.Match, record: PriorTurnRecord) -> bool:
    return record.used_file_tool


def _files_modified(match: re.Match, record: PriorTurnRecord) -> bool:
    return bool(record.files_modified)


def _tools_used(match: re.Match, record: PriorTurnRecord) -> bool:
    return bool(record.tools_used)


def _has_response(match: re.Match, record: PriorTurnRecord) -> bool:
    return bool(record.response_text.strip())


def _term_in_code(match: re.Match, record: PriorTurnRecord) -> bool:
    term = _term(match)
    return is_meaningful_term(term) and term_occurs(term, record.code_fragments)


def _term_in_turn(match: re.Match, record: PriorTurnRecord) -> bool:
    term = _term(match)
    if not is_meaningful_term(term):
        return False
    return term_occurs(term, record.code_fragments) or term_occurs(term, record.response_text)


VALIDATORS: Dict[str, Validator] = {
    "code_written": _code_written,
    "file_tool_used": _file_tool_used,
    "files_modified": _files_modified,
    "tools_used": _tools_used,
    "has_response": _has_response,
    "term_in_code": _term_in_code,
    "term_in_turn": _term_in_turn,
}


# ===== Entries =====

@dataclass(frozen=True)
class Signal:
    name: str
    pattern: re.Pattern
    weight: float
    category_hint: Optional[Category] = None

    def search(self, text: str) -> Optional[re.Match]:
        return self.pattern.search(text)


@dataclass(frozen=True)
class ContextSignal:
    name: str
    pattern: re.Pattern
    base_weight: float
    context_weight: float
    category_hint: Optional[Category] = None
    validator: Optional[str] = None

    def search(self, text: str) -> Optional[re.Match]:
        return self.pattern.search(text)

    def validate(self, match: re.Match, record: PriorTurnRecord) -> bool:
        """True when the prior turn supports this signal (no validator means yes)."""
        if self.validator is None:
            return True
        fn = VALIDATORS.get(self.validator)
        if fn is None:
            return False
        return fn(match, record)


@dataclass(frozen=True)
class SkipTrigger:
    name: str
    pattern: re.Pattern

    def search(self, text: str) -> Optional[re.Match]:
        return self.pattern.search(text)


@dataclass(frozen=True)
class SignalTable:
    version: str
    signals: Tuple[Signal, ...] = field(default_factory=tuple)
    context_signals: Tuple[ContextSignal, ...] = field(default_factory=tuple)
    skip_triggers: Tuple[SkipTrigger, ...] = field(default_factory=tuple)

    def stats(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "signals": len(self.signals),
            "context_signals": len(self.context_signals),
            "skip_triggers": len(self.skip_triggers),
        }


def _check_weight(name: str, value: Any) -> float:
    weight = float(value)
    if not 0.0 < weight <= 1.0:
        raise ValueError(f"signal {name!r}: weight {weight} outside (0, 1]")
    return weight


def make_signal(name: str, pattern: str, weight: float, category: Any = None) -> Signal:
    return Signal(
        name=name,
        pattern=_compile(pattern),
        weight=_check_weight(name, weight),
        category_hint=Category.parse(category) if category else None,
    )


def make_context_signal(
    name: str,
    pattern: str,
    base_weight: float,
    context_weight: float,
    category: Any = None,
    validator: Optional[str] = None,
) -> ContextSignal:
    base = _check_weight(name, base_weight)
    ctx = _check_weight(name, context_weight)
    if ctx < base:
        raise ValueError(f"context signal {name!r}: context_weight below base_weight")
    if validator is not None and validator not in VALIDATORS:
        raise ValueError(f"context signal {name!r}: unknown validator {validator!r}")
    return ContextSignal(
        name=name,
        pattern=_compile(pattern),
        base_weight=base,
        context_weight=ctx,
        category_hint=Category.parse(category) if category else None,
        validator=validator,
    )


def make_skip_trigger(name: str, pattern: str) -> SkipTrigger:
    return SkipTrigger(name=name, pattern=_compile(pattern))


# ===== Default table =====

DEFAULT_SIGNALS: Tuple[Signal, ...] = (
    # Explicit convention statements
    make_signal("we_always_never", r"\bwe\s+(always|never)\b", 0.95),
    make_signal("our_convention", r"\bour\s+(convention|standard|style\s+guide|style|pattern|rule|practice)s?\b", 0.9),
    make_signal("convention_is", r"\bthe\s+(convention|rule|standard)\s+(here\s+)?is\b", 0.85),
    make_signal("always_never_use", r"\b(always|never)\s+(use|do|write|add|put|call)\b", 0.85),
    make_signal("in_this_project", r"\bin\s+this\s+(project|repo|repository|codebase|team)\b", 0.8),
    make_signal("we_prefer_avoid", r"\bwe\s+(don'?t|do\s+not|prefer|avoid|use)\b", 0.8),
    make_signal("please_always_never", r"\bplease\s+(always|never|don'?t\s+ever)\b", 0.8),

    # Preference / correction language
    make_signal("instead_of", r"\binstead\s+of\b", 0.7),
    make_signal("prefer_over", r"\bprefer\s+.{1,60}?\s+(over|to|instead)\b", 0.7),
    make_signal("rather_than", r"\brather\s+than\b", 0.65),
    make_signal("dont_use", r"\b(don'?t|do\s+not|stop)\s+(use|using)\b", 0.65),
    make_signal("no_actually", r"\bno[,.!]?\s+(actually|don'?t|use|instead|we|it\s+should)\b", 0.6),
    make_signal("wrong_approach", r"\bwrong\s+(approach|pattern|way|style|convention)\b", 0.6),
    make_signal("rename", r"\b(rename|should\s+be\s+called|call\s+it)\b", 0.55, Category.NAMING),
    make_signal("should_be", r"\bshould\s+(be|use|have|always|never)\b", 0.5),
    make_signal("change_to", r"\bchange\s+\S+.{0,40}?\s+to\b", 0.5),

    # Weak fix language
    make_signal("not_right", r"\bthat'?s\s+not\s+(right|correct|it)\b", 0.35),
    make_signal("fix_this", r"\bfix\s+(this|that|the|it)\b", 0.3),
    make_signal("not_quite", r"\bnot\s+quite\b", 0.3),
    make_signal("actually", r"\bactually\b", 0.25),
    make_signal("try_again", r"\b(try|do\s+it)\s+again\b", 0.2),

    # Category keywords
    make_signal(
        "naming_terms",
        r"\b(camel\s?case|snake[_\s]case|pascal\s?case|kebab[-\s]case|naming|variable\s+names?|function\s+names?|prefix|suffix)\b",
        0.15, Category.NAMING,
    ),
    make_signal(
        "error_terms",
        r"\b(try\s*/\s*catch|try[-\s](except|catch)|exceptions?|error\s+handling|throw|raise|errors?)\b",
        0.15, Category.ERROR_HANDLING,
    ),
    make_signal(
        "architecture_terms",
        r"\b(architecture|layers?|modules?|services?|dependency\s+injection|separation\s+of\s+concerns|coupling|interfaces?|abstractions?)\b",
        0.15, Category.ARCHITECTURE,
    ),
    make_signal(
        "testing_terms",
        r"\b(tests?|testing|unit\s+tests?|mocks?|fixtures?|assertions?|spec\s+files?)\b",
        0.15, Category.TESTING,
    ),
    make_signal(
        "style_terms",
        r"\b(early\s+returns?|nested\s+ifs?|indent(ation)?|semicolons?|quotes|formatting|line\s+length|trailing\s+commas?|ternar(y|ies)|arrow\s+functions?)\b",
        0.15, Category.STYLE,
    ),
    make_signal(
        "imports_terms",
        r"\b(imports?|require|barrel\s+files?|default\s+exports?|named\s+exports?|dependenc(y|ies)|packages?|librar(y|ies))\b",
        0.15, Category.IMPORTS,
    ),
)

DEFAULT_CONTEXT_SIGNALS: Tuple[ContextSignal, ...] = (
    make_context_signal(
        "thats_wrong",
        r"\b(that'?s|this\s+is|it'?s)\s+(wrong|incorrect|not\s+right|broken)\b",
        0.4, 0.8, validator="code_written",
    ),
    make_context_signal(
        "not_like_that",
        r"\b(not\s+like\s+(that|this)|don'?t\s+do\s+(it|that|this)\s+like)\b",
        0.3, 0.6, validator="files_modified",
    ),
    make_context_signal(
        "instead_of_term",
        r"\binstead\s+of\s+" + TERM,
        0.5, 0.75, validator="term_in_turn",
    ),
    make_context_signal(
        "dont_use_term",
        r"\b(?:don'?t|do\s+not|stop)\s+(?:use|using)\s+" + TERM,
        0.5, 0.8, validator="term_in_code",
    ),
    make_context_signal(
        "you_changed",
        r"\byou\s+(changed|removed|deleted|broke|added|renamed)\b",
        0.35, 0.6, validator="file_tool_used",
    ),
    make_context_signal(
        "why_did_you",
        r"\bwhy\s+(did|would)\s+you\b",
        0.3, 0.5, validator="tools_used",
    ),
    make_context_signal(
        "you_suggested",
        r"\byou\s+(said|suggested|proposed)\b",
        0.3, 0.5, validator="has_response",
    ),
)

DEFAULT_SKIP_TRIGGERS: Tuple[SkipTrigger, ...] = (
    make_skip_trigger("just_this_once", r"\bjust\s+(this\s+)?once\b"),
    make_skip_trigger("only_this_time", r"\b(only\s+this\s+(once|time)|this\s+time\s+only)\b"),
    make_skip_trigger(
        "dont_remember",
        r"\b(don'?t|do\s+not|no\s+need\s+to)\s+(remember|learn|save|memorize|record|store)\s+(this|that|it)\b",
    ),
    make_skip_trigger(
        "exception",
        r"\b(make\s+an\s+exception|as\s+an\s+exception|an\s+exception\s+(here|for\s+this|this\s+time)|exception\s+to\s+the\s+rule)\b",
    ),
    make_skip_trigger("one_off", r"\bone[-\s]?(off|time\s+thing)\b"),
    make_skip_trigger("temporary", r"\btemporar(y|ily)\b"),
    make_skip_trigger("for_now", r"\bfor\s+now\b"),
)

DEFAULT_SIGNAL_TABLE = SignalTable(
    version=DEFAULT_TABLE_VERSION,
    signals=DEFAULT_SIGNALS,
    context_signals=DEFAULT_CONTEXT_SIGNALS,
    skip_triggers=DEFAULT_SKIP_TRIGGERS,
)


# ===== YAML loading =====

def _rows(data: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    rows = data.get(key) or []
    if not isinstance(rows, list) or not all(isinstance(r, dict) for r in rows):
        raise ValueError(f"{key} must be a list of mappings")
    return rows


def parse_signal_table(data: Any) -> SignalTable:
    """Build a SignalTable from a parsed YAML mapping. Raises ValueError."""
    if not isinstance(data, dict):
        raise ValueError("signal table must be a mapping")
    try:
        signals = tuple(
            make_signal(r["name"], r["pattern"], r["weight"], r.get("category"))
            for r in _rows(data, "signals")
        )
        context_signals = tuple(
            make_context_signal(
                r["name"],
                r["pattern"],
                r["base_weight"],
                r["context_weight"],
                r.get("category"),
                r.get("validator"),
            )
            for r in _rows(data, "context_signals")
        )
        skip_triggers = tuple(
            make_skip_trigger(r["name"], r["pattern"])
            for r in _rows(data, "skip_triggers")
        )
    except KeyError as e:
        raise ValueError(f"missing field {e}") from e
    except re.error as e:
        raise ValueError(f"bad pattern: {e}") from e

    if not skip_triggers and data.get("inherit_skip_triggers", True):
        skip_triggers = DEFAULT_SKIP_TRIGGERS
    return SignalTable(
        version=str(data.get("version") or "custom"),
        signals=signals,
        context_signals=context_signals,
        skip_triggers=skip_triggers,
    )


def load_signal_table(path: Optional[Union[str, Path]] = None) -> SignalTable:
    """Load a signal table from YAML, falling back to the built-in table."""
    if not path:
        return DEFAULT_SIGNAL_TABLE
    file_path = Path(path).expanduser()
    if not file_path.exists():
        log.debug("Signal table %s not found, using %s", file_path, DEFAULT_TABLE_VERSION)
        return DEFAULT_SIGNAL_TABLE
    try:
        data = yaml.safe_load(file_path.read_text(encoding="utf-8"))
        table = parse_signal_table(data)
    except (OSError, yaml.YAMLError, ValueError, TypeError) as e:
        log.warning("Invalid signal table %s (%s), using %s", file_path, e, DEFAULT_TABLE_VERSION)
        return DEFAULT_SIGNAL_TABLE
    log.debug("Loaded signal table %s from %s", table.version, file_path)
    return table


def iter_matches(entries: Iterable[Any], text: str) -> Iterable[Tuple[Any, re.Match]]:
    for entry in entries:
        match = entry.search(text)
        if match:
            yield entry, match
