"""
Correct Habits Correction Detection Layer

Decides whether a user message is a correction worth turning into a rule:
- SignalTable: weighted triggers, context-aware triggers, skip triggers
- CorrectionScorer: multi-signal confidence + category hints
- PriorTurnRecord: what the assistant did last turn, for validation
- extract_bad_example: best-effort "what to avoid" fragment
- format_instruction: directive text for the assistant
"""

from .base import Category, CATEGORY_VALUES, DetectionResult
from .signals import (
    ContextSignal,
    DEFAULT_SIGNAL_TABLE,
    Signal,
    SignalTable,
    SkipTrigger,
    load_signal_table,
    parse_signal_table,
)
from .skip import find_skip_trigger, is_skip_requested
from .prior_turn import (
    CLEANUP_STALE_S,
    DETECTION_STALE_S,
    PriorTurnRecord,
    fresh_or_none,
    load_prior_turn,
    save_prior_turn,
)
from .extractor import EXTRACTION_RULES, extract_bad_example
from .scorer import CorrectionScorer, DetectionConfig, detect_correction, get_scorer
from .formatter import confidence_label, format_instruction

__all__ = [
    "Category",
    "CATEGORY_VALUES",
    "DetectionResult",
    "ContextSignal",
    "DEFAULT_SIGNAL_TABLE",
    "Signal",
    "SignalTable",
    "SkipTrigger",
    "load_signal_table",
    "parse_signal_table",
    "find_skip_trigger",
    "is_skip_requested",
    "CLEANUP_STALE_S",
    "DETECTION_STALE_S",
    "PriorTurnRecord",
    "fresh_or_none",
    "load_prior_turn",
    "save_prior_turn",
    "EXTRACTION_RULES",
    "extract_bad_example",
    "CorrectionScorer",
    "DetectionConfig",
    "detect_correction",
    "get_scorer",
    "confidence_label",
    "format_instruction",
]
