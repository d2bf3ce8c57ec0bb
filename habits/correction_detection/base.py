"""
Base types for the Correction Detection layer.

The scorer emits one DetectionResult per user message. Category hints are
advisory; the agent that finalizes a rule picks the real category.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class Category(str, Enum):
    """Closed set of rule categories shared with the rule store."""
    NAMING = "naming"
    ERROR_HANDLING = "error-handling"
    ARCHITECTURE = "architecture"
    TESTING = "testing"
    STYLE = "style"
    IMPORTS = "imports"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Any) -> "Category":
        """Map a stored value to a Category, falling back to OTHER."""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower().replace("_", "-")
        for member in cls:
            if member.value == text:
                return member
        return cls.OTHER


CATEGORY_VALUES: Tuple[str, ...] = tuple(c.value for c in Category)


@dataclass
class DetectionResult:
    """Outcome of scoring one message."""
    is_correction: bool = False
    confidence: float = 0.0            # 0.0-1.0
    category_hints: Tuple[Category, ...] = ()
    skip_learning: bool = False
    bad_example: Optional[str] = None
    has_context: bool = False

    # Diagnostics only; names of the signals that fired
    matched_signals: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def empty(cls) -> "DetectionResult":
        return cls()

    @classmethod
    def skipped(cls) -> "DetectionResult":
        return cls(skip_learning=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_correction": self.is_correction,
            "confidence": round(self.confidence, 4),
            "category_hints": [c.value for c in self.category_hints],
            "skip_learning": self.skip_learning,
            "bad_example": self.bad_example,
            "has_context": self.has_context,
            "matched_signals": list(self.matched_signals),
        }
