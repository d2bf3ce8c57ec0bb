"""
Rule prioritizer: picks which learned rules to restate at session start.

score = hitCount * 2 + (1 if created within the last 7 days else 0)

Highest score first; equal scores keep their stored order. The result is
capped so the injected context stays bounded as the collection grows.
Hit counts are incremented elsewhere (RuleStore.record_hit); nothing here
mutates the collection.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .rules import Rule

DAY_S = 24 * 60 * 60


@dataclass(frozen=True)
class InjectionConfig:
    max_rules: int = 20
    recent_days: int = 7
    hit_weight: int = 2
    recent_bonus: int = 1


def rule_score(rule: Rule, now: float, config: InjectionConfig = InjectionConfig()) -> int:
    score = rule.hit_count * config.hit_weight
    created = rule.created_ts
    if created is not None and created > now - config.recent_days * DAY_S:
        score += config.recent_bonus
    return score


def prioritize_rules(
    rules: Sequence[Rule],
    now: Optional[float] = None,
    config: Optional[InjectionConfig] = None,
) -> List[Rule]:
    """Rank rules by usage and recency, truncated to config.max_rules."""
    config = config or InjectionConfig()
    now = time.time() if now is None else now
    # sorted() is stable, so ties keep insertion order
    ranked = sorted(rules, key=lambda r: -rule_score(r, now, config))
    return ranked[: max(0, config.max_rules)]
