"""XP conversion and level resolution.

XP is the average productivity percent scaled by 10 and rounded half-up, so a
player averaging 95% shows 950 XP. Levels come from an injected rule table;
when the table cannot be loaded the default table from config is used.
"""

import math
from collections.abc import Sequence
from typing import Protocol

import structlog

from .config import DEFAULT_LEVELS, LevelDefinition
from .models import LevelProgress, LevelRule

logger = structlog.get_logger()


def round_half_up(value: float) -> int:
    """Round to the nearest integer, ties toward +infinity (1.5 -> 2, -0.5 -> 0)."""
    return math.floor(value + 0.5)


def xp_from_average(average_percent: float) -> int:
    return max(0, round_half_up(average_percent * 10))


def default_level_rules(levels: Sequence[LevelDefinition] = DEFAULT_LEVELS) -> list[LevelRule]:
    return [
        LevelRule(level=lvl.level, xp_required=lvl.xp_required, name=lvl.name) for lvl in levels
    ]


def _sorted_rules(rules: Sequence[LevelRule]) -> list[LevelRule]:
    return sorted(rules, key=lambda r: (r.xp_required, r.level))


def resolve_level(xp: int, rules: Sequence[LevelRule]) -> int:
    """Highest level whose threshold is <= xp; the lowest defined level otherwise."""
    ordered = _sorted_rules(rules)
    if not ordered:
        return 1

    level = ordered[0].level
    for rule in ordered:
        if xp >= rule.xp_required:
            level = rule.level
        else:
            break
    return level


def level_progress(xp: int, rules: Sequence[LevelRule]) -> LevelProgress:
    """Progress from the current level's threshold toward the next one."""
    ordered = _sorted_rules(rules)
    if not ordered:
        return LevelProgress(
            current_level=1,
            xp_into_level=max(0, xp),
            xp_for_next_level=0,
            progress_percentage=100.0,
        )

    current_idx = 0
    for idx, rule in enumerate(ordered):
        if xp >= rule.xp_required:
            current_idx = idx
        else:
            break
    current = ordered[current_idx]

    if current_idx + 1 >= len(ordered):
        # Max level reached
        return LevelProgress(
            current_level=current.level,
            xp_into_level=max(0, xp - current.xp_required),
            xp_for_next_level=0,
            progress_percentage=100.0,
        )

    nxt = ordered[current_idx + 1]
    into_level = max(0, xp - current.xp_required)
    span = nxt.xp_required - current.xp_required
    progress = min(100.0, into_level / span * 100) if span > 0 else 100.0
    return LevelProgress(
        current_level=current.level,
        xp_into_level=into_level,
        xp_for_next_level=span,
        progress_percentage=round(progress, 2),
    )


class LevelRuleProvider(Protocol):
    async def get_rules(self) -> list[LevelRule]: ...


class StaticLevelRuleProvider:
    """In-memory level table. ``replace()`` swaps it for subsequent computations."""

    def __init__(self, rules: Sequence[LevelRule] | None = None) -> None:
        self._rules = list(rules) if rules is not None else default_level_rules()

    def replace(self, rules: Sequence[LevelRule]) -> None:
        self._rules = list(rules)
        logger.info("level_rules_replaced", rule_count=len(self._rules))

    async def get_rules(self) -> list[LevelRule]:
        return list(self._rules)


async def load_level_rules(
    provider: LevelRuleProvider | None,
    fallback: Sequence[LevelRule] | None = None,
) -> list[LevelRule]:
    """Fetch the level table, falling back to the defaults on any failure."""
    fallback_rules = list(fallback) if fallback is not None else default_level_rules()
    if provider is None:
        return fallback_rules
    try:
        rules = await provider.get_rules()
    except Exception:
        logger.warning("level_rules_unavailable", fallback="default", exc_info=True)
        return fallback_rules
    if not rules:
        logger.warning("level_rules_empty", fallback="default")
        return fallback_rules
    return _sorted_rules(rules)
