"""Login streak bonus and consistency bonus.

Streak XP is computed outside the productivity average and added to a scope's
XP only when that scope is enabled in ``include_in``. The consistency bonus is
display-only and never changes XP.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import Protocol

import structlog

from .config import ConsistencyBonusConfig, RankingConfig, StreakConfig
from .models import StreakInclusion, StreakXp
from .windows import month_bounds, week_bounds

logger = structlog.get_logger()


def consistency_bonus(streak: int, config: ConsistencyBonusConfig | None = None) -> int:
    """Bonus for consecutive active days, capped per streak band."""
    cfg = config or ConsistencyBonusConfig()
    if streak >= cfg.long_streak_min:
        return min(cfg.long_streak_cap, streak)
    if streak >= cfg.short_streak_min:
        return min(cfg.short_streak_cap, streak * cfg.short_streak_multiplier)
    return 0


@dataclass(frozen=True)
class ScopedXp:
    total: int
    weekly: int
    monthly: int


def apply_streak_bonus(base: ScopedXp, streak: StreakXp, include_in: StreakInclusion) -> ScopedXp:
    """Add streak XP to each scope whose gate is open."""
    return ScopedXp(
        total=base.total + (streak.total if include_in.total else 0),
        weekly=base.weekly + (streak.weekly if include_in.weekly else 0),
        monthly=base.monthly + (streak.monthly if include_in.monthly else 0),
    )


class StreakProvider(Protocol):
    async def get_streak_xp(self, player_id: str) -> StreakXp: ...

    async def include_in(self) -> StreakInclusion: ...


@dataclass(frozen=True)
class StreakAward:
    player_id: str
    day: date
    xp: int


class InMemoryStreakProvider:
    """Daily login bonus registry kept in process memory.

    At most one award per player per calendar day; the amount is fixed at the
    time it is awarded, so later changes to ``daily_bonus_xp`` do not rewrite
    history.
    """

    def __init__(
        self,
        config: StreakConfig | None = None,
        ranking: RankingConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config or StreakConfig()
        self._ranking = ranking or RankingConfig()
        self._clock = clock or (lambda: datetime.now(UTC))
        self._awards: list[StreakAward] = []

    @property
    def config(self) -> StreakConfig:
        return self._config

    def award_if_needed(self, player_id: str) -> tuple[bool, int]:
        """Record today's award for ``player_id``; returns (awarded, xp)."""
        if not self._config.enabled:
            return False, 0
        today = self._clock().date()
        for award in self._awards:
            if award.player_id == player_id and award.day == today:
                return False, award.xp
        xp = self._config.daily_bonus_xp
        self._awards.append(StreakAward(player_id=player_id, day=today, xp=xp))
        logger.info("streak_awarded", player_id=player_id, day=today.isoformat(), xp=xp)
        return True, xp

    def awards_for(self, player_id: str) -> Sequence[StreakAward]:
        return [a for a in self._awards if a.player_id == player_id]

    async def get_streak_xp(self, player_id: str) -> StreakXp:
        now = self._clock()
        week_start, week_end = week_bounds(now, self._ranking.week_start_weekday)
        month_start, month_end = month_bounds(now)
        total = weekly = monthly = 0
        for award in self.awards_for(player_id):
            total += award.xp
            if week_start.date() <= award.day <= week_end.date():
                weekly += award.xp
            if month_start.date() <= award.day <= month_end.date():
                monthly += award.xp
        return StreakXp(total=total, weekly=weekly, monthly=monthly)

    async def include_in(self) -> StreakInclusion:
        flags = self._config.include_in
        return StreakInclusion(total=flags.total, weekly=flags.weekly, monthly=flags.monthly)


async def load_streak(
    provider: StreakProvider | None, player_id: str
) -> tuple[StreakXp, StreakInclusion]:
    """Streak XP and gates for one player; no bonus when the provider fails."""
    if provider is None:
        return StreakXp(), StreakInclusion(total=False, weekly=False, monthly=False)
    try:
        return await provider.get_streak_xp(player_id), await provider.include_in()
    except Exception:
        logger.warning("streak_provider_unavailable", player_id=player_id, exc_info=True)
        return StreakXp(), StreakInclusion(total=False, weekly=False, monthly=False)
