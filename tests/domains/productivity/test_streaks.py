"""Tests for login streak and consistency bonuses."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from taskrank.domains.productivity.config import StreakConfig, StreakInclusionFlags
from taskrank.domains.productivity.models import StreakInclusion, StreakXp
from taskrank.domains.productivity.streaks import (
    InMemoryStreakProvider,
    ScopedXp,
    apply_streak_bonus,
    consistency_bonus,
    load_streak,
)


class MutableClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now


class TestConsistencyBonus:
    @pytest.mark.parametrize(
        "streak,expected",
        [(0, 0), (2, 0), (3, 6), (6, 12), (7, 7), (30, 30), (60, 50)],
    )
    def test_bands(self, streak, expected):
        assert consistency_bonus(streak) == expected


class TestApplyStreakBonus:
    def test_only_gated_scopes(self):
        result = apply_streak_bonus(
            ScopedXp(total=900, weekly=100, monthly=400),
            StreakXp(total=30, weekly=10, monthly=20),
            StreakInclusion(total=True, weekly=False, monthly=True),
        )
        assert result == ScopedXp(total=930, weekly=100, monthly=420)


class TestInMemoryStreakProvider:
    def test_one_award_per_day(self):
        clock = MutableClock(datetime(2026, 3, 11, 9, tzinfo=UTC))
        provider = InMemoryStreakProvider(clock=clock)
        assert provider.award_if_needed("u1") == (True, 10)
        assert provider.award_if_needed("u1") == (False, 10)
        clock.now += timedelta(days=1)
        assert provider.award_if_needed("u1") == (True, 10)
        assert len(provider.awards_for("u1")) == 2

    def test_disabled_never_awards(self):
        provider = InMemoryStreakProvider(config=StreakConfig(enabled=False))
        assert provider.award_if_needed("u1") == (False, 0)
        assert provider.awards_for("u1") == []

    async def test_scoped_totals(self):
        clock = MutableClock(datetime(2026, 2, 27, 9, tzinfo=UTC))
        provider = InMemoryStreakProvider(clock=clock)
        provider.award_if_needed("u1")  # previous month
        clock.now = datetime(2026, 3, 2, 9, tzinfo=UTC)
        provider.award_if_needed("u1")  # this month, previous week
        clock.now = datetime(2026, 3, 11, 9, tzinfo=UTC)
        provider.award_if_needed("u1")

        streak = await provider.get_streak_xp("u1")
        assert streak == StreakXp(total=30, weekly=10, monthly=20)

    async def test_include_in_reflects_config(self):
        config = StreakConfig(include_in=StreakInclusionFlags(total=False))
        inclusion = await InMemoryStreakProvider(config=config).include_in()
        assert inclusion == StreakInclusion(total=False, weekly=True, monthly=True)


class TestLoadStreak:
    async def test_no_provider_means_no_bonus(self):
        streak, inclusion = await load_streak(None, "u1")
        assert streak == StreakXp()
        assert not (inclusion.total or inclusion.weekly or inclusion.monthly)

    async def test_failing_provider_means_no_bonus(self):
        provider = AsyncMock()
        provider.get_streak_xp = AsyncMock(side_effect=ConnectionError())
        streak, inclusion = await load_streak(provider, "u1")
        assert streak.total == 0
        assert inclusion.total is False
