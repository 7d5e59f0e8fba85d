"""Unit tests for XP conversion and level resolution."""

from unittest.mock import AsyncMock

import pytest

from taskrank.domains.productivity.levels import (
    StaticLevelRuleProvider,
    default_level_rules,
    level_progress,
    load_level_rules,
    resolve_level,
    round_half_up,
    xp_from_average,
)
from taskrank.domains.productivity.models import LevelRule


@pytest.fixture
def rules() -> list[LevelRule]:
    return default_level_rules()


class TestXpConversion:
    @pytest.mark.parametrize(
        "average,expected",
        [(0, 0), (95, 950), (90, 900), (100, 1000), (66.66, 667), (66.64, 666), (92.5, 925)],
    )
    def test_xp_from_average(self, average, expected):
        assert xp_from_average(average) == expected

    def test_round_half_up_ties_go_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(3.5) == 4
        assert round_half_up(-0.5) == 0

    def test_xp_is_never_negative(self):
        assert xp_from_average(-10) == 0


class TestResolveLevel:
    @pytest.mark.parametrize(
        "xp,expected",
        [(0, 1), (99, 1), (100, 2), (249, 2), (250, 3), (950, 4), (1000, 5), (8000, 8), (99999, 8)],
    )
    def test_default_table(self, rules, xp, expected):
        assert resolve_level(xp, rules) == expected

    def test_below_lowest_threshold_returns_lowest_level(self):
        rules = [LevelRule(level=1, xp_required=50), LevelRule(level=2, xp_required=200)]
        assert resolve_level(10, rules) == 1

    def test_unsorted_rules(self):
        rules = [
            LevelRule(level=3, xp_required=300),
            LevelRule(level=1, xp_required=0),
            LevelRule(level=2, xp_required=100),
        ]
        assert resolve_level(150, rules) == 2

    def test_empty_table_is_level_one(self):
        assert resolve_level(500, []) == 1

    def test_monotonic(self, rules):
        levels = [resolve_level(xp, rules) for xp in range(0, 9000, 50)]
        assert levels == sorted(levels)


class TestLevelProgress:
    def test_midway(self, rules):
        progress = level_progress(175, rules)
        assert progress.current_level == 2
        assert progress.xp_into_level == 75
        assert progress.xp_for_next_level == 150
        assert progress.progress_percentage == 50.0

    def test_max_level(self, rules):
        progress = level_progress(9000, rules)
        assert progress.current_level == 8
        assert progress.xp_for_next_level == 0
        assert progress.progress_percentage == 100.0


class TestLevelRuleLoading:
    async def test_without_provider_uses_fallback(self, rules):
        assert await load_level_rules(None) == rules

    async def test_static_provider_replace(self):
        provider = StaticLevelRuleProvider()
        provider.replace([LevelRule(level=1, xp_required=0), LevelRule(level=2, xp_required=10)])
        loaded = await load_level_rules(provider)
        assert [r.xp_required for r in loaded] == [0, 10]

    async def test_failing_provider_uses_fallback(self, rules):
        provider = AsyncMock()
        provider.get_rules = AsyncMock(side_effect=TimeoutError())
        assert await load_level_rules(provider) == rules

    async def test_empty_provider_uses_fallback(self, rules):
        provider = StaticLevelRuleProvider([])
        assert await load_level_rules(provider) == rules
