"""Productivity ranking configuration with sensible defaults.

Percentages, level thresholds and streak bonuses are owned by whoever runs the
competition and may change between computations. The values here are the
documented fallbacks the engine uses whenever the injected providers cannot be
reached, and the seeds for the in-memory providers.
"""

import os
from dataclasses import dataclass, field


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class PercentageDefaults:
    """Percent credited per delivery classification (0-100).

    Early delivery is the benchmark. On-time is nearly as good, late work still
    counts for half, and work that had to be redone gets the least credit.
    """

    early: int = 100
    on_time: int = 90
    late: int = 50
    refacao: int = 40

    def __post_init__(self) -> None:
        for name in ("early", "on_time", "late", "refacao"):
            value = getattr(self, name)
            if not 0 <= value <= 100:
                raise ValueError(f"Percentage for {name} must be within 0-100, got {value}")

    def as_dict(self) -> dict[str, int]:
        return {
            "early": self.early,
            "on_time": self.on_time,
            "late": self.late,
            "refacao": self.refacao,
        }


@dataclass(frozen=True)
class LevelDefinition:
    level: int
    xp_required: int
    name: str


DEFAULT_LEVELS: tuple[LevelDefinition, ...] = (
    LevelDefinition(1, 0, "Iniciante"),
    LevelDefinition(2, 100, "Aprendiz"),
    LevelDefinition(3, 250, "Intermediário"),
    LevelDefinition(4, 500, "Avançado"),
    LevelDefinition(5, 1000, "Expert"),
    LevelDefinition(6, 2000, "Mestre"),
    LevelDefinition(7, 4000, "Grão-Mestre"),
    LevelDefinition(8, 8000, "Lendário"),
)


@dataclass
class LevelDefaults:
    """Fallback level table. Thresholds must be non-negative and unique."""

    levels: tuple[LevelDefinition, ...] = DEFAULT_LEVELS

    def __post_init__(self) -> None:
        thresholds = [lvl.xp_required for lvl in self.levels]
        if any(t < 0 for t in thresholds):
            raise ValueError("Level thresholds must be non-negative")
        if len(set(thresholds)) != len(thresholds):
            raise ValueError(f"Level thresholds must be unique, got {thresholds}")


@dataclass
class StreakInclusionFlags:
    total: bool = True
    weekly: bool = True
    monthly: bool = True


@dataclass
class StreakConfig:
    """Daily login streak bonus.

    One award of ``daily_bonus_xp`` per player per calendar day while enabled.
    ``include_in`` gates which XP scopes the accumulated bonus is added to.
    """

    enabled: bool = True
    daily_bonus_xp: int = 10
    include_in: StreakInclusionFlags = field(default_factory=StreakInclusionFlags)

    def __post_init__(self) -> None:
        if self.daily_bonus_xp < 0:
            raise ValueError(f"daily_bonus_xp must be non-negative, got {self.daily_bonus_xp}")


@dataclass
class ConsistencyBonusConfig:
    """Bonus shown on the ranking for consecutive active days (not added to XP)."""

    short_streak_min: int = 3  # below this, no bonus
    short_streak_multiplier: int = 2
    short_streak_cap: int = 20
    long_streak_min: int = 7
    long_streak_cap: int = 50


@dataclass
class RankingConfig:
    # 6 = Sunday (datetime.weekday numbering)
    week_start_weekday: int = 6

    def __post_init__(self) -> None:
        if not 0 <= self.week_start_weekday <= 6:
            raise ValueError(
                f"week_start_weekday must be within 0-6, got {self.week_start_weekday}"
            )


@dataclass
class ProductivityConfig:
    """Top-level configuration for the productivity ranking engine."""

    percentages: PercentageDefaults = field(default_factory=PercentageDefaults)
    levels: LevelDefaults = field(default_factory=LevelDefaults)
    streak: StreakConfig = field(default_factory=StreakConfig)
    consistency: ConsistencyBonusConfig = field(default_factory=ConsistencyBonusConfig)
    ranking: RankingConfig = field(default_factory=RankingConfig)

    @classmethod
    def from_env(cls) -> "ProductivityConfig":
        """Load config with environment variable overrides (TASKRANK_ prefix)."""
        config = cls()

        if v := os.getenv("TASKRANK_PERCENT_EARLY"):
            config.percentages.early = int(v)
        if v := os.getenv("TASKRANK_PERCENT_ON_TIME"):
            config.percentages.on_time = int(v)
        if v := os.getenv("TASKRANK_PERCENT_LATE"):
            config.percentages.late = int(v)
        if v := os.getenv("TASKRANK_PERCENT_REFACAO"):
            config.percentages.refacao = int(v)
        if v := os.getenv("TASKRANK_STREAK_ENABLED"):
            config.streak.enabled = _parse_bool(v)
        if v := os.getenv("TASKRANK_STREAK_DAILY_XP"):
            config.streak.daily_bonus_xp = int(v)
        if v := os.getenv("TASKRANK_STREAK_INCLUDE_TOTAL"):
            config.streak.include_in.total = _parse_bool(v)
        if v := os.getenv("TASKRANK_STREAK_INCLUDE_WEEKLY"):
            config.streak.include_in.weekly = _parse_bool(v)
        if v := os.getenv("TASKRANK_STREAK_INCLUDE_MONTHLY"):
            config.streak.include_in.monthly = _parse_bool(v)
        if v := os.getenv("TASKRANK_WEEK_START_WEEKDAY"):
            config.ranking.week_start_weekday = int(v)

        # Re-validate after overrides
        config.percentages.__post_init__()
        config.streak.__post_init__()
        config.ranking.__post_init__()
        return config

