"""Productivity ranking domain."""

from .classification import classify_delivery
from .dto import PlayerProfileDTO, RankingEntryDTO
from .engine import RankingEngine
from .levels import StaticLevelRuleProvider, resolve_level, round_half_up, xp_from_average
from .models import (
    DeliveryClassification,
    IncorrectSubmissionEntry,
    LevelRule,
    PersistentTaskRecord,
    Player,
    PlayerAggregate,
    RankingScope,
    ReconcludeOptions,
    Task,
    TaskStatus,
    TimeWindow,
)
from .percentages import PercentageLookup, PercentageTable, StaticPercentageProvider

__all__ = [
    "DeliveryClassification",
    "IncorrectSubmissionEntry",
    "LevelRule",
    "PercentageLookup",
    "PercentageTable",
    "PersistentTaskRecord",
    "Player",
    "PlayerAggregate",
    "PlayerProfileDTO",
    "RankingEngine",
    "RankingEntryDTO",
    "RankingScope",
    "ReconcludeOptions",
    "StaticLevelRuleProvider",
    "StaticPercentageProvider",
    "Task",
    "TaskStatus",
    "TimeWindow",
    "classify_delivery",
    "resolve_level",
    "round_half_up",
    "xp_from_average",
]
