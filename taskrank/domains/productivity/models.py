"""Pydantic models for the productivity ranking domain."""

from datetime import UTC, date, datetime, time
from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

# --- Timestamps ---


def coerce_timestamp(value: Any) -> Any:
    """Best-effort conversion of upstream timestamps.

    ISO-8601 strings become timezone-aware datetimes (naive values are read as
    UTC). Empty strings become None. Anything unparseable is returned as-is so
    the classifier can still see it.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=UTC)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return value
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    return value


def as_datetime(value: datetime | str | None) -> datetime | None:
    """Return the value as a comparable datetime, or None if it is not one."""
    coerced = coerce_timestamp(value)
    return coerced if isinstance(coerced, datetime) else None


# --- Enums ---


class TaskStatus(StrEnum):
    COMPLETED = "completed"
    OVERDUE = "overdue"
    PENDING = "pending"
    REFACAO = "refacao"

    @classmethod
    def _missing_(cls, value: object) -> "TaskStatus | None":
        # Upstream sends the accented spelling too ("refação")
        if isinstance(value, str):
            normalized = value.strip().lower().replace("ç", "c").replace("ã", "a")
            for member in cls:
                if member.value == normalized:
                    return member
        return None


class DeliveryClassification(StrEnum):
    EARLY = "early"
    ON_TIME = "on_time"
    LATE = "late"
    REFACAO = "refacao"
    IGNORE = "ignore"


SCORED_CLASSIFICATIONS: tuple[DeliveryClassification, ...] = (
    DeliveryClassification.EARLY,
    DeliveryClassification.ON_TIME,
    DeliveryClassification.LATE,
    DeliveryClassification.REFACAO,
)


class TimeWindow(StrEnum):
    ALL = "all"
    WEEK = "week"
    MONTH = "month"
    SEASON = "season"


class IncorrectCountSource(StrEnum):
    LEDGER = "ledger"
    HEURISTIC = "heuristic"


class RecomputeTrigger(StrEnum):
    TASK_EVENT = "task_event"
    REWORK_ENTERED = "rework_entered"
    RECONCLUDED = "reconcluded"
    BACKFILL = "backfill"
    INCORRECT_SUBMISSION = "incorrect_submission"
    MANUAL = "manual"


# --- Tasks and records ---


class Task(BaseModel):
    """A unit of work as delivered by the upstream task system."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    id: str
    assignee_id: str = Field(
        validation_alias=AliasChoices("assignee_id", "assigneeId", "assignedTo")
    )
    title: str = ""
    status: TaskStatus
    due_date: datetime | str | None = None
    completed_date: datetime | str | None = None
    competition_id: str | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: Any) -> Any:
        if isinstance(value, str) and not isinstance(value, TaskStatus):
            return TaskStatus(value)
        return value

    @field_validator("due_date", "completed_date", mode="before")
    @classmethod
    def _coerce_timestamps(cls, value: Any) -> Any:
        return coerce_timestamp(value)


class PersistentTaskRecord(BaseModel):
    """Canonical, engine-owned projection of a task at classification time."""

    model_config = ConfigDict(frozen=True)

    task_id: str
    player_id: str
    competition_id: str | None = None
    title: str = ""
    due_date: datetime | str | None = None
    completed_date: datetime | str | None = None
    in_rework: bool = False
    classification: DeliveryClassification
    percent: int = Field(ge=0, le=100)

    @field_validator("due_date", "completed_date", mode="before")
    @classmethod
    def _coerce_timestamps(cls, value: Any) -> Any:
        return coerce_timestamp(value)

    @property
    def is_considered(self) -> bool:
        """Whether this record counts toward the player's denominator."""
        return (
            not self.in_rework
            and self.completed_date is not None
            and self.classification != DeliveryClassification.IGNORE
        )


class PlayerAggregate(BaseModel):
    player_id: str
    competition_id: str | None = None
    sum_percent: int = Field(ge=0)
    count_considered: int = Field(ge=0)
    average_percent: float = Field(ge=0, le=100)
    xp: int = Field(ge=0)
    incorrect_count: int = Field(ge=0, default=0)


class IncorrectSubmissionEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    entry_id: str
    player_id: str
    task_id: str | None = None
    competition_id: str | None = None
    timestamp: datetime


class IncorrectCounts(BaseModel):
    counts: dict[str, int] = Field(default_factory=dict)
    source: IncorrectCountSource

    def for_player(self, player_id: str) -> int:
        return self.counts.get(player_id, 0)


# --- Levels and streaks ---


class LevelRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    level: int = Field(ge=1)
    xp_required: int = Field(ge=0)
    name: str = ""


class LevelProgress(BaseModel):
    current_level: int
    xp_into_level: int
    xp_for_next_level: int
    progress_percentage: float = Field(ge=0, le=100)


class StreakXp(BaseModel):
    total: int = Field(ge=0, default=0)
    weekly: int = Field(ge=0, default=0)
    monthly: int = Field(ge=0, default=0)


class StreakInclusion(BaseModel):
    total: bool = True
    weekly: bool = True
    monthly: bool = True


# --- Aggregation output ---


class ProductivitySummary(BaseModel):
    total_considered: int = Field(ge=0)
    sum_percent: int = Field(ge=0)
    average_percent_raw: float = Field(ge=0, le=100)
    average_percent_rounded: int = Field(ge=0, le=100)


class DeliveryDistribution(BaseModel):
    early: int = 0
    on_time: int = 0
    late: int = 0
    refacao: int = 0


# --- Players and scope ---


class Player(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    id: str
    name: str
    avatar: str = ""
    missions_completed: int = Field(ge=0, default=0)
    streak: int = Field(ge=0, default=0)


class SeasonConfig(BaseModel):
    name: str = Field(min_length=1)
    description: str = ""
    start: datetime
    end: datetime

    @field_validator("start", "end", mode="before")
    @classmethod
    def _coerce_bounds(cls, value: Any) -> Any:
        return coerce_timestamp(value)

    @model_validator(mode="after")
    def _check_bounds(self) -> "SeasonConfig":
        if self.start > self.end:
            raise ValueError(
                f"Season start ({self.start.isoformat()}) must not be after "
                f"its end ({self.end.isoformat()})"
            )
        return self


class RankingScope(BaseModel):
    competition_id: str | None = None
    window: TimeWindow = TimeWindow.ALL
    reference_time: datetime | None = None
    season: SeasonConfig | None = None

    @field_validator("reference_time", mode="before")
    @classmethod
    def _coerce_reference(cls, value: Any) -> Any:
        return coerce_timestamp(value)


# --- Rework ---


class ReconcludeOptions(BaseModel):
    allow_due_date_recalc: bool = False
    new_due_date: datetime | str | None = None

    @field_validator("new_due_date", mode="before")
    @classmethod
    def _coerce_due(cls, value: Any) -> Any:
        return coerce_timestamp(value)


class ReworkTransition(BaseModel):
    task: Task
    applied: bool
    reason: str = ""


# --- Notifications ---


class RecomputeEvent(BaseModel):
    player_id: str
    competition_id: str | None = None
    aggregate: PlayerAggregate
    trigger: RecomputeTrigger
    task_id: str | None = None
    recomputed_at: datetime
