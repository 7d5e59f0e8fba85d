"""Time windows for weekly, monthly and season XP."""

from datetime import UTC, datetime, timedelta

from .config import RankingConfig
from .models import SeasonConfig, Task, TimeWindow, as_datetime


def _start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def week_bounds(reference: datetime, week_start_weekday: int = 6) -> tuple[datetime, datetime]:
    """Inclusive bounds of the week containing ``reference`` (Sunday start by default)."""
    days_since_start = (reference.weekday() - week_start_weekday) % 7
    start = _start_of_day(reference) - timedelta(days=days_since_start)
    end = start + timedelta(days=7) - timedelta(microseconds=1)
    return start, end


def month_bounds(reference: datetime) -> tuple[datetime, datetime]:
    start = _start_of_day(reference).replace(day=1)
    if start.month == 12:
        next_month = start.replace(year=start.year + 1, month=1)
    else:
        next_month = start.replace(month=start.month + 1)
    return start, next_month - timedelta(microseconds=1)


def default_season(reference: datetime | None = None) -> SeasonConfig:
    """Current calendar month as a season."""
    reference = reference or datetime.now(UTC)
    start, end = month_bounds(reference)
    return SeasonConfig(
        name=f"Temporada {start.strftime('%m/%Y')}",
        description="Default season covering the current month.",
        start=start,
        end=end,
    )


def window_bounds(
    window: TimeWindow,
    reference: datetime | None = None,
    season: SeasonConfig | None = None,
    config: RankingConfig | None = None,
) -> tuple[datetime, datetime] | None:
    """Inclusive (start, end) for a window, or None for the unbounded window."""
    if window == TimeWindow.ALL:
        return None
    reference = as_datetime(reference) or datetime.now(UTC)
    if window == TimeWindow.WEEK:
        cfg = config or RankingConfig()
        return week_bounds(reference, cfg.week_start_weekday)
    if window == TimeWindow.MONTH:
        return month_bounds(reference)
    active = season or default_season(reference)
    return active.start, active.end


def task_reference_time(task: Task) -> datetime | None:
    """Timestamp used to place a task in a window: completion, else due date."""
    return as_datetime(task.completed_date) or as_datetime(task.due_date)


def in_window(task: Task, bounds: tuple[datetime, datetime] | None) -> bool:
    if bounds is None:
        return True
    moment = task_reference_time(task)
    if moment is None:
        return False
    start, end = bounds
    return start <= moment <= end


def filter_window(tasks: list[Task], bounds: tuple[datetime, datetime] | None) -> list[Task]:
    if bounds is None:
        return list(tasks)
    return [task for task in tasks if in_window(task, bounds)]
