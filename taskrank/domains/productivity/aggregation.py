"""Productivity aggregation.

Folds a player's classified tasks into sum, count and average percent. Tasks
classified ``ignore`` and tasks currently in rework stay out of the
denominator. Aggregates are always recomputed from the complete input; there
are no running counters.
"""

from collections import Counter
from collections.abc import Iterable, Mapping

from .classification import classify_delivery
from .levels import round_half_up, xp_from_average
from .models import (
    DeliveryClassification,
    DeliveryDistribution,
    PersistentTaskRecord,
    PlayerAggregate,
    ProductivitySummary,
    Task,
    TaskStatus,
)
from .percentages import PercentageTable


def _summary(total: int, count: int) -> ProductivitySummary:
    average = total / count if count > 0 else 0.0
    return ProductivitySummary(
        total_considered=count,
        sum_percent=total,
        average_percent_raw=average,
        average_percent_rounded=round_half_up(average),
    )


def task_percent(task: Task, table: PercentageTable) -> int | None:
    """Clamped percent for a task, or None when it does not count.

    Tasks in rework and tasks without a completion date are outside the
    denominator.
    """
    if task.status == TaskStatus.REFACAO or task.completed_date is None:
        return None
    classification = classify_delivery(task)
    if classification in (DeliveryClassification.IGNORE, DeliveryClassification.REFACAO):
        return None
    return table.percent_for(classification)


def summarize_tasks(
    tasks: Iterable[Task],
    table: PercentageTable,
    player_id: str | None = None,
    competition_id: str | None = None,
) -> ProductivitySummary:
    """Sum/count/average over the tasks that count toward productivity.

    ``player_id`` and ``competition_id`` narrow the input when given.
    """
    total = 0
    count = 0
    for task in tasks:
        if player_id is not None and task.assignee_id != player_id:
            continue
        if competition_id is not None and task.competition_id != competition_id:
            continue
        pct = task_percent(task, table)
        if pct is None:
            continue
        total += pct
        count += 1
    return _summary(total, count)


def xp_for_tasks(tasks: Iterable[Task], table: PercentageTable) -> int:
    return xp_from_average(summarize_tasks(tasks, table).average_percent_raw)


def delivery_distribution(tasks: Iterable[Task]) -> DeliveryDistribution:
    """Count of tasks per delivery class (ignored tasks are not counted)."""
    counts = Counter(classify_delivery(task) for task in tasks)
    return DeliveryDistribution(
        early=counts[DeliveryClassification.EARLY],
        on_time=counts[DeliveryClassification.ON_TIME],
        late=counts[DeliveryClassification.LATE],
        refacao=counts[DeliveryClassification.REFACAO],
    )


def aggregate_records(
    records: Iterable[PersistentTaskRecord],
    incorrect_counts: Mapping[str, int] | None = None,
) -> list[PlayerAggregate]:
    """Derive one aggregate per (player_id, competition_id) from persisted records.

    Output is ordered by first appearance of each key in ``records``.
    """
    incorrect_counts = incorrect_counts or {}
    buckets: dict[tuple[str, str | None], list[int]] = {}
    for record in records:
        key = (record.player_id, record.competition_id)
        bucket = buckets.setdefault(key, [0, 0])
        if not record.is_considered:
            continue
        bucket[0] += max(0, min(100, record.percent))
        bucket[1] += 1

    aggregates = []
    for (player_id, competition_id), (total, count) in buckets.items():
        summary = _summary(total, count)
        aggregates.append(
            PlayerAggregate(
                player_id=player_id,
                competition_id=competition_id,
                sum_percent=summary.sum_percent,
                count_considered=summary.total_considered,
                average_percent=summary.average_percent_raw,
                xp=xp_from_average(summary.average_percent_raw),
                incorrect_count=incorrect_counts.get(player_id, 0),
            )
        )
    return aggregates


def aggregate_player(
    records: Iterable[PersistentTaskRecord],
    player_id: str,
    competition_id: str | None = None,
    incorrect_count: int = 0,
) -> PlayerAggregate:
    """Aggregate for a single key; a player without records gets a zero aggregate."""
    own = [
        r for r in records if r.player_id == player_id and r.competition_id == competition_id
    ]
    found = aggregate_records(own, {player_id: incorrect_count})
    if found:
        return found[0]
    return PlayerAggregate(
        player_id=player_id,
        competition_id=competition_id,
        sum_percent=0,
        count_considered=0,
        average_percent=0.0,
        xp=0,
        incorrect_count=incorrect_count,
    )
