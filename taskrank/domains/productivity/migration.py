"""Backfill of raw tasks into canonical task records.

Each task becomes exactly one ``PersistentTaskRecord`` keyed by its id. The
conversion depends only on the task and the percentage snapshot, so running
it twice over the same input yields identical records.
"""

from collections.abc import Iterable

from .classification import classify_delivery
from .models import DeliveryClassification, PersistentTaskRecord, Task, TaskStatus
from .percentages import PercentageTable


def build_record(
    task: Task,
    table: PercentageTable,
    competition_id: str | None = None,
) -> PersistentTaskRecord:
    """Project one task. An explicit ``competition_id`` overrides the task's own."""
    classification = classify_delivery(task)
    percent = (
        0
        if classification == DeliveryClassification.IGNORE
        else table.percent_for(classification)
    )
    return PersistentTaskRecord(
        task_id=task.id,
        player_id=task.assignee_id,
        competition_id=competition_id if competition_id is not None else task.competition_id,
        title=task.title,
        due_date=task.due_date,
        completed_date=task.completed_date,
        in_rework=task.status == TaskStatus.REFACAO,
        classification=classification,
        percent=percent,
    )


def backfill(
    tasks: Iterable[Task],
    table: PercentageTable,
    competition_id: str | None = None,
) -> list[PersistentTaskRecord]:
    """One record per task id, in first-seen order; later duplicates replace earlier ones."""
    records: dict[str, PersistentTaskRecord] = {}
    for task in tasks:
        records[task.id] = build_record(task, table, competition_id)
    return list(records.values())
