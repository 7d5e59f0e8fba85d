"""Delivery classification.

Maps one task's status and timestamps to a delivery class. The function is
total: malformed or missing timestamps never raise, they degrade to on_time.
"""

from collections.abc import Iterable

from .models import DeliveryClassification, Task, TaskStatus, as_datetime


def classify_delivery(task: Task) -> DeliveryClassification:
    """Classify a single task.

    Rules, in order:
    1. In rework -> refacao.
    2. Not completed (pending, overdue) -> ignore.
    3. Completed without both timestamps -> on_time.
    4. Completed before the due date -> early; at it -> on_time; after -> late.
       A timestamp that cannot be parsed compares as equal (on_time).
    """
    if task.status == TaskStatus.REFACAO:
        return DeliveryClassification.REFACAO
    if task.status != TaskStatus.COMPLETED:
        return DeliveryClassification.IGNORE
    if task.due_date is None or task.completed_date is None:
        return DeliveryClassification.ON_TIME

    due = as_datetime(task.due_date)
    done = as_datetime(task.completed_date)
    if due is None or done is None:
        return DeliveryClassification.ON_TIME

    if done < due:
        return DeliveryClassification.EARLY
    if done > due:
        return DeliveryClassification.LATE
    return DeliveryClassification.ON_TIME


def classify_all(tasks: Iterable[Task]) -> dict[str, DeliveryClassification]:
    """Classify a batch, keyed by task id."""
    return {task.id: classify_delivery(task) for task in tasks}
