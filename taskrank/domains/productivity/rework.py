"""Rework (refação) lifecycle of a single task.

Two states: completed and in rework. Entering rework withdraws the task from
scoring immediately by clearing its completion date; reconcluding puts it back
with a fresh completion date (and optionally a recalculated due date), so it
is classified again from the new pair. Tasks are immutable; every transition
returns a copy.
"""

from datetime import datetime

import structlog

from .models import (
    ReconcludeOptions,
    ReworkTransition,
    Task,
    TaskStatus,
    coerce_timestamp,
)

logger = structlog.get_logger()


def is_in_rework(task: Task) -> bool:
    return task.status == TaskStatus.REFACAO


def enter_rework(task: Task) -> ReworkTransition:
    """Move a task into rework. Idempotent for tasks already in rework."""
    if is_in_rework(task):
        logger.debug("rework_already_active", task_id=task.id)
        return ReworkTransition(task=task, applied=False, reason="already_in_rework")

    updated = task.model_copy(update={"status": TaskStatus.REFACAO, "completed_date": None})
    logger.info(
        "rework_entered",
        task_id=task.id,
        assignee_id=task.assignee_id,
        previous_status=task.status.value,
    )
    return ReworkTransition(task=updated, applied=True, reason="entered_rework")


def reconclude(
    task: Task,
    new_completed_date: datetime | str,
    options: ReconcludeOptions | None = None,
) -> ReworkTransition:
    """Complete a task that is in rework.

    The due date only changes when ``allow_due_date_recalc`` is set and a new
    due date is supplied. Tasks not in rework are left untouched.
    """
    options = options or ReconcludeOptions()
    if not is_in_rework(task):
        logger.warning(
            "rework_reconclude_rejected",
            task_id=task.id,
            status=task.status.value,
        )
        return ReworkTransition(task=task, applied=False, reason="not_in_rework")

    update: dict = {
        "status": TaskStatus.COMPLETED,
        "completed_date": coerce_timestamp(new_completed_date),
    }
    if options.allow_due_date_recalc and options.new_due_date is not None:
        update["due_date"] = options.new_due_date

    updated = task.model_copy(update=update)
    logger.info(
        "rework_reconcluded",
        task_id=task.id,
        assignee_id=task.assignee_id,
        due_date_recalculated="due_date" in update,
    )
    return ReworkTransition(task=updated, applied=True, reason="reconcluded")
