"""Tests for the rework state machine."""

from datetime import UTC, datetime

from taskrank.domains.productivity.classification import classify_delivery
from taskrank.domains.productivity.models import (
    DeliveryClassification,
    ReconcludeOptions,
    Task,
    TaskStatus,
)
from taskrank.domains.productivity.rework import enter_rework, is_in_rework, reconclude

DUE = datetime(2026, 3, 10, 18, 0, tzinfo=UTC)


def _completed() -> Task:
    return Task(
        id="t1",
        assignee_id="u1",
        status="completed",
        due_date=DUE,
        completed_date=datetime(2026, 3, 9, tzinfo=UTC),
    )


class TestEnterRework:
    def test_clears_completion_and_sets_status(self):
        transition = enter_rework(_completed())
        assert transition.applied
        assert transition.task.status == TaskStatus.REFACAO
        assert transition.task.completed_date is None
        assert transition.task.due_date == DUE

    def test_original_task_untouched(self):
        task = _completed()
        enter_rework(task)
        assert task.status == TaskStatus.COMPLETED

    def test_idempotent(self):
        first = enter_rework(_completed())
        second = enter_rework(first.task)
        assert not second.applied
        assert second.reason == "already_in_rework"
        assert second.task == first.task


class TestReconclude:
    def test_returns_to_completed_with_new_date(self):
        in_rework = enter_rework(_completed()).task
        transition = reconclude(in_rework, "2026-03-12T10:00:00Z")
        assert transition.applied
        assert transition.task.status == TaskStatus.COMPLETED
        assert transition.task.completed_date == datetime(2026, 3, 12, 10, tzinfo=UTC)
        assert transition.task.due_date == DUE
        assert classify_delivery(transition.task) == DeliveryClassification.LATE

    def test_due_date_recalc_when_allowed(self):
        in_rework = enter_rework(_completed()).task
        options = ReconcludeOptions(
            allow_due_date_recalc=True, new_due_date="2026-03-15T18:00:00Z"
        )
        transition = reconclude(in_rework, datetime(2026, 3, 12, tzinfo=UTC), options)
        assert transition.task.due_date == datetime(2026, 3, 15, 18, tzinfo=UTC)
        assert classify_delivery(transition.task) == DeliveryClassification.EARLY

    def test_new_due_date_ignored_without_permission(self):
        in_rework = enter_rework(_completed()).task
        options = ReconcludeOptions(new_due_date="2026-03-15T18:00:00Z")
        transition = reconclude(in_rework, DUE, options)
        assert transition.task.due_date == DUE

    def test_not_in_rework_is_rejected(self):
        task = _completed()
        transition = reconclude(task, DUE)
        assert not transition.applied
        assert transition.reason == "not_in_rework"
        assert transition.task is task

    def test_is_in_rework(self):
        assert not is_in_rework(_completed())
        assert is_in_rework(enter_rework(_completed()).task)
