"""Storage interfaces for task records and upstream tasks, with in-memory backends.

The SQLAlchemy implementations live in ``taskrank.db.repositories``.
"""

import asyncio
from collections.abc import Iterable
from typing import Protocol

from .models import PersistentTaskRecord, Task


class TaskRecordRepository(Protocol):
    async def upsert(self, records: list[PersistentTaskRecord]) -> None: ...

    async def load_by_scope(
        self, competition_id: str | None = None
    ) -> list[PersistentTaskRecord]: ...


class TaskStore(Protocol):
    """Read/write access to the upstream task system, used by the rework flow."""

    async def get(self, task_id: str) -> Task | None: ...

    async def save(self, task: Task) -> None: ...

    async def list_for_player(self, player_id: str) -> list[Task]: ...


class InMemoryTaskRecordRepository:
    """Records keyed by task id. ``load_by_scope`` matches competition_id exactly."""

    def __init__(self, records: Iterable[PersistentTaskRecord] = ()) -> None:
        self._records: dict[str, PersistentTaskRecord] = {r.task_id: r for r in records}
        self._lock = asyncio.Lock()

    async def upsert(self, records: list[PersistentTaskRecord]) -> None:
        async with self._lock:
            for record in records:
                self._records[record.task_id] = record

    async def load_by_scope(
        self, competition_id: str | None = None
    ) -> list[PersistentTaskRecord]:
        return [r for r in self._records.values() if r.competition_id == competition_id]

    def get(self, task_id: str) -> PersistentTaskRecord | None:
        return self._records.get(task_id)

    def __len__(self) -> int:
        return len(self._records)


class InMemoryTaskStore:
    def __init__(self, tasks: Iterable[Task] = ()) -> None:
        self._tasks: dict[str, Task] = {t.id: t for t in tasks}

    async def get(self, task_id: str) -> Task | None:
        return self._tasks.get(task_id)

    async def save(self, task: Task) -> None:
        self._tasks[task.id] = task

    async def list_for_player(self, player_id: str) -> list[Task]:
        return [t for t in self._tasks.values() if t.assignee_id == player_id]

    def all(self) -> list[Task]:
        return list(self._tasks.values())
