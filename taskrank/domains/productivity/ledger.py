"""Incorrect-submission ledger and the tie-break counts derived from it.

The ledger is append-only. When it holds no entry for the scope being ranked
(or cannot be read), every player's count comes from the overdue-task
heuristic instead. The two sources are never mixed in one computation.
"""

import asyncio
import uuid
from collections import Counter
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Protocol

import structlog

from .models import (
    IncorrectCounts,
    IncorrectCountSource,
    IncorrectSubmissionEntry,
    Task,
    TaskStatus,
)

logger = structlog.get_logger()


def new_incorrect_submission(
    player_id: str,
    task_id: str | None = None,
    competition_id: str | None = None,
    timestamp: datetime | None = None,
) -> IncorrectSubmissionEntry:
    return IncorrectSubmissionEntry(
        entry_id=str(uuid.uuid4()),
        player_id=player_id,
        task_id=task_id,
        competition_id=competition_id,
        timestamp=timestamp or datetime.now(UTC),
    )


class IncorrectSubmissionLedger(Protocol):
    async def append(self, entry: IncorrectSubmissionEntry) -> None: ...

    async def load_by_scope(
        self, competition_id: str | None = None
    ) -> list[IncorrectSubmissionEntry]: ...


class InMemoryIncorrectSubmissionLedger:
    """Process-local ledger, used in tests and the CLI.

    ``load_by_scope(None)`` returns every entry; a competition id narrows it
    to that competition.
    """

    def __init__(self, entries: Iterable[IncorrectSubmissionEntry] = ()) -> None:
        self._entries: list[IncorrectSubmissionEntry] = list(entries)
        self._lock = asyncio.Lock()

    async def append(self, entry: IncorrectSubmissionEntry) -> None:
        async with self._lock:
            self._entries.append(entry)

    async def load_by_scope(
        self, competition_id: str | None = None
    ) -> list[IncorrectSubmissionEntry]:
        if competition_id is None:
            return list(self._entries)
        return [e for e in self._entries if e.competition_id == competition_id]


def heuristic_incorrect_counts(tasks: Iterable[Task]) -> dict[str, int]:
    """Overdue tasks per assignee, the stand-in when the ledger is empty."""
    return dict(Counter(t.assignee_id for t in tasks if t.status == TaskStatus.OVERDUE))


def resolve_incorrect_counts(
    entries: Iterable[IncorrectSubmissionEntry] | None,
    tasks: Iterable[Task],
) -> IncorrectCounts:
    """Per-player incorrect counts from the ledger, or from the heuristic.

    ``entries=None`` means the ledger could not be read.
    """
    ledger_counts = Counter(e.player_id for e in entries or ())
    if ledger_counts:
        return IncorrectCounts(counts=dict(ledger_counts), source=IncorrectCountSource.LEDGER)
    return IncorrectCounts(
        counts=heuristic_incorrect_counts(tasks), source=IncorrectCountSource.HEURISTIC
    )


async def load_incorrect_counts(
    ledger: IncorrectSubmissionLedger | None,
    tasks: Iterable[Task],
    competition_id: str | None = None,
    exact_scope: bool = False,
) -> IncorrectCounts:
    """Load ledger entries for the scope and resolve counts.

    With ``exact_scope`` only entries recorded under exactly ``competition_id``
    count, so a ``None`` scope ignores entries of named competitions. Per-player
    aggregates use this; an unscoped ranking counts every entry.
    """
    entries: list[IncorrectSubmissionEntry] | None = None
    if ledger is not None:
        try:
            entries = await ledger.load_by_scope(competition_id)
            if exact_scope:
                entries = [e for e in entries if e.competition_id == competition_id]
        except Exception:
            logger.warning(
                "incorrect_ledger_unavailable",
                competition_id=competition_id,
                fallback=IncorrectCountSource.HEURISTIC.value,
                exc_info=True,
            )
    counts = resolve_incorrect_counts(entries, tasks)
    if counts.source == IncorrectCountSource.HEURISTIC:
        logger.info(
            "incorrect_counts_heuristic",
            competition_id=competition_id,
            players=len(counts.counts),
        )
    return counts
