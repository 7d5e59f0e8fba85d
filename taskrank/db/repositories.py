"""PostgreSQL-backed implementations of the productivity storage interfaces.

Each repository takes an ``async_sessionmaker`` and opens one session per
call, committing writes before returning.
"""

from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert

from taskrank.db.models import (
    IncorrectSubmissionDB,
    LevelRuleDB,
    ProductivityPercentageDB,
    TaskRecordDB,
)
from taskrank.domains.productivity.models import (
    DeliveryClassification,
    IncorrectSubmissionEntry,
    LevelRule,
    PersistentTaskRecord,
)
from taskrank.domains.productivity.percentages import clamp_percent

logger = structlog.get_logger()

SessionFactory = Callable[[], Any]


def _timestamp_text(value: datetime | str | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _record_row(record: PersistentTaskRecord) -> dict[str, Any]:
    return {
        "task_id": record.task_id,
        "player_id": record.player_id,
        "competition_id": record.competition_id,
        "title": record.title,
        "due_date": _timestamp_text(record.due_date),
        "completed_date": _timestamp_text(record.completed_date),
        "in_rework": record.in_rework,
        "classification": record.classification.value,
        "percent": record.percent,
    }


def _record_from_row(row: TaskRecordDB) -> PersistentTaskRecord:
    return PersistentTaskRecord(
        task_id=row.task_id,
        player_id=row.player_id,
        competition_id=row.competition_id,
        title=row.title or "",
        due_date=row.due_date,
        completed_date=row.completed_date,
        in_rework=bool(row.in_rework),
        classification=DeliveryClassification(row.classification),
        percent=row.percent,
    )


class SqlTaskRecordRepository:
    """Task records keyed by task_id; a write for an existing task replaces it."""

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    async def upsert(self, records: list[PersistentTaskRecord]) -> None:
        if not records:
            return
        # Later records for the same task win, as they would with sequential writes
        rows = list({r.task_id: _record_row(r) for r in records}.values())
        stmt = pg_insert(TaskRecordDB).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=[TaskRecordDB.task_id],
            set_={
                "player_id": stmt.excluded.player_id,
                "competition_id": stmt.excluded.competition_id,
                "title": stmt.excluded.title,
                "due_date": stmt.excluded.due_date,
                "completed_date": stmt.excluded.completed_date,
                "in_rework": stmt.excluded.in_rework,
                "classification": stmt.excluded.classification,
                "percent": stmt.excluded.percent,
            },
        )
        async with self._session_factory() as session:
            await session.execute(stmt)
            await session.commit()
        logger.debug("task_records_upserted", count=len(rows))

    async def load_by_scope(
        self, competition_id: str | None = None
    ) -> list[PersistentTaskRecord]:
        query = select(TaskRecordDB)
        if competition_id is None:
            query = query.where(TaskRecordDB.competition_id.is_(None))
        else:
            query = query.where(TaskRecordDB.competition_id == competition_id)
        async with self._session_factory() as session:
            result = await session.execute(query.order_by(TaskRecordDB.id))
            rows = result.scalars().all()
        return [_record_from_row(row) for row in rows]


class SqlIncorrectSubmissionLedger:
    """Append-only ledger table. ``load_by_scope(None)`` returns every entry."""

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    async def append(self, entry: IncorrectSubmissionEntry) -> None:
        stmt = (
            pg_insert(IncorrectSubmissionDB)
            .values(
                entry_id=entry.entry_id,
                player_id=entry.player_id,
                task_id=entry.task_id,
                competition_id=entry.competition_id,
                timestamp=entry.timestamp,
            )
            .on_conflict_do_nothing(index_elements=[IncorrectSubmissionDB.entry_id])
        )
        async with self._session_factory() as session:
            await session.execute(stmt)
            await session.commit()
        logger.info(
            "incorrect_submission_recorded",
            entry_id=entry.entry_id,
            player_id=entry.player_id,
        )

    async def load_by_scope(
        self, competition_id: str | None = None
    ) -> list[IncorrectSubmissionEntry]:
        query = select(IncorrectSubmissionDB)
        if competition_id is not None:
            query = query.where(IncorrectSubmissionDB.competition_id == competition_id)
        async with self._session_factory() as session:
            result = await session.execute(query.order_by(IncorrectSubmissionDB.timestamp))
            rows = result.scalars().all()
        return [
            IncorrectSubmissionEntry(
                entry_id=row.entry_id,
                player_id=row.player_id,
                task_id=row.task_id,
                competition_id=row.competition_id,
                timestamp=row.timestamp,
            )
            for row in rows
        ]


class SqlPercentageProvider:
    """Reads percentages from ``productivity_percentages``.

    A missing row raises LookupError so the lookup falls back to defaults for
    the whole table.
    """

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    async def get_percentage(self, classification: DeliveryClassification) -> int:
        if classification == DeliveryClassification.IGNORE:
            return 0
        async with self._session_factory() as session:
            result = await session.execute(
                select(ProductivityPercentageDB.percent).where(
                    ProductivityPercentageDB.classification == classification.value
                )
            )
            value = result.scalar_one_or_none()
        if value is None:
            raise LookupError(f"No percentage configured for {classification.value}")
        return value

    async def set_percentages(self, values: Mapping[str, float]) -> None:
        rows = []
        for key, value in values.items():
            classification = DeliveryClassification(key)
            if classification == DeliveryClassification.IGNORE:
                raise ValueError("The ignore classification has no configurable percentage")
            rows.append({"classification": classification.value, "percent": clamp_percent(value)})
        if not rows:
            return
        stmt = pg_insert(ProductivityPercentageDB).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=[ProductivityPercentageDB.classification],
            set_={"percent": stmt.excluded.percent},
        )
        async with self._session_factory() as session:
            await session.execute(stmt)
            await session.commit()
        logger.info("percentages_updated", values={r["classification"]: r["percent"] for r in rows})


class SqlLevelRuleProvider:
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    async def get_rules(self) -> list[LevelRule]:
        async with self._session_factory() as session:
            result = await session.execute(select(LevelRuleDB).order_by(LevelRuleDB.xp_required))
            rows = result.scalars().all()
        return [
            LevelRule(level=r.level, xp_required=r.xp_required, name=r.name or "") for r in rows
        ]

    async def replace_rules(self, rules: list[LevelRule]) -> None:
        """Swap the whole level table in one transaction."""
        async with self._session_factory() as session:
            await session.execute(delete(LevelRuleDB))
            session.add_all(
                [LevelRuleDB(level=r.level, xp_required=r.xp_required, name=r.name) for r in rules]
            )
            await session.commit()
        logger.info("level_rules_replaced", levels=len(rules))
