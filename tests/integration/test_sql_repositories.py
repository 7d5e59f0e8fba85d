"""Tests for the PostgreSQL repositories, against a mocked async session."""

from contextlib import asynccontextmanager
from datetime import UTC, datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql

from taskrank.db.repositories import (
    SqlIncorrectSubmissionLedger,
    SqlLevelRuleProvider,
    SqlPercentageProvider,
    SqlTaskRecordRepository,
)
from taskrank.domains.productivity.ledger import new_incorrect_submission
from taskrank.domains.productivity.levels import load_level_rules
from taskrank.domains.productivity.migration import build_record
from taskrank.domains.productivity.models import DeliveryClassification, LevelRule
from taskrank.domains.productivity.percentages import PercentageLookup

pytestmark = pytest.mark.integration


@pytest.fixture
def session():
    session = AsyncMock()
    session.add_all = MagicMock()
    return session


@pytest.fixture
def session_factory(session):
    @asynccontextmanager
    async def factory():
        yield session

    return factory


def _result(rows=None, scalar=None):
    result = MagicMock()
    result.scalars.return_value.all.return_value = rows or []
    result.scalar_one_or_none.return_value = scalar
    return result


def _compiled(statement) -> str:
    return str(statement.compile(dialect=postgresql.dialect()))


class TestSqlTaskRecordRepository:
    async def test_upsert_uses_on_conflict(
        self, session, session_factory, make_task, default_table
    ):
        repo = SqlTaskRecordRepository(session_factory)
        await repo.upsert([build_record(make_task(task_id="t1"), default_table)])

        session.execute.assert_awaited_once()
        sql = _compiled(session.execute.call_args.args[0])
        assert "ON CONFLICT (task_id) DO UPDATE" in sql
        session.commit.assert_awaited_once()

    async def test_upsert_nothing_skips_session(self, session, session_factory):
        await SqlTaskRecordRepository(session_factory).upsert([])
        session.execute.assert_not_awaited()

    async def test_load_by_scope_maps_rows(self, session, session_factory):
        session.execute.return_value = _result(
            [
                SimpleNamespace(
                    task_id="t1",
                    player_id="u1",
                    competition_id="c1",
                    title="Report",
                    due_date="2026-03-10T12:00:00+00:00",
                    completed_date="not-a-date",
                    in_rework=False,
                    classification="on_time",
                    percent=90,
                )
            ]
        )
        [record] = await SqlTaskRecordRepository(session_factory).load_by_scope("c1")
        assert record.classification == DeliveryClassification.ON_TIME
        assert record.due_date == datetime(2026, 3, 10, 12, tzinfo=UTC)
        assert record.completed_date == "not-a-date"
        assert "competition_id" in _compiled(session.execute.call_args.args[0])


class TestSqlIncorrectSubmissionLedger:
    async def test_append(self, session, session_factory):
        ledger = SqlIncorrectSubmissionLedger(session_factory)
        await ledger.append(new_incorrect_submission("u1", "t1", "c1"))
        assert "ON CONFLICT (entry_id) DO NOTHING" in _compiled(session.execute.call_args.args[0])
        session.commit.assert_awaited_once()

    async def test_load_all_when_unscoped(self, session, session_factory):
        ts = datetime(2026, 3, 1, tzinfo=UTC)
        session.execute.return_value = _result(
            [
                SimpleNamespace(
                    entry_id="e1", player_id="u1", task_id=None, competition_id=None, timestamp=ts
                )
            ]
        )
        entries = await SqlIncorrectSubmissionLedger(session_factory).load_by_scope(None)
        assert entries[0].entry_id == "e1"
        assert "WHERE" not in _compiled(session.execute.call_args.args[0])


class TestSqlPercentageProvider:
    async def test_snapshot_from_rows(self, session, session_factory):
        session.execute.side_effect = [_result(scalar=v) for v in (100, 85, 50, 40)]
        table = await PercentageLookup(SqlPercentageProvider(session_factory)).snapshot()
        assert table.source == "provider"
        assert table.percent_for(DeliveryClassification.ON_TIME) == 85

    async def test_missing_row_falls_back_to_defaults(self, session, session_factory):
        session.execute.return_value = _result(scalar=None)
        table = await PercentageLookup(SqlPercentageProvider(session_factory)).snapshot()
        assert table.source == "default"

    async def test_set_percentages_rejects_ignore(self, session_factory):
        with pytest.raises(ValueError):
            await SqlPercentageProvider(session_factory).set_percentages({"ignore": 5})

    async def test_set_percentages_upserts(self, session, session_factory):
        await SqlPercentageProvider(session_factory).set_percentages({"late": 55})
        assert "ON CONFLICT (classification) DO UPDATE" in _compiled(
            session.execute.call_args.args[0]
        )


class TestSqlLevelRuleProvider:
    async def test_get_rules(self, session, session_factory):
        session.execute.return_value = _result(
            [
                SimpleNamespace(level=1, xp_required=0, name="Iniciante"),
                SimpleNamespace(level=2, xp_required=100, name="Aprendiz"),
            ]
        )
        rules = await load_level_rules(SqlLevelRuleProvider(session_factory))
        assert [r.level for r in rules] == [1, 2]

    async def test_replace_rules(self, session, session_factory):
        await SqlLevelRuleProvider(session_factory).replace_rules(
            [LevelRule(level=1, xp_required=0, name="a")]
        )
        session.add_all.assert_called_once()
        session.commit.assert_awaited_once()
