"""Productivity ranking engine.

Orchestrates the pipeline: classify -> rework filter -> aggregate -> XP/level
-> order -> project. The computation itself is synchronous and pure; the
engine only awaits its injected collaborators (percentage and level
providers, streak provider, ledger, record repository and task store), taking
one snapshot of each per computation.

Degradation rules:
- percentages / level rules / streaks unavailable -> defaults, logged
- ledger unavailable or empty -> overdue heuristic for every player
- record repository read or write failure -> propagated to the caller
"""

import asyncio
from collections.abc import Callable, Iterable, Sequence
from datetime import UTC, datetime

import structlog

from .aggregation import (
    aggregate_player,
    aggregate_records,
    delivery_distribution,
    summarize_tasks,
    xp_for_tasks,
)
from .config import ProductivityConfig
from .dto import PlayerProfileDTO, RankingEntryDTO, to_player_profile, to_ranking_entry
from .ledger import (
    InMemoryIncorrectSubmissionLedger,
    IncorrectSubmissionLedger,
    load_incorrect_counts,
    new_incorrect_submission,
)
from .levels import (
    LevelRuleProvider,
    default_level_rules,
    level_progress,
    load_level_rules,
    resolve_level,
    xp_from_average,
)
from .migration import backfill as backfill_records
from .migration import build_record
from .models import (
    IncorrectSubmissionEntry,
    LevelRule,
    PersistentTaskRecord,
    Player,
    PlayerAggregate,
    RankingScope,
    RecomputeEvent,
    RecomputeTrigger,
    ReconcludeOptions,
    ReworkTransition,
    Task,
    TimeWindow,
)
from .percentages import PercentageLookup, PercentageProvider, PercentageTable
from .ranking import RankingCandidate, first_completion_times, order_players
from .repository import (
    InMemoryTaskRecordRepository,
    InMemoryTaskStore,
    TaskRecordRepository,
    TaskStore,
)
from .rework import enter_rework as enter_rework_transition
from .rework import reconclude as reconclude_transition
from .streaks import ScopedXp, StreakProvider, apply_streak_bonus, consistency_bonus, load_streak
from .windows import filter_window, window_bounds

logger = structlog.get_logger()

RecomputeHook = Callable[[RecomputeEvent], None]
AggregateKey = tuple[str, str | None]


class RankingEngine:
    """Entry point for ranking, profiles, rework and recomputation."""

    def __init__(
        self,
        percentages: PercentageProvider | None = None,
        levels: LevelRuleProvider | None = None,
        ledger: IncorrectSubmissionLedger | None = None,
        repository: TaskRecordRepository | None = None,
        task_store: TaskStore | None = None,
        streaks: StreakProvider | None = None,
        config: ProductivityConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config or ProductivityConfig()
        self._percentages = PercentageLookup(percentages, self._config.percentages)
        self._levels = levels
        self._ledger = ledger if ledger is not None else InMemoryIncorrectSubmissionLedger()
        self._repository = repository if repository is not None else InMemoryTaskRecordRepository()
        self._task_store = task_store if task_store is not None else InMemoryTaskStore()
        self._streaks = streaks
        self._clock = clock or (lambda: datetime.now(UTC))

        self._hooks: list[RecomputeHook] = []
        self._locks: dict[AggregateKey, asyncio.Lock] = {}
        self._aggregates: dict[AggregateKey, PlayerAggregate] = {}

    # --- Subscribers ---

    def register_recompute_hook(self, hook: RecomputeHook) -> None:
        if hook not in self._hooks:
            self._hooks.append(hook)

    def unregister_recompute_hook(self, hook: RecomputeHook) -> None:
        if hook in self._hooks:
            self._hooks.remove(hook)

    def _notify(self, event: RecomputeEvent) -> None:
        for hook in list(self._hooks):
            try:
                hook(event)
            except Exception:
                logger.exception(
                    "recompute_hook_failed",
                    player_id=event.player_id,
                    competition_id=event.competition_id,
                    hook=getattr(hook, "__qualname__", repr(hook)),
                )

    # --- Snapshots ---

    async def percentage_snapshot(self) -> PercentageTable:
        return await self._percentages.snapshot()

    async def level_rules(self) -> list[LevelRule]:
        return await load_level_rules(
            self._levels, default_level_rules(self._config.levels.levels)
        )

    # --- Ranking and profile ---

    async def compute_ranking(
        self,
        players: Sequence[Player],
        tasks: Iterable[Task],
        scope: RankingScope | None = None,
    ) -> list[RankingEntryDTO]:
        """Ordered ranking entries for ``players``.

        XP for the ranking comes from the scope's window; weekly and monthly XP
        are always computed for the reference week and month.
        """
        scope = scope or RankingScope()
        reference = scope.reference_time or self._clock()
        table = await self.percentage_snapshot()
        rules = await self.level_rules()

        competition_id = scope.competition_id
        scoped_tasks = [
            t for t in tasks if competition_id is None or t.competition_id == competition_id
        ]
        tasks_by_player: dict[str, list[Task]] = {}
        for task in scoped_tasks:
            tasks_by_player.setdefault(task.assignee_id, []).append(task)

        incorrect = await load_incorrect_counts(self._ledger, scoped_tasks, scope.competition_id)
        first_completion = first_completion_times(scoped_tasks)

        ranking_cfg = self._config.ranking
        main_bounds = window_bounds(scope.window, reference, scope.season, ranking_cfg)
        week_bounds = window_bounds(TimeWindow.WEEK, reference, config=ranking_cfg)
        month_bounds = window_bounds(TimeWindow.MONTH, reference, config=ranking_cfg)

        entries: dict[str, RankingEntryDTO] = {}
        candidates: list[RankingCandidate] = []
        for player in players:
            if player.id in entries:
                logger.warning("ranking_duplicate_player", player_id=player.id)
                continue
            own = tasks_by_player.get(player.id, [])
            base = ScopedXp(
                total=xp_for_tasks(filter_window(own, main_bounds), table),
                weekly=xp_for_tasks(filter_window(own, week_bounds), table),
                monthly=xp_for_tasks(filter_window(own, month_bounds), table),
            )
            streak_xp, include_in = await load_streak(self._streaks, player.id)
            scoped = apply_streak_bonus(base, streak_xp, include_in)

            entries[player.id] = to_ranking_entry(
                player,
                xp=scoped.total,
                level=resolve_level(scoped.total, rules),
                weekly_xp=scoped.weekly,
                monthly_xp=scoped.monthly,
                consistency_bonus=consistency_bonus(player.streak, self._config.consistency),
            )
            candidates.append(
                RankingCandidate(
                    player_id=player.id,
                    xp=scoped.total,
                    incorrect_count=incorrect.for_player(player.id),
                    first_completion=first_completion.get(player.id),
                )
            )

        ordered = order_players(candidates)

        logger.info(
            "ranking_computed",
            competition_id=scope.competition_id,
            window=scope.window.value,
            players=len(ordered),
            percentage_source=table.source,
            incorrect_source=incorrect.source.value,
        )
        return [entries[c.player_id] for c in ordered]

    async def compute_profile(
        self,
        player: Player,
        tasks: Iterable[Task],
        scope: RankingScope | None = None,
    ) -> PlayerProfileDTO:
        """Profile view with the productivity breakdown for one player."""
        scope = scope or RankingScope()
        reference = scope.reference_time or self._clock()
        table = await self.percentage_snapshot()
        rules = await self.level_rules()

        bounds = window_bounds(scope.window, reference, scope.season, self._config.ranking)
        own = filter_window(
            [
                t
                for t in tasks
                if t.assignee_id == player.id
                and (scope.competition_id is None or t.competition_id == scope.competition_id)
            ],
            bounds,
        )
        summary = summarize_tasks(own, table)
        streak_xp, include_in = await load_streak(self._streaks, player.id)
        xp = xp_from_average(summary.average_percent_raw) + (
            streak_xp.total if include_in.total else 0
        )

        profile = to_player_profile(
            player,
            summary=summary,
            distribution=delivery_distribution(own),
            level=resolve_level(xp, rules),
            progress=level_progress(xp, rules),
        )
        logger.info(
            "profile_computed",
            player_id=player.id,
            competition_id=scope.competition_id,
            total_considered=summary.total_considered,
        )
        return profile

    # --- Rework ---

    async def _require_task(self, task_id: str) -> Task:
        task = await self._task_store.get(task_id)
        if task is None:
            raise KeyError(f"Task not found: {task_id}")
        return task

    async def enter_rework(self, task_id: str) -> ReworkTransition:
        """Send a task back for rework and recompute its assignee."""
        transition = enter_rework_transition(await self._require_task(task_id))
        if transition.applied:
            await self._task_store.save(transition.task)
            await self.handle_task_event(
                transition.task, trigger=RecomputeTrigger.REWORK_ENTERED
            )
        return transition

    async def reconclude(
        self,
        task_id: str,
        completed_date: datetime | str,
        options: ReconcludeOptions | None = None,
    ) -> ReworkTransition:
        """Complete a task in rework and recompute its assignee."""
        transition = reconclude_transition(
            await self._require_task(task_id), completed_date, options
        )
        if transition.applied:
            await self._task_store.save(transition.task)
            await self.handle_task_event(transition.task, trigger=RecomputeTrigger.RECONCLUDED)
        return transition

    # --- Records and recomputation ---

    async def handle_task_event(
        self,
        task: Task,
        competition_id: str | None = None,
        trigger: RecomputeTrigger = RecomputeTrigger.TASK_EVENT,
    ) -> PlayerAggregate:
        """Upsert the record for a changed task and recompute its player."""
        table = await self.percentage_snapshot()
        record = build_record(task, table, competition_id)
        await self._write_records([record])
        return await self.recompute_player(
            record.player_id, record.competition_id, trigger=trigger, task_id=task.id
        )

    async def backfill(
        self,
        tasks: Iterable[Task],
        competition_id: str | None = None,
    ) -> list[PersistentTaskRecord]:
        """Convert a batch of tasks into records and recompute every affected player."""
        table = await self.percentage_snapshot()
        records = backfill_records(tasks, table, competition_id)
        await self._write_records(records)

        keys = list(dict.fromkeys((r.player_id, r.competition_id) for r in records))
        for player_id, key_competition in keys:
            await self.recompute_player(
                player_id, key_competition, trigger=RecomputeTrigger.BACKFILL
            )

        logger.info(
            "backfill_completed",
            competition_id=competition_id,
            records=len(records),
            players=len(keys),
            percentage_source=table.source,
        )
        return records

    async def _write_records(self, records: list[PersistentTaskRecord]) -> None:
        try:
            await self._repository.upsert(records)
        except Exception:
            logger.exception("task_records_write_failed", records=len(records))
            raise

    async def _load_records(self, competition_id: str | None) -> list[PersistentTaskRecord]:
        try:
            return await self._repository.load_by_scope(competition_id)
        except Exception:
            logger.exception("task_records_load_failed", competition_id=competition_id)
            raise

    async def _tasks_for_heuristic(
        self,
        player_ids: Iterable[str],
        records: Sequence[PersistentTaskRecord],
        competition_id: str | None,
    ) -> list[Task]:
        """Store tasks in this scope: same competition, or already recorded under it."""
        recorded = {r.task_id for r in records}
        tasks: list[Task] = []
        for player_id in player_ids:
            try:
                own = await self._task_store.list_for_player(player_id)
            except Exception:
                logger.warning("task_store_unavailable", player_id=player_id, exc_info=True)
                continue
            tasks.extend(
                t for t in own if t.competition_id == competition_id or t.id in recorded
            )
        return tasks

    def _lock_for(self, key: AggregateKey) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    async def recompute_player(
        self,
        player_id: str,
        competition_id: str | None = None,
        trigger: RecomputeTrigger = RecomputeTrigger.MANUAL,
        task_id: str | None = None,
    ) -> PlayerAggregate:
        """Re-derive one player's aggregate from the full record set.

        Runs under the (player, competition) lock so concurrent recomputes of
        the same key are serialized; every call notifies the hooks once.
        """
        key = (player_id, competition_id)
        async with self._lock_for(key):
            records = await self._load_records(competition_id)
            heuristic_tasks = await self._tasks_for_heuristic([player_id], records, competition_id)
            incorrect = await load_incorrect_counts(
                self._ledger, heuristic_tasks, competition_id, exact_scope=True
            )
            aggregate = aggregate_player(
                records, player_id, competition_id, incorrect.for_player(player_id)
            )
            self._aggregates[key] = aggregate

        logger.info(
            "player_recomputed",
            player_id=player_id,
            competition_id=competition_id,
            trigger=trigger.value,
            xp=aggregate.xp,
            count_considered=aggregate.count_considered,
        )
        self._notify(
            RecomputeEvent(
                player_id=player_id,
                competition_id=competition_id,
                aggregate=aggregate,
                trigger=trigger,
                task_id=task_id,
                recomputed_at=self._clock(),
            )
        )
        return aggregate

    async def compute_aggregates(self, competition_id: str | None = None) -> list[PlayerAggregate]:
        """Authoritative aggregates for every player with records in the scope."""
        records = await self._load_records(competition_id)
        player_ids = list(dict.fromkeys(r.player_id for r in records))
        heuristic_tasks = await self._tasks_for_heuristic(player_ids, records, competition_id)
        incorrect = await load_incorrect_counts(
            self._ledger, heuristic_tasks, competition_id, exact_scope=True
        )
        return aggregate_records(records, incorrect.counts)

    def last_aggregate(
        self, player_id: str, competition_id: str | None = None
    ) -> PlayerAggregate | None:
        """Aggregate stored by the most recent recompute for this key, if any."""
        return self._aggregates.get((player_id, competition_id))

    # --- Ledger ---

    async def record_incorrect_submission(
        self,
        player_id: str,
        task_id: str | None = None,
        competition_id: str | None = None,
    ) -> IncorrectSubmissionEntry:
        entry = new_incorrect_submission(player_id, task_id, competition_id, self._clock())
        await self._ledger.append(entry)
        logger.info(
            "incorrect_submission_recorded",
            player_id=player_id,
            task_id=task_id,
            competition_id=competition_id,
        )
        await self.recompute_player(
            player_id,
            competition_id,
            trigger=RecomputeTrigger.INCORRECT_SUBMISSION,
            task_id=task_id,
        )
        return entry
