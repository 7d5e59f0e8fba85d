"""Ranking order over players.

Sort keys, each breaking ties of the previous one:
1. XP, highest first.
2. Incorrect submissions, fewest first.
3. First completion, earliest first (players who never completed go last).
Python's sort is stable, so players identical on all three keys keep their
input order.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime

from .models import Task, TaskStatus, as_datetime


@dataclass(frozen=True)
class RankingCandidate:
    player_id: str
    xp: int
    incorrect_count: int = 0
    first_completion: datetime | None = None


def first_completion_times(tasks: Iterable[Task]) -> dict[str, datetime]:
    """Earliest parseable completion per assignee among completed tasks."""
    earliest: dict[str, datetime] = {}
    for task in tasks:
        if task.status != TaskStatus.COMPLETED:
            continue
        done = as_datetime(task.completed_date)
        if done is None:
            continue
        current = earliest.get(task.assignee_id)
        if current is None or done < current:
            earliest[task.assignee_id] = done
    return earliest


def ranking_key(candidate: RankingCandidate) -> tuple:
    never_completed = candidate.first_completion is None
    completion_ts = 0.0 if never_completed else candidate.first_completion.timestamp()
    return (-candidate.xp, candidate.incorrect_count, never_completed, completion_ts)


def order_players(candidates: Sequence[RankingCandidate]) -> list[RankingCandidate]:
    return sorted(candidates, key=ranking_key)
