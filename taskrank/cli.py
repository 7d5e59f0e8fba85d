"""CLI entry point for offline ranking jobs.

Usage:
    taskrank backfill --tasks tasks.jsonl --competition c1 --output records.jsonl
    taskrank rank --tasks tasks.jsonl --players players.json --window week
    taskrank profile --tasks tasks.jsonl --players players.json --player-id u1
"""

import argparse
import asyncio
import contextlib
import json
import sys
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import structlog

from taskrank.config import settings
from taskrank.domains.productivity.config import ProductivityConfig
from taskrank.domains.productivity.engine import RankingEngine
from taskrank.domains.productivity.models import Player, RankingScope, Task, TimeWindow
from taskrank.shared.logging import setup_logging

logger = structlog.get_logger()


def _open_input(path: str):
    if path == "-":
        return contextlib.nullcontext(sys.stdin)
    return open(path)


def read_tasks(path: str) -> list[Task]:
    """Read tasks from a JSONL file (one task per line) or a JSON array."""
    with _open_input(path) as f:
        text = f.read()
    stripped = text.lstrip()
    if stripped.startswith("["):
        raw: Iterable[Any] = json.loads(stripped)
    else:
        raw = (json.loads(line) for line in text.splitlines() if line.strip())
    return [Task.model_validate(item) for item in raw]


def read_players(path: str | None, tasks: list[Task]) -> list[Player]:
    """Read players from a JSON array, or derive one per task assignee."""
    if path is None:
        ids = dict.fromkeys(t.assignee_id for t in tasks)
        return [Player(id=player_id, name=player_id) for player_id in ids]
    with _open_input(path) as f:
        return [Player.model_validate(item) for item in json.load(f)]


def _write_output(lines: Iterable[str], output: str | None) -> None:
    if output is None:
        for line in lines:
            print(line)
        return
    output_path = Path(output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        for line in lines:
            f.write(line + "\n")
    print(f"Wrote {output_path}", file=sys.stderr)


def _scope(args: argparse.Namespace) -> RankingScope:
    return RankingScope(
        competition_id=args.competition,
        window=TimeWindow(args.window),
        reference_time=args.reference_time,
    )


async def run_backfill(args: argparse.Namespace, engine: RankingEngine) -> int:
    tasks = read_tasks(args.tasks)
    records = await engine.backfill(tasks, args.competition)
    _write_output((r.model_dump_json() for r in records), args.output)
    return 0


async def run_rank(args: argparse.Namespace, engine: RankingEngine) -> int:
    tasks = read_tasks(args.tasks)
    players = read_players(args.players, tasks)
    entries = await engine.compute_ranking(players, tasks, _scope(args))
    payload = [e.model_dump(mode="json") for e in entries]
    _write_output([json.dumps(payload, indent=2, ensure_ascii=False)], args.output)
    return 0


async def run_profile(args: argparse.Namespace, engine: RankingEngine) -> int:
    tasks = read_tasks(args.tasks)
    players = {p.id: p for p in read_players(args.players, tasks)}
    player = players.get(args.player_id)
    if player is None:
        print(f"Unknown player: {args.player_id}", file=sys.stderr)
        return 1
    profile = await engine.compute_profile(player, tasks, _scope(args))
    payload = profile.model_dump(mode="json")
    _write_output([json.dumps(payload, indent=2, ensure_ascii=False)], args.output)
    return 0


COMMANDS = {
    "backfill": run_backfill,
    "rank": run_rank,
    "profile": run_profile,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="taskrank productivity ranking tools")
    parser.add_argument("--log-level", type=str, default=settings.log_level)
    parser.add_argument(
        "--log-format",
        choices=["json", "console"],
        default="json" if settings.log_json else "console",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    backfill = subparsers.add_parser("backfill", help="Convert tasks into task records")
    rank = subparsers.add_parser("rank", help="Compute the ordered ranking")
    profile = subparsers.add_parser("profile", help="Compute one player's profile")

    for sub in (backfill, rank, profile):
        sub.add_argument(
            "--tasks", type=str, required=True, help="Tasks JSONL file, or - for stdin"
        )
        sub.add_argument(
            "--competition",
            type=str,
            default=settings.default_competition_id,
            help="Competition id to scope to",
        )
        sub.add_argument("--output", type=str, default=None, help="Output file path")

    for sub in (rank, profile):
        sub.add_argument("--players", type=str, default=None, help="Players JSON array file")
        sub.add_argument(
            "--window",
            type=str,
            default=TimeWindow.ALL.value,
            choices=[w.value for w in TimeWindow],
            help="Time window for XP",
        )
        sub.add_argument(
            "--reference-time",
            type=str,
            default=None,
            help="ISO-8601 instant the week/month windows are anchored to",
        )

    profile.add_argument("--player-id", type=str, required=True)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(level=args.log_level, json_output=args.log_format == "json")

    try:
        engine = RankingEngine(config=ProductivityConfig.from_env())
        return asyncio.run(COMMANDS[args.command](args, engine))
    except (OSError, ValueError) as exc:
        logger.error("cli_command_failed", command=args.command, error=str(exc))
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
