from __future__ import annotations

import argparse
import asyncio
import json
from dataclasses import asdict, is_dataclass

from edgescore.core.logging import setup_logging
from edgescore.queue.constants import ALERT_JOB, ALERT_QUEUE, FETCH_JOB, FETCH_QUEUE, RESULTS_JOB, RESULTS_QUEUE
from edgescore.schemas.jobs import AlertJob, FetchJob, ResultsJob


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="EdgeScore pipeline CLI")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("seed-teams", help="Insert the curated NBA teams and aliases")

    fetch_parser = subparsers.add_parser("fetch", help="Fetch and parse one adapter/sport page now")
    fetch_parser.add_argument("adapter", help="Adapter id")
    fetch_parser.add_argument("sport", help="Sport key configured on the adapter")

    results_parser = subparsers.add_parser("results", help="Fetch, match and grade results for a sport")
    results_parser.add_argument("sport")
    results_parser.add_argument("--date", default="today", help="today, yesterday or YYYY-MM-DD")

    subparsers.add_parser("alerts", help="Score today's matches and send new Telegram alerts")
    return parser


def _jsonable(value):
    if is_dataclass(value):
        return asdict(value)
    return value


async def _run_seed_teams() -> int:
    from edgescore.core.database import dispose_engine, get_session_factory
    from edgescore.seed.nba_teams import seed_teams

    try:
        async with get_session_factory()() as db:
            summary = await seed_teams(db)
    finally:
        await dispose_engine()
    print(json.dumps(summary, indent=2, sort_keys=True))
    return 0


async def _run_job(queue_name: str, job_name: str, payload, registry=None) -> int:
    """Enqueue one job on a fresh runtime and drain every queue it feeds."""
    from edgescore.core.database import dispose_engine, get_session_factory
    from edgescore.tasks.worker import build_runtime, connect_redis

    redis = await connect_redis()
    runtime = await build_runtime(get_session_factory(), registry=registry, redis=redis)
    runtime.start_consumers()
    try:
        job = await runtime.broker.get(queue_name).add(job_name, payload)
        await runtime.broker.join()
        counts = runtime.broker.counts()
    finally:
        await runtime.close()
        await dispose_engine()

    print(
        json.dumps(
            {"job_id": job.id, "state": job.state, "result": _jsonable(job.result), "queues": counts},
            indent=2,
            sort_keys=True,
            default=str,
        )
    )
    return 0 if job.state == "completed" else 1


def main(argv: list[str] | None = None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(argv)
    if args.command is not None:
        setup_logging()

    if args.command == "seed-teams":
        return asyncio.run(_run_seed_teams())
    if args.command == "fetch":
        from edgescore.adapters.registry import AdapterRegistry
        from edgescore.core.config import get_settings

        settings = get_settings()
        registry = AdapterRegistry.from_paths(settings.adapter_class_paths)
        config = registry.get(args.adapter).config
        path = config.paths.get(args.sport)
        if path is None:
            parser.error(f"adapter {args.adapter!r} has no path for sport {args.sport!r}")
        payload = FetchJob(
            adapter_id=config.id,
            sport=args.sport,
            path=path,
            url=f"{config.base_url.rstrip('/')}{path}",
        )
        return asyncio.run(_run_job(FETCH_QUEUE, FETCH_JOB, payload, registry))
    if args.command == "results":
        return asyncio.run(_run_job(RESULTS_QUEUE, RESULTS_JOB, ResultsJob(sport=args.sport, date=args.date)))
    if args.command == "alerts":
        return asyncio.run(_run_job(ALERT_QUEUE, ALERT_JOB, AlertJob()))

    parser.print_help()
    return 1


def run() -> None:
    raise SystemExit(main())


if __name__ == "__main__":
    run()
