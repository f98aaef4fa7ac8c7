"""Long-running pipeline process: queue consumers plus the cron scheduler."""

import asyncio
import logging
import signal
from dataclasses import dataclass

import sentry_sdk
from redis.asyncio import Redis
from sentry_sdk.integrations.asyncio import AsyncioIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from edgescore.adapters.registry import AdapterRegistry
from edgescore.compliance.rate_limiter import RateLimiter
from edgescore.compliance.robots import RobotsChecker
from edgescore.core.config import get_settings
from edgescore.core.database import dispose_engine, get_session_factory
from edgescore.core.logging import setup_logging
from edgescore.notifications.alert_dedup import AlertDedup
from edgescore.notifications.signals import PipelineSignals
from edgescore.notifications.telegram import TelegramNotifier
from edgescore.pipeline.normalizer import Normalizer
from edgescore.pipeline.team_resolver import TeamResolver
from edgescore.queue.broker import QueueBroker
from edgescore.results.espn import EspnResultsFetcher
from edgescore.results.router import ResultsRouter
from edgescore.results.soccer24 import Soccer24ResultsFetcher
from edgescore.scheduler import JobScheduler
from edgescore.services.sources import sync_sources
from edgescore.services.team_history import SourceAccuracyCache
from edgescore.snapshots.storage import SnapshotStore
from edgescore.workers.alert_worker import AlertWorker
from edgescore.workers.browser_pool import BrowserPool
from edgescore.workers.fetch_worker import FetchWorker
from edgescore.workers.http_client import HttpClient
from edgescore.workers.parse_worker import ParseWorker
from edgescore.workers.results_worker import ResultsWorker

settings = get_settings()
logger = logging.getLogger(__name__)


def init_sentry() -> None:
    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            environment=settings.app_env,
            traces_sample_rate=settings.sentry_traces_sample_rate,
            integrations=[AsyncioIntegration(), SqlalchemyIntegration()],
            send_default_pii=False,
        )


async def connect_redis() -> Redis | None:
    redis: Redis | None = None
    try:
        redis = Redis.from_url(settings.redis_url, decode_responses=True)
        await redis.ping()
    except Exception:
        logger.exception("Redis unavailable, running without cache invalidation, broadcasts or alert dedup")
        if redis is not None:
            await redis.aclose()
        redis = None
    return redis


@dataclass
class Runtime:
    """Everything one pipeline process shares: registry, resolver, queues and workers."""

    registry: AdapterRegistry
    resolver: TeamResolver
    broker: QueueBroker
    http_client: HttpClient
    browser_pool: BrowserPool
    redis: Redis | None
    fetch_worker: FetchWorker
    parse_worker: ParseWorker
    results_worker: ResultsWorker
    alert_worker: AlertWorker

    def start_consumers(self) -> None:
        self.broker.fetch.process(self.fetch_worker.handle)
        self.broker.parse.process(self.parse_worker.handle)
        self.broker.results.process(self.results_worker.handle)
        self.broker.alert.process(self.alert_worker.handle)

    async def close(self) -> None:
        await self.broker.close()
        await self.browser_pool.close()
        await self.http_client.close()
        if self.redis is not None:
            await self.redis.aclose()


async def build_runtime(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    registry: AdapterRegistry | None = None,
    redis: Redis | None = None,
    broker: QueueBroker | None = None,
) -> Runtime:
    """Resolve adapters, load team aliases and sync sources, then wire the workers.

    Alias loading is a hard startup requirement; its failure propagates.
    """
    registry = registry if registry is not None else AdapterRegistry.from_paths(settings.adapter_class_paths)
    resolver = TeamResolver()
    async with session_factory() as db:
        await resolver.load_aliases(db)
        await sync_sources(db, registry)

    broker = broker or QueueBroker.from_settings(settings)
    http_client = HttpClient()
    browser_pool = BrowserPool()
    snapshot_store = SnapshotStore()

    fetch_worker = FetchWorker(
        registry=registry,
        broker=broker,
        rate_limiter=RateLimiter(),
        robots=RobotsChecker(),
        http_client=http_client,
        browser_pool=browser_pool,
        snapshot_store=snapshot_store,
        session_factory=session_factory,
    )
    parse_worker = ParseWorker(
        registry=registry,
        normalizer=Normalizer(resolver),
        snapshot_store=snapshot_store,
        session_factory=session_factory,
        signals=PipelineSignals(redis),
    )
    results_worker = ResultsWorker(
        router=ResultsRouter(EspnResultsFetcher(), Soccer24ResultsFetcher(browser_pool)),
        resolver=resolver,
        session_factory=session_factory,
    )
    alert_worker = AlertWorker(
        notifier=TelegramNotifier(),
        dedup=AlertDedup(redis),
        session_factory=session_factory,
        accuracy_cache=SourceAccuracyCache(),
    )
    return Runtime(
        registry=registry,
        resolver=resolver,
        broker=broker,
        http_client=http_client,
        browser_pool=browser_pool,
        redis=redis,
        fetch_worker=fetch_worker,
        parse_worker=parse_worker,
        results_worker=results_worker,
        alert_worker=alert_worker,
    )


async def main() -> None:
    setup_logging()
    init_sentry()

    redis = await connect_redis()
    runtime = await build_runtime(get_session_factory(), redis=redis)
    runtime.start_consumers()

    scheduler = JobScheduler(runtime.broker)
    scheduler.register_all(runtime.registry)
    scheduler.start()
    logger.info(
        "Pipeline worker started",
        extra={
            "adapters": [adapter.config.id for adapter in runtime.registry],
            "schedules": scheduler.schedule_ids,
            "team_aliases": runtime.resolver.alias_count,
            "alerts_enabled": settings.telegram_enabled,
            "redis_available": redis is not None,
        },
    )

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    try:
        await stop.wait()
    finally:
        logger.info("Shutting down pipeline worker", extra={"queue_counts": runtime.broker.counts()})
        scheduler.shutdown()
        await runtime.close()
        await dispose_engine()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
