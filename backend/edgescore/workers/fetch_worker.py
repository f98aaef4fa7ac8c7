import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from urllib.parse import urljoin, urlparse

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from edgescore.adapters.base import SiteAdapter, has_browser_actions, has_discovery
from edgescore.adapters.registry import AdapterRegistry
from edgescore.compliance.rate_limiter import RateLimiter
from edgescore.compliance.robots import RobotsChecker
from edgescore.models.enums import FetchMethod
from edgescore.models.source import Source
from edgescore.queue.broker import Job, QueueBroker
from edgescore.queue.constants import FETCH_JOB, PARSE_JOB
from edgescore.schemas.jobs import FetchJob, ParseJob
from edgescore.snapshots.storage import SnapshotMeta, SnapshotStore
from edgescore.workers.browser_pool import BrowserPool
from edgescore.workers.http_client import HttpClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchOutcome:
    status: str  # fetched | blocked
    snapshot: SnapshotMeta | None = None
    sub_urls: int = 0


class FetchWorker:
    def __init__(
        self,
        *,
        registry: AdapterRegistry,
        broker: QueueBroker,
        rate_limiter: RateLimiter,
        robots: RobotsChecker,
        http_client: HttpClient,
        browser_pool: BrowserPool | None,
        snapshot_store: SnapshotStore,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        self.registry = registry
        self.broker = broker
        self.rate_limiter = rate_limiter
        self.robots = robots
        self.http_client = http_client
        self.browser_pool = browser_pool
        self.snapshot_store = snapshot_store
        self.session_factory = session_factory

    async def _retrieve(self, adapter: SiteAdapter, url: str) -> tuple[str, int | None, int]:
        config = adapter.config
        if FetchMethod(config.fetch_method) == FetchMethod.BROWSER:
            if self.browser_pool is None:
                raise RuntimeError(f"adapter {config.id} needs a browser but no browser pool is configured")
            actions = adapter.browser_actions if has_browser_actions(adapter) else None
            page = await self.browser_pool.fetch(url, actions, source=config.id)
            return page.html, None, page.duration_ms
        response = await self.http_client.fetch(url, source=config.id)
        return response.html, response.status_code, response.duration_ms

    async def handle(self, job: Job) -> FetchOutcome:
        payload = FetchJob.model_validate(job.payload)
        adapter = self.registry.get(payload.adapter_id)
        config = adapter.config
        log_extra = {"job_id": job.id, "adapter": config.id, "sport": payload.sport, "url": payload.url}

        await self.rate_limiter.acquire(config.id, config.rate_limit_seconds)

        path = (urlparse(payload.url).path or "/") if payload.is_sub_url else payload.path
        if not await self.robots.is_allowed(config.base_url, path):
            logger.warning("Blocked by robots.txt, skipping", extra=log_extra)
            return FetchOutcome(status="blocked")

        html, http_status, duration_ms = await self._retrieve(adapter, payload.url)
        fetched_at = datetime.now(UTC)

        async with self.session_factory() as db:
            snapshot = await self.snapshot_store.save(
                db,
                source_id=config.id,
                sport=payload.sport,
                url=payload.url,
                fetch_method=FetchMethod(config.fetch_method).value,
                http_status=http_status,
                duration_ms=duration_ms,
                html=html,
                fetched_at=fetched_at,
            )
            await db.execute(update(Source).where(Source.slug == config.id).values(last_fetched_at=fetched_at))
            await db.commit()

        logger.info(
            "Fetch completed",
            extra={**log_extra, "duration_ms": duration_ms, "size_bytes": snapshot.size_bytes},
        )

        sub_urls = 0
        if not payload.is_sub_url and has_discovery(adapter):
            for sub_url in adapter.discover_urls(html, payload.sport):
                absolute = urljoin(config.base_url.rstrip("/") + "/", sub_url)
                await self.broker.fetch.add(
                    FETCH_JOB,
                    FetchJob(
                        adapter_id=config.id,
                        sport=payload.sport,
                        path=urlparse(absolute).path or "/",
                        url=absolute,
                        is_sub_url=True,
                    ),
                    attempts=config.max_retries,
                    backoff=config.backoff,
                )
                sub_urls += 1
            if sub_urls:
                logger.info("Discovered sub-URLs, enqueued", extra={**log_extra, "count": sub_urls})

        await self.broker.parse.add(
            PARSE_JOB,
            ParseJob(
                adapter_id=config.id,
                sport=payload.sport,
                snapshot_path=snapshot.html_path,
                fetched_at=fetched_at,
            ),
        )
        return FetchOutcome(status="fetched", snapshot=snapshot, sub_urls=sub_urls)
