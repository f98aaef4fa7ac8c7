import logging
from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from edgescore.adapters.registry import AdapterRegistry
from edgescore.notifications.signals import PipelineSignals
from edgescore.pipeline.normalizer import NormalizeResult, Normalizer
from edgescore.queue.broker import Job
from edgescore.schemas.jobs import ParseJob
from edgescore.snapshots.storage import SnapshotStore

logger = logging.getLogger(__name__)


class ParseWorker:
    def __init__(
        self,
        *,
        registry: AdapterRegistry,
        normalizer: Normalizer,
        snapshot_store: SnapshotStore,
        session_factory: async_sessionmaker[AsyncSession],
        signals: PipelineSignals,
    ) -> None:
        self.registry = registry
        self.normalizer = normalizer
        self.snapshot_store = snapshot_store
        self.session_factory = session_factory
        self.signals = signals

    async def handle(self, job: Job) -> NormalizeResult | None:
        payload = ParseJob.model_validate(job.payload)
        adapter = self.registry.get(payload.adapter_id)
        log_extra = {"job_id": job.id, "adapter": payload.adapter_id, "sport": payload.sport}

        html = await self.snapshot_store.load(payload.snapshot_path)
        raw_predictions = adapter.parse(html, payload.sport, payload.fetched_at)
        if not raw_predictions:
            logger.warning("No predictions extracted; selectors may need updating", extra=log_extra)
            return None

        async with self.session_factory() as db:
            result = await self.normalizer.normalize_and_insert(db, raw_predictions)

        logger.info(
            "Parse completed",
            extra={
                **log_extra,
                "extracted": len(raw_predictions),
                "inserted": result.inserted,
                "duplicates": result.duplicates,
                "skipped": result.skipped,
            },
        )

        if result.inserted > 0:
            dates_by_sport: dict[str, set[date]] = {}
            for sport, game_date in result.game_dates:
                dates_by_sport.setdefault(sport, set()).add(game_date)
            for sport, game_dates in dates_by_sport.items():
                await self.signals.predictions_updated(sport, result.inserted_by_sport[sport], game_dates)
        return result
