import logging
from collections.abc import Callable
from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from edgescore.core.config import get_settings
from edgescore.pipeline.team_resolver import TeamResolver
from edgescore.queue.broker import Job
from edgescore.results.matcher import match_results
from edgescore.results.router import ResultsRouter, result_source_for
from edgescore.results.service import ResultsSummary, process_results
from edgescore.schemas.jobs import ResultsJob

logger = logging.getLogger(__name__)


def resolve_date_arg(value: str, today: date) -> str:
    if value == "today":
        return today.isoformat()
    if value == "yesterday":
        return (today - timedelta(days=1)).isoformat()
    return value


def local_today(timezone: str | None = None) -> date:
    return datetime.now(UTC).astimezone(ZoneInfo(timezone or get_settings().app_timezone)).date()


class ResultsWorker:
    def __init__(
        self,
        *,
        router: ResultsRouter,
        resolver: TeamResolver,
        session_factory: async_sessionmaker[AsyncSession],
        today: Callable[[], date] = local_today,
    ) -> None:
        self.router = router
        self.resolver = resolver
        self.session_factory = session_factory
        self.today = today

    async def handle(self, job: Job) -> ResultsSummary:
        payload = ResultsJob.model_validate(job.payload)
        date_str = resolve_date_arg(payload.date, self.today())
        log_extra = {"job_id": job.id, "sport": payload.sport, "date": date_str}

        raw_results = await self.router.fetch_results_for_sport(payload.sport, date_str)
        if not raw_results:
            logger.info("No results for this sport/date", extra=log_extra)
            return ResultsSummary()

        async with self.session_factory() as db:
            matched = await match_results(db, self.resolver, raw_results)
            if not matched:
                logger.info("No results matched to internal matches", extra=log_extra)
                return ResultsSummary()
            summary = await process_results(db, matched, result_source_for(payload.sport))

        logger.info(
            "Results processing complete",
            extra={
                **log_extra,
                "results_upserted": summary.results_upserted,
                "predictions_graded": summary.predictions_graded,
                "predictions_voided": summary.predictions_voided,
            },
        )
        return summary
