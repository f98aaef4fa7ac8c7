"""Recurring job registration on top of APScheduler.

Every schedule is a declared-state upsert keyed by a stable id: registering
the same id with the same pattern and payload is a no-op, a changed
declaration replaces the trigger in place, and a scheduled run whose previous
job is still queued (or waiting out a retry backoff) is not enqueued twice.
"""

import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from pydantic import BaseModel

from edgescore.adapters.base import BackoffPolicy
from edgescore.adapters.registry import AdapterRegistry
from edgescore.core.config import get_settings
from edgescore.queue.broker import QueueBroker
from edgescore.queue.constants import (
    ALERT_JOB,
    ALERT_QUEUE,
    ALERT_SCHEDULE_ID,
    FETCH_JOB,
    FETCH_QUEUE,
    RESULTS_JOB,
    RESULTS_QUEUE,
)
from edgescore.schemas.jobs import AlertJob, FetchJob, ResultsJob

settings = get_settings()
logger = logging.getLogger(__name__)


def build_cron_trigger(pattern: str, timezone: str | None = None) -> CronTrigger:
    """Build a trigger from a 5-field crontab or a 6-field one with leading seconds."""
    fields = pattern.split()
    if len(fields) == 5:
        second = "0"
        minute, hour, day, month, day_of_week = fields
    elif len(fields) == 6:
        second, minute, hour, day, month, day_of_week = fields
    else:
        raise ValueError(f"cron pattern must have 5 or 6 fields: {pattern!r}")
    return CronTrigger(
        second=second,
        minute=minute,
        hour=hour,
        day=day,
        month=month,
        day_of_week=day_of_week,
        timezone=timezone or settings.app_timezone,
    )


@dataclass(frozen=True)
class ScheduleEntry:
    schedule_id: str
    pattern: str
    queue: str
    job_name: str
    payload_json: str
    attempts: int | None
    backoff: BackoffPolicy | None


class JobScheduler:
    def __init__(
        self,
        broker: QueueBroker,
        scheduler: AsyncIOScheduler | None = None,
        *,
        timezone: str | None = None,
    ) -> None:
        self.broker = broker
        self.timezone = timezone or settings.app_timezone
        self._scheduler = scheduler or AsyncIOScheduler(timezone=self.timezone)
        self._declared: dict[str, ScheduleEntry] = {}

    @property
    def schedule_ids(self) -> list[str]:
        return sorted(self._declared)

    def active_trigger_count(self) -> int:
        return len(self._scheduler.get_jobs())

    def upsert_schedule(
        self,
        schedule_id: str,
        pattern: str,
        queue: str,
        job_name: str,
        payload: BaseModel | dict[str, Any],
        *,
        attempts: int | None = None,
        backoff: BackoffPolicy | None = None,
    ) -> bool:
        """Declare a recurring job. Returns True when the trigger was created or replaced."""
        if isinstance(payload, BaseModel):
            payload = payload.model_dump(mode="json")
        entry = ScheduleEntry(
            schedule_id=schedule_id,
            pattern=pattern,
            queue=queue,
            job_name=job_name,
            payload_json=json.dumps(payload, sort_keys=True),
            attempts=attempts,
            backoff=backoff,
        )

        current = self._declared.get(schedule_id)
        if current == entry:
            return False

        trigger = build_cron_trigger(pattern, self.timezone)
        if current is not None:
            self._scheduler.remove_job(schedule_id)
        self._scheduler.add_job(
            self._dispatch,
            trigger=trigger,
            id=schedule_id,
            name=f"{job_name} [{schedule_id}]",
            kwargs={"schedule_id": schedule_id},
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=300,
        )
        self._declared[schedule_id] = entry
        logger.info(
            "Schedule registered",
            extra={
                "schedule_id": schedule_id,
                "pattern": pattern,
                "queue": queue,
                "replaced": current is not None,
            },
        )
        return True

    def remove_schedule(self, schedule_id: str) -> bool:
        if self._declared.pop(schedule_id, None) is None:
            return False
        self._scheduler.remove_job(schedule_id)
        return True

    async def _dispatch(self, schedule_id: str) -> None:
        entry = self._declared.get(schedule_id)
        if entry is None:
            return
        await self.broker.get(entry.queue).add(
            entry.job_name,
            json.loads(entry.payload_json),
            attempts=entry.attempts,
            backoff=entry.backoff,
            job_id=schedule_id,
        )

    def register_fetch_schedules(self, registry: AdapterRegistry) -> int:
        changed = 0
        for adapter in registry:
            config = adapter.config
            for sport, path in config.paths.items():
                payload = FetchJob(
                    adapter_id=config.id,
                    sport=sport,
                    path=path,
                    url=f"{config.base_url.rstrip('/')}{path}",
                )
                changed += self.upsert_schedule(
                    f"{config.id}:{sport}",
                    config.cron,
                    FETCH_QUEUE,
                    FETCH_JOB,
                    payload,
                    attempts=config.max_retries,
                    backoff=config.backoff,
                )
        return changed

    def register_results_schedules(self, sports: Iterable[str]) -> int:
        changed = 0
        for sport in sports:
            changed += self.upsert_schedule(
                f"results:{sport}:today",
                settings.results_today_cron,
                RESULTS_QUEUE,
                RESULTS_JOB,
                ResultsJob(sport=sport, date="today"),
            )
            changed += self.upsert_schedule(
                f"results:{sport}:yesterday",
                settings.results_yesterday_cron,
                RESULTS_QUEUE,
                RESULTS_JOB,
                ResultsJob(sport=sport, date="yesterday"),
            )
        return changed

    def register_alert_schedule(self) -> bool:
        return self.upsert_schedule(ALERT_SCHEDULE_ID, settings.alert_cron, ALERT_QUEUE, ALERT_JOB, AlertJob())

    def register_all(
        self,
        registry: AdapterRegistry,
        *,
        results_sports: Iterable[str] | None = None,
        alerts_enabled: bool | None = None,
    ) -> int:
        if results_sports is None:
            results_sports = settings.results_sports_list
        if alerts_enabled is None:
            alerts_enabled = settings.telegram_enabled

        changed = self.register_fetch_schedules(registry)
        changed += self.register_results_schedules(results_sports)
        if alerts_enabled:
            changed += self.register_alert_schedule()
        elif ALERT_SCHEDULE_ID in self._declared:
            self.remove_schedule(ALERT_SCHEDULE_ID)

        logger.info(
            "Schedules declared",
            extra={"schedule_count": len(self._declared), "changed": changed, "alerts_enabled": alerts_enabled},
        )
        return changed

    def start(self) -> None:
        if not self._scheduler.running:
            self._scheduler.start()

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
