"""In-process job queues with per-queue retry, backoff and retention policy."""

import asyncio
import itertools
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel

from edgescore.adapters.base import BackoffPolicy
from edgescore.core.config import Settings, get_settings
from edgescore.queue.constants import ALERT_QUEUE, FETCH_QUEUE, PARSE_QUEUE, RESULTS_QUEUE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueuePolicy:
    attempts: int
    backoff: BackoffPolicy
    concurrency: int = 1
    keep_completed: int = 1000
    keep_failed: int = 5000


@dataclass
class Job:
    id: str
    name: str
    queue: str
    payload: dict[str, Any]
    attempts: int
    backoff: BackoffPolicy
    attempts_made: int = 0
    state: str = "waiting"  # waiting | active | delayed | completed | failed
    failed_reason: str | None = None
    result: Any = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    finished_at: datetime | None = None


JobHandler = Callable[[Job], Awaitable[Any]]


class Queue:
    def __init__(
        self,
        name: str,
        policy: QueuePolicy,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.name = name
        self.policy = policy
        self._sleep = sleep
        self._pending: asyncio.Queue[Job] = asyncio.Queue()
        self._outstanding: dict[str, Job] = {}
        self.completed: deque[Job] = deque(maxlen=policy.keep_completed)
        self.failed: deque[Job] = deque(maxlen=policy.keep_failed)
        self._handler: JobHandler | None = None
        self._workers: list[asyncio.Task] = []
        self._timers: set[asyncio.Task] = set()
        self._idle = asyncio.Event()
        self._idle.set()
        self._ids = itertools.count(1)
        self._closed = False

    async def add(
        self,
        name: str,
        payload: BaseModel | dict[str, Any],
        *,
        attempts: int | None = None,
        backoff: BackoffPolicy | None = None,
        job_id: str | None = None,
    ) -> Job:
        """Enqueue a job.

        A ``job_id`` that is still outstanding returns the existing job
        instead of enqueuing a second copy.
        """
        if self._closed:
            raise RuntimeError(f"queue {self.name} is closed")
        if isinstance(payload, BaseModel):
            payload = payload.model_dump(mode="json")

        if job_id is not None and job_id in self._outstanding:
            logger.debug("Job already outstanding", extra={"queue": self.name, "job_id": job_id})
            return self._outstanding[job_id]

        job = Job(
            id=job_id or f"{self.name}:{next(self._ids)}",
            name=name,
            queue=self.name,
            payload=dict(payload),
            attempts=max(1, attempts if attempts is not None else self.policy.attempts),
            backoff=backoff or self.policy.backoff,
        )
        self._outstanding[job.id] = job
        self._idle.clear()
        self._pending.put_nowait(job)
        return job

    def process(self, handler: JobHandler) -> None:
        if self._workers:
            raise RuntimeError(f"queue {self.name} already has consumers")
        self._handler = handler
        self._workers = [
            asyncio.create_task(self._consume(), name=f"{self.name}-worker-{index}")
            for index in range(self.policy.concurrency)
        ]
        logger.info(
            "Queue consumers started",
            extra={"queue": self.name, "concurrency": self.policy.concurrency},
        )

    async def _consume(self) -> None:
        while True:
            job = await self._pending.get()
            try:
                await self._run(job)
            finally:
                self._pending.task_done()

    async def _run(self, job: Job) -> None:
        assert self._handler is not None
        job.state = "active"
        job.attempts_made += 1
        try:
            job.result = await self._handler(job)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            job.failed_reason = f"{type(exc).__name__}: {exc}"
            if job.attempts_made < job.attempts and getattr(exc, "retryable", True):
                delay = job.backoff.delay_for(job.attempts_made)
                job.state = "delayed"
                logger.warning(
                    "Job attempt failed; retry scheduled",
                    extra={
                        "queue": self.name,
                        "job_id": job.id,
                        "job_name": job.name,
                        "attempt": job.attempts_made,
                        "max_attempts": job.attempts,
                        "retry_in_seconds": delay,
                        "error": job.failed_reason,
                    },
                )
                self._schedule_retry(job, delay)
                return

            job.state = "failed"
            job.finished_at = datetime.now(UTC)
            self.failed.append(job)
            logger.error(
                "Job failed after exhausting attempts",
                exc_info=exc,
                extra={
                    "queue": self.name,
                    "job_id": job.id,
                    "job_name": job.name,
                    "attempts": job.attempts_made,
                    "payload": job.payload,
                },
            )
            self._finish(job)
            return

        job.state = "completed"
        job.finished_at = datetime.now(UTC)
        self.completed.append(job)
        self._finish(job)

    def _schedule_retry(self, job: Job, delay: float) -> None:
        task = asyncio.create_task(self._retry_after(job, delay))
        self._timers.add(task)
        task.add_done_callback(self._timers.discard)

    async def _retry_after(self, job: Job, delay: float) -> None:
        await self._sleep(delay)
        job.state = "waiting"
        self._pending.put_nowait(job)

    def _finish(self, job: Job) -> None:
        self._outstanding.pop(job.id, None)
        if not self._outstanding:
            self._idle.set()

    @property
    def is_idle(self) -> bool:
        return not self._outstanding

    async def join(self) -> None:
        """Wait until every enqueued job has completed or failed for good."""
        await self._idle.wait()

    def counts(self) -> dict[str, int]:
        counts = {"waiting": 0, "active": 0, "delayed": 0}
        for job in self._outstanding.values():
            counts[job.state] = counts.get(job.state, 0) + 1
        counts["completed"] = len(self.completed)
        counts["failed"] = len(self.failed)
        return counts

    async def close(self) -> None:
        self._closed = True
        tasks = [*self._workers, *self._timers]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._workers = []
        self._timers.clear()


def _policy(settings: Settings, prefix: str) -> QueuePolicy:
    return QueuePolicy(
        attempts=getattr(settings, f"{prefix}_queue_attempts"),
        backoff=BackoffPolicy(
            type="fixed" if getattr(settings, f"{prefix}_queue_backoff_type") == "fixed" else "exponential",
            delay_seconds=getattr(settings, f"{prefix}_queue_backoff_seconds"),
        ),
        concurrency=getattr(settings, f"{prefix}_queue_concurrency"),
        keep_completed=settings.queue_keep_completed,
        keep_failed=settings.queue_keep_failed,
    )


class QueueBroker:
    """The four pipeline queues: fetch, parse, results and alert."""

    def __init__(self, queues: dict[str, Queue]) -> None:
        missing = {FETCH_QUEUE, PARSE_QUEUE, RESULTS_QUEUE, ALERT_QUEUE} - set(queues)
        if missing:
            raise ValueError(f"missing queues: {sorted(missing)}")
        self.queues = queues

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> "QueueBroker":
        settings = settings or get_settings()
        return cls(
            {
                FETCH_QUEUE: Queue(FETCH_QUEUE, _policy(settings, "fetch"), sleep=sleep),
                PARSE_QUEUE: Queue(PARSE_QUEUE, _policy(settings, "parse"), sleep=sleep),
                RESULTS_QUEUE: Queue(RESULTS_QUEUE, _policy(settings, "results"), sleep=sleep),
                ALERT_QUEUE: Queue(ALERT_QUEUE, _policy(settings, "alert"), sleep=sleep),
            }
        )

    def get(self, name: str) -> Queue:
        return self.queues[name]

    @property
    def fetch(self) -> Queue:
        return self.queues[FETCH_QUEUE]

    @property
    def parse(self) -> Queue:
        return self.queues[PARSE_QUEUE]

    @property
    def results(self) -> Queue:
        return self.queues[RESULTS_QUEUE]

    @property
    def alert(self) -> Queue:
        return self.queues[ALERT_QUEUE]

    async def join(self) -> None:
        # Draining one queue can feed another (fetch -> parse), so loop until all are idle.
        while True:
            for queue in self.queues.values():
                await queue.join()
            if all(queue.is_idle for queue in self.queues.values()):
                return

    def counts(self) -> dict[str, dict[str, int]]:
        return {name: queue.counts() for name, queue in self.queues.items()}

    async def close(self) -> None:
        for queue in self.queues.values():
            await queue.close()
