import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import aliased

from edgescore.core.config import get_settings
from edgescore.models.match import Match
from edgescore.models.prediction import Prediction
from edgescore.models.source import Source
from edgescore.models.team import Team
from edgescore.notifications.alert_dedup import AlertDedup
from edgescore.notifications.telegram import TelegramNotifier
from edgescore.queue.broker import Job
from edgescore.scoring.engine import MatchPick, ScoredMatch, score_matches
from edgescore.services.team_history import SourceAccuracyCache, TeamHistory
from edgescore.workers.results_worker import local_today

settings = get_settings()
logger = logging.getLogger(__name__)


@dataclass
class AlertOutcome:
    status: str  # disabled | no_candidates | all_sent_before | sent | send_failed
    scored: int = 0
    candidates: int = 0
    sent: list[ScoredMatch] = field(default_factory=list)


async def load_picks_for_date(db: AsyncSession, game_date: date) -> list[MatchPick]:
    home = aliased(Team)
    away = aliased(Team)
    rows = (
        await db.execute(
            select(
                Match.id,
                Match.game_date,
                Match.game_time,
                Match.sport,
                home.name,
                away.name,
                Match.home_team_id,
                Match.away_team_id,
                Prediction.pick_type,
                Prediction.side,
                Prediction.value,
                Source.name,
                Prediction.picker_name,
                Prediction.confidence,
                Prediction.reasoning,
            )
            .join(Match, Match.id == Prediction.match_id)
            .join(home, home.id == Match.home_team_id)
            .join(away, away.id == Match.away_team_id)
            .join(Source, Source.id == Prediction.source_id)
            .where(Match.game_date == game_date)
            .order_by(Match.id, Prediction.id)
        )
    ).all()
    return [MatchPick(*row) for row in rows]


class AlertWorker:
    def __init__(
        self,
        *,
        notifier: TelegramNotifier,
        dedup: AlertDedup,
        session_factory: async_sessionmaker[AsyncSession],
        accuracy_cache: SourceAccuracyCache,
        score_threshold: int | None = None,
        max_picks: int | None = None,
        today: Callable[[], date] = local_today,
    ) -> None:
        self.notifier = notifier
        self.dedup = dedup
        self.session_factory = session_factory
        self.accuracy_cache = accuracy_cache
        self.score_threshold = settings.telegram_score_threshold if score_threshold is None else score_threshold
        self.max_picks = settings.telegram_max_picks if max_picks is None else max_picks
        self.today = today

    async def select_candidates(self, db: AsyncSession, game_date: date) -> tuple[int, list[ScoredMatch]]:
        picks = await load_picks_for_date(db, game_date)
        history = TeamHistory(db, self.accuracy_cache, before=game_date)
        scored = await score_matches(picks, history)
        eligible = [match for match in scored if match.score >= self.score_threshold]
        return len(scored), eligible[: self.max_picks]

    async def handle(self, job: Job) -> AlertOutcome:
        if not self.notifier.configured:
            return AlertOutcome(status="disabled")

        game_date = self.today()
        async with self.session_factory() as db:
            scored_count, candidates = await self.select_candidates(db, game_date)

        to_send = [
            pick for pick in candidates if not await self.dedup.is_sent(pick.match_id, pick.recommendation)
        ]
        if not to_send:
            logger.info(
                "No new picks to alert",
                extra={"job_id": job.id, "scored": scored_count, "candidates": len(candidates)},
            )
            status = "all_sent_before" if candidates else "no_candidates"
            return AlertOutcome(status=status, scored=scored_count, candidates=len(candidates))

        if not await self.notifier.send_picks(to_send):
            return AlertOutcome(status="send_failed", scored=scored_count, candidates=len(candidates))

        for pick in to_send:
            await self.dedup.mark_sent(pick.match_id, pick.recommendation)

        logger.info("Alerts dispatched", extra={"job_id": job.id, "count": len(to_send)})
        return AlertOutcome(status="sent", scored=scored_count, candidates=len(candidates), sent=to_send)
