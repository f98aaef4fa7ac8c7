import logging
import time
from collections.abc import Callable
from datetime import date

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from edgescore.core.config import get_settings
from edgescore.models.match import Match
from edgescore.models.match_result import MatchResult
from edgescore.models.prediction import Prediction
from edgescore.models.source import Source
from edgescore.scoring.engine import FormResult, H2HResult, SourceStats, VenueSplit, round_half_up

logger = logging.getLogger(__name__)


class SourceAccuracyCache:
    """Per-process cache of graded source win rates, refreshed after a TTL."""

    def __init__(self, ttl_seconds: float | None = None, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = get_settings().source_accuracy_cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._stats: dict[str, SourceStats] | None = None
        self._loaded_at = 0.0

    def invalidate(self) -> None:
        self._stats = None

    async def get(self, db: AsyncSession) -> dict[str, SourceStats]:
        now = self._clock()
        if self._stats is not None and now - self._loaded_at < self.ttl_seconds:
            return self._stats

        wins = func.sum(case((Prediction.grade == "win", 1), else_=0))
        decided = func.sum(case((Prediction.grade.in_(("win", "loss")), 1), else_=0))
        rows = (
            await db.execute(
                select(Source.name, Prediction.sport, wins.label("wins"), decided.label("decided"))
                .join(Source, Source.id == Prediction.source_id)
                .where(Prediction.grade.is_not(None))
                .group_by(Source.name, Prediction.sport)
            )
        ).all()

        stats: dict[str, SourceStats] = {}
        totals: dict[str, list[int]] = {}
        for name, sport, win_count, decided_count in rows:
            win_count = int(win_count or 0)
            decided_count = int(decided_count or 0)
            stats[f"{name}:{sport}"] = SourceStats(
                name=name,
                win_rate=round_half_up(win_count / decided_count * 100, 1) if decided_count else 0.0,
                decided=decided_count,
            )
            agg = totals.setdefault(name, [0, 0])
            agg[0] += win_count
            agg[1] += decided_count

        for name, (win_count, decided_count) in totals.items():
            stats[f"{name}:*"] = SourceStats(
                name=name,
                win_rate=round_half_up(win_count / decided_count * 100, 1) if decided_count else 0.0,
                decided=decided_count,
            )

        self._stats = stats
        self._loaded_at = now
        logger.debug("Source accuracy cache refreshed", extra={"entries": len(stats)})
        return stats


class TeamHistory:
    """Database-backed history lookups for the scoring engine."""

    def __init__(self, db: AsyncSession, accuracy_cache: SourceAccuracyCache, *, before: date | None = None) -> None:
        self.db = db
        self.accuracy_cache = accuracy_cache
        self.before = before

    def _final_results(self):
        stmt = (
            select(
                Match.home_team_id,
                Match.away_team_id,
                MatchResult.home_score,
                MatchResult.away_score,
            )
            .join(MatchResult, MatchResult.match_id == Match.id)
            .where(MatchResult.status == "final")
        )
        if self.before is not None:
            stmt = stmt.where(Match.game_date < self.before)
        return stmt

    async def team_form(self, team_id: int, limit: int = 10) -> list[FormResult]:
        rows = (
            await self.db.execute(
                self._final_results()
                .where(or_(Match.home_team_id == team_id, Match.away_team_id == team_id))
                .order_by(Match.game_date.desc(), Match.id.desc())
                .limit(limit)
            )
        ).all()
        return [
            FormResult(is_home=home_id == team_id, home_score=home_score, away_score=away_score)
            for home_id, _away_id, home_score, away_score in rows
        ]

    async def head_to_head(self, team_a_id: int, team_b_id: int, limit: int = 10) -> list[H2HResult]:
        rows = (
            await self.db.execute(
                self._final_results()
                .where(
                    or_(
                        and_(Match.home_team_id == team_a_id, Match.away_team_id == team_b_id),
                        and_(Match.home_team_id == team_b_id, Match.away_team_id == team_a_id),
                    )
                )
                .order_by(Match.game_date.desc(), Match.id.desc())
                .limit(limit)
            )
        ).all()
        return [
            H2HResult(home_team_id=home_id, away_team_id=away_id, home_score=home_score, away_score=away_score)
            for home_id, away_id, home_score, away_score in rows
        ]

    async def venue_split(self, team_id: int, side: str) -> VenueSplit | None:
        if side == "home":
            venue_filter = Match.home_team_id == team_id
            won = MatchResult.home_score > MatchResult.away_score
        elif side == "away":
            venue_filter = Match.away_team_id == team_id
            won = MatchResult.away_score > MatchResult.home_score
        else:
            return None

        stmt = (
            select(func.count().label("total"), func.sum(case((won, 1), else_=0)).label("wins"))
            .select_from(Match)
            .join(MatchResult, MatchResult.match_id == Match.id)
            .where(MatchResult.status == "final", venue_filter)
        )
        if self.before is not None:
            stmt = stmt.where(Match.game_date < self.before)
        total, wins = (await self.db.execute(stmt)).one()
        return VenueSplit(wins=int(wins or 0), total=int(total or 0))

    async def source_accuracy(self) -> dict[str, SourceStats]:
        return await self.accuracy_cache.get(self.db)
