"""
Composite scoring for match predictions.

Factor weights: confidence 30, margin 25, source agreement 20, value/EV 20,
source accuracy 15, alignment 10, form 10, head-to-head 5, home advantage 5.
The raw total (max 140) is normalized to 0-100.
"""

import logging
import math
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

RAW_MAX = 140
NEUTRAL_VALUE_SCORE = 7
PROBABILITY_FLOOR = 15.0
PROBABILITY_CEILING = 92.0
DEFAULT_ACCURACY = 52.0
MIN_DECIDED_FOR_ACCURACY = 10

CONFIDENCE_POINTS = {"best_bet": 30, "high": 22, "medium": 12, "low": 4}
CONFIDENCE_RANK = {"best_bet": 4, "high": 3, "medium": 2, "low": 1}
CONFIDENCE_BOOST = {"best_bet": 0.04, "high": 0.02, "medium": 0.01}

_AVG_GOALS_RE = re.compile(r"Avg goals:\s*([\d.]+)", re.IGNORECASE)
_PREDICTED_RE = re.compile(r"Predicted:\s*(\d{1,3})\s*-\s*(\d{1,3})", re.IGNORECASE)
_PREDICTED_TEXT_RE = re.compile(r"Predicted:\s*\d+-\d+", re.IGNORECASE)


def round_half_up(value: float, digits: int = 0) -> float:
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


@dataclass(frozen=True)
class MatchPick:
    """One prediction row joined with its match, teams and source."""

    match_id: int
    game_date: date
    game_time: str | None
    sport: str
    home_team: str
    away_team: str
    home_team_id: int | None
    away_team_id: int | None
    pick_type: str
    side: str
    value: float | None
    source_name: str
    picker_name: str
    confidence: str | None
    reasoning: str | None


@dataclass(frozen=True)
class SourceStats:
    name: str
    win_rate: float  # 0-100
    decided: int


@dataclass(frozen=True)
class FormResult:
    is_home: bool
    home_score: int
    away_score: int


@dataclass(frozen=True)
class H2HResult:
    home_team_id: int
    away_team_id: int
    home_score: int
    away_score: int


@dataclass(frozen=True)
class VenueSplit:
    wins: int
    total: int


class MatchHistory(Protocol):
    """Historical lookups used by the async scoring factors."""

    async def team_form(self, team_id: int, limit: int = 10) -> list[FormResult]: ...

    async def head_to_head(self, team_a_id: int, team_b_id: int, limit: int = 10) -> list[H2HResult]: ...

    async def venue_split(self, team_id: int, side: str) -> VenueSplit | None: ...

    async def source_accuracy(self) -> dict[str, SourceStats]: ...


@dataclass(frozen=True)
class AgreementResult:
    score: int
    best_side: str
    side_count: int
    total_sources: int
    disagreement: bool


@dataclass(frozen=True)
class MarginResult:
    margin: float | None
    details: list[str]
    predicted_draw: bool


@dataclass(frozen=True)
class OddsResult:
    best_odds: float | None
    implied_prob: float | None


@dataclass(frozen=True)
class ValueResult:
    score: int
    ev: float | None  # probability * odds - 1
    edge: float | None  # percentage points over the market-implied probability


@dataclass(frozen=True)
class SourceLine:
    name: str
    side: str
    confidence: str | None
    detail: str
    win_rate: float | None


@dataclass(frozen=True)
class ScoredMatch:
    match_id: int
    date: str
    sport: str
    home_team: str
    away_team: str
    game_time: str | None
    recommendation: str
    pick_type: str
    score: int
    source_agreement: int
    confidence_score: int
    margin_score: int
    value_score: int
    source_accuracy: int
    alignment_score: int
    form_score: int
    h2h_score: int
    home_advantage: int
    analysis: str
    estimated_prob: float
    best_odds: float | None = None
    implied_prob: float | None = None
    expected_value: float | None = None
    edge: float | None = None
    sources: list[SourceLine] = field(default_factory=list)

    @property
    def recommended_team(self) -> str:
        if self.recommendation == "home":
            return self.home_team
        if self.recommendation == "away":
            return self.away_team
        return "Draw"


def group_by_match(picks: Iterable[MatchPick]) -> dict[int, list[MatchPick]]:
    grouped: dict[int, list[MatchPick]] = {}
    for pick in picks:
        grouped.setdefault(pick.match_id, []).append(pick)
    return grouped


def _consensus_picks(match_picks: list[MatchPick]) -> list[MatchPick]:
    moneyline = [p for p in match_picks if p.pick_type == "moneyline"]
    if moneyline:
        return moneyline
    return [p for p in match_picks if p.pick_type == "spread" and p.side in ("home", "away")]


def score_source_agreement(match_picks: list[MatchPick]) -> AgreementResult:
    """Distinct sources per side over moneyline picks (spread picks when no moneyline exists)."""
    consensus = _consensus_picks(match_picks)
    side_sources: dict[str, set[str]] = {}
    for pick in consensus:
        side_sources.setdefault(pick.side, set()).add(pick.source_name)

    best_side = ""
    max_count = 0
    for side, sources in side_sources.items():
        if len(sources) > max_count:
            max_count = len(sources)
            best_side = side

    total_sources = len({p.source_name for p in consensus})
    disagreement = len(side_sources) > 1

    if disagreement:
        minority = total_sources - max_count
        score = max(0, max_count * 5 - minority * 8)
    elif max_count >= 4:
        score = 20
    elif max_count == 3:
        score = 18
    elif max_count == 2:
        score = 14
    elif max_count == 1:
        score = 5
    else:
        score = 0

    return AgreementResult(
        score=score,
        best_side=best_side,
        side_count=max_count,
        total_sources=total_sources,
        disagreement=disagreement,
    )


def score_confidence(match_picks: list[MatchPick], fav_side: str) -> int:
    scores = [CONFIDENCE_POINTS.get(p.confidence, 3) for p in match_picks if p.side == fav_side and p.confidence]
    if not scores:
        return 3
    highest = max(scores)
    avg = sum(scores) / len(scores)
    return int(round_half_up(highest * 0.7 + avg * 0.3))


def best_confidence(match_picks: list[MatchPick], fav_side: str) -> str | None:
    rated = [p.confidence for p in match_picks if p.side == fav_side and p.confidence]
    if not rated:
        return None
    return max(rated, key=lambda c: CONFIDENCE_RANK.get(c, 0))


def extract_avg_goals(match_picks: list[MatchPick]) -> float | None:
    for pick in match_picks:
        if not pick.reasoning:
            continue
        match = _AVG_GOALS_RE.search(pick.reasoning)
        if match:
            try:
                return float(match.group(1))
            except ValueError:
                continue
    return None


def extract_predicted_margin(match_picks: list[MatchPick], sport: str) -> MarginResult:
    details: list[str] = []
    total_margin = 0
    count = 0
    predicted_draw = False
    seen: set[str] = set()

    for pick in match_picks:
        if not pick.reasoning:
            continue
        match = _PREDICTED_RE.search(pick.reasoning)
        if not match:
            continue
        home, away = int(match.group(1)), int(match.group(2))
        key = f"{pick.source_name}:{home}-{away}"
        if key in seen:
            continue
        seen.add(key)

        # Discard scorelines that cannot belong to the sport.
        if sport == "football" and (home > 20 or away > 20):
            continue
        if sport == "nba" and (home < 50 or away < 50):
            continue

        margin = abs(home - away)
        if margin == 0:
            predicted_draw = True
        total_margin += margin
        count += 1
        details.append(f"{pick.source_name}: {home}-{away}")

    if not count:
        return MarginResult(margin=None, details=details, predicted_draw=predicted_draw)
    return MarginResult(margin=total_margin / count, details=details, predicted_draw=predicted_draw)


def score_margin(margin: float | None, sport: str, predicted_draw: bool) -> int:
    if margin is None:
        return 5
    if predicted_draw:
        return 2
    if sport == "football":
        if margin >= 3:
            return 25
        if margin >= 2:
            return 20
        if margin >= 1:
            return 12
        return 3
    if margin >= 12:
        return 25
    if margin >= 8:
        return 20
    if margin >= 5:
        return 15
    return 8


def to_decimal_odds(value: float | None, sport: str) -> float | None:
    """Football sources quote decimal odds; everything else is American."""
    if value is None:
        return None
    if sport == "football":
        return value
    if value < 0:
        return 1 + 100 / abs(value)
    if value == 0:
        return None
    return 1 + value / 100


def extract_best_odds(match_picks: list[MatchPick], fav_side: str, sport: str) -> OddsResult:
    """Highest decimal payout among moneyline picks on the favoured side."""
    decimal_odds = []
    for pick in match_picks:
        if pick.pick_type != "moneyline" or pick.side != fav_side or pick.value is None:
            continue
        odds = to_decimal_odds(pick.value, sport)
        if odds is not None and 1.01 < odds < 50:
            decimal_odds.append(odds)

    if not decimal_odds:
        return OddsResult(best_odds=None, implied_prob=None)

    best = max(decimal_odds)
    return OddsResult(best_odds=round_half_up(best, 2), implied_prob=round_half_up(100 / best, 1))


def estimate_win_probability(
    *,
    backing_count: int,
    total_count: int,
    avg_accuracy: float | None,
    best_confidence: str | None,
) -> float:
    """Win probability in percent, always within [15, 92].

    The accuracy prior (52 without grading history) is trusted in proportion
    to how strongly sources agree; weak agreement regresses toward 50%.
    Multi-source backing and source-assigned confidence add small boosts.
    """
    if backing_count <= 0 or total_count <= 0:
        return 50.0

    base_prob = avg_accuracy if avg_accuracy is not None else DEFAULT_ACCURACY
    agreement_weight = min(1.0, (backing_count / total_count) * 1.2)
    prob = (base_prob / 100) * agreement_weight + 0.5 * (1 - agreement_weight)

    if backing_count >= 5:
        prob += 0.05
    elif backing_count == 4:
        prob += 0.04
    elif backing_count == 3:
        prob += 0.03
    elif backing_count == 2:
        prob += 0.02

    prob += CONFIDENCE_BOOST.get(best_confidence or "", 0.0)

    clamped = min(PROBABILITY_CEILING, max(PROBABILITY_FLOOR, prob * 100))
    return round_half_up(clamped, 1)


def expected_value(estimated_prob: float, decimal_odds: float) -> float:
    """EV per unit staked: probability (percent) * decimal odds - 1."""
    return (estimated_prob / 100) * decimal_odds - 1


def score_value(estimated_prob: float, best_odds: float | None) -> ValueResult:
    if best_odds is None:
        return ValueResult(score=NEUTRAL_VALUE_SCORE, ev=None, edge=None)

    ev = expected_value(estimated_prob, best_odds)
    ev_pct = ev * 100
    edge = (estimated_prob / 100 - 1 / best_odds) * 100

    if ev_pct >= 20:
        score = 20
    elif ev_pct >= 12:
        score = 17
    elif ev_pct >= 6:
        score = 14
    elif ev_pct >= 2:
        score = 10
    elif ev_pct >= 0:
        score = 6
    elif ev_pct >= -5:
        score = 3
    else:
        score = 0

    return ValueResult(score=score, ev=ev, edge=round_half_up(edge, 1))


def score_alignment(match_picks: list[MatchPick], fav_side: str, avg_goals: float | None) -> int:
    score = 0

    has_ml = any(p.pick_type == "moneyline" and p.side == fav_side for p in match_picks)
    has_spread = any(p.pick_type == "spread" and p.side == fav_side for p in match_picks)
    if has_ml and has_spread:
        score += 3

    btts = [p for p in match_picks if p.pick_type == "prop"]
    totals = [p for p in match_picks if p.pick_type == "over_under"]
    btts_yes = any(p.side == "yes" for p in btts)
    btts_no = any(p.side == "no" for p in btts)
    over = any(p.side == "over" for p in totals)
    under = any(p.side == "under" for p in totals)

    if (btts_yes and over) or (btts_no and under):
        score += 3
    elif (btts_yes and under) or (btts_no and over):
        pass
    elif totals or btts:
        score += 1

    if avg_goals is not None:
        if over and avg_goals >= 2.5:
            score += 2
        elif under and avg_goals < 2.0:
            score += 2
        elif 2.0 <= avg_goals < 2.5:
            score += 1

    return min(score, 10)


def score_form(results: list[FormResult]) -> int:
    """Recent form of the favoured team: win rate plus a current-streak bonus (0-10)."""
    if not results:
        return 0
    wins = 0
    streak = 0
    counting = True
    for result in results:
        won = result.home_score > result.away_score if result.is_home else result.away_score > result.home_score
        if won:
            wins += 1
            if counting:
                streak += 1
        else:
            counting = False

    score = int(round_half_up(wins / len(results) * 7))
    if streak >= 5:
        score += 3
    elif streak >= 3:
        score += 2
    elif streak >= 2:
        score += 1
    return min(score, 10)


def score_h2h(results: list[H2HResult], fav_team_id: int) -> int:
    if len(results) < 2:
        return 0
    fav_wins = 0
    for result in results:
        if result.home_team_id == fav_team_id and result.home_score > result.away_score:
            fav_wins += 1
        elif result.away_team_id == fav_team_id and result.away_score > result.home_score:
            fav_wins += 1
    dominance = fav_wins / len(results)
    if dominance >= 0.8:
        return 5
    if dominance >= 0.6:
        return 3
    if dominance >= 0.5:
        return 1
    return 0


def score_home_advantage(split: VenueSplit | None) -> int:
    if split is None or split.total < 5:
        return 0
    win_pct = split.wins / split.total
    if win_pct >= 0.75:
        return 5
    if win_pct >= 0.6:
        return 3
    if win_pct >= 0.5:
        return 1
    return 0


def source_win_rate(accuracy: dict[str, SourceStats], source_name: str, sport: str) -> float | None:
    """Sport-specific win rate, falling back to the cross-sport aggregate."""
    for key in (f"{source_name}:{sport}", f"{source_name}:*"):
        stats = accuracy.get(key)
        if stats is not None and stats.decided >= MIN_DECIDED_FOR_ACCURACY:
            return stats.win_rate
    return None


def backing_sources(match_picks: list[MatchPick], fav_side: str) -> list[str]:
    return list(dict.fromkeys(p.source_name for p in match_picks if p.side == fav_side))


def average_accuracy(
    accuracy: dict[str, SourceStats],
    match_picks: list[MatchPick],
    fav_side: str,
    sport: str,
) -> tuple[float | None, int]:
    rates = [
        rate
        for rate in (source_win_rate(accuracy, name, sport) for name in backing_sources(match_picks, fav_side))
        if rate is not None
    ]
    if not rates:
        return None, 0
    return round_half_up(sum(rates) / len(rates), 1), len(rates)


def score_source_accuracy(avg_accuracy: float | None, backing_count: int) -> int:
    if backing_count == 0:
        return 3
    if avg_accuracy is None:
        return 5
    if avg_accuracy >= 65:
        return 15
    if avg_accuracy >= 58:
        return 12
    if avg_accuracy >= 52:
        return 9
    if avg_accuracy >= 48:
        return 6
    return 3


def _format_number(value: float) -> str:
    return f"{value:g}"


def build_analysis(
    info: MatchPick,
    fav_side: str,
    agreement: AgreementResult,
    margin_details: list[str],
    match_picks: list[MatchPick],
    composite: int,
    avg_goals: float | None,
    avg_accuracy: float | None,
    tracked_sources: int,
    value: ValueResult,
    best_odds: float | None,
) -> str:
    parts: list[str] = []
    team_name = info.home_team if fav_side == "home" else info.away_team if fav_side == "away" else "Draw"

    if agreement.disagreement:
        parts.append(f"{agreement.side_count} of {agreement.total_sources} predictions back {team_name} (split).")
    elif agreement.side_count >= 2:
        parts.append(f"{agreement.side_count} of {agreement.total_sources} predictions back {team_name}.")
    elif agreement.total_sources > 0:
        parts.append("Backed by 1 prediction.")

    if tracked_sources > 0 and avg_accuracy is not None:
        if avg_accuracy >= 58:
            label = "strong"
        elif avg_accuracy >= 52:
            label = "solid"
        elif avg_accuracy >= 48:
            label = "mixed"
        else:
            label = "weak"
        parts.append(f"Sources have {label} track record ({_format_number(avg_accuracy)}% avg win rate).")

    if value.ev is not None and best_odds:
        ev_pct = round_half_up(value.ev * 100, 1)
        if ev_pct >= 10:
            parts.append(f"Strong value: +{_format_number(ev_pct)}% EV at {_format_number(best_odds)} odds.")
        elif ev_pct >= 2:
            parts.append(f"Value bet: +{_format_number(ev_pct)}% EV at {_format_number(best_odds)} odds.")
        elif ev_pct < -5:
            parts.append(f"Negative value: {_format_number(ev_pct)}% EV at {_format_number(best_odds)} odds, overpriced.")

    if margin_details:
        scores = [detail.split(":", 1)[-1].strip() for detail in margin_details]
        parts.append(f"Predicted: {', '.join(scores)}.")

    confidence = best_confidence(match_picks, fav_side)
    if confidence:
        parts.append(f"Rated '{confidence.replace('_', ' ')}'.")

    if avg_goals is not None and info.sport == "football":
        parts.append(f"Avg goals: {avg_goals:.1f}/game.")

    btts_yes = any(p.pick_type == "prop" and p.side == "yes" for p in match_picks)
    btts_no = any(p.pick_type == "prop" and p.side == "no" for p in match_picks)
    over = any(p.pick_type == "over_under" and p.side == "over" for p in match_picks)
    under = any(p.pick_type == "over_under" and p.side == "under" for p in match_picks)
    if btts_yes and over:
        parts.append("BTTS and over agree, expect goals.")
    elif btts_no and under:
        parts.append("BTTS=no and under agree, tight game expected.")

    if not parts:
        parts.append(f"Score {composite}/100 based on available signals.")
    return " ".join(parts)


def build_sources_list(
    match_picks: list[MatchPick],
    fav_side: str,
    sport: str,
    accuracy: dict[str, SourceStats],
) -> list[SourceLine]:
    lines: list[SourceLine] = []
    seen: set[tuple[str, str]] = set()
    for pick in match_picks:
        if pick.side != fav_side and pick.pick_type != "over_under":
            continue
        if (pick.source_name, pick.side) in seen:
            continue
        seen.add((pick.source_name, pick.side))

        detail = ""
        if pick.value is not None:
            if pick.pick_type == "moneyline":
                detail = f"ML: {_format_number(pick.value)}"
            elif pick.pick_type == "spread":
                detail = f"Spread: {'+' if pick.value > 0 else ''}{_format_number(pick.value)}"
            elif pick.pick_type == "over_under":
                detail = f"{pick.side} {_format_number(pick.value)}"
        if pick.reasoning:
            predicted = _PREDICTED_TEXT_RE.search(pick.reasoning)
            if predicted:
                detail = f"{detail} | {predicted.group(0)}" if detail else predicted.group(0)

        lines.append(
            SourceLine(
                name=pick.source_name,
                side=pick.side,
                confidence=pick.confidence,
                detail=detail,
                win_rate=source_win_rate(accuracy, pick.source_name, sport),
            )
        )
    return lines


async def _history_factors(
    history: MatchHistory | None,
    info: MatchPick,
    fav_side: str,
) -> tuple[int, int, int, dict[str, SourceStats]]:
    if history is None:
        return 0, 0, 0, {}

    fav_team_id = info.home_team_id if fav_side == "home" else info.away_team_id if fav_side == "away" else None
    form_pts = h2h_pts = home_pts = 0
    accuracy: dict[str, SourceStats] = {}
    try:
        if fav_team_id is not None:
            form_pts = score_form(await history.team_form(fav_team_id, 10))
            split = await history.venue_split(fav_team_id, fav_side)
            home_pts = score_home_advantage(split)
            if info.home_team_id is not None and info.away_team_id is not None:
                opponent_id = info.away_team_id if fav_team_id == info.home_team_id else info.home_team_id
                h2h_pts = score_h2h(await history.head_to_head(fav_team_id, opponent_id, 10), fav_team_id)
        accuracy = await history.source_accuracy()
    except SQLAlchemyError:
        logger.exception("History lookup failed; scoring without historical factors", extra={"match_id": info.match_id})
    return form_pts, h2h_pts, home_pts, accuracy


async def score_match(
    match_picks: list[MatchPick],
    history: MatchHistory | None = None,
) -> ScoredMatch | None:
    """Score one match; None when no pick names a side to recommend."""
    if not match_picks:
        return None
    info = match_picks[0]

    agreement = score_source_agreement(match_picks)
    if not agreement.best_side:
        return None
    fav_side = agreement.best_side

    confidence_pts = score_confidence(match_picks, fav_side)
    avg_goals = extract_avg_goals(match_picks)
    margin = extract_predicted_margin(match_picks, info.sport)
    margin_pts = score_margin(margin.margin, info.sport, margin.predicted_draw)
    alignment_pts = score_alignment(match_picks, fav_side, avg_goals)

    form_pts, h2h_pts, home_pts, accuracy = await _history_factors(history, info, fav_side)
    avg_accuracy, tracked = average_accuracy(accuracy, match_picks, fav_side, info.sport)
    accuracy_pts = score_source_accuracy(avg_accuracy, len(backing_sources(match_picks, fav_side)))

    estimated_prob = estimate_win_probability(
        backing_count=agreement.side_count,
        total_count=agreement.total_sources,
        avg_accuracy=avg_accuracy,
        best_confidence=best_confidence(match_picks, fav_side),
    )
    odds = extract_best_odds(match_picks, fav_side, info.sport)
    value = score_value(estimated_prob, odds.best_odds)

    raw = (
        agreement.score
        + confidence_pts
        + margin_pts
        + value.score
        + accuracy_pts
        + alignment_pts
        + form_pts
        + h2h_pts
        + home_pts
    )
    composite = int(round_half_up(raw / RAW_MAX * 100))
    has_ml = any(p.pick_type == "moneyline" and p.side == fav_side for p in match_picks)

    return ScoredMatch(
        match_id=info.match_id,
        date=info.game_date.isoformat(),
        sport=info.sport,
        home_team=info.home_team,
        away_team=info.away_team,
        game_time=info.game_time,
        recommendation=fav_side,
        pick_type="moneyline" if has_ml else "spread",
        score=composite,
        source_agreement=agreement.score,
        confidence_score=confidence_pts,
        margin_score=margin_pts,
        value_score=value.score,
        source_accuracy=accuracy_pts,
        alignment_score=alignment_pts,
        form_score=form_pts,
        h2h_score=h2h_pts,
        home_advantage=home_pts,
        analysis=build_analysis(
            info,
            fav_side,
            agreement,
            margin.details,
            match_picks,
            composite,
            avg_goals,
            avg_accuracy,
            tracked,
            value,
            odds.best_odds,
        ),
        estimated_prob=estimated_prob,
        best_odds=odds.best_odds,
        implied_prob=odds.implied_prob,
        expected_value=value.ev,
        edge=value.edge,
        sources=build_sources_list(match_picks, fav_side, info.sport, accuracy),
    )


async def score_matches(
    picks: Iterable[MatchPick],
    history: MatchHistory | None = None,
) -> list[ScoredMatch]:
    """Score every match and rank by composite score, best first."""
    scored: list[ScoredMatch] = []
    for match_picks in group_by_match(picks).values():
        result = await score_match(match_picks, history)
        if result is not None:
            scored.append(result)
    scored.sort(key=lambda match: match.score, reverse=True)
    return scored
