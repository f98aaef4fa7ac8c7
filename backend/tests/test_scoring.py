from datetime import date

import pytest

from edgescore.scoring.engine import (
    NEUTRAL_VALUE_SCORE,
    PROBABILITY_CEILING,
    PROBABILITY_FLOOR,
    FormResult,
    H2HResult,
    MatchPick,
    SourceStats,
    VenueSplit,
    estimate_win_probability,
    expected_value,
    extract_best_odds,
    extract_predicted_margin,
    round_half_up,
    score_form,
    score_h2h,
    score_match,
    score_matches,
    score_source_agreement,
    score_value,
    source_win_rate,
    to_decimal_odds,
)


def _pick(
    source: str,
    side: str,
    *,
    match_id: int = 1,
    pick_type: str = "moneyline",
    value: float | None = None,
    confidence: str | None = None,
    reasoning: str | None = None,
    sport: str = "nba",
) -> MatchPick:
    return MatchPick(
        match_id=match_id,
        game_date=date(2026, 2, 16),
        game_time="19:30",
        sport=sport,
        home_team="Los Angeles Lakers",
        away_team="Boston Celtics",
        home_team_id=10,
        away_team_id=20,
        pick_type=pick_type,
        side=side,
        value=value,
        source_name=source,
        picker_name="Staff",
        confidence=confidence,
        reasoning=reasoning,
    )


class StubHistory:
    def __init__(self, accuracy: dict[str, SourceStats] | None = None) -> None:
        self.accuracy = accuracy or {}

    async def team_form(self, team_id: int, limit: int = 10) -> list[FormResult]:
        return [FormResult(is_home=True, home_score=110, away_score=100)] * 5

    async def head_to_head(self, team_a_id: int, team_b_id: int, limit: int = 10) -> list[H2HResult]:
        return [H2HResult(home_team_id=10, away_team_id=20, home_score=105, away_score=99)] * 3

    async def venue_split(self, team_id: int, side: str) -> VenueSplit | None:
        return VenueSplit(wins=8, total=10)

    async def source_accuracy(self) -> dict[str, SourceStats]:
        return self.accuracy


def test_round_half_up_matches_schoolbook_rounding() -> None:
    assert round_half_up(2.5) == 3
    assert round_half_up(0.5) == 1
    assert round_half_up(54.25, 1) == 54.3


@pytest.mark.parametrize("backing", range(0, 8))
@pytest.mark.parametrize("accuracy", [None, 0.0, 30.0, 52.0, 75.0, 100.0])
@pytest.mark.parametrize("confidence", [None, "low", "best_bet"])
def test_win_probability_is_clamped(backing: int, accuracy: float | None, confidence: str | None) -> None:
    prob = estimate_win_probability(
        backing_count=backing,
        total_count=max(backing, 1) + 1,
        avg_accuracy=accuracy,
        best_confidence=confidence,
    )
    assert PROBABILITY_FLOOR <= prob <= PROBABILITY_CEILING


def test_win_probability_extremes_hit_the_bounds() -> None:
    high = estimate_win_probability(backing_count=6, total_count=6, avg_accuracy=100.0, best_confidence="best_bet")
    low = estimate_win_probability(backing_count=1, total_count=1, avg_accuracy=0.0, best_confidence=None)
    assert high == PROBABILITY_CEILING
    assert low == PROBABILITY_FLOOR


def test_value_score_is_neutral_without_odds() -> None:
    result = score_value(61.0, None)
    assert result.score == NEUTRAL_VALUE_SCORE
    assert result.ev is None
    assert result.edge is None


@pytest.mark.parametrize(
    ("prob", "odds"),
    [(55.0, 2.1), (40.0, 1.5), (72.3, 1.91), (15.0, 12.0)],
)
def test_expected_value_is_exact(prob: float, odds: float) -> None:
    assert expected_value(prob, odds) == pytest.approx(prob / 100 * odds - 1)
    assert score_value(prob, odds).ev == pytest.approx(prob / 100 * odds - 1)


@pytest.mark.parametrize(
    ("prob", "odds", "expected"),
    [
        (61.0, 2.0, 20),  # +22%
        (57.0, 2.0, 17),  # +14%
        (54.0, 2.0, 14),  # +8%
        (52.0, 2.0, 10),  # +4%
        (50.5, 2.0, 6),  # +1%
        (48.0, 2.0, 3),  # -4%
        (40.0, 2.0, 0),  # -20%
    ],
)
def test_value_score_bands(prob: float, odds: float, expected: int) -> None:
    assert score_value(prob, odds).score == expected


def test_decimal_odds_conversion() -> None:
    assert to_decimal_odds(-200, "nba") == pytest.approx(1.5)
    assert to_decimal_odds(150, "nba") == pytest.approx(2.5)
    assert to_decimal_odds(2.4, "football") == 2.4
    assert to_decimal_odds(0, "nba") is None
    assert to_decimal_odds(None, "nba") is None


def test_best_odds_takes_the_highest_payout_on_the_favoured_side() -> None:
    picks = [
        _pick("A", "home", value=-150),
        _pick("B", "home", value=-120),
        _pick("C", "away", value=130),
    ]
    odds = extract_best_odds(picks, "home", "nba")
    assert odds.best_odds == pytest.approx(1.83)
    assert odds.implied_prob == pytest.approx(54.5)


def test_source_agreement_counts_distinct_sources_per_side() -> None:
    unanimous = score_source_agreement([_pick("A", "home"), _pick("B", "home"), _pick("B", "home")])
    assert (unanimous.best_side, unanimous.side_count, unanimous.score) == ("home", 2, 14)

    split = score_source_agreement([_pick("A", "home"), _pick("B", "home"), _pick("C", "home"), _pick("D", "away")])
    assert split.disagreement is True
    assert split.score == 3 * 5 - 1 * 8


def test_spread_picks_stand_in_when_no_moneyline_exists() -> None:
    result = score_source_agreement([_pick("A", "away", pick_type="spread", value=4.5)])
    assert result.best_side == "away"


def test_predicted_margin_discards_implausible_scorelines() -> None:
    picks = [
        _pick("A", "home", reasoning="Predicted: 112-104"),
        _pick("B", "home", reasoning="Predicted: 3-1"),
    ]
    margin = extract_predicted_margin(picks, "nba")
    assert margin.margin == 8
    assert margin.details == ["A: 112-104"]


def test_form_and_h2h_scores() -> None:
    assert score_form([FormResult(is_home=True, home_score=2, away_score=1)] * 5) == 10
    assert score_form([]) == 0
    assert score_h2h([H2HResult(10, 20, 1, 0), H2HResult(20, 10, 0, 1)], 10) == 5
    assert score_h2h([H2HResult(10, 20, 1, 0)], 10) == 0


def test_source_win_rate_needs_enough_decided_picks() -> None:
    accuracy = {
        "A:nba": SourceStats("A", 70.0, 4),
        "A:*": SourceStats("A", 61.0, 25),
        "B:nba": SourceStats("B", 55.0, 12),
    }
    assert source_win_rate(accuracy, "A", "nba") == 61.0
    assert source_win_rate(accuracy, "B", "nba") == 55.0
    assert source_win_rate(accuracy, "C", "nba") is None


async def test_score_match_without_history() -> None:
    picks = [
        _pick("A", "home", value=-150, confidence="best_bet", reasoning="Predicted: 112-100"),
        _pick("B", "home", value=-140, confidence="high"),
        _pick("B", "home", pick_type="spread", value=-3.5),
    ]

    scored = await score_match(picks)

    assert scored is not None
    assert scored.recommendation == "home"
    assert scored.recommended_team == "Los Angeles Lakers"
    assert scored.pick_type == "moneyline"
    assert 0 <= scored.score <= 100
    assert PROBABILITY_FLOOR <= scored.estimated_prob <= PROBABILITY_CEILING
    assert scored.form_score == scored.h2h_score == scored.home_advantage == 0
    assert scored.expected_value == pytest.approx(scored.estimated_prob / 100 * scored.best_odds - 1)
    assert "2 of 2 predictions back Los Angeles Lakers." in scored.analysis


async def test_history_factors_raise_the_score() -> None:
    picks = [_pick("A", "home", confidence="high"), _pick("B", "home", confidence="medium")]
    accuracy = {"A:nba": SourceStats("A", 66.0, 40), "B:nba": SourceStats("B", 64.0, 40)}

    bare = await score_match(picks)
    enriched = await score_match(picks, StubHistory(accuracy))

    assert enriched.form_score == 10
    assert enriched.h2h_score == 5
    assert enriched.home_advantage == 5
    assert enriched.source_accuracy == 15
    assert enriched.score > bare.score
    assert [line.win_rate for line in enriched.sources] == [66.0, 64.0]


async def test_match_without_a_side_is_not_scored() -> None:
    assert await score_match([_pick("A", "over", pick_type="over_under", value=220.5)]) is None
    assert await score_match([]) is None


async def test_score_matches_ranks_best_first() -> None:
    picks = [
        _pick("A", "home", match_id=1),
        _pick("A", "away", match_id=2, confidence="best_bet"),
        _pick("B", "away", match_id=2, confidence="best_bet"),
        _pick("C", "away", match_id=2, confidence="high"),
    ]

    ranked = await score_matches(picks)

    assert [m.match_id for m in ranked] == [2, 1]
    assert ranked[0].score >= ranked[1].score
