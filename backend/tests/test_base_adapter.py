from datetime import UTC, datetime

import pytest

from edgescore.adapters.base import BaseAdapter, RawPrediction, SiteAdapterConfig, has_discovery
from edgescore.models.enums import Confidence, FetchMethod, PickType, Side

PICKS_PAGE = """
<div class="pick">
  <span class="teams">Boston Celtics @ Los Angeles Lakers</span>
  <span class="market">Moneyline</span>
  <span class="line">-150</span>
  <span class="tag">Best Bet</span>
</div>
<div class="pick">
  <span class="teams">Miami Heat @ Chicago Bulls</span>
  <span class="market">Game total</span>
  <span class="line">o221.5</span>
  <span class="tag"></span>
</div>
"""


class TablePicksAdapter(BaseAdapter):
    config = SiteAdapterConfig(
        id="table-picks",
        name="Table Picks",
        base_url="https://table.example.com",
        fetch_method=FetchMethod.HTTP,
        paths={"nba": "/nba"},
        cron="0 */6 * * *",
        rate_limit_seconds=3.0,
    )

    def parse(self, html: str, sport: str, fetched_at: datetime) -> list[RawPrediction]:
        picks: list[RawPrediction] = []
        for row in self.load(html).select(".pick"):
            away, _, home = row.select_one(".teams").get_text(strip=True).partition(" @ ")
            market = row.select_one(".market").get_text(strip=True)
            line = row.select_one(".line").get_text(strip=True)
            pick_type = self.infer_pick_type(market)
            if pick_type == PickType.OVER_UNDER:
                side, value = Side.OVER, self.parse_total_value(line)
            else:
                side, value = Side.HOME, self.parse_moneyline_value(line)
            picks.append(
                RawPrediction(
                    source_id=self.config.id,
                    sport=sport,
                    home_team_raw=home,
                    away_team_raw=away,
                    game_date="2026-02-16",
                    game_time=None,
                    pick_type=pick_type,
                    side=side,
                    value=value,
                    picker_name="Staff",
                    confidence=self.infer_confidence(row.select_one(".tag").get_text(strip=True)),
                    reasoning=None,
                    fetched_at=fetched_at,
                )
            )
        return picks


def test_base_adapter_requires_parse() -> None:
    class Incomplete(BaseAdapter):
        pass

    with pytest.raises(TypeError):
        Incomplete()


def test_subclass_parses_markup_with_shared_helpers() -> None:
    adapter = TablePicksAdapter()

    picks = adapter.parse(PICKS_PAGE, "nba", datetime(2026, 2, 16, 9, tzinfo=UTC))

    assert [(p.home_team_raw, p.away_team_raw) for p in picks] == [
        ("Los Angeles Lakers", "Boston Celtics"),
        ("Chicago Bulls", "Miami Heat"),
    ]
    assert (picks[0].pick_type, picks[0].value, picks[0].confidence) == (
        PickType.MONEYLINE,
        -150.0,
        Confidence.BEST_BET,
    )
    assert (picks[1].pick_type, picks[1].side, picks[1].value, picks[1].confidence) == (
        PickType.OVER_UNDER,
        Side.OVER,
        221.5,
        None,
    )
    assert has_discovery(adapter) is False


@pytest.mark.parametrize(
    ("text", "expected"),
    [("-6.5", -6.5), ("+3", 3.0), ("PK", 0.0), ("pk -110", 0.0), ("n/a", None)],
)
def test_parse_spread_value(text: str, expected: float | None) -> None:
    assert BaseAdapter.parse_spread_value(text) == expected


def test_parse_odds_and_totals() -> None:
    assert BaseAdapter.parse_moneyline_value("+145") == 145.0
    assert BaseAdapter.parse_moneyline_value(" -210 ") == -210.0
    assert BaseAdapter.parse_moneyline_value("EVEN") is None
    assert BaseAdapter.parse_total_value("Over 221.5") == 221.5
    assert BaseAdapter.parse_total_value("u47") == 47.0
    assert BaseAdapter.parse_total_value("no line") is None


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("Against the spread", PickType.SPREAD),
        ("ATS pick", PickType.SPREAD),
        ("Moneyline", PickType.MONEYLINE),
        ("money line", PickType.MONEYLINE),
        ("ML", PickType.MONEYLINE),
        ("Over 221.5", PickType.OVER_UNDER),
        ("O/U", PickType.OVER_UNDER),
        ("Player props", PickType.PROP),
        ("3-leg parlay", PickType.PARLAY),
        ("Team stats preview", PickType.SPREAD),
        ("html export", PickType.SPREAD),
        ("Overtime thriller", PickType.SPREAD),
    ],
)
def test_infer_pick_type_matches_whole_words(text: str, expected: PickType) -> None:
    assert BaseAdapter.infer_pick_type(text) == expected


def test_infer_confidence() -> None:
    assert BaseAdapter.infer_confidence("") is None
    assert BaseAdapter.infer_confidence("LOCK of the day") == Confidence.BEST_BET
    assert BaseAdapter.infer_confidence("Strong play") == Confidence.HIGH
    assert BaseAdapter.infer_confidence("slight lean") == Confidence.LOW
    assert BaseAdapter.infer_confidence("Highlights") == Confidence.MEDIUM
