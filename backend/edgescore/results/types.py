from dataclasses import dataclass


@dataclass(frozen=True)
class RawGameResult:
    """A settled game as reported by an external results source."""

    sport: str
    home_team_name: str
    away_team_name: str
    home_score: int
    away_score: int
    game_date: str  # YYYY-MM-DD
    status: str  # final | postponed | cancelled


@dataclass(frozen=True)
class MatchedResult:
    match_id: int
    home_score: int
    away_score: int
    status: str
