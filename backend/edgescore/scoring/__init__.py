from edgescore.scoring.engine import (
    MatchPick,
    ScoredMatch,
    estimate_win_probability,
    expected_value,
    group_by_match,
    score_match,
    score_matches,
    score_value,
)

__all__ = [
    "MatchPick",
    "ScoredMatch",
    "estimate_win_probability",
    "expected_value",
    "group_by_match",
    "score_match",
    "score_matches",
    "score_value",
]
