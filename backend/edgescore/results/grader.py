"""Per-pick-type grading rules against a final score.

Every rule returns one of win/loss/push/void. Exact ties against a line are
a push; a pick that cannot be evaluated (missing line, unsupported type) is
void.
"""

from edgescore.models.enums import Grade


def _compare(adjusted: float) -> Grade:
    if adjusted > 0:
        return Grade.WIN
    if adjusted < 0:
        return Grade.LOSS
    return Grade.PUSH


def grade_moneyline(side: str, home_score: int, away_score: int) -> Grade:
    if side == "draw":
        return Grade.WIN if home_score == away_score else Grade.LOSS
    if home_score == away_score:
        return Grade.PUSH
    if side == "home":
        return Grade.WIN if home_score > away_score else Grade.LOSS
    if side == "away":
        return Grade.WIN if away_score > home_score else Grade.LOSS
    return Grade.VOID


def grade_spread(side: str, value: float | None, home_score: int, away_score: int) -> Grade:
    """Margin of the picked side minus the quoted handicap.

    Handicaps are stored as the feeds quote them for the picked side, where a
    negative number is the cushion that side receives: ``home -6.5`` covers
    unless home loses by seven or more.
    """
    if value is None:
        return Grade.VOID
    if side == "home":
        margin = home_score - away_score
    elif side == "away":
        margin = away_score - home_score
    else:
        return Grade.VOID
    return _compare(margin - value)


def grade_over_under(side: str, value: float | None, home_score: int, away_score: int) -> Grade:
    if value is None:
        return Grade.VOID
    total = home_score + away_score
    if side == "over":
        return _compare(total - value)
    if side == "under":
        return _compare(value - total)
    return Grade.VOID


def grade_btts(side: str, home_score: int, away_score: int) -> Grade:
    both_scored = home_score > 0 and away_score > 0
    if side == "yes":
        return Grade.WIN if both_scored else Grade.LOSS
    if side == "no":
        return Grade.LOSS if both_scored else Grade.WIN
    return Grade.VOID


def grade_prediction(
    pick_type: str,
    side: str,
    value: float | None,
    home_score: int,
    away_score: int,
) -> Grade:
    if pick_type == "moneyline":
        return grade_moneyline(side, home_score, away_score)
    if pick_type == "spread":
        return grade_spread(side, value, home_score, away_score)
    if pick_type == "over_under":
        return grade_over_under(side, value, home_score, away_score)
    if pick_type == "prop":
        return grade_btts(side, home_score, away_score)
    return Grade.VOID
