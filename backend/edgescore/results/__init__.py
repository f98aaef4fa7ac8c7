from edgescore.results.grader import grade_prediction
from edgescore.results.types import MatchedResult, RawGameResult

__all__ = ["MatchedResult", "RawGameResult", "grade_prediction"]
