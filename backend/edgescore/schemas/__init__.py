from edgescore.schemas.jobs import AlertJob, FetchJob, ParseJob, ResultsJob

__all__ = ["AlertJob", "FetchJob", "ParseJob", "ResultsJob"]
