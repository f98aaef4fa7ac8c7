import re
from datetime import datetime

from pydantic import BaseModel, field_validator

_DATE_ARG = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class FetchJob(BaseModel):
    adapter_id: str
    sport: str
    path: str
    url: str
    is_sub_url: bool = False


class ParseJob(BaseModel):
    adapter_id: str
    sport: str
    snapshot_path: str
    fetched_at: datetime


class ResultsJob(BaseModel):
    sport: str
    date: str = "today"

    @field_validator("date")
    @classmethod
    def _check_date(cls, value: str) -> str:
        value = value.strip().lower()
        if value in {"today", "yesterday"} or _DATE_ARG.match(value):
            return value
        raise ValueError("date must be 'today', 'yesterday' or YYYY-MM-DD")


class AlertJob(BaseModel):
    pass
