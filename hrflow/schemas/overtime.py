"""Pydantic schemas for overtime requests."""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from hrflow.schemas.review import TwoLevelReviewRead

_HHMM_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class OvertimeSubmit(BaseModel):
    request_date: date | None = None  # defaults to today, local time
    start_time: str
    end_time: str
    reason: str = Field(min_length=1, max_length=2000)

    @field_validator("start_time", "end_time")
    @classmethod
    def _hhmm(cls, v: str) -> str:
        v = v.strip()
        if not _HHMM_RE.match(v):
            raise ValueError("Time must be HH:MM (24-hour)")
        return v


class OvertimeEdit(OvertimeSubmit):
    pass


class OvertimeRead(TwoLevelReviewRead):
    id: int
    employee_id: int
    request_date: date
    start_time: str
    end_time: str
    total_hours: Decimal
    reason: str
    final_status: str
    created_at: datetime | None

    model_config = {"from_attributes": True}
