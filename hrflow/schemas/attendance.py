"""Pydantic schemas for attendance sessions and daily summaries."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field, model_validator

from hrflow.core.clock import ensure_utc


class LocationInfo(BaseModel):
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    address: str | None = Field(default=None, max_length=500)


class ClockOutRequest(BaseModel):
    session_id: int
    location: LocationInfo | None = None


class SessionCorrection(BaseModel):
    clock_in: datetime
    clock_out: datetime | None = None

    @model_validator(mode="after")
    def _ordered(self) -> "SessionCorrection":
        # Naive timestamps are read as UTC.
        self.clock_in = ensure_utc(self.clock_in)
        if self.clock_out is not None:
            self.clock_out = ensure_utc(self.clock_out)
        if self.clock_out is not None and self.clock_out < self.clock_in:
            raise ValueError("clock_out must not be before clock_in")
        return self


class SessionRead(BaseModel):
    id: int
    employee_id: int
    work_date: date
    clock_in: datetime
    clock_out: datetime | None
    duration_minutes: int | None
    clock_in_latitude: float | None
    clock_in_longitude: float | None
    clock_in_address: str | None
    clock_out_latitude: float | None
    clock_out_longitude: float | None
    clock_out_address: str | None
    corrected_by: int | None
    corrected_at: datetime | None

    model_config = {"from_attributes": True}


class DailySummaryRead(BaseModel):
    employee_id: int
    work_date: date
    total_minutes_raw: int
    total_minutes_final: int

    model_config = {"from_attributes": True}


class DailyDuration(BaseModel):
    employee_id: int
    work_date: date
    raw: int
    final: int
