"""Pydantic schemas for leave requests."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from hrflow.models.enums import Decision, LeaveType


class LeaveSubmit(BaseModel):
    leave_type: LeaveType
    start_date: date
    end_date: date
    reason: str | None = Field(default=None, max_length=2000)


class LeaveReview(BaseModel):
    decision: Decision
    comment: str | None = Field(default=None, max_length=2000)


class LeaveRevoke(BaseModel):
    comment: str | None = Field(default=None, max_length=2000)


class LeaveRequestRead(BaseModel):
    id: int
    employee_id: int
    leave_type: str
    start_date: date
    end_date: date
    days: Decimal
    reason: str | None
    status: str
    credits_reserved: Decimal
    reviewed_by: int | None
    reviewed_at: datetime | None
    reviewer_comment: str | None
    created_at: datetime | None

    model_config = {"from_attributes": True}
