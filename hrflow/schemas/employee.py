"""Pydantic schemas for the authenticated employee and the leave balance."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class EmployeeRead(BaseModel):
    id: int
    email: str
    first_name: str
    last_name: str
    employee_code: str | None
    position_name: str | None
    is_active: bool
    created_at: datetime | None

    model_config = {"from_attributes": True}


class LeaveBalanceRead(BaseModel):
    employee_id: int
    leave_credits: Decimal
    reserved_credits: Decimal
    available_credits: Decimal


class LeaveBalanceUpdate(BaseModel):
    leave_credits: Decimal = Field(ge=0, max_digits=8, decimal_places=2)


class LeaveCreditEntryRead(BaseModel):
    id: int
    employee_id: int
    kind: str
    delta: Decimal
    balance_after: Decimal
    reserved_after: Decimal
    leave_request_id: int | None
    actor_id: int | None
    note: str | None
    created_at: datetime | None

    model_config = {"from_attributes": True}
