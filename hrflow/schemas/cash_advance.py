"""Pydantic schemas for cash advance requests."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, Field

from hrflow.models.enums import CashAdvanceType, ReviewStatus
from hrflow.schemas.common import Pagination
from hrflow.schemas.review import TwoLevelReviewRead

PositiveAmount = Annotated[Decimal, Field(gt=0, max_digits=12, decimal_places=2)]


class CashAdvanceSubmit(BaseModel):
    type: CashAdvanceType
    amount: PositiveAmount
    request_date: date
    purpose: str | None = Field(default=None, max_length=2000)


class CashAdvanceEditOwn(BaseModel):
    type: CashAdvanceType | None = None
    amount: PositiveAmount | None = None
    request_date: date | None = None
    purpose: str | None = Field(default=None, max_length=2000)


class CashAdvanceAdminEdit(CashAdvanceEditOwn):
    status: ReviewStatus | None = None


class CashAdvanceRead(TwoLevelReviewRead):
    id: int
    employee_id: int
    type: str
    amount: Decimal
    purpose: str | None
    request_date: date
    status: str
    approved_by: int | None
    approved_at: datetime | None
    rejection_reason: str | None
    created_at: datetime | None

    model_config = {"from_attributes": True}


class CashAdvancePage(BaseModel):
    data: list[CashAdvanceRead]
    pagination: Pagination
