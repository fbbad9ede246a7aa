"""Pydantic schemas for liquidations, their expense lines and receipts."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, Field

from hrflow.models.enums import ReviewStatus
from hrflow.schemas.common import Pagination
from hrflow.schemas.review import TwoLevelReviewRead

CategoryAmount = Annotated[Decimal, Field(ge=0, max_digits=12, decimal_places=2)]


class LiquidationItemInput(BaseModel):
    from_destination: str = Field(default="", max_length=255)
    to_destination: str = Field(default="", max_length=255)
    jeep: CategoryAmount = Decimal("0")
    bus: CategoryAmount = Decimal("0")
    fx_van: CategoryAmount = Decimal("0")
    gas: CategoryAmount = Decimal("0")
    toll: CategoryAmount = Decimal("0")
    meals: CategoryAmount = Decimal("0")
    lodging: CategoryAmount = Decimal("0")
    others: CategoryAmount = Decimal("0")
    remarks: str = Field(default="", max_length=2000)


class LiquidationSubmit(BaseModel):
    cash_advance_id: int
    liquidation_date: date
    remarks: str | None = Field(default=None, max_length=2000)
    items: list[LiquidationItemInput] = Field(min_length=1)


class LiquidationEditOwn(BaseModel):
    liquidation_date: date | None = None
    remarks: str | None = Field(default=None, max_length=2000)
    items: list[LiquidationItemInput] | None = Field(default=None, min_length=1)
    attachments_to_remove: list[int] = Field(default_factory=list)


class LiquidationAdminEdit(BaseModel):
    liquidation_date: date | None = None
    remarks: str | None = Field(default=None, max_length=2000)
    items: list[LiquidationItemInput] | None = Field(default=None, min_length=1)
    status: ReviewStatus | None = None


class LiquidationItemRead(LiquidationItemInput):
    id: int
    total: Decimal

    model_config = {"from_attributes": True}


class AttachmentRead(BaseModel):
    id: int
    file_name: str
    content_type: str | None
    size_bytes: int
    uploaded_by: int
    uploaded_at: datetime | None

    model_config = {"from_attributes": True}


class LiquidationRead(TwoLevelReviewRead):
    id: int
    employee_id: int
    cash_advance_id: int
    liquidation_date: date
    remarks: str | None
    total_amount: Decimal
    return_to_company: Decimal
    reimbursement: Decimal
    status: str
    approved_by: int | None
    approved_at: datetime | None
    rejection_reason: str | None
    created_at: datetime | None
    items: list[LiquidationItemRead]
    attachments: list[AttachmentRead]

    model_config = {"from_attributes": True}


class LiquidationPage(BaseModel):
    data: list[LiquidationRead]
    pagination: Pagination
