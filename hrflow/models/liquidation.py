"""
Liquidations reconcile an approved support cash advance against the
expense lines and receipts actually incurred.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import (Column, Date, DateTime, ForeignKey, Index, Integer, Numeric,
                        String, Text)
from sqlalchemy.orm import relationship

from hrflow.db.base import Base
from hrflow.models.enums import ReviewStatus
from hrflow.models.review import TwoLevelReviewMixin

_MONEY = Numeric(12, 2)


class Liquidation(TwoLevelReviewMixin, Base):
    __tablename__ = "liquidations"
    __table_args__ = (Index("ix_liquidations_employee_status", "employee_id", "status"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    employee_id: int = Column(Integer, ForeignKey("employees.id"), nullable=False)  # type: ignore[assignment]
    cash_advance_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("cash_advances.id"), nullable=False, index=True
    )
    liquidation_date: date = Column(Date, nullable=False)  # type: ignore[assignment]
    remarks: str | None = Column(Text, nullable=True)  # type: ignore[assignment]
    total_amount: Decimal = Column(_MONEY, nullable=False, default=Decimal("0"))  # type: ignore[assignment]
    return_to_company: Decimal = Column(_MONEY, nullable=False, default=Decimal("0"))  # type: ignore[assignment]
    reimbursement: Decimal = Column(_MONEY, nullable=False, default=Decimal("0"))  # type: ignore[assignment]
    status: str = Column(  # type: ignore[assignment]
        String(20),
        nullable=False,
        default=ReviewStatus.PENDING.value,
        server_default=ReviewStatus.PENDING.value,
    )
    approved_by: int | None = Column(Integer, ForeignKey("employees.id"), nullable=True)  # type: ignore[assignment]
    approved_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    rejection_reason: str | None = Column(Text, nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    deleted_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    deleted_by: int | None = Column(Integer, ForeignKey("employees.id"), nullable=True)  # type: ignore[assignment]
    version: int = Column(Integer, nullable=False, default=1)  # type: ignore[assignment]

    employee = relationship("Employee", foreign_keys=[employee_id], lazy="selectin")
    cash_advance = relationship("CashAdvance", lazy="selectin")
    items = relationship(
        "LiquidationItem",
        back_populates="liquidation",
        cascade="all, delete-orphan",
        order_by="LiquidationItem.id",
        lazy="selectin",
    )
    attachments = relationship(
        "LiquidationAttachment",
        back_populates="liquidation",
        cascade="all, delete-orphan",
        order_by="LiquidationAttachment.id",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}


class LiquidationItem(Base):
    __tablename__ = "liquidation_items"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    liquidation_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("liquidations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    from_destination: str = Column(String(255), nullable=False, default="")  # type: ignore[assignment]
    to_destination: str = Column(String(255), nullable=False, default="")  # type: ignore[assignment]
    jeep: Decimal = Column(_MONEY, nullable=False, default=Decimal("0"))  # type: ignore[assignment]
    bus: Decimal = Column(_MONEY, nullable=False, default=Decimal("0"))  # type: ignore[assignment]
    fx_van: Decimal = Column(_MONEY, nullable=False, default=Decimal("0"))  # type: ignore[assignment]
    gas: Decimal = Column(_MONEY, nullable=False, default=Decimal("0"))  # type: ignore[assignment]
    toll: Decimal = Column(_MONEY, nullable=False, default=Decimal("0"))  # type: ignore[assignment]
    meals: Decimal = Column(_MONEY, nullable=False, default=Decimal("0"))  # type: ignore[assignment]
    lodging: Decimal = Column(_MONEY, nullable=False, default=Decimal("0"))  # type: ignore[assignment]
    others: Decimal = Column(_MONEY, nullable=False, default=Decimal("0"))  # type: ignore[assignment]
    total: Decimal = Column(_MONEY, nullable=False, default=Decimal("0"))  # type: ignore[assignment]
    remarks: str = Column(Text, nullable=False, default="")  # type: ignore[assignment]

    liquidation = relationship("Liquidation", back_populates="items")


class LiquidationAttachment(Base):
    """Receipt metadata; the bytes live in the blob store under ``blob_key``."""

    __tablename__ = "liquidation_attachments"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    liquidation_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("liquidations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    blob_key: str = Column(String(512), unique=True, nullable=False)  # type: ignore[assignment]
    file_name: str = Column(String(255), nullable=False)  # type: ignore[assignment]
    content_type: str | None = Column(String(100), nullable=True)  # type: ignore[assignment]
    size_bytes: int = Column(Integer, nullable=False, default=0)  # type: ignore[assignment]
    uploaded_by: int = Column(Integer, ForeignKey("employees.id"), nullable=False)  # type: ignore[assignment]
    uploaded_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    liquidation = relationship("Liquidation", back_populates="attachments")
