"""
Cash advance requests (personal or support) under two-level review.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from hrflow.db.base import Base
from hrflow.models.enums import ReviewStatus
from hrflow.models.review import TwoLevelReviewMixin


class CashAdvance(TwoLevelReviewMixin, Base):
    __tablename__ = "cash_advances"
    __table_args__ = (Index("ix_cash_advances_employee_status", "employee_id", "status"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    employee_id: int = Column(Integer, ForeignKey("employees.id"), nullable=False)  # type: ignore[assignment]
    type: str = Column(String(20), nullable=False)  # type: ignore[assignment]  # personal | support
    amount: Decimal = Column(Numeric(12, 2), nullable=False)  # type: ignore[assignment]
    purpose: str | None = Column(Text, nullable=True)  # type: ignore[assignment]
    request_date: date = Column(Date, nullable=False)  # type: ignore[assignment]
    status: str = Column(  # type: ignore[assignment]
        String(20),
        nullable=False,
        default=ReviewStatus.PENDING.value,
        server_default=ReviewStatus.PENDING.value,
    )
    # Stamped by the review that settled the request.
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

    __mapper_args__ = {"version_id_col": version}
