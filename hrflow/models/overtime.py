"""
Overtime requests: one per employee and local date unless rejected.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from hrflow.db.base import Base
from hrflow.models.enums import ReviewStatus
from hrflow.models.review import TwoLevelReviewMixin


class OvertimeRequest(TwoLevelReviewMixin, Base):
    __tablename__ = "overtime_requests"
    __table_args__ = (Index("ix_overtime_requests_employee_date", "employee_id", "request_date"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    employee_id: int = Column(Integer, ForeignKey("employees.id"), nullable=False)  # type: ignore[assignment]
    request_date: date = Column(Date, nullable=False)  # type: ignore[assignment]
    start_time: str = Column(String(5), nullable=False)  # type: ignore[assignment]  # HH:MM local
    end_time: str = Column(String(5), nullable=False)  # type: ignore[assignment]  # HH:MM local
    total_hours: Decimal = Column(Numeric(5, 2), nullable=False)  # type: ignore[assignment]
    reason: str = Column(Text, nullable=False)  # type: ignore[assignment]
    # Always derived from the two level statuses.
    final_status: str = Column(  # type: ignore[assignment]
        String(20),
        nullable=False,
        default=ReviewStatus.PENDING.value,
        server_default=ReviewStatus.PENDING.value,
    )
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    deleted_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    version: int = Column(Integer, nullable=False, default=1)  # type: ignore[assignment]

    employee = relationship("Employee", foreign_keys=[employee_id], lazy="selectin")

    __mapper_args__ = {"version_id_col": version}
