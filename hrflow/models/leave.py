"""
Leave requests and the append-only leave-credit journal.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import (Column, Date, DateTime, ForeignKey, Index, Integer, Numeric,
                        String, Text)
from sqlalchemy.orm import relationship

from hrflow.db.base import Base
from hrflow.models.enums import LeaveStatus


class LeaveRequest(Base):
    __tablename__ = "leave_requests"
    __table_args__ = (Index("ix_leave_requests_employee_status", "employee_id", "status"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    employee_id: int = Column(Integer, ForeignKey("employees.id"), nullable=False)  # type: ignore[assignment]
    leave_type: str = Column(String(40), nullable=False)  # type: ignore[assignment]
    start_date: date = Column(Date, nullable=False)  # type: ignore[assignment]
    end_date: date = Column(Date, nullable=False)  # type: ignore[assignment]
    days: Decimal = Column(Numeric(8, 2), nullable=False)  # type: ignore[assignment]
    reason: str | None = Column(Text, nullable=True)  # type: ignore[assignment]
    status: str = Column(  # type: ignore[assignment]
        String(20),
        nullable=False,
        default=LeaveStatus.PENDING.value,
        server_default=LeaveStatus.PENDING.value,
    )  # pending | approved | rejected | revoked
    # Credits held against the employee's balance while pending.
    credits_reserved: Decimal = Column(  # type: ignore[assignment]
        Numeric(8, 2), nullable=False, default=Decimal("0"), server_default="0"
    )
    reviewed_by: int | None = Column(Integer, ForeignKey("employees.id"), nullable=True)  # type: ignore[assignment]
    reviewed_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    reviewer_comment: str | None = Column(Text, nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    version: int = Column(Integer, nullable=False, default=1)  # type: ignore[assignment]

    employee = relationship("Employee", foreign_keys=[employee_id], lazy="selectin")

    __mapper_args__ = {"version_id_col": version}


class LeaveCreditEntry(Base):
    """One row per ledger mutation; never updated or deleted."""

    __tablename__ = "leave_credit_entries"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    employee_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("employees.id"), nullable=False, index=True
    )
    kind: str = Column(String(20), nullable=False)  # type: ignore[assignment]  # reserve | release | debit | credit | set
    delta: Decimal = Column(Numeric(8, 2), nullable=False)  # type: ignore[assignment]
    balance_after: Decimal = Column(Numeric(8, 2), nullable=False)  # type: ignore[assignment]
    reserved_after: Decimal = Column(Numeric(8, 2), nullable=False)  # type: ignore[assignment]
    leave_request_id: int | None = Column(  # type: ignore[assignment]
        Integer, ForeignKey("leave_requests.id"), nullable=True
    )
    actor_id: int | None = Column(Integer, ForeignKey("employees.id"), nullable=True)  # type: ignore[assignment]
    note: str | None = Column(String(255), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
