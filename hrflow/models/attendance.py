"""
Attendance sessions (one row per clock-in / clock-out pair) and the
derived per-day summary.
"""

from __future__ import annotations

from datetime import date, datetime, timezone

from sqlalchemy import (Column, Date, DateTime, Float, ForeignKey, Index, Integer,
                        String, UniqueConstraint)
from sqlalchemy.orm import relationship

from hrflow.db.base import Base


class AttendanceSession(Base):
    __tablename__ = "attendance_sessions"
    __table_args__ = (Index("ix_attendance_sessions_employee_date", "employee_id", "work_date"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    employee_id: int = Column(Integer, ForeignKey("employees.id"), nullable=False)  # type: ignore[assignment]
    # Local civil date of clock_in, in the organisation's zone.
    work_date: date = Column(Date, nullable=False)  # type: ignore[assignment]
    clock_in: datetime = Column(DateTime(timezone=True), nullable=False)  # type: ignore[assignment]
    clock_out: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    duration_minutes: int | None = Column(Integer, nullable=True)  # type: ignore[assignment]

    # Informational only.
    clock_in_latitude: float | None = Column(Float, nullable=True)  # type: ignore[assignment]
    clock_in_longitude: float | None = Column(Float, nullable=True)  # type: ignore[assignment]
    clock_in_address: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    clock_out_latitude: float | None = Column(Float, nullable=True)  # type: ignore[assignment]
    clock_out_longitude: float | None = Column(Float, nullable=True)  # type: ignore[assignment]
    clock_out_address: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]

    corrected_by: int | None = Column(Integer, ForeignKey("employees.id"), nullable=True)  # type: ignore[assignment]
    corrected_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    version: int = Column(Integer, nullable=False, default=1)  # type: ignore[assignment]

    employee = relationship("Employee", foreign_keys=[employee_id], lazy="selectin")

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_open(self) -> bool:
        return self.clock_out is None


class DailySummary(Base):
    __tablename__ = "daily_summaries"
    __table_args__ = (
        UniqueConstraint("employee_id", "work_date", name="uq_daily_summaries_employee_date"),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    employee_id: int = Column(Integer, ForeignKey("employees.id"), nullable=False)  # type: ignore[assignment]
    work_date: date = Column(Date, nullable=False)  # type: ignore[assignment]
    total_minutes_raw: int = Column(Integer, nullable=False, default=0)  # type: ignore[assignment]
    total_minutes_final: int = Column(Integer, nullable=False, default=0)  # type: ignore[assignment]
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
