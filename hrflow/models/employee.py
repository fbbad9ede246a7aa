"""
Employee model: identity, position and the leave-credit balance.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (Boolean, CheckConstraint, Column, DateTime, ForeignKey,
                        Integer, Numeric, String)
from sqlalchemy.orm import relationship

from hrflow.db.base import Base


class Employee(Base):
    __tablename__ = "employees"
    __table_args__ = (
        CheckConstraint("leave_credits >= 0", name="ck_employees_leave_credits_nonneg"),
        CheckConstraint("reserved_credits >= 0", name="ck_employees_reserved_credits_nonneg"),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    email: str = Column(String(320), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    hashed_password: str = Column(String(128), nullable=False)  # type: ignore[assignment]
    first_name: str = Column(String(100), nullable=False)  # type: ignore[assignment]
    last_name: str = Column(String(100), nullable=False)  # type: ignore[assignment]
    employee_code: str | None = Column(String(40), unique=True, nullable=True)  # type: ignore[assignment]
    position_id: int | None = Column(  # type: ignore[assignment]
        Integer, ForeignKey("positions.id"), nullable=True, index=True
    )
    # Balance of accrued paid-leave days, mutated only through the ledger.
    leave_credits: Decimal = Column(  # type: ignore[assignment]
        Numeric(8, 2), nullable=False, default=Decimal("0"), server_default="0"
    )
    # Soft hold placed by pending requests; never exceeds leave_credits.
    reserved_credits: Decimal = Column(  # type: ignore[assignment]
        Numeric(8, 2), nullable=False, default=Decimal("0"), server_default="0"
    )
    is_active: bool = Column(Boolean, default=True, server_default="true")  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    version: int = Column(Integer, nullable=False, default=1)  # type: ignore[assignment]

    position = relationship("Position", lazy="selectin")

    __mapper_args__ = {"version_id_col": version}

    @property
    def position_name(self) -> str | None:
        return self.position.name if self.position is not None else None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def available_credits(self) -> Decimal:
        return Decimal(self.leave_credits) - Decimal(self.reserved_credits)
