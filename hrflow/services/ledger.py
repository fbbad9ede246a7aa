"""
Leave-credit ledger.

Each employee row carries ``leave_credits`` (the balance) and
``reserved_credits`` (soft holds placed by pending requests).  All
mutations go through this class, run inside the caller's transaction on
a row locked ``FOR UPDATE``, and append a ``LeaveCreditEntry``.

Invariants: ``leave_credits >= 0``, ``reserved_credits >= 0`` and
``reserved_credits <= leave_credits``.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrflow.core.clock import Clock, system_clock
from hrflow.core.exceptions import InsufficientBalance, NotFound, ValidationError
from hrflow.models.employee import Employee
from hrflow.models.enums import LedgerEntryKind
from hrflow.models.leave import LeaveCreditEntry

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def _as_decimal(value: Decimal | int | float | str) -> Decimal:
    return Decimal(str(value))


class LeaveCreditLedger:
    def __init__(self, db: AsyncSession, clock: Clock = system_clock) -> None:
        self.db = db
        self.clock = clock

    # ── Reads ───────────────────────────────────────────────────────
    async def get_employee(self, employee_id: int, *, for_update: bool = False) -> Employee:
        stmt = select(Employee).where(Employee.id == employee_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        employee = (await self.db.execute(stmt)).scalar_one_or_none()
        if employee is None:
            raise NotFound(f"Employee {employee_id} not found")
        return employee

    async def balance(self, employee_id: int) -> Decimal:
        employee = await self.get_employee(employee_id)
        return _as_decimal(employee.leave_credits)

    async def available(self, employee_id: int) -> Decimal:
        employee = await self.get_employee(employee_id)
        return employee.available_credits

    async def history(self, employee_id: int) -> list[LeaveCreditEntry]:
        await self.get_employee(employee_id)
        result = await self.db.execute(
            select(LeaveCreditEntry)
            .where(LeaveCreditEntry.employee_id == employee_id)
            .order_by(LeaveCreditEntry.id)
        )
        return list(result.scalars().all())

    # ── Mutations (caller owns the transaction) ─────────────────────
    async def reserve(
        self,
        employee_id: int,
        days: Decimal,
        *,
        request_id: int | None = None,
        actor_id: int | None = None,
    ) -> Employee:
        """Place a soft hold; fails if the unheld balance cannot cover it."""
        days = self._positive(days)
        employee = await self.get_employee(employee_id, for_update=True)
        if employee.available_credits < days:
            raise InsufficientBalance(
                f"Insufficient leave credits: {employee.available_credits} available, {days} requested"
            )
        employee.reserved_credits = _as_decimal(employee.reserved_credits) + days
        self._journal(employee, LedgerEntryKind.RESERVE, days, request_id, actor_id)
        return employee

    async def release(
        self,
        employee_id: int,
        days: Decimal,
        *,
        request_id: int | None = None,
        actor_id: int | None = None,
    ) -> Employee:
        """Drop a soft hold previously placed by ``reserve``."""
        days = _as_decimal(days)
        employee = await self.get_employee(employee_id, for_update=True)
        if days <= ZERO:
            return employee
        reserved = _as_decimal(employee.reserved_credits)
        if days > reserved:
            raise ValidationError(f"Cannot release {days} credits; only {reserved} held")
        employee.reserved_credits = reserved - days
        self._journal(employee, LedgerEntryKind.RELEASE, -days, request_id, actor_id)
        return employee

    async def debit(
        self,
        employee_id: int,
        days: Decimal,
        *,
        request_id: int | None = None,
        actor_id: int | None = None,
    ) -> Employee:
        """Remove credits; never leaves the unheld balance negative."""
        days = self._positive(days)
        employee = await self.get_employee(employee_id, for_update=True)
        if employee.available_credits < days:
            raise InsufficientBalance(
                f"Insufficient leave credits: {employee.available_credits} available, {days} requested"
            )
        employee.leave_credits = _as_decimal(employee.leave_credits) - days
        self._journal(employee, LedgerEntryKind.DEBIT, -days, request_id, actor_id)
        return employee

    async def credit(
        self,
        employee_id: int,
        days: Decimal,
        *,
        request_id: int | None = None,
        actor_id: int | None = None,
    ) -> Employee:
        days = self._positive(days)
        employee = await self.get_employee(employee_id, for_update=True)
        employee.leave_credits = _as_decimal(employee.leave_credits) + days
        self._journal(employee, LedgerEntryKind.CREDIT, days, request_id, actor_id)
        return employee

    async def set_balance(self, employee_id: int, credits: Decimal, *, actor_id: int) -> Employee:
        """Administrative override of the balance."""
        credits = _as_decimal(credits)
        if credits < ZERO:
            raise ValidationError("Leave credits cannot be negative")
        employee = await self.get_employee(employee_id, for_update=True)
        reserved = _as_decimal(employee.reserved_credits)
        if credits < reserved:
            raise ValidationError(
                f"Leave credits cannot be set below the {reserved} held by pending requests"
            )
        delta = credits - _as_decimal(employee.leave_credits)
        employee.leave_credits = credits
        self._journal(employee, LedgerEntryKind.SET, delta, None, actor_id, note="administrative override")
        return employee

    # ── Helpers ─────────────────────────────────────────────────────
    @staticmethod
    def _positive(days: Decimal) -> Decimal:
        days = _as_decimal(days)
        if days <= ZERO:
            raise ValidationError("Ledger amounts must be positive")
        return days

    def _journal(
        self,
        employee: Employee,
        kind: LedgerEntryKind,
        delta: Decimal,
        request_id: int | None,
        actor_id: int | None,
        note: str | None = None,
    ) -> None:
        self.db.add(
            LeaveCreditEntry(
                employee_id=employee.id,
                kind=kind.value,
                delta=delta,
                balance_after=employee.leave_credits,
                reserved_after=employee.reserved_credits,
                leave_request_id=request_id,
                actor_id=actor_id,
                note=note,
                created_at=self.clock.now(),
            )
        )
        logger.info(
            "Ledger %s employee=%s delta=%s balance=%s reserved=%s request=%s",
            kind.value,
            employee.id,
            delta,
            employee.leave_credits,
            employee.reserved_credits,
            request_id,
        )
