"""
Leave-request workflow.

    pending ──approve──▶ approved ──revoke──▶ revoked
       └────reject────▶ rejected

Each transition and its ledger effect commit in one transaction.  With
``LEAVE_RESERVE_ON_SUBMIT`` the requested days are held at submission,
converted to a debit on approval and released on rejection, so two
pending requests can never both spend the same credits.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrflow.core.clock import Clock, system_clock
from hrflow.core.config import settings
from hrflow.core.exceptions import (AlreadyReviewed, Forbidden, InsufficientBalance,
                                    InvalidTransition, NotFound, OverlappingRequest,
                                    ValidationError)
from hrflow.db.session import atomic
from hrflow.models.enums import Decision, LeaveStatus, LeaveType
from hrflow.models.leave import LeaveRequest
from hrflow.services.authorization import (Caller, Capability, PermissionLookup, has_capability,
                                           require_capability)
from hrflow.services.ledger import ZERO, LeaveCreditLedger

logger = logging.getLogger(__name__)

DEFAULT_REVOKE_COMMENT = "Leave revoked"


def inclusive_day_count(start: date, end: date) -> int:
    """Calendar days in ``[start, end]``; ``end < start`` is invalid."""
    if end < start:
        raise ValidationError("End date must not be before start date")
    return (end - start).days + 1


def ranges_overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    return a_start <= b_end and a_end >= b_start


def is_ledger_exempt(leave_type: str) -> bool:
    exempt = {t.strip().lower() for t in settings.LEDGER_EXEMPT_LEAVE_TYPES}
    return leave_type.strip().lower() in exempt


def _leave_type(value: LeaveType | str) -> str:
    try:
        return LeaveType(value).value
    except ValueError:
        raise ValidationError(f"Unknown leave type {value!r}") from None


class LeaveWorkflow:
    def __init__(
        self,
        db: AsyncSession,
        permissions: PermissionLookup,
        clock: Clock = system_clock,
    ) -> None:
        self.db = db
        self.permissions = permissions
        self.clock = clock
        self.ledger = LeaveCreditLedger(db, clock)

    # ── Queries ─────────────────────────────────────────────────────
    async def _get(self, request_id: int, *, for_update: bool = False) -> LeaveRequest:
        stmt = select(LeaveRequest).where(LeaveRequest.id == request_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        request = (await self.db.execute(stmt)).scalar_one_or_none()
        if request is None:
            raise NotFound(f"Leave request {request_id} not found")
        return request

    async def get(self, caller: Caller, request_id: int) -> LeaveRequest:
        request = await self._get(request_id)
        if request.employee_id != caller.employee_id:
            await require_capability(self.permissions, caller, Capability.APPROVE_LEAVE)
        return request

    async def list_mine(self, caller: Caller) -> list[LeaveRequest]:
        result = await self.db.execute(
            select(LeaveRequest)
            .where(LeaveRequest.employee_id == caller.employee_id)
            .order_by(LeaveRequest.start_date.desc(), LeaveRequest.id.desc())
        )
        return list(result.scalars().all())

    async def list_all(self, caller: Caller, status: LeaveStatus | None = None) -> list[LeaveRequest]:
        await require_capability(self.permissions, caller, Capability.APPROVE_LEAVE)
        stmt = select(LeaveRequest).order_by(LeaveRequest.created_at.desc(), LeaveRequest.id.desc())
        if status is not None:
            stmt = stmt.where(LeaveRequest.status == LeaveStatus(status).value)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def _find_overlap(self, employee_id: int, start: date, end: date) -> LeaveRequest | None:
        result = await self.db.execute(
            select(LeaveRequest)
            .where(
                LeaveRequest.employee_id == employee_id,
                LeaveRequest.status == LeaveStatus.APPROVED.value,
                LeaveRequest.start_date <= end,
                LeaveRequest.end_date >= start,
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    # ── Transitions ─────────────────────────────────────────────────
    async def submit(
        self,
        caller: Caller,
        employee_id: int,
        leave_type: LeaveType | str,
        start: date,
        end: date,
        reason: str | None = None,
    ) -> LeaveRequest:
        if caller.employee_id != employee_id:
            raise Forbidden(f"employee {caller.employee_id} cannot file leave for {employee_id}")
        leave_type = _leave_type(leave_type)
        days = Decimal(inclusive_day_count(start, end))
        exempt = is_ledger_exempt(leave_type)

        async with atomic(self.db):
            # Row lock on the employee serialises concurrent submissions.
            employee = await self.ledger.get_employee(employee_id, for_update=True)
            if not employee.is_active:
                raise ValidationError("Inactive employees cannot file leave")
            if not exempt and employee.available_credits < days:
                raise InsufficientBalance(
                    f"Insufficient leave credits: {employee.available_credits} available, {days} requested"
                )
            clash = await self._find_overlap(employee_id, start, end)
            if clash is not None:
                raise OverlappingRequest(
                    f"Overlaps approved leave {clash.start_date.isoformat()} to {clash.end_date.isoformat()}"
                )

            request = LeaveRequest(
                employee_id=employee_id,
                leave_type=leave_type,
                start_date=start,
                end_date=end,
                days=days,
                reason=reason,
                status=LeaveStatus.PENDING.value,
                credits_reserved=ZERO,
                created_at=self.clock.now(),
            )
            self.db.add(request)
            await self.db.flush()

            if not exempt and settings.LEAVE_RESERVE_ON_SUBMIT:
                await self.ledger.reserve(
                    employee_id, days, request_id=request.id, actor_id=caller.employee_id
                )
                request.credits_reserved = days

        logger.info(
            "Leave request %s submitted by employee=%s type=%s days=%s",
            request.id, employee_id, leave_type, days,
        )
        return request

    async def review(
        self,
        caller: Caller,
        request_id: int,
        decision: Decision | str,
        comment: str | None = None,
    ) -> LeaveRequest:
        await require_capability(self.permissions, caller, Capability.APPROVE_LEAVE)
        decision = Decision(decision)

        async with atomic(self.db):
            request = await self._get(request_id, for_update=True)
            if request.status != LeaveStatus.PENDING.value:
                raise AlreadyReviewed(f"Leave request {request_id} is already {request.status}")

            held = Decimal(request.credits_reserved or 0)
            if held > ZERO:
                await self.ledger.release(
                    request.employee_id, held, request_id=request.id, actor_id=caller.employee_id
                )
                request.credits_reserved = ZERO

            if decision == Decision.APPROVE:
                if not is_ledger_exempt(request.leave_type):
                    await self.ledger.debit(
                        request.employee_id,
                        Decimal(request.days),
                        request_id=request.id,
                        actor_id=caller.employee_id,
                    )
                request.status = LeaveStatus.APPROVED.value
            else:
                request.status = LeaveStatus.REJECTED.value

            request.reviewed_by = caller.employee_id
            request.reviewed_at = self.clock.now()
            request.reviewer_comment = comment

        logger.info(
            "Leave request %s %s by employee=%s", request.id, request.status, caller.employee_id
        )
        return request

    async def revoke(self, caller: Caller, request_id: int, comment: str | None = None) -> LeaveRequest:
        await require_capability(self.permissions, caller, Capability.APPROVE_LEAVE)

        async with atomic(self.db):
            request = await self._get(request_id, for_update=True)
            if request.status != LeaveStatus.APPROVED.value:
                raise InvalidTransition(
                    f"Only approved leave can be revoked; request {request_id} is {request.status}"
                )
            if not is_ledger_exempt(request.leave_type):
                await self.ledger.credit(
                    request.employee_id,
                    Decimal(request.days),
                    request_id=request.id,
                    actor_id=caller.employee_id,
                )
            request.status = LeaveStatus.REVOKED.value
            request.reviewed_by = caller.employee_id
            request.reviewed_at = self.clock.now()
            request.reviewer_comment = comment or DEFAULT_REVOKE_COMMENT

        logger.info("Leave request %s revoked by employee=%s", request.id, caller.employee_id)
        return request

    # ── Balance administration ──────────────────────────────────────
    async def balance(self, caller: Caller, employee_id: int):
        if employee_id != caller.employee_id and not await has_capability(
            self.permissions, caller, Capability.MANAGE_LEAVE_CREDITS
        ):
            raise Forbidden(f"employee {caller.employee_id} cannot view balance of {employee_id}")
        return await self.ledger.get_employee(employee_id)

    async def set_balance(self, caller: Caller, employee_id: int, credits: Decimal):
        await require_capability(self.permissions, caller, Capability.MANAGE_LEAVE_CREDITS)
        async with atomic(self.db):
            employee = await self.ledger.set_balance(employee_id, credits, actor_id=caller.employee_id)
        logger.info(
            "Leave balance of employee=%s set to %s by employee=%s",
            employee_id, credits, caller.employee_id,
        )
        return employee

    async def credit_history(self, caller: Caller, employee_id: int):
        if employee_id != caller.employee_id:
            await require_capability(self.permissions, caller, Capability.MANAGE_LEAVE_CREDITS)
        return await self.ledger.history(employee_id)
