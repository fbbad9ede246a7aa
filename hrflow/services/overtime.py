"""
Two-level overtime workflow.

One pending-or-approved request per employee and local date.  Level 2
can only be reviewed after level 1 approved; ``final_status`` is always
recomputed from the two levels.  Submissions by the auto-approval
position are stamped approved on both levels at creation.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrflow.core.clock import Clock, local_today, system_clock
from hrflow.core.config import settings
from hrflow.core.exceptions import (DuplicateForDate, Forbidden, InvalidTransition, NotFound,
                                    ValidationError)
from hrflow.db.session import atomic
from hrflow.models.employee import Employee
from hrflow.models.enums import Decision, ReviewStatus
from hrflow.models.overtime import OvertimeRequest
from hrflow.services.authorization import (Caller, Capability, PermissionLookup,
                                           originator_position, require_any_capability,
                                           require_capability, require_visible,
                                           visibility_clause)
from hrflow.services.review import ReviewLevel, apply_decision, write_level

logger = logging.getLogger(__name__)

AUTO_APPROVE_COMMENT_TEMPLATE = "Auto-approved ({position})"
_MINUTES_PER_DAY = 24 * 60
_LEVEL_CAPABILITY = {
    1: Capability.APPROVE_OVERTIME_LEVEL1,
    2: Capability.APPROVE_OVERTIME_LEVEL2,
}


def parse_hhmm(value: str) -> int:
    """Minutes since local midnight for an ``HH:MM`` string."""
    try:
        hours, minutes = (int(part) for part in value.strip().split(":"))
    except (AttributeError, ValueError):
        raise ValidationError(f"Invalid time {value!r}; expected HH:MM") from None
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        raise ValidationError(f"Invalid time {value!r}; expected HH:MM")
    return hours * 60 + minutes


def overtime_hours(start_time: str, end_time: str) -> Decimal:
    """Overnight-aware duration: an end before the start wraps past midnight."""
    start = parse_hhmm(start_time)
    end = parse_hhmm(end_time)
    if end < start:
        end += _MINUTES_PER_DAY
    hours = Decimal(end - start) / Decimal(60)
    return hours.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def is_auto_approver(position: str | None) -> bool:
    return (position or "").strip().lower() == settings.OVERTIME_AUTO_APPROVE_POSITION.strip().lower()


class OvertimeWorkflow:
    def __init__(
        self,
        db: AsyncSession,
        permissions: PermissionLookup,
        clock: Clock = system_clock,
    ) -> None:
        self.db = db
        self.permissions = permissions
        self.clock = clock

    # ── Queries ─────────────────────────────────────────────────────
    async def _get(self, request_id: int, *, for_update: bool = False) -> OvertimeRequest:
        stmt = select(OvertimeRequest).where(
            OvertimeRequest.id == request_id,
            OvertimeRequest.deleted_at.is_(None),
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        request = (await self.db.execute(stmt)).scalar_one_or_none()
        if request is None:
            raise NotFound(f"Overtime request {request_id} not found")
        return request

    async def _require_visible(self, caller: Caller, request: OvertimeRequest) -> None:
        require_visible(await originator_position(self.db, request.employee_id), caller)

    async def get(self, caller: Caller, request_id: int) -> OvertimeRequest:
        request = await self._get(request_id)
        if request.employee_id != caller.employee_id:
            await require_any_capability(
                self.permissions, caller, *_LEVEL_CAPABILITY.values()
            )
            await self._require_visible(caller, request)
        return request

    async def list_mine(self, caller: Caller) -> list[OvertimeRequest]:
        result = await self.db.execute(
            select(OvertimeRequest)
            .where(
                OvertimeRequest.employee_id == caller.employee_id,
                OvertimeRequest.deleted_at.is_(None),
            )
            .order_by(OvertimeRequest.request_date.desc(), OvertimeRequest.id.desc())
        )
        return list(result.scalars().all())

    async def list_all(
        self, caller: Caller, status: ReviewStatus | None = None
    ) -> list[OvertimeRequest]:
        await require_any_capability(self.permissions, caller, *_LEVEL_CAPABILITY.values())
        stmt = (
            select(OvertimeRequest)
            .where(OvertimeRequest.deleted_at.is_(None))
            .order_by(OvertimeRequest.request_date.desc(), OvertimeRequest.id.desc())
        )
        hidden = visibility_clause(caller, OvertimeRequest.employee_id)
        if hidden is not None:
            stmt = stmt.where(hidden)
        if status is not None:
            stmt = stmt.where(OvertimeRequest.final_status == ReviewStatus(status).value)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def _ensure_no_live_request(
        self, employee_id: int, request_date: date, *, exclude_id: int | None = None
    ) -> None:
        stmt = select(OvertimeRequest.id).where(
            OvertimeRequest.employee_id == employee_id,
            OvertimeRequest.request_date == request_date,
            OvertimeRequest.deleted_at.is_(None),
            OvertimeRequest.final_status != ReviewStatus.REJECTED.value,
        )
        if exclude_id is not None:
            stmt = stmt.where(OvertimeRequest.id != exclude_id)
        if (await self.db.execute(stmt.limit(1))).first() is not None:
            raise DuplicateForDate(
                f"An overtime request for {request_date.isoformat()} is already pending or approved"
            )

    async def _lock_employee(self, employee_id: int) -> Employee:
        employee = (
            await self.db.execute(
                select(Employee)
                .where(Employee.id == employee_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
        ).scalar_one_or_none()
        if employee is None:
            raise NotFound(f"Employee {employee_id} not found")
        return employee

    # ── Transitions ─────────────────────────────────────────────────
    async def submit(
        self,
        caller: Caller,
        start_time: str,
        end_time: str,
        reason: str,
        request_date: date | None = None,
    ) -> OvertimeRequest:
        if not reason or not reason.strip():
            raise ValidationError("Reason is required")
        hours = overtime_hours(start_time, end_time)
        request_date = request_date or local_today(self.clock)
        now = self.clock.now()

        async with atomic(self.db):
            # Serialises same-employee submissions so the per-date rule holds.
            await self._lock_employee(caller.employee_id)
            await self._ensure_no_live_request(caller.employee_id, request_date)

            request = OvertimeRequest(
                employee_id=caller.employee_id,
                request_date=request_date,
                start_time=start_time,
                end_time=end_time,
                total_hours=hours,
                reason=reason.strip(),
                created_at=now,
            )
            auto = is_auto_approver(caller.position)
            if auto:
                comment = AUTO_APPROVE_COMMENT_TEMPLATE.format(
                    position=settings.OVERTIME_AUTO_APPROVE_POSITION
                )
                stamp = ReviewLevel.settled(Decision.APPROVE, caller.employee_id, now, comment)
                write_level(request, 1, stamp)
                write_level(request, 2, stamp)
                request.final_status = ReviewStatus.APPROVED.value
            else:
                write_level(request, 1, ReviewLevel.pending())
                write_level(request, 2, ReviewLevel.pending())
                request.final_status = ReviewStatus.PENDING.value
            self.db.add(request)

        logger.info(
            "Overtime request %s submitted by employee=%s date=%s hours=%s auto_approved=%s",
            request.id, caller.employee_id, request_date, hours, auto,
        )
        return request

    async def review_level(
        self,
        caller: Caller,
        request_id: int,
        level: int,
        decision: Decision | str,
        comment: str | None = None,
    ) -> OvertimeRequest:
        if level not in _LEVEL_CAPABILITY:
            raise ValidationError("Review level must be 1 or 2")
        await require_capability(self.permissions, caller, _LEVEL_CAPABILITY[level])
        decision = Decision(decision)

        async with atomic(self.db):
            request = await self._get(request_id, for_update=True)
            await self._require_visible(caller, request)
            final = apply_decision(
                request, level, decision, caller.employee_id, self.clock.now(), comment
            )
            request.final_status = final.value

        logger.info(
            "Overtime request %s level%s %s by employee=%s; final=%s",
            request.id, level, decision.value, caller.employee_id, request.final_status,
        )
        return request

    async def _get_editable(self, caller: Caller, request_id: int) -> OvertimeRequest:
        request = await self._get(request_id, for_update=True)
        if request.employee_id != caller.employee_id:
            raise Forbidden(
                f"employee {caller.employee_id} does not own overtime request {request_id}"
            )
        if request.level1_status != ReviewStatus.PENDING.value:
            raise InvalidTransition("Overtime request can no longer be changed once review has started")
        return request

    async def edit(
        self,
        caller: Caller,
        request_id: int,
        start_time: str,
        end_time: str,
        reason: str,
        request_date: date | None = None,
    ) -> OvertimeRequest:
        if not reason or not reason.strip():
            raise ValidationError("Reason is required")
        hours = overtime_hours(start_time, end_time)

        async with atomic(self.db):
            await self._lock_employee(caller.employee_id)
            request = await self._get_editable(caller, request_id)
            if request_date is not None and request_date != request.request_date:
                await self._ensure_no_live_request(
                    caller.employee_id, request_date, exclude_id=request.id
                )
                request.request_date = request_date
            request.start_time = start_time
            request.end_time = end_time
            request.total_hours = hours
            request.reason = reason.strip()

        logger.info("Overtime request %s edited by employee=%s", request.id, caller.employee_id)
        return request

    async def delete(self, caller: Caller, request_id: int) -> None:
        async with atomic(self.db):
            request = await self._get_editable(caller, request_id)
            request.deleted_at = self.clock.now()
        logger.info("Overtime request %s deleted by employee=%s", request_id, caller.employee_id)
