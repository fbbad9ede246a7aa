"""
Attendance sessions and daily totals.

Instants are stored in UTC.  A session belongs to the local civil date
of its clock-in; the daily summary for that date is recomputed whenever
one of its sessions changes.  Open sessions contribute nothing to the
daily sum until they are closed.
"""

from __future__ import annotations

import logging
from datetime import date, datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrflow.core.clock import Clock, ensure_utc, local_date, local_today, system_clock
from hrflow.core.config import settings
from hrflow.core.exceptions import Forbidden, NotFound, ValidationError
from hrflow.db.session import atomic
from hrflow.models.attendance import AttendanceSession, DailySummary
from hrflow.models.employee import Employee
from hrflow.schemas.attendance import LocationInfo
from hrflow.services.authorization import (Caller, Capability, PermissionLookup,
                                           originator_position, require_capability)

logger = logging.getLogger(__name__)


def session_minutes(clock_in: datetime, clock_out: datetime) -> int:
    """Whole minutes between the two instants, floored."""
    seconds = (ensure_utc(clock_out) - ensure_utc(clock_in)).total_seconds()
    if seconds < 0:
        raise ValidationError("Clock-out must not be before clock-in")
    return int(seconds // 60)


def lunch_adjusted(raw_minutes: int, position: str | None) -> int:
    """Flat one-off lunch deduction for the field position past the threshold."""
    is_field = (position or "").strip().lower() == settings.LUNCH_DEDUCTION_POSITION.strip().lower()
    if is_field and raw_minutes > settings.LUNCH_THRESHOLD_MINUTES:
        return raw_minutes - settings.LUNCH_DEDUCTION_MINUTES
    return raw_minutes


class AttendanceService:
    def __init__(
        self,
        db: AsyncSession,
        permissions: PermissionLookup,
        clock: Clock = system_clock,
    ) -> None:
        self.db = db
        self.permissions = permissions
        self.clock = clock

    # ── Helpers ─────────────────────────────────────────────────────
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

    async def _get(self, session_id: int, *, for_update: bool = False) -> AttendanceSession:
        stmt = select(AttendanceSession).where(AttendanceSession.id == session_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        session = (await self.db.execute(stmt)).scalar_one_or_none()
        if session is None:
            raise NotFound(f"Attendance session {session_id} not found")
        return session

    async def _open_sessions(self, employee_id: int) -> list[AttendanceSession]:
        result = await self.db.execute(
            select(AttendanceSession)
            .where(
                AttendanceSession.employee_id == employee_id,
                AttendanceSession.clock_out.is_(None),
            )
            .order_by(AttendanceSession.clock_in.desc(), AttendanceSession.id.desc())
        )
        return list(result.scalars().all())

    async def _require_self_or(self, caller: Caller, employee_id: int, capability: str) -> None:
        if employee_id != caller.employee_id:
            await require_capability(self.permissions, caller, capability)

    async def _sum_closed_minutes(self, employee_id: int, day: date) -> int:
        result = await self.db.execute(
            select(func.coalesce(func.sum(AttendanceSession.duration_minutes), 0)).where(
                AttendanceSession.employee_id == employee_id,
                AttendanceSession.work_date == day,
                AttendanceSession.clock_out.is_not(None),
            )
        )
        return int(result.scalar_one())

    async def _recompute_summary(self, employee_id: int, day: date) -> DailySummary:
        raw = await self._sum_closed_minutes(employee_id, day)
        final = lunch_adjusted(raw, await originator_position(self.db, employee_id))
        summary = (
            await self.db.execute(
                select(DailySummary).where(
                    DailySummary.employee_id == employee_id,
                    DailySummary.work_date == day,
                )
            )
        ).scalar_one_or_none()
        if summary is None:
            summary = DailySummary(employee_id=employee_id, work_date=day)
            self.db.add(summary)
        summary.total_minutes_raw = raw
        summary.total_minutes_final = final
        summary.updated_at = self.clock.now()
        return summary

    # ── Clock in / out ──────────────────────────────────────────────
    async def clock_in(
        self,
        caller: Caller,
        location: LocationInfo | None = None,
        at: datetime | None = None,
    ) -> AttendanceSession:
        instant = ensure_utc(at) if at is not None else self.clock.now()

        async with atomic(self.db):
            await self._lock_employee(caller.employee_id)
            if not settings.ALLOW_CONCURRENT_OPEN_SESSIONS and await self._open_sessions(
                caller.employee_id
            ):
                raise ValidationError("Already clocked in; clock out of the open session first")
            session = AttendanceSession(
                employee_id=caller.employee_id,
                work_date=local_date(instant),
                clock_in=instant,
                clock_in_latitude=location.latitude if location else None,
                clock_in_longitude=location.longitude if location else None,
                clock_in_address=location.address if location else None,
            )
            self.db.add(session)

        logger.info(
            "Clock-in session %s employee=%s work_date=%s",
            session.id, caller.employee_id, session.work_date,
        )
        return session

    async def clock_out(
        self,
        caller: Caller,
        session_id: int,
        location: LocationInfo | None = None,
        at: datetime | None = None,
    ) -> AttendanceSession:
        instant = ensure_utc(at) if at is not None else self.clock.now()

        async with atomic(self.db):
            await self._lock_employee(caller.employee_id)
            session = await self._get(session_id, for_update=True)
            if session.employee_id != caller.employee_id:
                raise Forbidden(f"employee {caller.employee_id} does not own session {session_id}")
            if session.clock_out is not None:
                # Second clock-out is a no-op.
                return session
            session.duration_minutes = session_minutes(session.clock_in, instant)
            session.clock_out = instant
            session.clock_out_latitude = location.latitude if location else None
            session.clock_out_longitude = location.longitude if location else None
            session.clock_out_address = location.address if location else None
            await self.db.flush()
            await self._recompute_summary(session.employee_id, session.work_date)

        logger.info(
            "Clock-out session %s employee=%s duration=%s min",
            session.id, caller.employee_id, session.duration_minutes,
        )
        return session

    async def current_session(self, caller: Caller) -> AttendanceSession | None:
        sessions = await self._open_sessions(caller.employee_id)
        return sessions[0] if sessions else None

    # ── Reads ───────────────────────────────────────────────────────
    async def daily_duration(self, caller: Caller, employee_id: int, day: date) -> tuple[int, int]:
        """``(raw, final)`` minutes for one employee and local date."""
        await self._require_self_or(caller, employee_id, Capability.EDIT_TIME_ENTRIES)
        raw = await self._sum_closed_minutes(employee_id, day)
        return raw, lunch_adjusted(raw, await originator_position(self.db, employee_id))

    async def daily_summaries(
        self, caller: Caller, employee_id: int, start: date, end: date
    ) -> list[DailySummary]:
        if end < start:
            raise ValidationError("End date must not be before start date")
        await self._require_self_or(caller, employee_id, Capability.EDIT_TIME_ENTRIES)
        result = await self.db.execute(
            select(DailySummary)
            .where(
                DailySummary.employee_id == employee_id,
                DailySummary.work_date >= start,
                DailySummary.work_date <= end,
            )
            .order_by(DailySummary.work_date)
        )
        return list(result.scalars().all())

    async def list_sessions(
        self, caller: Caller, employee_id: int, start: date, end: date
    ) -> list[AttendanceSession]:
        if end < start:
            raise ValidationError("End date must not be before start date")
        await self._require_self_or(caller, employee_id, Capability.EDIT_TIME_ENTRIES)
        result = await self.db.execute(
            select(AttendanceSession)
            .where(
                AttendanceSession.employee_id == employee_id,
                AttendanceSession.work_date >= start,
                AttendanceSession.work_date <= end,
            )
            .order_by(AttendanceSession.clock_in)
        )
        return list(result.scalars().all())

    async def stale_sessions(self, caller: Caller) -> list[AttendanceSession]:
        """Open sessions whose local work date is before local today."""
        await require_capability(self.permissions, caller, Capability.VIEW_STALE_SESSIONS)
        result = await self.db.execute(
            select(AttendanceSession)
            .where(
                AttendanceSession.clock_out.is_(None),
                AttendanceSession.work_date < local_today(self.clock),
            )
            .order_by(AttendanceSession.work_date, AttendanceSession.id)
        )
        return list(result.scalars().all())

    # ── Manual correction ───────────────────────────────────────────
    async def correct_session(
        self,
        caller: Caller,
        session_id: int,
        clock_in: datetime,
        clock_out: datetime | None = None,
    ) -> AttendanceSession:
        await require_capability(self.permissions, caller, Capability.EDIT_TIME_ENTRIES)
        clock_in = ensure_utc(clock_in)
        clock_out = ensure_utc(clock_out) if clock_out is not None else None
        duration = session_minutes(clock_in, clock_out) if clock_out is not None else None

        async with atomic(self.db):
            owner_id = (await self._get(session_id)).employee_id
            await self._lock_employee(owner_id)
            session = await self._get(session_id, for_update=True)
            old_day = session.work_date
            session.clock_in = clock_in
            session.clock_out = clock_out
            session.duration_minutes = duration
            session.work_date = local_date(clock_in)
            session.corrected_by = caller.employee_id
            session.corrected_at = self.clock.now()
            await self.db.flush()
            for day in {old_day, session.work_date}:
                await self._recompute_summary(session.employee_id, day)

        logger.info(
            "Session %s corrected by employee=%s: in=%s out=%s",
            session.id, caller.employee_id, clock_in.isoformat(),
            clock_out.isoformat() if clock_out else None,
        )
        return session
