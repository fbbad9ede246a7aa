"""
Attendance endpoints: clock in/out, daily totals, corrections.
"""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Body, Depends, Query, status

from hrflow.api.v1.deps import get_attendance_service, get_caller
from hrflow.schemas.attendance import (ClockOutRequest, DailyDuration, DailySummaryRead,
                                       LocationInfo, SessionCorrection, SessionRead)
from hrflow.services.attendance import AttendanceService
from hrflow.services.authorization import Caller

router = APIRouter(prefix="/attendance", tags=["attendance"])


@router.post("/clock-in", response_model=SessionRead, status_code=status.HTTP_201_CREATED)
async def clock_in(
    location: LocationInfo | None = Body(default=None),
    caller: Caller = Depends(get_caller),
    service: AttendanceService = Depends(get_attendance_service),
):
    return await service.clock_in(caller, location)


@router.post("/clock-out", response_model=SessionRead)
async def clock_out(
    body: ClockOutRequest,
    caller: Caller = Depends(get_caller),
    service: AttendanceService = Depends(get_attendance_service),
):
    return await service.clock_out(caller, body.session_id, body.location)


@router.get("/current", response_model=SessionRead | None)
async def current_session(
    caller: Caller = Depends(get_caller),
    service: AttendanceService = Depends(get_attendance_service),
):
    """Latest open session of the caller, or ``null``."""
    return await service.current_session(caller)


@router.get("/sessions", response_model=list[SessionRead])
async def list_sessions(
    start: date,
    end: date,
    employee_id: int | None = Query(default=None),
    caller: Caller = Depends(get_caller),
    service: AttendanceService = Depends(get_attendance_service),
):
    return await service.list_sessions(caller, employee_id or caller.employee_id, start, end)


@router.get("/daily-summaries", response_model=list[DailySummaryRead])
async def daily_summaries(
    start: date,
    end: date,
    employee_id: int | None = Query(default=None),
    caller: Caller = Depends(get_caller),
    service: AttendanceService = Depends(get_attendance_service),
):
    return await service.daily_summaries(caller, employee_id or caller.employee_id, start, end)


@router.get("/daily-duration", response_model=DailyDuration)
async def daily_duration(
    day: date,
    employee_id: int | None = Query(default=None),
    caller: Caller = Depends(get_caller),
    service: AttendanceService = Depends(get_attendance_service),
) -> DailyDuration:
    target = employee_id or caller.employee_id
    raw, final = await service.daily_duration(caller, target, day)
    return DailyDuration(employee_id=target, work_date=day, raw=raw, final=final)


@router.get("/stale-sessions", response_model=list[SessionRead])
async def stale_sessions(
    caller: Caller = Depends(get_caller),
    service: AttendanceService = Depends(get_attendance_service),
):
    return await service.stale_sessions(caller)


@router.put("/sessions/{session_id}", response_model=SessionRead)
async def correct_session(
    session_id: int,
    body: SessionCorrection,
    caller: Caller = Depends(get_caller),
    service: AttendanceService = Depends(get_attendance_service),
):
    return await service.correct_session(caller, session_id, body.clock_in, body.clock_out)
