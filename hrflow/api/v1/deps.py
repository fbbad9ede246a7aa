"""
FastAPI dependencies: database session, identity, and workflow wiring.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Optional

from fastapi import Cookie, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrflow.core.clock import Clock, system_clock
from hrflow.core.security import decode_access_token
from hrflow.db.session import async_session_factory
from hrflow.models.employee import Employee
from hrflow.schemas.token import EmployeeClaims
from hrflow.services.attendance import AttendanceService
from hrflow.services.authorization import Caller, PermissionLookup, SqlPermissionLookup
from hrflow.services.blob_store import BlobStore, LocalBlobStore
from hrflow.services.cash_advance import CashAdvanceWorkflow
from hrflow.services.leave import LeaveWorkflow
from hrflow.services.liquidation import LiquidationWorkflow
from hrflow.services.overtime import OvertimeWorkflow

# We use auto_error=False so we can manually check for the cookie if header is missing
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)

_blob_store: BlobStore | None = None


# ── Database session ────────────────────────────────────────────────
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


# ── Auth dependencies ───────────────────────────────────────────────
async def get_current_employee(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    access_token: Optional[str] = Cookie(default=None),  # Read from HttpOnly Cookie
    db: AsyncSession = Depends(get_db),
) -> Employee:
    """Decode JWT from Header OR Cookie, look up the employee."""

    # Priority: Header > Cookie
    final_token = token
    if not final_token and access_token:
        # Cookie is set as "Bearer <token>"
        if access_token.startswith("Bearer "):
            final_token = access_token.split(" ", 1)[1]
        else:
            final_token = access_token

    credentials_exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not final_token:
        raise credentials_exc

    claims = EmployeeClaims.parse(decode_access_token(final_token))
    if claims is None:
        raise credentials_exc

    result = await db.execute(select(Employee).where(Employee.id == claims.sub))
    employee = result.scalar_one_or_none()
    if employee is None:
        raise credentials_exc
    return employee


async def get_current_active_employee(
    current_employee: Employee = Depends(get_current_employee),
) -> Employee:
    """Reject soft-disabled accounts."""
    if not current_employee.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive employee account")
    return current_employee


async def get_caller(
    employee: Employee = Depends(get_current_active_employee),
) -> Caller:
    return Caller(employee_id=employee.id, position=employee.position_name)


# ── Collaborators ───────────────────────────────────────────────────
def get_clock() -> Clock:
    return system_clock


def get_blob_store() -> BlobStore:
    global _blob_store
    if _blob_store is None:
        _blob_store = LocalBlobStore()
    return _blob_store


def get_permission_lookup(db: AsyncSession = Depends(get_db)) -> PermissionLookup:
    return SqlPermissionLookup(db)


# ── Workflows ───────────────────────────────────────────────────────
def get_attendance_service(
    db: AsyncSession = Depends(get_db),
    permissions: PermissionLookup = Depends(get_permission_lookup),
    clock: Clock = Depends(get_clock),
) -> AttendanceService:
    return AttendanceService(db, permissions, clock)


def get_leave_workflow(
    db: AsyncSession = Depends(get_db),
    permissions: PermissionLookup = Depends(get_permission_lookup),
    clock: Clock = Depends(get_clock),
) -> LeaveWorkflow:
    return LeaveWorkflow(db, permissions, clock)


def get_overtime_workflow(
    db: AsyncSession = Depends(get_db),
    permissions: PermissionLookup = Depends(get_permission_lookup),
    clock: Clock = Depends(get_clock),
) -> OvertimeWorkflow:
    return OvertimeWorkflow(db, permissions, clock)


def get_cash_advance_workflow(
    db: AsyncSession = Depends(get_db),
    permissions: PermissionLookup = Depends(get_permission_lookup),
    clock: Clock = Depends(get_clock),
) -> CashAdvanceWorkflow:
    return CashAdvanceWorkflow(db, permissions, clock)


def get_liquidation_workflow(
    db: AsyncSession = Depends(get_db),
    permissions: PermissionLookup = Depends(get_permission_lookup),
    blobs: BlobStore = Depends(get_blob_store),
    clock: Clock = Depends(get_clock),
) -> LiquidationWorkflow:
    return LiquidationWorkflow(db, permissions, blobs, clock)
