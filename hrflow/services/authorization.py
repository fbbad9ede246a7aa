"""
Authorization predicates.

Two independent checks, always evaluated in this order:

1. ``require_capability`` asks: does the caller's position grant the
   capability?  Any lookup failure is treated as "no".
2. ``require_visible`` asks: is the record hidden from this caller by the
   confidentiality rule (sensitive originator, viewer not on the
   allow-list)?

Both fail with a bare ``Forbidden``; the reason only reaches the log.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from hrflow.core.config import settings
from hrflow.core.exceptions import Forbidden
from hrflow.models.employee import Employee
from hrflow.models.position import Permission, Position, PositionPermission

logger = logging.getLogger(__name__)


class Capability:
    APPROVE_LEAVE = "approve_leave"
    MANAGE_LEAVE_CREDITS = "manage_leave_credits"
    EDIT_TIME_ENTRIES = "edit_time_entries"
    VIEW_STALE_SESSIONS = "view_stale_sessions"
    APPROVE_OVERTIME_LEVEL1 = "approve_overtime_level1"
    APPROVE_OVERTIME_LEVEL2 = "approve_overtime_level2"
    MANAGE_CASH_FLOW = "manage_cash_flow"
    APPROVE_CASH_ADVANCE_LEVEL1 = "approve_cash_advance_level1"
    APPROVE_CASH_ADVANCE_LEVEL2 = "approve_cash_advance_level2"
    MANAGE_LIQUIDATION = "manage_liquidation"
    APPROVE_LIQUIDATIONS_LEVEL1 = "approve_liquidations_level1"
    APPROVE_LIQUIDATIONS_LEVEL2 = "approve_liquidations_level2"

    ALL = (
        APPROVE_LEAVE,
        MANAGE_LEAVE_CREDITS,
        EDIT_TIME_ENTRIES,
        VIEW_STALE_SESSIONS,
        APPROVE_OVERTIME_LEVEL1,
        APPROVE_OVERTIME_LEVEL2,
        MANAGE_CASH_FLOW,
        APPROVE_CASH_ADVANCE_LEVEL1,
        APPROVE_CASH_ADVANCE_LEVEL2,
        MANAGE_LIQUIDATION,
        APPROVE_LIQUIDATIONS_LEVEL1,
        APPROVE_LIQUIDATIONS_LEVEL2,
    )


@dataclass(frozen=True)
class Caller:
    """Resolved identity of whoever is invoking a workflow operation."""

    employee_id: int
    position: str | None = None


class PermissionLookup(Protocol):
    async def has_capability(self, employee_id: int, capability: str) -> bool: ...


class SqlPermissionLookup:
    """Answers capability checks from the position/permission tables."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def has_capability(self, employee_id: int, capability: str) -> bool:
        result = await self.db.execute(
            select(PositionPermission.permission_id)
            .join(Permission, Permission.id == PositionPermission.permission_id)
            .join(Employee, Employee.position_id == PositionPermission.position_id)
            .where(
                Employee.id == employee_id,
                Employee.is_active.is_(True),
                Permission.key == capability,
            )
            .limit(1)
        )
        return result.first() is not None


# ── Capability predicate ────────────────────────────────────────────
async def has_capability(lookup: PermissionLookup, caller: Caller, capability: str) -> bool:
    """Fail-closed capability check: lookup errors count as denial."""
    try:
        return bool(await lookup.has_capability(caller.employee_id, capability))
    except Exception:
        logger.warning(
            "Permission lookup failed for employee=%s capability=%s",
            caller.employee_id,
            capability,
            exc_info=True,
        )
        return False


async def require_capability(lookup: PermissionLookup, caller: Caller, capability: str) -> None:
    if not await has_capability(lookup, caller, capability):
        raise Forbidden(f"employee {caller.employee_id} lacks capability {capability!r}")


async def require_any_capability(
    lookup: PermissionLookup, caller: Caller, *capabilities: str
) -> None:
    for capability in capabilities:
        if await has_capability(lookup, caller, capability):
            return
    raise Forbidden(f"employee {caller.employee_id} lacks all of {capabilities!r}")


# ── Confidentiality predicate ───────────────────────────────────────
def _normalise(position: str | None) -> str:
    return (position or "").strip().lower()


def _sensitive_positions() -> set[str]:
    return {_normalise(p) for p in settings.CONFIDENTIAL_POSITIONS}


def is_sensitive_position(position: str | None) -> bool:
    return _normalise(position) in _sensitive_positions()


def can_view_confidential(caller: Caller) -> bool:
    return _normalise(caller.position) in {
        _normalise(p) for p in settings.CONFIDENTIAL_VIEWER_POSITIONS
    }


def is_visible(originator_position: str | None, caller: Caller) -> bool:
    """Whether a reviewer may see a record originated by *originator_position*."""
    if not is_sensitive_position(originator_position):
        return True
    return can_view_confidential(caller)


def require_visible(originator_position: str | None, caller: Caller) -> None:
    if not is_visible(originator_position, caller):
        raise Forbidden(
            f"employee {caller.employee_id} may not view records originated by "
            f"position {originator_position!r}"
        )


def visibility_clause(caller: Caller, originator_column) -> ColumnElement[bool] | None:
    """SQL filter hiding records from sensitive originators.

    Returns ``None`` when the caller may see everything.
    """
    if can_view_confidential(caller):
        return None
    sensitive_ids = (
        select(Employee.id)
        .join(Position, Position.id == Employee.position_id)
        .where(func.lower(Position.name).in_(sorted(_sensitive_positions())))
    )
    return originator_column.not_in(sensitive_ids)


async def originator_position(db: AsyncSession, employee_id: int) -> str | None:
    result = await db.execute(
        select(Position.name)
        .join(Employee, Employee.position_id == Position.id)
        .where(Employee.id == employee_id)
    )
    return result.scalar_one_or_none()
