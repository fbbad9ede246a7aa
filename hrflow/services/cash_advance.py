"""
Cash-advance workflow.

A single ``status`` (pending → approved / rejected) moves with the
per-level sub-fields.  Reviewer and admin operations check the
capability first and the confidentiality rule second.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrflow.core.clock import Clock, system_clock
from hrflow.core.config import settings
from hrflow.core.exceptions import Forbidden, InvalidTransition, NotFound, ValidationError
from hrflow.db.session import atomic, fetch_page
from hrflow.models.cash_advance import CashAdvance
from hrflow.models.enums import CashAdvanceType, Decision, ReviewStatus
from hrflow.services.authorization import (Caller, Capability, PermissionLookup,
                                           originator_position, require_any_capability,
                                           require_capability, require_visible,
                                           visibility_clause)
from hrflow.services.review import (apply_decision, clear_review_bookkeeping,
                                   ensure_status_pending, override_status, settle)

logger = logging.getLogger(__name__)

_LEVEL_CAPABILITY = {
    1: Capability.APPROVE_CASH_ADVANCE_LEVEL1,
    2: Capability.APPROVE_CASH_ADVANCE_LEVEL2,
}
_REVIEWER_CAPABILITIES = (
    Capability.MANAGE_CASH_FLOW,
    Capability.APPROVE_CASH_ADVANCE_LEVEL1,
    Capability.APPROVE_CASH_ADVANCE_LEVEL2,
)


def _positive_amount(amount: Decimal) -> Decimal:
    amount = Decimal(str(amount))
    if amount <= 0:
        raise ValidationError("Amount must be greater than zero")
    return amount


def _advance_type(value: CashAdvanceType | str) -> str:
    try:
        return CashAdvanceType(value).value
    except ValueError:
        raise ValidationError("Type must be 'personal' or 'support'") from None


class CashAdvanceWorkflow:
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
    async def _get(self, advance_id: int, *, for_update: bool = False) -> CashAdvance:
        stmt = select(CashAdvance).where(
            CashAdvance.id == advance_id,
            CashAdvance.deleted_at.is_(None),
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        advance = (await self.db.execute(stmt)).scalar_one_or_none()
        if advance is None:
            raise NotFound(f"Cash advance {advance_id} not found")
        return advance

    async def _require_visible(self, caller: Caller, advance: CashAdvance) -> None:
        require_visible(await originator_position(self.db, advance.employee_id), caller)

    async def get(self, caller: Caller, advance_id: int) -> CashAdvance:
        advance = await self._get(advance_id)
        if advance.employee_id != caller.employee_id:
            await require_any_capability(self.permissions, caller, *_REVIEWER_CAPABILITIES)
            await self._require_visible(caller, advance)
        return advance

    async def list_mine(self, caller: Caller) -> list[CashAdvance]:
        result = await self.db.execute(
            select(CashAdvance)
            .where(
                CashAdvance.employee_id == caller.employee_id,
                CashAdvance.deleted_at.is_(None),
            )
            .order_by(CashAdvance.created_at.desc(), CashAdvance.id.desc())
        )
        return list(result.scalars().all())

    async def _listing(
        self,
        caller: Caller,
        status: ReviewStatus | None,
        advance_type: CashAdvanceType | None,
    ) -> Select:
        await require_any_capability(self.permissions, caller, *_REVIEWER_CAPABILITIES)
        stmt = (
            select(CashAdvance)
            .where(CashAdvance.deleted_at.is_(None))
            .order_by(CashAdvance.created_at.desc(), CashAdvance.id.desc())
        )
        hidden = visibility_clause(caller, CashAdvance.employee_id)
        if hidden is not None:
            stmt = stmt.where(hidden)
        if status is not None:
            stmt = stmt.where(CashAdvance.status == ReviewStatus(status).value)
        if advance_type is not None:
            stmt = stmt.where(CashAdvance.type == _advance_type(advance_type))
        return stmt

    async def list_all(
        self,
        caller: Caller,
        status: ReviewStatus | None = None,
        advance_type: CashAdvanceType | None = None,
    ) -> list[CashAdvance]:
        stmt = await self._listing(caller, status, advance_type)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_page(
        self,
        caller: Caller,
        status: ReviewStatus | None = None,
        advance_type: CashAdvanceType | None = None,
        *,
        page: int = 1,
        limit: int = settings.DEFAULT_PAGE_SIZE,
    ) -> tuple[list[CashAdvance], int]:
        stmt = await self._listing(caller, status, advance_type)
        return await fetch_page(self.db, stmt, page, limit)

    # ── Transitions ─────────────────────────────────────────────────
    async def submit(
        self,
        caller: Caller,
        advance_type: CashAdvanceType | str,
        amount: Decimal,
        request_date: date,
        purpose: str | None = None,
    ) -> CashAdvance:
        advance_type = _advance_type(advance_type)
        amount = _positive_amount(amount)
        if request_date is None:
            raise ValidationError("Date is required")

        async with atomic(self.db):
            advance = CashAdvance(
                employee_id=caller.employee_id,
                type=advance_type,
                amount=amount,
                request_date=request_date,
                purpose=purpose,
                status=ReviewStatus.PENDING.value,
                created_at=self.clock.now(),
            )
            clear_review_bookkeeping(advance)
            self.db.add(advance)

        logger.info(
            "Cash advance %s submitted by employee=%s type=%s amount=%s",
            advance.id, caller.employee_id, advance_type, amount,
        )
        return advance

    async def review_level(
        self,
        caller: Caller,
        advance_id: int,
        level: int,
        decision: Decision | str,
        comment: str | None = None,
    ) -> CashAdvance:
        if level not in _LEVEL_CAPABILITY:
            raise ValidationError("Review level must be 1 or 2")
        await require_capability(self.permissions, caller, _LEVEL_CAPABILITY[level])
        decision = Decision(decision)

        async with atomic(self.db):
            advance = await self._get(advance_id, for_update=True)
            await self._require_visible(caller, advance)
            ensure_status_pending(advance)
            now = self.clock.now()
            final = apply_decision(advance, level, decision, caller.employee_id, now, comment)
            settle(advance, final, caller.employee_id, now, comment)

        logger.info(
            "Cash advance %s level%s %s by employee=%s; status=%s",
            advance.id, level, decision.value, caller.employee_id, advance.status,
        )
        return advance

    async def edit_own(
        self,
        caller: Caller,
        advance_id: int,
        *,
        advance_type: CashAdvanceType | str | None = None,
        amount: Decimal | None = None,
        request_date: date | None = None,
        purpose: str | None = None,
    ) -> CashAdvance:
        async with atomic(self.db):
            advance = await self._get(advance_id, for_update=True)
            if advance.employee_id != caller.employee_id:
                raise Forbidden(f"employee {caller.employee_id} does not own cash advance {advance_id}")
            if (
                advance.status != ReviewStatus.PENDING.value
                or advance.level1_status != ReviewStatus.PENDING.value
            ):
                raise InvalidTransition("Only pending, unreviewed cash advances can be edited")
            self._apply_fields(advance, advance_type, amount, request_date, purpose)

        logger.info("Cash advance %s edited by owner employee=%s", advance.id, caller.employee_id)
        return advance

    async def admin_edit(
        self,
        caller: Caller,
        advance_id: int,
        *,
        advance_type: CashAdvanceType | str | None = None,
        amount: Decimal | None = None,
        request_date: date | None = None,
        purpose: str | None = None,
        status: ReviewStatus | str | None = None,
    ) -> CashAdvance:
        await require_capability(self.permissions, caller, Capability.MANAGE_CASH_FLOW)

        async with atomic(self.db):
            advance = await self._get(advance_id, for_update=True)
            await self._require_visible(caller, advance)
            self._apply_fields(advance, advance_type, amount, request_date, purpose)
            if status is not None:
                override_status(advance, status, caller.employee_id, self.clock.now())

        logger.info(
            "Cash advance %s edited by admin employee=%s; status=%s",
            advance.id, caller.employee_id, advance.status,
        )
        return advance

    async def delete(self, caller: Caller, advance_id: int) -> None:
        await require_capability(self.permissions, caller, Capability.MANAGE_CASH_FLOW)

        async with atomic(self.db):
            advance = await self._get(advance_id, for_update=True)
            await self._require_visible(caller, advance)
            advance.deleted_at = self.clock.now()
            advance.deleted_by = caller.employee_id

        logger.info("Cash advance %s deleted by employee=%s", advance_id, caller.employee_id)

    @staticmethod
    def _apply_fields(
        advance: CashAdvance,
        advance_type: CashAdvanceType | str | None,
        amount: Decimal | None,
        request_date: date | None,
        purpose: str | None,
    ) -> None:
        if advance_type is not None:
            advance.type = _advance_type(advance_type)
        if amount is not None:
            advance.amount = _positive_amount(amount)
        if request_date is not None:
            advance.request_date = request_date
        if purpose is not None:
            advance.purpose = purpose
