"""
Liquidation workflow: reconcile an approved support cash advance.

The reconciliation is recomputed whenever the expense lines change:

    total             = Σ item totals
    return_to_company = max(advance − total, 0)
    reimbursement     = max(total − advance, 0)

Editing replaces the whole item list.  Removing an attachment deletes
the blob first, then its metadata row.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
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
from hrflow.models.liquidation import Liquidation, LiquidationAttachment, LiquidationItem
from hrflow.schemas.liquidation import LiquidationItemInput
from hrflow.services.authorization import (Caller, Capability, PermissionLookup,
                                           originator_position, require_any_capability,
                                           require_capability, require_visible,
                                           visibility_clause)
from hrflow.services.blob_store import BlobStore, safe_file_name
from hrflow.services.review import (apply_decision, clear_review_bookkeeping,
                                   ensure_status_pending, override_status, settle)

logger = logging.getLogger(__name__)

CATEGORY_FIELDS = ("jeep", "bus", "fx_van", "gas", "toll", "meals", "lodging", "others")
_ZERO = Decimal("0")
_CENT = Decimal("0.01")

_LEVEL_CAPABILITY = {
    1: Capability.APPROVE_LIQUIDATIONS_LEVEL1,
    2: Capability.APPROVE_LIQUIDATIONS_LEVEL2,
}
_REVIEWER_CAPABILITIES = (
    Capability.MANAGE_LIQUIDATION,
    Capability.APPROVE_LIQUIDATIONS_LEVEL1,
    Capability.APPROVE_LIQUIDATIONS_LEVEL2,
)


# ── Reconciliation ──────────────────────────────────────────────────
@dataclass(frozen=True)
class Reconciliation:
    total: Decimal
    return_to_company: Decimal
    reimbursement: Decimal


def item_total(item) -> Decimal:
    return sum((Decimal(str(getattr(item, f) or 0)) for f in CATEGORY_FIELDS), _ZERO).quantize(_CENT)


def reconcile(advance_amount: Decimal, totals: Iterable[Decimal]) -> Reconciliation:
    advance_amount = Decimal(str(advance_amount))
    total = sum((Decimal(str(t)) for t in totals), _ZERO).quantize(_CENT)
    return Reconciliation(
        total=total,
        return_to_company=max(advance_amount - total, _ZERO).quantize(_CENT),
        reimbursement=max(total - advance_amount, _ZERO).quantize(_CENT),
    )


def build_items(items: list[LiquidationItemInput]) -> list[LiquidationItem]:
    if not items:
        raise ValidationError("At least one expense item is required")
    rows = []
    for item in items:
        row = LiquidationItem(
            from_destination=item.from_destination or "",
            to_destination=item.to_destination or "",
            remarks=item.remarks or "",
            **{f: Decimal(str(getattr(item, f) or 0)) for f in CATEGORY_FIELDS},
        )
        row.total = item_total(row)
        rows.append(row)
    return rows


def apply_reconciliation(liquidation: Liquidation, advance_amount: Decimal) -> Reconciliation:
    result = reconcile(advance_amount, (item.total for item in liquidation.items))
    liquidation.total_amount = result.total
    liquidation.return_to_company = result.return_to_company
    liquidation.reimbursement = result.reimbursement
    return result


class LiquidationWorkflow:
    def __init__(
        self,
        db: AsyncSession,
        permissions: PermissionLookup,
        blobs: BlobStore,
        clock: Clock = system_clock,
    ) -> None:
        self.db = db
        self.permissions = permissions
        self.blobs = blobs
        self.clock = clock

    # ── Queries ─────────────────────────────────────────────────────
    async def _get(self, liquidation_id: int, *, for_update: bool = False) -> Liquidation:
        stmt = select(Liquidation).where(
            Liquidation.id == liquidation_id,
            Liquidation.deleted_at.is_(None),
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        liquidation = (await self.db.execute(stmt)).scalar_one_or_none()
        if liquidation is None:
            raise NotFound(f"Liquidation {liquidation_id} not found")
        return liquidation

    async def _require_visible(self, caller: Caller, liquidation: Liquidation) -> None:
        require_visible(await originator_position(self.db, liquidation.employee_id), caller)

    async def _require_reader(self, caller: Caller, liquidation: Liquidation) -> None:
        if liquidation.employee_id == caller.employee_id:
            return
        await require_any_capability(self.permissions, caller, *_REVIEWER_CAPABILITIES)
        await self._require_visible(caller, liquidation)

    async def get(self, caller: Caller, liquidation_id: int) -> Liquidation:
        liquidation = await self._get(liquidation_id)
        await self._require_reader(caller, liquidation)
        return liquidation

    async def list_mine(self, caller: Caller) -> list[Liquidation]:
        result = await self.db.execute(
            select(Liquidation)
            .where(
                Liquidation.employee_id == caller.employee_id,
                Liquidation.deleted_at.is_(None),
            )
            .order_by(Liquidation.created_at.desc(), Liquidation.id.desc())
        )
        return list(result.scalars().all())

    async def _listing(self, caller: Caller, status: ReviewStatus | None) -> Select:
        await require_any_capability(self.permissions, caller, *_REVIEWER_CAPABILITIES)
        stmt = (
            select(Liquidation)
            .where(Liquidation.deleted_at.is_(None))
            .order_by(Liquidation.created_at.desc(), Liquidation.id.desc())
        )
        hidden = visibility_clause(caller, Liquidation.employee_id)
        if hidden is not None:
            stmt = stmt.where(hidden)
        if status is not None:
            stmt = stmt.where(Liquidation.status == ReviewStatus(status).value)
        return stmt

    async def list_all(self, caller: Caller, status: ReviewStatus | None = None) -> list[Liquidation]:
        result = await self.db.execute(await self._listing(caller, status))
        return list(result.scalars().all())

    async def list_page(
        self,
        caller: Caller,
        status: ReviewStatus | None = None,
        *,
        page: int = 1,
        limit: int = settings.DEFAULT_PAGE_SIZE,
    ) -> tuple[list[Liquidation], int]:
        return await fetch_page(self.db, await self._listing(caller, status), page, limit)

    # ── Transitions ─────────────────────────────────────────────────
    async def submit(
        self,
        caller: Caller,
        cash_advance_id: int,
        liquidation_date: date,
        items: list[LiquidationItemInput],
        remarks: str | None = None,
    ) -> Liquidation:
        rows = build_items(items)

        async with atomic(self.db):
            # Locking the advance serialises concurrent filings against it.
            advance = (
                await self.db.execute(
                    select(CashAdvance)
                    .where(
                        CashAdvance.id == cash_advance_id,
                        CashAdvance.deleted_at.is_(None),
                    )
                    .with_for_update()
                    .execution_options(populate_existing=True)
                )
            ).scalar_one_or_none()
            if (
                advance is None
                or advance.employee_id != caller.employee_id
                or advance.status != ReviewStatus.APPROVED.value
                or advance.type != CashAdvanceType.SUPPORT.value
            ):
                raise ValidationError("Invalid cash advance. Must be an approved support cash advance.")

            existing = await self.db.execute(
                select(Liquidation.id)
                .where(
                    Liquidation.cash_advance_id == cash_advance_id,
                    Liquidation.deleted_at.is_(None),
                )
                .limit(1)
            )
            if existing.first() is not None:
                raise ValidationError("A liquidation already exists for this cash advance.")

            liquidation = Liquidation(
                employee_id=caller.employee_id,
                cash_advance_id=cash_advance_id,
                liquidation_date=liquidation_date,
                remarks=remarks,
                status=ReviewStatus.PENDING.value,
                created_at=self.clock.now(),
                items=rows,
                attachments=[],
            )
            clear_review_bookkeeping(liquidation)
            apply_reconciliation(liquidation, advance.amount)
            self.db.add(liquidation)

        logger.info(
            "Liquidation %s filed by employee=%s against cash advance %s; total=%s",
            liquidation.id, caller.employee_id, cash_advance_id, liquidation.total_amount,
        )
        return liquidation

    async def review_level(
        self,
        caller: Caller,
        liquidation_id: int,
        level: int,
        decision: Decision | str,
        comment: str | None = None,
    ) -> Liquidation:
        if level not in _LEVEL_CAPABILITY:
            raise ValidationError("Review level must be 1 or 2")
        await require_capability(self.permissions, caller, _LEVEL_CAPABILITY[level])
        decision = Decision(decision)

        async with atomic(self.db):
            liquidation = await self._get(liquidation_id, for_update=True)
            await self._require_visible(caller, liquidation)
            ensure_status_pending(liquidation)
            now = self.clock.now()
            final = apply_decision(liquidation, level, decision, caller.employee_id, now, comment)
            settle(liquidation, final, caller.employee_id, now, comment)

        logger.info(
            "Liquidation %s level%s %s by employee=%s; status=%s",
            liquidation.id, level, decision.value, caller.employee_id, liquidation.status,
        )
        return liquidation

    async def _get_owned_editable(self, caller: Caller, liquidation_id: int) -> Liquidation:
        liquidation = await self._get(liquidation_id, for_update=True)
        if liquidation.employee_id != caller.employee_id:
            raise Forbidden(f"employee {caller.employee_id} does not own liquidation {liquidation_id}")
        if (
            liquidation.status != ReviewStatus.PENDING.value
            or liquidation.level1_status != ReviewStatus.PENDING.value
        ):
            raise InvalidTransition("Only pending, unreviewed liquidations can be changed")
        return liquidation

    async def edit_own(
        self,
        caller: Caller,
        liquidation_id: int,
        *,
        liquidation_date: date | None = None,
        remarks: str | None = None,
        items: list[LiquidationItemInput] | None = None,
        attachments_to_remove: list[int] | None = None,
    ) -> Liquidation:
        async with atomic(self.db):
            liquidation = await self._get_owned_editable(caller, liquidation_id)
            self._apply_fields(liquidation, liquidation_date, remarks, items)
            if attachments_to_remove:
                await self._remove_attachments(liquidation, attachments_to_remove)

        logger.info(
            "Liquidation %s edited by owner employee=%s; total=%s",
            liquidation.id, caller.employee_id, liquidation.total_amount,
        )
        return liquidation

    async def admin_edit(
        self,
        caller: Caller,
        liquidation_id: int,
        *,
        liquidation_date: date | None = None,
        remarks: str | None = None,
        items: list[LiquidationItemInput] | None = None,
        status: ReviewStatus | str | None = None,
    ) -> Liquidation:
        await require_capability(self.permissions, caller, Capability.MANAGE_LIQUIDATION)

        async with atomic(self.db):
            liquidation = await self._get(liquidation_id, for_update=True)
            await self._require_visible(caller, liquidation)
            if items is not None and liquidation.status != ReviewStatus.PENDING.value:
                raise InvalidTransition("Line items can only be replaced while the liquidation is pending")
            self._apply_fields(liquidation, liquidation_date, remarks, items)
            if status is not None:
                override_status(liquidation, status, caller.employee_id, self.clock.now())

        logger.info(
            "Liquidation %s edited by admin employee=%s; status=%s",
            liquidation.id, caller.employee_id, liquidation.status,
        )
        return liquidation

    async def delete(self, caller: Caller, liquidation_id: int) -> None:
        await require_capability(self.permissions, caller, Capability.MANAGE_LIQUIDATION)

        async with atomic(self.db):
            liquidation = await self._get(liquidation_id, for_update=True)
            await self._require_visible(caller, liquidation)
            liquidation.deleted_at = self.clock.now()
            liquidation.deleted_by = caller.employee_id

        logger.info("Liquidation %s deleted by employee=%s", liquidation_id, caller.employee_id)

    # ── Attachments ─────────────────────────────────────────────────
    async def upload_attachment(
        self,
        caller: Caller,
        liquidation_id: int,
        file_name: str,
        data: bytes,
        content_type: str | None = None,
    ) -> LiquidationAttachment:
        if not data:
            raise ValidationError("Attachment is empty")
        if len(data) > settings.MAX_ATTACHMENT_BYTES:
            raise ValidationError(
                f"Attachment exceeds the {settings.MAX_ATTACHMENT_BYTES} byte limit"
            )
        name = safe_file_name(file_name)
        key = f"liquidations/{liquidation_id}/{uuid.uuid4().hex}-{name}"
        stored = False
        try:
            async with atomic(self.db):
                liquidation = await self._get_owned_editable(caller, liquidation_id)
                await self.blobs.put(key, data, content_type)
                stored = True
                attachment = LiquidationAttachment(
                    blob_key=key,
                    file_name=name,
                    content_type=content_type,
                    size_bytes=len(data),
                    uploaded_by=caller.employee_id,
                    uploaded_at=self.clock.now(),
                )
                liquidation.attachments.append(attachment)
        except Exception:
            if stored:
                await self.blobs.delete(key)
            raise

        logger.info(
            "Attachment %s (%d bytes) added to liquidation %s by employee=%s",
            attachment.id, len(data), liquidation_id, caller.employee_id,
        )
        return attachment

    async def get_attachment(
        self, caller: Caller, attachment_id: int
    ) -> tuple[LiquidationAttachment, bytes]:
        attachment = await self.db.get(LiquidationAttachment, attachment_id)
        if attachment is None:
            raise NotFound(f"Attachment {attachment_id} not found")
        liquidation = await self._get(attachment.liquidation_id)
        await self._require_reader(caller, liquidation)
        return attachment, await self.blobs.get(attachment.blob_key)

    async def _remove_attachments(self, liquidation: Liquidation, attachment_ids: list[int]) -> None:
        by_id = {a.id: a for a in liquidation.attachments}
        unknown = [i for i in attachment_ids if i not in by_id]
        if unknown:
            raise ValidationError(f"Attachments {unknown} do not belong to liquidation {liquidation.id}")
        for attachment_id in dict.fromkeys(attachment_ids):
            attachment = by_id[attachment_id]
            await self.blobs.delete(attachment.blob_key)
            liquidation.attachments.remove(attachment)

    @staticmethod
    def _apply_fields(
        liquidation: Liquidation,
        liquidation_date: date | None,
        remarks: str | None,
        items: list[LiquidationItemInput] | None,
    ) -> None:
        if liquidation_date is not None:
            liquidation.liquidation_date = liquidation_date
        if remarks is not None:
            liquidation.remarks = remarks
        if items is not None:
            liquidation.items = build_items(items)
            apply_reconciliation(liquidation, liquidation.cash_advance.amount)
