"""
Cash advance endpoints: filing, two-level review, owner and admin edits.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status

from hrflow.api.v1.deps import get_caller, get_cash_advance_workflow
from hrflow.core.config import settings
from hrflow.models.enums import CashAdvanceType, ReviewStatus
from hrflow.schemas.cash_advance import (CashAdvanceAdminEdit, CashAdvanceEditOwn, CashAdvancePage,
                                         CashAdvanceRead, CashAdvanceSubmit)
from hrflow.schemas.common import Pagination
from hrflow.schemas.review import LevelReview
from hrflow.services.authorization import Caller
from hrflow.services.cash_advance import CashAdvanceWorkflow

router = APIRouter(prefix="/cash-advances", tags=["cash-advances"])


@router.post("", response_model=CashAdvanceRead, status_code=status.HTTP_201_CREATED)
async def submit_cash_advance(
    body: CashAdvanceSubmit,
    caller: Caller = Depends(get_caller),
    workflow: CashAdvanceWorkflow = Depends(get_cash_advance_workflow),
):
    return await workflow.submit(caller, body.type, body.amount, body.request_date, body.purpose)


@router.get("/mine", response_model=list[CashAdvanceRead])
async def my_cash_advances(
    caller: Caller = Depends(get_caller),
    workflow: CashAdvanceWorkflow = Depends(get_cash_advance_workflow),
):
    return await workflow.list_mine(caller)


@router.get("", response_model=CashAdvancePage)
async def all_cash_advances(
    status: ReviewStatus | None = None,
    advance_type: CashAdvanceType | None = Query(default=None, alias="type"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    caller: Caller = Depends(get_caller),
    workflow: CashAdvanceWorkflow = Depends(get_cash_advance_workflow),
):
    advances, total = await workflow.list_page(
        caller, status, advance_type, page=page, limit=limit
    )
    return CashAdvancePage(
        data=[CashAdvanceRead.model_validate(a) for a in advances],
        pagination=Pagination.build(total, page, limit),
    )


@router.get("/{advance_id}", response_model=CashAdvanceRead)
async def get_cash_advance(
    advance_id: int,
    caller: Caller = Depends(get_caller),
    workflow: CashAdvanceWorkflow = Depends(get_cash_advance_workflow),
):
    return await workflow.get(caller, advance_id)


@router.post("/{advance_id}/review", response_model=CashAdvanceRead)
async def review_cash_advance(
    advance_id: int,
    body: LevelReview,
    caller: Caller = Depends(get_caller),
    workflow: CashAdvanceWorkflow = Depends(get_cash_advance_workflow),
):
    return await workflow.review_level(caller, advance_id, body.level, body.decision, body.comment)


@router.put("/{advance_id}/own", response_model=CashAdvanceRead)
async def edit_own_cash_advance(
    advance_id: int,
    body: CashAdvanceEditOwn,
    caller: Caller = Depends(get_caller),
    workflow: CashAdvanceWorkflow = Depends(get_cash_advance_workflow),
):
    return await workflow.edit_own(
        caller,
        advance_id,
        advance_type=body.type,
        amount=body.amount,
        request_date=body.request_date,
        purpose=body.purpose,
    )


@router.put("/{advance_id}", response_model=CashAdvanceRead)
async def admin_edit_cash_advance(
    advance_id: int,
    body: CashAdvanceAdminEdit,
    caller: Caller = Depends(get_caller),
    workflow: CashAdvanceWorkflow = Depends(get_cash_advance_workflow),
):
    return await workflow.admin_edit(
        caller,
        advance_id,
        advance_type=body.type,
        amount=body.amount,
        request_date=body.request_date,
        purpose=body.purpose,
        status=body.status,
    )


@router.delete("/{advance_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_cash_advance(
    advance_id: int,
    caller: Caller = Depends(get_caller),
    workflow: CashAdvanceWorkflow = Depends(get_cash_advance_workflow),
) -> Response:
    await workflow.delete(caller, advance_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
