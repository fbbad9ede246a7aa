"""
Liquidation endpoints: filing, review, edits and receipt attachments.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, Query, Response, UploadFile, status

from hrflow.api.v1.deps import get_caller, get_liquidation_workflow
from hrflow.core.config import settings
from hrflow.models.enums import ReviewStatus
from hrflow.schemas.common import Pagination
from hrflow.schemas.liquidation import (AttachmentRead, LiquidationAdminEdit, LiquidationEditOwn,
                                        LiquidationPage, LiquidationRead, LiquidationSubmit)
from hrflow.schemas.review import LevelReview
from hrflow.services.authorization import Caller
from hrflow.services.liquidation import LiquidationWorkflow

router = APIRouter(prefix="/liquidations", tags=["liquidations"])


@router.post("", response_model=LiquidationRead, status_code=status.HTTP_201_CREATED)
async def file_liquidation(
    body: LiquidationSubmit,
    caller: Caller = Depends(get_caller),
    workflow: LiquidationWorkflow = Depends(get_liquidation_workflow),
):
    return await workflow.submit(
        caller, body.cash_advance_id, body.liquidation_date, body.items, body.remarks
    )


@router.get("/mine", response_model=list[LiquidationRead])
async def my_liquidations(
    caller: Caller = Depends(get_caller),
    workflow: LiquidationWorkflow = Depends(get_liquidation_workflow),
):
    return await workflow.list_mine(caller)


@router.get("", response_model=LiquidationPage)
async def all_liquidations(
    status: ReviewStatus | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    caller: Caller = Depends(get_caller),
    workflow: LiquidationWorkflow = Depends(get_liquidation_workflow),
):
    liquidations, total = await workflow.list_page(caller, status, page=page, limit=limit)
    return LiquidationPage(
        data=[LiquidationRead.model_validate(x) for x in liquidations],
        pagination=Pagination.build(total, page, limit),
    )


@router.get("/attachments/{attachment_id}")
async def download_attachment(
    attachment_id: int,
    caller: Caller = Depends(get_caller),
    workflow: LiquidationWorkflow = Depends(get_liquidation_workflow),
) -> Response:
    attachment, data = await workflow.get_attachment(caller, attachment_id)
    return Response(
        content=data,
        media_type=attachment.content_type or "application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{attachment.file_name}"'},
    )


@router.get("/{liquidation_id}", response_model=LiquidationRead)
async def get_liquidation(
    liquidation_id: int,
    caller: Caller = Depends(get_caller),
    workflow: LiquidationWorkflow = Depends(get_liquidation_workflow),
):
    return await workflow.get(caller, liquidation_id)


@router.post("/{liquidation_id}/review", response_model=LiquidationRead)
async def review_liquidation(
    liquidation_id: int,
    body: LevelReview,
    caller: Caller = Depends(get_caller),
    workflow: LiquidationWorkflow = Depends(get_liquidation_workflow),
):
    return await workflow.review_level(
        caller, liquidation_id, body.level, body.decision, body.comment
    )


@router.put("/{liquidation_id}/own", response_model=LiquidationRead)
async def edit_own_liquidation(
    liquidation_id: int,
    body: LiquidationEditOwn,
    caller: Caller = Depends(get_caller),
    workflow: LiquidationWorkflow = Depends(get_liquidation_workflow),
):
    return await workflow.edit_own(
        caller,
        liquidation_id,
        liquidation_date=body.liquidation_date,
        remarks=body.remarks,
        items=body.items,
        attachments_to_remove=body.attachments_to_remove,
    )


@router.put("/{liquidation_id}", response_model=LiquidationRead)
async def admin_edit_liquidation(
    liquidation_id: int,
    body: LiquidationAdminEdit,
    caller: Caller = Depends(get_caller),
    workflow: LiquidationWorkflow = Depends(get_liquidation_workflow),
):
    return await workflow.admin_edit(
        caller,
        liquidation_id,
        liquidation_date=body.liquidation_date,
        remarks=body.remarks,
        items=body.items,
        status=body.status,
    )


@router.delete("/{liquidation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_liquidation(
    liquidation_id: int,
    caller: Caller = Depends(get_caller),
    workflow: LiquidationWorkflow = Depends(get_liquidation_workflow),
) -> Response:
    await workflow.delete(caller, liquidation_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{liquidation_id}/attachments",
    response_model=AttachmentRead,
    status_code=status.HTTP_201_CREATED,
)
async def upload_attachment(
    liquidation_id: int,
    file: UploadFile = File(...),
    caller: Caller = Depends(get_caller),
    workflow: LiquidationWorkflow = Depends(get_liquidation_workflow),
):
    data = await file.read()
    return await workflow.upload_attachment(
        caller, liquidation_id, file.filename or "receipt", data, file.content_type
    )
