"""
Overtime endpoints: filing, two-level review, owner edit/delete.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from hrflow.api.v1.deps import get_caller, get_overtime_workflow
from hrflow.models.enums import ReviewStatus
from hrflow.schemas.overtime import OvertimeEdit, OvertimeRead, OvertimeSubmit
from hrflow.schemas.review import LevelReview
from hrflow.services.authorization import Caller
from hrflow.services.overtime import OvertimeWorkflow

router = APIRouter(prefix="/overtime", tags=["overtime"])


@router.post("/requests", response_model=OvertimeRead, status_code=status.HTTP_201_CREATED)
async def submit_overtime(
    body: OvertimeSubmit,
    caller: Caller = Depends(get_caller),
    workflow: OvertimeWorkflow = Depends(get_overtime_workflow),
):
    return await workflow.submit(
        caller, body.start_time, body.end_time, body.reason, request_date=body.request_date
    )


@router.get("/requests/mine", response_model=list[OvertimeRead])
async def my_overtime(
    caller: Caller = Depends(get_caller),
    workflow: OvertimeWorkflow = Depends(get_overtime_workflow),
):
    return await workflow.list_mine(caller)


@router.get("/requests", response_model=list[OvertimeRead])
async def all_overtime(
    status: ReviewStatus | None = None,
    caller: Caller = Depends(get_caller),
    workflow: OvertimeWorkflow = Depends(get_overtime_workflow),
):
    return await workflow.list_all(caller, status)


@router.get("/requests/{request_id}", response_model=OvertimeRead)
async def get_overtime(
    request_id: int,
    caller: Caller = Depends(get_caller),
    workflow: OvertimeWorkflow = Depends(get_overtime_workflow),
):
    return await workflow.get(caller, request_id)


@router.post("/requests/{request_id}/review", response_model=OvertimeRead)
async def review_overtime(
    request_id: int,
    body: LevelReview,
    caller: Caller = Depends(get_caller),
    workflow: OvertimeWorkflow = Depends(get_overtime_workflow),
):
    return await workflow.review_level(caller, request_id, body.level, body.decision, body.comment)


@router.put("/requests/{request_id}", response_model=OvertimeRead)
async def edit_overtime(
    request_id: int,
    body: OvertimeEdit,
    caller: Caller = Depends(get_caller),
    workflow: OvertimeWorkflow = Depends(get_overtime_workflow),
):
    return await workflow.edit(
        caller, request_id, body.start_time, body.end_time, body.reason,
        request_date=body.request_date,
    )


@router.delete("/requests/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_overtime(
    request_id: int,
    caller: Caller = Depends(get_caller),
    workflow: OvertimeWorkflow = Depends(get_overtime_workflow),
) -> Response:
    await workflow.delete(caller, request_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
