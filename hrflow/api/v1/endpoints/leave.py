"""
Leave endpoints: requests, review, revocation and the credit balance.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from hrflow.api.v1.deps import get_caller, get_leave_workflow
from hrflow.models.employee import Employee
from hrflow.models.enums import LeaveStatus
from hrflow.schemas.employee import LeaveBalanceRead, LeaveBalanceUpdate, LeaveCreditEntryRead
from hrflow.schemas.leave import LeaveRequestRead, LeaveReview, LeaveRevoke, LeaveSubmit
from hrflow.services.authorization import Caller
from hrflow.services.leave import LeaveWorkflow

router = APIRouter(prefix="/leave", tags=["leave"])


def _balance(employee: Employee) -> LeaveBalanceRead:
    return LeaveBalanceRead(
        employee_id=employee.id,
        leave_credits=employee.leave_credits,
        reserved_credits=employee.reserved_credits,
        available_credits=employee.available_credits,
    )


# ── Requests ────────────────────────────────────────────────────────
@router.post("/requests", response_model=LeaveRequestRead, status_code=status.HTTP_201_CREATED)
async def submit_leave(
    body: LeaveSubmit,
    caller: Caller = Depends(get_caller),
    workflow: LeaveWorkflow = Depends(get_leave_workflow),
):
    return await workflow.submit(
        caller, caller.employee_id, body.leave_type, body.start_date, body.end_date, body.reason
    )


@router.get("/requests/mine", response_model=list[LeaveRequestRead])
async def my_leave_requests(
    caller: Caller = Depends(get_caller),
    workflow: LeaveWorkflow = Depends(get_leave_workflow),
):
    return await workflow.list_mine(caller)


@router.get("/requests", response_model=list[LeaveRequestRead])
async def all_leave_requests(
    status: LeaveStatus | None = None,
    caller: Caller = Depends(get_caller),
    workflow: LeaveWorkflow = Depends(get_leave_workflow),
):
    return await workflow.list_all(caller, status)


@router.get("/requests/{request_id}", response_model=LeaveRequestRead)
async def get_leave_request(
    request_id: int,
    caller: Caller = Depends(get_caller),
    workflow: LeaveWorkflow = Depends(get_leave_workflow),
):
    return await workflow.get(caller, request_id)


@router.post("/requests/{request_id}/review", response_model=LeaveRequestRead)
async def review_leave(
    request_id: int,
    body: LeaveReview,
    caller: Caller = Depends(get_caller),
    workflow: LeaveWorkflow = Depends(get_leave_workflow),
):
    return await workflow.review(caller, request_id, body.decision, body.comment)


@router.post("/requests/{request_id}/revoke", response_model=LeaveRequestRead)
async def revoke_leave(
    request_id: int,
    body: LeaveRevoke | None = None,
    caller: Caller = Depends(get_caller),
    workflow: LeaveWorkflow = Depends(get_leave_workflow),
):
    return await workflow.revoke(caller, request_id, body.comment if body else None)


# ── Balance ─────────────────────────────────────────────────────────
@router.get("/balance", response_model=LeaveBalanceRead)
async def my_balance(
    caller: Caller = Depends(get_caller),
    workflow: LeaveWorkflow = Depends(get_leave_workflow),
) -> LeaveBalanceRead:
    return _balance(await workflow.balance(caller, caller.employee_id))


@router.get("/balance/{employee_id}", response_model=LeaveBalanceRead)
async def employee_balance(
    employee_id: int,
    caller: Caller = Depends(get_caller),
    workflow: LeaveWorkflow = Depends(get_leave_workflow),
) -> LeaveBalanceRead:
    return _balance(await workflow.balance(caller, employee_id))


@router.put("/balance/{employee_id}", response_model=LeaveBalanceRead)
async def set_employee_balance(
    employee_id: int,
    body: LeaveBalanceUpdate,
    caller: Caller = Depends(get_caller),
    workflow: LeaveWorkflow = Depends(get_leave_workflow),
) -> LeaveBalanceRead:
    return _balance(await workflow.set_balance(caller, employee_id, body.leave_credits))


@router.get("/balance/{employee_id}/history", response_model=list[LeaveCreditEntryRead])
async def balance_history(
    employee_id: int,
    caller: Caller = Depends(get_caller),
    workflow: LeaveWorkflow = Depends(get_leave_workflow),
):
    return await workflow.credit_history(caller, employee_id)
