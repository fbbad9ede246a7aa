"""Tests for the leave-request workflow and its ledger effects."""

from datetime import date
from decimal import Decimal

import pytest

from hrflow.core.exceptions import (AlreadyReviewed, Forbidden, InsufficientBalance,
                                    InvalidTransition, OverlappingRequest, ValidationError)
from hrflow.models.enums import Decision, LeaveStatus, LeaveType
from hrflow.services.authorization import Capability
from hrflow.services.leave import (DEFAULT_REVOKE_COMMENT, LeaveWorkflow, inclusive_day_count,
                                   ranges_overlap)


@pytest.fixture
def workflow(db, permissions, clock) -> LeaveWorkflow:
    return LeaveWorkflow(db, permissions, clock)


@pytest.fixture
async def approver(make_employee):
    return await make_employee("HR Supervisor", [Capability.APPROVE_LEAVE])


async def _approved(workflow, approver, emp, start, end, leave_type=LeaveType.VACATION):
    request = await workflow.submit(emp, emp.employee_id, leave_type, start, end)
    return await workflow.review(approver, request.id, Decision.APPROVE)


def test_inclusive_day_count():
    assert inclusive_day_count(date(2025, 1, 1), date(2025, 1, 5)) == 5
    assert inclusive_day_count(date(2025, 1, 1), date(2025, 1, 1)) == 1
    with pytest.raises(ValidationError):
        inclusive_day_count(date(2025, 1, 5), date(2025, 1, 1))


def test_ranges_overlap_is_inclusive():
    assert ranges_overlap(date(2025, 1, 1), date(2025, 1, 5), date(2025, 1, 4), date(2025, 1, 10))
    assert ranges_overlap(date(2025, 1, 1), date(2025, 1, 5), date(2025, 1, 5), date(2025, 1, 5))
    assert not ranges_overlap(date(2025, 1, 1), date(2025, 1, 5), date(2025, 1, 6), date(2025, 1, 10))


@pytest.mark.asyncio
async def test_submit_reserves_and_approval_debits(workflow, approver, make_employee):
    emp = await make_employee(credits="10")

    request = await workflow.submit(
        emp, emp.employee_id, LeaveType.VACATION, date(2025, 1, 1), date(2025, 1, 3), "trip"
    )
    assert request.status == LeaveStatus.PENDING.value
    assert request.days == Decimal("3")
    balance = await workflow.balance(emp, emp.employee_id)
    assert balance.leave_credits == Decimal("10")
    assert balance.available_credits == Decimal("7")

    approved = await workflow.review(approver, request.id, Decision.APPROVE, "enjoy")
    assert approved.status == LeaveStatus.APPROVED.value
    assert approved.reviewed_by == approver.employee_id
    balance = await workflow.balance(emp, emp.employee_id)
    assert balance.leave_credits == Decimal("7")
    assert balance.reserved_credits == Decimal("0")


@pytest.mark.asyncio
async def test_rejection_releases_the_hold(workflow, approver, make_employee):
    emp = await make_employee(credits="4")
    request = await workflow.submit(
        emp, emp.employee_id, LeaveType.SICK, date(2025, 2, 3), date(2025, 2, 4)
    )

    rejected = await workflow.review(approver, request.id, Decision.REJECT, "busy week")
    assert rejected.status == LeaveStatus.REJECTED.value
    assert rejected.reviewer_comment == "busy week"
    balance = await workflow.balance(emp, emp.employee_id)
    assert balance.leave_credits == Decimal("4")
    assert balance.available_credits == Decimal("4")


@pytest.mark.asyncio
async def test_second_pending_request_cannot_spend_held_credits(workflow, make_employee):
    emp = await make_employee(credits="5")
    await workflow.submit(emp, emp.employee_id, LeaveType.VACATION, date(2025, 3, 3), date(2025, 3, 6))

    with pytest.raises(InsufficientBalance):
        await workflow.submit(
            emp, emp.employee_id, LeaveType.VACATION, date(2025, 4, 1), date(2025, 4, 2)
        )


@pytest.mark.asyncio
async def test_insufficient_balance_on_submit(workflow, make_employee):
    emp = await make_employee(credits="1")
    with pytest.raises(InsufficientBalance):
        await workflow.submit(
            emp, emp.employee_id, LeaveType.VACATION, date(2025, 1, 1), date(2025, 1, 2)
        )
    assert await workflow.list_mine(emp) == []


@pytest.mark.asyncio
async def test_overlapping_approved_leave_is_rejected(workflow, approver, make_employee):
    emp = await make_employee(credits="30")
    await _approved(workflow, approver, emp, date(2025, 1, 1), date(2025, 1, 5))

    with pytest.raises(OverlappingRequest):
        await workflow.submit(
            emp, emp.employee_id, LeaveType.VACATION, date(2025, 1, 4), date(2025, 1, 10)
        )


@pytest.mark.asyncio
async def test_adjacent_ranges_both_succeed(workflow, approver, make_employee):
    emp = await make_employee(credits="30")
    await _approved(workflow, approver, emp, date(2025, 1, 1), date(2025, 1, 5))
    second = await _approved(workflow, approver, emp, date(2025, 1, 6), date(2025, 1, 10))

    assert second.status == LeaveStatus.APPROVED.value
    balance = await workflow.balance(emp, emp.employee_id)
    assert balance.leave_credits == Decimal("20")


@pytest.mark.asyncio
async def test_approve_then_revoke_restores_balance(workflow, approver, make_employee):
    emp = await make_employee(credits="12")
    approved = await _approved(workflow, approver, emp, date(2025, 5, 5), date(2025, 5, 9))
    assert (await workflow.balance(emp, emp.employee_id)).leave_credits == Decimal("7")

    revoked = await workflow.revoke(approver, approved.id)
    assert revoked.status == LeaveStatus.REVOKED.value
    assert revoked.reviewer_comment == DEFAULT_REVOKE_COMMENT
    assert (await workflow.balance(emp, emp.employee_id)).leave_credits == Decimal("12")


@pytest.mark.asyncio
async def test_only_legal_transitions(workflow, approver, make_employee):
    emp = await make_employee(credits="10")
    request = await workflow.submit(
        emp, emp.employee_id, LeaveType.PERSONAL, date(2025, 6, 2), date(2025, 6, 2)
    )
    request_id = request.id

    with pytest.raises(InvalidTransition):
        await workflow.revoke(approver, request_id)

    await workflow.review(approver, request_id, Decision.REJECT)
    with pytest.raises(AlreadyReviewed):
        await workflow.review(approver, request_id, Decision.APPROVE)
    with pytest.raises(InvalidTransition):
        await workflow.revoke(approver, request_id)

    request = await workflow.get(approver, request_id)
    assert request.status == LeaveStatus.REJECTED.value
    assert (await workflow.balance(emp, emp.employee_id)).leave_credits == Decimal("10")


@pytest.mark.asyncio
async def test_exempt_leave_type_skips_the_ledger(workflow, approver, make_employee):
    emp = await make_employee(credits="0")
    approved = await _approved(
        workflow, approver, emp, date(2025, 7, 1), date(2025, 7, 3), LeaveType.LEAVE_WITHOUT_PAY
    )
    assert approved.status == LeaveStatus.APPROVED.value
    assert approved.credits_reserved == Decimal("0")
    assert (await workflow.balance(emp, emp.employee_id)).leave_credits == Decimal("0")


@pytest.mark.asyncio
async def test_review_requires_capability(workflow, make_employee):
    emp = await make_employee(credits="5")
    peer = await make_employee("Technician")
    request = await workflow.submit(
        emp, emp.employee_id, LeaveType.VACATION, date(2025, 8, 1), date(2025, 8, 1)
    )
    request_id = request.id

    with pytest.raises(Forbidden):
        await workflow.review(peer, request_id, Decision.APPROVE)
    with pytest.raises(Forbidden):
        await workflow.review(emp, request_id, Decision.APPROVE)

    request = await workflow.get(emp, request_id)
    assert request.status == LeaveStatus.PENDING.value


@pytest.mark.asyncio
async def test_cannot_file_for_someone_else(workflow, make_employee):
    emp = await make_employee(credits="5")
    other = await make_employee(credits="5")
    with pytest.raises(Forbidden):
        await workflow.submit(
            emp, other.employee_id, LeaveType.VACATION, date(2025, 8, 1), date(2025, 8, 1)
        )


@pytest.mark.asyncio
async def test_set_balance_requires_manage_capability(workflow, make_employee):
    emp = await make_employee(credits="5")
    admin = await make_employee("HR Manager", [Capability.MANAGE_LEAVE_CREDITS])

    with pytest.raises(Forbidden):
        await workflow.set_balance(emp, emp.employee_id, Decimal("50"))

    employee = await workflow.set_balance(admin, emp.employee_id, Decimal("15"))
    assert employee.leave_credits == Decimal("15")
    history = await workflow.credit_history(admin, emp.employee_id)
    assert history[-1].actor_id == admin.employee_id
