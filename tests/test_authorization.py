"""Tests for capability checks, the confidentiality rule and review-state helpers."""

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from hrflow.core.exceptions import AlreadyReviewed, Forbidden, InvalidTransition
from hrflow.models.enums import Decision, ReviewStatus
from hrflow.services.authorization import (Caller, Capability, has_capability, is_visible,
                                           require_any_capability, require_capability,
                                           require_visible)
from hrflow.services.review import (apply_decision, clear_review_bookkeeping,
                                    derive_final_status, override_status)

NOW = datetime(2024, 3, 4, 1, 0, tzinfo=timezone.utc)


class BrokenLookup:
    async def has_capability(self, employee_id: int, capability: str) -> bool:
        raise ConnectionError("permission store down")


def _two_level_record():
    record = SimpleNamespace(status="pending", approved_by=None, approved_at=None, rejection_reason=None)
    clear_review_bookkeeping(record)
    return record


# ── Capabilities ────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_capability_granted_through_position(permissions, make_employee):
    approver = await make_employee("HR Supervisor", [Capability.APPROVE_LEAVE])
    plain = await make_employee("Technician")

    assert await has_capability(permissions, approver, Capability.APPROVE_LEAVE) is True
    assert await has_capability(permissions, approver, Capability.MANAGE_CASH_FLOW) is False
    assert await has_capability(permissions, plain, Capability.APPROVE_LEAVE) is False


@pytest.mark.asyncio
async def test_inactive_employee_has_no_capabilities(permissions, make_employee):
    former = await make_employee("HR Supervisor", [Capability.APPROVE_LEAVE], active=False)
    assert await has_capability(permissions, former, Capability.APPROVE_LEAVE) is False


@pytest.mark.asyncio
async def test_lookup_failure_fails_closed():
    caller = Caller(employee_id=1, position="Managing Director")
    assert await has_capability(BrokenLookup(), caller, Capability.APPROVE_LEAVE) is False
    with pytest.raises(Forbidden):
        await require_capability(BrokenLookup(), caller, Capability.APPROVE_LEAVE)


@pytest.mark.asyncio
async def test_require_any_capability(permissions, make_employee):
    reviewer = await make_employee("Team Lead", [Capability.APPROVE_CASH_ADVANCE_LEVEL2])
    await require_any_capability(
        permissions, reviewer, Capability.MANAGE_CASH_FLOW, Capability.APPROVE_CASH_ADVANCE_LEVEL2
    )
    with pytest.raises(Forbidden) as exc_info:
        await require_any_capability(permissions, reviewer, Capability.MANAGE_LIQUIDATION)
    # The client-facing message never says why.
    assert str(exc_info.value) == "Forbidden"


# ── Confidentiality ─────────────────────────────────────────────────
def test_visibility_rule():
    reviewer = Caller(employee_id=1, position="Finance Officer")
    director = Caller(employee_id=2, position="Managing Director")

    assert is_visible("Technician", reviewer)
    assert is_visible(None, reviewer)
    assert not is_visible("HR", reviewer)
    assert not is_visible(" accounting ", reviewer)
    assert is_visible("Accounting", director)
    assert is_visible("Operations Manager", reviewer)
    with pytest.raises(Forbidden):
        require_visible("HR", reviewer)


# ── Two-level review state ──────────────────────────────────────────
def test_derive_final_status():
    P, A, R = ReviewStatus.PENDING, ReviewStatus.APPROVED, ReviewStatus.REJECTED
    assert derive_final_status(P, P) == P
    assert derive_final_status(A, P) == P
    assert derive_final_status(A, A) == A
    assert derive_final_status(R, P) == R
    assert derive_final_status(A, R) == R


def test_apply_decision_enforces_level_order():
    record = _two_level_record()
    with pytest.raises(InvalidTransition):
        apply_decision(record, 2, Decision.APPROVE, 7, NOW)

    assert apply_decision(record, 1, Decision.APPROVE, 7, NOW, "ok") == ReviewStatus.PENDING
    assert record.level1_reviewer_id == 7
    with pytest.raises(AlreadyReviewed):
        apply_decision(record, 1, Decision.REJECT, 7, NOW)
    assert apply_decision(record, 2, Decision.REJECT, 8, NOW, "no") == ReviewStatus.REJECTED
    with pytest.raises(AlreadyReviewed):
        apply_decision(record, 2, Decision.APPROVE, 8, NOW)


def test_override_to_pending_reopens():
    record = _two_level_record()
    apply_decision(record, 1, Decision.APPROVE, 7, NOW)
    record.status = ReviewStatus.APPROVED.value
    record.approved_by = 7
    record.approved_at = NOW

    override_status(record, ReviewStatus.PENDING, 9, NOW)

    assert record.status == ReviewStatus.PENDING.value
    assert record.approved_by is None
    assert record.level1_status == ReviewStatus.PENDING.value
    assert record.level1_reviewer_id is None
