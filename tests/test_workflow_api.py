"""End-to-end tests for the workflow routers and the error envelope."""

from decimal import Decimal

import pytest
from httpx import AsyncClient

from hrflow.services.authorization import Capability

API = "/api/v1"
CASH_CAPS = [
    Capability.MANAGE_CASH_FLOW,
    Capability.APPROVE_CASH_ADVANCE_LEVEL1,
    Capability.APPROVE_CASH_ADVANCE_LEVEL2,
    Capability.MANAGE_LIQUIDATION,
    Capability.APPROVE_LIQUIDATIONS_LEVEL1,
    Capability.APPROVE_LIQUIDATIONS_LEVEL2,
]


@pytest.mark.asyncio
async def test_leave_round_trip(async_client: AsyncClient, make_employee, auth_headers):
    """Submit, approve and revoke leave; the balance ends where it started."""
    emp = await make_employee("Technician", credits="10")
    approver = await make_employee("HR Supervisor", [Capability.APPROVE_LEAVE])

    resp = await async_client.post(
        f"{API}/leave/requests",
        json={"leave_type": "Vacation", "start_date": "2025-01-06", "end_date": "2025-01-08"},
        headers=auth_headers(emp),
    )
    assert resp.status_code == 201
    request_id = resp.json()["id"]
    assert Decimal(resp.json()["days"]) == 3

    balance = (await async_client.get(f"{API}/leave/balance", headers=auth_headers(emp))).json()
    assert Decimal(balance["available_credits"]) == 7

    resp = await async_client.post(
        f"{API}/leave/requests/{request_id}/review",
        json={"decision": "approve"},
        headers=auth_headers(approver),
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "approved"

    resp = await async_client.post(
        f"{API}/leave/requests/{request_id}/revoke", headers=auth_headers(approver)
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "revoked"

    balance = (await async_client.get(f"{API}/leave/balance", headers=auth_headers(emp))).json()
    assert Decimal(balance["leave_credits"]) == 10


@pytest.mark.asyncio
async def test_error_envelope(async_client: AsyncClient, make_employee, auth_headers):
    """Domain errors map to stable status codes; Forbidden never explains itself."""
    emp = await make_employee("Technician", credits="1")
    peer = await make_employee("Technician")

    resp = await async_client.post(
        f"{API}/leave/requests",
        json={"leave_type": "Vacation", "start_date": "2025-01-06", "end_date": "2025-01-08"},
        headers=auth_headers(emp),
    )
    assert resp.status_code == 409
    assert resp.json()["code"] == "INSUFFICIENT_BALANCE"
    assert resp.json()["success"] is False

    resp = await async_client.get(f"{API}/leave/requests", headers=auth_headers(peer))
    assert resp.status_code == 403
    assert resp.json() == {"detail": "Forbidden", "code": "FORBIDDEN", "success": False}

    resp = await async_client.get(f"{API}/overtime/requests/999", headers=auth_headers(emp))
    assert resp.status_code == 404
    assert resp.json()["code"] == "NOT_FOUND"

    resp = await async_client.post(
        f"{API}/overtime/requests",
        json={"start_time": "25:00", "end_time": "02:00", "reason": "x"},
        headers=auth_headers(emp),
    )
    assert resp.status_code == 422

    resp = await async_client.post(
        f"{API}/leave/requests",
        json={"leave_type": "Vacation", "start_date": "2025-01-08", "end_date": "2025-01-06"},
        headers=auth_headers(emp),
    )
    assert resp.status_code == 422
    assert resp.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_overtime_flow(async_client: AsyncClient, make_employee, auth_headers):
    emp = await make_employee("Technician")
    lead = await make_employee("Team Lead", [Capability.APPROVE_OVERTIME_LEVEL1])
    manager = await make_employee("Project Manager", [Capability.APPROVE_OVERTIME_LEVEL2])

    resp = await async_client.post(
        f"{API}/overtime/requests",
        json={"request_date": "2024-03-04", "start_time": "22:00", "end_time": "02:00", "reason": "patch night"},
        headers=auth_headers(emp),
    )
    assert resp.status_code == 201
    request_id = resp.json()["id"]
    assert Decimal(resp.json()["total_hours"]) == Decimal("4.00")

    resp = await async_client.post(
        f"{API}/overtime/requests",
        json={"request_date": "2024-03-04", "start_time": "18:00", "end_time": "19:00", "reason": "again"},
        headers=auth_headers(emp),
    )
    assert resp.status_code == 409
    assert resp.json()["code"] == "DUPLICATE_FOR_DATE"

    resp = await async_client.post(
        f"{API}/overtime/requests/{request_id}/review",
        json={"level": 2, "decision": "approve"},
        headers=auth_headers(manager),
    )
    assert resp.status_code == 409
    assert resp.json()["code"] == "INVALID_TRANSITION"

    for reviewer, level in ((lead, 1), (manager, 2)):
        resp = await async_client.post(
            f"{API}/overtime/requests/{request_id}/review",
            json={"level": level, "decision": "approve"},
            headers=auth_headers(reviewer),
        )
        assert resp.status_code == 200
    assert resp.json()["final_status"] == "approved"

    resp = await async_client.delete(
        f"{API}/overtime/requests/{request_id}", headers=auth_headers(emp)
    )
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_cash_advance_and_liquidation_flow(async_client: AsyncClient, make_employee, auth_headers, blobs):
    """Advance approved on both levels, liquidated with a receipt, then reconciled."""
    emp = await make_employee("Technician")
    finance = await make_employee("Finance Officer", CASH_CAPS)

    resp = await async_client.post(
        f"{API}/cash-advances",
        json={"type": "support", "amount": "5000", "request_date": "2024-03-01", "purpose": "site"},
        headers=auth_headers(emp),
    )
    assert resp.status_code == 201
    advance_id = resp.json()["id"]

    for level in (1, 2):
        resp = await async_client.post(
            f"{API}/cash-advances/{advance_id}/review",
            json={"level": level, "decision": "approve"},
            headers=auth_headers(finance),
        )
        assert resp.status_code == 200
    assert resp.json()["status"] == "approved"

    listed = await async_client.get(
        f"{API}/cash-advances", params={"type": "support"}, headers=auth_headers(finance)
    )
    body = listed.json()
    assert [a["id"] for a in body["data"]] == [advance_id]
    assert body["pagination"] == {"total": 1, "page": 1, "limit": 20, "total_pages": 1}

    resp = await async_client.post(
        f"{API}/liquidations",
        json={
            "cash_advance_id": advance_id,
            "liquidation_date": "2024-03-04",
            "items": [
                {"from_destination": "HQ", "to_destination": "Site", "gas": "1200"},
                {"from_destination": "Site", "to_destination": "HQ", "lodging": "3000"},
            ],
        },
        headers=auth_headers(emp),
    )
    assert resp.status_code == 201
    liquidation = resp.json()
    assert Decimal(liquidation["total_amount"]) == 4200
    assert Decimal(liquidation["return_to_company"]) == 800
    assert Decimal(liquidation["reimbursement"]) == 0

    resp = await async_client.post(
        f"{API}/liquidations/{liquidation['id']}/attachments",
        files={"file": ("receipt.png", b"\x89PNG-bytes", "image/png")},
        headers=auth_headers(emp),
    )
    assert resp.status_code == 201
    attachment_id = resp.json()["id"]
    assert len(blobs.blobs) == 1

    resp = await async_client.get(
        f"{API}/liquidations/attachments/{attachment_id}", headers=auth_headers(finance)
    )
    assert resp.status_code == 200
    assert resp.content == b"\x89PNG-bytes"
    assert resp.headers["content-type"] == "image/png"
    assert 'filename="receipt.png"' in resp.headers["content-disposition"]

    resp = await async_client.get(
        f"{API}/liquidations/{liquidation['id']}", headers=auth_headers(emp)
    )
    assert [a["id"] for a in resp.json()["attachments"]] == [attachment_id]


@pytest.mark.asyncio
async def test_confidential_requests_are_filtered_over_http(async_client: AsyncClient, make_employee, auth_headers):
    finance = await make_employee("Finance Officer", CASH_CAPS)
    hr_staff = await make_employee("HR")

    resp = await async_client.post(
        f"{API}/cash-advances",
        json={"type": "personal", "amount": "250.50", "request_date": "2024-03-01"},
        headers=auth_headers(hr_staff),
    )
    advance_id = resp.json()["id"]

    listed = await async_client.get(f"{API}/cash-advances", headers=auth_headers(finance))
    assert listed.json()["data"] == []
    assert listed.json()["pagination"]["total"] == 0
    resp = await async_client.get(f"{API}/cash-advances/{advance_id}", headers=auth_headers(finance))
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Forbidden"


@pytest.mark.asyncio
async def test_attendance_over_http(async_client: AsyncClient, make_employee, auth_headers, clock):
    emp = await make_employee("Field Engineer")

    resp = await async_client.post(
        f"{API}/attendance/clock-in",
        json={"latitude": 14.55, "longitude": 121.02, "address": "Site A"},
        headers=auth_headers(emp),
    )
    assert resp.status_code == 201
    session_id = resp.json()["id"]
    assert resp.json()["work_date"] == "2024-03-04"

    clock.advance(hours=9)
    resp = await async_client.post(
        f"{API}/attendance/clock-out", json={"session_id": session_id}, headers=auth_headers(emp)
    )
    assert resp.status_code == 200
    assert resp.json()["duration_minutes"] == 540

    resp = await async_client.get(
        f"{API}/attendance/daily-duration", params={"day": "2024-03-04"}, headers=auth_headers(emp)
    )
    assert resp.json()["raw"] == 540
    assert resp.json()["final"] == 480


@pytest.mark.asyncio
async def test_session_correction_with_mixed_offsets(async_client: AsyncClient, make_employee, auth_headers):
    emp = await make_employee("Technician")
    timekeeper = await make_employee("Timekeeper", [Capability.EDIT_TIME_ENTRIES])
    resp = await async_client.post(f"{API}/attendance/clock-in", json={}, headers=auth_headers(emp))
    session_id = resp.json()["id"]

    resp = await async_client.put(
        f"{API}/attendance/sessions/{session_id}",
        json={"clock_in": "2024-03-04T01:00:00Z", "clock_out": "2024-03-04T09:00:00"},
        headers=auth_headers(timekeeper),
    )
    assert resp.status_code == 200
    assert resp.json()["duration_minutes"] == 480
    assert resp.json()["work_date"] == "2024-03-04"

    resp = await async_client.put(
        f"{API}/attendance/sessions/{session_id}",
        json={"clock_in": "2024-03-04T09:00:00", "clock_out": "2024-03-04T01:00:00Z"},
        headers=auth_headers(timekeeper),
    )
    assert resp.status_code == 422
