"""Tests for login, token refresh, health and first-run seeding."""

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from hrflow.core.config import settings
from hrflow.core.security import create_access_token, create_refresh_token
from hrflow.main import seed_defaults
from hrflow.models.employee import Employee
from hrflow.services.authorization import Caller, Capability, SqlPermissionLookup, has_capability

TEST_PASSWORD = "secret123"


@pytest.mark.asyncio
async def test_login_and_me(async_client: AsyncClient, make_employee):
    """Valid credentials return tokens that resolve to the employee."""
    emp = await make_employee("Technician")

    resp = await async_client.post(
        "/api/v1/auth/login",
        data={"username": "Employee1@hrflow.test ", "password": TEST_PASSWORD},
    )
    assert resp.status_code == 200
    tokens = resp.json()
    assert tokens["token_type"] == "bearer"
    assert tokens["employee_id"] == emp.employee_id
    assert tokens["expires_in"] == settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
    assert "access_token" in resp.cookies

    me = await async_client.get(
        "/api/v1/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"}
    )
    assert me.status_code == 200
    body = me.json()
    assert body["id"] == emp.employee_id
    assert body["position_name"] == "Technician"
    assert "hashed_password" not in body


@pytest.mark.asyncio
async def test_login_rejects_bad_password(async_client: AsyncClient, make_employee):
    await make_employee()
    resp = await async_client.post(
        "/api/v1/auth/login",
        data={"username": "employee1@hrflow.test", "password": "wrong-password"},
    )
    assert resp.status_code == 401
    assert resp.json()["success"] is False


@pytest.mark.asyncio
async def test_inactive_employee_cannot_log_in(async_client: AsyncClient, make_employee):
    await make_employee(active=False)
    resp = await async_client.post(
        "/api/v1/auth/login",
        data={"username": "employee1@hrflow.test", "password": TEST_PASSWORD},
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_missing_or_garbage_token_is_401(async_client: AsyncClient):
    assert (await async_client.get("/api/v1/auth/me")).status_code == 401
    resp = await async_client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Could not validate credentials"

    foreign = create_access_token("svc-account")
    resp = await async_client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {foreign}"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_refresh_token_cannot_be_used_as_access_token(async_client: AsyncClient, make_employee):
    emp = await make_employee()
    refresh = create_refresh_token(emp.employee_id)

    resp = await async_client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {refresh}"})
    assert resp.status_code == 401

    resp = await async_client.post("/api/v1/auth/refresh", json={"refresh_token": refresh})
    assert resp.status_code == 200
    assert resp.json()["access_token"]


@pytest.mark.asyncio
async def test_logout_clears_cookies(async_client: AsyncClient):
    resp = await async_client.post("/api/v1/auth/logout")
    assert resp.status_code == 200
    assert resp.json() == {"message": "Logged out"}


@pytest.mark.asyncio
async def test_health(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "db": True, "version": settings.VERSION}


@pytest.mark.asyncio
async def test_seed_defaults_is_idempotent(db):
    """First run creates the admin with every capability; reruns change nothing."""
    await seed_defaults(db)
    await seed_defaults(db)

    admins = (
        await db.execute(select(Employee).where(Employee.email == settings.FIRST_ADMIN_EMAIL))
    ).scalars().all()
    assert len(admins) == 1

    lookup = SqlPermissionLookup(db)
    admin = Caller(employee_id=admins[0].id, position="Administrator")
    for capability in Capability.ALL:
        assert await has_capability(lookup, admin, capability)
