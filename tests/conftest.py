"""
Shared test fixtures for the HR workflow test suite.

Every test gets its own in-memory SQLite database (aiosqlite +
AsyncSession), a pinned clock and an in-memory blob store.
"""

import itertools
import os
import sys
from datetime import datetime, timezone
from decimal import Decimal
from typing import AsyncGenerator

import pytest

# Ensure project root is importable
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
# CORS fix (JSON format)
os.environ["CORS_ORIGINS"] = '["*"]'
os.environ["SECRET_KEY"] = "test-secret-key-0123456789abcdef0123456789abcdef"

from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from hrflow.api.v1.deps import get_blob_store, get_clock, get_db
from hrflow.api.v1.endpoints.auth import limiter
from hrflow.core.clock import FixedClock
from hrflow.core.exceptions import NotFound
from hrflow.core.security import create_access_token, get_password_hash
from hrflow.db.base import Base
from hrflow.main import app
from hrflow.models.employee import Employee
from hrflow.models.position import Permission, Position, PositionPermission
from hrflow.services.authorization import Caller, SqlPermissionLookup

# Rate limits would make repeated logins flaky.
limiter.enabled = False

TEST_PASSWORD = "secret123"
TEST_PASSWORD_HASH = get_password_hash(TEST_PASSWORD)

# Monday 2024-03-04 09:00 at +08:00
START = datetime(2024, 3, 4, 1, 0, tzinfo=timezone.utc)


class InMemoryBlobStore:
    """Blob store double that keeps bytes in a dict."""

    def __init__(self) -> None:
        self.blobs: dict[str, bytes] = {}
        self.deleted: list[str] = []

    async def put(self, key: str, data: bytes, content_type: str | None = None) -> None:
        self.blobs[key] = data

    async def get(self, key: str) -> bytes:
        try:
            return self.blobs[key]
        except KeyError:
            raise NotFound(f"Attachment {key} not found") from None

    async def delete(self, key: str) -> None:
        self.deleted.append(key)
        self.blobs.pop(key, None)


# ── Database ────────────────────────────────────────────────────────
@pytest.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """Fresh in-memory database with all tables created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for service-level tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(START)


@pytest.fixture
def blobs() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def permissions(db: AsyncSession) -> SqlPermissionLookup:
    return SqlPermissionLookup(db)


# ── Factories ───────────────────────────────────────────────────────
async def _ensure_position(db: AsyncSession, name: str, capabilities) -> int:
    position = (
        await db.execute(select(Position).where(Position.name == name))
    ).scalar_one_or_none()
    if position is None:
        position = Position(name=name)
        db.add(position)
        await db.flush()
    for key in capabilities:
        permission = (
            await db.execute(select(Permission).where(Permission.key == key))
        ).scalar_one_or_none()
        if permission is None:
            permission = Permission(key=key)
            db.add(permission)
            await db.flush()
        if await db.get(PositionPermission, (position.id, permission.id)) is None:
            db.add(PositionPermission(position_id=position.id, permission_id=permission.id))
    return position.id


@pytest.fixture
def make_employee(db: AsyncSession):
    """Create an employee (and its position/capabilities); returns a ``Caller``."""
    counter = itertools.count(1)

    async def _make(
        position: str | None = None,
        capabilities=(),
        credits: str = "0",
        active: bool = True,
    ) -> Caller:
        n = next(counter)
        position_id = await _ensure_position(db, position, capabilities) if position else None
        employee = Employee(
            email=f"employee{n}@hrflow.test",
            hashed_password=TEST_PASSWORD_HASH,
            first_name="Test",
            last_name=f"Employee{n}",
            position_id=position_id,
            leave_credits=Decimal(credits),
            is_active=active,
        )
        db.add(employee)
        await db.commit()
        return Caller(employee_id=employee.id, position=position)

    return _make


# ── HTTP client ─────────────────────────────────────────────────────
@pytest.fixture
async def async_client(session_factory, clock, blobs) -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app and this test's database."""

    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_blob_store] = lambda: blobs

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    """Bearer header for a caller, as issued by /auth/login."""

    def _headers(caller: Caller) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(caller.employee_id)}"}

    return _headers
