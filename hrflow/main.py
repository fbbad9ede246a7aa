"""
HR operations platform: application entry point.

This is the **only** file that assembles the app.  Business rules live
in ``services/``; ``api/`` only translates HTTP to workflow calls.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrflow.api.v1.api import api_router
from hrflow.api.v1.endpoints.auth import limiter
from hrflow.core.config import settings
from hrflow.core.exceptions import register_exception_handlers
from hrflow.core.security import get_password_hash
from hrflow.db.base import Base
from hrflow.db.session import async_session_factory, engine

# Ensure all models are imported so metadata.create_all can see them
from hrflow.models.attendance import AttendanceSession, DailySummary  # noqa: F401
from hrflow.models.cash_advance import CashAdvance  # noqa: F401
from hrflow.models.employee import Employee
from hrflow.models.leave import LeaveCreditEntry, LeaveRequest  # noqa: F401
from hrflow.models.liquidation import Liquidation  # noqa: F401
from hrflow.models.overtime import OvertimeRequest  # noqa: F401
from hrflow.models.position import Permission, Position, PositionPermission
from hrflow.services.authorization import Capability

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)

ADMIN_POSITION = "Administrator"


# ── Seeding ─────────────────────────────────────────────────────────
async def seed_defaults(session: AsyncSession) -> None:
    """Capability catalogue, an all-capability position and the first admin."""
    existing = set((await session.execute(select(Permission.key))).scalars().all())
    for key in Capability.ALL:
        if key not in existing:
            session.add(Permission(key=key, description=key.replace("_", " ").capitalize()))
    await session.flush()

    position = (
        await session.execute(select(Position).where(Position.name == ADMIN_POSITION))
    ).scalar_one_or_none()
    if position is None:
        position = Position(name=ADMIN_POSITION)
        session.add(position)
        await session.flush()

    granted = set(
        (
            await session.execute(
                select(PositionPermission.permission_id).where(
                    PositionPermission.position_id == position.id
                )
            )
        ).scalars().all()
    )
    for permission_id in (await session.execute(select(Permission.id))).scalars().all():
        if permission_id not in granted:
            session.add(PositionPermission(position_id=position.id, permission_id=permission_id))

    result = await session.execute(
        select(Employee).where(Employee.email == settings.FIRST_ADMIN_EMAIL)
    )
    if result.scalar_one_or_none() is None:
        session.add(
            Employee(
                email=settings.FIRST_ADMIN_EMAIL,
                hashed_password=get_password_hash(settings.FIRST_ADMIN_PASSWORD),
                first_name="System",
                last_name="Administrator",
                position_id=position.id,
            )
        )
        logger.info(
            "Default admin created: %s (password: <redacted>)",
            settings.FIRST_ADMIN_EMAIL,
        )
    await session.commit()


# ── Lifespan ────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(_app: FastAPI):
    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")

    async with async_session_factory() as session:
        await seed_defaults(session)

    logger.info("%s v%s started", settings.PROJECT_NAME, settings.VERSION)
    yield
    await engine.dispose()
    logger.info("Shutdown complete")


# ── App factory ─────────────────────────────────────────────────────
def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.PROJECT_NAME,
        description="Attendance, leave, overtime and expense approval workflows",
        version=settings.VERSION,
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Rate limiting on the auth endpoints
    application.state.limiter = limiter
    application.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Global exception handlers (prevent stack-trace leakage)
    register_exception_handlers(application)

    # Mount API v1
    application.include_router(api_router, prefix=settings.API_V1_PREFIX)

    return application


app = create_app()
