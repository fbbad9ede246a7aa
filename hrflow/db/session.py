"""
Async SQLAlchemy engine, session factory and the unit-of-work helper.

Every workflow transition runs inside ``atomic(db)``: the status change
and any linked ledger mutation commit together or not at all.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import Select, func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm.exc import StaleDataError

from hrflow.core.config import settings
from hrflow.core.exceptions import ConcurrentUpdate, StoreUnavailable, ValidationError

logger = logging.getLogger(__name__)

engine_args = {
    "echo": False,
    "pool_pre_ping": True,
}

if "postgresql" in settings.DATABASE_URL:
    engine_args.update(
        {
            "pool_size": 20,
            "max_overflow": 10,
            "pool_recycle": 300,
        }
    )

engine = create_async_engine(
    settings.DATABASE_URL,
    **engine_args,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


@asynccontextmanager
async def atomic(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """Commit on success, roll back on any failure.

    A lost optimistic version check surfaces as ``ConcurrentUpdate``; a
    dropped connection or lock timeout as ``StoreUnavailable``.
    """
    try:
        yield db
        await db.commit()
    except StaleDataError as exc:
        await db.rollback()
        logger.info("Optimistic version check failed: %s", exc)
        raise ConcurrentUpdate("Record was modified concurrently; reload and retry") from exc
    except OperationalError as exc:
        await db.rollback()
        logger.error("Store unavailable during transaction: %s", exc, exc_info=True)
        raise StoreUnavailable("Store unavailable") from exc
    except Exception:
        await db.rollback()
        raise


async def fetch_page(db: AsyncSession, stmt: Select, page: int, limit: int) -> tuple[list, int]:
    """Run ``stmt`` for one 1-based page; returns the rows and the unpaged total."""
    if page < 1:
        raise ValidationError("page must be at least 1")
    if not 1 <= limit <= settings.MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {settings.MAX_PAGE_SIZE}")
    total = (
        await db.execute(select(func.count()).select_from(stmt.order_by(None).subquery()))
    ).scalar_one()
    result = await db.execute(stmt.offset((page - 1) * limit).limit(limit))
    return list(result.scalars().all()), total
