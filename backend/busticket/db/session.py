"""
Async engine, session factory and the unit-of-work boundary.

Every mutating service call runs inside ``atomic(db)``: the session commits
when the block exits cleanly and rolls back on any exception, so a failed
booking, cancellation or refund leaves no partial writes behind. Raw
SQLAlchemy errors are surfaced as ``StorageFailure``; domain errors pass
through unchanged.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from busticket.core.config import get_settings
from busticket.core.exceptions import StorageFailure
from busticket.core.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    pool_timeout=settings.DB_POOL_TIMEOUT,
    pool_recycle=settings.DB_POOL_RECYCLE,
    pool_pre_ping=True,
)

AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding one session per request."""
    async with AsyncSessionLocal() as session:
        yield session


@asynccontextmanager
async def atomic(db: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    try:
        yield db
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("transaction_failed", error=str(e))
        raise StorageFailure(error=type(e).__name__) from e
    except BaseException:
        await db.rollback()
        raise
