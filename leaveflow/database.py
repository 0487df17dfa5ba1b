"""Async SQLAlchemy engine and session management."""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from leaveflow.common.exceptions import PersistenceException
from leaveflow.config import settings
from leaveflow.notifications.email import deliver_outbox, discard_outbox

logger = logging.getLogger(__name__)


def _engine_options() -> dict:
    options: dict = {"echo": False, "pool_pre_ping": True}
    if settings.DATABASE_URL.startswith("postgresql"):
        # Overlap/conflict checks are check-then-act; run them serializable.
        options.update(
            pool_size=10,
            max_overflow=20,
            isolation_level=settings.DB_ISOLATION_LEVEL,
        )
    return options


# Async engine for FastAPI
engine = create_async_engine(settings.DATABASE_URL, **_engine_options())

# Async session factory
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


async def commit_session(session: AsyncSession) -> None:
    """Commit, then hand queued emails to the mail gateway.

    Storage failures surface as PersistenceException; nothing queued on the
    session is delivered when the commit fails.
    """
    try:
        await session.commit()
    except SQLAlchemyError as exc:
        logger.exception("Transaction commit failed")
        await session.rollback()
        discard_outbox(session)
        raise PersistenceException() from exc
    await deliver_outbox(session)


async def get_db() -> AsyncSession:
    """FastAPI dependency: yield an async database session."""
    async with async_session_factory() as session:
        try:
            yield session
            await commit_session(session)
        except Exception:
            await session.rollback()
            discard_outbox(session)
            raise
        finally:
            await session.close()
