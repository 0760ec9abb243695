"""Commit handling shared by the store-facing services.

A failed write is rolled back and surfaced as StoreError so the caller can
retry; no local state is assumed updated.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.services.errors import StoreError

logger = logging.getLogger(__name__)


async def commit_or_raise(session: AsyncSession, operation: str) -> None:
    """Commit the session, rolling back and raising StoreError on failure.

    Args:
        session: Session holding the pending unit of work
        operation: Short name used in log and error messages

    Raises:
        StoreError: If the commit failed
    """
    try:
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error("Store write failed during %s: %s", operation, e, exc_info=True)
        raise StoreError(f"Failed to save {operation}, please retry") from e


async def flush_or_raise(session: AsyncSession, operation: str) -> None:
    """Flush pending changes (to get IDs), with the same failure handling as commit."""
    try:
        await session.flush()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error("Store write failed during %s: %s", operation, e, exc_info=True)
        raise StoreError(f"Failed to save {operation}, please retry") from e


__all__ = ["commit_or_raise", "flush_or_raise"]
