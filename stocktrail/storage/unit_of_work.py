"""
Transaction boundary shared by all mutating service operations.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from stocktrail.errors import StockTrailException, StoreError


@asynccontextmanager
async def atomic(session: AsyncSession, operation: str) -> AsyncIterator[AsyncSession]:
    """
    Run a block as one transaction: commit on success, full rollback on any error.

    Business exceptions propagate unchanged. Persistence failures are logged
    with context and re-raised as an opaque StoreError.

    Args:
        session: Request-scoped session
        operation: Name used in log lines
    """
    try:
        yield session
        await session.commit()
    except StockTrailException:
        await session.rollback()
        raise
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"{operation} failed: {type(e).__name__}: {e}")
        raise StoreError(detail=str(e)) from e
    except Exception:
        await session.rollback()
        raise
