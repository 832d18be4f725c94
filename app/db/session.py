from contextlib import asynccontextmanager
import logging
import os

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from app.core.config import settings
from app.core.errors import StoreError

logger = logging.getLogger(__name__)

# Security: Disable SQL query logging in production
# Only enable echo in development mode
is_dev_mode = os.getenv("ENV", "production").lower() in ["dev", "development", "local"]
engine = create_async_engine(
    str(settings.DATABASE_URL),
    echo=is_dev_mode,
    pool_pre_ping=True,  # Verify connections before using
    pool_size=10,
    max_overflow=20
)
AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@asynccontextmanager
async def store_guard(session: AsyncSession, operation: str):
    """
    Roll back and re-raise persistence failures as StoreError.

    Engine errors (validation, conflicts) pass through untouched.
    """
    try:
        yield
    except SQLAlchemyError as e:
        logger.error(f"Store failure during {operation}: {e.__class__.__name__}")
        await session.rollback()
        raise StoreError(f"Storage failure during {operation}") from e
