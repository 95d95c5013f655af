import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from dockmanager.core.config import settings

logger = logging.getLogger(__name__)

DATABASE_URL = settings.DATABASE_URL


def build_engine(url: str):
    """
    Create the async engine for a database URL.

    In-memory SQLite gets a single shared connection so every session sees
    the same database.
    """
    if url.startswith("sqlite") and ":memory:" in url:
        return create_async_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_async_engine(url, future=True, echo=False, pool_pre_ping=True)


logger.info(f"Using database backend: {DATABASE_URL.split('://', 1)[0]}")
engine = build_engine(DATABASE_URL)
SessionAsync = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
