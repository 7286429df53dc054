"""
Async database access for the gateway.
"""

from typing import AsyncIterator

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base

from gateway.src.config import get_settings

settings = get_settings()

def async_url(database_url: str) -> str:
    """postgresql://... -> postgresql+asyncpg://..."""
    if database_url.startswith("postgresql://"):
        return "postgresql+asyncpg://" + database_url[len("postgresql://"):]
    return database_url

engine = create_async_engine(async_url(settings.database_url), pool_pre_ping=True)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

Base = declarative_base()

async def get_db() -> AsyncIterator[AsyncSession]:
    """Request-scoped session; routes commit explicitly."""
    async with async_session() as session:
        yield session

async def init_db():
    """Create missing tables. Runs at gateway startup."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
