from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from loadguard.core.config import get_settings
from loadguard.db.base import Base

engine: AsyncEngine = create_async_engine(get_settings().database_url, pool_pre_ping=True)
AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False)


async def init_db(bind: AsyncEngine = engine) -> None:
    # Import registers the tables on Base.metadata
    from loadguard.models import entities  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
