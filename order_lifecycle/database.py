from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from order_lifecycle.config import settings
from order_lifecycle.infrastructure.db_schema import metadata

engine = create_async_engine(settings.DATABASE_URL)
AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_tables(bind=engine):
    async with bind.begin() as conn:
        await conn.run_sync(metadata.create_all)
