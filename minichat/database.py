from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from minichat.config import settings
import redis.asyncio as redis

async_engine = create_async_engine(settings.DATABASE_URL, echo=settings.DEBUG)
AsyncSessionLocal = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)

async def get_redis():
    if not settings.REDIS_URL:
        return None
    return redis.from_url(settings.REDIS_URL, decode_responses=True)

async def get_db():
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()

async def create_tables():
    from minichat.models.base import Base
    from minichat.models import user, group, group_member, message, request_log

    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
