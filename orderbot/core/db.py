from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from orderbot.core.config import settings

# Every store adapter opens its own short-lived session from this factory.
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.LOG_LEVEL.upper() == "DEBUG",
    pool_pre_ping=True,
)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)
