import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from app.config import settings

logger = logging.getLogger(__name__)


def _engine_options(database_url: str) -> dict:
    """Pool sizing only applies to server databases; SQLite manages its own pool."""
    if database_url.startswith("sqlite"):
        return {}
    if settings.environment == "production":
        return {"pool_size": 20, "max_overflow": 50, "pool_timeout": 60, "pool_recycle": 1800}
    return {"pool_size": 10, "max_overflow": 20, "pool_timeout": 30}


engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    **_engine_options(settings.database_url),
)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    autoflush=False,
    expire_on_commit=False,
)

Base = declarative_base()


async def get_db():
    async with AsyncSessionLocal() as db:
        try:
            yield db
        except Exception as e:
            logger.error("Database session error: %s", e)
            await db.rollback()
            raise
