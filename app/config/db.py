from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.models import Base
from app.settings import Settings
from app.utils import logger


def create_engine(settings: Settings) -> AsyncEngine:
    """Builds the async engine; pool sizing only applies to server databases."""
    options = {"pool_pre_ping": True, "echo": settings.DEBUG}
    if not settings.DATABASE_URL.startswith("sqlite"):
        options.update(pool_recycle=3600, pool_size=20, max_overflow=20)
    return create_async_engine(settings.DATABASE_URL, **options)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # records are read back after commit, so attributes must not expire
    return async_sessionmaker(
        bind=engine, class_=AsyncSession, autoflush=False, expire_on_commit=False
    )


async def create_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)
    logger.info("Database tables created")


async def check_db_connection(session_factory: async_sessionmaker[AsyncSession]):
    try:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
            logger.info("Database connection successful")
    except Exception as e:
        logger.error(f"Database connection error: {e}")
        raise
