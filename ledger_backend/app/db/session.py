"""
Database session configuration.

Async SQLAlchemy engine and session factory. PostgreSQL (asyncpg) in
production; tests substitute an in-memory SQLite engine through the
``get_db`` dependency override.
"""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from ledger_backend.app.core.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=settings.db_echo,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=True,
)

# Objects stay readable after commit; trail writes run after the primary commit
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def init_models(bind=None):
    """Create all tables registered on ``Base``."""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db():
    """
    FastAPI dependency for database sessions.

    One session per request, closed when the request finishes.
    """
    async with AsyncSessionLocal() as session:
        yield session
