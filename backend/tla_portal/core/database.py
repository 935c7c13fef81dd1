from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator

from fastapi import Request
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker, AsyncEngine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool

from tla_portal.core.config import Settings

# Create base class for models
Base = declarative_base()


def get_database_url(settings: Settings) -> str:
    """Get properly formatted database URL"""
    db_url = settings.DATABASE_URL
    if db_url.startswith("postgresql://"):
        db_url = db_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    elif db_url.startswith("sqlite:///"):
        db_url = db_url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    return db_url


class Database:
    """
    Engine and session factory for one process.

    Connection pooling strategy:
    - SQLite: NullPool (one connection per session, required for thread safety)
    - PostgreSQL Development: NullPool (simpler debugging)
    - PostgreSQL Production: QueuePool with connection limits
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.url = get_database_url(settings)
        self.engine: AsyncEngine = self._create_engine()
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    def _create_engine(self) -> AsyncEngine:
        settings = self.settings
        if "sqlite" in self.url:
            # timeout is the sqlite busy handler: writers queue on the database lock
            return create_async_engine(
                self.url,
                echo=settings.DB_ECHO,
                connect_args={
                    "check_same_thread": False,
                    "timeout": settings.SQLITE_BUSY_TIMEOUT_SECONDS,
                },
                poolclass=NullPool,
            )
        if not settings.is_production:
            return create_async_engine(
                self.url,
                echo=settings.DB_ECHO,
                poolclass=NullPool,
            )
        return create_async_engine(
            self.url,
            echo=settings.DB_ECHO,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            pool_recycle=settings.DB_POOL_RECYCLE,
            pool_pre_ping=True,  # Verify connections before use
        )

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Session whose transaction is rolled back on any error or cancellation"""
        async with self.session_factory() as session:
            try:
                yield session
            except BaseException:
                await session.rollback()
                raise

    async def create_all(self) -> None:
        """Create tables for every imported model"""
        import tla_portal.models  # noqa: F401  register models on Base.metadata

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        """Close database connections"""
        await self.engine.dispose()


# Dependency to get DB session
async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Get database session - only commits if there are pending changes"""
    database: Database = request.app.state.database
    async with database.session_factory() as session:
        try:
            yield session
            if session.new or session.dirty or session.deleted:
                await session.commit()
        except Exception:
            await session.rollback()
            raise
