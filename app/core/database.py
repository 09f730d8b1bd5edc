"""
Database session management with async SQLAlchemy 2.0.

Provides:
- Async engine with connection pooling
- Session factory with proper lifecycle
- Dependency injection for route handlers
- Transactional helper for compound mutations
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool

from app.config import settings

logger = logging.getLogger(__name__)


# Base class for all ORM models
class Base(DeclarativeBase):
    """
    Base class for all database models.
    
    Provides:
    - Common metadata for all tables
    - Type hints for SQLAlchemy
    """
    pass


class DatabaseManager:
    """
    Manages database engine and session lifecycle.
    
    Singleton pattern ensures one engine per application.
    """
    
    def __init__(self) -> None:
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None
    
    def init(self) -> None:
        """
        Initialize database engine and session factory.
        
        Called during application startup (lifespan event).
        """
        logger.info("Initializing database connection...")
        
        # Connection pool configuration
        if settings.is_development:
            # Development: more verbose logging, NullPool for simplicity
            pool_options = {"poolclass": NullPool}
            echo = settings.db_echo
        else:
            # Production: connection pooling for performance
            pool_options = {
                "poolclass": AsyncAdaptedQueuePool,
                "pool_size": settings.db_pool_size,
                "max_overflow": settings.db_max_overflow,
            }
            echo = False

        # Create async engine
        self._engine = create_async_engine(
            str(settings.database_url),
            echo=echo,
            pool_pre_ping=True,  # Verify connections before using
            **pool_options,
        )

        # Session factory
        self._session_factory = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,  # Don't expire objects after commit
            autoflush=False,  # Manual control over flushes
        )
        
        logger.info("Database connection initialized successfully")
    
    async def close(self) -> None:
        """
        Close database connections.
        
        Called during application shutdown (lifespan event).
        """
        if self._engine:
            logger.info("Closing database connections...")
            await self._engine.dispose()
            logger.info("Database connections closed")
    
    @property
    def engine(self) -> AsyncEngine:
        """Get the database engine."""
        if not self._engine:
            raise RuntimeError("Database not initialized. Call init() first.")
        return self._engine
    
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Dependency injection for database sessions.
        
        Usage in FastAPI:
            @router.get("/roles")
            async def get_roles(db: AsyncSession = Depends(db_manager.get_session)):
                result = await db.execute(select(Role))
                return result.scalars().all()
        
        Yields:
            AsyncSession: Database session with automatic cleanup
        """
        async with self.session_scope() as session:
            yield session

    @asynccontextmanager
    async def session_scope(self) -> AsyncIterator[AsyncSession]:
        """
        Session for work outside a request (Celery tasks, scripts).

        Commits on success, rolls back on error.
        """
        if not self._session_factory:
            raise RuntimeError("Database not initialized. Call init() first.")

        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()  # Auto-commit on success
            except Exception:
                await session.rollback()  # Auto-rollback on error
                raise


# Global instance
db_manager = DatabaseManager()


# Convenience function for dependency injection
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency for database sessions.
    
    Usage:
        from app.core.database import get_db

        @router.get("/roles")
        async def list_roles(db: AsyncSession = Depends(get_db)):
            ...
    """
    async for session in db_manager.get_session():
        yield session


@asynccontextmanager
async def atomic(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Run a compound mutation as one unit of work.

    Commits when the block exits cleanly and rolls back on any error,
    so a delete-then-insert sequence is never left half applied.

    Usage:
        async with atomic(db):
            await db.execute(delete(Policy).where(Policy.role_id == role_id))
            db.add_all(new_policies)
    """
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise