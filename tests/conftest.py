"""
Pytest fixtures for all tests.

Provides:
- Test database (SQLite file per test) with tables created from the models
- HTTP test client bound to the ASGI app
- Bearer token headers for arbitrary user IDs
- In-memory cache replacement
"""

from typing import AsyncGenerator, Callable

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app import models  # noqa: F401  (registers every table on Base.metadata)
from app.core.database import Base, get_db
from app.core.security import create_access_token
from app.main import create_application


@pytest_asyncio.fixture(scope="function")
async def test_db_engine(tmp_path):
    """
    Create test database engine.

    A fresh SQLite file per test keeps tests isolated even though the
    stores commit their own transactions.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'rbac_test.db'}",
        echo=False,
        poolclass=NullPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Database session configured like the application's."""
    session_factory = async_sessionmaker(
        test_db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def app(db_session: AsyncSession):
    """
    Create FastAPI test application.

    Overrides the database dependency to use the test session.
    """
    application = create_application()

    async def override_get_db():
        yield db_session

    application.dependency_overrides[get_db] = override_get_db

    return application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """
    Create async HTTP client for testing API endpoints.

    Usage:
        async def test_endpoint(client, auth_headers):
            response = await client.get("/api/v1/admin/rbac/roles", headers=auth_headers("user_1"))
            assert response.status_code == 200
    """
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_headers() -> Callable[[str], dict[str, str]]:
    """Build Authorization headers carrying a token for the given user ID."""

    def build(user_id: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(subject=user_id)}"}

    return build


@pytest.fixture
def mock_cache(monkeypatch):
    """
    Replace the permission-summary cache with an in-memory dictionary.

    This allows cache testing without running Redis.
    """
    cache_dict = {}

    class MockCacheManager:
        async def get(self, namespace, key):
            return cache_dict.get(f"{namespace}:{key}")

        async def set(self, namespace, key, value, ttl=None):
            cache_dict[f"{namespace}:{key}"] = value
            return True

        async def delete(self, namespace, key):
            cache_dict.pop(f"{namespace}:{key}", None)
            return True

        async def invalidate_namespace(self, namespace):
            keys_to_delete = [k for k in cache_dict if k.startswith(f"{namespace}:")]
            for key in keys_to_delete:
                del cache_dict[key]
            return len(keys_to_delete)

    from app.features.rbac import cache
    monkeypatch.setattr(cache, "cache_manager", MockCacheManager())

    return cache_dict
