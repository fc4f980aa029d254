"""Pytest configuration and fixtures for the task board.

Every test gets its own in-memory SQLite engine; HTTP tests run against
app.main:app over ASGITransport with get_db pointed at that engine. Redis is
disabled so the cache layer runs L1 only.
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["REDIS_DSN"] = ""
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlmodel import SQLModel

from app.cache.layer import cache_layer
from app.database import get_db, make_engine, make_sessionmaker
from app.dependencies import get_http_client
from app.main import app


@pytest.fixture
async def engine():
    engine = make_engine("sqlite+aiosqlite://")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(engine):
    """Session on the per-test database for repository and action tests."""
    async with make_sessionmaker(engine)() as session:
        yield session


@pytest.fixture(autouse=True)
async def clear_cache():
    await cache_layer.delete_pattern("*")
    yield
    await cache_layer.delete_pattern("*")


@pytest.fixture
async def client(engine) -> AsyncClient:
    """Async HTTP client against the FastAPI app (ASGI).

    The app's own outbound client is the same ASGI client, so fetches of
    /api/cache/tasks made while rendering pages stay in process.
    """
    sessionmaker = make_sessionmaker(engine)

    async def override_get_db():
        async with sessionmaker() as session:
            yield session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_http_client] = lambda: ac
        yield ac
    app.dependency_overrides.clear()
