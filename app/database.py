from functools import lru_cache

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.config import get_settings


def make_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    options = {"echo": echo, "future": True, "pool_pre_ping": True}
    if database_url.startswith("sqlite") and (
        database_url.endswith("://") or ":memory:" in database_url
    ):
        # One shared connection, otherwise every session sees an empty database
        options.update(
            connect_args={"check_same_thread": False}, poolclass=StaticPool
        )
    return create_async_engine(database_url, **options)


def make_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@lru_cache
def get_engine() -> AsyncEngine:
    settings = get_settings()
    return make_engine(settings.database_url, echo=settings.database_echo)


@lru_cache
def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    return make_sessionmaker(get_engine())


# Dependency for getting DB session
async def get_db():
    async with get_sessionmaker()() as session:
        yield session


async def create_db_and_tables(engine: AsyncEngine | None = None):
    async with (engine or get_engine()).begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
