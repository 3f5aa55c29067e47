"""Engine and session handling for the HRIS store."""
from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from .config import get_settings
from .models import Base


def build_engine(database_url: str, **kwargs) -> AsyncEngine:
    """Create an async engine, relaxing SQLite's thread check when needed."""

    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite+") else {}
    return create_async_engine(database_url, echo=False, connect_args=connect_args, **kwargs)


settings = get_settings()
engine = build_engine(settings.database_url)
AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False)


async def create_schema(target: AsyncEngine | None = None) -> None:
    """Create every table that does not exist yet."""

    async with (target or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide an async SQLAlchemy session per request."""

    async with AsyncSessionLocal() as session:
        yield session
