"""Reusable FastAPI dependencies."""
from __future__ import annotations

from collections.abc import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import HTTPConnection

from .database import get_session
from .errors import NotFoundError
from .models import User
from .notifier import ChangeNotifier


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that yields an AsyncSession."""
    async for session in get_session():
        yield session


def get_notifier(connection: HTTPConnection) -> ChangeNotifier:
    """Return the notifier created for this application at startup."""

    return connection.app.state.notifier


async def get_user_or_404(
    user_id: int,
    session: AsyncSession = Depends(get_db_session),
) -> User:
    """Load the user named by the ``user_id`` path parameter."""

    user = await session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user
