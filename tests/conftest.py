"""Test fixtures for the backend."""
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.pool import NullPool

_scratch = Path(tempfile.mkdtemp(prefix="hris-tests-"))
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_scratch / 'startup.db'}")
os.environ.setdefault("UPLOAD_DIR", str(_scratch / "uploads"))

from hris_backend.database import build_engine, create_schema  # noqa: E402
from hris_backend.dependencies import get_db_session, get_notifier  # noqa: E402
from hris_backend.main import app  # noqa: E402
from hris_backend.notifier import ChangeNotifier  # noqa: E402
from hris_backend.uploads import PictureStore, get_picture_store  # noqa: E402


class RecordingConnection:
    """Stand-in for a WebSocket that keeps every frame it is sent."""

    def __init__(self) -> None:
        self.frames: List[Dict[str, Any]] = []
        self.closed_with: Optional[int] = None

    async def send_json(self, data: Any) -> None:
        self.frames.append(data)

    async def close(self, code: int = 1000, reason: Optional[str] = None) -> None:
        self.closed_with = code


class RecordingSubscriber:
    """A registered subscriber whose frames tests can inspect."""

    def __init__(self, notifier: ChangeNotifier) -> None:
        self.notifier = notifier
        self.connection = RecordingConnection()
        self.subscriber_id = notifier.register(self.connection)

    async def frames(self) -> List[Dict[str, Any]]:
        await self.notifier.flush(self.subscriber_id)
        return list(self.connection.frames)

    async def changes(self) -> List[Dict[str, Any]]:
        return [frame for frame in await self.frames() if frame["type"] == "db_change"]


@pytest.fixture
def db_engine(tmp_path: Path):
    """A throwaway SQLite database per test; NullPool keeps connections loop-local."""

    return build_engine(f"sqlite+aiosqlite:///{tmp_path / 'hris.db'}", poolclass=NullPool)


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, expire_on_commit=False)


@pytest.fixture
def picture_store(tmp_path: Path) -> PictureStore:
    return PictureStore(tmp_path / "uploads")


@pytest.fixture
def notifier() -> ChangeNotifier:
    return ChangeNotifier(queue_size=50)


def _override_dependencies(session_factory, picture_store, notifier=None) -> None:
    async def _session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = _session
    app.dependency_overrides[get_picture_store] = lambda: picture_store
    if notifier is not None:
        app.dependency_overrides[get_notifier] = lambda: notifier


@pytest_asyncio.fixture
async def client(db_engine, session_factory, picture_store, notifier) -> AsyncClient:
    """Provide an HTTP client for integration tests."""

    await create_schema(db_engine)
    _override_dependencies(session_factory, picture_store, notifier)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def subscriber(notifier) -> RecordingSubscriber:
    return RecordingSubscriber(notifier)


@pytest.fixture
def live_app(db_engine, session_factory, picture_store):
    """A running app (startup hooks included) for WebSocket tests."""

    _override_dependencies(session_factory, picture_store)
    with TestClient(app) as test_client:
        test_client.portal.call(create_schema, db_engine)
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def user_form():
    """Factory for a valid account-creation form."""

    def _build(**overrides: Any) -> Dict[str, str]:
        form = {
            "email": "juan@example.com",
            "username": "jdelacruz",
            "role": "employee",
            "password": "s3cret!",
            "employee_number": "EMP-001",
            "f_name": "Juan",
            "l_name": "Dela Cruz",
        }
        form.update(overrides)
        return form

    return _build


@pytest.fixture
def recording_connection():
    return RecordingConnection
