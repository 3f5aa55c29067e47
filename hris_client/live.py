"""Keep client-side collections in step with the backend.

Frames from the backend are treated purely as invalidation signals: the
affected collection is fetched again in full, never patched in place. After
every (re)connection all collections are fetched unconditionally, since
frames sent while disconnected are never replayed.
"""

from __future__ import annotations

import asyncio
import enum
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set

import httpx
import websockets
from websockets.exceptions import WebSocketException

from .api_client import APIClient, APIError

logger = logging.getLogger(__name__)

Fetcher = Callable[[], Awaitable[List[Dict[str, Any]]]]
FrameCallback = Callable[[Dict[str, Any]], Awaitable[None]]

RECORD_KINDS = {"added", "updated", "deleted"}


class ConnectionState(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class ReconnectExhausted(Exception):
    """Raised when the listener gives up reconnecting."""


@dataclass
class LiveCollection:
    """A named collection whose contents are replaced on every refresh."""

    name: str
    fetch: Fetcher
    items: List[Dict[str, Any]] = field(default_factory=list)
    refreshes: int = 0

    async def refresh(self) -> List[Dict[str, Any]]:
        self.items = await self.fetch()
        self.refreshes += 1
        return self.items


def collections_for(frame: Dict[str, Any]) -> Optional[Set[str]]:
    """Names of the collections a frame invalidates; ``None`` means all of them."""

    if frame.get("type") == "notification":
        return {"notifications", "leave_requests"}

    kind = str(frame.get("event", ""))
    if kind in RECORD_KINDS:
        return {"records"}
    if kind.startswith("user_"):
        return {"users"}
    if kind.startswith("leave_request_"):
        return {"leave_requests"}
    return None


class ChangeListener:
    """Listens on the backend's ``/ws`` channel and refetches on change.

    State moves ``DISCONNECTED -> CONNECTING -> CONNECTED -> DISCONNECTED``.
    Lost connections are retried with exponential backoff; after
    ``reconnect_attempts`` consecutive failures :meth:`run` raises
    :class:`ReconnectExhausted`.
    """

    def __init__(
        self,
        url: str,
        collections: Iterable[LiveCollection],
        *,
        reconnect_attempts: int = 5,
        reconnect_delay: float = 1.0,
        max_delay: float = 30.0,
        on_frame: Optional[FrameCallback] = None,
        connect: Optional[Callable[[str], Any]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.url = url
        self.collections: Dict[str, LiveCollection] = {c.name: c for c in collections}
        self.reconnect_attempts = reconnect_attempts
        self.reconnect_delay = reconnect_delay
        self.max_delay = max_delay
        self.on_frame = on_frame
        self._connect = connect or websockets.connect
        self._sleep = sleep
        self._state = ConnectionState.DISCONNECTED
        self._connection: Any = None
        self._stopping = False
        self._last_seq: Optional[int] = None

    @classmethod
    def for_client(cls, client: APIClient, **kwargs: Any) -> "ChangeListener":
        """Build a listener tracking every collection the backend exposes."""

        collections = [
            LiveCollection("records", client.list_records),
            LiveCollection("users", client.list_users),
            LiveCollection("leave_requests", client.list_leave_requests),
            LiveCollection("notifications", client.list_notifications),
        ]
        return cls(client.websocket_url, collections, **kwargs)

    @property
    def state(self) -> ConnectionState:
        return self._state

    def _set_state(self, state: ConnectionState) -> None:
        if state is not self._state:
            logger.debug("Live connection %s -> %s", self._state.value, state.value)
        self._state = state

    def backoff(self, failures: int) -> float:
        """Delay before reconnect attempt number ``failures`` (1-based)."""

        return min(self.reconnect_delay * 2 ** (failures - 1), self.max_delay)

    # ---------- Main loop ----------

    async def run(self) -> None:
        failures = 0
        while not self._stopping:
            self._set_state(ConnectionState.CONNECTING)
            try:
                async with self._connect(self.url) as connection:
                    self._connection = connection
                    self._set_state(ConnectionState.CONNECTED)
                    failures = 0
                    self._last_seq = None
                    logger.info("Live connection to %s established", self.url)
                    await self.refresh(None)
                    async for message in connection:
                        await self.handle_message(message)
            except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
                logger.warning("Live connection to %s lost: %s", self.url, exc)
            finally:
                self._connection = None
                self._set_state(ConnectionState.DISCONNECTED)

            if self._stopping:
                return

            failures += 1
            if failures > self.reconnect_attempts:
                raise ReconnectExhausted(
                    f"Gave up on {self.url} after {self.reconnect_attempts} reconnect attempts"
                )
            delay = self.backoff(failures)
            logger.info("Reconnecting to %s in %.1fs (attempt %d)", self.url, delay, failures)
            await self._sleep(delay)

    async def stop(self) -> None:
        """Leave :meth:`run` without reconnecting."""

        self._stopping = True
        if self._connection is not None:
            await self._connection.close()

    # ---------- Reconciliation ----------

    async def handle_message(self, message: str | bytes) -> None:
        try:
            frame = json.loads(message)
        except ValueError:
            logger.warning("Ignoring malformed frame: %r", message)
            return
        if not isinstance(frame, dict):
            logger.warning("Ignoring unexpected frame: %r", frame)
            return

        seq = frame.get("seq")
        if isinstance(seq, int):
            if self._last_seq is not None and seq > self._last_seq + 1:
                logger.warning("Missed %d frame(s) before seq %d", seq - self._last_seq - 1, seq)
            self._last_seq = seq

        await self.refresh(collections_for(frame))
        if self.on_frame is not None:
            await self.on_frame(frame)

    async def refresh(self, names: Optional[Set[str]]) -> None:
        """Refetch the named collections, or all of them when ``names`` is None."""

        targets = self.collections.values() if names is None else [
            self.collections[name] for name in names if name in self.collections
        ]
        for collection in targets:
            try:
                await collection.refresh()
            except (httpx.HTTPError, APIError) as exc:
                logger.warning("Refetching %s failed: %s", collection.name, exc)
