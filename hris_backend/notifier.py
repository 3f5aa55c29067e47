"""Fan-out of change events to every open WebSocket connection.

The notifier never talks to the socket from inside :meth:`ChangeNotifier.publish`.
Publishing copies a frame into each subscriber's outbound queue, and a
per-connection sender task (:meth:`ChangeNotifier.serve`) writes the queue out
in FIFO order. Every subscriber therefore sees frames in publish order, and a
slow or dead client never holds up a request handler.
"""
from __future__ import annotations

import asyncio
import itertools
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

from fastapi import status
from fastapi.encoders import jsonable_encoder

from .events import DB_CHANGE, NOTIFICATION, ChangeEvent

logger = logging.getLogger(__name__)


class Connection(Protocol):
    """The part of a transport connection the notifier relies on."""

    async def send_json(self, data: Any) -> None: ...

    async def close(self, code: int = 1000, reason: str | None = None) -> None: ...


@dataclass(eq=False)
class Subscriber:
    """One live client connection eligible for delivery."""

    id: str
    connection: Connection
    queue: asyncio.Queue
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    active: bool = True
    dropped: bool = False


class SubscriberRegistry:
    """Tracks which connections currently receive events.

    The registry does not own the connections; the transport layer opens and
    closes them and reports both through :meth:`register` and
    :meth:`unregister`.
    """

    def __init__(self, queue_size: int = 100) -> None:
        self._subscribers: Dict[str, Subscriber] = {}
        self.queue_size = queue_size

    def register(self, connection: Connection) -> str:
        """Add a connection to the active set and return its subscriber id."""

        subscriber = Subscriber(
            id=uuid.uuid4().hex,
            connection=connection,
            queue=asyncio.Queue(maxsize=self.queue_size),
        )
        self._subscribers[subscriber.id] = subscriber
        return subscriber.id

    def unregister(self, subscriber_id: str) -> None:
        """Remove a subscriber. Unknown ids are ignored."""

        subscriber = self._subscribers.pop(subscriber_id, None)
        if subscriber is None:
            return
        subscriber.active = False
        try:
            # Wake the sender task so it notices the subscriber is gone.
            subscriber.queue.put_nowait(None)
        except asyncio.QueueFull:
            # The sender wakes on the queued frames instead.
            pass

    def get(self, subscriber_id: str) -> Optional[Subscriber]:
        return self._subscribers.get(subscriber_id)

    def snapshot(self) -> List[Subscriber]:
        """Return the subscribers active right now, as a detached list."""

        return list(self._subscribers.values())

    def __contains__(self, subscriber_id: object) -> bool:
        return subscriber_id in self._subscribers

    def __len__(self) -> int:
        return len(self._subscribers)


class ChangeNotifier:
    """Broadcasts change events and notifications to all subscribers."""

    def __init__(
        self,
        registry: Optional[SubscriberRegistry] = None,
        queue_size: int = 100,
    ) -> None:
        self.registry = registry if registry is not None else SubscriberRegistry(queue_size)
        self._sequence = itertools.count(1)

    # ---------- Subscriber lifecycle ----------

    def register(self, connection: Connection) -> str:
        subscriber_id = self.registry.register(connection)
        logger.info("Client connected: %s (%d active)", subscriber_id, len(self.registry))
        return subscriber_id

    def unregister(self, subscriber_id: str) -> None:
        if subscriber_id in self.registry:
            logger.info("Client disconnected: %s", subscriber_id)
        self.registry.unregister(subscriber_id)

    def close(self) -> None:
        """Unregister every subscriber. Used at shutdown."""

        for subscriber in self.registry.snapshot():
            self.registry.unregister(subscriber.id)

    # ---------- Publishing ----------

    def publish(self, event: ChangeEvent) -> int:
        """Queue a ``db_change`` frame for every subscriber.

        Returns the number of subscribers the frame was queued for. Never
        raises because of a subscriber.
        """

        frame = {
            "type": DB_CHANGE,
            "seq": next(self._sequence),
            "event": event.kind.value,
            "payload": jsonable_encoder(event.payload),
        }
        count = self._fan_out(frame)
        logger.info("Emitting %s (seq=%d) to %d client(s)", event.kind.value, frame["seq"], count)
        return count

    def announce(self, payload: Dict[str, Any]) -> int:
        """Queue a ``notification`` frame carrying a joined notification row."""

        frame = {
            "type": NOTIFICATION,
            "seq": next(self._sequence),
            "payload": jsonable_encoder(payload),
        }
        count = self._fan_out(frame)
        logger.info("Emitting notification (seq=%d) to %d client(s)", frame["seq"], count)
        return count

    def _fan_out(self, frame: Dict[str, Any]) -> int:
        delivered = 0
        for subscriber in self.registry.snapshot():
            try:
                subscriber.queue.put_nowait(frame)
            except asyncio.QueueFull:
                logger.warning("Dropping client %s: outbound queue is full", subscriber.id)
                self._drop(subscriber)
                continue
            delivered += 1
        return delivered

    # ---------- Delivery ----------

    async def serve(self, subscriber_id: str) -> None:
        """Write queued frames to one connection until it goes away."""

        subscriber = self.registry.get(subscriber_id)
        if subscriber is None:
            return

        while subscriber.active:
            frame = await subscriber.queue.get()
            if frame is None or not subscriber.active:
                break
            if not await self._send(subscriber, frame):
                break

        if subscriber.dropped:
            # Closing forces the client to reconnect and refetch.
            try:
                await subscriber.connection.close(
                    code=status.WS_1013_TRY_AGAIN_LATER, reason="Subscriber dropped"
                )
            except Exception as exc:  # noqa: BLE001
                logger.debug("Closing dropped client %s failed: %s", subscriber.id, exc)

    async def flush(self, subscriber_id: str) -> int:
        """Deliver every frame currently queued for a subscriber without waiting."""

        subscriber = self.registry.get(subscriber_id)
        if subscriber is None:
            return 0

        sent = 0
        while subscriber.active and not subscriber.queue.empty():
            frame = subscriber.queue.get_nowait()
            if frame is None:
                break
            if not await self._send(subscriber, frame):
                break
            sent += 1
        return sent

    async def _send(self, subscriber: Subscriber, frame: Dict[str, Any]) -> bool:
        try:
            await subscriber.connection.send_json(frame)
        except Exception as exc:  # noqa: BLE001
            logger.debug("Delivery to %s failed: %s", subscriber.id, exc)
            self.unregister(subscriber.id)
            return False
        return True

    def _drop(self, subscriber: Subscriber) -> None:
        subscriber.dropped = True
        self.unregister(subscriber.id)
