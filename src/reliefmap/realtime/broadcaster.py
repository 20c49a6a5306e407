"""Mutation bus: fans committed writes out to connected viewers.

The write path calls ``MessageBus.publish`` right after a write commits.
Every currently subscribed connection gets the event on its own queue, in
publish order. Nothing is retained: a viewer that subscribes later never
sees earlier events, and a viewer whose queue is full or whose loop has
gone away simply misses the event.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from reliefmap.core.models import EntityKind, MutationEvent

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 256

# SSE event names per entity kind
CHANNELS: dict[EntityKind, str] = {
    EntityKind.RESOURCE: "resources_updated",
    EntityKind.DISASTER: "disaster_updated",
}


def encode_event(event: MutationEvent) -> str:
    """JSON wire form of an event."""
    return json.dumps(event.to_dict())


def format_sse(event: MutationEvent) -> str:
    """Render an event as a Server-Sent Events frame."""
    return f"event: {CHANNELS[event.entity_kind]}\ndata: {encode_event(event)}\n\n"


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


def _put(conn: ViewerConnection, event: MutationEvent) -> None:
    try:
        conn.queue.put_nowait(event)
    except asyncio.QueueFull:
        logger.warning(
            "Dropping %s event for slow viewer %s", event.action.value, conn.client_id
        )


@dataclass(frozen=True, slots=True)
class ViewerConnection:
    """A connected viewer.

    Attributes:
        client_id: Unique identifier for this connection.
        queue: Per-connection event queue, drained by ``MessageBus.stream``.
        loop: Event loop that owns ``queue``; deliveries from other threads
            are handed to it thread-safely.
    """

    client_id: str
    queue: asyncio.Queue[MutationEvent] = field(
        default_factory=lambda: asyncio.Queue(maxsize=DEFAULT_QUEUE_SIZE),
        compare=False,
        hash=False,
    )
    loop: asyncio.AbstractEventLoop | None = field(
        default=None, compare=False, hash=False
    )


class MessageBus:
    """Publish/subscribe channel between the write path and live viewers.

    Thread-safe: the subscriber set is protected by a lock, and ``publish``
    may be called from worker threads.
    """

    def __init__(self) -> None:
        self._subscribers: set[ViewerConnection] = set()
        self._lock = threading.Lock()

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def connect(self, client_id: str | None = None) -> ViewerConnection:
        """Create a connection bound to the running loop and subscribe it."""
        conn = ViewerConnection(
            client_id=client_id or uuid.uuid4().hex, loop=_running_loop()
        )
        self.subscribe(conn)
        return conn

    def subscribe(self, conn: ViewerConnection) -> None:
        with self._lock:
            self._subscribers.add(conn)
        logger.info("Viewer connected: %s", conn.client_id)

    def unsubscribe(self, conn: ViewerConnection) -> None:
        with self._lock:
            self._subscribers.discard(conn)
        logger.info("Viewer disconnected: %s", conn.client_id)

    def get_subscribers(self) -> frozenset[ViewerConnection]:
        """Snapshot of current connections (no lock held on return)."""
        with self._lock:
            return frozenset(self._subscribers)

    def publish(self, event: MutationEvent) -> int:
        """Fan ``event`` out to every connected viewer.

        Never raises: per-connection failures are logged and skipped.
        Deliveries onto another thread's loop are scheduled there; a viewer
        whose queue is already full at publish time is skipped, and one that
        fills up before the scheduled put runs loses the event (logged).

        Returns:
            Number of connections the event was queued or scheduled for.
        """
        current = _running_loop()
        count = 0
        for conn in self.get_subscribers():
            try:
                if conn.loop is None or conn.loop is current:
                    conn.queue.put_nowait(event)
                elif conn.queue.full():
                    raise asyncio.QueueFull
                else:
                    conn.loop.call_soon_threadsafe(_put, conn, event)
                count += 1
            except asyncio.QueueFull:
                logger.warning(
                    "Dropping %s event for slow viewer %s",
                    event.action.value,
                    conn.client_id,
                )
            except RuntimeError as e:
                # Loop closed underneath a stale connection
                logger.warning("Could not deliver to viewer %s: %s", conn.client_id, e)

        logger.debug(
            "Published %s %s %s to %d viewer(s)",
            event.entity_kind.value,
            event.action.value,
            event.entity_id,
            count,
        )
        return count

    async def stream(self, conn: ViewerConnection) -> AsyncIterator[MutationEvent]:
        """Yield events for ``conn`` as they arrive; unsubscribes on exit.

        Catches ``CancelledError`` (client disconnect) and ``GeneratorExit``
        (generator cleanup) so a dropped viewer ends quietly.
        """
        try:
            while True:
                event = await conn.queue.get()
                yield event
        except (asyncio.CancelledError, GeneratorExit):
            return
        finally:
            self.unsubscribe(conn)
