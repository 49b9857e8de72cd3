# backend/greycat/services/messaging/hub.py
"""
Broadcast Hub for channel topics.

In-process publish/subscribe between the HTTP layer (publishers) and the
real-time transports (WebSocket and SSE connections).

Architecture:
  service.publish() → hub topic registry → N connection queues → N clients
                    ↘ relay (optional) → other workers → their hubs

Delivery is at-most-once and fire-and-forget:
- publish() never suspends; each connection owns a bounded asyncio.Queue
  and a full queue drops the event for that connection only
- no acknowledgement, no replay for late subscribers
- per connection, frames arrive in publish order

publish() may be called from the event loop or from a worker thread
(sync FastAPI endpoints run in the threadpool); off-loop calls hand the
frame to the connection's loop with call_soon_threadsafe.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Set

from ...core.config import settings
from ...core.ulid_helper import generate_ulid
from ...monitoring.prometheus_metrics import prometheus_metrics

if TYPE_CHECKING:
    from ...core.broadcast import BroadcastRelay

logger = logging.getLogger(__name__)


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class Connection:
    """
    A subscriber endpoint with its own bounded outbound queue.

    Must be created on the event loop that will consume it (or be given
    that loop explicitly).
    """

    transport = "memory"

    def __init__(
        self,
        connection_id: Optional[str] = None,
        queue_size: Optional[int] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self.id = connection_id or generate_ulid()
        self.queue: asyncio.Queue[Dict[str, Any]] = asyncio.Queue(
            maxsize=queue_size or settings.broadcast_queue_size
        )
        self.loop = loop or _running_loop()
        self.closed = False

    def offer(self, frame: Dict[str, Any]) -> bool:
        """
        Enqueue a frame without suspending.

        Returns:
            False if the frame was dropped (closed connection or full queue)
        """
        if self.closed:
            return False

        if self.loop is None or _running_loop() is self.loop:
            return self._put(frame)

        try:
            self.loop.call_soon_threadsafe(self._put_handed_off, frame)
        except RuntimeError:
            # Loop already closed
            return False
        return True

    def _put(self, frame: Dict[str, Any]) -> bool:
        try:
            self.queue.put_nowait(frame)
            return True
        except asyncio.QueueFull:
            logger.warning(
                f"[BROADCAST] Queue full, dropping {frame.get('event')} for connection {self.id}",
                extra={"connection_id": self.id, "transport": self.transport},
            )
            return False

    def _put_handed_off(self, frame: Dict[str, Any]) -> None:
        # Counted as delivered by the publisher; correct the tally on drop
        if not self._put(frame):
            prometheus_metrics.record_dropped_handoff()

    async def receive(self) -> Dict[str, Any]:
        """Wait for the next outbound frame."""
        return await self.queue.get()

    def close(self) -> None:
        self.closed = True


class WebSocketConnection(Connection):
    transport = "websocket"


class StreamConnection(Connection):
    transport = "sse"


class BroadcastHub:
    """
    Topic registry and fan-out.

    Registries:
        topics:        channel_id → {connection_id}
        subscriptions: connection_id → {channel_id}

    Mutations and publish snapshots are guarded by one lock, so a
    subscribe/unsubscribe racing with a publish never corrupts the fan-out.
    """

    def __init__(self, relay: Optional["BroadcastRelay"] = None):
        self._lock = threading.Lock()
        self._connections: Dict[str, Connection] = {}
        self._topics: Dict[str, Set[str]] = {}
        self._subscriptions: Dict[str, Set[str]] = {}
        self.relay = relay
        if relay is not None:
            relay.attach(self)

    # Connections

    def register(self, connection: Connection) -> Connection:
        with self._lock:
            self._connections[connection.id] = connection
            self._subscriptions.setdefault(connection.id, set())
        prometheus_metrics.connection_opened(connection.transport)
        logger.info(f"[BROADCAST] Registered {connection.transport} connection {connection.id}")
        return connection

    def disconnect(self, connection_id: str) -> None:
        """Forget a connection and drop every topic it subscribed to."""
        emptied: List[str] = []
        with self._lock:
            connection = self._connections.pop(connection_id, None)
            topics = self._subscriptions.pop(connection_id, set())
            for channel_id in topics:
                emptied.extend(self._remove_subscriber(channel_id, connection_id))

        if connection is None:
            return

        connection.close()
        prometheus_metrics.connection_closed(connection.transport)
        for channel_id in emptied:
            self._stop_relay(channel_id)
        logger.info(
            f"[BROADCAST] Disconnected {connection_id} from {len(topics)} topic(s)",
            extra={"connection_id": connection_id},
        )

    # Topics

    def subscribe(self, connection_id: str, channel_id: str) -> bool:
        """
        Add a connection to a channel topic.

        Returns:
            False if the connection is unknown or already subscribed
        """
        with self._lock:
            if connection_id not in self._connections:
                return False
            subscribers = self._topics.setdefault(channel_id, set())
            if connection_id in subscribers:
                return False
            first = not subscribers
            subscribers.add(connection_id)
            self._subscriptions[connection_id].add(channel_id)

        if first and self.relay is not None:
            self.relay.listen(channel_id)
        logger.debug(f"[BROADCAST] {connection_id} joined topic {channel_id}")
        return True

    def unsubscribe(self, connection_id: str, channel_id: str) -> bool:
        with self._lock:
            subscriptions = self._subscriptions.get(connection_id)
            if not subscriptions or channel_id not in subscriptions:
                return False
            subscriptions.discard(channel_id)
            emptied = self._remove_subscriber(channel_id, connection_id)

        for topic in emptied:
            self._stop_relay(topic)
        logger.debug(f"[BROADCAST] {connection_id} left topic {channel_id}")
        return True

    def subscribers(self, channel_id: str) -> Set[str]:
        with self._lock:
            return set(self._topics.get(channel_id, ()))

    def topics_for(self, connection_id: str) -> Set[str]:
        with self._lock:
            return set(self._subscriptions.get(connection_id, ()))

    def _remove_subscriber(self, channel_id: str, connection_id: str) -> List[str]:
        # Caller holds the lock; returns topics that became empty
        subscribers = self._topics.get(channel_id)
        if subscribers is None:
            return []
        subscribers.discard(connection_id)
        if subscribers:
            return []
        del self._topics[channel_id]
        return [channel_id]

    def _stop_relay(self, channel_id: str) -> None:
        if self.relay is not None:
            self.relay.stop(channel_id)

    # Publishing

    def publish(self, channel_id: str, event: str, payload: Dict[str, Any]) -> int:
        """
        Fan an event out to every subscriber of ``channel_id``.

        Never suspends and never raises for delivery problems; the frame is
        also forwarded to the relay when one is attached.

        Returns:
            Number of local connections the frame was handed to
        """
        frame = {"event": str(getattr(event, "value", event)), "data": payload}
        delivered = self.deliver_local(channel_id, frame)

        if self.relay is not None:
            try:
                self.relay.forward(channel_id, frame)
            except Exception as e:
                logger.error(f"[BROADCAST] Relay forward failed for {channel_id}: {str(e)}")

        return delivered

    def deliver_local(self, channel_id: str, frame: Dict[str, Any]) -> int:
        """Deliver a frame to this process's subscribers only."""
        with self._lock:
            targets = [
                self._connections[cid]
                for cid in self._topics.get(channel_id, ())
                if cid in self._connections
            ]

        delivered = 0
        dropped = 0
        for connection in targets:
            if connection.offer(frame):
                delivered += 1
            else:
                dropped += 1

        prometheus_metrics.record_broadcast(frame["event"], delivered, dropped)
        logger.debug(
            f"[BROADCAST] {frame['event']} → {channel_id}: {delivered} delivered, {dropped} dropped"
        )
        return delivered
