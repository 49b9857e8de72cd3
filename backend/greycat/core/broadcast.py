# backend/greycat/core/broadcast.py
"""
Cross-worker relay for channel events.

Each worker process keeps its own in-memory BroadcastHub. When several
workers serve the same channels, the relay carries frames between them
over a shared Broadcaster backend (Redis in production, memory:// in tests).

Architecture:
- One Broadcaster instance per worker process
- Every published frame is tagged with the worker's origin id
- The worker listens only on topics its local connections subscribe to,
  and delivers frames from other origins to its local hub

Delivery stays best-effort: relay failures are logged, never raised
into the request that published the event.
"""

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any, Dict, Optional, Set

from broadcaster import Broadcast

from .config import settings
from .ulid_helper import generate_ulid

if TYPE_CHECKING:
    from ..services.messaging.hub import BroadcastHub

logger = logging.getLogger(__name__)

TOPIC_PREFIX = "greycat:channel:"


def topic_key(channel_id: str) -> str:
    return f"{TOPIC_PREFIX}{channel_id}"


class BroadcastRelay:
    """Forwards hub frames to, and receives them from, other workers."""

    def __init__(
        self,
        url: str,
        origin: Optional[str] = None,
        broadcast: Optional[Broadcast] = None,
    ):
        self.url = url
        self.origin = origin or generate_ulid()
        # A shared Broadcast is connected and closed by its owner
        self._owns_broadcast = broadcast is None
        self.broadcast = broadcast or Broadcast(url)
        self.hub: Optional["BroadcastHub"] = None
        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self._listeners: Dict[str, "asyncio.Task[None]"] = {}
        self._ready: Dict[str, asyncio.Event] = {}
        self._pending: Set["asyncio.Task[None]"] = set()
        self.connected = False

    def attach(self, hub: "BroadcastHub") -> None:
        self.hub = hub

    async def connect(self) -> None:
        """
        Connect to the Broadcaster backend.

        Call during application startup (in lifespan manager).
        """
        if self._owns_broadcast:
            await self.broadcast.connect()
        self.loop = asyncio.get_running_loop()
        self.connected = True
        logger.info(f"[RELAY] Connected to {self.url} as origin {self.origin}")

    async def disconnect(self) -> None:
        """Stop every listener and close the backend connection."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
        listeners = list(self._listeners.values())
        self._listeners.clear()
        self._ready.clear()
        for task in listeners:
            task.cancel()
        for task in listeners:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.error(f"[RELAY] Listener failed during shutdown: {str(e)}")

        if self.connected:
            if self._owns_broadcast:
                await self.broadcast.disconnect()
            self.connected = False
            logger.info("[RELAY] Disconnected")

    # Outbound

    def forward(self, channel_id: str, frame: Dict[str, Any]) -> None:
        """Schedule a publish of ``frame`` to other workers without waiting."""
        if not self.connected or self.loop is None:
            return

        if _running_loop() is self.loop:
            self._spawn_publish(channel_id, frame)
        else:
            self.loop.call_soon_threadsafe(self._spawn_publish, channel_id, frame)

    def _spawn_publish(self, channel_id: str, frame: Dict[str, Any]) -> None:
        # The loop holds tasks weakly; keep each one until it finishes
        if self.loop is None:
            return
        task = self.loop.create_task(self.publish(channel_id, frame))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def publish(self, channel_id: str, frame: Dict[str, Any]) -> None:
        message = json.dumps({"origin": self.origin, "frame": frame}, default=str)
        try:
            await self.broadcast.publish(channel=topic_key(channel_id), message=message)
        except Exception as e:
            logger.error(f"[RELAY] Publish to {channel_id} failed: {str(e)}")

    # Inbound

    def listen(self, channel_id: str) -> None:
        """Start relaying a topic into the local hub (no-op if already listening)."""
        if not self.connected or self.loop is None:
            return
        if _running_loop() is not self.loop:
            self.loop.call_soon_threadsafe(self.listen, channel_id)
            return
        if channel_id in self._listeners:
            return

        self._ready[channel_id] = asyncio.Event()
        self._listeners[channel_id] = self.loop.create_task(self._listen(channel_id))

    def stop(self, channel_id: str) -> None:
        if self.loop is None:
            return
        if _running_loop() is not self.loop:
            self.loop.call_soon_threadsafe(self.stop, channel_id)
            return

        task = self._listeners.pop(channel_id, None)
        self._ready.pop(channel_id, None)
        if task is not None:
            task.cancel()

    async def wait_listening(self, channel_id: str, timeout: float = 5.0) -> None:
        """Wait until the listener for ``channel_id`` is subscribed upstream."""
        ready = self._ready.get(channel_id)
        if ready is None:
            raise RuntimeError(f"Not listening on channel {channel_id}")
        await asyncio.wait_for(ready.wait(), timeout=timeout)

    def is_listening(self, channel_id: str) -> bool:
        return channel_id in self._listeners

    async def _listen(self, channel_id: str) -> None:
        try:
            async with self.broadcast.subscribe(channel=topic_key(channel_id)) as subscriber:
                ready = self._ready.get(channel_id)
                if ready is not None:
                    ready.set()
                logger.info(f"[RELAY] Listening on {channel_id}")
                async for event in subscriber:
                    self._deliver(channel_id, event.message)
        except asyncio.CancelledError:
            logger.debug(f"[RELAY] Stopped listening on {channel_id}")
            raise
        except Exception as e:
            logger.error(f"[RELAY] Listener for {channel_id} failed: {str(e)}", exc_info=True)

    def _deliver(self, channel_id: str, raw: str) -> None:
        try:
            envelope = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"[RELAY] Invalid JSON on {channel_id}: {e}")
            return

        if envelope.get("origin") == self.origin or self.hub is None:
            return
        frame = envelope.get("frame")
        if not isinstance(frame, dict) or "event" not in frame:
            logger.warning(f"[RELAY] Malformed frame on {channel_id}")
            return
        self.hub.deliver_local(channel_id, frame)


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


def create_relay() -> Optional[BroadcastRelay]:
    """Relay configured from settings, or None when disabled."""
    if not settings.relay_enabled:
        return None
    return BroadcastRelay(settings.broadcast_url)
