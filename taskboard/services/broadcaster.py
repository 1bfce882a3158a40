"""Change broadcaster for live task synchronization.

Push channels (WebSocket connections) subscribe here. After every committed
task mutation the broadcaster re-reads the full task collection from the
store and hands it to every live channel.

Each channel has its own sender task holding at most one pending snapshot,
so fan-out never waits on a slow consumer: a newer snapshot replaces one
that has not gone out yet. Delivery is best-effort (no acknowledgement, no
retry). A send that exceeds the timeout is skipped and the channel stays
subscribed; a send that fails drops the channel and closes it so the client
reconnects and resynchronizes.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional, Protocol

from taskboard.services.task_store import TaskStore

logger = logging.getLogger("taskboard.broadcast")


class PushChannel(Protocol):
    async def send_json(self, data: Any) -> None: ...


Envelope = Callable[[list[dict[str, Any]]], Any]


def _raw(snapshot: list[dict[str, Any]]) -> Any:
    return snapshot


class _Subscription:
    """One channel plus the task that drains its pending snapshot."""

    def __init__(self, channel: PushChannel, envelope: Envelope) -> None:
        self.channel = channel
        self.envelope = envelope
        self.pending: Optional[list[dict[str, Any]]] = None
        self.wake = asyncio.Event()
        self.task: Optional[asyncio.Task] = None

    def offer(self, snapshot: list[dict[str, Any]]) -> None:
        self.pending = snapshot
        self.wake.set()


class Broadcaster:
    """Fans the authoritative task snapshot out to every subscribed channel.

    Each channel carries its own envelope so the plain push channel can get
    the bare task list while the socket binding wraps it in an event frame.
    """

    def __init__(self, store: TaskStore, send_timeout: float = 5.0) -> None:
        self._store = store
        self._send_timeout = send_timeout
        # keyed by id(): Starlette connections are Mappings and not hashable
        self._subscriptions: dict[int, _Subscription] = {}
        # snapshot reads and offers happen in the same order
        self._lock = asyncio.Lock()

    @property
    def channel_count(self) -> int:
        return len(self._subscriptions)

    async def subscribe(self, channel: PushChannel, envelope: Envelope = _raw) -> None:
        """Register a channel and queue the current snapshot as its first frame."""
        sub = _Subscription(channel, envelope)
        async with self._lock:
            snapshot = await self._store.snapshot()
            self._subscriptions[id(channel)] = sub
            sub.offer(snapshot)
        sub.task = asyncio.create_task(self._drain(sub))
        logger.info("Push channel connected (%d live)", len(self._subscriptions))

    def unregister(self, channel: PushChannel) -> None:
        sub = self._subscriptions.pop(id(channel), None)
        if sub is None:
            return
        if sub.task is not None and sub.task is not asyncio.current_task():
            sub.task.cancel()
        logger.info("Push channel disconnected (%d live)", len(self._subscriptions))

    async def notify_all(self) -> None:
        """Re-read the task collection and queue it for every live channel."""
        async with self._lock:
            snapshot = await self._store.snapshot()
            subs = list(self._subscriptions.values())
            for sub in subs:
                sub.offer(snapshot)
        logger.info("Broadcast %d tasks to %d channels", len(snapshot), len(subs))

    async def close(self) -> None:
        subs = list(self._subscriptions.values())
        self._subscriptions.clear()
        for sub in subs:
            if sub.task is not None:
                sub.task.cancel()
        await asyncio.gather(*(s.task for s in subs if s.task is not None), return_exceptions=True)

    async def _drain(self, sub: _Subscription) -> None:
        while True:
            await sub.wake.wait()
            sub.wake.clear()
            snapshot, sub.pending = sub.pending, None
            if snapshot is None:
                continue
            try:
                await asyncio.wait_for(sub.channel.send_json(sub.envelope(snapshot)), timeout=self._send_timeout)
            except asyncio.TimeoutError:
                logger.warning("Push channel too slow, skipped one snapshot")
            except Exception as exc:
                logger.warning("Dropping push channel after failed send: %r", exc)
                self.unregister(sub.channel)
                await self._close_channel(sub.channel)
                return

    @staticmethod
    async def _close_channel(channel: PushChannel) -> None:
        close = getattr(channel, "close", None)
        if close is None:
            return
        try:
            await close()
        except Exception as exc:
            logger.debug("Closing dropped channel failed: %r", exc)
