"""Session registry — the process-scoped container for all relay state.

Learn: One entry per tracked event id:
- a FanoutHub (latest snapshot + subscribers)
- at most one live UpstreamSession feeding that hub
- an optional keep-alive mark (session was started explicitly)

ensure() and stop() run under a per-id asyncio.Lock. stop() keeps the
lock until the old session is fully closed, so a concurrent ensure()
waits for it and can never end up with two live sockets for one id.
Locks are created on demand and dropped once nobody holds or waits on
them, so ids that come and go leave nothing behind.

Sessions created to serve subscribers die with their last subscriber.
Sessions started explicitly (keep_alive=True) persist until stop().
"""

import asyncio
from collections import Counter
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import structlog

from liverelay.relay.config import RelayConfig
from liverelay.relay.hub import FanoutHub, Subscriber
from liverelay.relay.session import Connector, UpstreamSession
from liverelay.schemas.snapshot import Snapshot

logger = structlog.get_logger()


class SessionRegistry:
    """Maps tracked event id → (hub, session)."""

    def __init__(self, config: RelayConfig, connector: Optional[Connector] = None):
        self.config = config
        self._connector = connector
        self._hubs: dict[str, FanoutHub] = {}
        self._sessions: dict[str, UpstreamSession] = {}
        self._keep_alive: set[str] = set()
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: Counter[str] = Counter()
        self._pending: set[asyncio.Task] = set()

    # ─── Lookups ──────────────────────────────────────────

    def hub(self, event_id: str) -> FanoutHub:
        """Get or lazily create the hub for an event."""
        hub = self._hubs.get(event_id)
        if hub is None:
            hub = FanoutHub(event_id, on_empty=self.on_hub_empty)
            self._hubs[event_id] = hub
        return hub

    def get(self, event_id: str) -> Optional[UpstreamSession]:
        return self._sessions.get(event_id)

    def latest_snapshot(self, event_id: str) -> Optional[Snapshot]:
        hub = self._hubs.get(event_id)
        return hub.latest_snapshot if hub is not None else None

    def new_subscriber(self, event_id: str) -> Subscriber:
        return Subscriber(event_id, maxsize=self.config.subscriber_queue_size)

    @property
    def live_count(self) -> int:
        return sum(1 for s in self._sessions.values() if not s.closed)

    def is_keep_alive(self, event_id: str) -> bool:
        return event_id in self._keep_alive

    # ─── Lifecycle ────────────────────────────────────────

    async def ensure(self, event_id: str, *, keep_alive: bool = False) -> UpstreamSession:
        """Return the live session for event_id, starting one if needed."""
        async with self._locked(event_id):
            if keep_alive:
                self._keep_alive.add(event_id)

            session = self._sessions.get(event_id)
            if session is not None and not session.closed:
                return session

            session = UpstreamSession(
                event_id,
                self.hub(event_id),
                self.config,
                connector=self._connector,
                on_closed=self._session_closed,
            )
            self._sessions[event_id] = session
            session.start()
            logger.info("registry.session_created", event_id=event_id, keep_alive=keep_alive)
            return session

    async def stop(self, event_id: str) -> bool:
        """Tear down the session regardless of subscriber count.

        Returns True if a session existed. Open subscriber channels stay
        registered on the hub; they just stop receiving updates.
        """
        async with self._locked(event_id):
            return await self._stop_locked(event_id)

    def on_hub_empty(self, event_id: str) -> None:
        """Hub callback: the last subscriber left."""
        if event_id in self._keep_alive:
            return
        task = asyncio.create_task(self._stop_if_idle(event_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def close(self) -> None:
        """Stop every session (process shutdown)."""
        for task in list(self._pending):
            task.cancel()
        for event_id in list(self._sessions):
            await self.stop(event_id)
        logger.info("registry.closed")

    # ─── Internals ────────────────────────────────────────

    @asynccontextmanager
    async def _locked(self, event_id: str) -> AsyncIterator[None]:
        """Hold the per-id lock. The lock lives only while someone holds or waits on it."""
        lock = self._locks.get(event_id)
        if lock is None:
            lock = self._locks[event_id] = asyncio.Lock()
        self._lock_users[event_id] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[event_id] -= 1
            if not self._lock_users[event_id]:
                del self._lock_users[event_id]
                del self._locks[event_id]

    async def _stop_if_idle(self, event_id: str) -> None:
        async with self._locked(event_id):
            # A new subscriber (or an explicit start) may have arrived meanwhile
            hub = self._hubs.get(event_id)
            if event_id in self._keep_alive or (hub is not None and hub.subscriber_count):
                return
            if await self._stop_locked(event_id):
                logger.info("registry.idle_session_stopped", event_id=event_id)

    async def _stop_locked(self, event_id: str) -> bool:
        self._keep_alive.discard(event_id)
        session = self._sessions.pop(event_id, None)
        self._drop_idle_hub(event_id)
        if session is None:
            return False
        await session.stop()
        logger.info("registry.session_stopped", event_id=event_id)
        return True

    def _session_closed(self, session: UpstreamSession) -> None:
        """Session callback: it reached CLOSED on its own (or via stop)."""
        event_id = session.event_id
        if self._sessions.get(event_id) is not session:
            return
        del self._sessions[event_id]
        self._keep_alive.discard(event_id)
        self._drop_idle_hub(event_id)
        logger.info("registry.session_removed", event_id=event_id)

    def _drop_idle_hub(self, event_id: str) -> None:
        hub = self._hubs.get(event_id)
        if hub is not None and hub.subscriber_count == 0 and event_id not in self._keep_alive:
            del self._hubs[event_id]

    # ─── Status ───────────────────────────────────────────

    def status(self, event_id: str) -> Optional[dict[str, Any]]:
        session = self._sessions.get(event_id)
        hub = self._hubs.get(event_id)
        if session is None and hub is None:
            return None
        return {
            "event_id": event_id,
            "state": session.state.value if session else "closed",
            "reconnect_attempts": session.reconnect_attempts if session else 0,
            "subscribers": hub.subscriber_count if hub else 0,
            "keep_alive": event_id in self._keep_alive,
            "has_snapshot": bool(hub and hub.latest_snapshot is not None),
            "messages_received": session.stats.messages_received if session else 0,
            "snapshots_published": session.stats.snapshots_published if session else 0,
            "messages_dropped": session.stats.messages_dropped if session else 0,
        }

    def statuses(self) -> list[dict[str, Any]]:
        ids = sorted(set(self._sessions) | set(self._hubs))
        return [s for s in (self.status(i) for i in ids) if s is not None]
