"""Fan-out hub — latest snapshot + subscriber set for one tracked event.

Learn: Every method here is synchronous. On a single event loop that makes
publish/subscribe/unsubscribe atomic: no other coroutine can run between
"set latest" and "deliver to everyone", so a late joiner can never miss
the snapshot it was supposed to see.

Each Subscriber owns a small bounded asyncio.Queue. Only the latest
snapshot matters, so a full queue drops its oldest entry instead of
blocking the publisher.
"""

import asyncio
import itertools
from typing import Callable, Optional

import structlog

from liverelay.schemas.snapshot import Snapshot

logger = structlog.get_logger()

_subscriber_ids = itertools.count(1)


class Subscriber:
    """One downstream channel. Writable until close() is called."""

    def __init__(self, event_id: str, maxsize: int = 16):
        self.id = next(_subscriber_ids)
        self.event_id = event_id
        self.queue: asyncio.Queue[Snapshot] = asyncio.Queue(maxsize=maxsize)
        self.closed = False
        self.dropped = 0

    def deliver(self, snapshot: Snapshot) -> bool:
        """Enqueue a snapshot. Returns False if the channel is closed."""
        if self.closed:
            return False
        if self.queue.full():
            # Stale snapshots are worthless once a newer one exists
            self.queue.get_nowait()
            self.dropped += 1
        self.queue.put_nowait(snapshot)
        return True

    def close(self) -> None:
        self.closed = True

    def __repr__(self) -> str:
        return f"<Subscriber #{self.id} event={self.event_id} closed={self.closed}>"


class FanoutHub:
    """Latest snapshot and active subscribers for one tracked event."""

    def __init__(self, event_id: str, on_empty: Optional[Callable[[str], None]] = None):
        self.event_id = event_id
        self.latest_snapshot: Optional[Snapshot] = None
        self._subscribers: set[Subscriber] = set()
        self._on_empty = on_empty

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def subscribers(self) -> frozenset[Subscriber]:
        return frozenset(self._subscribers)

    def publish(self, snapshot: Snapshot) -> int:
        """Cache the snapshot and push it to every live subscriber.

        Closed subscribers are pruned along the way. Returns the number of
        subscribers that received the snapshot.
        """
        self.latest_snapshot = snapshot
        delivered = 0
        for sub in list(self._subscribers):
            if sub.deliver(snapshot):
                delivered += 1
            else:
                self._subscribers.discard(sub)
                logger.debug("hub.subscriber_pruned", event_id=self.event_id, subscriber=sub.id)
        return delivered

    def subscribe(self, subscriber: Subscriber) -> None:
        """Add a subscriber and replay the cached snapshot to it alone."""
        if subscriber.event_id != self.event_id:
            raise ValueError(
                f"subscriber for {subscriber.event_id!r} cannot join hub {self.event_id!r}"
            )
        self._subscribers.add(subscriber)
        if self.latest_snapshot is not None:
            subscriber.deliver(self.latest_snapshot)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        """Remove a subscriber; notify the owner once nobody is left."""
        self._subscribers.discard(subscriber)
        if not self._subscribers and self._on_empty is not None:
            self._on_empty(self.event_id)
