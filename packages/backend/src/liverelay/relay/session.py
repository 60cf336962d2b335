"""Upstream session — one provider WebSocket per tracked event.

Learn: The session is an explicit state machine running inside a single
asyncio task:

  connecting → handshaking → subscribed ─┬→ erroring → connecting (retry)
                                         ├→ closing → closed (stop())
                                         └→ closed (gave up / nobody listening)

On transport failure the session reconnects after a fixed delay, but only
while its hub still has subscribers and at most max_reconnect_attempts
times over the session's lifetime. The counter is never reset, so an
upstream that acks and then drops every connection still runs out of
retries. A fresh session starts at zero. The reconnect delay is a plain
asyncio.sleep inside the task, so stop() cancelling the
task also cancels any pending reconnect.

The session never removes itself from the registry; it reports through
the on_closed callback and the registry decides.
"""

import asyncio
import enum
import functools
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import structlog
import websockets
from websockets.exceptions import WebSocketException

from liverelay.relay import protocol
from liverelay.relay.config import RelayConfig
from liverelay.relay.hub import FanoutHub
from liverelay.relay.normalizer import normalize

logger = structlog.get_logger()

# A zero-arg callable returning ``async with``-able connection objects that
# support ``await conn.send(str)`` and ``async for frame in conn``.
Connector = Callable[[], AbstractAsyncContextManager]

TRANSPORT_ERRORS = (OSError, asyncio.TimeoutError, WebSocketException)


class SessionState(str, enum.Enum):
    CONNECTING = "connecting"
    HANDSHAKING = "handshaking"
    SUBSCRIBED = "subscribed"
    ERRORING = "erroring"
    CLOSING = "closing"
    CLOSED = "closed"


_TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.CONNECTING: frozenset({
        SessionState.HANDSHAKING, SessionState.ERRORING,
        SessionState.CLOSING, SessionState.CLOSED,
    }),
    SessionState.HANDSHAKING: frozenset({
        SessionState.SUBSCRIBED, SessionState.ERRORING,
        SessionState.CLOSING, SessionState.CLOSED,
    }),
    SessionState.SUBSCRIBED: frozenset({
        SessionState.ERRORING, SessionState.CLOSING, SessionState.CLOSED,
    }),
    SessionState.ERRORING: frozenset({
        SessionState.CONNECTING, SessionState.CLOSING, SessionState.CLOSED,
    }),
    SessionState.CLOSING: frozenset({SessionState.CLOSED}),
    SessionState.CLOSED: frozenset(),
}


class InvalidTransition(RuntimeError):
    pass


@dataclass
class SessionStats:
    """Runtime counters for monitoring."""
    connects: int = 0
    messages_received: int = 0
    snapshots_published: int = 0
    messages_dropped: int = 0
    started_at: Optional[datetime] = None
    last_message_at: Optional[datetime] = None


def connect_upstream(config: RelayConfig) -> AbstractAsyncContextManager:
    """Default connector: a real WebSocket to the configured provider."""
    kwargs: dict[str, Any] = {"open_timeout": config.open_timeout}
    if config.subprotocol:
        kwargs["subprotocols"] = [config.subprotocol]
    return websockets.connect(config.upstream_url, **kwargs)


class UpstreamSession:
    """Owns the upstream subscription for a single tracked event."""

    def __init__(
        self,
        event_id: str,
        hub: FanoutHub,
        config: RelayConfig,
        connector: Optional[Connector] = None,
        on_closed: Optional[Callable[["UpstreamSession"], None]] = None,
    ):
        self.event_id = event_id
        self.hub = hub
        self.config = config
        self.state = SessionState.CONNECTING
        self.reconnect_attempts = 0
        self.stats = SessionStats()
        self._connector = connector or functools.partial(connect_upstream, config)
        self._on_closed = on_closed
        self._task: Optional[asyncio.Task] = None
        self._conn: Any = None

    @property
    def closed(self) -> bool:
        return self.state is SessionState.CLOSED

    @property
    def connected(self) -> bool:
        return self._conn is not None

    # ─── Lifecycle ────────────────────────────────────────

    def start(self) -> None:
        """Spawn the session task. Calling it twice is a no-op."""
        if self._task is not None or self.closed:
            return
        self.stats.started_at = datetime.now(timezone.utc)
        self._task = asyncio.create_task(self._run(), name=f"upstream:{self.event_id}")

    async def stop(self) -> None:
        """Close the connection and cancel any pending reconnect."""
        if self.closed:
            return
        if self.state is not SessionState.CLOSING:
            self._transition(SessionState.CLOSING)

        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        # Never started, so _run's cleanup never happened
        if not self.closed:
            self._finish()

    def _transition(self, new: SessionState) -> None:
        if new not in _TRANSITIONS[self.state]:
            raise InvalidTransition(f"{self.state.value} → {new.value}")
        logger.debug(
            "upstream.state_changed",
            event_id=self.event_id,
            old=self.state.value,
            new=new.value,
        )
        self.state = new

    def _finish(self) -> None:
        self._transition(SessionState.CLOSED)
        logger.info(
            "upstream.closed",
            event_id=self.event_id,
            reconnect_attempts=self.reconnect_attempts,
            published=self.stats.snapshots_published,
        )
        if self._on_closed is not None:
            self._on_closed(self)

    # ─── Task body ────────────────────────────────────────

    async def _run(self) -> None:
        # Don't carry the request_id of whichever HTTP request started us
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(event_id=self.event_id)

        try:
            while True:
                await self._connect_once()
                if not self._should_reconnect():
                    break

                self.reconnect_attempts += 1
                self._transition(SessionState.ERRORING)
                logger.info(
                    "upstream.reconnect_scheduled",
                    attempt=self.reconnect_attempts,
                    max_attempts=self.config.max_reconnect_attempts,
                    delay=self.config.reconnect_delay,
                )
                await asyncio.sleep(self.config.reconnect_delay)

                if self.hub.subscriber_count == 0:
                    logger.info("upstream.reconnect_cancelled", reason="no_subscribers")
                    break
                self._transition(SessionState.CONNECTING)
        except Exception:
            logger.exception("upstream.session_crashed", state=self.state.value)
        finally:
            self._conn = None
            if not self.closed:
                self._finish()

    async def _connect_once(self) -> None:
        """One connection lifetime. Returns on transport error or close."""
        self.stats.connects += 1
        try:
            async with self._connector() as conn:
                self._conn = conn
                self._transition(SessionState.HANDSHAKING)
                await conn.send(protocol.init_message(self.config.headers))
                async for frame in conn:
                    await self._on_frame(conn, frame)
            logger.warning("upstream.connection_closed", state=self.state.value)
        except TRANSPORT_ERRORS as e:
            logger.warning(
                "upstream.transport_error",
                state=self.state.value,
                error=str(e) or type(e).__name__,
            )
        finally:
            self._conn = None

    def _should_reconnect(self) -> bool:
        if self.state is SessionState.CLOSING:
            return False
        if self.hub.subscriber_count == 0:
            logger.info("upstream.not_reconnecting", reason="no_subscribers")
            return False
        if self.reconnect_attempts >= self.config.max_reconnect_attempts:
            logger.warning(
                "upstream.reconnect_exhausted",
                attempts=self.reconnect_attempts,
            )
            return False
        return True

    # ─── Inbound messages ─────────────────────────────────

    async def _on_frame(self, conn: Any, frame: Any) -> None:
        self.stats.messages_received += 1
        self.stats.last_message_at = datetime.now(timezone.utc)

        try:
            message = protocol.parse_message(frame)
        except protocol.MalformedMessage as e:
            self.stats.messages_dropped += 1
            logger.warning("upstream.malformed_message", error=str(e))
            return

        if message.type == protocol.CONNECTION_ACK:
            if self.state is SessionState.HANDSHAKING:
                await conn.send(
                    protocol.subscribe_message(self.event_id, self.config.query_template)
                )
                self._transition(SessionState.SUBSCRIBED)
                logger.info("upstream.subscribed")
            return

        if message.type == protocol.DATA:
            self._on_data(message)
            return

        logger.debug("upstream.message_ignored", type=message.type)

    def _on_data(self, message: protocol.UpstreamMessage) -> None:
        if self.state is not SessionState.SUBSCRIBED:
            self.stats.messages_dropped += 1
            logger.warning("upstream.data_before_subscribe", state=self.state.value)
            return

        event = protocol.extract_event(message)
        if event is None:
            self.stats.messages_dropped += 1
            logger.warning("upstream.data_without_event")
            return

        delivered = self.hub.publish(normalize(event))
        self.stats.snapshots_published += 1
        logger.debug("upstream.snapshot_published", subscribers=delivered)
