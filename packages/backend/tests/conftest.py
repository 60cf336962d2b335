"""Test fixtures — a scripted upstream instead of a real provider socket.

Learn: UpstreamSession only needs a zero-arg callable returning an
``async with``-able connection that can ``send()`` and be iterated.
FakeConnector hands out FakeUpstream objects the test drives by hand:

    upstream = connector.latest
    upstream.ack()                      # server → connection_ack
    upstream.data({"boxScore": {...}})  # server → data
    upstream.fail()                     # transport error
    upstream.hang_up()                  # clean close from the server

Relay timings are shrunk (10ms reconnect delay, 50ms keep-alive) so the
retry scenarios finish quickly.
"""

import asyncio
import json
from contextlib import asynccontextmanager

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from liverelay.config import Settings
from liverelay.main import create_app
from liverelay.relay.config import RelayConfig, build_headers
from liverelay.relay.registry import SessionRegistry
from liverelay.services.schedule import ScheduleClient

_HANG_UP = object()


class FakeUpstream:
    """One scripted provider connection."""

    def __init__(self):
        self.sent: list[dict] = []
        self.closed = False
        self._inbox: asyncio.Queue = asyncio.Queue()

    async def send(self, data: str) -> None:
        self.sent.append(json.loads(data))

    def push(self, message) -> None:
        self._inbox.put_nowait(message if isinstance(message, (str, bytes)) else json.dumps(message))

    def ack(self) -> None:
        self.push({"type": "connection_ack"})

    def data(self, event: dict) -> None:
        self.push({
            "id": "1",
            "type": "data",
            "payload": {"data": {"eventUpdated": {"event": event}}},
        })

    def fail(self, exc: Exception = None) -> None:
        self._inbox.put_nowait(exc or OSError("connection reset by peer"))

    def hang_up(self) -> None:
        self._inbox.put_nowait(_HANG_UP)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._inbox.get()
        if item is _HANG_UP:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item


class FakeConnector:
    """Connector that records attempts and can refuse connections."""

    def __init__(self):
        self.attempts = 0
        self.upstreams: list[FakeUpstream] = []
        self.refusals = 0  # refuse this many upcoming attempts
        self.down = False  # refuse every attempt
        self.auto_ack = False
        self.open = 0
        self.max_open = 0

    def refuse(self, times: int = 1) -> None:
        self.refusals += times

    @property
    def latest(self) -> FakeUpstream:
        return self.upstreams[-1]

    def __call__(self):
        return self._connect()

    @asynccontextmanager
    async def _connect(self):
        self.attempts += 1
        if self.down or self.refusals:
            if self.refusals:
                self.refusals -= 1
            raise OSError("connection refused")

        upstream = FakeUpstream()
        self.upstreams.append(upstream)
        self.open += 1
        self.max_open = max(self.max_open, self.open)
        if self.auto_ack:
            upstream.ack()
        try:
            yield upstream
        finally:
            self.open -= 1
            upstream.closed = True


async def wait_until(predicate, timeout: float = 2.0) -> None:
    """Poll the event loop until predicate() is truthy."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.001)


SAMPLE_EVENT = {
    "id": "/baseball/events/E1",
    "awayTeam": {"abbreviation": "NYY"},
    "homeTeam": {"abbreviation": "BOS"},
    "boxScore": {
        "awayScore": 3,
        "homeScore": 2,
        "balls": 2,
        "strikes": 1,
        "outs": 1,
        "liveLastPlay": "Judge doubles to left.",
        "progress": {"description": "Top 5th"},
        "firstBaseOccupied": False,
        "secondBaseOccupied": True,
        "thirdBaseOccupied": None,
    },
}


@pytest.fixture()
def sample_event():
    return json.loads(json.dumps(SAMPLE_EVENT))


@pytest.fixture()
def settle():
    return wait_until


@pytest.fixture()
def connector():
    return FakeConnector()


@pytest.fixture()
def relay_config():
    return RelayConfig(
        upstream_url="wss://upstream.test/graphql",
        headers=build_headers(user_agent="liverelay-test", auth_token="tok", api_version="2"),
        reconnect_delay=0.01,
        max_reconnect_attempts=3,
        keepalive_interval=0.05,
        subscriber_queue_size=4,
    )


@pytest_asyncio.fixture()
async def registry(relay_config, connector):
    reg = SessionRegistry(relay_config, connector=connector)
    try:
        yield reg
    finally:
        await reg.close()


@pytest.fixture()
def test_settings():
    return Settings(
        reconnect_delay_seconds=0.01,
        keepalive_interval_seconds=0.05,
        schedule_url="https://schedule.test/today",
        events_url="https://schedule.test/events?ids=",
    )


@pytest.fixture()
def schedule_handler():
    """Default provider schedule: no games today. Override per test."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"current_group": {"event_ids": []}})

    return handler


@pytest_asyncio.fixture()
async def app(test_settings, connector, schedule_handler):
    schedule = ScheduleClient(test_settings, transport=httpx.MockTransport(schedule_handler))
    application = create_app(test_settings, connector=connector, schedule=schedule)
    try:
        yield application
    finally:
        await application.state.registry.close()
        await schedule.close()


@pytest_asyncio.fixture()
async def client(app):
    """HTTP client bound to the app (no lifespan; fixtures own teardown)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
