"""CLI tests — click commands against a mocked relay API."""

import json

import httpx
import pytest
from click.testing import CliRunner

from liverelay.cli import main as cli

SNAP = {
    "awayTeam": "NYY",
    "homeTeam": "BOS",
    "awayScore": 3,
    "homeScore": 2,
    "balls": 2,
    "strikes": 1,
    "outs": 1,
    "liveLastPlay": "Judge doubles to left.",
    "progress": {"description": "Top 5th"},
    "bases": {"first": False, "second": True, "third": False},
}

STATUS = {
    "event_id": "E1",
    "state": "subscribed",
    "reconnect_attempts": 0,
    "subscribers": 2,
    "keep_alive": True,
    "has_snapshot": True,
    "messages_received": 4,
    "snapshots_published": 3,
    "messages_dropped": 0,
}


def _handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path == "/api/v1/sessions/E1/start":
        return httpx.Response(200, json={"status": "OK", "event_id": "E1", "state": "connecting"})
    if path == "/api/v1/sessions/E1/stop":
        return httpx.Response(200, json={"status": "OK", "event_id": "E1", "stopped": True})
    if path == "/api/v1/sessions/E9/stop":
        return httpx.Response(200, json={"status": "OK", "event_id": "E9", "stopped": False})
    if path == "/api/v1/sessions":
        return httpx.Response(200, json=[STATUS])
    if path == "/api/v1/sessions/E1":
        return httpx.Response(200, json=STATUS)
    if path == "/api/v1/games":
        return httpx.Response(200, json={"message": "No MLB games for today.", "events": []})
    if path == "/api/v1/stream/E1":
        later = dict(SNAP, outs=2, liveLastPlay="")
        body = f": keep-alive\n\ndata: {json.dumps(SNAP)}\n\ndata: {json.dumps(later)}\n\n"
        return httpx.Response(200, text=body, headers={"content-type": "text/event-stream"})
    return httpx.Response(404, json={"detail": "Session not found"})


@pytest.fixture(autouse=True)
def mock_api(monkeypatch):
    def client():
        return httpx.AsyncClient(
            transport=httpx.MockTransport(_handler),
            base_url="http://relay.test",
        )

    monkeypatch.setattr(cli, "_client", client)


@pytest.fixture()
def runner():
    return CliRunner()


def test_start(runner):
    result = runner.invoke(cli.main, ["start", "E1"])
    assert result.exit_code == 0
    assert "Session E1: connecting" in result.output


def test_stop(runner):
    result = runner.invoke(cli.main, ["stop", "E1"])
    assert result.exit_code == 0
    assert "Session E1 stopped." in result.output


def test_stop_without_session(runner):
    result = runner.invoke(cli.main, ["stop", "E9"])
    assert result.exit_code == 0
    assert "No session running for E9." in result.output


def test_status_table(runner):
    result = runner.invoke(cli.main, ["status"])
    assert result.exit_code == 0
    assert "Sessions (1):" in result.output
    assert "E1" in result.output
    assert "subscribers=2" in result.output
    assert "keep-alive" in result.output


def test_status_single_json(runner):
    result = runner.invoke(cli.main, ["status", "E1", "--json"])
    assert result.exit_code == 0
    assert json.loads(result.output) == STATUS


def test_status_unknown_fails(runner):
    result = runner.invoke(cli.main, ["status", "E404"])
    assert result.exit_code == 1
    assert "Session not found" in result.output


def test_games(runner):
    result = runner.invoke(cli.main, ["games"])
    assert result.exit_code == 0
    assert "No MLB games for today." in result.output


def test_watch_prints_scoreboard(runner):
    result = runner.invoke(cli.main, ["watch", "E1", "--count", "2"])
    assert result.exit_code == 0
    lines = result.output.strip().splitlines()
    assert lines == [
        "NYY 3 - 2 BOS | B2 S1 O1 | -- 2B -- | Top 5th | Judge doubles to left.",
        "NYY 3 - 2 BOS | B2 S1 O2 | -- 2B -- | Top 5th",
    ]


def test_format_scoreboard_defaults():
    assert cli.format_scoreboard({}) == "TBD 0 - 0 TBD | B0 S0 O0 | -- -- --"
