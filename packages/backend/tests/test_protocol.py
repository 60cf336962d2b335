"""Upstream protocol tests — message encoding and inbound parsing."""

import json

import pytest

from liverelay.config import DEFAULT_QUERY_TEMPLATE
from liverelay.relay import protocol
from liverelay.relay.config import build_headers


def test_init_message_carries_headers():
    headers = build_headers(user_agent="relay/1.0", auth_token="abc", api_version="3")
    msg = json.loads(protocol.init_message(headers))
    assert msg == {
        "type": "connection_init",
        "payload": {
            "User-Agent": "relay/1.0",
            "Authorization": 'ScoreConnect access_token="abc"',
            "X-Api-Version": "3",
        },
    }


def test_build_headers_omits_blank_values():
    assert build_headers() == {}
    assert build_headers(auth_token="t") == {"Authorization": 'ScoreConnect access_token="t"'}


def test_subscribe_message_targets_event():
    msg = json.loads(protocol.subscribe_message("98765", DEFAULT_QUERY_TEMPLATE))
    assert msg["id"] == "1"
    assert msg["type"] == "start"
    assert msg["payload"]["variables"] == {"eventIds": ["/baseball/events/98765"]}
    assert '"/baseball/events/98765"' in msg["payload"]["query"]
    assert "MATCH_ID" not in msg["payload"]["query"]


def test_parse_message():
    msg = protocol.parse_message('{"type": "data", "id": 1, "payload": {"x": 1}}')
    assert msg.type == "data"
    assert msg.id == "1"
    assert msg.payload == {"x": 1}


def test_parse_message_accepts_bytes():
    assert protocol.parse_message(b'{"type": "ka"}').type == "ka"


@pytest.mark.parametrize("raw", [
    "not json",
    "",
    "[1, 2]",
    '"connection_ack"',
    '{"payload": {}}',
    '{"type": 5}',
    b"\x80\x81\x82\x83",
])
def test_parse_message_rejects_garbage(raw):
    with pytest.raises(protocol.MalformedMessage):
        protocol.parse_message(raw)


def test_extract_event(sample_event):
    msg = protocol.parse_message(json.dumps({
        "type": "data",
        "payload": {"data": {"eventUpdated": {"event": sample_event}}},
    }))
    assert protocol.extract_event(msg) == sample_event


@pytest.mark.parametrize("payload", [
    None,
    {},
    {"data": None},
    {"data": {"eventUpdated": None}},
    {"data": {"eventUpdated": {"event": None}}},
    {"data": {"eventUpdated": {"event": "E1"}}},
    {"errors": [{"message": "boom"}]},
])
def test_extract_event_missing(payload):
    msg = protocol.UpstreamMessage(type="data", payload=payload)
    assert protocol.extract_event(msg) is None
