"""Upstream wire protocol — graphql-ws subscription messages.

Learn: The provider speaks the classic graphql-ws dialect:

  client → connection_init {payload: headers}
  server → connection_ack
  client → start {id, payload: {variables, query}}
  server → data {payload: {data: {eventUpdated: {event: {...}}}}}  (repeated)

Anything else the server sends (ka, complete, error) is ignored by the
session. This module only encodes and decodes; it holds no state.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Optional, Union

# ─── Message types ────────────────────────────────────────

CONNECTION_INIT = "connection_init"
CONNECTION_ACK = "connection_ack"
START = "start"
DATA = "data"

SUBSCRIPTION_ID = "1"
EVENT_ID_PLACEHOLDER = "MATCH_ID"
EVENT_PATH = "/baseball/events/{event_id}"


class MalformedMessage(Exception):
    """Inbound frame that is not a JSON object with a string ``type``."""


@dataclass(frozen=True)
class UpstreamMessage:
    type: str
    payload: Any = None
    id: Optional[str] = None
    raw: dict = field(default_factory=dict, compare=False, repr=False)


# ─── Outbound ─────────────────────────────────────────────


def init_message(headers: dict[str, str]) -> str:
    return json.dumps({"type": CONNECTION_INIT, "payload": headers})


def subscribe_message(event_id: str, query_template: str) -> str:
    """Build the ``start`` request for one tracked event."""
    return json.dumps({
        "id": SUBSCRIPTION_ID,
        "type": START,
        "payload": {
            "variables": {"eventIds": [EVENT_PATH.format(event_id=event_id)]},
            "query": query_template.replace(EVENT_ID_PLACEHOLDER, event_id),
        },
    })


# ─── Inbound ──────────────────────────────────────────────


def parse_message(raw: Union[str, bytes]) -> UpstreamMessage:
    """Decode one inbound frame. Raises MalformedMessage on garbage."""
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise MalformedMessage(f"invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MalformedMessage(f"expected object, got {type(data).__name__}")

    msg_type = data.get("type")
    if not isinstance(msg_type, str):
        raise MalformedMessage("missing message type")

    msg_id = data.get("id")
    return UpstreamMessage(
        type=msg_type,
        payload=data.get("payload"),
        id=str(msg_id) if msg_id is not None else None,
        raw=data,
    )


def extract_event(message: UpstreamMessage) -> Optional[dict]:
    """Pull ``payload.data.eventUpdated.event`` out of a data message."""
    node: Any = message.payload
    for key in ("data", "eventUpdated", "event"):
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node if isinstance(node, dict) else None
