"""Relay core — upstream sessions, fan-out hubs, and the registry tying them.

Learn: Data flows one way:
1. UpstreamSession reads the provider's WebSocket (one per tracked event)
2. normalize() turns each raw event into a Snapshot
3. FanoutHub caches the Snapshot and pushes it to every Subscriber queue
4. The SSE endpoint drains a Subscriber queue into the HTTP response

SessionRegistry owns all sessions and hubs, keyed by tracked event id.
"""

from liverelay.relay.config import RelayConfig
from liverelay.relay.hub import FanoutHub, Subscriber
from liverelay.relay.normalizer import normalize
from liverelay.relay.registry import SessionRegistry
from liverelay.relay.session import SessionState, UpstreamSession

__all__ = [
    "FanoutHub",
    "RelayConfig",
    "SessionRegistry",
    "SessionState",
    "Subscriber",
    "UpstreamSession",
    "normalize",
]
