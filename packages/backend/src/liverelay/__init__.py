"""LiveRelay — live-score relay service.

Keeps one upstream real-time subscription per tracked event, normalizes
every update into a small scoreboard snapshot, and fans it out to any
number of Server-Sent Events subscribers.
"""

__version__ = "0.1.0"
