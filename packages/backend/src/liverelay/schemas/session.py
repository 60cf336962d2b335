"""Pydantic schemas for the session control and status API."""

from pydantic import BaseModel


class SessionStarted(BaseModel):
    status: str = "OK"
    event_id: str
    state: str


class SessionStopped(BaseModel):
    status: str = "OK"
    event_id: str
    stopped: bool


class SessionStatus(BaseModel):
    event_id: str
    state: str
    reconnect_attempts: int
    subscribers: int
    keep_alive: bool
    has_snapshot: bool
    messages_received: int
    snapshots_published: int
    messages_dropped: int
