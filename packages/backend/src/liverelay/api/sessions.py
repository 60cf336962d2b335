"""Session control API — pre-warm, stop, and inspect upstream sessions.

Learn: "start" is ensure() with the keep-alive mark: the session survives
having zero subscribers, so the first viewer gets a cached snapshot right
away. "stop" tears the session down unconditionally; any open streams for
the event stay connected but receive nothing new until a session is
started again.
"""

from fastapi import APIRouter, Depends, HTTPException

from liverelay.api.deps import get_registry
from liverelay.relay.registry import SessionRegistry
from liverelay.schemas.session import SessionStarted, SessionStatus, SessionStopped
from liverelay.schemas.snapshot import Snapshot

router = APIRouter()


# ─── Control ──────────────────────────────────────────────


@router.post("/sessions/{event_id}/start", response_model=SessionStarted)
async def start_session(
    event_id: str,
    registry: SessionRegistry = Depends(get_registry),
):
    """Start (or keep) an upstream session for an event. Idempotent."""
    session = await registry.ensure(event_id, keep_alive=True)
    return SessionStarted(event_id=event_id, state=session.state.value)


@router.post("/sessions/{event_id}/stop", response_model=SessionStopped)
async def stop_session(
    event_id: str,
    registry: SessionRegistry = Depends(get_registry),
):
    """Stop an event's upstream session regardless of subscribers."""
    stopped = await registry.stop(event_id)
    return SessionStopped(event_id=event_id, stopped=stopped)


# ─── Status ───────────────────────────────────────────────


@router.get("/sessions", response_model=list[SessionStatus])
async def list_sessions(registry: SessionRegistry = Depends(get_registry)):
    return registry.statuses()


@router.get("/sessions/{event_id}", response_model=SessionStatus)
async def get_session(
    event_id: str,
    registry: SessionRegistry = Depends(get_registry),
):
    status = registry.status(event_id)
    if status is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return status


@router.get("/snapshots/{event_id}", response_model=Snapshot)
async def get_snapshot(
    event_id: str,
    registry: SessionRegistry = Depends(get_registry),
):
    """Latest cached snapshot for an event, without opening a stream."""
    snapshot = registry.latest_snapshot(event_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="No snapshot cached")
    return snapshot
