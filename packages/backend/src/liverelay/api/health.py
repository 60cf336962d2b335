"""Health check endpoint.

Learn: The relay has no database to ping. "Healthy" means the process is
up; the live session count shows how many upstream sockets are in use.
"""

from fastapi import APIRouter, Depends

from liverelay import __version__
from liverelay.api.deps import get_registry
from liverelay.relay.registry import SessionRegistry

router = APIRouter()


@router.get("/health")
async def health_check(registry: SessionRegistry = Depends(get_registry)):
    """Check server health and report live upstream sessions."""
    return {
        "status": "healthy",
        "server": "ok",
        "version": __version__,
        "sessions": registry.live_count,
    }
