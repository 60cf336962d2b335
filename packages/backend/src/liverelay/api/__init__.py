"""API route aggregation.

All routers registered here get mounted in main.py under /api/v1.
Nothing here requires authentication; viewers and operators are trusted
at the network edge.
"""

from fastapi import APIRouter

from liverelay.api.games import router as games_router
from liverelay.api.health import router as health_router
from liverelay.api.sessions import router as sessions_router
from liverelay.api.stream import router as stream_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(games_router, tags=["games"])
api_router.include_router(sessions_router, tags=["sessions"])
api_router.include_router(stream_router, tags=["stream"])
