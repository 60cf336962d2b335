"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. All relay state (hubs, sessions) lives in one SessionRegistry
created here and stored on app.state, so each app instance (and each
test) gets its own.

Lifespan only handles shutdown: closing every upstream socket and the
schedule HTTP client.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from liverelay import __version__
from liverelay.api import api_router
from liverelay.config import Settings, settings as default_settings
from liverelay.middleware.request_id import RequestIdMiddleware
from liverelay.relay.config import RelayConfig
from liverelay.relay.registry import SessionRegistry
from liverelay.relay.session import Connector
from liverelay.services.schedule import ScheduleClient

logger = structlog.get_logger()


def configure_logging(level: str) -> None:
    """Filter structlog output below the configured level."""
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs
    at shutdown.
    """
    cfg: Settings = app.state.settings
    logger.info(
        "relay.starting",
        version=__version__,
        environment=cfg.environment,
        port=cfg.port,
        upstream=cfg.upstream_url or "<unset>",
    )

    yield

    logger.info("relay.shutdown", sessions=app.state.registry.live_count)
    await app.state.registry.close()
    await app.state.schedule.close()


def create_app(
    settings: Optional[Settings] = None,
    *,
    connector: Optional[Connector] = None,
    schedule: Optional[ScheduleClient] = None,
) -> FastAPI:
    """Build and return the FastAPI application.

    connector and schedule are injection points for tests: a scripted
    upstream socket and a schedule client with a mock transport.
    """
    settings = settings or default_settings
    configure_logging(settings.log_level)

    app = FastAPI(
        title="LiveRelay",
        description="Live-score relay — one upstream subscription per event, fanned out over SSE",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.registry = SessionRegistry(RelayConfig.from_settings(settings), connector=connector)
    app.state.schedule = schedule or ScheduleClient(settings)

    # ── Middleware stack ──────────────────────────────────────
    # Starlette middleware executes in reverse order of registration.
    # Request flow: CORS → RequestId → handler
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: liverelay.main:app)
app = create_app()
