"""Application configuration via environment variables.

Uses pydantic-settings to load config from env vars with LIVERELAY_ prefix.
No YAML files, no file-based config — just env vars (12-factor app style).

Learn: the relay layer never reads Settings directly. It gets a RelayConfig
(see liverelay.relay.config) built from these values, so tests can hand it
short reconnect delays without touching the environment.
"""

from pydantic import model_validator
from pydantic_settings import BaseSettings

DEFAULT_QUERY_TEMPLATE = (
    'subscription{eventUpdated(eventIds:["/baseball/events/MATCH_ID"])'
    "{event{...on BaseballEvent{id awayTeam{abbreviation}homeTeam{abbreviation}"
    "boxScore{awayScore homeScore balls strikes outs liveLastPlay "
    "progress{description}firstBaseOccupied secondBaseOccupied "
    "thirdBaseOccupied}}}}}"
)


class Settings(BaseSettings):
    """All app configuration. Set via LIVERELAY_* env vars."""

    # Upstream provider (WebSocket, graphql-ws dialect)
    upstream_url: str = ""
    upstream_user_agent: str = ""
    upstream_auth_token: str = ""
    upstream_api_version: str = ""
    upstream_subprotocol: str = "graphql-ws"
    upstream_open_timeout: float = 10.0
    query_template: str = DEFAULT_QUERY_TEMPLATE

    # Reconnect policy
    reconnect_delay_seconds: float = 1.0
    max_reconnect_attempts: int = 3

    # Downstream subscribers
    keepalive_interval_seconds: float = 30.0
    subscriber_queue_size: int = 16

    # Schedule passthrough
    schedule_url: str = ""
    events_url: str = ""
    schedule_timeout_seconds: float = 10.0

    # Server
    environment: str = "development"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 3001
    log_level: str = "INFO"

    # CORS — scoreboards are embedded anywhere, so allow all by default
    cors_origins: list[str] = ["*"]

    model_config = {"env_prefix": "LIVERELAY_"}

    @model_validator(mode="after")
    def validate_production_settings(self):
        """Refuse to boot outside development without an upstream to relay."""
        if self.environment != "development" and not self.upstream_url:
            raise ValueError(
                "LIVERELAY_UPSTREAM_URL must be set in non-development "
                "environments (e.g. wss://provider.example/graphql)."
            )
        return self


# Singleton — import this everywhere
settings = Settings()
