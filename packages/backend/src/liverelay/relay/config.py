"""Relay-layer configuration value object."""

from dataclasses import dataclass, field

from liverelay.config import DEFAULT_QUERY_TEMPLATE, Settings


@dataclass(frozen=True)
class RelayConfig:
    """Everything an UpstreamSession and its hub need to run.

    Learn: Built once from Settings by the app factory. Tests construct it
    directly with a tiny reconnect_delay so retry scenarios finish fast.
    """

    upstream_url: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    subprotocol: str = "graphql-ws"
    open_timeout: float = 10.0
    query_template: str = DEFAULT_QUERY_TEMPLATE

    reconnect_delay: float = 1.0
    max_reconnect_attempts: int = 3

    keepalive_interval: float = 30.0
    subscriber_queue_size: int = 16

    @classmethod
    def from_settings(cls, settings: Settings) -> "RelayConfig":
        return cls(
            upstream_url=settings.upstream_url,
            headers=build_headers(
                user_agent=settings.upstream_user_agent,
                auth_token=settings.upstream_auth_token,
                api_version=settings.upstream_api_version,
            ),
            subprotocol=settings.upstream_subprotocol,
            open_timeout=settings.upstream_open_timeout,
            query_template=settings.query_template,
            reconnect_delay=settings.reconnect_delay_seconds,
            max_reconnect_attempts=settings.max_reconnect_attempts,
            keepalive_interval=settings.keepalive_interval_seconds,
            subscriber_queue_size=settings.subscriber_queue_size,
        )


def build_headers(user_agent: str = "", auth_token: str = "", api_version: str = "") -> dict[str, str]:
    """Credential headers carried in the connection_init payload.

    Empty values are left out rather than sent as blank headers.
    """
    headers: dict[str, str] = {}
    if user_agent:
        headers["User-Agent"] = user_agent
    if auth_token:
        headers["Authorization"] = f'ScoreConnect access_token="{auth_token}"'
    if api_version:
        headers["X-Api-Version"] = api_version
    return headers
