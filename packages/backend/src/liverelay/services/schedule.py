"""Schedule passthrough — today's games from the provider's REST API.

Learn: Two requests, no transformation:
1. schedule_url → current_group.event_ids (today's tracked event ids)
2. events_url + comma-joined ids → the provider's event list, returned as-is

The relay does not interpret the event objects; clients pick ids from
them and open /stream/{event_id}.
"""

from typing import Any, Optional

import httpx
import structlog

from liverelay.config import Settings

logger = structlog.get_logger()

NO_GAMES_MESSAGE = "No MLB games for today."


class ScheduleError(Exception):
    pass


class ScheduleClient:
    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.schedule_url = settings.schedule_url
        self.events_url = settings.events_url
        self._client = httpx.AsyncClient(
            timeout=settings.schedule_timeout_seconds,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _get_json(self, url: str, what: str) -> Any:
        try:
            resp = await self._client.get(url)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as e:
            raise ScheduleError(f"{what} API failed: {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise ScheduleError(f"{what} API failed: {e}") from e

    async def todays_events(self) -> dict[str, Any]:
        """Fetch today's event ids, then the event objects for them."""
        schedule = await self._get_json(self.schedule_url, "Schedule")

        group = schedule.get("current_group") if isinstance(schedule, dict) else None
        event_ids = (group or {}).get("event_ids") or []
        if not event_ids:
            return {"message": NO_GAMES_MESSAGE, "events": []}

        events = await self._get_json(
            f"{self.events_url}{','.join(str(i) for i in event_ids)}", "Events"
        )
        logger.info("schedule.fetched", events=len(event_ids))
        return {"events": events}
