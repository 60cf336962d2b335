"""Snapshot normalizer — raw upstream event → Snapshot.

Learn: A live scoreboard should degrade gracefully rather than stall on
partial data. normalize() never raises: anything missing, null, or of the
wrong type falls back to the field's default.
"""

from typing import Any, Mapping

from liverelay.schemas.snapshot import Bases, Progress, Snapshot

TBD = "TBD"


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _text(value: Any, default: str = "") -> str:
    return value if isinstance(value, str) and value else default


def _count(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return 0


def normalize(event: Any) -> Snapshot:
    """Map an upstream ``BaseballEvent`` object onto a Snapshot."""
    event = _mapping(event)
    box = _mapping(event.get("boxScore"))

    return Snapshot(
        away_team=_text(_mapping(event.get("awayTeam")).get("abbreviation"), TBD),
        home_team=_text(_mapping(event.get("homeTeam")).get("abbreviation"), TBD),
        away_score=_count(box.get("awayScore")),
        home_score=_count(box.get("homeScore")),
        balls=_count(box.get("balls")),
        strikes=_count(box.get("strikes")),
        outs=_count(box.get("outs")),
        live_last_play=_text(box.get("liveLastPlay")),
        progress=Progress(description=_text(_mapping(box.get("progress")).get("description"))),
        bases=Bases(
            first=bool(box.get("firstBaseOccupied")),
            second=bool(box.get("secondBaseOccupied")),
            third=bool(box.get("thirdBaseOccupied")),
        ),
    )
