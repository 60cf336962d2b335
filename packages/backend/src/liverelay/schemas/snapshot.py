"""Pydantic schema for the normalized scoreboard snapshot.

Learn: Python attributes are snake_case, the wire format is camelCase.
The alias generator handles the mapping, and populate_by_name lets the
normalizer build instances with the Python names. Always serialize with
``model_dump_json(by_alias=True)``.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

_FROZEN_CAMEL = ConfigDict(
    frozen=True,
    alias_generator=to_camel,
    populate_by_name=True,
)


class Progress(BaseModel):
    model_config = _FROZEN_CAMEL

    description: str = ""


class Bases(BaseModel):
    model_config = _FROZEN_CAMEL

    first: bool = False
    second: bool = False
    third: bool = False


class Snapshot(BaseModel):
    """Latest known state of one tracked event. Replaced, never mutated."""

    model_config = _FROZEN_CAMEL

    away_team: str = "TBD"
    home_team: str = "TBD"
    away_score: int = 0
    home_score: int = 0
    balls: int = 0
    strikes: int = 0
    outs: int = 0
    live_last_play: str = ""
    progress: Progress = Progress()
    bases: Bases = Bases()

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)
