"""Competition document returned by football-data.org `/v4/competitions/{code}`.

The upstream schema evolves and historical seasons carry values nobody planned
for, so parsing is lenient:
- unknown fields are ignored;
- unexpected enum values (including the literal string "null" seen on the
  1948-49 season) become UNKNOWN instead of failing;
- JSON null stays None.

`to_document()` is the canonical form written to the raw store: upstream
camelCase names, ISO-8601 dates, nulls omitted.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field


class CompetitionType(str, Enum):
    LEAGUE = "LEAGUE"
    CUP = "CUP"
    PLAYOFFS = "PLAYOFFS"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def _missing_(cls, value: object) -> "CompetitionType":
        return cls.UNKNOWN


class Stage(str, Enum):
    REGULAR_SEASON = "REGULAR_SEASON"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def _missing_(cls, value: object) -> "Stage":
        return cls.UNKNOWN


def _lenient_enum(enum_cls: type[Enum]):
    def coerce(value: Any) -> Any:
        if value is None or isinstance(value, enum_cls):
            return value
        if isinstance(value, (list, dict)):
            return enum_cls("UNKNOWN").value
        return enum_cls(value).value

    return BeforeValidator(coerce)


def _lenient_stages(value: Any) -> Any:
    if not isinstance(value, list):
        return value
    return [Stage.UNKNOWN.value if item is None else item for item in value]


LenientCompetitionType = Annotated[CompetitionType, _lenient_enum(CompetitionType)]
LenientStage = Annotated[Stage, _lenient_enum(Stage)]


class _Document(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)


class Area(_Document):
    id: int
    name: Optional[str] = None
    code: Optional[str] = None
    flag: Optional[str] = None


class Team(_Document):
    id: int
    name: Optional[str] = None
    short_name: Optional[str] = Field(default=None, alias="shortName")
    tla: Optional[str] = None
    crest: Optional[str] = None
    address: Optional[str] = None
    website: Optional[str] = None
    founded: Optional[int] = None
    club_colors: Optional[str] = Field(default=None, alias="clubColors")
    venue: Optional[str] = None
    last_updated: Optional[datetime] = Field(default=None, alias="lastUpdated")


class Season(_Document):
    id: int
    start_date: Optional[date] = Field(default=None, alias="startDate")
    end_date: Optional[date] = Field(default=None, alias="endDate")
    current_matchday: Optional[int] = Field(default=None, alias="currentMatchday")
    winner: Optional[Team] = None
    stages: Annotated[Optional[list[LenientStage]], BeforeValidator(_lenient_stages)] = None


class Competition(_Document):
    area: Optional[Area] = None
    id: int
    name: Optional[str] = None
    code: Optional[str] = None
    type: Optional[LenientCompetitionType] = None
    emblem: Optional[str] = None
    current_season: Optional[Season] = Field(default=None, alias="currentSeason")
    seasons: Optional[list[Season]] = None
    teams: Optional[list[Team]] = None
    last_updated: Optional[datetime] = Field(default=None, alias="lastUpdated")

    @classmethod
    def from_json(cls, body: bytes | str) -> "Competition":
        """Parse an upstream response body. Raises pydantic.ValidationError."""
        return cls.model_validate_json(body)

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
