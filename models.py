"""Pydantic models for Ephemeris Calendar API request/response validation."""

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic import ConfigDict


# Enums
class BodyEnum(str, Enum):
    """Bodies tracked by the simplified model."""
    SUN = "sun"
    MOON = "moon"
    MERCURY = "mercury"
    VENUS = "venus"
    MARS = "mars"
    JUPITER = "jupiter"
    SATURN = "saturn"
    URANUS = "uranus"
    NEPTUNE = "neptune"
    PLUTO = "pluto"


ASPECT_ANGLES = (0, 60, 90, 120, 180)


def _validate_angles(v: Optional[list[int]]) -> Optional[list[int]]:
    if v is None:
        return v
    unknown = sorted(set(v) - set(ASPECT_ANGLES))
    if unknown:
        raise ValueError(f"Unsupported aspect angles: {unknown}; expected a subset of {list(ASPECT_ANGLES)}")
    return sorted(set(v))


def _blank_to_none(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip()
    return v or None


# Request Models
class LocationInput(BaseModel):
    """Observer location used by the remote position service."""
    latitude: float = Field(
        ...,
        ge=-90,
        le=90,
        description="Latitude in decimal degrees (-90 to 90)"
    )
    longitude: float = Field(
        ...,
        ge=-180,
        le=180,
        description="Longitude in decimal degrees (-180 to 180)"
    )
    timezone: Optional[str] = Field(
        None,
        description="Timezone name sent to the position service"
    )

    @field_validator('timezone')
    @classmethod
    def normalize_timezone(cls, v: Optional[str]) -> Optional[str]:
        """Treat blank timezone names as missing."""
        return _blank_to_none(v)


class NatalInput(BaseModel):
    """Natal reference configuration."""
    instant: Optional[str] = Field(
        "1990-01-01T12:00:00",
        description="Birth date and time in ISO 8601 format. Invalid values fall back to 2000-01-01T00:00:00Z",
        examples=["1990-06-15T14:30:00"]
    )
    bodies: list[BodyEnum] = Field(
        default=[BodyEnum.SUN, BodyEnum.MOON],
        description="Natal bodies to compare against transits"
    )
    timezone: Optional[str] = Field(
        None,
        description="Timezone name from the fixed offset table (e.g. 'Asia/Tokyo'). Unknown names use the server's local offset."
    )

    @field_validator('timezone')
    @classmethod
    def normalize_timezone(cls, v: Optional[str]) -> Optional[str]:
        """Treat blank timezone names as missing."""
        return _blank_to_none(v)


class PositionsRequest(BaseModel):
    """Request model for positions at a single instant."""
    instant: Optional[str] = Field(
        ...,
        description="Date and time in ISO 8601 format",
        examples=["2025-03-20T12:00:00"]
    )
    bodies: list[BodyEnum] = Field(
        default=list(BodyEnum),
        description="Bodies to calculate, in output order"
    )
    timezone: Optional[str] = Field(
        None,
        description="Timezone name from the fixed offset table"
    )

    @field_validator('timezone')
    @classmethod
    def normalize_timezone(cls, v: Optional[str]) -> Optional[str]:
        """Treat blank timezone names as missing."""
        return _blank_to_none(v)


class ClassifyRequest(BaseModel):
    """Request model for classifying a pair of longitudes."""
    longitude_a: float = Field(..., description="First ecliptic longitude in degrees")
    longitude_b: float = Field(..., description="Second ecliptic longitude in degrees")
    selected_angles: Optional[list[int]] = Field(
        None,
        description="Restrict classification to these canonical angles (default: all five)"
    )

    @field_validator('selected_angles')
    @classmethod
    def validate_selected_angles(cls, v: Optional[list[int]]) -> Optional[list[int]]:
        """Ensure only canonical aspect angles are selected."""
        return _validate_angles(v)

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [{
                "longitude_a": 10.0,
                "longitude_b": 70.0,
                "selected_angles": None
            }]
        }
    )


class EphemerisOptions(BaseModel):
    """Shared options for ephemeris calculations."""
    bodies: list[BodyEnum] = Field(
        default=[BodyEnum.SUN, BodyEnum.MOON],
        description="Transit bodies, in output order"
    )
    timezone: Optional[str] = Field(
        None,
        description="Timezone name from the fixed offset table for the calendar days"
    )
    natal: NatalInput = Field(
        default_factory=NatalInput,
        description="Natal reference configuration"
    )
    selected_angles: list[int] = Field(
        default=[0, 90, 180],
        description="Canonical aspect angles considered for natal aspects"
    )
    filter_transit_aspects: bool = Field(
        False,
        description="Also limit transit-to-transit aspects to the selected angles"
    )
    location: Optional[LocationInput] = Field(
        None,
        description="When set and a position service is configured, positions are fetched remotely"
    )

    @field_validator('timezone')
    @classmethod
    def normalize_timezone(cls, v: Optional[str]) -> Optional[str]:
        """Treat blank timezone names as missing."""
        return _blank_to_none(v)

    @field_validator('selected_angles')
    @classmethod
    def validate_selected_angles(cls, v: Optional[list[int]]) -> Optional[list[int]]:
        """Ensure only canonical aspect angles are selected."""
        return _validate_angles(v)


class EphemerisRequest(EphemerisOptions):
    """Request model for an ephemeris over an explicit date range."""
    start_date: date = Field(..., description="First calendar day (inclusive)")
    end_date: date = Field(..., description="Last calendar day (inclusive)")

    @model_validator(mode='after')
    def validate_date_range(self):
        """Ensure end_date is not before start_date."""
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [{
                "start_date": "2025-03-01",
                "end_date": "2025-03-31",
                "bodies": ["sun", "moon", "mercury", "venus", "mars"],
                "timezone": "Europe/Paris",
                "natal": {
                    "instant": "1990-06-15T14:30:00",
                    "bodies": ["sun", "moon"],
                    "timezone": "America/New_York"
                },
                "selected_angles": [0, 90, 180]
            }]
        }
    )


class MonthRequest(EphemerisOptions):
    """Request model for an ephemeris over one calendar month."""
    year: int = Field(..., ge=1, le=9999, description="Calendar year")
    month: int = Field(..., ge=1, le=12, description="Calendar month (1-12)")


# Response Models
class PositionData(BaseModel):
    """Body position data."""
    body: str
    longitude: float
    latitude: float
    distance: float
    sign: str
    sign_symbol: str
    degree: float
    formatted: str
    symbol: str
    color: str


class AspectData(BaseModel):
    """Aspect between two bodies."""
    body_a: str
    body_b: str
    type: str
    angle: float
    orb: float
    exact: bool
    symbol: str
    color: str


class EphemerisRecordData(BaseModel):
    """One calendar day."""
    date: str
    positions: list[PositionData]
    transit_aspects: list[AspectData]
    natal_aspects: list[AspectData]


class EphemerisSummary(BaseModel):
    """Summary statistics for an ephemeris calculation."""
    days: int
    transit_aspects: int
    natal_aspects: int


class EphemerisResponse(BaseModel):
    """Ephemeris calculation response."""
    start_date: str
    end_date: str
    natal_instant: str
    natal_positions: list[PositionData]
    records: list[EphemerisRecordData]
    degraded_dates: list[str]
    warnings: list[str]
    summary: EphemerisSummary


class PositionsResponse(BaseModel):
    """Positions at a single instant."""
    instant: str
    instant_utc: str
    timezone_offset_minutes: int
    positions: list[PositionData]
    aspects: list[AspectData]
    warnings: list[str]


class AspectMatchData(BaseModel):
    """Classification without body identities."""
    type: str
    angle: float
    orb: float
    exact: bool
    symbol: str
    color: str


class ClassifyResponse(BaseModel):
    """Result of classifying two longitudes."""
    separation: float
    aspect: Optional[AspectMatchData] = None


class BodyDefinitionResponse(BaseModel):
    """Body definition with model constants."""
    body: str
    name: str
    symbol: str
    color: str
    initial_longitude: float
    orbital_period_days: float


class AspectDefinitionResponse(BaseModel):
    """Aspect definition with orb and display data."""
    type: str
    name: str
    symbol: str
    color: str
    angle: float
    orb: float
    description: str


class ConfigBodiesResponse(BaseModel):
    """Configuration response for bodies."""
    bodies: list[BodyDefinitionResponse]
    reference_epoch: str


class ConfigAspectsResponse(BaseModel):
    """Configuration response for aspects, in classification priority order."""
    aspects: list[AspectDefinitionResponse]


class ConfigTimezonesResponse(BaseModel):
    """Configuration response for the fixed timezone offset table."""
    timezones: dict[str, int]
