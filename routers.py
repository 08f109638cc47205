"""API routers for the Ephemeris Calendar API."""

import logging
from datetime import date, datetime
from typing import Iterable, Optional

from fastapi import APIRouter

import config
from models import (
    BodyEnum,
    PositionsRequest,
    ClassifyRequest,
    EphemerisOptions,
    EphemerisRequest,
    MonthRequest,
    PositionData,
    AspectData,
    AspectMatchData,
    EphemerisRecordData,
    EphemerisSummary,
    EphemerisResponse,
    PositionsResponse,
    ClassifyResponse,
    BodyDefinitionResponse,
    AspectDefinitionResponse,
    ConfigBodiesResponse,
    ConfigAspectsResponse,
    ConfigTimezonesResponse,
)
from ephemeris import (
    Aspect,
    Body,
    EphemerisConfig,
    Position,
    REFERENCE_EPOCH,
    angular_distance,
    aspect_display,
    body_display,
    calculate_ephemeris,
    calculate_transit_aspects,
    classify,
    month_range,
    parse_instant,
    positions_at,
    sign_info,
    timezone_offset,
    to_utc,
    try_parse_instant,
)
from exceptions import InvalidDateRangeError, EphemerisCalculationError
from position_service import RemotePositionProvider

logger = logging.getLogger(__name__)

router = APIRouter()


# Helper Functions
def _bodies(values: Iterable[BodyEnum]) -> list[Body]:
    return [Body(v.value) for v in values]


def _position_data(position: Position) -> PositionData:
    display = body_display(position.body)
    info = sign_info(position.longitude)
    return PositionData(
        body=position.body.value,
        longitude=position.longitude,
        latitude=position.latitude,
        distance=position.distance,
        sign=info['sign'],
        sign_symbol=info['sign_symbol'],
        degree=info['degree'],
        formatted=info['formatted'],
        symbol=display.symbol,
        color=display.color,
    )


def _aspect_data(aspect: Aspect) -> AspectData:
    display = aspect_display(aspect.type)
    return AspectData(
        body_a=aspect.body_a.value,
        body_b=aspect.body_b.value,
        type=aspect.type.value,
        angle=aspect.angle,
        orb=aspect.orb,
        exact=aspect.exact,
        symbol=display.symbol,
        color=display.color,
    )


def _check_range(start_date: date, end_date: date) -> None:
    days = (end_date - start_date).days + 1
    if days > config.MAX_RANGE_DAYS:
        raise InvalidDateRangeError(
            f"Date range spans {days} days; the maximum is {config.MAX_RANGE_DAYS}"
        )


def _position_provider(options: EphemerisOptions) -> Optional[RemotePositionProvider]:
    if options.location is None or not config.POSITION_SERVICE_URL:
        return None
    location = options.location
    return RemotePositionProvider(
        latitude=location.latitude,
        longitude=location.longitude,
        timezone=location.timezone or options.timezone,
    )


def _instant_or_fallback(value, label: str, warnings: list) -> datetime:
    instant = try_parse_instant(value)
    if instant is None:
        instant = parse_instant(value)
        warnings.append(f"Invalid {label} {value!r}; using {instant.isoformat()}")
    return instant


def _run_ephemeris(options: EphemerisOptions, start_date: date, end_date: date) -> EphemerisResponse:
    """Run the full calendar computation and shape the response."""
    _check_range(start_date, end_date)

    warnings = []
    natal_instant = _instant_or_fallback(options.natal.instant, "natal instant", warnings)

    provider = _position_provider(options)
    try:
        natal_positions, records = calculate_ephemeris(
            start_date,
            end_date,
            bodies=_bodies(options.bodies),
            natal_instant=natal_instant,
            natal_bodies=_bodies(options.natal.bodies),
            selected_angles=options.selected_angles,
            timezone=options.timezone,
            natal_timezone=options.natal.timezone,
            position_provider=provider,
            filter_transit_aspects=options.filter_transit_aspects,
        )
    except Exception as e:
        raise EphemerisCalculationError(f"Ephemeris calculation failed: {str(e)}") from e

    degraded_dates = []
    if provider is not None and provider.degraded:
        degraded_dates = sorted({d.isoformat() for d in provider.degraded_dates})
        logger.warning("Position service degraded for %d day(s) in %s .. %s",
                       len(degraded_dates), start_date, end_date)
        warnings.append(
            f"Position service unavailable for {len(degraded_dates)} day(s); "
            "used the simplified model instead"
        )

    record_data = [
        EphemerisRecordData(
            date=record.date.isoformat(),
            positions=[_position_data(p) for p in record.positions],
            transit_aspects=[_aspect_data(a) for a in record.transit_aspects],
            natal_aspects=[_aspect_data(a) for a in record.natal_aspects],
        )
        for record in records
    ]

    return EphemerisResponse(
        start_date=start_date.isoformat(),
        end_date=end_date.isoformat(),
        natal_instant=natal_instant.isoformat(),
        natal_positions=[_position_data(p) for p in natal_positions],
        records=record_data,
        degraded_dates=degraded_dates,
        warnings=warnings,
        summary=EphemerisSummary(
            days=len(records),
            transit_aspects=sum(len(r.transit_aspects) for r in records),
            natal_aspects=sum(len(r.natal_aspects) for r in records),
        ),
    )


# Configuration Endpoints
@router.get(
    "/config/bodies",
    response_model=ConfigBodiesResponse,
    summary="List Bodies",
    description="Get the bodies of the simplified model with their display symbol, color, "
                "initial longitude and orbital period."
)
async def get_bodies():
    """List all bodies with model constants."""
    bodies = []
    for body, (initial, period) in EphemerisConfig.BODY_ELEMENTS.items():
        display = body_display(body)
        bodies.append(BodyDefinitionResponse(
            body=body.value,
            name=body.label,
            symbol=display.symbol,
            color=display.color,
            initial_longitude=initial,
            orbital_period_days=period,
        ))
    return ConfigBodiesResponse(bodies=bodies, reference_epoch=REFERENCE_EPOCH.isoformat())


@router.get(
    "/config/aspects",
    response_model=ConfigAspectsResponse,
    summary="List Aspect Definitions",
    description="""
    Get the five aspect types in classification priority order, with:
    - Canonical angle and maximum orb
    - Display symbol, color and legend description
    """
)
async def get_aspects():
    """List aspect definitions in priority order."""
    return ConfigAspectsResponse(
        aspects=[
            AspectDefinitionResponse(
                type=asp.type.value,
                name=asp.name,
                symbol=asp.symbol,
                color=asp.color,
                angle=asp.angle,
                orb=asp.orb,
                description=asp.description,
            )
            for asp in EphemerisConfig.ASPECTS
        ]
    )


@router.get(
    "/config/timezones",
    response_model=ConfigTimezonesResponse,
    summary="List Timezone Offsets",
    description="Get the fixed timezone table (minutes, UTC minus local). Other names use the server's local offset."
)
async def get_timezones():
    """List the fixed timezone offsets."""
    return ConfigTimezonesResponse(timezones=dict(EphemerisConfig.TIMEZONE_OFFSETS))


# Calculation Endpoints
@router.post(
    "/positions",
    response_model=PositionsResponse,
    summary="Calculate Positions",
    description="""
    Calculate simplified body positions for a single instant, with the
    aspects they form among themselves.

    Invalid instants fall back to 2000-01-01T00:00:00Z instead of failing.
    """
)
async def calculate_positions(request: PositionsRequest):
    """Calculate positions for one instant."""
    warnings = []
    instant = _instant_or_fallback(request.instant, "instant", warnings)
    offset = timezone_offset(request.timezone, instant)
    instant_utc = to_utc(instant, offset)
    positions = positions_at(instant_utc, _bodies(request.bodies))

    return PositionsResponse(
        instant=instant.isoformat(),
        instant_utc=instant_utc.isoformat(),
        timezone_offset_minutes=offset,
        positions=[_position_data(p) for p in positions],
        aspects=[_aspect_data(a) for a in calculate_transit_aspects(positions)],
        warnings=warnings,
    )


@router.post(
    "/aspects/classify",
    response_model=ClassifyResponse,
    summary="Classify Two Longitudes",
    description="""
    Classify the angular separation of two longitudes. Aspect types are tested
    in priority order (conjunction, sextile, square, trine, opposition) and the
    first whose orb window matches wins.
    """
)
async def classify_longitudes(request: ClassifyRequest):
    """Classify a single longitude pair."""
    match = classify(request.longitude_a, request.longitude_b, request.selected_angles)
    aspect = None
    if match is not None:
        display = aspect_display(match.type)
        aspect = AspectMatchData(
            type=match.type.value,
            angle=match.angle,
            orb=match.orb,
            exact=match.exact,
            symbol=display.symbol,
            color=display.color,
        )
    return ClassifyResponse(
        separation=angular_distance(request.longitude_a, request.longitude_b),
        aspect=aspect,
    )


@router.post(
    "/ephemeris/calculate",
    response_model=EphemerisResponse,
    summary="Calculate Ephemeris",
    description="""
    Calculate one record per calendar day in [start_date, end_date] with:
    - Positions of the requested bodies at local midnight
    - Aspects between those positions
    - Aspects from natal positions to each day's positions, limited to the selected angles

    When a location is supplied and a position service is configured, positions are
    fetched remotely; days where the service fails fall back to the simplified model
    and are listed in degraded_dates.
    """,
    responses={
        200: {"description": "Successful calculation"},
        422: {"description": "Validation error - invalid input parameters"},
        500: {"description": "Calculation error"}
    }
)
async def calculate_ephemeris_range(request: EphemerisRequest):
    """Calculate the ephemeris for a date range."""
    return _run_ephemeris(request, request.start_date, request.end_date)


@router.post(
    "/ephemeris/month",
    response_model=EphemerisResponse,
    summary="Calculate Ephemeris for a Month",
    description="Same as /ephemeris/calculate for every day of one calendar month.",
    responses={
        200: {"description": "Successful calculation"},
        422: {"description": "Validation error - invalid input parameters"},
        500: {"description": "Calculation error"}
    }
)
async def calculate_ephemeris_month(request: MonthRequest):
    """Calculate the ephemeris for a calendar month."""
    start_date, end_date = month_range(request.year, request.month)
    return _run_ephemeris(request, start_date, end_date)
