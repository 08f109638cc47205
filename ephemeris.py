"""
Simplified Ephemeris Engine

Closed-form planetary positions and aspect detection for calendar views:
1. Circular-orbit longitudes from a fixed (initial longitude, period) table
2. First-match aspect classification over five major aspect types
3. Day-by-day series with transit-to-transit aspects
4. Natal-to-transit aspects gated by a selected set of aspect angles

Not ephemeris-grade astronomy: no ellipses, perturbations or precession.
"""

import calendar
import logging
import math
from dataclasses import dataclass, replace
from datetime import date, datetime, time, timedelta
from enum import Enum
from types import MappingProxyType
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import pytz

logger = logging.getLogger(__name__)


class Body(Enum):
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

    @property
    def label(self) -> str:
        return self.value.capitalize()


class AspectType(Enum):
    CONJUNCTION = "conjunction"
    SEXTILE = "sextile"
    SQUARE = "square"
    TRINE = "trine"
    OPPOSITION = "opposition"


@dataclass(frozen=True)
class AspectDefinition:
    """Aspect type with its canonical angle, orb limit and legend data."""
    angle: float
    type: AspectType
    orb: float
    name: str
    symbol: str
    color: str
    description: str


@dataclass(frozen=True)
class BodyDisplay:
    symbol: str
    color: str


@dataclass(frozen=True)
class Position:
    """Ecliptic position of one body. Latitude and distance are placeholders."""
    body: Body
    longitude: float
    latitude: float = 0.0
    distance: float = 1.0


@dataclass(frozen=True)
class AspectMatch:
    """Classification of a single longitude pair, without body identities."""
    angle: float
    type: AspectType
    orb: float
    exact: bool


@dataclass(frozen=True)
class Aspect:
    body_a: Body
    body_b: Body
    angle: float
    type: AspectType
    orb: float
    exact: bool

    def __str__(self):
        mark = " (exact)" if self.exact else ""
        symbol = EphemerisConfig.ASPECT_BY_TYPE[self.type].symbol
        return f"{self.body_a.label} {symbol} {self.body_b.label} orb {self.orb:.2f}°{mark}"


@dataclass(frozen=True)
class EphemerisRecord:
    """One calendar day of positions plus its transit and natal aspects."""
    date: date
    positions: Tuple[Position, ...]
    transit_aspects: Tuple[Aspect, ...]
    natal_aspects: Tuple[Aspect, ...] = ()


PositionProvider = Callable[[datetime, Sequence[Body]], List[Position]]

# Geocentric Sun: the source model gives it a period of 0 days (the observer's
# own revolution). A literal 0 has no rate, so one Julian year is used instead.
SOLAR_YEAR_DAYS = 365.25

REFERENCE_EPOCH = datetime(2000, 1, 1, tzinfo=pytz.UTC)
FALLBACK_INSTANT = REFERENCE_EPOCH


class EphemerisConfig:
    """Static lookup tables shared by all calculations."""

    # body -> (initial longitude at REFERENCE_EPOCH, orbital period in days)
    BODY_ELEMENTS: Dict[Body, Tuple[float, float]] = MappingProxyType({
        Body.SUN: (0.0, SOLAR_YEAR_DAYS),
        Body.MOON: (45.0, 27.3),
        Body.MERCURY: (120.0, 88.0),
        Body.VENUS: (30.0, 224.7),
        Body.MARS: (300.0, 687.0),
        Body.JUPITER: (150.0, 4331.0),
        Body.SATURN: (240.0, 10747.0),
        Body.URANUS: (60.0, 30589.0),
        Body.NEPTUNE: (180.0, 59800.0),
        Body.PLUTO: (90.0, 90560.0),
    })

    # Priority order matters: the first matching type wins.
    ASPECTS: Tuple[AspectDefinition, ...] = (
        AspectDefinition(0, AspectType.CONJUNCTION, 8, 'Conjunction', '☌', 'yellow',
                         'Planets in the same position, energies blend and intensify'),
        AspectDefinition(60, AspectType.SEXTILE, 4, 'Sextile', '⚹', 'blue',
                         'Harmonious aspect representing opportunity and ease'),
        AspectDefinition(90, AspectType.SQUARE, 6, 'Square', '□', 'red',
                         'Challenging aspect representing tension and growth'),
        AspectDefinition(120, AspectType.TRINE, 6, 'Trine', '△', 'green',
                         'Flowing aspect representing harmony and natural talents'),
        AspectDefinition(180, AspectType.OPPOSITION, 8, 'Opposition', '☍', 'purple',
                         'Planets facing each other, representing balance and awareness'),
    )

    ASPECT_BY_TYPE: Dict[AspectType, AspectDefinition] = MappingProxyType(
        {asp.type: asp for asp in ASPECTS}
    )

    # Minutes to add to local wall-clock time to get UTC (UTC minus local).
    # Fixed standard-time offsets; DST is deliberately ignored.
    TIMEZONE_OFFSETS: Dict[str, int] = MappingProxyType({
        'UTC': 0,
        'America/New_York': 300,
        'America/Los_Angeles': 480,
        'Europe/London': 0,
        'Europe/Paris': -60,
        'Asia/Tokyo': -540,
        'Asia/Shanghai': -480,
        'Australia/Sydney': -600,
    })

    BODY_DISPLAY: Dict[Body, BodyDisplay] = MappingProxyType({
        Body.SUN: BodyDisplay('☉', '#FFB300'),
        Body.MOON: BodyDisplay('☽', '#90A4AE'),
        Body.MERCURY: BodyDisplay('☿', '#7E57C2'),
        Body.VENUS: BodyDisplay('♀', '#26A69A'),
        Body.MARS: BodyDisplay('♂', '#EF5350'),
        Body.JUPITER: BodyDisplay('♃', '#5C6BC0'),
        Body.SATURN: BodyDisplay('♄', '#8D6E63'),
        Body.URANUS: BodyDisplay('⛢', '#42A5F5'),
        Body.NEPTUNE: BodyDisplay('♆', '#26C6DA'),
        Body.PLUTO: BodyDisplay('♇', '#78909C'),
    })

    SIGNS = (
        ('Aries', '♈'), ('Taurus', '♉'), ('Gemini', '♊'), ('Cancer', '♋'),
        ('Leo', '♌'), ('Virgo', '♍'), ('Libra', '♎'), ('Scorpio', '♏'),
        ('Sagittarius', '♐'), ('Capricorn', '♑'), ('Aquarius', '♒'), ('Pisces', '♓'),
    )

    DEFAULT_BODIES: Tuple[Body, ...] = (Body.SUN, Body.MOON)
    DEFAULT_NATAL_BODIES: Tuple[Body, ...] = (Body.SUN, Body.MOON)
    DEFAULT_SELECTED_ANGLES = frozenset({0, 90, 180})
    DEFAULT_NATAL_INSTANT = datetime(1990, 1, 1, 12, 0, 0)


def normalize_degrees(deg: float) -> float:
    """Normalize degrees to the half-open range [0, 360)."""
    deg = deg % 360.0
    # tiny negative inputs round up to exactly 360.0
    return 0.0 if deg >= 360.0 else deg


def angular_distance(pos1: float, pos2: float) -> float:
    """
    Shortest angular distance between two longitudes.
    Always returns a value in [0, 180].
    """
    diff = abs(normalize_degrees(pos1) - normalize_degrees(pos2))
    return min(diff, 360.0 - diff)


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------

def try_parse_instant(value) -> Optional[datetime]:
    """Parse a datetime, date, ISO-8601 string or Unix timestamp; None if invalid."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, str):
        text = value.strip()
        # fromisoformat only accepts a "Z" suffix on 3.11+
        if text[-1:] in ('Z', 'z'):
            text = text[:-1] + '+00:00'
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if not math.isfinite(value):
            return None
        try:
            return datetime.fromtimestamp(value, tz=pytz.UTC)
        except (OverflowError, OSError, ValueError):
            return None
    return None


def parse_instant(value) -> datetime:
    """Like try_parse_instant, but substitutes FALLBACK_INSTANT instead of failing."""
    parsed = try_parse_instant(value)
    if parsed is None:
        logger.warning("Invalid instant %r, using fallback %s", value, FALLBACK_INSTANT.isoformat())
        return FALLBACK_INSTANT
    return parsed


def parse_body(name) -> Optional[Body]:
    if isinstance(name, Body):
        return name
    if not isinstance(name, str):
        return None
    try:
        return Body(name.strip().lower())
    except ValueError:
        return None


def _unique(bodies: Iterable[Body]) -> List[Body]:
    return list(dict.fromkeys(bodies))


# ---------------------------------------------------------------------------
# Time handling
# ---------------------------------------------------------------------------

def _host_offset_minutes(instant: Optional[datetime] = None) -> int:
    """The host's local UTC offset at `instant`, as UTC minus local minutes."""
    if instant is None:
        instant = datetime.now(pytz.UTC)
    elif instant.tzinfo is None:
        instant = pytz.UTC.localize(instant)
    try:
        offset = instant.astimezone().utcoffset()
    except (OverflowError, OSError, ValueError):
        offset = datetime.now(pytz.UTC).astimezone().utcoffset()
    return -int(offset.total_seconds() // 60)


def timezone_offset(timezone: Optional[str], instant: Optional[datetime] = None) -> int:
    """
    Offset in minutes (UTC minus local) for a timezone name.

    Uses the fixed TIMEZONE_OFFSETS table. Unknown names fall back to the
    host's local offset at `instant`.
    """
    if not timezone:
        return 0
    offset = EphemerisConfig.TIMEZONE_OFFSETS.get(timezone.strip())
    if offset is not None:
        return offset
    fallback = _host_offset_minutes(instant)
    logger.warning("Unknown timezone %r, falling back to host offset %d min", timezone, fallback)
    return fallback


def to_utc(instant: datetime, timezone_offset_minutes: int = 0) -> datetime:
    """
    Convert a wall-clock instant to an aware UTC datetime.

    Aware datetimes already carry their offset, so `timezone_offset_minutes`
    only applies to naive ones. Results past the datetime limits are clamped
    to datetime.min/datetime.max.
    """
    offset = instant.utcoffset()
    if offset is not None:
        shift = -offset
    else:
        shift = timedelta(minutes=timezone_offset_minutes)
    try:
        shifted = instant.replace(tzinfo=None) + shift
    except OverflowError:
        shifted = datetime.max if shift > timedelta(0) else datetime.min
        logger.warning("UTC conversion of %s overflows, clamping to %s", instant, shifted.isoformat())
    return pytz.UTC.localize(shifted)


def days_since_epoch(utc_instant: datetime) -> float:
    return (utc_instant - REFERENCE_EPOCH).total_seconds() / 86400.0


# ---------------------------------------------------------------------------
# Position model
# ---------------------------------------------------------------------------

def orbital_period(body: Body) -> float:
    return EphemerisConfig.BODY_ELEMENTS[body][1]


def longitude_at(body: Body, days_elapsed: float) -> float:
    """Circular-motion longitude of `body` after `days_elapsed` days."""
    initial, _ = EphemerisConfig.BODY_ELEMENTS[body]
    return normalize_degrees(initial + days_elapsed * 360.0 / orbital_period(body))


def positions_at(instant,
                 bodies: Iterable[Body],
                 timezone_offset_minutes: int = 0) -> List[Position]:
    """
    Positions of `bodies` at `instant`, one per body in the caller's order.

    Invalid instants resolve to FALLBACK_INSTANT rather than raising.
    """
    utc_instant = to_utc(parse_instant(instant), timezone_offset_minutes)
    days_elapsed = days_since_epoch(utc_instant)
    return [Position(body=body, longitude=longitude_at(body, days_elapsed))
            for body in _unique(bodies)]


# ---------------------------------------------------------------------------
# Aspect classification
# ---------------------------------------------------------------------------

def classify(longitude_a: float,
             longitude_b: float,
             angles: Optional[Iterable[float]] = None) -> Optional[AspectMatch]:
    """
    Classify the separation between two longitudes.

    Aspect types are tested in EphemerisConfig.ASPECTS order and the first
    whose orb window contains the separation wins. When `angles` is given,
    types whose canonical angle is not in it are skipped before testing.
    """
    if angles is not None:
        angles = frozenset(angles)
    separation = angular_distance(longitude_a, longitude_b)

    for aspect_def in EphemerisConfig.ASPECTS:
        if angles is not None and aspect_def.angle not in angles:
            continue
        orb = abs(separation - aspect_def.angle)
        if orb <= aspect_def.orb:
            return AspectMatch(
                angle=aspect_def.angle,
                type=aspect_def.type,
                orb=orb,
                exact=orb == 0,
            )
    return None


def _aspect_between(pos_a: Position,
                    pos_b: Position,
                    angles: Optional[Iterable[float]] = None) -> Optional[Aspect]:
    match = classify(pos_a.longitude, pos_b.longitude, angles)
    if match is None:
        return None
    return Aspect(
        body_a=pos_a.body,
        body_b=pos_b.body,
        angle=match.angle,
        type=match.type,
        orb=match.orb,
        exact=match.exact,
    )


def calculate_transit_aspects(positions: Sequence[Position]) -> List[Aspect]:
    """Aspects over every unordered pair (i < j) of same-day positions."""
    aspects = []
    for i, pos1 in enumerate(positions):
        for pos2 in positions[i + 1:]:
            aspect = _aspect_between(pos1, pos2)
            if aspect is not None:
                aspects.append(aspect)
    return aspects


def calculate_natal_aspects(natal_positions: Sequence[Position],
                            transit_positions: Sequence[Position],
                            selected_angles: Iterable[float]) -> List[Aspect]:
    """
    Aspects over the full natal x transit cross product.

    Only aspect types whose canonical angle is in `selected_angles` are ever
    tested. body_a is the natal body, body_b the transiting one.
    """
    selected_angles = frozenset(selected_angles)
    aspects = []
    for natal in natal_positions:
        for transit in transit_positions:
            aspect = _aspect_between(natal, transit, selected_angles)
            if aspect is not None:
                aspects.append(aspect)
    return aspects


def filter_aspects(aspects: Iterable[Aspect], selected_angles: Iterable[float]) -> List[Aspect]:
    """Display-side filter keeping only aspects whose angle was selected."""
    selected_angles = frozenset(selected_angles)
    return [asp for asp in aspects if asp.angle in selected_angles]


# ---------------------------------------------------------------------------
# Series generation
# ---------------------------------------------------------------------------

def _try_as_date(value) -> Optional[date]:
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    parsed = try_parse_instant(value)
    return parsed.date() if parsed is not None else None


def resolve_date_bounds(start_date, end_date) -> Tuple[date, date]:
    """
    Calendar days for a pair of range bounds.

    An invalid bound takes the other bound's day, so a bad input yields a
    single day rather than a span reaching back to the fallback instant.
    When both are invalid the range is the fallback instant's day.
    """
    start, end = _try_as_date(start_date), _try_as_date(end_date)
    if start is None or end is None:
        fallback = start or end or FALLBACK_INSTANT.date()
        logger.warning("Invalid date bound(s) %r .. %r, using %s",
                       start_date, end_date, fallback.isoformat())
        start, end = start or fallback, end or fallback
    return start, end


def date_range(start_date, end_date) -> List[date]:
    """Every calendar day in [start_date, end_date]; empty when start > end."""
    start, end = resolve_date_bounds(start_date, end_date)
    return [start + timedelta(days=n) for n in range((end - start).days + 1)]


def month_range(year: int, month: int) -> Tuple[date, date]:
    """First and last day of a calendar month."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def generate_ephemeris(start_date,
                       end_date,
                       bodies: Iterable[Body],
                       timezone_offset_minutes: int = 0,
                       position_provider: Optional[PositionProvider] = None) -> List[EphemerisRecord]:
    """
    One EphemerisRecord per day in [start_date, end_date], ascending.

    Positions are taken at local midnight of each day. natal_aspects are left
    empty; see attach_natal_aspects.
    """
    bodies = _unique(bodies)

    def _local_positions(instant, requested):
        return positions_at(instant, requested, timezone_offset_minutes)

    provider = position_provider or _local_positions

    records = []
    for day in date_range(start_date, end_date):
        positions = provider(datetime.combine(day, time.min), bodies)
        records.append(EphemerisRecord(
            date=day,
            positions=tuple(positions),
            transit_aspects=tuple(calculate_transit_aspects(positions)),
        ))
    return records


def attach_natal_aspects(record: EphemerisRecord,
                         natal_positions: Sequence[Position],
                         selected_angles: Iterable[float]) -> EphemerisRecord:
    """Copy of `record` with natal_aspects computed against `natal_positions`."""
    natal_aspects = calculate_natal_aspects(natal_positions, record.positions, selected_angles)
    return replace(record, natal_aspects=tuple(natal_aspects))


def calculate_ephemeris(start_date,
                        end_date,
                        bodies: Iterable[Body] = EphemerisConfig.DEFAULT_BODIES,
                        natal_instant=EphemerisConfig.DEFAULT_NATAL_INSTANT,
                        natal_bodies: Iterable[Body] = EphemerisConfig.DEFAULT_NATAL_BODIES,
                        selected_angles: Iterable[float] = EphemerisConfig.DEFAULT_SELECTED_ANGLES,
                        timezone: Optional[str] = None,
                        natal_timezone: Optional[str] = None,
                        position_provider: Optional[PositionProvider] = None,
                        filter_transit_aspects: bool = False) -> Tuple[List[Position], List[EphemerisRecord]]:
    """
    Full calendar computation: natal positions once, then every day's
    transits and natal aspects.

    A supplied `position_provider` serves both natal and transit positions
    and is responsible for its own timezone handling. With
    `filter_transit_aspects`, transit aspects are also limited to
    `selected_angles` (after classification, unlike the natal gate).

    Returns (natal_positions, records).
    """
    natal_instant = parse_instant(natal_instant)
    natal_bodies = _unique(natal_bodies)

    if position_provider is not None:
        natal_positions = position_provider(natal_instant, natal_bodies)
    else:
        natal_offset = timezone_offset(natal_timezone, natal_instant)
        natal_positions = positions_at(natal_instant, natal_bodies, natal_offset)

    start, end = resolve_date_bounds(start_date, end_date)
    records = generate_ephemeris(
        start,
        end,
        bodies,
        timezone_offset_minutes=timezone_offset(timezone, datetime.combine(start, time.min)),
        position_provider=position_provider,
    )
    selected_angles = frozenset(selected_angles)
    records = [attach_natal_aspects(record, natal_positions, selected_angles) for record in records]
    if filter_transit_aspects:
        records = [replace(record, transit_aspects=tuple(filter_aspects(record.transit_aspects, selected_angles)))
                   for record in records]

    logger.debug("Calculated %d ephemeris records (%s .. %s)", len(records), start, end)
    return natal_positions, records


# ---------------------------------------------------------------------------
# Presentation helpers
# ---------------------------------------------------------------------------

def aspect_display(aspect_type: AspectType) -> AspectDefinition:
    return EphemerisConfig.ASPECT_BY_TYPE[aspect_type]


def body_display(body: Body) -> BodyDisplay:
    return EphemerisConfig.BODY_DISPLAY[body]


def sign_info(longitude: float) -> Dict:
    longitude = normalize_degrees(longitude)
    sign_num = int(longitude // 30)
    degree_in_sign = longitude - sign_num * 30
    name, symbol = EphemerisConfig.SIGNS[sign_num]
    deg_int = int(degree_in_sign)
    minutes = int((degree_in_sign - deg_int) * 60)

    return {
        'sign': name,
        'sign_symbol': symbol,
        'sign_num': sign_num,
        'degree': degree_in_sign,
        'formatted': f"{deg_int}°{minutes:02d}' {name}",
    }


def format_ephemeris_text(records: Sequence[EphemerisRecord],
                          natal_positions: Sequence[Position] = ()) -> str:
    if not records:
        return "No ephemeris records. Check the date range."

    lines = []
    lines.append("=" * 75)
    lines.append("EPHEMERIS")
    lines.append("=" * 75)
    lines.append(f"Range: {records[0].date.isoformat()} .. {records[-1].date.isoformat()}")

    if natal_positions:
        natal = ", ".join(f"{p.body.label} {sign_info(p.longitude)['formatted']}" for p in natal_positions)
        lines.append(f"Natal: {natal}")
    lines.append("")

    for record in records:
        lines.append(record.date.strftime('%Y-%m-%d %a'))
        lines.append("-" * 75)
        for pos in record.positions:
            symbol = body_display(pos.body).symbol
            lines.append(f"  {symbol} {pos.body.label:<10} {sign_info(pos.longitude)['formatted']:<18} "
                         f"{pos.longitude:7.2f}°")
        for asp in record.transit_aspects:
            lines.append(f"  T  {asp}")
        for asp in record.natal_aspects:
            lines.append(f"  N  {asp}")
        lines.append("")

    return "\n".join(lines)
