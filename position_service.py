"""Client for an external position service, with fallback to the local model."""

import logging
from datetime import date, datetime
from typing import Dict, List, Optional, Sequence

import requests

import config
from ephemeris import Body, Position, normalize_degrees, parse_body, positions_at, timezone_offset
from exceptions import PositionServiceError

logger = logging.getLogger(__name__)


def _parse_position(raw: Dict) -> Optional[Position]:
    body = parse_body(raw.get('planet'))
    if body is None:
        return None
    return Position(
        body=body,
        longitude=normalize_degrees(float(raw['longitude'])),
        latitude=float(raw.get('latitude') or 0),
        distance=float(raw.get('distance') or 1),
    )


def fetch_positions(instant: datetime,
                    latitude: float,
                    longitude: float,
                    timezone: Optional[str] = None) -> List[Position]:
    """
    Fetch positions for `instant` from the configured position service.

    Unknown planet names are dropped. Any transport, HTTP or payload problem
    is raised as PositionServiceError.
    """
    if not config.POSITION_SERVICE_URL:
        raise PositionServiceError("Position service is not configured")

    payload = {
        'date': instant.strftime('%Y-%m-%d'),
        'time': instant.strftime('%H:%M:%S'),
        'latitude': latitude,
        'longitude': longitude,
        'timezone': timezone or 'UTC',
    }
    try:
        r = requests.post(f"{config.POSITION_SERVICE_URL}/chart", json=payload,
                          timeout=config.POSITION_SERVICE_TIMEOUT)
        r.raise_for_status()
        data = r.json()
    except (requests.RequestException, ValueError) as e:
        raise PositionServiceError(f"Failed to get planet positions: {e}") from e

    try:
        raw_positions = data['positions']
        positions = [_parse_position(raw) for raw in raw_positions]
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise PositionServiceError(f"Malformed position service response: {e}") from e

    return [p for p in positions if p is not None]


class RemotePositionProvider:
    """
    Position provider backed by the remote service.

    Per instant it asks the service first; on failure it falls back to the
    local model for that instant and remembers the day in `degraded_dates`.
    Bodies the service did not return are filled in from the local model.
    """

    def __init__(self, latitude: float, longitude: float, timezone: Optional[str] = None):
        self.latitude = latitude
        self.longitude = longitude
        self.timezone = timezone
        self.degraded_dates: List[date] = []

    def _local(self, instant: datetime, bodies: Sequence[Body]) -> List[Position]:
        return positions_at(instant, bodies, timezone_offset(self.timezone, instant))

    def __call__(self, instant: datetime, bodies: Sequence[Body]) -> List[Position]:
        if not bodies:
            return []
        try:
            remote = fetch_positions(instant, self.latitude, self.longitude, self.timezone)
        except PositionServiceError as e:
            logger.warning("Position service failed for %s, using local model: %s", instant.isoformat(), e)
            self.degraded_dates.append(instant.date())
            return self._local(instant, bodies)

        by_body = {p.body: p for p in remote}
        missing = [b for b in bodies if b not in by_body]
        if missing:
            logger.debug("Position service omitted %s, filling from local model",
                         ", ".join(b.value for b in missing))
            by_body.update({p.body: p for p in self._local(instant, missing)})
        return [by_body[b] for b in dict.fromkeys(bodies)]

    @property
    def degraded(self) -> bool:
        return bool(self.degraded_dates)
