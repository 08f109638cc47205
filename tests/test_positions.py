from datetime import datetime, timedelta

import pytest
import pytz

from ephemeris import (
    Body,
    EphemerisConfig,
    FALLBACK_INSTANT,
    REFERENCE_EPOCH,
    SOLAR_YEAR_DAYS,
    normalize_degrees,
    to_utc,
    orbital_period,
    parse_instant,
    positions_at,
    try_parse_instant,
)

EPOCH = datetime(2000, 1, 1)


def test_positions_at_epoch_match_initial_longitudes():
    positions = positions_at(EPOCH, list(Body))
    for pos in positions:
        assert pos.longitude == EphemerisConfig.BODY_ELEMENTS[pos.body][0]
        assert pos.latitude == 0.0
        assert pos.distance == 1.0


def test_moon_completes_one_orbit():
    pos = positions_at(EPOCH + timedelta(days=27.3), [Body.MOON])[0]
    assert pos.longitude == pytest.approx(45.0, abs=1e-6)


def test_sun_uses_solar_year_instead_of_zero_period():
    # The source table gives the Sun a period of 0, which has no rate.
    assert orbital_period(Body.SUN) == SOLAR_YEAR_DAYS == 365.25
    quarter = positions_at(EPOCH + timedelta(days=SOLAR_YEAR_DAYS / 4), [Body.SUN])[0]
    assert quarter.longitude == pytest.approx(90.0)
    full = positions_at(EPOCH + timedelta(days=SOLAR_YEAR_DAYS), [Body.SUN])[0]
    assert full.longitude == 0.0


def test_every_orbital_period_is_positive():
    assert all(orbital_period(body) > 0 for body in Body)


@pytest.mark.parametrize("instant, offset", [
    (datetime(1, 1, 1), 0),
    (datetime(1899, 12, 31, 23, 59), 0),
    (datetime(1999, 12, 31, 23, 59, 59), 0),
    (datetime(2024, 2, 29, 6, 30), 0),
    (datetime(9999, 12, 31, 12), 0),
    (datetime(9999, 12, 31, 23), 300),
    ("0001-01-01T00:00:00", -540),
    (datetime(1, 1, 1), -600),
])
def test_longitudes_are_normalized(instant, offset):
    for pos in positions_at(instant, list(Body), offset):
        assert 0.0 <= pos.longitude < 360.0


def test_normalize_degrees_edges():
    assert normalize_degrees(360.0) == 0.0
    assert normalize_degrees(-90.0) == 270.0
    # tiny negatives would otherwise round up to 360.0
    assert normalize_degrees(-1e-20) == 0.0


def test_positions_preserve_request_order_and_drop_duplicates():
    positions = positions_at(EPOCH, [Body.PLUTO, Body.SUN, Body.PLUTO, Body.MOON])
    assert [p.body for p in positions] == [Body.PLUTO, Body.SUN, Body.MOON]


def test_empty_body_set_yields_no_positions():
    assert positions_at(EPOCH, []) == []


def test_offset_shifts_naive_instant_to_utc():
    # 00:00 New York (UTC-5) is 05:00 UTC
    local = positions_at(EPOCH, [Body.MOON], timezone_offset_minutes=300)
    utc = positions_at(EPOCH + timedelta(hours=5), [Body.MOON])
    assert local == utc


def test_aware_instant_ignores_offset():
    aware = pytz.UTC.localize(EPOCH)
    assert positions_at(aware, [Body.MOON], timezone_offset_minutes=300) == positions_at(EPOCH, [Body.MOON])


@pytest.mark.parametrize("value", ["not a date", "", None, float("nan"), float("inf"), object()])
def test_invalid_instant_uses_fallback(value):
    assert try_parse_instant(value) is None
    assert parse_instant(value) == FALLBACK_INSTANT
    moon = positions_at(value, [Body.MOON])[0]
    assert moon.longitude == 45.0


def test_parse_instant_accepts_common_inputs():
    assert parse_instant("2000-01-02") == datetime(2000, 1, 2)
    assert parse_instant(" 1990-06-15T14:30:00 ") == datetime(1990, 6, 15, 14, 30)
    assert parse_instant(EPOCH.date()) == EPOCH
    assert parse_instant(946684800) == REFERENCE_EPOCH
    assert parse_instant("2025-03-20T12:00:00Z") == pytz.UTC.localize(datetime(2025, 3, 20, 12))


def test_to_utc_clamps_at_datetime_limits():
    assert to_utc(datetime(9999, 12, 31, 23), 300) == pytz.UTC.localize(datetime.max)
    assert to_utc(datetime(1, 1, 1), -540) == pytz.UTC.localize(datetime.min)
    tokyo = pytz.FixedOffset(540).localize(datetime(1, 1, 1, 3))
    assert to_utc(tokyo) == pytz.UTC.localize(datetime.min)


def test_to_utc_converts_aware_instants():
    tokyo = pytz.FixedOffset(540).localize(datetime(2000, 1, 1, 9))
    assert to_utc(tokyo, 300) == REFERENCE_EPOCH
