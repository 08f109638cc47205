import pytest

from ephemeris import (
    Aspect,
    AspectType,
    Body,
    EphemerisConfig,
    angular_distance,
    classify,
    filter_aspects,
)


def test_sextile_exact():
    match = classify(10.0, 70.0)
    assert match.type == AspectType.SEXTILE
    assert match.angle == 60
    assert match.orb == 0.0
    assert match.exact is True


def test_opposition_across_wraparound():
    # min(185, 175) = 175 -> 5 degrees short of opposition
    match = classify(0.0, 185.0)
    assert match.type == AspectType.OPPOSITION
    assert match.orb == 5.0
    assert match.exact is False


def test_no_aspect_outside_every_window():
    assert classify(0.0, 50.0) is None


def test_conjunction_across_zero_aries():
    match = classify(357.0, 3.0)
    assert match.type == AspectType.CONJUNCTION
    assert match.orb == 6.0


@pytest.mark.parametrize("lon_b, expected", [
    (8.0, AspectType.CONJUNCTION),
    (8.5, None),
    (56.0, AspectType.SEXTILE),
    (64.0, AspectType.SEXTILE),
    (64.5, None),
    (84.0, AspectType.SQUARE),
    (126.0, AspectType.TRINE),
    (126.5, None),
    (172.0, AspectType.OPPOSITION),
])
def test_orb_windows_are_inclusive(lon_b, expected):
    match = classify(0.0, lon_b)
    assert (match.type if match else None) == expected


def test_priority_order_is_fixed():
    assert [asp.angle for asp in EphemerisConfig.ASPECTS] == [0, 60, 90, 120, 180]
    assert [asp.orb for asp in EphemerisConfig.ASPECTS] == [8, 4, 6, 6, 8]


def test_classification_is_symmetric_and_exactness_consistent():
    for a in range(0, 360, 7):
        for b in range(0, 360, 11):
            forward = classify(float(a), float(b))
            assert forward == classify(float(b), float(a))
            if forward is not None:
                assert forward.exact == (forward.orb == 0)
                assert forward.orb <= EphemerisConfig.ASPECT_BY_TYPE[forward.type].orb


def test_angle_gate_skips_unselected_types():
    assert classify(0.0, 90.0, angles={0, 180}) is None
    assert classify(0.0, 90.0, angles={90}).type == AspectType.SQUARE
    assert classify(0.0, 5.0, angles={60, 90, 120, 180}) is None


def test_angular_distance_normalizes_inputs():
    assert angular_distance(370.0, 10.0) == 0.0
    assert angular_distance(-10.0, 10.0) == 20.0
    assert angular_distance(0.0, 725.0) == 5.0


def test_filter_aspects_by_angle():
    aspects = [
        Aspect(Body.SUN, Body.MOON, 0, AspectType.CONJUNCTION, 1.0, False),
        Aspect(Body.SUN, Body.MARS, 60, AspectType.SEXTILE, 0.0, True),
    ]
    assert filter_aspects(aspects, {60}) == [aspects[1]]
    assert filter_aspects(aspects, set()) == []


def test_aspect_str_uses_symbol():
    aspect = Aspect(Body.SUN, Body.MARS, 60, AspectType.SEXTILE, 0.0, True)
    assert str(aspect) == "Sun ⚹ Mars orb 0.00° (exact)"
