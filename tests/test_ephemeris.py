from datetime import datetime, timedelta, timezone

import pytest
import swisseph as swe

from bazi_engine.ephemeris import (
    datetime_from_julian_day,
    julian_day,
    julian_day_number,
    signed_angle_diff,
    solar_apparent_longitude,
)


def _swiss_sun_longitude(jd):
    xx, _ = swe.calc_ut(jd, swe.SUN, swe.FLG_MOSEPH)
    return xx[0]


@pytest.mark.parametrize("year", [1901, 1949, 1984, 2000, 2024, 2077, 2099])
def test_longitude_matches_swiss_ephemeris(year):
    start = julian_day(datetime(year, 1, 1, tzinfo=timezone.utc))
    for day in range(0, 365, 23):
        jd = start + day + 0.37
        diff = signed_angle_diff(_swiss_sun_longitude(jd), solar_apparent_longitude(jd))
        assert abs(diff) < 0.02


def test_longitude_range():
    for k in range(200):
        lon = solar_apparent_longitude(2451545.0 + k * 1.83)
        assert 0.0 <= lon < 360.0


def test_signed_angle_diff_uses_shortest_arc():
    assert signed_angle_diff(0.0, 359.5) == pytest.approx(0.5)
    assert signed_angle_diff(359.5, 0.0) == pytest.approx(-0.5)
    assert signed_angle_diff(315.0, 300.0) == pytest.approx(15.0)
    assert -180.0 <= signed_angle_diff(180.0, 0.0) < 180.0


def test_julian_day_round_trip():
    dt = datetime(2024, 2, 4, 16, 27, 3, tzinfo=timezone(timedelta(hours=8)))
    jd = julian_day(dt)
    back = datetime_from_julian_day(jd)
    assert abs((back - dt).total_seconds()) < 0.01
    assert back.tzinfo == timezone.utc


def test_julian_day_rejects_naive_datetime():
    with pytest.raises(ValueError):
        julian_day(datetime(2024, 1, 1))


def test_julian_day_number():
    assert julian_day_number(2000, 1, 1) == 2451545
    assert julian_day_number(1949, 10, 1) == 2433191
