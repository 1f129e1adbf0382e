"""
Low-order solar ephemeris.

Apparent ecliptic longitude of the Sun from the classic mean-element
series (geometric mean longitude, mean anomaly, equation of center,
nutation and aberration via the lunar node term). Accurate to roughly
0.01° between 1900 and 2100, which is a few minutes of time at a
solar-term crossing.

Julian dates are built with Swiss Ephemeris' calendar routine so every
module shares one date convention.
"""

from datetime import datetime, timedelta, timezone
import math
import swisseph as swe


J2000 = 2451545.0
_J2000_UTC = datetime(2000, 1, 1, 12, 0, tzinfo=timezone.utc)

# Mean daily motion of the Sun in longitude (degrees/day)
MEAN_DAILY_MOTION = 0.98564736

# Gregorian years over which the series is checked against Swiss Ephemeris
MIN_YEAR = 1900
MAX_YEAR = 2100


def julian_day(dt: datetime) -> float:
    """
    Julian Day (UT) of an aware datetime.

    Naive datetimes are rejected; every instant in the engine carries its
    civil offset.
    """
    if dt.tzinfo is None or dt.utcoffset() is None:
        raise ValueError(f"julian_day() needs an aware datetime, got {dt!r}")
    utc = dt.astimezone(timezone.utc)
    hour = (utc.hour + utc.minute / 60.0 + utc.second / 3600.0
            + utc.microsecond / 3_600_000_000.0)
    return swe.julday(utc.year, utc.month, utc.day, hour, swe.GREG_CAL)


def datetime_from_julian_day(jd: float) -> datetime:
    """Aware UTC datetime for a Julian Day, rounded to the microsecond."""
    return _J2000_UTC + timedelta(days=jd - J2000)


def julian_day_number(year: int, month: int, day: int) -> int:
    """Integer Julian Day Number of a Gregorian calendar date (noon-based)."""
    return int(swe.julday(year, month, day, 12.0, swe.GREG_CAL))


def norm360(deg: float) -> float:
    x = math.fmod(deg, 360.0)
    if x < 0:
        x += 360.0
    return x


def signed_angle_diff(target: float, current: float) -> float:
    """
    Shortest circular distance from ``current`` to ``target`` in [-180, 180).

    Positive means the Sun has not yet reached ``target``. The 359° -> 0°
    wrap is handled, so a target of 0° seen from 359.5° is +0.5, not -359.5.
    """
    return ((norm360(target) - norm360(current) + 540.0) % 360.0) - 180.0


def solar_apparent_longitude(jd: float) -> float:
    """
    Apparent geocentric ecliptic longitude of the Sun in degrees, [0, 360).

    Args:
        jd: Julian Day. UT is used in place of TT; the difference (about a
            minute for modern dates) is far below calendar precision.
    """
    t = (jd - J2000) / 36525.0

    # Geometric mean longitude
    l0 = norm360(280.46646 + 36000.76983 * t + 0.0003032 * t * t)

    # Mean anomaly
    m = norm360(357.52911 + 35999.05029 * t - 0.0001537 * t * t)
    m_rad = math.radians(m)

    # Equation of center
    c = ((1.914602 - 0.004817 * t - 0.000014 * t * t) * math.sin(m_rad)
         + (0.019993 - 0.000101 * t) * math.sin(2 * m_rad)
         + 0.000289 * math.sin(3 * m_rad))

    true_longitude = l0 + c

    # Nutation in longitude + aberration, driven by the Moon's ascending node
    omega = 125.04 - 1934.136 * t
    apparent = true_longitude - 0.00569 - 0.00478 * math.sin(math.radians(omega))

    return norm360(apparent)


def solar_longitude_at(dt: datetime) -> float:
    """Apparent solar longitude at an aware datetime."""
    return solar_apparent_longitude(julian_day(dt))
