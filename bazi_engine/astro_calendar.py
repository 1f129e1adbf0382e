"""
Calendar utilities for pillar calculations.
Handles clock-time to solar-time correction (LMT and equation of time)
and nearest solar-term lookups around a birth instant.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional, Union
import math

from bazi_engine.policy import BoundaryPolicy, CorrectionMode, has_reached
from bazi_engine.solar_terms import SolarTermCache, SolarTermEvent, boundaries_around


def lmt_correction(longitude: float, standard_meridian: float = 120.0) -> float:
    """
    Calculate Local Mean Time correction in minutes.

    A civil time zone is set to its standard meridian (UTC offset × 15°).
    For locations east or west of it, the clock differs from mean solar
    time by 4 minutes per degree.

    Args:
        longitude: birth location longitude in degrees (east positive)
        standard_meridian: timezone standard meridian (120.0 for UTC+8)

    Returns:
        Correction in minutes (negative = subtract from clock time)

    Example:
        Tokyo (139.69°E, meridian 135°): (139.69 - 135.0) * 4 = +18.76 min
    """
    return (longitude - standard_meridian) * 4.0


def equation_of_time(day: Union[date, datetime]) -> float:
    """
    Apparent minus mean solar time, in minutes, for a calendar date.

    Day-of-year harmonic fit; good to about half a minute, peaking near
    +16 min in early November and -14 min in mid February.
    """
    day_of_year = day.timetuple().tm_yday
    b = math.radians((360 / 365) * (day_of_year - 81))
    return 9.87 * math.sin(2 * b) - 7.53 * math.cos(b) - 1.5 * math.sin(b)


def correction_minutes(civil: datetime, longitude: Optional[float],
                       standard_meridian: float,
                       mode: CorrectionMode) -> dict:
    """
    Break down the clock → solar time correction for ``civil``.

    Returns:
        dict with 'longitude', 'equation_of_time' and 'total' minutes.
        Terms not requested by ``mode`` are 0.0; the longitude term is also
        0.0 when no longitude is known. The equation of time needs none.
    """
    lon_term = 0.0
    eot_term = 0.0
    if longitude is not None and mode.uses_longitude:
        lon_term = lmt_correction(longitude, standard_meridian)
    if mode.uses_equation_of_time:
        eot_term = equation_of_time(civil)
    return {
        "longitude": lon_term,
        "equation_of_time": eot_term,
        "total": lon_term + eot_term,
    }


def apply_correction(civil: datetime, longitude: Optional[float],
                     standard_meridian: float, mode: CorrectionMode) -> datetime:
    """
    Convert clock time to corrected (mean or apparent) solar time.

    The result keeps the civil offset: it is the wall-clock reading a local
    sundial-corrected clock would show, expressed in the civil zone.
    """
    minutes = correction_minutes(civil, longitude, standard_meridian, mode)["total"]
    return civil + timedelta(minutes=minutes)


def latest_boundary(instant: datetime, policy: BoundaryPolicy,
                    cache: Optional[SolarTermCache] = None) -> SolarTermEvent:
    """
    The most recent Jie boundary that ``instant`` has reached under ``policy``.
    """
    all_jie = boundaries_around(instant.year, policy.precision, cache)
    latest = None
    for jie in all_jie:
        if has_reached(instant, jie.instant, policy):
            latest = jie
        else:
            break
    if latest is None:
        raise ValueError(f"No Jie boundary found before {instant.isoformat()}")
    return latest


def find_nearest_jie(instant: datetime, forward: bool, policy: BoundaryPolicy,
                     cache: Optional[SolarTermCache] = None) -> SolarTermEvent:
    """
    Find the nearest Jie boundary in the given direction from ``instant``.

    Args:
        instant: aware birth instant (boundary reference time)
        forward: True = next Jie not yet reached, False = latest Jie reached

    Returns:
        SolarTermEvent of the nearest Jie
    """
    if not forward:
        return latest_boundary(instant, policy, cache)

    for jie in boundaries_around(instant.year, policy.precision, cache):
        if not has_reached(instant, jie.instant, policy):
            return jie

    raise ValueError(f"Could not find next Jie from {instant.isoformat()}")


# ============================================================
# BOUNDARY CHECKS
# ============================================================

@dataclass(frozen=True)
class BoundaryCheck:
    """Which side of one boundary the civil and corrected instants fall on."""
    boundary: SolarTermEvent
    civil_reached: bool
    corrected_reached: bool
    previous: Optional[SolarTermEvent] = None
    following: Optional[SolarTermEvent] = None

    @property
    def split(self) -> bool:
        return self.civil_reached != self.corrected_reached

    def to_dict(self, tz=None) -> dict:
        return {
            "boundary": self.boundary.to_dict(tz),
            "civil_reached": self.civil_reached,
            "corrected_reached": self.corrected_reached,
            "split": self.split,
            "previous": self.previous.to_dict(tz) if self.previous else None,
            "following": self.following.to_dict(tz) if self.following else None,
        }


def jie_around(instant: datetime, policy: BoundaryPolicy,
               cache: Optional[SolarTermCache] = None):
    """
    The Jie closest in time to ``instant`` and its neighbours.

    Returns:
        (previous, nearest, following) SolarTermEvents
    """
    all_jie = boundaries_around(instant.year, policy.precision, cache)
    i = min(range(len(all_jie)), key=lambda k: abs(all_jie[k].instant - instant))
    previous = all_jie[i - 1] if i > 0 else None
    following = all_jie[i + 1] if i + 1 < len(all_jie) else None
    return previous, all_jie[i], following


def boundary_check(boundary: SolarTermEvent, civil: datetime, corrected: datetime,
                   policy: BoundaryPolicy, previous: Optional[SolarTermEvent] = None,
                   following: Optional[SolarTermEvent] = None) -> BoundaryCheck:
    return BoundaryCheck(
        boundary=boundary,
        civil_reached=has_reached(civil, boundary.instant, policy),
        corrected_reached=has_reached(corrected, boundary.instant, policy),
        previous=previous,
        following=following,
    )
