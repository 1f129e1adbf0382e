"""
Solar term computation.

A solar term is the instant the Sun's apparent ecliptic longitude reaches
a multiple of 15°. The 12 Jie (节) terms mark BaZi month boundaries:

Li Chun (315°) → Tiger month (month 1)
Jing Zhe (345°) → Rabbit month (month 2)
Qing Ming (15°) → Dragon month (month 3)
Li Xia (45°) → Snake month (month 4)
Mang Zhong (75°) → Horse month (month 5)
Xiao Shu (105°) → Goat month (month 6)
Li Qiu (135°) → Monkey month (month 7)
Bai Lu (165°) → Rooster month (month 8)
Han Lu (195°) → Dog month (month 9)
Li Dong (225°) → Pig month (month 10)
Da Xue (255°) → Rat month (month 11)
Xiao Han (285°) → Ox month (month 12)

Crossings are found by bracketing the signed angular distance to the
target and bisecting. Results are memoized in a SolarTermCache that the
caller creates per computation and passes in explicitly.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional
import logging
import warnings

from bazi_engine.ephemeris import (
    MEAN_DAILY_MOTION,
    datetime_from_julian_day,
    julian_day,
    signed_angle_diff,
    solar_apparent_longitude,
)
from bazi_engine.errors import RootFindingDegraded
from bazi_engine.policy import Precision

logger = logging.getLogger(__name__)


# (longitude, term_name, branch_pinyin, branch_index)
JIE_DEFINITIONS = [
    (285, "Xiao Han", "Chou", 1),
    (315, "Li Chun", "Yin", 2),
    (345, "Jing Zhe", "Mao", 3),
    (15,  "Qing Ming", "Chen", 4),
    (45,  "Li Xia", "Si", 5),
    (75,  "Mang Zhong", "Wu", 6),
    (105, "Xiao Shu", "Wei", 7),
    (135, "Li Qiu", "Shen", 8),
    (165, "Bai Lu", "You", 9),
    (195, "Han Lu", "Xu", 10),
    (225, "Li Dong", "Hai", 11),
    (255, "Da Xue", "Zi", 0),
]

JIE_TERMS = {lon: name for lon, name, _, _ in JIE_DEFINITIONS}
JIE_BRANCH_INDEX = {lon: branch_idx for lon, _, _, branch_idx in JIE_DEFINITIONS}

SOLAR_TERMS_24 = {
    0: "Chun Fen", 15: "Qing Ming", 30: "Gu Yu", 45: "Li Xia",
    60: "Xiao Man", 75: "Mang Zhong", 90: "Xia Zhi", 105: "Xiao Shu",
    120: "Da Shu", 135: "Li Qiu", 150: "Chu Shu", 165: "Bai Lu",
    180: "Qiu Fen", 195: "Han Lu", 210: "Shuang Jiang", 225: "Li Dong",
    240: "Xiao Xue", 255: "Da Xue", 270: "Dong Zhi", 285: "Xiao Han",
    300: "Da Han", 315: "Li Chun", 330: "Yu Shui", 345: "Jing Zhe",
}

YEAR_START_ANGLE = 315

# Solver budget
INITIAL_HALF_WIDTH_DAYS = 4.0
MAX_HALF_WIDTH_DAYS = 32.0
SCAN_WINDOW_DAYS = 60.0
SCAN_STEP_DAYS = 6 / 24
MAX_BISECTIONS = 64

LongitudeFn = Callable[[float], float]


@dataclass(frozen=True)
class SolarTermEvent:
    name: str
    angle: int
    instant: datetime  # aware, UTC
    year: int
    precision: Precision
    degraded: bool = False

    def to_dict(self, tz=None) -> dict:
        instant = self.instant if tz is None else self.instant.astimezone(tz)
        return {
            "name": self.name,
            "angle": self.angle,
            "instant": instant.isoformat(),
            "degraded": self.degraded,
        }


class SolarTermCache:
    """
    (year, angle, precision) -> SolarTermEvent memo for one computation.

    Create one per chart (compute_chart does this when none is given) and
    pass it to every calculator that needs boundaries. Never share one
    instance between unrelated computations.
    """

    def __init__(self):
        self._events = {}
        self.hits = 0
        self.misses = 0

    def get(self, year: int, angle: int, precision: Precision) -> Optional[SolarTermEvent]:
        event = self._events.get((year, angle, precision))
        if event is None:
            self.misses += 1
        else:
            self.hits += 1
        return event

    def put(self, event: SolarTermEvent) -> None:
        self._events[(event.year, event.angle, event.precision)] = event

    def __len__(self):
        return len(self._events)

    def __contains__(self, key):
        return key in self._events


# ============================================================
# ROOT FINDING
# ============================================================

def _crosses(diff_lo: float, diff_hi: float) -> bool:
    # diff > 0: target not reached yet. A real crossing goes from >= 0 to <= 0
    # with a small total swing; a jump from +179 to -179 is the far side of the circle.
    return diff_lo >= 0.0 >= diff_hi and (diff_lo - diff_hi) < 180.0


def find_crossing(target: float, center_jd: float,
                  precision: Precision = Precision.MINUTE,
                  longitude_fn: LongitudeFn = solar_apparent_longitude):
    """
    Find the Julian Day at which the solar longitude reaches ``target``.

    Args:
        target: ecliptic longitude in degrees
        center_jd: approximate Julian Day of the crossing
        precision: bisection stops once the bracket is at most 60 s (minute)
                   or 1 s (second) wide
        longitude_fn: longitude as a function of Julian Day

    Returns:
        (jd, degraded). When no bracket is found within the search budget,
        returns (center_jd, True) instead of raising.
    """
    def diff(jd):
        return signed_angle_diff(target, longitude_fn(jd))

    bracket = None

    # (a)+(b) symmetric bracket, widened exponentially
    half_width = INITIAL_HALF_WIDTH_DAYS
    while half_width <= MAX_HALF_WIDTH_DAYS:
        lo, hi = center_jd - half_width, center_jd + half_width
        if _crosses(diff(lo), diff(hi)):
            bracket = (lo, hi)
            break
        half_width *= 2

    # fixed-step scan across a wide window
    if bracket is None:
        prev_jd = center_jd - SCAN_WINDOW_DAYS
        prev_diff = diff(prev_jd)
        steps = int(2 * SCAN_WINDOW_DAYS / SCAN_STEP_DAYS)
        for i in range(1, steps + 1):
            jd = center_jd - SCAN_WINDOW_DAYS + i * SCAN_STEP_DAYS
            cur_diff = diff(jd)
            if _crosses(prev_diff, cur_diff):
                bracket = (prev_jd, jd)
                break
            prev_jd, prev_diff = jd, cur_diff

    if bracket is None:
        return center_jd, True

    # (c) bisection
    lo, hi = bracket
    tolerance_days = precision.seconds / 86400.0
    for _ in range(MAX_BISECTIONS):
        if hi - lo <= tolerance_days:
            break
        mid = (lo + hi) / 2
        if diff(mid) > 0:
            lo = mid
        else:
            hi = mid

    return (lo + hi) / 2, False


def approximate_crossing_jd(year: int, angle: float,
                            longitude_fn: LongitudeFn = solar_apparent_longitude) -> float:
    """
    Rough Julian Day of the first crossing of ``angle`` on or after 1 January.

    Uses the mean daily motion from the longitude at the start of the year,
    so the estimate is off by at most a couple of days.
    """
    jd_year_start = julian_day(datetime(year, 1, 1, tzinfo=timezone.utc))
    lon0 = longitude_fn(jd_year_start)
    return jd_year_start + ((angle - lon0) % 360.0) / MEAN_DAILY_MOTION


def solve_solar_term(year: int, angle: int, precision: Precision = Precision.MINUTE,
                     cache: Optional[SolarTermCache] = None,
                     name: Optional[str] = None,
                     longitude_fn: LongitudeFn = solar_apparent_longitude) -> SolarTermEvent:
    """
    The crossing of ``angle`` within Gregorian ``year`` (UT).

    Degraded results are logged, warned about with RootFindingDegraded and
    returned with ``degraded=True``.
    """
    if cache is not None:
        cached = cache.get(year, angle, precision)
        if cached is not None:
            return cached

    center = approximate_crossing_jd(year, angle, longitude_fn)
    jd, degraded = find_crossing(angle, center, precision, longitude_fn)
    event = SolarTermEvent(
        name=name or SOLAR_TERMS_24.get(angle, f"{angle}°"),
        angle=angle,
        instant=datetime_from_julian_day(jd),
        year=year,
        precision=precision,
        degraded=degraded,
    )

    if degraded:
        logger.warning("Could not bracket solar longitude %s° in %s; using estimate %s",
                       angle, year, event.instant.isoformat())
        warnings.warn(f"solar term {event.name} ({angle}°) {year} is an estimate",
                      RootFindingDegraded, stacklevel=2)
    else:
        logger.debug("Solved %s (%s°) %s -> %s", event.name, angle, year,
                     event.instant.isoformat())

    if cache is not None:
        cache.put(event)
    return event


def build_solar_terms(year: int, precision: Precision = Precision.MINUTE,
                      cache: Optional[SolarTermCache] = None,
                      terms: Optional[dict] = None,
                      longitude_fn: LongitudeFn = solar_apparent_longitude) -> list[SolarTermEvent]:
    """
    Compute solar terms falling in a Gregorian year, in chronological order.

    Args:
        year: Gregorian year
        precision: solver precision
        cache: per-computation SolarTermCache
        terms: {angle: name}; defaults to the 12 Jie month boundaries,
               pass SOLAR_TERMS_24 for all 24 terms

    Returns:
        List of SolarTermEvent sorted by instant
    """
    if terms is None:
        terms = JIE_TERMS
    events = [
        solve_solar_term(year, angle, precision, cache, name, longitude_fn)
        for angle, name in terms.items()
    ]
    events.sort(key=lambda e: e.instant)
    return events


def year_start_event(year: int, precision: Precision = Precision.MINUTE,
                     cache: Optional[SolarTermCache] = None) -> SolarTermEvent:
    """Li Chun (315°) of a Gregorian year: the BaZi year boundary."""
    return solve_solar_term(year, YEAR_START_ANGLE, precision, cache, JIE_TERMS[YEAR_START_ANGLE])


def boundaries_around(year: int, precision: Precision = Precision.MINUTE,
                      cache: Optional[SolarTermCache] = None) -> list[SolarTermEvent]:
    """Jie events of year-1, year and year+1 merged in time order."""
    all_jie = []
    for y in (year - 1, year, year + 1):
        all_jie.extend(build_solar_terms(y, precision, cache))
    all_jie.sort(key=lambda e: e.instant)
    return all_jie
