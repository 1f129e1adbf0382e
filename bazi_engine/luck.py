"""
Luck cycles: decade Luck Pillars (大运 Da Yun) and annual pillars (流年).

Direction of count depends on sex + year stem polarity:
- Yang stem year + Male OR Yin stem year + Female → count FORWARD
- Yang stem year + Female OR Yin stem year + Male → count BACKWARD

Starting age is the time from birth to the next/previous Jie boundary,
at the traditional rate of 3 days per year of life.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional
import math

from bazi_engine.astro_calendar import find_nearest_jie
from bazi_engine.attributes import ten_deity
from bazi_engine.bazi import pillar_year_for, year_cycle_index
from bazi_engine.policy import BoundaryPolicy
from bazi_engine.sexagenary import (
    EARTHLY_BRANCHES,
    HeavenlyStem,
    Polarity,
    StemBranch,
    add_offset,
    index_to_stem_branch,
)
from bazi_engine.solar_terms import SolarTermCache, SolarTermEvent


# Traditional rule: 3 days between birth and the boundary = 1 year of age
DAYS_PER_LUCK_YEAR = 3.0
DECADE_COUNT = 10
ANNUAL_WINDOW_RADIUS = 6


class Sex(Enum):
    MALE = "male"
    FEMALE = "female"


@dataclass(frozen=True)
class DecadeLuck:
    number: int
    stem_branch: StemBranch
    ten_deity: str
    age_start: int
    age_end: int

    def to_dict(self) -> dict:
        return {
            "number": self.number,
            **self.stem_branch.to_dict(),
            "ten_deity": self.ten_deity,
            "age_start": self.age_start,
            "age_end": self.age_end,
        }


@dataclass(frozen=True)
class AnnualLuck:
    year: int
    stem_branch: StemBranch
    ten_deity: str
    is_void: bool

    def to_dict(self) -> dict:
        return {
            "year": self.year,
            **self.stem_branch.to_dict(),
            "ten_deity": self.ten_deity,
            "is_void": self.is_void,
        }


@dataclass(frozen=True)
class StartAge:
    days: float
    years: float
    breakdown: tuple  # (years, months, days)
    age: int
    boundary: SolarTermEvent

    def to_dict(self, tz=None) -> dict:
        y, m, d = self.breakdown
        return {
            "days_to_boundary": round(self.days, 4),
            "years": round(self.years, 4),
            "detail": {"years": y, "months": m, "days": d},
            "age": self.age,
            "boundary": self.boundary.to_dict(tz),
        }


@dataclass(frozen=True)
class LuckCycles:
    void_branches: tuple
    direction: Optional[str] = None
    start: Optional[StartAge] = None
    decades: Optional[tuple] = None
    annual: Optional[tuple] = None
    as_of_age: Optional[int] = None
    as_of_boundary: Optional[SolarTermEvent] = None
    current_decade: Optional[DecadeLuck] = None
    current_annual: Optional[AnnualLuck] = None

    def to_dict(self, tz=None) -> dict:
        return {
            "direction": self.direction,
            "start": self.start.to_dict(tz) if self.start else None,
            "void_branches": [b.pinyin for b in self.void_branches],
            "decades": [d.to_dict() for d in self.decades] if self.decades is not None else None,
            "annual": [a.to_dict() for a in self.annual] if self.annual is not None else None,
            "as_of_age": self.as_of_age,
            "as_of_boundary": self.as_of_boundary.to_dict(tz) if self.as_of_boundary else None,
            "current_decade": self.current_decade.to_dict() if self.current_decade else None,
            "current_annual": self.current_annual.to_dict() if self.current_annual else None,
        }


# ============================================================
# DIRECTION AND START AGE
# ============================================================

def luck_direction(year_stem: HeavenlyStem, sex: Sex) -> bool:
    """True = count forward from the month pillar."""
    year_yang = year_stem.polarity is Polarity.YANG
    return year_yang == (sex is Sex.MALE)


def elapsed_days(a: datetime, b: datetime) -> float:
    return abs((b - a) / timedelta(days=1))


def round_age(years: float) -> int:
    """Nearest whole year, halves rounded up (1.5 -> 2, 2.5 -> 3)."""
    return math.floor(years + 0.5)


def start_age(boundary_reference: datetime, forward: bool, policy: BoundaryPolicy,
              cache: Optional[SolarTermCache] = None,
              days_per_year: float = DAYS_PER_LUCK_YEAR) -> StartAge:
    """
    Luck start age from the distance to the nearest Jie in the luck direction.

    One day is four months of age; the integer ``age`` is rounded to the
    nearest year and anchors the decade windows.
    """
    jie = find_nearest_jie(boundary_reference, forward, policy, cache)
    days = elapsed_days(boundary_reference, jie.instant)
    years = days / days_per_year

    total_months = years * 12
    whole_years = int(total_months // 12)
    months = int(total_months % 12)
    rest_days = int(round((total_months - math.floor(total_months)) * 30))
    if rest_days == 30:
        months, rest_days = months + 1, 0
        if months == 12:
            whole_years, months = whole_years + 1, 0

    return StartAge(
        days=days,
        years=years,
        breakdown=(whole_years, months, rest_days),
        age=round_age(years),
        boundary=jie,
    )


# ============================================================
# DECADE CYCLE
# ============================================================

def decade_cycle(month_pillar: StemBranch, day_master: HeavenlyStem, forward: bool,
                 first_age: int, count: int = DECADE_COUNT) -> list[DecadeLuck]:
    """
    Decade Luck Pillars stepping away from the month pillar.

    Args:
        month_pillar: natal month stem-branch
        day_master: natal day stem, for the Ten Deity of each decade
        forward: direction from luck_direction()
        first_age: age at which the first decade starts
    """
    step = 1 if forward else -1
    pillars = []
    for i in range(count):
        sb = add_offset(month_pillar, step * (i + 1))
        age_start = first_age + i * 10
        pillars.append(DecadeLuck(
            number=i + 1,
            stem_branch=sb,
            ten_deity=ten_deity(day_master, sb.stem).english,
            age_start=age_start,
            age_end=age_start + 9,
        ))
    return pillars


def current_decade(cycle, age: int) -> Optional[DecadeLuck]:
    for lp in cycle:
        if lp.age_start <= age <= lp.age_end:
            return lp
    return None


# ============================================================
# VOID PERIOD AND ANNUAL CYCLE
# ============================================================

def void_branches(day_pillar: StemBranch) -> tuple:
    """
    The two branches left over by the day pillar's ten-day group (旬).

    Each group pairs ten stems with ten branches starting at index
    ``i - i % 10``; the two branches just before the group's start branch
    get no stem and are the void (空亡) branches.
    """
    idx = day_pillar.index
    start_branch = (idx - idx % 10) % 12
    return (EARTHLY_BRANCHES[(start_branch - 2) % 12],
            EARTHLY_BRANCHES[(start_branch - 1) % 12])


def annual_pillar(pillar_year: int) -> StemBranch:
    """Stem-branch of a BaZi year."""
    return index_to_stem_branch(year_cycle_index(pillar_year))


def annual_cycle(center_year: int, day_master: HeavenlyStem, void: tuple,
                 radius: int = ANNUAL_WINDOW_RADIUS) -> list[AnnualLuck]:
    """Annual pillars for center_year ± radius, flagged against the void branches."""
    entries = []
    for year in range(center_year - radius, center_year + radius + 1):
        sb = annual_pillar(year)
        entries.append(AnnualLuck(
            year=year,
            stem_branch=sb,
            ten_deity=ten_deity(day_master, sb.stem).english,
            is_void=sb.branch in void,
        ))
    return entries


def current_annual(cycle, pillar_year: int) -> Optional[AnnualLuck]:
    for entry in cycle:
        if entry.year == pillar_year:
            return entry
    return None


def age_at(birth: date, as_of: date) -> int:
    """Completed years of age on ``as_of``."""
    return as_of.year - birth.year - (
        1 if (as_of.month, as_of.day) < (birth.month, birth.day) else 0
    )


def compute_luck(year_stem: HeavenlyStem, month_pillar: StemBranch, day_pillar: StemBranch,
                 sex: Optional[Sex], boundary_reference: datetime, birth_date: date,
                 policy: BoundaryPolicy, cache: Optional[SolarTermCache] = None,
                 as_of: Optional[datetime] = None,
                 days_per_year: float = DAYS_PER_LUCK_YEAR,
                 radius: int = ANNUAL_WINDOW_RADIUS) -> LuckCycles:
    """
    Decade and annual luck for one chart.

    Without ``sex`` there is no direction and so no decade cycle. Without
    ``as_of`` there is no annual window and no current entries; nothing
    here reads the system clock.

    Args:
        boundary_reference: birth instant used for boundary comparisons
        as_of: evaluation instant (aware), compared against Li Chun with the
               same policy as the birth
    """
    if cache is None:
        cache = SolarTermCache()

    day_master = day_pillar.stem
    void = void_branches(day_pillar)

    direction = start = decades = None
    if sex is not None:
        forward = luck_direction(year_stem, sex)
        direction = "forward" if forward else "backward"
        start = start_age(boundary_reference, forward, policy, cache, days_per_year)
        decades = tuple(decade_cycle(month_pillar, day_master, forward, start.age))

    annual = as_of_age = as_of_li_chun = cur_decade = cur_annual = None
    if as_of is not None:
        as_of_year, as_of_li_chun = pillar_year_for(as_of, policy, cache)
        annual = tuple(annual_cycle(as_of_year, day_master, void, radius))
        cur_annual = current_annual(annual, as_of_year)
        as_of_age = age_at(birth_date, as_of.date())
        if decades is not None:
            cur_decade = current_decade(decades, as_of_age)

    return LuckCycles(
        void_branches=void,
        direction=direction,
        start=start,
        decades=decades,
        annual=annual,
        as_of_age=as_of_age,
        as_of_boundary=as_of_li_chun,
        current_decade=cur_decade,
        current_annual=cur_annual,
    )
