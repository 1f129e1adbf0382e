"""
BaZi (Four Pillars of Destiny) pillar computation.

Handles:
- Year pillar from the Li Chun boundary
- Month pillar from the 12 Jie boundaries (Five Tigers Escape)
- Day pillar from the Julian Day Number, with a 23:00 or 24:00 cutover
- Hour pillar from two-hour branch slots (Five Rats Escape)

Design principle: this module assigns pillars from already-validated
inputs. Boundary instants come from a SolarTermCache passed by the caller.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from bazi_engine.astro_calendar import latest_boundary
from bazi_engine.ephemeris import julian_day_number
from bazi_engine.policy import BoundaryPolicy, has_reached
from bazi_engine.sexagenary import (
    CYCLE_LENGTH,
    EARTHLY_BRANCHES,
    HEAVENLY_STEMS,
    HeavenlyStem,
    StemBranch,
    hidden_stems,
    index_to_stem_branch,
)
from bazi_engine.solar_terms import (
    JIE_BRANCH_INDEX,
    SolarTermCache,
    SolarTermEvent,
    year_start_event,
)


# 1984 was a Jia Zi year
YEAR_EPOCH = 1984

# JDN of 1949-10-01, a Jia Zi day. Checked against 2000-01-01 (Wu Wu),
# 2008-08-08 (Geng Chen) and 2024-01-01 (Jia Zi).
DAY_PILLAR_REFERENCE_JDN = 2433191

# Five Tigers Escape: year stem -> stem of the Tiger (first) month
TIGER_START_STEMS = {
    0: 2, 5: 2,   # Jia/Ji year → Bing Tiger
    1: 4, 6: 4,   # Yi/Geng year → Wu Tiger
    2: 6, 7: 6,   # Bing/Xin year → Geng Tiger
    3: 8, 8: 8,   # Ding/Ren year → Ren Tiger
    4: 0, 9: 0,   # Wu/Gui year → Jia Tiger
}

# Five Rats Escape: day stem -> stem of the Zi (first) hour
ZI_START_STEMS = {
    0: 0, 5: 0,   # Jia/Ji day → Jia Zi hour
    1: 2, 6: 2,   # Yi/Geng day → Bing Zi hour
    2: 4, 7: 4,   # Bing/Xin day → Wu Zi hour
    3: 6, 8: 6,   # Ding/Ren day → Geng Zi hour
    4: 8, 9: 8,   # Wu/Gui day → Ren Zi hour
}

RULE_YEAR = "solar_term_li_chun"
RULE_MONTH = "solar_term_jie12"
RULE_HOUR = "two_hour_slot"


def _day_rule(cutover_hour: int) -> str:
    return f"jdn_cutover_{cutover_hour}"


@dataclass(frozen=True)
class Pillar:
    stem_branch: StemBranch
    position: str  # "year", "month", "day", "hour"
    rule: str
    boundary: Optional[SolarTermEvent] = None

    @property
    def stem(self) -> HeavenlyStem:
        return self.stem_branch.stem

    @property
    def branch(self):
        return self.stem_branch.branch

    @property
    def hidden_stems(self) -> list[HeavenlyStem]:
        return hidden_stems(self.branch)

    def __str__(self):
        return str(self.stem_branch)

    def to_dict(self, tz=None) -> dict:
        return {
            "position": self.position,
            "stem": {
                "chinese": self.stem.chinese,
                "pinyin": self.stem.pinyin,
                "element": self.stem.element.value,
                "polarity": self.stem.polarity.value,
            },
            "branch": {
                "chinese": self.branch.chinese,
                "pinyin": self.branch.pinyin,
                "animal": self.branch.animal,
                "element": self.branch.element.value,
                "polarity": self.branch.polarity.value,
            },
            "hidden_stems": [s.pinyin for s in self.hidden_stems],
            "combined": self.stem_branch.label,
            "rule": self.rule,
            "boundary": self.boundary.to_dict(tz) if self.boundary else None,
        }


@dataclass(frozen=True)
class FourPillars:
    year: Pillar
    month: Pillar
    day: Pillar
    hour: Optional[Pillar]
    pillar_year: int

    def ordered(self) -> list[Pillar]:
        return [p for p in (self.year, self.month, self.day, self.hour) if p is not None]


# ============================================================
# PILLAR COMPUTATION
# ============================================================

def year_cycle_index(pillar_year: int, epoch: int = YEAR_EPOCH) -> int:
    return (pillar_year - epoch) % CYCLE_LENGTH


def pillar_year_for(reference: datetime, policy: BoundaryPolicy,
                    cache: Optional[SolarTermCache] = None):
    """
    BaZi year containing ``reference``.

    The BaZi year starts at Li Chun (Sun at 315°), around Feb 3-5. If the
    reference instant has not reached Li Chun of its civil year, it belongs
    to the previous pillar year.

    Returns:
        (pillar_year, li_chun_event)
    """
    civil_year = reference.year
    li_chun = year_start_event(civil_year, policy.precision, cache)
    if has_reached(reference, li_chun.instant, policy):
        return civil_year, li_chun
    return civil_year - 1, li_chun


def year_pillar(pillar_year: int, li_chun: SolarTermEvent) -> Pillar:
    """Year Pillar of a pillar year, carrying the Li Chun event that decided it."""
    return Pillar(
        stem_branch=index_to_stem_branch(year_cycle_index(pillar_year)),
        position="year",
        rule=RULE_YEAR,
        boundary=li_chun,
    )


def month_pillar(reference: datetime, year_stem: HeavenlyStem, policy: BoundaryPolicy,
                 cache: Optional[SolarTermCache] = None) -> Pillar:
    """
    Compute the Month Pillar using the Five Tigers Escape (Wu Hu Dun) formula.

    The month branch comes from the latest Jie boundary reached; the month
    stem is derived from the year stem.

    Five Tigers Escape rule:
    - Year stem Jia/Ji → month 1 stem starts at Bing
    - Year stem Yi/Geng → month 1 stem starts at Wu
    - Year stem Bing/Xin → month 1 stem starts at Geng
    - Year stem Ding/Ren → month 1 stem starts at Ren
    - Year stem Wu/Gui → month 1 stem starts at Jia
    """
    jie = latest_boundary(reference, policy, cache)
    month_branch_index = JIE_BRANCH_INDEX[jie.angle]

    # Months counted from Tiger (index 2)
    months_from_tiger = (month_branch_index - 2) % 12
    stem_index = (TIGER_START_STEMS[year_stem.index] + months_from_tiger) % 10

    return Pillar(
        stem_branch=StemBranch(HEAVENLY_STEMS[stem_index], EARTHLY_BRANCHES[month_branch_index]),
        position="month",
        rule=RULE_MONTH,
        boundary=jie,
    )


def day_pillar(local: datetime, time_known: bool, cutover_hour: int = 24,
               reference_jdn: int = DAY_PILLAR_REFERENCE_JDN) -> Pillar:
    """
    Compute the Day Pillar using Julian Day Number.

    The sexagenary 60-day cycle maps to JDN with a fixed offset:
    (JDN - reference_jdn) % 60 is the cycle index.

    Args:
        local: corrected local date-time of birth
        time_known: False when only the date is known; no cutover is applied
        cutover_hour: 23 rolls births from 23:00 onward into the next day
    """
    day = local.date()
    if time_known and local.hour >= cutover_hour:
        day += timedelta(days=1)

    jdn = julian_day_number(day.year, day.month, day.day)
    return Pillar(
        stem_branch=index_to_stem_branch((jdn - reference_jdn) % CYCLE_LENGTH),
        position="day",
        rule=_day_rule(cutover_hour),
    )


def hour_branch_index(hour: int, minute: int = 0) -> int:
    """
    Chinese hours (shi chen) are 2-hour blocks:
    23:00-00:59 = Zi (Rat)      = branch 0
    01:00-02:59 = Chou (Ox)     = branch 1
    03:00-04:59 = Yin (Tiger)   = branch 2
    ...
    21:00-22:59 = Hai (Pig)     = branch 11
    """
    minutes = hour * 60 + minute
    return ((minutes + 60) // 120) % 12


def hour_pillar(day_stem: HeavenlyStem, local: datetime) -> Pillar:
    """
    Compute the Hour Pillar using Five Rats Escape (Wu Shu Dun) formula.

    IMPORTANT: pass corrected local time, not clock time, when the policy
    requests a correction.
    """
    branch_index = hour_branch_index(local.hour, local.minute)
    stem_index = (ZI_START_STEMS[day_stem.index] + branch_index) % 10

    return Pillar(
        stem_branch=StemBranch(HEAVENLY_STEMS[stem_index], EARTHLY_BRANCHES[branch_index]),
        position="hour",
        rule=RULE_HOUR,
    )


def compute_pillars(boundary_reference: datetime, corrected: datetime, time_known: bool,
                    policy: BoundaryPolicy, cache: Optional[SolarTermCache] = None,
                    reference_jdn: int = DAY_PILLAR_REFERENCE_JDN) -> FourPillars:
    """
    All four pillars for one birth.

    Args:
        boundary_reference: instant compared against solar-term boundaries
        corrected: corrected local time used for the day and hour pillars
        time_known: whether a birth time was given; without it there is
                    no hour pillar
    """
    if cache is None:
        cache = SolarTermCache()

    pillar_year, li_chun = pillar_year_for(boundary_reference, policy, cache)
    yp = year_pillar(pillar_year, li_chun)
    mp = month_pillar(boundary_reference, yp.stem, policy, cache)
    dp = day_pillar(corrected, time_known, policy.day_cutover_hour, reference_jdn)
    hp = hour_pillar(dp.stem, corrected) if time_known else None

    return FourPillars(year=yp, month=mp, day=dp, hour=hp, pillar_year=pillar_year)
