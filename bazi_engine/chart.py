"""
Chart assembly.

Validates raw birth data, applies the clock → solar time correction,
runs the pillar, attribute and luck calculators against one
SolarTermCache, and returns an immutable Chart with an audit trail naming
every solar-term instant that drove a boundary decision.

Usage from Python:
    from bazi_engine.chart import BirthInput, compute_chart
    birth = BirthInput.from_dict({
        "date": "1990-03-15", "time": "10:30", "sex": "male",
        "location": {"longitude": 139.69, "utc_offset": 9},
        "policy": {"correction_mode": "longitude"},
    })
    chart = compute_chart(birth)
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from types import MappingProxyType
from typing import Any, Mapping, Optional
import json
import logging

from bazi_engine.astro_calendar import BoundaryCheck, boundary_check, correction_minutes, jie_around
from bazi_engine.attributes import five_element_counts, map_ten_deities
from bazi_engine.bazi import Pillar, compute_pillars
from bazi_engine.ephemeris import MAX_YEAR, MIN_YEAR
from bazi_engine.errors import InputValidationError
from bazi_engine.location import Location, resolve_location
from bazi_engine.luck import LuckCycles, Sex, compute_luck
from bazi_engine.policy import BoundaryPolicy, TimeReference
from bazi_engine.solar_terms import SolarTermCache, SolarTermEvent

logger = logging.getLogger(__name__)

# Boundary judgments for a date-only birth use local noon
ASSUMED_TIME = time(12, 0)

_SEX_VALUES = {
    "male": Sex.MALE, "m": Sex.MALE,
    "female": Sex.FEMALE, "f": Sex.FEMALE,
}


# ============================================================
# INPUT
# ============================================================

def _check_year(value: date, what: str) -> None:
    if not MIN_YEAR <= value.year <= MAX_YEAR:
        raise InputValidationError(
            f"{what} {value.isoformat()} outside supported years {MIN_YEAR}-{MAX_YEAR}")


def _parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        parsed = value.date()
    elif isinstance(value, date):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.strptime(value, "%Y-%m-%d").date()
        except ValueError:
            raise InputValidationError(f"Malformed date {value!r} (expected YYYY-MM-DD)") from None
    else:
        raise InputValidationError(f"date required (YYYY-MM-DD), got {value!r}")
    _check_year(parsed, "date")
    return parsed


def _parse_time(value: Any) -> Optional[time]:
    if value is None or value == "":
        return None
    if isinstance(value, time):
        return value
    if not isinstance(value, str):
        raise InputValidationError(f"time must be HH:MM or HH:MM:SS, got {value!r}")
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(value, fmt).time()
        except ValueError:
            continue
    raise InputValidationError(f"Malformed time {value!r} (expected HH:MM or HH:MM:SS)")


def _parse_sex(value: Any) -> Optional[Sex]:
    if value is None or value == "":
        return None
    if isinstance(value, Sex):
        return value
    if isinstance(value, str) and value.lower() in _SEX_VALUES:
        return _SEX_VALUES[value.lower()]
    raise InputValidationError(f"sex must be male/female (or M/F), got {value!r}")


def _parse_as_of(value: Any, location: Location) -> Optional[datetime]:
    """ISO date or date-time; naive values are read in the birth location's offset."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime.combine(value, ASSUMED_TIME)
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value)
        except ValueError:
            raise InputValidationError(f"Malformed as_of {value!r} (expected ISO 8601)") from None
        if len(value) == 10:
            dt = datetime.combine(dt.date(), ASSUMED_TIME)
    else:
        raise InputValidationError(f"as_of must be an ISO date/date-time, got {value!r}")

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=location.tz)
    dt = dt.astimezone(location.tz)
    _check_year(dt.date(), "as_of")
    return dt


@dataclass(frozen=True)
class BirthInput:
    birth_date: date
    birth_time: Optional[time]
    location: Location
    sex: Optional[Sex] = None
    policy: BoundaryPolicy = field(default_factory=BoundaryPolicy)
    as_of: Optional[datetime] = None

    @property
    def time_known(self) -> bool:
        return self.birth_time is not None

    @property
    def civil_instant(self) -> datetime:
        """Birth instant in the location's civil offset (noon when time is unknown)."""
        return datetime.combine(self.birth_date, self.birth_time or ASSUMED_TIME,
                                tzinfo=self.location.tz)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "BirthInput":
        """
        Validate a raw request mapping.

        Keys: date, time?, sex?, location, policy?, as_of?
        Raises InputValidationError for malformed data and ConfigurationError
        for unknown policy settings.
        """
        if not isinstance(payload, Mapping):
            raise InputValidationError(f"payload must be a mapping, got {type(payload).__name__}")
        if "date" not in payload:
            raise InputValidationError("date required (YYYY-MM-DD)")

        birth_date = _parse_date(payload["date"])
        birth_time = _parse_time(payload.get("time"))
        sex = _parse_sex(payload.get("sex"))
        location = resolve_location(payload.get("location"), birth_date)
        policy = BoundaryPolicy.from_dict(payload.get("policy"))
        if policy.correction_mode.uses_longitude and location.longitude is None:
            raise InputValidationError(
                f"correction_mode {policy.correction_mode.value!r} needs a location longitude")
        as_of = _parse_as_of(payload.get("as_of"), location)

        return cls(
            birth_date=birth_date,
            birth_time=birth_time,
            location=location,
            sex=sex,
            policy=policy,
            as_of=as_of,
        )


# ============================================================
# OUTPUT
# ============================================================

@dataclass(frozen=True)
class ChartAudit:
    """
    How a chart was reached.

    ``events`` names every solar-term instant that decided a pillar or a
    luck value. ``checks`` places the civil and corrected birth instants on
    either side of the Li Chun used for the year and of the Jie nearest the
    birth, with that Jie's neighbours.
    """
    policy: BoundaryPolicy
    location: Location
    civil: datetime
    corrected: datetime
    boundary_reference: datetime
    corrections: Mapping[str, float]
    time_assumed: bool
    pillar_year: int
    events: Mapping[str, SolarTermEvent]
    checks: Mapping[str, BoundaryCheck]

    def to_dict(self) -> dict:
        tz = self.location.tz
        return {
            "policy": self.policy.to_dict(),
            "location": self.location.to_dict(),
            "civil": self.civil.isoformat(),
            "corrected": self.corrected.isoformat(),
            "boundary_reference": self.boundary_reference.isoformat(),
            "correction_minutes": {k: round(v, 2) for k, v in self.corrections.items()},
            "time_assumed": self.time_assumed,
            "pillar_year": self.pillar_year,
            "solar_terms": {k: e.to_dict(tz) for k, e in self.events.items()},
            "boundary_checks": {k: c.to_dict(tz) for k, c in self.checks.items()},
        }


@dataclass(frozen=True)
class Chart:
    year: Pillar
    month: Pillar
    day: Pillar
    hour: Optional[Pillar]
    ten_deities: Mapping[str, Any]
    five_elements: Mapping[str, int]
    luck: LuckCycles
    audit: ChartAudit

    @property
    def pillars(self) -> list[Pillar]:
        return [p for p in (self.year, self.month, self.day, self.hour) if p is not None]

    @property
    def day_master(self):
        return self.day.stem

    @property
    def degraded(self) -> bool:
        """True if any solar-term instant behind this chart is an estimate."""
        return any(e.degraded for e in self.audit.events.values())

    def to_dict(self) -> dict:
        tz = self.audit.location.tz
        return {
            "day_master": {
                "stem": self.day_master.pinyin,
                "chinese": self.day_master.chinese,
                "element": self.day_master.element.value,
                "polarity": self.day_master.polarity.value,
                "description": str(self.day_master),
            },
            "pillars": {
                "year": self.year.to_dict(tz),
                "month": self.month.to_dict(tz),
                "day": self.day.to_dict(tz),
                "hour": self.hour.to_dict(tz) if self.hour else None,
            },
            "ten_deities": {k: v.to_dict() for k, v in self.ten_deities.items()},
            "five_elements": dict(self.five_elements),
            "luck": self.luck.to_dict(tz),
            "audit": self.audit.to_dict(),
            "degraded": self.degraded,
        }


# ============================================================
# FULL CHART COMPUTATION
# ============================================================

def _boundary_instant(civil: datetime, corrected: datetime, policy: BoundaryPolicy) -> datetime:
    if policy.time_reference is TimeReference.CORRECTED:
        return corrected
    return civil


def compute_chart(birth: BirthInput, cache: Optional[SolarTermCache] = None) -> Chart:
    """
    Compute a full BaZi chart from validated birth data.

    Args:
        birth: validated BirthInput
        cache: SolarTermCache for this computation; a fresh one is created
               when omitted. Pass one only to inspect or reuse it within the
               same computation.

    Returns:
        Chart with pillars, ten deities, five-element counts, luck cycles
        and the audit trail.
    """
    if cache is None:
        cache = SolarTermCache()

    policy = birth.policy
    location = birth.location
    civil = birth.civil_instant

    # No birth time: nothing to correct and no hour pillar
    if birth.time_known:
        corrections = correction_minutes(civil, location.longitude,
                                         location.standard_meridian, policy.correction_mode)
    else:
        corrections = {"longitude": 0.0, "equation_of_time": 0.0, "total": 0.0}
    corrected = civil + timedelta(minutes=corrections["total"])
    boundary_reference = _boundary_instant(civil, corrected, policy)

    pillars = compute_pillars(boundary_reference, corrected, birth.time_known, policy, cache)
    ordered = pillars.ordered()

    as_of_reference = None
    if birth.as_of is not None:
        as_of_corr = correction_minutes(birth.as_of, location.longitude,
                                        location.standard_meridian, policy.correction_mode)
        as_of_reference = _boundary_instant(
            birth.as_of, birth.as_of + timedelta(minutes=as_of_corr["total"]), policy)

    luck = compute_luck(
        year_stem=pillars.year.stem,
        month_pillar=pillars.month.stem_branch,
        day_pillar=pillars.day.stem_branch,
        sex=birth.sex,
        boundary_reference=boundary_reference,
        birth_date=birth.birth_date,
        policy=policy,
        cache=cache,
        as_of=as_of_reference,
    )

    events = {"year": pillars.year.boundary, "month": pillars.month.boundary}
    if luck.start is not None:
        events["luck_start"] = luck.start.boundary
    if luck.as_of_boundary is not None:
        events["as_of_year"] = luck.as_of_boundary

    # Civil and corrected time against the deciding boundaries
    previous_jie, nearest_jie, following_jie = jie_around(boundary_reference, policy, cache)
    checks = {
        "year": boundary_check(pillars.year.boundary, civil, corrected, policy),
        "month": boundary_check(nearest_jie, civil, corrected, policy,
                                previous_jie, following_jie),
    }

    audit = ChartAudit(
        policy=policy,
        location=location,
        civil=civil,
        corrected=corrected,
        boundary_reference=boundary_reference,
        corrections=MappingProxyType(dict(corrections)),
        time_assumed=not birth.time_known,
        pillar_year=pillars.pillar_year,
        events=MappingProxyType(events),
        checks=MappingProxyType(checks),
    )

    logger.debug("Chart %s | %s | %s | %s (cache: %d events, %d hits)",
                 pillars.year.stem_branch.label, pillars.month.stem_branch.label,
                 pillars.day.stem_branch.label,
                 pillars.hour.stem_branch.label if pillars.hour else "-",
                 len(cache), cache.hits)

    return Chart(
        year=pillars.year,
        month=pillars.month,
        day=pillars.day,
        hour=pillars.hour,
        ten_deities=MappingProxyType(map_ten_deities(pillars.day.stem, ordered)),
        five_elements=MappingProxyType(five_element_counts(ordered)),
        luck=luck,
        audit=audit,
    )


if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG)
    sample = BirthInput.from_dict({
        "date": "1984-02-05",
        "time": "10:30",
        "sex": "male",
        "location": {"longitude": 116.40, "utc_offset": 8},
        "policy": {"correction_mode": "longitude+equation_of_time"},
        "as_of": "2026-10-18",
    })
    print(json.dumps(compute_chart(sample).to_dict(), indent=2, ensure_ascii=False))
