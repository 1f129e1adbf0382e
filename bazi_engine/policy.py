"""
Boundary policy: the knobs that decide how a birth instant is compared
against calendar boundaries.

    time_reference     civil clock time or corrected (solar) time
    precision          minute or second comparison granularity
    tie_break          an instant equal to a boundary counts as before/after it
    day_cutover_hour   the day pillar rolls over at 23:00 or 24:00
    correction_mode    none | longitude | longitude+equation_of_time
"""

from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional

from bazi_engine.errors import ConfigurationError


class TimeReference(Enum):
    CIVIL = "civil"
    CORRECTED = "corrected"


class Precision(Enum):
    MINUTE = "minute"
    SECOND = "second"

    @property
    def seconds(self) -> int:
        return 60 if self is Precision.MINUTE else 1


class TieBreak(Enum):
    BEFORE = "before"
    AFTER = "after"


class CorrectionMode(Enum):
    NONE = "none"
    LONGITUDE = "longitude"
    LONGITUDE_EOT = "longitude+equation_of_time"

    @property
    def uses_longitude(self) -> bool:
        return self is not CorrectionMode.NONE

    @property
    def uses_equation_of_time(self) -> bool:
        return self is CorrectionMode.LONGITUDE_EOT


DAY_CUTOVER_HOURS = (23, 24)

# Accepted spellings for each field, including the camelCase names used by
# request payloads and the older timeMode/dayBoundaryMode flags.
_KEY_ALIASES = {
    "time_reference": "time_reference",
    "timeReferenceForBoundary": "time_reference",
    "precision": "precision",
    "precisionGranularity": "precision",
    "tie_break": "tie_break",
    "tieBreak": "tie_break",
    "day_cutover_hour": "day_cutover_hour",
    "dayCutoverHour": "day_cutover_hour",
    "dayBoundaryMode": "day_cutover_hour",
    "correction_mode": "correction_mode",
    "civilTimeCorrectionMode": "correction_mode",
    "timeMode": "correction_mode",
}

_LEGACY_VALUES = {
    "correction_mode": {"standard": "none", "mean_solar": "longitude"},
    "time_reference": {"standard": "civil"},
}


@dataclass(frozen=True)
class BoundaryPolicy:
    time_reference: TimeReference = TimeReference.CIVIL
    precision: Precision = Precision.MINUTE
    tie_break: TieBreak = TieBreak.AFTER
    day_cutover_hour: int = 24
    correction_mode: CorrectionMode = CorrectionMode.NONE

    def __post_init__(self):
        for name, kind in (("time_reference", TimeReference),
                           ("precision", Precision),
                           ("tie_break", TieBreak),
                           ("correction_mode", CorrectionMode)):
            if not isinstance(getattr(self, name), kind):
                raise ConfigurationError(
                    f"{name} must be a {kind.__name__}, got {getattr(self, name)!r}")
        if self.day_cutover_hour not in DAY_CUTOVER_HOURS:
            raise ConfigurationError(
                f"day_cutover_hour must be 23 or 24, got {self.day_cutover_hour!r}")

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "BoundaryPolicy":
        """
        Build a policy from a raw mapping, rejecting anything unrecognized.

        Missing keys take the defaults. Raises ConfigurationError for unknown
        keys or values.
        """
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ConfigurationError(f"policy must be a mapping, got {type(data).__name__}")

        fields = {}
        for key, raw in data.items():
            field = _KEY_ALIASES.get(key)
            if field is None:
                raise ConfigurationError(f"Unknown policy key: {key!r}")
            if field in fields:
                raise ConfigurationError(f"Policy key given twice: {key!r}")
            fields[field] = _parse_field(field, raw)
        return cls(**fields)

    def to_dict(self) -> dict:
        return {k: (v.value if isinstance(v, Enum) else v) for k, v in asdict(self).items()}


def _parse_field(field: str, raw: Any):
    if field == "day_cutover_hour":
        # whole hours only: 23.7 or True are rejected, "23" is accepted
        if isinstance(raw, bool) or (isinstance(raw, float) and not raw.is_integer()):
            raise ConfigurationError(f"day_cutover_hour must be 23 or 24, got {raw!r}")
        try:
            hour = int(raw)
        except (TypeError, ValueError):
            raise ConfigurationError(f"day_cutover_hour must be 23 or 24, got {raw!r}") from None
        if hour not in DAY_CUTOVER_HOURS:
            raise ConfigurationError(f"day_cutover_hour must be 23 or 24, got {raw!r}")
        return hour

    kind = {
        "time_reference": TimeReference,
        "precision": Precision,
        "tie_break": TieBreak,
        "correction_mode": CorrectionMode,
    }[field]
    if isinstance(raw, kind):
        return raw
    if not isinstance(raw, str):
        raise ConfigurationError(f"{field} must be a string, got {raw!r}")
    value = _LEGACY_VALUES.get(field, {}).get(raw, raw)
    try:
        return kind(value)
    except ValueError:
        allowed = ", ".join(m.value for m in kind)
        raise ConfigurationError(f"Unknown {field} {raw!r} (expected one of: {allowed})") from None


# ============================================================
# BOUNDARY COMPARISON
# ============================================================

def truncate(dt: datetime, precision: Precision) -> datetime:
    """Drop the parts of ``dt`` finer than the policy precision (result in UTC)."""
    utc = dt.astimezone(timezone.utc)
    if precision is Precision.MINUTE:
        return utc.replace(second=0, microsecond=0)
    return utc.replace(microsecond=0)


def has_reached(instant: datetime, boundary: datetime, policy: BoundaryPolicy) -> bool:
    """
    True if ``instant`` falls on the new side of ``boundary``.

    Both are truncated to the policy precision; when they are then equal the
    tie-break decides (AFTER: the boundary has taken effect).
    """
    a = truncate(instant, policy.precision)
    b = truncate(boundary, policy.precision)
    if a != b:
        return a > b
    return policy.tie_break is TieBreak.AFTER
