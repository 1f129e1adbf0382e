from datetime import datetime, timedelta, timezone

import pytest

from bazi_engine.errors import ConfigurationError
from bazi_engine.policy import (
    BoundaryPolicy,
    CorrectionMode,
    Precision,
    TieBreak,
    TimeReference,
    has_reached,
    truncate,
)

JST = timezone(timedelta(hours=9))


def test_defaults():
    policy = BoundaryPolicy()
    assert policy.time_reference is TimeReference.CIVIL
    assert policy.precision is Precision.MINUTE
    assert policy.tie_break is TieBreak.AFTER
    assert policy.day_cutover_hour == 24
    assert policy.correction_mode is CorrectionMode.NONE


def test_from_dict_accepts_snake_and_camel_case():
    policy = BoundaryPolicy.from_dict({
        "timeReferenceForBoundary": "corrected",
        "precisionGranularity": "second",
        "tieBreak": "before",
        "dayCutoverHour": 23,
        "civilTimeCorrectionMode": "longitude+equation_of_time",
    })
    assert policy == BoundaryPolicy(
        time_reference=TimeReference.CORRECTED,
        precision=Precision.SECOND,
        tie_break=TieBreak.BEFORE,
        day_cutover_hour=23,
        correction_mode=CorrectionMode.LONGITUDE_EOT,
    )
    assert BoundaryPolicy.from_dict(policy.to_dict()) == policy


def test_from_dict_accepts_legacy_flags():
    policy = BoundaryPolicy.from_dict({"timeMode": "mean_solar", "dayBoundaryMode": "23"})
    assert policy.correction_mode is CorrectionMode.LONGITUDE
    assert policy.day_cutover_hour == 23


def test_whole_number_cutover_accepted():
    assert BoundaryPolicy.from_dict({"day_cutover_hour": 23.0}).day_cutover_hour == 23
    assert BoundaryPolicy.from_dict({"dayCutoverHour": "24"}).day_cutover_hour == 24



@pytest.mark.parametrize("data", [
    {"tie_break": "sideways"},
    {"precision": "hour"},
    {"day_cutover_hour": 22},
    {"day_cutover_hour": "midnight"},
    {"day_cutover_hour": 23.7},
    {"day_cutover_hour": True},
    {"correction_mode": 3},
    {"colour": "blue"},
    {"tie_break": "after", "tieBreak": "before"},
])
def test_from_dict_rejects_unknown_settings(data):
    with pytest.raises(ConfigurationError):
        BoundaryPolicy.from_dict(data)


def test_constructor_rejects_raw_strings():
    with pytest.raises(ConfigurationError):
        BoundaryPolicy(tie_break="after")
    with pytest.raises(ConfigurationError):
        BoundaryPolicy(day_cutover_hour=0)


def test_configuration_error_is_a_value_error():
    with pytest.raises(ValueError):
        BoundaryPolicy.from_dict({"precision": "day"})


def test_truncate():
    dt = datetime(2024, 2, 4, 17, 27, 41, 500000, tzinfo=JST)
    assert truncate(dt, Precision.MINUTE) == datetime(2024, 2, 4, 8, 27, tzinfo=timezone.utc)
    assert truncate(dt, Precision.SECOND) == datetime(2024, 2, 4, 8, 27, 41, tzinfo=timezone.utc)


def test_has_reached_tie_break():
    boundary = datetime(2024, 2, 4, 8, 27, 41, tzinfo=timezone.utc)
    same_minute = datetime(2024, 2, 4, 17, 27, 5, tzinfo=JST)

    after = BoundaryPolicy(tie_break=TieBreak.AFTER)
    before = BoundaryPolicy(tie_break=TieBreak.BEFORE)
    assert has_reached(same_minute, boundary, after)
    assert not has_reached(same_minute, boundary, before)

    # At second precision the same instant is strictly earlier
    second = BoundaryPolicy(precision=Precision.SECOND, tie_break=TieBreak.AFTER)
    assert not has_reached(same_minute, boundary, second)

    later = boundary + timedelta(minutes=1)
    assert has_reached(later, boundary, before)
    assert not has_reached(boundary - timedelta(minutes=1), boundary, after)
