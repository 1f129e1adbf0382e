from datetime import datetime, timedelta, timezone

import pytest

from bazi_engine.errors import RootFindingDegraded
from bazi_engine.policy import Precision
from bazi_engine.solar_terms import (
    JIE_TERMS,
    SOLAR_TERMS_24,
    SolarTermCache,
    build_solar_terms,
    boundaries_around,
    find_crossing,
    solve_solar_term,
    year_start_event,
)
from bazi_engine.ephemeris import julian_day, signed_angle_diff, solar_longitude_at

CST = timezone(timedelta(hours=8))


def _assert_close(instant, expected, minutes):
    assert abs((instant - expected).total_seconds()) <= minutes * 60


@pytest.mark.parametrize("year", [1900, 1950, 1984, 1999, 2000, 2024, 2050, 2100])
def test_twelve_jie_are_distinct_and_ordered(year):
    events = build_solar_terms(year)
    assert len(events) == 12
    assert len({e.angle for e in events}) == 12
    for earlier, later in zip(events, events[1:]):
        assert earlier.instant < later.instant
    assert all(e.instant.year == year for e in events)
    assert events[0].angle == 285  # Xiao Han opens the Gregorian year
    assert not any(e.degraded for e in events)


def test_twenty_four_terms_are_distinct_and_ordered():
    events = build_solar_terms(2024, terms=SOLAR_TERMS_24)
    assert len(events) == 24
    assert len({e.angle for e in events}) == 24
    for earlier, later in zip(events, events[1:]):
        assert earlier.instant < later.instant


def test_crossing_lands_on_target_longitude():
    for event in build_solar_terms(2024, Precision.SECOND):
        lon = solar_longitude_at(event.instant)
        assert abs(signed_angle_diff(event.angle, lon)) < 0.001


def test_li_chun_2024_matches_almanac():
    event = year_start_event(2024)
    assert event.name == "Li Chun"
    _assert_close(event.instant, datetime(2024, 2, 4, 16, 27, tzinfo=CST), 15)


def test_jing_zhe_2024_matches_almanac():
    event = solve_solar_term(2024, 345)
    assert event.name == "Jing Zhe"
    _assert_close(event.instant, datetime(2024, 3, 5, 10, 23, tzinfo=CST), 15)


def test_li_chun_1984_matches_almanac():
    _assert_close(year_start_event(1984).instant, datetime(1984, 2, 4, 23, 19, tzinfo=CST), 15)


def test_bisection_tolerance_follows_precision():
    center = julian_day(datetime(2024, 2, 4, tzinfo=timezone.utc))
    jd_minute, degraded = find_crossing(315, center, Precision.MINUTE)
    jd_second, _ = find_crossing(315, center, Precision.SECOND)
    assert not degraded
    assert abs(jd_minute - jd_second) * 86400 <= 60


def test_bracket_widens_when_estimate_is_far_off():
    center = julian_day(datetime(2024, 1, 10, tzinfo=timezone.utc))  # ~25 days early
    jd, degraded = find_crossing(315, center, Precision.SECOND)
    assert not degraded
    expected = julian_day(year_start_event(2024, Precision.SECOND).instant)
    assert abs(jd - expected) * 86400 < 2


def test_unbracketable_target_degrades_instead_of_raising():
    def frozen_sun(jd):
        return 100.0

    with pytest.warns(RootFindingDegraded):
        event = solve_solar_term(2024, 315, longitude_fn=frozen_sun)
    assert event.degraded
    assert event.angle == 315
    assert event.instant.year == 2024


def test_cache_memoizes_per_year_angle_precision():
    cache = SolarTermCache()
    first = build_solar_terms(2024, Precision.MINUTE, cache)
    assert len(cache) == 12
    assert cache.misses == 12

    again = build_solar_terms(2024, Precision.MINUTE, cache)
    assert again == first
    assert cache.hits == 12

    build_solar_terms(2024, Precision.SECOND, cache)
    assert len(cache) == 24
    assert (2024, 315, Precision.MINUTE) in cache


def test_separate_caches_share_nothing():
    a, b = SolarTermCache(), SolarTermCache()
    build_solar_terms(2020, cache=a)
    assert len(a) == 12
    assert len(b) == 0


def test_boundaries_around_spans_three_years():
    events = boundaries_around(2024)
    assert len(events) == 36
    assert events[0].year == 2023
    assert events[-1].year == 2025
    assert [e.instant for e in events] == sorted(e.instant for e in events)


def test_jie_table_covers_twelve_month_angles():
    assert sorted(JIE_TERMS) == [15, 45, 75, 105, 135, 165, 195, 225, 255, 285, 315, 345]
