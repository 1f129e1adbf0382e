from datetime import date, datetime, timedelta, timezone

import pytest

from bazi_engine.bazi import compute_pillars
from bazi_engine.luck import (
    Sex,
    age_at,
    annual_cycle,
    compute_luck,
    decade_cycle,
    luck_direction,
    round_age,
    start_age,
    void_branches,
)
from bazi_engine.policy import BoundaryPolicy
from bazi_engine.sexagenary import STEM_BY_PINYIN, from_chinese, index_to_stem_branch
from bazi_engine.solar_terms import SolarTermCache

CST = timezone(timedelta(hours=8))
BIRTH = datetime(1984, 2, 5, 10, 30, tzinfo=CST)


def _luck(sex, as_of=None):
    cache = SolarTermCache()
    policy = BoundaryPolicy()
    pillars = compute_pillars(BIRTH, BIRTH, True, policy, cache)
    return compute_luck(
        year_stem=pillars.year.stem,
        month_pillar=pillars.month.stem_branch,
        day_pillar=pillars.day.stem_branch,
        sex=sex,
        boundary_reference=BIRTH,
        birth_date=BIRTH.date(),
        policy=policy,
        cache=cache,
        as_of=as_of,
    )


@pytest.mark.parametrize("stem, sex, forward", [
    ("Jia", Sex.MALE, True),
    ("Jia", Sex.FEMALE, False),
    ("Yi", Sex.MALE, False),
    ("Yi", Sex.FEMALE, True),
])
def test_luck_direction(stem, sex, forward):
    assert luck_direction(STEM_BY_PINYIN[stem], sex) is forward


def test_forward_decades_from_month_pillar():
    luck = _luck(Sex.MALE)
    assert luck.direction == "forward"
    assert len(luck.decades) == 10
    assert luck.decades[0].stem_branch.label == "Ding Mao"
    assert luck.decades[1].stem_branch.label == "Wu Chen"
    # Ding against a Ji day master
    assert luck.decades[0].ten_deity == "Indirect Resource"


def test_backward_decades_from_month_pillar():
    luck = _luck(Sex.FEMALE)
    assert luck.direction == "backward"
    assert luck.decades[0].stem_branch.label == "Yi Chou"
    assert luck.decades[1].stem_branch.label == "Jia Zi"


def test_start_age_forward_uses_next_jie():
    start = start_age(BIRTH, True, BoundaryPolicy())
    assert start.boundary.angle == 345
    # Jing Zhe 1984 falls on March 5, a little over 29 days later
    assert 29.0 < start.days < 30.0
    assert start.years == pytest.approx(start.days / 3.0)
    assert start.age == 10
    assert start.breakdown[0] == 9


def test_start_age_backward_uses_previous_jie():
    start = start_age(BIRTH, False, BoundaryPolicy())
    assert start.boundary.angle == 315
    assert start.days < 1.0
    assert start.age == 0


def test_decade_ages_are_contiguous():
    decades = decade_cycle(from_chinese("丙寅"), STEM_BY_PINYIN["Ji"], True, first_age=3)
    assert [d.age_start for d in decades] == list(range(3, 103, 10))
    for earlier, later in zip(decades, decades[1:]):
        assert later.age_start == earlier.age_end + 1


def test_void_branches():
    assert [b.pinyin for b in void_branches(from_chinese("甲子"))] == ["Xu", "Hai"]
    assert [b.pinyin for b in void_branches(from_chinese("甲戌"))] == ["Shen", "You"]
    assert [b.pinyin for b in void_branches(from_chinese("癸亥"))] == ["Zi", "Chou"]
    # every member of a ten-day group shares its void pair
    assert void_branches(index_to_stem_branch(20)) == void_branches(index_to_stem_branch(29))


def test_annual_cycle_window():
    as_of = datetime(2026, 10, 18, 12, 0, tzinfo=CST)
    luck = _luck(Sex.MALE, as_of=as_of)

    assert [a.year for a in luck.annual] == list(range(2020, 2033))
    assert luck.current_annual.year == 2026
    assert luck.current_annual.stem_branch.label == "Bing Wu"

    # Day pillar Ji Si: Xu and Hai are void
    void_years = [a.year for a in luck.annual if a.is_void]
    assert void_years == [2030, 2031]


def test_current_decade():
    luck = _luck(Sex.MALE, as_of=datetime(2026, 10, 18, 12, 0, tzinfo=CST))
    assert luck.as_of_age == 42
    assert luck.current_decade.number == 4
    assert luck.current_decade.stem_branch.label == "Geng Wu"


def test_annual_window_before_li_chun_uses_previous_year():
    entries = annual_cycle(2025, STEM_BY_PINYIN["Jia"], (), radius=1)
    assert [a.stem_branch.label for a in entries] == ["Jia Chen", "Yi Si", "Bing Wu"]

    luck = _luck(None, as_of=datetime(2026, 1, 20, 12, 0, tzinfo=CST))
    assert luck.current_annual.year == 2025
    assert luck.as_of_boundary.angle == 315
    assert luck.as_of_boundary.year == 2026
    assert luck.to_dict()["as_of_boundary"]["angle"] == 315


def test_without_sex_no_decades():
    luck = _luck(None, as_of=datetime(2026, 10, 18, 12, 0, tzinfo=CST))
    assert luck.direction is None
    assert luck.start is None
    assert luck.decades is None
    assert luck.current_decade is None
    assert luck.annual is not None


def test_without_as_of_no_annual():
    luck = _luck(Sex.MALE)
    assert luck.annual is None
    assert luck.current_annual is None
    assert luck.as_of_age is None
    assert luck.to_dict()["annual"] is None


def test_age_at():
    assert age_at(date(1984, 2, 5), date(2026, 2, 4)) == 41
    assert age_at(date(1984, 2, 5), date(2026, 2, 5)) == 42


@pytest.mark.parametrize("years, age", [
    (0.4, 0), (0.5, 1), (1.5, 2), (2.5, 3), (9.76, 10), (3.49, 3),
    # 4.5 and 7.5 days to the boundary
    (4.5 / 3, 2), (7.5 / 3, 3),
])
def test_round_age_rounds_halves_up(years, age):
    assert round_age(years) == age

