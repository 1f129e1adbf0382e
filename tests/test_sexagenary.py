import pytest

from bazi_engine.sexagenary import (
    BRANCH_BY_PINYIN,
    STEM_BY_PINYIN,
    StemBranch,
    add_offset,
    from_chinese,
    hidden_stems,
    index_to_stem_branch,
    stem_branch_to_index,
    EARTHLY_BRANCHES,
)


def test_index_round_trip_over_full_cycle():
    for i in range(60):
        assert stem_branch_to_index(index_to_stem_branch(i)) == i


def test_cycle_has_sixty_distinct_pairs():
    labels = {index_to_stem_branch(i).chinese for i in range(60)}
    assert len(labels) == 60


def test_known_positions():
    assert index_to_stem_branch(0).chinese == "甲子"
    assert index_to_stem_branch(10).chinese == "甲戌"
    assert index_to_stem_branch(40).chinese == "甲辰"
    assert index_to_stem_branch(59).chinese == "癸亥"


def test_add_offset_wraps_both_ways():
    gui_hai = index_to_stem_branch(59)
    assert add_offset(gui_hai, 1).chinese == "甲子"
    assert add_offset(index_to_stem_branch(0), -1).chinese == "癸亥"
    assert add_offset(gui_hai, 121).index == 0


def test_mismatched_parity_is_not_a_cycle_member():
    with pytest.raises(ValueError):
        stem_branch_to_index(StemBranch(STEM_BY_PINYIN["Jia"], BRANCH_BY_PINYIN["Chou"]))
    with pytest.raises(ValueError):
        from_chinese("甲丑")


def test_from_chinese():
    sb = from_chinese("庚辰")
    assert sb.label == "Geng Chen"
    assert sb.index == 16


def test_hidden_stems_have_one_to_three_entries():
    for branch in EARTHLY_BRANCHES:
        stems = hidden_stems(branch)
        assert 1 <= len(stems) <= 3
    assert [s.pinyin for s in hidden_stems(BRANCH_BY_PINYIN["Yin"])] == ["Jia", "Bing", "Wu"]
    assert [s.pinyin for s in hidden_stems(BRANCH_BY_PINYIN["Zi"])] == ["Gui"]
