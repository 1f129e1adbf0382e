"""
Derived chart attributes: hidden stems, Ten Deities (十神), five-element tally.

The Ten Deities describe the relationship between any stem and the Day
Master. They are determined by element relationship + polarity match.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from bazi_engine.sexagenary import Element, HeavenlyStem, hidden_stems  # noqa: F401

__all__ = [
    "TenDeity", "StemDeity", "PillarDeities", "element_relationship", "ten_deity",
    "map_ten_deities", "hidden_stems", "five_element_counts",
]


class TenDeity(Enum):
    COMPANION = ("Companion", "比肩")
    ROB_WEALTH = ("Rob Wealth", "劫財")
    EATING_GOD = ("Eating God", "食神")
    HURTING_OFFICER = ("Hurting Officer", "傷官")
    INDIRECT_WEALTH = ("Indirect Wealth", "偏財")
    DIRECT_WEALTH = ("Direct Wealth", "正財")
    SEVEN_KILLINGS = ("Seven Killings", "偏官")
    DIRECT_OFFICER = ("Direct Officer", "正官")
    INDIRECT_RESOURCE = ("Indirect Resource", "偏印")
    DIRECT_RESOURCE = ("Direct Resource", "印綬")

    def __init__(self, english, chinese):
        self.english = english
        self.chinese = chinese

    def __str__(self):
        return f"{self.english} ({self.chinese})"


# (relationship, same_polarity): deity
TEN_DEITIES = {
    ("same", True): TenDeity.COMPANION,
    ("same", False): TenDeity.ROB_WEALTH,
    ("i_produce", True): TenDeity.EATING_GOD,
    ("i_produce", False): TenDeity.HURTING_OFFICER,
    ("i_control", True): TenDeity.INDIRECT_WEALTH,
    ("i_control", False): TenDeity.DIRECT_WEALTH,
    ("controls_me", True): TenDeity.SEVEN_KILLINGS,
    ("controls_me", False): TenDeity.DIRECT_OFFICER,
    ("produces_me", True): TenDeity.INDIRECT_RESOURCE,
    ("produces_me", False): TenDeity.DIRECT_RESOURCE,
}

# Production cycle: Wood → Fire → Earth → Metal → Water → Wood
PRODUCTION_CYCLE = {
    Element.WOOD: Element.FIRE,
    Element.FIRE: Element.EARTH,
    Element.EARTH: Element.METAL,
    Element.METAL: Element.WATER,
    Element.WATER: Element.WOOD,
}

# Control cycle: Wood → Earth → Water → Fire → Metal → Wood
CONTROL_CYCLE = {
    Element.WOOD: Element.EARTH,
    Element.EARTH: Element.WATER,
    Element.WATER: Element.FIRE,
    Element.FIRE: Element.METAL,
    Element.METAL: Element.WOOD,
}

DAY_MASTER = "Day Master"


@dataclass(frozen=True)
class StemDeity:
    stem: str
    ten_deity: str

    def to_dict(self) -> dict:
        return {"stem": self.stem, "ten_deity": self.ten_deity}


@dataclass(frozen=True)
class PillarDeities:
    stem: str
    ten_deity: str
    hidden: tuple  # StemDeity per hidden stem, main qi first

    def to_dict(self) -> dict:
        return {
            "stem": self.stem,
            "ten_deity": self.ten_deity,
            "hidden": [h.to_dict() for h in self.hidden],
        }


def element_relationship(day_master_element: Element, other_element: Element) -> str:
    """Determine the elemental relationship from DM's perspective."""
    if day_master_element == other_element:
        return "same"
    elif PRODUCTION_CYCLE[other_element] == day_master_element:
        return "produces_me"
    elif PRODUCTION_CYCLE[day_master_element] == other_element:
        return "i_produce"
    elif CONTROL_CYCLE[day_master_element] == other_element:
        return "i_control"
    elif CONTROL_CYCLE[other_element] == day_master_element:
        return "controls_me"
    # Five elements under two 5-cycles: every ordered pair is covered above
    raise ValueError(f"No valid relationship between {day_master_element} and {other_element}")


def ten_deity(day_master: HeavenlyStem, other: HeavenlyStem) -> TenDeity:
    """Ten Deity of ``other`` as seen from the Day Master stem."""
    relationship = element_relationship(day_master.element, other.element)
    same_polarity = day_master.polarity == other.polarity
    return TEN_DEITIES[(relationship, same_polarity)]


def map_ten_deities(day_master: HeavenlyStem, pillars) -> dict:
    """
    Map Ten Deities for every visible stem and hidden stem in the chart.

    The day pillar's own stem is labelled Day Master.

    Returns:
        {position: PillarDeities}
    """
    results = {}
    for pillar in pillars:
        if pillar.position == "day":
            visible = DAY_MASTER
        else:
            visible = ten_deity(day_master, pillar.stem).english

        results[pillar.position] = PillarDeities(
            stem=pillar.stem.pinyin,
            ten_deity=visible,
            hidden=tuple(
                StemDeity(hidden.pinyin, ten_deity(day_master, hidden).english)
                for hidden in pillar.hidden_stems
            ),
        )
    return results


def five_element_counts(pillars: Iterable) -> dict:
    """
    Count element occurrences over visible stems and the hidden stems of
    every occupied branch.

    Branch main elements are not counted separately; a branch contributes
    through its hidden stems. The total is len(pillars) + Σ hidden stems.
    """
    counts = {e.value: 0 for e in Element}
    for pillar in pillars:
        counts[pillar.stem.element.value] += 1
        for hidden in pillar.hidden_stems:
            counts[hidden.element.value] += 1
    return counts
