"""
Sexagenary cycle primitives.

Ten Heavenly Stems, twelve Earthly Branches and the 60-term cycle built
from pairing them. Index 0 is Jia Zi; stem and branch advance together,
so only pairs of matching parity are members of the cycle.
"""

from dataclasses import dataclass
from enum import Enum


# ============================================================
# FUNDAMENTAL DATA STRUCTURES
# ============================================================

class Polarity(Enum):
    YANG = "yang"
    YIN = "yin"


class Element(Enum):
    WOOD = "wood"
    FIRE = "fire"
    EARTH = "earth"
    METAL = "metal"
    WATER = "water"


@dataclass(frozen=True)
class HeavenlyStem:
    chinese: str
    pinyin: str
    element: Element
    polarity: Polarity
    index: int  # 0-9 in the cycle

    def __str__(self):
        return f"{self.pinyin} ({self.polarity.value} {self.element.value})"


@dataclass(frozen=True)
class EarthlyBranch:
    chinese: str
    pinyin: str
    animal: str
    element: Element  # primary/season element
    polarity: Polarity
    index: int  # 0-11 in the cycle
    hidden_stems: tuple  # pinyin names [main_qi, middle_qi, residual_qi]

    def __str__(self):
        return f"{self.pinyin} ({self.animal})"


# ============================================================
# STEM AND BRANCH DEFINITIONS
# ============================================================

HEAVENLY_STEMS = [
    HeavenlyStem("甲", "Jia", Element.WOOD, Polarity.YANG, 0),
    HeavenlyStem("乙", "Yi", Element.WOOD, Polarity.YIN, 1),
    HeavenlyStem("丙", "Bing", Element.FIRE, Polarity.YANG, 2),
    HeavenlyStem("丁", "Ding", Element.FIRE, Polarity.YIN, 3),
    HeavenlyStem("戊", "Wu", Element.EARTH, Polarity.YANG, 4),
    HeavenlyStem("己", "Ji", Element.EARTH, Polarity.YIN, 5),
    HeavenlyStem("庚", "Geng", Element.METAL, Polarity.YANG, 6),
    HeavenlyStem("辛", "Xin", Element.METAL, Polarity.YIN, 7),
    HeavenlyStem("壬", "Ren", Element.WATER, Polarity.YANG, 8),
    HeavenlyStem("癸", "Gui", Element.WATER, Polarity.YIN, 9),
]

EARTHLY_BRANCHES = [
    EarthlyBranch("子", "Zi", "Rat", Element.WATER, Polarity.YANG, 0,
                  ("Gui",)),
    EarthlyBranch("丑", "Chou", "Ox", Element.EARTH, Polarity.YIN, 1,
                  ("Ji", "Gui", "Xin")),
    EarthlyBranch("寅", "Yin", "Tiger", Element.WOOD, Polarity.YANG, 2,
                  ("Jia", "Bing", "Wu")),
    EarthlyBranch("卯", "Mao", "Rabbit", Element.WOOD, Polarity.YIN, 3,
                  ("Yi",)),
    EarthlyBranch("辰", "Chen", "Dragon", Element.EARTH, Polarity.YANG, 4,
                  ("Wu", "Yi", "Gui")),
    EarthlyBranch("巳", "Si", "Snake", Element.FIRE, Polarity.YIN, 5,
                  ("Bing", "Wu", "Geng")),
    EarthlyBranch("午", "Wu", "Horse", Element.FIRE, Polarity.YANG, 6,
                  ("Ding", "Ji")),
    EarthlyBranch("未", "Wei", "Goat", Element.EARTH, Polarity.YIN, 7,
                  ("Ji", "Ding", "Yi")),
    EarthlyBranch("申", "Shen", "Monkey", Element.METAL, Polarity.YANG, 8,
                  ("Geng", "Ren", "Wu")),
    EarthlyBranch("酉", "You", "Rooster", Element.METAL, Polarity.YIN, 9,
                  ("Xin",)),
    EarthlyBranch("戌", "Xu", "Dog", Element.EARTH, Polarity.YANG, 10,
                  ("Wu", "Xin", "Ding")),
    EarthlyBranch("亥", "Hai", "Pig", Element.WATER, Polarity.YIN, 11,
                  ("Ren", "Jia")),
]

# Lookup helpers
STEM_BY_PINYIN = {s.pinyin: s for s in HEAVENLY_STEMS}
STEM_BY_CHINESE = {s.chinese: s for s in HEAVENLY_STEMS}
BRANCH_BY_PINYIN = {b.pinyin: b for b in EARTHLY_BRANCHES}
BRANCH_BY_CHINESE = {b.chinese: b for b in EARTHLY_BRANCHES}

CYCLE_LENGTH = 60


@dataclass(frozen=True)
class StemBranch:
    stem: HeavenlyStem
    branch: EarthlyBranch

    @property
    def index(self) -> int:
        return stem_branch_to_index(self)

    @property
    def chinese(self) -> str:
        return f"{self.stem.chinese}{self.branch.chinese}"

    @property
    def label(self) -> str:
        return f"{self.stem.pinyin} {self.branch.pinyin}"

    def __str__(self):
        return (f"{self.label} ({self.stem.polarity.value} "
                f"{self.stem.element.value} {self.branch.animal})")

    def to_dict(self) -> dict:
        return {
            "stem": self.stem.pinyin,
            "stem_chinese": self.stem.chinese,
            "branch": self.branch.pinyin,
            "branch_chinese": self.branch.chinese,
            "index": self.index,
        }


# ============================================================
# CYCLE ARITHMETIC
# ============================================================

def index_to_stem_branch(i: int) -> StemBranch:
    """Map a cycle index (any integer, reduced mod 60) to its stem-branch pair."""
    return StemBranch(HEAVENLY_STEMS[i % 10], EARTHLY_BRANCHES[i % 12])


def stem_branch_to_index(sb: StemBranch) -> int:
    """
    Return the unique i in [0, 60) with i % 10 == stem and i % 12 == branch.

    Raises ValueError for pairs of mismatched parity (e.g. Jia Chou), which
    never occur in the cycle.
    """
    s, b = sb.stem.index, sb.branch.index
    if (s - b) % 2:
        raise ValueError(f"{sb.stem.pinyin} {sb.branch.pinyin} is not a sexagenary pair")
    # i = s + 10k with (s + 10k) % 12 == b; 10k ≡ b - s (mod 12) -> k ≡ 5(b - s)/2 (mod 6)
    k = (((b - s) // 2) * 5) % 6
    return s + 10 * k


def add_offset(sb: StemBranch, k: int) -> StemBranch:
    return index_to_stem_branch((stem_branch_to_index(sb) + k) % CYCLE_LENGTH)


def from_chinese(text: str) -> StemBranch:
    """Parse a two-glyph label such as "甲子"."""
    if len(text) != 2 or text[0] not in STEM_BY_CHINESE or text[1] not in BRANCH_BY_CHINESE:
        raise ValueError(f"Not a stem-branch label: {text!r}")
    sb = StemBranch(STEM_BY_CHINESE[text[0]], BRANCH_BY_CHINESE[text[1]])
    stem_branch_to_index(sb)
    return sb


def hidden_stems(branch: EarthlyBranch) -> list[HeavenlyStem]:
    """Hidden stems of a branch in main, middle, residual order."""
    return [STEM_BY_PINYIN[p] for p in branch.hidden_stems]
