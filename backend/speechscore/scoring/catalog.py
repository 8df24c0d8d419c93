from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from speechscore.config import DEFAULT_INVERTED_CATEGORIES, Settings
from speechscore.models.skill import (
    BODY_LANGUAGE,
    EXPRESSIONS,
    LANGUAGE,
    NERVOUSNESS,
    ULTIMATE_LEVEL,
    UNKNOWN_CATEGORY,
    VOICE,
    SkillDefinition,
)
from speechscore.scoring.errors import UnknownSkillId

DEFAULT_MAX_SCORE = 10
DEFAULT_WEIGHT = 1.0


@dataclass(frozen=True)
class CategoryRange:
    name: str
    first_id: int
    last_id: int

    def contains(self, skill_id: int) -> bool:
        return self.first_id <= skill_id <= self.last_id


DEFAULT_CATEGORY_RANGES = (
    CategoryRange(NERVOUSNESS, 1, 6),
    CategoryRange(VOICE, 7, 32),
    CategoryRange(BODY_LANGUAGE, 33, 75),
    CategoryRange(EXPRESSIONS, 76, 84),
    CategoryRange(LANGUAGE, 85, 102),
    CategoryRange(ULTIMATE_LEVEL, 103, 110),
)

BAD_SKILL_IDS = frozenset({1, 2, 3, 4, 5, 6, 19, 23, 25, 36, 42, 62, 88, 89, 90, 91})

SKILL_NAMES = {
    1: "Swaying",
    2: "Squirming",
    3: "Irrational movement",
    4: "Stroke / Fidget",
    5: "Flight / Freeze",
    6: "Unbalanced feet",
    7: "Register / Pitch",
    8: "Slow pace",
    9: "Fast pace",
    10: "Base pace",
    11: "Timbre",
    12: "Emphasis",
    13: "Playful emphasis",
    14: "Base volume",
    15: "Varied volume",
    16: "Up-Down talk",
    17: "Volume increase",
    18: "Volume decrease",
    19: "Unfunctional pauses",
    20: "Relaxation pause",
    21: "Strategic pause",
    22: "Effect pause",
    23: "Vocal Fry",
    24: "Elongated vowels",
    25: "Filler sounds",
    26: "Prosody",
    27: "Melody",
    28: "Articulation",
    29: "Voice climax",
    30: "Dramatising",
    31: "Language change",
    32: "Sound effects",
    33: "Confident posture",
    34: "Neutral Posture",
    35: "Amplifying Posture",
    36: "Ticks",
    37: "Feet",
    38: "Hips",
    39: "Angle",
    40: "Relaxed",
    41: "Dramatising",
    42: "Shrugging shoulders",
    43: "Intensity variation",
    44: "Functional",
    45: "Smooth",
    46: "Distinct",
    47: "Adapted size",
    48: "Standard pace",
    49: "Adapted pace",
    50: "Full out",
    51: "Pointing",
    52: "Volume/Size",
    53: "Regulators",
    54: "Rhythm of speech",
    55: "Signs",
    56: "Imaginary props",
    57: "Drawings",
    58: "Affect display",
    59: "Sounds",
    60: "Progression",
    61: "Empowering head angle",
    62: "Unfunctional head angle",
    63: "Standard head angle",
    64: "Amplifying head movement",
    65: "Stage Presence",
    66: "Anchoring",
    67: "Vertical movement",
    68: "Power areas",
    69: "Horizontal movement",
    70: "Bent knees",
    71: "Amplification",
    72: "General eye contact",
    73: "Sweeping",
    74: "Focus",
    75: "Attire",
    76: "Neutral",
    77: "Matching",
    78: "Dramatising",
    79: "Mouth",
    80: "Eyebrows",
    81: "Forehead",
    82: "Eyes",
    83: "Self laugh",
    84: "Straight face",
    85: "Adapted",
    86: "Flow",
    87: "Strong rhetorics",
    88: "Filler words",
    89: "Negations",
    90: "Repetitive words",
    91: "Absolute words",
    92: "Strategic",
    93: "Valued",
    94: "Hexacolon",
    95: "Tricolon",
    96: "Repetition",
    97: "Anaphora",
    98: "Epiphora",
    99: "Alliteration",
    100: "Correctio",
    101: "Climax",
    102: "Anadiplosis",
    103: "Loves presenting",
    104: "Role playing",
    105: "Total intensity transition",
    106: "Acts out the obvious",
    107: "Present and authentic",
    108: "Synchronisity",
    109: "Contrast",
    110: "Visualisation",
}


class SkillCatalog:
    """Static registry of skill definitions partitioned into categories by id range."""

    def __init__(
        self,
        definitions: Iterable[SkillDefinition],
        *,
        ranges: Iterable[CategoryRange] = DEFAULT_CATEGORY_RANGES,
        inverted_categories: Iterable[str] = DEFAULT_INVERTED_CATEGORIES,
    ) -> None:
        self._ranges = tuple(ranges)
        _check_ranges(self._ranges)
        self._inverted = frozenset(inverted_categories)
        self._definitions: dict[int, SkillDefinition] = {}
        for definition in sorted(definitions, key=lambda item: item.id):
            if definition.id in self._definitions:
                raise ValueError(f"Duplicate skill id {definition.id}")
            _check_definition(definition)
            self._definitions[definition.id] = definition

    @property
    def categories(self) -> tuple[str, ...]:
        return tuple(item.name for item in self._ranges)

    @property
    def definitions(self) -> tuple[SkillDefinition, ...]:
        return tuple(self._definitions.values())

    def get(self, skill_id: int) -> SkillDefinition | None:
        return self._definitions.get(skill_id)

    def category_for(self, skill_id: int) -> str:
        for item in self._ranges:
            if item.contains(skill_id):
                return item.name
        return UNKNOWN_CATEGORY

    def require_category(self, skill_id: int) -> str:
        category = self.category_for(skill_id)
        if category == UNKNOWN_CATEGORY:
            raise UnknownSkillId(skill_id)
        return category

    def is_inverted(self, category: str) -> bool:
        return category in self._inverted

    def __len__(self) -> int:
        return len(self._definitions)


def _check_ranges(ranges: tuple[CategoryRange, ...]) -> None:
    ordered = sorted(ranges, key=lambda item: item.first_id)
    for previous, current in zip(ordered, ordered[1:]):
        if current.first_id <= previous.last_id:
            raise ValueError(
                f"Category ranges overlap: {previous.name} and {current.name}"
            )


def _check_definition(definition: SkillDefinition) -> None:
    if not 1 <= definition.max_score <= 10:
        raise ValueError(
            f"Skill {definition.id} max score must be within 1..10, got {definition.max_score}"
        )
    if not 0 <= definition.weight <= 1:
        raise ValueError(
            f"Skill {definition.id} weight must be within 0..1, got {definition.weight}"
        )


def default_definitions(
    ranges: Iterable[CategoryRange] = DEFAULT_CATEGORY_RANGES,
) -> list[SkillDefinition]:
    ranges = tuple(ranges)
    definitions = []
    for skill_id, name in SKILL_NAMES.items():
        category = next(
            (item.name for item in ranges if item.contains(skill_id)), UNKNOWN_CATEGORY
        )
        definitions.append(
            SkillDefinition(
                id=skill_id,
                name=name,
                category=category,
                is_good_skill=skill_id not in BAD_SKILL_IDS,
                max_score=DEFAULT_MAX_SCORE,
                weight=DEFAULT_WEIGHT,
            )
        )
    return definitions


def default_catalog() -> SkillCatalog:
    return SkillCatalog(default_definitions())


def catalog_from_settings(settings: Settings) -> SkillCatalog:
    if settings.category_ranges:
        ranges = tuple(
            CategoryRange(name, bounds[0], bounds[1])
            for name, bounds in settings.category_ranges.items()
        )
    else:
        ranges = DEFAULT_CATEGORY_RANGES
    definitions = default_definitions(ranges)
    return SkillCatalog(
        definitions,
        ranges=ranges,
        inverted_categories=settings.inverted_categories,
    )

