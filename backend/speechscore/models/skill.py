from __future__ import annotations

from dataclasses import dataclass

NERVOUSNESS = "Nervousness"
VOICE = "Voice"
BODY_LANGUAGE = "Body Language"
EXPRESSIONS = "Expressions"
LANGUAGE = "Language"
ULTIMATE_LEVEL = "Ultimate Level"
UNKNOWN_CATEGORY = "Unknown"

CATEGORIES = (NERVOUSNESS, VOICE, BODY_LANGUAGE, EXPRESSIONS, LANGUAGE, ULTIMATE_LEVEL)


@dataclass(frozen=True)
class SkillDefinition:
    id: int
    name: str
    category: str
    is_good_skill: bool
    max_score: int = 10
    weight: float = 1.0


@dataclass(frozen=True)
class SkillScoreRecord:
    evaluation_id: str
    skill_id: int
    max_score: int
    weight: float
    is_automated: bool = False
    manual_score: float | None = None
    ai_raw_score: float | None = None
    adjusted_score: float | None = None
    points: float | None = None
