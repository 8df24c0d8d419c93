from __future__ import annotations

from speechscore.models.skill import SkillDefinition, SkillScoreRecord
from speechscore.scoring.errors import MissingScore


def select_raw_score(record: SkillScoreRecord) -> float:
    """Pick the score in force: coach override, then manual entry, then AI output."""
    for value in (record.adjusted_score, record.manual_score, record.ai_raw_score):
        if value is not None:
            return float(value)
    raise MissingScore(record.skill_id)


def legal_range(is_good_skill: bool, max_score: float) -> tuple[float, float]:
    if is_good_skill:
        return 0.0, float(max_score)
    return -float(max_score), 0.0


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def is_wrong_sign(raw_score: float, is_good_skill: bool) -> bool:
    if is_good_skill:
        return raw_score < 0
    return raw_score > 0


def normalize(record: SkillScoreRecord, definition: SkillDefinition) -> float:
    # A wrong-sign score clamps to 0 instead of being reflected, so
    # out-of-policy AI output is discarded rather than reinterpreted.
    raw_score = select_raw_score(record)
    max_score = record.max_score or definition.max_score
    low, high = legal_range(definition.is_good_skill, max_score)
    return clamp(raw_score, low, high)


def points(effective_score: float, weight: float) -> float:
    return effective_score * weight
