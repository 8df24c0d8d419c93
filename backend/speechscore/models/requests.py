from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, Field, model_validator

AI_SCORE_LIMIT = 10.0

AiScore = Annotated[float, Field(ge=-AI_SCORE_LIMIT, le=AI_SCORE_LIMIT)]


class SkillScoreInput(BaseModel):
    skill_id: int = Field(..., ge=1)
    max_score: int = Field(10, ge=1, le=10)
    weight: float = Field(1.0, ge=0, le=1)
    actual_score: float | None = None
    actual_score_ai: AiScore | None = None
    adjusted_score: float | None = None
    is_automated: bool = False


class SaveScoresRequest(BaseModel):
    skills: list[SkillScoreInput] = Field(..., min_length=1)

    @model_validator(mode="after")
    def validate_unique_skills(self) -> "SaveScoresRequest":
        skill_ids = [item.skill_id for item in self.skills]
        if len(skill_ids) != len(set(skill_ids)):
            raise ValueError("skills must not repeat a skill_id")
        return self


class AiSkillScore(BaseModel):
    score: AiScore
    explanation: str | None = None


class AiAnalysisRequest(BaseModel):
    analysis: dict[int, AiSkillScore] = Field(..., min_length=1)


class DividerUpdate(BaseModel):
    divider: Annotated[float, Field(gt=0)] | None
