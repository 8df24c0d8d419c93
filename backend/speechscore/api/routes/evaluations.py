from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from speechscore.models.requests import (
    AiAnalysisRequest,
    DividerUpdate,
    SaveScoresRequest,
    SkillScoreInput,
)
from speechscore.models.score_state import CategorySummary, EvaluationScoreState
from speechscore.models.skill import SkillScoreRecord
from speechscore.scoring.divider import describe_final_score, score_calculation
from speechscore.services.scoring_service import ScoreWriteResult, ScoringService

router = APIRouter(prefix="/evaluations", tags=["scores"])


def _service() -> ScoringService:
    return ScoringService()


def _record_from_input(evaluation_id: str, item: SkillScoreInput) -> SkillScoreRecord:
    return SkillScoreRecord(
        evaluation_id=evaluation_id,
        skill_id=item.skill_id,
        max_score=item.max_score,
        weight=item.weight,
        is_automated=item.is_automated,
        manual_score=item.actual_score,
        ai_raw_score=item.actual_score_ai,
        adjusted_score=item.adjusted_score,
    )


def _category_response(item: CategorySummary) -> dict[str, Any]:
    return {
        "category": item.category,
        "count": item.count,
        "rawPoints": item.raw_points,
        "maxPossible": item.max_possible,
        "percentage": item.percentage,
        "confidence": item.confidence,
    }


def _state_response(state: EvaluationScoreState) -> dict[str, Any]:
    band = None
    calculation = None
    max_possible_score = None
    if state.final_score is not None:
        score_band = describe_final_score(state.final_score)
        band = {"label": score_band.label, "color": score_band.color, "level": score_band.level}
    if state.divider and state.max_potential_points is not None:
        max_possible_score = state.max_potential_points / state.divider
    if (
        state.total_points is not None
        and state.divider is not None
        and state.final_score is not None
    ):
        calculation = score_calculation(state.total_points, state.divider, state.final_score)
    return {
        "evaluationId": state.evaluation_id,
        "status": state.status,
        "source": state.source,
        "confidence": state.confidence,
        "totalPoints": state.total_points,
        "maxPotentialPoints": state.max_potential_points,
        "divider": state.divider,
        "dividerSource": state.divider_source,
        "finalScore": state.final_score,
        "maxPossibleScore": max_possible_score,
        "scoreCalculation": calculation,
        "scoreBand": band,
        "categories": [_category_response(item) for item in state.categories],
        "skippedSkillIds": list(state.skipped_skill_ids),
        "unknownSkillIds": list(state.unknown_skill_ids),
    }


def _write_response(result: ScoreWriteResult) -> dict[str, Any]:
    response = _state_response(result.state)
    response["updatedSkillIds"] = list(result.updated_skill_ids)
    response["totalSkillCount"] = result.total_skill_count
    return response


@router.get("/{evaluation_id}/scores")
async def get_scores(evaluation_id: str, service: ScoringService = Depends(_service)):
    state = await service.get_scores(evaluation_id)
    return _state_response(state)


@router.post("/{evaluation_id}/scores")
async def save_scores(
    evaluation_id: str,
    payload: SaveScoresRequest,
    service: ScoringService = Depends(_service),
):
    records = [_record_from_input(evaluation_id, item) for item in payload.skills]
    result = await service.save_scores(evaluation_id, records)
    return _write_response(result)


@router.post("/{evaluation_id}/ai-scores")
async def ingest_ai_scores(
    evaluation_id: str,
    payload: AiAnalysisRequest,
    service: ScoringService = Depends(_service),
):
    analysis = {
        skill_id: {"score": item.score, "explanation": item.explanation}
        for skill_id, item in payload.analysis.items()
    }
    result, unknown_skill_ids = await service.ingest_ai_scores(evaluation_id, analysis)
    response = _write_response(result)
    response["explanations"] = {
        str(skill_id): text for skill_id, text in result.explanations.items()
    }
    response["unrecognizedSkillIds"] = unknown_skill_ids
    return response


@router.put("/{evaluation_id}/divider")
async def update_divider(
    evaluation_id: str,
    payload: DividerUpdate,
    service: ScoringService = Depends(_service),
):
    state = await service.update_divider(evaluation_id, payload.divider)
    return _state_response(state)
