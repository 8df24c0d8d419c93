from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Iterable, Mapping

from speechscore.config import DEFAULT_SCORE_SCALE
from speechscore.models.score_state import (
    SOURCE_NONE,
    SOURCE_SCORE_RECORDS,
    STATUS_NO_SCORE_DATA,
    STATUS_SCORED,
    CategorySummary,
    EvaluationScoreState,
)
from speechscore.models.skill import SkillScoreRecord
from speechscore.scoring.aggregator import definition_for, score_records, summarize
from speechscore.scoring.catalog import DEFAULT_MAX_SCORE, DEFAULT_WEIGHT, SkillCatalog
from speechscore.scoring.divider import calibrate
from speechscore.scoring.errors import MissingScore
from speechscore.scoring.normalizer import normalize, points

logger = logging.getLogger(__name__)


def empty_state(evaluation_id: str, catalog: SkillCatalog) -> EvaluationScoreState:
    return EvaluationScoreState(
        evaluation_id=evaluation_id,
        status=STATUS_NO_SCORE_DATA,
        source=SOURCE_NONE,
        total_points=None,
        max_potential_points=None,
        divider=None,
        divider_source=None,
        final_score=None,
        categories=tuple(
            CategorySummary(
                category=name,
                count=0,
                raw_points=0.0,
                max_possible=0.0,
                percentage=0.0,
            )
            for name in catalog.categories
        ),
    )


def compute_state(
    evaluation_id: str,
    records: Iterable[SkillScoreRecord],
    catalog: SkillCatalog,
    *,
    custom_divider: float | None = None,
    scale: float = DEFAULT_SCORE_SCALE,
) -> EvaluationScoreState:
    """Run the full forward pipeline over every score record of one evaluation.

    Returns the explicit no-score state when nothing could be scored. Raises
    ``InvalidDivider`` when skills were scored but no positive divider exists.
    """
    scored = score_records(records, catalog)
    if not scored.skills:
        state = empty_state(evaluation_id, catalog)
        return replace(
            state,
            skipped_skill_ids=scored.skipped_skill_ids,
            unknown_skill_ids=scored.unknown_skill_ids,
        )
    categories = summarize(scored.skills, catalog)
    total_points = sum(item.raw_points for item in categories)
    max_potential_points = sum(item.max_possible for item in categories)
    calibration = calibrate(
        total_points, max_potential_points, custom_divider, scale=scale
    )
    return EvaluationScoreState(
        evaluation_id=evaluation_id,
        status=STATUS_SCORED,
        source=SOURCE_SCORE_RECORDS,
        total_points=total_points,
        max_potential_points=max_potential_points,
        divider=calibration.divider,
        divider_source=calibration.divider_source,
        final_score=calibration.final_score,
        categories=categories,
        skipped_skill_ids=scored.skipped_skill_ids,
        unknown_skill_ids=scored.unknown_skill_ids,
    )


def with_points(record: SkillScoreRecord, catalog: SkillCatalog) -> SkillScoreRecord:
    """Return ``record`` with ``points`` recomputed from its effective score."""
    try:
        effective_score = normalize(record, definition_for(record, catalog))
    except MissingScore:
        return replace(record, points=None)
    return replace(record, points=points(effective_score, record.weight))


@dataclass(frozen=True)
class AiIngestion:
    records: list[SkillScoreRecord]
    explanations: dict[int, str]
    unknown_skill_ids: list[int]


def records_from_ai_analysis(
    evaluation_id: str,
    analysis: Mapping[int, Mapping[str, Any]],
    catalog: SkillCatalog,
) -> AiIngestion:
    """Turn AI output ``{skillId: {"score": n, "explanation": str}}`` into records.

    Each record is a full replacement for its skill; unknown ids still produce a
    record with default max score and weight so they surface in the Unknown
    category instead of disappearing.
    """
    records: list[SkillScoreRecord] = []
    explanations: dict[int, str] = {}
    unknown: list[int] = []
    for skill_id in sorted(analysis):
        entry = analysis[skill_id]
        definition = catalog.get(skill_id)
        if definition is None:
            unknown.append(skill_id)
            max_score, weight = DEFAULT_MAX_SCORE, DEFAULT_WEIGHT
        else:
            max_score, weight = definition.max_score, definition.weight
        record = SkillScoreRecord(
            evaluation_id=evaluation_id,
            skill_id=skill_id,
            max_score=max_score,
            weight=weight,
            is_automated=True,
            ai_raw_score=float(entry["score"]),
        )
        records.append(with_points(record, catalog))
        if entry.get("explanation"):
            explanations[skill_id] = entry["explanation"]
    if unknown:
        logger.warning("AI analysis returned unknown skill ids: %s", unknown)
    return AiIngestion(records=records, explanations=explanations, unknown_skill_ids=unknown)
