"""Rebuild an evaluation's score state from whatever stored data is available.

Sources are tried in a fixed order and the first one that yields at least one
scored category wins:

1. the precomputed ``categories_summary`` snapshot, when every entry has a
   positive ``count``;
2. the full list of skill score records, through the forward pipeline;
3. the ``manual_scores`` blob, one 0-10 score per category;
4. the stored final score alone, scaled by a per-category factor. These
   numbers are not measurements and are marked ``estimated``.

When nothing is available the explicit no-score state is returned.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from speechscore.config import DEFAULT_SCORE_SCALE
from speechscore.models.score_state import (
    ESTIMATED,
    MEASURED,
    SOURCE_CATEGORIES_SUMMARY,
    SOURCE_FINAL_SCORE,
    SOURCE_MANUAL_SCORES,
    STATUS_SCORED,
    CategorySummary,
    EvaluationScoreState,
    EvaluationSnapshot,
)
from speechscore.models.skill import (
    BODY_LANGUAGE,
    EXPRESSIONS,
    LANGUAGE,
    NERVOUSNESS,
    ULTIMATE_LEVEL,
    UNKNOWN_CATEGORY,
    VOICE,
)
from speechscore.scoring.aggregator import category_percentage
from speechscore.scoring.catalog import SkillCatalog
from speechscore.scoring.divider import calibrate
from speechscore.scoring.engine import compute_state, empty_state
from speechscore.scoring.errors import InvalidDivider, NoScoreData

logger = logging.getLogger(__name__)

MANUAL_SCORE_MAX = 10.0
MANUAL_SCORE_FACTOR = 10.0
DEFAULT_ESTIMATE_FACTOR = 0.8
ESTIMATE_FACTORS = {
    NERVOUSNESS: 0.8,
    VOICE: 0.8,
    BODY_LANGUAGE: 0.8,
    EXPRESSIONS: 0.8,
    LANGUAGE: 0.8,
    ULTIMATE_LEVEL: 0.8,
}
ESTIMATE_FLOOR = 40.0
ESTIMATE_CEILING = 80.0

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_SEPARATORS = re.compile(r"[\s\-]+")


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _key(name: str) -> str:
    spaced = _CAMEL_BOUNDARY.sub("_", name.strip())
    return _SEPARATORS.sub("_", spaced).lower()


def canonical_category(name: str, catalog: SkillCatalog) -> str | None:
    """Map legacy spellings (``body_language``, ``bodyLanguage``...) to a category."""
    wanted = _key(name)
    for category in (*catalog.categories, UNKNOWN_CATEGORY):
        if _key(category) == wanted:
            return category
    return None


def _canonical_entries(
    blob: dict[str, Any], catalog: SkillCatalog
) -> dict[str, Any]:
    entries: dict[str, Any] = {}
    for key, value in blob.items():
        category = canonical_category(str(key), catalog)
        if category is None:
            logger.warning("Ignoring unrecognised category key %r", key)
            continue
        entries.setdefault(category, value)
    return entries


def _with_all_categories(
    found: dict[str, CategorySummary], catalog: SkillCatalog
) -> tuple[CategorySummary, ...]:
    summaries = []
    for name in catalog.categories:
        summaries.append(
            found.get(name)
            or CategorySummary(
                category=name, count=0, raw_points=0.0, max_possible=0.0, percentage=0.0
            )
        )
    if UNKNOWN_CATEGORY in found:
        summaries.append(found[UNKNOWN_CATEGORY])
    return tuple(summaries)


def _from_categories_summary(
    snapshot: EvaluationSnapshot, catalog: SkillCatalog, scale: float
) -> EvaluationScoreState | None:
    blob = snapshot.results.get("categories_summary")
    if not isinstance(blob, dict) or not blob:
        return None
    entries = _canonical_entries(blob, catalog)
    if not entries:
        return None
    found: dict[str, CategorySummary] = {}
    for category, value in entries.items():
        if not isinstance(value, dict):
            return None
        count = _number(value.get("count"))
        if count is None or count <= 0:
            return None
        raw_points = _number(value.get("rawPoints", value.get("raw_points"))) or 0.0
        max_possible = _number(value.get("maxPossible", value.get("max_possible"))) or 0.0
        if max_possible > 0:
            percentage = category_percentage(
                raw_points, max_possible, inverted=catalog.is_inverted(category)
            )
        else:
            percentage = _number(value.get("score")) or 0.0
        found[category] = CategorySummary(
            category=category,
            count=int(count),
            raw_points=raw_points,
            max_possible=max_possible,
            percentage=percentage,
            confidence=ESTIMATED if value.get("confidence") == ESTIMATED else MEASURED,
        )
    categories = _with_all_categories(found, catalog)
    results = snapshot.results
    stored_total = _number(results.get("total_points"))
    has_points = stored_total is not None or any(
        item.max_possible > 0 for item in found.values()
    )
    total_points = stored_total
    if total_points is None:
        total_points = sum(item.raw_points for item in categories)
    max_potential_points = _number(results.get("max_potential_points"))
    if max_potential_points is None:
        max_potential_points = sum(item.max_possible for item in categories)
    calibration = None
    if has_points:
        try:
            calibration = calibrate(
                total_points, max_potential_points, snapshot.custom_divider, scale=scale
            )
        except InvalidDivider:
            calibration = None
    if calibration is not None:
        divider, divider_source = calibration.divider, calibration.divider_source
        final_score = calibration.final_score
    else:
        # Older summaries carry only percentages; keep the final score stored with them.
        if snapshot.stored_final_score is None:
            logger.info(
                "Summary of evaluation %s cannot be calibrated; trying the next source",
                snapshot.evaluation_id,
            )
            return None
        divider, divider_source = _number(results.get("divider")), None
        final_score = snapshot.stored_final_score
    return EvaluationScoreState(
        evaluation_id=snapshot.evaluation_id,
        status=STATUS_SCORED,
        source=SOURCE_CATEGORIES_SUMMARY,
        total_points=total_points,
        max_potential_points=max_potential_points,
        divider=divider,
        divider_source=divider_source,
        final_score=final_score,
        categories=categories,
    )


def _from_score_records(
    snapshot: EvaluationSnapshot, catalog: SkillCatalog, scale: float
) -> EvaluationScoreState | None:
    if not snapshot.score_records:
        return None
    state = compute_state(
        snapshot.evaluation_id,
        snapshot.score_records,
        catalog,
        custom_divider=snapshot.custom_divider,
        scale=scale,
    )
    if state.status != STATUS_SCORED:
        return None
    return state


def _from_manual_scores(
    snapshot: EvaluationSnapshot, catalog: SkillCatalog, scale: float
) -> EvaluationScoreState | None:
    blob = snapshot.results.get("manual_scores")
    if not isinstance(blob, dict) or not blob:
        return None
    found: dict[str, CategorySummary] = {}
    for category, value in _canonical_entries(blob, catalog).items():
        score = _number(value.get("score")) if isinstance(value, dict) else _number(value)
        if score is None:
            continue
        score = max(0.0, min(MANUAL_SCORE_MAX, score))
        found[category] = CategorySummary(
            category=category,
            count=1,
            raw_points=score,
            max_possible=MANUAL_SCORE_MAX,
            percentage=score * MANUAL_SCORE_FACTOR,
        )
    if not found:
        return None
    categories = _with_all_categories(found, catalog)
    total_points = sum(item.raw_points for item in categories)
    max_potential_points = sum(item.max_possible for item in categories)
    calibration = calibrate(total_points, max_potential_points, scale=scale)
    return EvaluationScoreState(
        evaluation_id=snapshot.evaluation_id,
        status=STATUS_SCORED,
        source=SOURCE_MANUAL_SCORES,
        total_points=total_points,
        max_potential_points=max_potential_points,
        divider=calibration.divider,
        divider_source=calibration.divider_source,
        final_score=calibration.final_score,
        categories=categories,
    )


def _estimate(final_score: float, category: str) -> float:
    factor = ESTIMATE_FACTORS.get(category, DEFAULT_ESTIMATE_FACTOR)
    return max(ESTIMATE_FLOOR, min(ESTIMATE_CEILING, final_score * factor))


def _from_final_score(
    snapshot: EvaluationSnapshot, catalog: SkillCatalog
) -> EvaluationScoreState | None:
    final_score = snapshot.stored_final_score
    if final_score is None:
        return None
    logger.info(
        "Evaluation %s has only a final score; category scores are estimated",
        snapshot.evaluation_id,
    )
    categories = tuple(
        CategorySummary(
            category=name,
            count=0,
            raw_points=0.0,
            max_possible=0.0,
            percentage=_estimate(final_score, name),
            confidence=ESTIMATED,
        )
        for name in catalog.categories
    )
    results = snapshot.results
    divider = _number(results.get("divider")) or snapshot.custom_divider
    return EvaluationScoreState(
        evaluation_id=snapshot.evaluation_id,
        status=STATUS_SCORED,
        source=SOURCE_FINAL_SCORE,
        total_points=_number(results.get("total_points")),
        max_potential_points=_number(results.get("max_potential_points")),
        divider=divider,
        divider_source=None,
        final_score=final_score,
        categories=categories,
    )


def resolve(
    snapshot: EvaluationSnapshot,
    catalog: SkillCatalog,
    *,
    scale: float = DEFAULT_SCORE_SCALE,
) -> EvaluationScoreState:
    for source in (
        lambda: _from_categories_summary(snapshot, catalog, scale),
        lambda: _from_score_records(snapshot, catalog, scale),
        lambda: _from_manual_scores(snapshot, catalog, scale),
        lambda: _from_final_score(snapshot, catalog),
    ):
        state = source()
        if state is not None:
            return state
    return empty_state(snapshot.evaluation_id, catalog)


def resolve_or_raise(
    snapshot: EvaluationSnapshot,
    catalog: SkillCatalog,
    *,
    scale: float = DEFAULT_SCORE_SCALE,
) -> EvaluationScoreState:
    state = resolve(snapshot, catalog, scale=scale)
    if state.status != STATUS_SCORED:
        raise NoScoreData(snapshot.evaluation_id)
    return state
