from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from speechscore.models.skill import SkillScoreRecord

MEASURED = "measured"
ESTIMATED = "estimated"

STATUS_SCORED = "scored"
STATUS_NO_SCORE_DATA = "no_score_data"

SOURCE_CATEGORIES_SUMMARY = "categories_summary"
SOURCE_SCORE_RECORDS = "score_records"
SOURCE_MANUAL_SCORES = "manual_scores"
SOURCE_FINAL_SCORE = "final_score"
SOURCE_NONE = "none"

DIVIDER_CUSTOM = "custom"
DIVIDER_DERIVED = "derived"


@dataclass(frozen=True)
class CategorySummary:
    category: str
    count: int
    raw_points: float
    max_possible: float
    percentage: float
    confidence: str = MEASURED


@dataclass(frozen=True)
class EvaluationScoreState:
    evaluation_id: str
    status: str
    source: str
    total_points: float | None
    max_potential_points: float | None
    divider: float | None
    divider_source: str | None
    final_score: float | None
    categories: tuple[CategorySummary, ...]
    skipped_skill_ids: tuple[int, ...] = ()
    unknown_skill_ids: tuple[int, ...] = ()

    @property
    def confidence(self) -> str:
        if any(item.confidence == ESTIMATED for item in self.categories):
            return ESTIMATED
        return MEASURED

    def category(self, name: str) -> CategorySummary | None:
        for item in self.categories:
            if item.category == name:
                return item
        return None


@dataclass(frozen=True)
class EvaluationSnapshot:
    """Everything stored for one evaluation that the resolver may draw from.

    ``results`` is the raw JSON blob kept on the evaluation row; older rows
    carry any mix of ``categories_summary``, ``manual_scores`` and
    ``final_score`` in it.
    """

    evaluation_id: str
    results: dict[str, Any] = field(default_factory=dict)
    final_score: float | None = None
    score_records: tuple[SkillScoreRecord, ...] = ()

    @property
    def custom_divider(self) -> float | None:
        value = self.results.get("custom_divider")
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        if value <= 0:
            return None
        return float(value)

    @property
    def stored_final_score(self) -> float | None:
        """The first non-zero final score stored with the evaluation.

        Legacy rows use 0 for "not scored yet", so it is treated as missing.
        """
        for value in (self.results.get("final_score"), self.final_score):
            if isinstance(value, bool):
                continue
            if isinstance(value, (int, float)) and value:
                return float(value)
        return None
