from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from speechscore.models.score_state import MEASURED, CategorySummary
from speechscore.models.skill import UNKNOWN_CATEGORY, SkillDefinition, SkillScoreRecord
from speechscore.scoring.catalog import SkillCatalog
from speechscore.scoring.errors import MissingScore
from speechscore.scoring.normalizer import is_wrong_sign, normalize, points, select_raw_score

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoredSkill:
    skill_id: int
    category: str
    effective_score: float
    points: float
    max_possible: float


@dataclass(frozen=True)
class ScoredRecords:
    skills: tuple[ScoredSkill, ...]
    skipped_skill_ids: tuple[int, ...]
    unknown_skill_ids: tuple[int, ...]


def category_percentage(raw_points: float, max_possible: float, *, inverted: bool) -> float:
    """Percentage shown for a category.

    ``max_possible`` always uses the positive max score, so a category made of
    bad skills has a raw ratio in [-100, 0]. Inverted categories are shifted by
    100, so 100 means no penalized behaviour was observed.
    """
    if max_possible <= 0:
        return 0.0
    raw_percentage = (raw_points / max_possible) * 100
    if inverted:
        return 100 + raw_percentage
    return raw_percentage


def definition_for(record: SkillScoreRecord, catalog: SkillCatalog) -> SkillDefinition:
    definition = catalog.get(record.skill_id)
    if definition is not None:
        return definition
    return SkillDefinition(
        id=record.skill_id,
        name=f"Skill {record.skill_id}",
        category=catalog.category_for(record.skill_id),
        is_good_skill=True,
        max_score=record.max_score,
        weight=record.weight,
    )


def _latest_per_skill(records: Iterable[SkillScoreRecord]) -> list[SkillScoreRecord]:
    latest: dict[int, SkillScoreRecord] = {}
    for record in records:
        latest[record.skill_id] = record
    return [latest[skill_id] for skill_id in sorted(latest)]


def score_records(records: Iterable[SkillScoreRecord], catalog: SkillCatalog) -> ScoredRecords:
    scored: list[ScoredSkill] = []
    skipped: list[int] = []
    unknown: list[int] = []
    for record in _latest_per_skill(records):
        category = catalog.category_for(record.skill_id)
        if category == UNKNOWN_CATEGORY:
            unknown.append(record.skill_id)
            logger.warning("Skill id %s is outside every category range", record.skill_id)
        definition = definition_for(record, catalog)
        try:
            raw_score = select_raw_score(record)
        except MissingScore as exc:
            skipped.append(record.skill_id)
            logger.warning("%s; skill left out of the totals", exc)
            continue
        if is_wrong_sign(raw_score, definition.is_good_skill):
            logger.warning(
                "Skill %s score %s has the wrong sign for its polarity; clamped to 0",
                record.skill_id,
                raw_score,
            )
        effective_score = normalize(record, definition)
        max_score = record.max_score or definition.max_score
        scored.append(
            ScoredSkill(
                skill_id=record.skill_id,
                category=category,
                effective_score=effective_score,
                points=points(effective_score, record.weight),
                max_possible=max_score * record.weight,
            )
        )
    return ScoredRecords(
        skills=tuple(scored),
        skipped_skill_ids=tuple(skipped),
        unknown_skill_ids=tuple(unknown),
    )


def summarize(skills: Iterable[ScoredSkill], catalog: SkillCatalog) -> tuple[CategorySummary, ...]:
    buckets: dict[str, list[ScoredSkill]] = {name: [] for name in catalog.categories}
    for skill in skills:
        buckets.setdefault(skill.category, []).append(skill)
    summaries = []
    for name, members in buckets.items():
        raw_points = sum(item.points for item in members)
        max_possible = sum(item.max_possible for item in members)
        summaries.append(
            CategorySummary(
                category=name,
                count=len(members),
                raw_points=raw_points,
                max_possible=max_possible,
                percentage=category_percentage(
                    raw_points, max_possible, inverted=catalog.is_inverted(name)
                ),
                confidence=MEASURED,
            )
        )
    return tuple(summaries)


def aggregate(records: Iterable[SkillScoreRecord], catalog: SkillCatalog) -> tuple[CategorySummary, ...]:
    return summarize(score_records(records, catalog).skills, catalog)
