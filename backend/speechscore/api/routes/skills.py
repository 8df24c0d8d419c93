from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from speechscore.config import load_settings
from speechscore.models.skill import SkillDefinition
from speechscore.scoring.catalog import SkillCatalog, catalog_from_settings

router = APIRouter(prefix="/skills", tags=["skills"])


def _catalog() -> SkillCatalog:
    return catalog_from_settings(load_settings())


def _skill_response(definition: SkillDefinition, catalog: SkillCatalog) -> dict[str, Any]:
    return {
        "id": definition.id,
        "name": definition.name,
        "category": definition.category,
        "isGoodSkill": definition.is_good_skill,
        "maxScore": definition.max_score,
        "weight": definition.weight,
        "invertedCategory": catalog.is_inverted(definition.category),
    }


@router.get("")
async def list_skills(category: str | None = None, catalog: SkillCatalog = Depends(_catalog)):
    items = [
        definition
        for definition in catalog.definitions
        if category is None or definition.category == category
    ]
    return {
        "categories": list(catalog.categories),
        "skills": [_skill_response(item, catalog) for item in items],
    }
