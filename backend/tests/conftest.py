from __future__ import annotations

import asyncio
from typing import Any

import httpx
import pytest

from speechscore.clients.supabase import SupabaseClient
from speechscore.models.score_state import EvaluationScoreState, EvaluationSnapshot
from speechscore.models.skill import SkillScoreRecord
from speechscore.repositories.evaluation_repository import results_payload
from speechscore.scoring.catalog import SkillCatalog, default_catalog


class InMemoryPersistence:
    """Score persistence kept in dictionaries; yields to the loop on every call."""

    def __init__(self, evaluations: dict[str, dict[str, Any]] | None = None) -> None:
        self.evaluations = evaluations if evaluations is not None else {}
        self.records: dict[str, dict[int, SkillScoreRecord]] = {}
        self.saved_states: list[EvaluationScoreState] = []

    def add_evaluation(
        self,
        evaluation_id: str,
        *,
        results: dict[str, Any] | None = None,
        final_score: float | None = None,
    ) -> None:
        self.evaluations[evaluation_id] = {
            "results": dict(results or {}),
            "final_score": final_score,
        }

    async def load_score_records(self, evaluation_id: str) -> list[SkillScoreRecord]:
        await asyncio.sleep(0)
        return list(self.records.get(evaluation_id, {}).values())

    async def replace_score_records(
        self, evaluation_id: str, records: list[SkillScoreRecord]
    ) -> None:
        await asyncio.sleep(0)
        bucket = self.records.setdefault(evaluation_id, {})
        for record in records:
            bucket[record.skill_id] = record

    async def load_snapshot(self, evaluation_id: str) -> EvaluationSnapshot | None:
        row = self.evaluations.get(evaluation_id)
        if row is None:
            return None
        records = await self.load_score_records(evaluation_id)
        return EvaluationSnapshot(
            evaluation_id=evaluation_id,
            results=dict(row["results"]),
            final_score=row["final_score"],
            score_records=tuple(records),
        )

    async def save_score_state(
        self,
        evaluation_id: str,
        state: EvaluationScoreState,
        custom_divider: float | None,
        *,
        extra_results: dict[str, Any] | None = None,
    ) -> None:
        await asyncio.sleep(0)
        row = self.evaluations[evaluation_id]
        results = {**row["results"], **(extra_results or {})}
        results.pop("custom_divider", None)
        results.update(
            results_payload(state, custom_divider, updated_at="2026-01-01T00:00:00+00:00")
        )
        row["results"] = results
        row["final_score"] = state.final_score
        self.saved_states.append(state)


@pytest.fixture
def catalog() -> SkillCatalog:
    return default_catalog()


@pytest.fixture
def persistence() -> InMemoryPersistence:
    return InMemoryPersistence()


@pytest.fixture
def supabase_env(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", "https://project.supabase.co")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service-key")
    for name in ["SCORE_SCALE", "CATEGORY_RANGES", "INVERTED_CATEGORIES"]:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
async def supabase_client():
    async def handler(request):
        return httpx.Response(200, json=[])

    transport = httpx.MockTransport(handler)
    client = SupabaseClient(
        url="https://project.supabase.co",
        service_role_key="service-key",
        transport=transport,
    )
    yield client
    await client.close()
