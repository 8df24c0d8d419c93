from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from speechscore.clients.supabase import SupabaseClient, SupabaseError, eq_filter
from speechscore.models.score_state import EvaluationScoreState, EvaluationSnapshot
from speechscore.models.skill import SkillScoreRecord
from speechscore.repositories.score_repository import ScoreRecordRepository
from speechscore.scoring.divider import score_calculation

EVALUATIONS_TABLE = "evaluations"


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _snapshot_from_row(
    payload: dict[str, Any], records: list[SkillScoreRecord]
) -> EvaluationSnapshot:
    results = payload.get("results")
    final_score = payload.get("final_score")
    if isinstance(final_score, bool) or not isinstance(final_score, (int, float)):
        final_score = None
    return EvaluationSnapshot(
        evaluation_id=str(payload["id"]),
        results=results if isinstance(results, dict) else {},
        final_score=final_score,
        score_records=tuple(records),
    )


def results_payload(
    state: EvaluationScoreState,
    custom_divider: float | None,
    *,
    updated_at: str | None = None,
) -> dict[str, Any]:
    """Build the ``results`` keys written for a recomputed score state."""
    categories_summary = {
        item.category: {
            "score": item.percentage,
            "count": item.count,
            "rawPoints": item.raw_points,
            "maxPossible": item.max_possible,
            "confidence": item.confidence,
        }
        for item in state.categories
        if item.count > 0
    }
    payload: dict[str, Any] = {
        "total_points": state.total_points,
        "max_potential_points": state.max_potential_points,
        "divider": state.divider,
        "final_score": state.final_score,
        "categories_summary": categories_summary,
        "raw_points": {item.category: item.raw_points for item in state.categories},
        "max_possible_points": {
            item.category: item.max_possible for item in state.categories
        },
        "skill_counts": {item.category: item.count for item in state.categories},
        "scores_updated_at": updated_at or _utc_now(),
    }
    if state.divider and state.max_potential_points is not None:
        payload["max_possible_score"] = state.max_potential_points / state.divider
    if (
        state.total_points is not None
        and state.divider is not None
        and state.final_score is not None
    ):
        payload["score_calculation"] = score_calculation(
            state.total_points, state.divider, state.final_score
        )
    if custom_divider is not None:
        payload["custom_divider"] = custom_divider
    return payload


class EvaluationRepository:
    """Supabase-backed persistence for evaluation score state.

    Score rows go through ``ScoreRecordRepository``; the derived state lives in
    the ``results`` JSON of the evaluation row.
    """

    def __init__(
        self,
        client: SupabaseClient,
        score_repo: ScoreRecordRepository | None = None,
    ) -> None:
        self._client = client
        self._score_repo = score_repo or ScoreRecordRepository(client)

    async def _get_row(self, evaluation_id: str) -> dict[str, Any] | None:
        rows = await self._client.select(
            EVALUATIONS_TABLE,
            params={
                "select": "id,final_score,results",
                "id": eq_filter(evaluation_id),
                "limit": 1,
            },
        )
        if not rows:
            return None
        return rows[0]

    async def load_score_records(self, evaluation_id: str) -> list[SkillScoreRecord]:
        return await self._score_repo.load_score_records(evaluation_id)

    async def replace_score_records(
        self, evaluation_id: str, records: list[SkillScoreRecord]
    ) -> None:
        await self._score_repo.replace_score_records(evaluation_id, records)

    async def load_snapshot(self, evaluation_id: str) -> EvaluationSnapshot | None:
        row = await self._get_row(evaluation_id)
        if row is None:
            return None
        records = await self._score_repo.load_score_records(evaluation_id)
        return _snapshot_from_row(row, records)

    async def save_score_state(
        self,
        evaluation_id: str,
        state: EvaluationScoreState,
        custom_divider: float | None,
        *,
        extra_results: dict[str, Any] | None = None,
    ) -> None:
        row = await self._get_row(evaluation_id)
        if row is None:
            raise SupabaseError("Evaluation not found", status_code=404)
        existing = row.get("results") if isinstance(row.get("results"), dict) else {}
        results = {**existing, **(extra_results or {})}
        results.pop("custom_divider", None)
        results.update(results_payload(state, custom_divider))
        await self._client.update(
            EVALUATIONS_TABLE,
            params={"id": eq_filter(evaluation_id)},
            payload={"final_score": state.final_score, "results": results},
        )
