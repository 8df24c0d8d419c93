from __future__ import annotations

import logging
from typing import Any

from speechscore.clients.supabase import SupabaseClient, SupabaseError, eq_filter, in_filter
from speechscore.models.skill import SkillScoreRecord

logger = logging.getLogger(__name__)

SCORES_TABLE = "skill_settings_and_scores"
REPLACE_FUNCTION = "replace_skill_scores"


def _optional_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    return float(value)


def _from_row(payload: dict[str, Any]) -> SkillScoreRecord:
    return SkillScoreRecord(
        evaluation_id=str(payload.get("evaluation_id", "")),
        skill_id=int(payload["skill_id"]),
        max_score=int(payload.get("max_score") or 10),
        weight=float(payload["weight"]) if payload.get("weight") is not None else 1.0,
        is_automated=bool(payload.get("is_automated", False)),
        manual_score=_optional_float(payload.get("actual_score")),
        ai_raw_score=_optional_float(payload.get("actual_score_ai")),
        adjusted_score=_optional_float(payload.get("adjusted_score")),
        points=_optional_float(payload.get("points")),
    )


def to_row(record: SkillScoreRecord) -> dict[str, Any]:
    return {
        "evaluation_id": record.evaluation_id,
        "skill_id": record.skill_id,
        "max_score": record.max_score,
        "weight": record.weight,
        "actual_score": record.manual_score,
        "actual_score_ai": record.ai_raw_score,
        "adjusted_score": record.adjusted_score,
        "is_automated": record.is_automated,
        "points": record.points,
    }


class ScoreRecordRepository:
    def __init__(self, client: SupabaseClient) -> None:
        self._client = client

    async def load_score_records(self, evaluation_id: str) -> list[SkillScoreRecord]:
        rows = await self._client.select(
            SCORES_TABLE,
            params={"evaluation_id": eq_filter(evaluation_id), "order": "skill_id.asc"},
        )
        return [_from_row(row) for row in rows]

    async def replace_score_records(
        self, evaluation_id: str, records: list[SkillScoreRecord]
    ) -> None:
        """Replace the rows of exactly the skills in ``records``.

        Rows are never patched field by field; the whole row, including its
        recomputed ``points``, is written again.
        """
        if not records:
            return
        rows = [to_row(record) for record in records]
        try:
            await self._client.rpc(
                REPLACE_FUNCTION,
                {"p_evaluation_id": evaluation_id, "p_rows": rows},
            )
            return
        except SupabaseError as exc:
            if exc.status_code != 404:
                raise
            logger.info(
                "%s is not installed; replacing scores with delete and insert",
                REPLACE_FUNCTION,
            )
        skill_ids = [record.skill_id for record in records]
        await self._client.delete(
            SCORES_TABLE,
            params={
                "evaluation_id": eq_filter(evaluation_id),
                "skill_id": in_filter(skill_ids),
            },
        )
        await self._client.insert(SCORES_TABLE, rows)
