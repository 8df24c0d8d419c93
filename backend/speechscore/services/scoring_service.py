from __future__ import annotations

import asyncio
import logging
import weakref
from dataclasses import dataclass, field
from typing import Any, Mapping, MutableMapping, Protocol

from fastapi import HTTPException, status

from speechscore.clients.supabase import SupabaseClient, SupabaseError
from speechscore.config import load_settings
from speechscore.models.score_state import (
    STATUS_SCORED,
    EvaluationScoreState,
    EvaluationSnapshot,
)
from speechscore.models.skill import SkillScoreRecord
from speechscore.repositories.evaluation_repository import EvaluationRepository
from speechscore.scoring.catalog import SkillCatalog, catalog_from_settings
from speechscore.scoring.engine import compute_state, records_from_ai_analysis, with_points
from speechscore.scoring.errors import InvalidDivider
from speechscore.scoring.resolver import resolve
from speechscore.telemetry.otel import start_span
from speechscore.telemetry.tracing import emit_event, emit_metric

logger = logging.getLogger(__name__)

AI_EXPLANATIONS_KEY = "ai_explanations"

# Entries disappear once no coroutine holds or waits on the lock.
_EVALUATION_LOCKS: MutableMapping[str, asyncio.Lock] = weakref.WeakValueDictionary()


class ScorePersistence(Protocol):
    async def load_score_records(self, evaluation_id: str) -> list[SkillScoreRecord]: ...

    async def replace_score_records(
        self, evaluation_id: str, records: list[SkillScoreRecord]
    ) -> None: ...

    async def load_snapshot(self, evaluation_id: str) -> EvaluationSnapshot | None: ...

    async def save_score_state(
        self,
        evaluation_id: str,
        state: EvaluationScoreState,
        custom_divider: float | None,
        *,
        extra_results: dict[str, Any] | None = None,
    ) -> None: ...


@dataclass(frozen=True)
class ScoreWriteResult:
    state: EvaluationScoreState
    updated_skill_ids: tuple[int, ...]
    total_skill_count: int
    explanations: dict[int, str] = field(default_factory=dict)


def _persistence() -> EvaluationRepository:
    settings = load_settings()
    client = SupabaseClient(
        url=settings.supabase_url,
        service_role_key=settings.supabase_service_role_key,
    )
    return EvaluationRepository(client)


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Evaluation not found")


def _upstream_error(exc: SupabaseError) -> HTTPException:
    if exc.status_code == 404:
        return _not_found()
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))


def _invalid_divider(exc: InvalidDivider) -> HTTPException:
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))


class ScoringService:
    def __init__(
        self,
        persistence: ScorePersistence | None = None,
        catalog: SkillCatalog | None = None,
        *,
        scale: float | None = None,
        locks: MutableMapping[str, asyncio.Lock] | None = None,
    ) -> None:
        if catalog is None or scale is None:
            settings = load_settings()
            catalog = catalog or catalog_from_settings(settings)
            scale = scale if scale is not None else settings.score_scale
        self.persistence = persistence or _persistence()
        self.catalog = catalog
        self.scale = scale
        self._locks = _EVALUATION_LOCKS if locks is None else locks

    def _lock_for(self, evaluation_id: str) -> asyncio.Lock:
        lock = self._locks.get(evaluation_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[evaluation_id] = lock
        return lock

    async def _snapshot(self, evaluation_id: str) -> EvaluationSnapshot:
        snapshot = await self.persistence.load_snapshot(evaluation_id)
        if snapshot is None:
            raise _not_found()
        return snapshot

    def _emit_state(self, state: EvaluationScoreState, operation: str) -> None:
        emit_metric(
            "scores.skipped_skills",
            len(state.skipped_skill_ids),
            evaluation_id=state.evaluation_id,
            attributes={"operation": operation},
        )
        if state.final_score is not None:
            emit_metric(
                "scores.final_score",
                state.final_score,
                evaluation_id=state.evaluation_id,
                attributes={
                    "operation": operation,
                    "source": state.source,
                    "dividerSource": state.divider_source,
                },
            )

    async def _recompute_and_persist(
        self,
        evaluation_id: str,
        custom_divider: float | None,
        *,
        operation: str,
        extra_results: dict[str, Any] | None = None,
    ) -> tuple[EvaluationScoreState, int]:
        with start_span(
            "scores.recompute",
            {"evaluationId": evaluation_id, "operation": operation},
        ):
            records = await self.persistence.load_score_records(evaluation_id)
            state = compute_state(
                evaluation_id,
                records,
                self.catalog,
                custom_divider=custom_divider,
                scale=self.scale,
            )
        with start_span(
            "scores.persist",
            {"evaluationId": evaluation_id, "status": state.status},
        ):
            await self.persistence.save_score_state(
                evaluation_id, state, custom_divider, extra_results=extra_results
            )
        self._emit_state(state, operation)
        return state, len(records)

    def _check_calibration(
        self,
        evaluation_id: str,
        snapshot: EvaluationSnapshot,
        records: list[SkillScoreRecord],
    ) -> None:
        """Raise ``InvalidDivider`` before any row is replaced."""
        replaced = {record.skill_id for record in records}
        kept = [item for item in snapshot.score_records if item.skill_id not in replaced]
        compute_state(
            evaluation_id,
            [*kept, *records],
            self.catalog,
            custom_divider=snapshot.custom_divider,
            scale=self.scale,
        )

    async def _write_records(
        self,
        evaluation_id: str,
        records: list[SkillScoreRecord],
        *,
        operation: str,
        explanations: dict[int, str] | None = None,
    ) -> ScoreWriteResult:
        async with self._lock_for(evaluation_id):
            try:
                snapshot = await self._snapshot(evaluation_id)
                self._check_calibration(evaluation_id, snapshot, records)
                with start_span(
                    "scores.replace",
                    {"evaluationId": evaluation_id, "skillCount": len(records)},
                ):
                    await self.persistence.replace_score_records(evaluation_id, records)
                extra_results = None
                if explanations:
                    merged = dict(snapshot.results.get(AI_EXPLANATIONS_KEY) or {})
                    merged.update({str(key): value for key, value in explanations.items()})
                    extra_results = {AI_EXPLANATIONS_KEY: merged}
                state, total = await self._recompute_and_persist(
                    evaluation_id,
                    snapshot.custom_divider,
                    operation=operation,
                    extra_results=extra_results,
                )
            except InvalidDivider as exc:
                raise _invalid_divider(exc) from exc
            except SupabaseError as exc:
                raise _upstream_error(exc) from exc
        emit_event(
            f"scores.{operation}",
            evaluation_id=evaluation_id,
            attributes={
                "skillIds": [record.skill_id for record in records],
                "status": state.status,
            },
        )
        return ScoreWriteResult(
            state=state,
            updated_skill_ids=tuple(record.skill_id for record in records),
            total_skill_count=total,
            explanations=dict(explanations or {}),
        )

    async def save_scores(
        self, evaluation_id: str, records: list[SkillScoreRecord]
    ) -> ScoreWriteResult:
        """Replace the given skills' records, then recompute the whole evaluation."""
        scored = [with_points(record, self.catalog) for record in records]
        return await self._write_records(evaluation_id, scored, operation="save")

    async def ingest_ai_scores(
        self, evaluation_id: str, analysis: Mapping[int, Mapping[str, Any]]
    ) -> tuple[ScoreWriteResult, list[int]]:
        ingestion = records_from_ai_analysis(evaluation_id, analysis, self.catalog)
        result = await self._write_records(
            evaluation_id,
            ingestion.records,
            operation="ai_ingest",
            explanations=ingestion.explanations,
        )
        return result, ingestion.unknown_skill_ids

    async def update_divider(
        self, evaluation_id: str, divider: float | None
    ) -> EvaluationScoreState:
        """Set or clear the coach divider and recompute with it."""
        async with self._lock_for(evaluation_id):
            try:
                await self._snapshot(evaluation_id)
                state, _ = await self._recompute_and_persist(
                    evaluation_id, divider, operation="divider"
                )
            except InvalidDivider as exc:
                raise _invalid_divider(exc) from exc
            except SupabaseError as exc:
                raise _upstream_error(exc) from exc
        emit_event(
            "scores.divider",
            evaluation_id=evaluation_id,
            attributes={"divider": divider, "status": state.status},
        )
        return state

    async def get_scores(self, evaluation_id: str) -> EvaluationScoreState:
        try:
            snapshot = await self._snapshot(evaluation_id)
            state = resolve(snapshot, self.catalog, scale=self.scale)
        except InvalidDivider as exc:
            raise _invalid_divider(exc) from exc
        except SupabaseError as exc:
            raise _upstream_error(exc) from exc
        if state.status != STATUS_SCORED:
            logger.info("Evaluation %s has no score data yet", evaluation_id)
        return state
