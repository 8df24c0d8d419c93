from __future__ import annotations

import asyncio
import gc
import json

import pytest
from fastapi import HTTPException

from speechscore.clients.supabase import SupabaseError
from speechscore.models.skill import LANGUAGE, NERVOUSNESS, SkillScoreRecord
from speechscore.services import scoring_service
from speechscore.services.scoring_service import ScoringService


def _record(evaluation_id, skill_id, **scores):
    return SkillScoreRecord(
        evaluation_id=evaluation_id, skill_id=skill_id, max_score=10, weight=1.0, **scores
    )


@pytest.fixture
def service(persistence, catalog):
    return ScoringService(persistence, catalog, scale=110.0, locks={})


@pytest.mark.asyncio
async def test_partial_updates_recompute_the_whole_evaluation(service, persistence):
    persistence.add_evaluation("eval-flow")

    first = await service.save_scores("eval-flow", [_record("eval-flow", 85, manual_score=8)])
    second = await service.save_scores("eval-flow", [_record("eval-flow", 1, ai_raw_score=-4)])

    assert first.state.final_score == pytest.approx(88)
    assert second.total_skill_count == 2
    assert second.state.total_points == 4
    assert second.state.final_score == pytest.approx(22)
    assert second.state.category(NERVOUSNESS).percentage == pytest.approx(60)
    assert second.state.category(LANGUAGE).count == 1
    stored = persistence.evaluations["eval-flow"]
    assert stored["final_score"] == pytest.approx(22)
    assert stored["results"]["score_calculation"] == "4.00 ÷ 0.1818 = 22.00"


@pytest.mark.asyncio
async def test_concurrent_disjoint_edits_are_both_kept(service, persistence):
    persistence.add_evaluation("eval-disjoint")

    await asyncio.gather(
        service.save_scores("eval-disjoint", [_record("eval-disjoint", 85, manual_score=8)]),
        service.save_scores("eval-disjoint", [_record("eval-disjoint", 86, manual_score=6)]),
    )

    assert sorted(persistence.records["eval-disjoint"]) == [85, 86]
    final_state = persistence.saved_states[-1]
    assert final_state.total_points == 14
    assert final_state.final_score == pytest.approx(77)


@pytest.mark.asyncio
async def test_concurrent_edits_to_one_skill_keep_a_whole_record(service, persistence):
    persistence.add_evaluation("eval-same")
    coach = _record("eval-same", 85, ai_raw_score=4, adjusted_score=9, is_automated=True)
    manual = _record("eval-same", 85, manual_score=3)

    await asyncio.gather(
        service.save_scores("eval-same", [coach]),
        service.save_scores("eval-same", [manual]),
    )

    stored = persistence.records["eval-same"][85]
    assert stored.manual_score == 3
    assert stored.adjusted_score is None
    assert stored.points == 3
    assert persistence.evaluations["eval-same"]["results"]["total_points"] == 3


@pytest.mark.asyncio
async def test_ai_analysis_then_coach_adjustment(service, persistence):
    persistence.add_evaluation("eval-ai")

    result, unknown = await service.ingest_ai_scores(
        "eval-ai", {85: {"score": 4, "explanation": "Flat delivery"}}
    )

    assert unknown == []
    assert result.state.total_points == 4
    explanations = persistence.evaluations["eval-ai"]["results"]["ai_explanations"]
    assert explanations == {"85": "Flat delivery"}

    adjusted = await service.save_scores(
        "eval-ai",
        [_record("eval-ai", 85, ai_raw_score=4, adjusted_score=9, is_automated=True)],
    )

    assert persistence.records["eval-ai"][85].points == 9
    assert adjusted.state.total_points == 9
    assert persistence.evaluations["eval-ai"]["results"]["ai_explanations"] == {
        "85": "Flat delivery"
    }


@pytest.mark.asyncio
async def test_custom_divider_is_reused_until_cleared(service, persistence):
    persistence.add_evaluation("eval-divider")
    await service.save_scores("eval-divider", [_record("eval-divider", 85, manual_score=8)])

    state = await service.update_divider("eval-divider", 0.5)
    assert state.final_score == pytest.approx(16)
    assert persistence.evaluations["eval-divider"]["results"]["custom_divider"] == 0.5

    later = await service.save_scores(
        "eval-divider", [_record("eval-divider", 86, manual_score=6)]
    )
    assert later.state.divider == 0.5
    assert later.state.final_score == pytest.approx(28)

    cleared = await service.update_divider("eval-divider", None)
    assert "custom_divider" not in persistence.evaluations["eval-divider"]["results"]
    assert cleared.final_score == pytest.approx(77)


@pytest.mark.asyncio
async def test_divider_on_unscored_evaluation_is_stored(service, persistence):
    persistence.add_evaluation("eval-empty")

    state = await service.update_divider("eval-empty", 0.8)

    assert state.status == "no_score_data"
    assert persistence.evaluations["eval-empty"]["results"]["custom_divider"] == 0.8


@pytest.mark.asyncio
async def test_legacy_evaluation_is_resolved_without_writes(service, persistence):
    persistence.add_evaluation(
        "eval-legacy",
        results={"manual_scores": {"voice": 7, "body_language": 8}},
        final_score=80,
    )

    state = await service.get_scores("eval-legacy")

    assert state.source == "manual_scores"
    assert state.final_score == pytest.approx(82.5)
    assert persistence.saved_states == []


@pytest.mark.asyncio
async def test_score_metrics_are_emitted(service, persistence, caplog):
    caplog.set_level("INFO", logger="speechscore.telemetry")
    persistence.add_evaluation("eval-metrics")

    await service.save_scores("eval-metrics", [_record("eval-metrics", 85)])
    await service.save_scores("eval-metrics", [_record("eval-metrics", 86, manual_score=6)])

    payloads = [
        json.loads(record.message)
        for record in caplog.records
        if record.name == "speechscore.telemetry" and record.message.startswith("{")
    ]
    skipped = [item for item in payloads if item["name"] == "scores.skipped_skills"]
    finals = [item for item in payloads if item["name"] == "scores.final_score"]
    assert [item["value"] for item in skipped] == [1, 1]
    assert len(finals) == 1
    assert finals[0]["value"] == pytest.approx(66)
    assert finals[0]["evaluationId"] == "eval-metrics"


@pytest.mark.asyncio
async def test_storage_failure_inside_a_span_maps_to_bad_gateway(service, persistence, monkeypatch):
    persistence.add_evaluation("eval-down")

    async def _fail(evaluation_id, records):
        raise SupabaseError("Supabase request failed", status_code=503)

    monkeypatch.setattr(persistence, "replace_score_records", _fail)

    with pytest.raises(HTTPException) as exc:
        await service.save_scores("eval-down", [_record("eval-down", 85, manual_score=8)])

    assert exc.value.status_code == 502
    assert persistence.saved_states == []


@pytest.mark.asyncio
async def test_unknown_evaluation_is_not_found(service):
    with pytest.raises(HTTPException) as exc:
        await service.update_divider("missing", 0.5)

    assert exc.value.status_code == 404


@pytest.mark.asyncio
async def test_uncalibratable_write_leaves_rows_and_results_untouched(service, persistence):
    persistence.add_evaluation("eval-weightless")
    await service.save_scores("eval-weightless", [_record("eval-weightless", 85, adjusted_score=8)])

    weightless = SkillScoreRecord(
        evaluation_id="eval-weightless", skill_id=85, max_score=10, weight=0.0, adjusted_score=8
    )
    with pytest.raises(HTTPException) as exc:
        await service.save_scores("eval-weightless", [weightless])

    assert exc.value.status_code == 422
    assert persistence.records["eval-weightless"][85].weight == 1.0
    assert len(persistence.saved_states) == 1
    state = await service.get_scores("eval-weightless")
    assert state.final_score == pytest.approx(88)


@pytest.mark.asyncio
async def test_evaluation_locks_are_released_after_writes(persistence, catalog):
    service = ScoringService(persistence, catalog, scale=110.0)
    persistence.add_evaluation("eval-locks")

    await asyncio.gather(
        service.save_scores("eval-locks", [_record("eval-locks", 85, adjusted_score=8)]),
        service.save_scores("eval-locks", [_record("eval-locks", 86, adjusted_score=6)]),
    )
    gc.collect()

    assert sorted(persistence.records["eval-locks"]) == [85, 86]
    assert "eval-locks" not in scoring_service._EVALUATION_LOCKS
