# tests/test_health.py

from __future__ import annotations

import pytest

from dashboard.data import health
from dashboard.data.health import HealthKeys
from dashboard.data.mutations import Committed, RolledBack
from dashboard.errors import ApiError, FormValidationError
from dashboard.schemas import HealthLogPage


def _log(log_id: str, kind: str = "exercise") -> dict:
    return {"id": log_id, "userId": "u1", "type": kind, "payload": {}, "recordedAt": 1, "createdAt": 1}


@pytest.mark.asyncio
async def test_list_logs_reads_the_data_envelope(ctx, api) -> None:
    api.respond("GET", "/api/health/logs", {"data": [_log("a")], "pagination": {"total": 1}})

    page = await health.list_logs(ctx, {"type": "exercise"})

    assert isinstance(page, HealthLogPage)
    assert page.data[0].recorded_at == 1
    assert api.calls[0].params == {"type": "exercise"}


@pytest.mark.asyncio
async def test_summary_insights_goals_and_nutrition_queries(ctx, api) -> None:
    api.respond("GET", "/api/health/summary", {"summary": {"exercise": 3}})
    api.respond("GET", "/api/health/insights", {"insights": {"score": 80}})
    api.respond("GET", "/api/health/goals", {"goals": [{"id": "g1", "type": "mood_average", "targetValue": 7}]})
    api.respond("GET", "/api/health/nutrition/analysis", {"analysis": {"calories": 1800}})

    assert await health.health_summary(ctx, days=7) == {"exercise": 3}
    assert await health.health_insights(ctx, days=30) == {"score": 80}
    goals = await health.health_goals(ctx)
    assert await health.nutrition_analysis(ctx) == {"calories": 1800}

    assert goals[0].target_value == 7
    assert api.calls[0].params == {"days": 7}
    assert ctx.queries.get_data(HealthKeys.summary(7)) == {"exercise": 3}


@pytest.mark.asyncio
async def test_log_exercise_inserts_speculative_log_then_commits(ctx, api, toasts) -> None:
    key = HealthKeys.logs_list()
    ctx.queries.set_data(key, HealthLogPage(data=[_log("old")]))
    ctx.store.write(HealthKeys.summary(7), {"exercise": 1}, fetched=True)
    reply = api.hold("POST", "/api/health/exercise")

    handle = health.log_exercise(ctx, {"activity": "Run", "durationMinutes": 30, "intensity": 6})

    speculative = ctx.queries.get_data(key).data
    assert [log.type for log in speculative] == ["exercise", "exercise"]
    assert speculative[0].payload == {"activity": "Run", "durationMinutes": 30, "intensity": 6}

    reply.set_result({"log": _log("srv-1")})
    outcome = await handle

    assert isinstance(outcome, Committed)
    assert [log.id for log in ctx.queries.get_data(key).data] == ["srv-1", "old"]
    assert ctx.store.read(HealthKeys.summary(7)).is_stale is True
    assert toasts.successes == ["💪 Exercise logged successfully!"]


@pytest.mark.asyncio
async def test_failed_mood_log_rolls_back(ctx, api, toasts) -> None:
    key = HealthKeys.logs_list()
    before = HealthLogPage(data=[_log("old", "mood")])
    ctx.queries.set_data(key, before)
    api.respond("POST", "/api/health/mood", ApiError(500, "Internal Server Error"))

    outcome = await health.log_mood(ctx, {"score": 7, "energy": 6, "stress": 3})

    assert isinstance(outcome, RolledBack)
    assert ctx.queries.get_data(key) == before
    assert toasts.errors == ["Failed to log mood"]


@pytest.mark.asyncio
async def test_sleep_and_weight_use_manual_entry(ctx, api, toasts) -> None:
    api.always("POST", "/api/health/manual-entry", {"healthLog": {"id": "m1", "type": "sleep", "value": 7.5}})

    await health.log_sleep(ctx, {"hours": 7.5, "quality": 8})
    await health.log_weight(ctx, {"value": 70.2})

    sleep_call, weight_call = api.calls_to("POST", "/api/health/manual-entry")
    assert sleep_call.json == {"type": "sleep", "value": 7.5, "unit": "hours", "notes": "quality: 8"}
    assert weight_call.json == {"type": "weight", "value": 70.2, "unit": "kg", "notes": ""}
    assert toasts.successes == ["😴 Sleep logged successfully!", "⚖️ Weight logged successfully!"]


def test_invalid_hydration_is_rejected_before_any_request(ctx, api) -> None:
    with pytest.raises(FormValidationError) as excinfo:
        health.log_hydration(ctx, {"amount": 0})

    assert "amount" in excinfo.value.field_errors
    assert api.calls == []


@pytest.mark.asyncio
async def test_goal_lifecycle(ctx, api, toasts) -> None:
    ctx.queries.set_data(HealthKeys.goals(), [])
    api.respond("POST", "/api/health/goals", {"goal": {"id": "g1", "type": "hydration_daily", "targetValue": 2000}})
    api.respond(
        "PUT", "/api/health/goals/g1", {"goal": {"id": "g1", "type": "hydration_daily", "targetValue": 2500}}
    )
    api.respond("DELETE", "/api/health/goals/g1", {"message": "Health goal deleted successfully"})

    await health.create_goal(
        ctx,
        {"type": "hydration_daily", "targetValue": 2000, "startDate": 1, "endDate": 2},
    )
    assert [g.id for g in ctx.queries.get_data(HealthKeys.goals())] == ["g1"]

    await health.update_goal(ctx, "g1", {"targetValue": 2500})
    assert ctx.queries.get_data(HealthKeys.goals())[0].target_value == 2500

    await health.delete_goal(ctx, "g1")
    assert ctx.queries.get_data(HealthKeys.goals()) == []
    assert toasts.successes == ["🎯 Health goal created!", "Health goal updated!", "Health goal deleted"]


def test_goal_dates_must_be_ordered(ctx) -> None:
    with pytest.raises(FormValidationError):
        health.create_goal(ctx, {"type": "mood_average", "targetValue": 7, "startDate": 5, "endDate": 5})
