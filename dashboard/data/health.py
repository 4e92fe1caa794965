from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from dashboard.constants import OPTIMISTIC_USER_ID, STALE_SECONDS
from dashboard.data.cache_store import make_key
from dashboard.data.mutations import MutationHandle, MutationSpec, PatchPolicy
from dashboard.data.patching import now_ms
from dashboard.schemas import (
    ExerciseForm,
    HealthGoal,
    HealthGoalForm,
    HealthGoalPatch,
    HealthLog,
    HealthLogPage,
    HydrationForm,
    MoodForm,
    NutritionForm,
    SleepForm,
    WeightForm,
    parse_model,
    validate_form,
)


class HealthKeys:
    all = ("health",)

    @staticmethod
    def logs():
        return ("health", "logs")

    @staticmethod
    def logs_list(filters: Optional[Dict[str, Any]] = None):
        return make_key("health", "logs", {"filters": filters or {}})

    @staticmethod
    def summary(days: Optional[int] = None):
        if days is None:
            return ("health", "summary")
        return ("health", "summary", days)

    @staticmethod
    def insights(days: Optional[int] = None):
        if days is None:
            return ("health", "insights")
        return ("health", "insights", days)

    @staticmethod
    def goals():
        return ("health", "goals")

    @staticmethod
    def goal(goal_id: str):
        return ("health", "goals", goal_id)

    @staticmethod
    def nutrition_analysis(date: Optional[int] = None):
        if date is None:
            return ("health", "nutrition-analysis")
        return ("health", "nutrition-analysis", date)


@dataclass(frozen=True)
class GoalChange:
    goal_id: str
    patch: HealthGoalPatch


def _unwrap(payload, *fields):
    if isinstance(payload, dict):
        for field in fields:
            if field in payload:
                return payload[field]
    return payload


def _log_page(payload) -> HealthLogPage:
    if isinstance(payload, list):
        return HealthLogPage(data=payload)
    return parse_model(HealthLogPage, payload)


# ---- queries ----


async def list_logs(ctx, filters: Optional[Dict[str, Any]] = None, force: bool = False) -> HealthLogPage:
    params = dict(filters or {})

    async def fetch():
        return _log_page(await ctx.api.get("/api/health/logs", params=params))

    return await ctx.queries.fetch(HealthKeys.logs_list(params), fetch, STALE_SECONDS["health.logs"], force=force)


async def health_summary(ctx, days: Optional[int] = None, force: bool = False) -> Dict[str, Any]:
    async def fetch():
        return _unwrap(await ctx.api.get("/api/health/summary", params={"days": days}), "summary")

    return await ctx.queries.fetch(HealthKeys.summary(days), fetch, STALE_SECONDS["health.summary"], force=force)


async def health_insights(ctx, days: Optional[int] = None, force: bool = False) -> Dict[str, Any]:
    async def fetch():
        return _unwrap(await ctx.api.get("/api/health/insights", params={"days": days}), "insights")

    return await ctx.queries.fetch(HealthKeys.insights(days), fetch, STALE_SECONDS["health.insights"], force=force)


async def health_goals(ctx, force: bool = False) -> List[HealthGoal]:
    async def fetch():
        goals = _unwrap(await ctx.api.get("/api/health/goals"), "goals") or []
        return [parse_model(HealthGoal, goal) for goal in goals]

    return await ctx.queries.fetch(HealthKeys.goals(), fetch, STALE_SECONDS["health.goals"], force=force)


async def nutrition_analysis(ctx, date: Optional[int] = None, force: bool = False) -> Dict[str, Any]:
    async def fetch():
        return _unwrap(await ctx.api.get("/api/health/nutrition/analysis", params={"date": date}), "analysis")

    return await ctx.queries.fetch(
        HealthKeys.nutrition_analysis(date), fetch, STALE_SECONDS["health.nutrition"], force=force
    )


# ---- log mutations ----


def _log_spec(kind: str, path: str, success: str, failure: str) -> MutationSpec:
    async def request(api, form):
        payload = await api.post(path, json=form.to_payload())
        return parse_model(HealthLog, _unwrap(payload, "log", "healthLog"))

    def speculative(form, temporary_id):
        now = now_ms()
        body = form.to_payload()
        return HealthLog(
            id=temporary_id,
            user_id=OPTIMISTIC_USER_ID,
            type=kind,
            payload=body,
            value=body.get("value"),
            unit=body.get("unit"),
            notes=body.get("notes"),
            recorded_at=now,
            source="manual",
            created_at=now,
        )

    return MutationSpec(
        name=f"log-{kind}",
        request=request,
        policy=PatchPolicy.CREATE,
        list_prefixes=(HealthKeys.logs(),),
        speculative=speculative,
        invalidates=(HealthKeys.summary(), HealthKeys.insights()),
        success_message=success,
        failure_message=failure,
    )


LOG_EXERCISE = _log_spec(
    "exercise", "/api/health/exercise", "💪 Exercise logged successfully!", "Failed to log exercise"
)
LOG_NUTRITION = _log_spec(
    "nutrition", "/api/health/nutrition", "🍎 Nutrition logged successfully!", "Failed to log nutrition"
)
LOG_MOOD = _log_spec("mood", "/api/health/mood", "😊 Mood logged successfully!", "Failed to log mood")
LOG_HYDRATION = _log_spec(
    "hydration", "/api/health/hydration", "💧 Hydration logged successfully!", "Failed to log hydration"
)
LOG_SLEEP = _log_spec("sleep", "/api/health/manual-entry", "😴 Sleep logged successfully!", "Failed to log sleep")
LOG_WEIGHT = _log_spec(
    "weight", "/api/health/manual-entry", "⚖️ Weight logged successfully!", "Failed to log weight"
)


def log_exercise(ctx, form) -> MutationHandle:
    return ctx.mutations.execute(LOG_EXERCISE, validate_form(ExerciseForm, form))


def log_nutrition(ctx, form) -> MutationHandle:
    return ctx.mutations.execute(LOG_NUTRITION, validate_form(NutritionForm, form))


def log_mood(ctx, form) -> MutationHandle:
    return ctx.mutations.execute(LOG_MOOD, validate_form(MoodForm, form))


def log_hydration(ctx, form) -> MutationHandle:
    return ctx.mutations.execute(LOG_HYDRATION, validate_form(HydrationForm, form))


def log_sleep(ctx, form) -> MutationHandle:
    return ctx.mutations.execute(LOG_SLEEP, validate_form(SleepForm, form))


def log_weight(ctx, form) -> MutationHandle:
    return ctx.mutations.execute(LOG_WEIGHT, validate_form(WeightForm, form))


# ---- goal mutations ----


async def _post_goal(api, form: HealthGoalForm) -> HealthGoal:
    return parse_model(HealthGoal, _unwrap(await api.post("/api/health/goals", json=form.to_payload()), "goal"))


async def _put_goal(api, change: GoalChange) -> HealthGoal:
    payload = await api.put(f"/api/health/goals/{change.goal_id}", json=change.patch.to_payload())
    return parse_model(HealthGoal, _unwrap(payload, "goal"))


async def _delete_goal(api, goal_id: str) -> None:
    await api.delete(f"/api/health/goals/{goal_id}")


def _speculative_goal(form: HealthGoalForm, temporary_id: str) -> HealthGoal:
    return HealthGoal(
        id=temporary_id,
        user_id=OPTIMISTIC_USER_ID,
        type=form.type,
        target_value=form.target_value,
        target_period=form.target_period,
        start_date=form.start_date,
        end_date=form.end_date,
        description=form.description,
    )


CREATE_GOAL = MutationSpec(
    name="create-goal",
    request=_post_goal,
    policy=PatchPolicy.CREATE,
    list_prefixes=(HealthKeys.goals(),),
    speculative=_speculative_goal,
    success_message="🎯 Health goal created!",
    failure_message="Failed to create health goal",
)

UPDATE_GOAL = MutationSpec(
    name="update-goal",
    request=_put_goal,
    policy=PatchPolicy.UPDATE,
    list_prefixes=(HealthKeys.goals(),),
    target_id=lambda change: change.goal_id,
    changes=lambda change: change.patch.changes(),
    success_message="Health goal updated!",
    failure_message="Failed to update health goal",
)

DELETE_GOAL = MutationSpec(
    name="delete-goal",
    request=_delete_goal,
    policy=PatchPolicy.DELETE,
    list_prefixes=(HealthKeys.goals(),),
    target_id=lambda goal_id: goal_id,
    success_message="Health goal deleted",
    failure_message="Failed to delete health goal",
)


def create_goal(ctx, form) -> MutationHandle:
    return ctx.mutations.execute(CREATE_GOAL, validate_form(HealthGoalForm, form))


def update_goal(ctx, goal_id: str, patch) -> MutationHandle:
    return ctx.mutations.execute(UPDATE_GOAL, GoalChange(goal_id, validate_form(HealthGoalPatch, patch)))


def delete_goal(ctx, goal_id: str) -> MutationHandle:
    return ctx.mutations.execute(DELETE_GOAL, goal_id)
