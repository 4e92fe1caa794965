from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from dashboard.constants import OPTIMISTIC_USER_ID, STALE_SECONDS
from dashboard.data.cache_store import make_key
from dashboard.data.mutations import MutationHandle, MutationSpec, PatchPolicy
from dashboard.data.patching import now_ms
from dashboard.schemas import (
    EisenhowerMatrix,
    MatrixPlacement,
    MatrixStats,
    Task,
    TaskForm,
    TaskPage,
    TaskPatch,
    TaskStats,
    parse_model,
    validate_form,
)


class TaskKeys:
    all = ("tasks",)

    @staticmethod
    def lists():
        return ("tasks", "list")

    @staticmethod
    def filtered(filters: Optional[Dict[str, Any]] = None):
        return make_key("tasks", "list", {"filters": filters or {}})

    @staticmethod
    def details():
        return ("tasks", "detail")

    @staticmethod
    def detail(task_id: str):
        return ("tasks", "detail", task_id)

    @staticmethod
    def stats():
        return ("tasks", "stats")

    @staticmethod
    def matrix():
        return ("tasks", "matrix")

    @staticmethod
    def matrix_stats():
        return ("tasks", "matrix", "stats")


@dataclass(frozen=True)
class TaskChange:
    task_id: str
    patch: TaskPatch


@dataclass(frozen=True)
class MatrixChange:
    task_id: str
    placement: MatrixPlacement


def _unwrap(payload, field):
    if isinstance(payload, dict) and field in payload:
        return payload[field]
    return payload


def _task_page(payload) -> TaskPage:
    # Older endpoints answer with a bare list or a {data, pagination} envelope.
    if isinstance(payload, list):
        return TaskPage(tasks=payload, total=len(payload))
    if isinstance(payload, dict) and "tasks" not in payload and isinstance(payload.get("data"), list):
        pagination = payload.get("pagination") or {}
        return TaskPage(tasks=payload["data"], total=pagination.get("total"))
    return parse_model(TaskPage, payload)


# ---- queries ----


async def list_tasks(ctx, filters: Optional[Dict[str, Any]] = None, force: bool = False) -> TaskPage:
    params = dict(filters or {})

    async def fetch():
        return _task_page(await ctx.api.get("/api/tasks", params=params))

    return await ctx.queries.fetch(
        TaskKeys.filtered(params), fetch, STALE_SECONDS["tasks.list"], force=force
    )


async def get_task(ctx, task_id: str, force: bool = False) -> Task:
    async def fetch():
        return parse_model(Task, _unwrap(await ctx.api.get(f"/api/tasks/{task_id}"), "task"))

    return await ctx.queries.fetch(TaskKeys.detail(task_id), fetch, STALE_SECONDS["tasks.detail"], force=force)


async def task_stats(ctx, force: bool = False) -> TaskStats:
    async def fetch():
        return parse_model(TaskStats, _unwrap(await ctx.api.get("/api/tasks/stats"), "stats"))

    return await ctx.queries.fetch(TaskKeys.stats(), fetch, STALE_SECONDS["tasks.stats"], force=force)


async def eisenhower_matrix(ctx, force: bool = False) -> EisenhowerMatrix:
    async def fetch():
        return parse_model(EisenhowerMatrix, _unwrap(await ctx.api.get("/api/tasks/matrix"), "matrix"))

    return await ctx.queries.fetch(TaskKeys.matrix(), fetch, STALE_SECONDS["tasks.matrix"], force=force)


async def matrix_stats(ctx, force: bool = False) -> MatrixStats:
    async def fetch():
        return parse_model(MatrixStats, _unwrap(await ctx.api.get("/api/tasks/matrix/stats"), "stats"))

    return await ctx.queries.fetch(TaskKeys.matrix_stats(), fetch, STALE_SECONDS["tasks.matrix"], force=force)


# ---- mutations ----


def _speculative_task(form: TaskForm, temporary_id: str) -> Task:
    now = now_ms()
    return Task(
        id=temporary_id,
        user_id=OPTIMISTIC_USER_ID,
        title=form.title,
        description=form.description,
        priority=form.priority,
        urgency=form.urgency or 3,
        importance=form.importance or 3,
        eisenhower_quadrant=form.eisenhower_quadrant or "do",
        status=form.status or "pending",
        due_date=form.due_date,
        estimated_duration=form.estimated_duration,
        context_type=form.context_type,
        matrix_notes=form.matrix_notes,
        is_delegated=bool(form.is_delegated),
        delegated_to=form.delegated_to,
        delegation_notes=form.delegation_notes,
        created_at=now,
        updated_at=now,
    )


async def _post_task(api, form: TaskForm) -> Task:
    payload = await api.post("/api/tasks", json=form.to_payload())
    return parse_model(Task, _unwrap(payload, "task"))


async def _put_task(api, change: TaskChange) -> Task:
    payload = await api.put(f"/api/tasks/{change.task_id}", json=change.patch.to_payload())
    return parse_model(Task, _unwrap(payload, "task"))


async def _delete_task(api, task_id: str) -> None:
    await api.delete(f"/api/tasks/{task_id}")


async def _complete_task(api, task_id: str) -> None:
    await api.patch(f"/api/tasks/{task_id}/complete")


async def _patch_matrix(api, change: MatrixChange) -> Task:
    payload = await api.patch(f"/api/tasks/{change.task_id}/matrix", json=change.placement.to_payload())
    return parse_model(Task, _unwrap(payload, "task"))


CREATE_TASK = MutationSpec(
    name="create-task",
    request=_post_task,
    policy=PatchPolicy.CREATE,
    list_prefixes=(TaskKeys.lists(),),
    speculative=_speculative_task,
    invalidates=(TaskKeys.stats(), TaskKeys.matrix()),
    success_message="Task created successfully",
    failure_message="Failed to create task",
)

UPDATE_TASK = MutationSpec(
    name="update-task",
    request=_put_task,
    policy=PatchPolicy.UPDATE,
    list_prefixes=(TaskKeys.lists(),),
    detail_key=lambda change: TaskKeys.detail(change.task_id),
    target_id=lambda change: change.task_id,
    changes=lambda change: {**change.patch.changes(), "updated_at": now_ms()},
    invalidates=(TaskKeys.stats(), TaskKeys.matrix()),
    success_message="Task updated successfully",
    failure_message="Failed to update task",
)

DELETE_TASK = MutationSpec(
    name="delete-task",
    request=_delete_task,
    policy=PatchPolicy.DELETE,
    list_prefixes=(TaskKeys.lists(),),
    target_id=lambda task_id: task_id,
    removes=lambda task_id: (TaskKeys.detail(task_id),),
    invalidates=(TaskKeys.stats(), TaskKeys.matrix()),
    success_message="Task deleted successfully",
    failure_message="Failed to delete task",
)

COMPLETE_TASK = MutationSpec(
    name="complete-task",
    request=_complete_task,
    policy=PatchPolicy.UPDATE,
    list_prefixes=(TaskKeys.lists(),),
    target_id=lambda task_id: task_id,
    changes=lambda task_id: {"status": "done", "completed_at": now_ms()},
    invalidates=(TaskKeys.stats(), TaskKeys.matrix()),
    success_message="🎉 Task completed!",
    failure_message="Failed to complete task",
)

UPDATE_TASK_MATRIX = MutationSpec(
    name="update-task-matrix",
    request=_patch_matrix,
    invalidates=(TaskKeys.matrix(), TaskKeys.lists()),
    success_message="Task priority updated",
    failure_message="Failed to update task priority",
)


def create_task(ctx, form) -> MutationHandle:
    return ctx.mutations.execute(CREATE_TASK, validate_form(TaskForm, form))


def update_task(ctx, task_id: str, patch) -> MutationHandle:
    return ctx.mutations.execute(UPDATE_TASK, TaskChange(task_id, validate_form(TaskPatch, patch)))


def delete_task(ctx, task_id: str) -> MutationHandle:
    return ctx.mutations.execute(DELETE_TASK, task_id)


def complete_task(ctx, task_id: str) -> MutationHandle:
    return ctx.mutations.execute(COMPLETE_TASK, task_id)


def update_task_matrix(ctx, task_id: str, urgency: int, importance: int) -> MutationHandle:
    placement = validate_form(MatrixPlacement, {"urgency": urgency, "importance": importance})
    return ctx.mutations.execute(UPDATE_TASK_MATRIX, MatrixChange(task_id, placement))
