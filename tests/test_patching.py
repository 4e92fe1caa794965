# tests/test_patching.py

from __future__ import annotations

from dashboard.data import patching
from dashboard.schemas import HealthLogPage, Task, TaskPage


def _task(task_id: str, **extra) -> Task:
    return Task(id=task_id, title=f"task {task_id}", **extra)


def test_temporary_ids_are_recognised() -> None:
    temp = patching.new_temporary_id()
    assert patching.is_temporary_id(temp)
    assert not patching.is_temporary_id("srv-1")
    assert not patching.is_temporary_id(None)


def test_insert_head_on_plain_list_does_not_mutate_input() -> None:
    original = [{"id": "a"}]
    patched = patching.insert_head(original, {"id": "temp-1"})

    assert [item["id"] for item in patched] == ["temp-1", "a"]
    assert original == [{"id": "a"}]


def test_insert_head_on_envelope_model() -> None:
    page = TaskPage(tasks=[_task("a")], total=1)
    patched = patching.insert_head(page, _task("temp-1"))

    assert [t.id for t in patched.tasks] == ["temp-1", "a"]
    assert [t.id for t in page.tasks] == ["a"]


def test_insert_head_on_data_envelope_dict() -> None:
    patched = patching.insert_head({"data": [], "pagination": {"total": 0}}, {"id": "x"})
    assert patched == {"data": [{"id": "x"}], "pagination": {"total": 0}}


def test_unknown_container_is_left_alone() -> None:
    assert patching.insert_head({"summary": 1}, {"id": "x"}) == {"summary": 1}
    assert patching.remove_by_id(None, "x") is None


def test_merge_by_id_updates_only_the_match() -> None:
    items = [{"id": "a", "priority": 2}, {"id": "b", "priority": 2}]
    patched = patching.merge_by_id(items, "a", {"priority": 1})
    assert patched == [{"id": "a", "priority": 1}, {"id": "b", "priority": 2}]


def test_merge_by_id_on_models() -> None:
    page = TaskPage(tasks=[_task("a", priority=2)])
    patched = patching.merge_by_id(page, "a", {"priority": 4})
    assert patched.tasks[0].priority == 4
    assert page.tasks[0].priority == 2


def test_merge_all_touches_every_item() -> None:
    patched = patching.merge_all([{"id": "a"}, {"id": "b"}], {"read": True})
    assert all(item["read"] for item in patched)


def test_remove_by_id() -> None:
    page = HealthLogPage(data=[{"id": "a", "type": "mood"}, {"id": "b", "type": "mood"}])
    patched = patching.remove_by_id(page, "a")
    assert [log.id for log in patched.data] == ["b"]


def test_commit_created_swaps_temporary_for_server_record() -> None:
    container = [{"id": "temp-1", "title": "Buy milk"}, {"id": "a"}]
    patched = patching.commit_created(container, "temp-1", {"id": "srv-1", "title": "Buy milk"})
    assert [item["id"] for item in patched] == ["srv-1", "a"]


def test_commit_created_keeps_a_single_copy_of_the_server_id() -> None:
    # A refetch can land the server record before the create response does.
    container = [{"id": "temp-1"}, {"id": "srv-1"}, {"id": "a"}]
    patched = patching.commit_created(container, "temp-1", {"id": "srv-1"})
    assert [item["id"] for item in patched] == ["srv-1", "a"]
