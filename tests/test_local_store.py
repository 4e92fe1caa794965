# tests/test_local_store.py

from __future__ import annotations

import json

import pytest

from dashboard.state.local_store import FormDrafts, LocalStore

HOUR = 3600


class Clock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture()
def clock() -> Clock:
    return Clock()


@pytest.fixture()
def store(tmp_path, clock) -> LocalStore:
    return LocalStore(tmp_path / "ui-state", max_age_hours=24, clock=clock)


def test_save_and_load_round_trip(store, clock) -> None:
    store.save("theme", {"mode": "dark"})

    blob = json.loads(store.path_for("theme").read_text(encoding="utf-8"))
    assert blob == {"state": {"mode": "dark"}, "timestamp": int(clock.now * 1000)}
    assert store.load("theme") == {"mode": "dark"}


def test_state_older_than_cutoff_is_dropped(store, clock) -> None:
    store.save("sidebar", {"collapsed": True})

    clock.now += 23 * HOUR
    assert store.load("sidebar") == {"collapsed": True}

    clock.now += 2 * HOUR
    assert store.load("sidebar", default="gone") == "gone"
    assert not store.path_for("sidebar").exists()


@pytest.mark.parametrize("content", ["{not json", '["state"]', '{"state": 1}', '{"state": 1, "timestamp": "x"}'])
def test_malformed_blobs_are_removed(store, content) -> None:
    store.directory.mkdir(parents=True)
    store.path_for("theme").write_text(content, encoding="utf-8")

    assert store.load("theme") is None
    assert not store.path_for("theme").exists()


def test_keys_are_sanitised_into_file_names(store) -> None:
    assert store.path_for("../etc/passwd").name == ".._etc_passwd.json"
    assert store.path_for("../etc/passwd").parent == store.directory


def test_clear_removes_every_blob(store) -> None:
    store.save("theme", {"mode": "light"})
    store.save("sidebar", {"collapsed": False})

    store.clear()

    assert list(store.directory.glob("*.json")) == []
    assert store.load("theme") is None


def test_from_settings(settings) -> None:
    store = LocalStore.from_settings(settings)
    assert str(store.directory) == settings.ui_state_dir
    assert store.max_age_ms == 24 * HOUR * 1000


def test_form_drafts(store, clock) -> None:
    drafts = FormDrafts(store)
    drafts.save("create-task", {"title": "Half written"})

    assert drafts.restore("create-task") == {"title": "Half written"}
    assert store.path_for("form-draft-create-task").exists()

    drafts.discard("create-task")
    assert drafts.restore("create-task") is None


def test_expired_draft_is_not_restored(store, clock) -> None:
    drafts = FormDrafts(store)
    drafts.save("log-mood", {"score": 7})

    clock.now += 25 * HOUR

    assert drafts.restore("log-mood") is None
