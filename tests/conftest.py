# tests/conftest.py

from __future__ import annotations

from pathlib import Path

import pytest

from dashboard.context import AppContext, build_context
from dashboard.notify import ToastLog
from dashboard.settings import Settings

from .fakes import FakeApi


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """
    Settings for unit tests: no .env, no query retries, UI state under tmp_path.
    """
    return Settings(
        _env_file=None,
        api_base_url="http://api.test",
        api_token="test-token",
        user_email="tester@example.com",
        query_retries=0,
        ui_state_dir=str(tmp_path / "ui-state"),
    )


@pytest.fixture()
def toasts() -> ToastLog:
    return ToastLog()


@pytest.fixture()
def api() -> FakeApi:
    return FakeApi()


@pytest.fixture()
def ctx(settings: Settings, toasts: ToastLog, api: FakeApi) -> AppContext:
    """
    AppContext wired with the fake API and an in-memory toast log.
    """
    return build_context(settings, notifier=toasts, api=api)
