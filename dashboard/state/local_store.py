from __future__ import annotations

import json
import logging
import os
import re
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^A-Za-z0-9_.-]")


class LocalStore:
    """Small JSON preference blobs on disk, dropped once older than ``max_age_hours``.

    Each file holds ``{"state": ..., "timestamp": <epoch ms>}``.
    """

    def __init__(self, directory, max_age_hours: float = 24.0, clock: Callable[[], float] = time.time):
        self.directory = Path(directory)
        self.max_age_ms = int(max_age_hours * 3600 * 1000)
        self._clock = clock

    @classmethod
    def from_settings(cls, settings) -> "LocalStore":
        return cls(settings.ui_state_dir, settings.ui_state_max_age_hours)

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def path_for(self, key: str) -> Path:
        return self.directory / f"{_UNSAFE.sub('_', key)}.json"

    def load(self, key: str, default: Any = None) -> Any:
        path = self.path_for(key)
        if not path.exists():
            return default
        try:
            blob = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Dropping unreadable UI state %s: %s", key, exc)
            self.remove(key)
            return default
        if not isinstance(blob, dict) or "state" not in blob or not isinstance(blob.get("timestamp"), (int, float)):
            logger.warning("Dropping malformed UI state %s", key)
            self.remove(key)
            return default
        if self._now_ms() - blob["timestamp"] > self.max_age_ms:
            logger.debug("UI state %s expired", key)
            self.remove(key)
            return default
        return blob["state"]

    def save(self, key: str, state: Any) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.path_for(key)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps({"state": state, "timestamp": self._now_ms()}, default=str), encoding="utf-8")
        os.replace(tmp, path)

    def remove(self, key: str) -> None:
        try:
            self.path_for(key).unlink()
        except FileNotFoundError:
            pass

    def clear(self) -> None:
        if not self.directory.exists():
            return
        for path in self.directory.glob("*.json"):
            path.unlink()


class FormDrafts:
    """Unsaved form values, restored when the same form is opened again."""

    def __init__(self, store: LocalStore, prefix: str = "form-draft"):
        self.store = store
        self.prefix = prefix

    def _key(self, form_name: str) -> str:
        return f"{self.prefix}-{form_name}"

    def save(self, form_name: str, values: Dict[str, Any]) -> None:
        self.store.save(self._key(form_name), dict(values))

    def restore(self, form_name: str) -> Optional[Dict[str, Any]]:
        values = self.store.load(self._key(form_name))
        return values if isinstance(values, dict) else None

    def discard(self, form_name: str) -> None:
        self.store.remove(self._key(form_name))
