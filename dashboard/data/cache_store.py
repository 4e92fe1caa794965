from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Tuple

logger = logging.getLogger(__name__)

QueryKey = Tuple[Any, ...]
Listener = Callable[[QueryKey, "CacheEntry | None"], None]


def _freeze_part(part: Any) -> Any:
    if isinstance(part, (dict, list)):
        return json.dumps(part, sort_keys=True, separators=(",", ":"), default=str)
    return part


def make_key(*parts: Any) -> QueryKey:
    """Build a hashable query identity: resource kind first, filters serialized."""
    return tuple(_freeze_part(part) for part in parts)


def key_matches(key: QueryKey, prefix: QueryKey) -> bool:
    return key[: len(prefix)] == prefix


@dataclass
class CacheEntry:
    key: QueryKey
    data: Any = None
    is_stale: bool = False
    last_fetched_at: float | None = None
    updated_at: float = field(default_factory=time.time)
    last_accessed_at: float = field(default_factory=time.time)
    error: str | None = None

    def is_expired(self, stale_time: float, now: float | None = None) -> bool:
        if self.is_stale or self.last_fetched_at is None:
            return True
        now = time.time() if now is None else now
        return now - self.last_fetched_at >= stale_time


class CacheStore:
    """In-memory map from query identity to last-known server data.

    Writes are synchronous and unconditional; the store never fetches.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._entries: dict[QueryKey, CacheEntry] = {}
        self._listeners: list[Listener] = []
        self._clock = clock

    def __contains__(self, key: QueryKey) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def read(self, key: QueryKey) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry is not None:
            entry.last_accessed_at = self._clock()
        return entry

    def peek(self, key: QueryKey, default: Any = None) -> Any:
        entry = self._entries.get(key)
        return default if entry is None else entry.data

    def write(self, key: QueryKey, value: Any, fetched: bool = False) -> CacheEntry:
        now = self._clock()
        entry = self._entries.get(key)
        if entry is None:
            entry = CacheEntry(key=key, updated_at=now, last_accessed_at=now)
            self._entries[key] = entry
        entry.data = value
        entry.updated_at = now
        if fetched:
            entry.last_fetched_at = now
            entry.is_stale = False
            entry.error = None
        self._notify(key, entry)
        return entry

    def record_error(self, key: QueryKey, message: str) -> None:
        entry = self._entries.get(key)
        if entry is not None:
            entry.error = message

    def keys(self, prefix: QueryKey = ()) -> list[QueryKey]:
        return [key for key in self._entries if key_matches(key, prefix)]

    def invalidate(self, key_or_prefix: QueryKey) -> list[QueryKey]:
        """Mark matching entries stale; returns only keys that were fresh before."""
        changed = []
        for key in self.keys(key_or_prefix):
            entry = self._entries[key]
            if entry.is_stale:
                continue
            entry.is_stale = True
            changed.append(key)
            self._notify(key, entry)
        if changed:
            logger.debug("Invalidated %s cache entries under %s", len(changed), key_or_prefix)
        return changed

    def remove(self, key_or_prefix: QueryKey) -> list[QueryKey]:
        removed = self.keys(key_or_prefix)
        for key in removed:
            del self._entries[key]
            self._notify(key, None)
        return removed

    def prune(self, older_than: float, keep: Iterable[QueryKey] = ()) -> list[QueryKey]:
        cutoff = self._clock() - older_than
        keep_set = set(keep)
        stale_keys = [
            key
            for key, entry in self._entries.items()
            if entry.last_accessed_at < cutoff and key not in keep_set
        ]
        for key in stale_keys:
            del self._entries[key]
            self._notify(key, None)
        return stale_keys

    def clear(self) -> None:
        for key in list(self._entries):
            del self._entries[key]
            self._notify(key, None)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, key: QueryKey, entry: CacheEntry | None) -> None:
        for listener in list(self._listeners):
            try:
                listener(key, entry)
            except Exception:
                logger.exception("Cache listener failed for %s", key)
