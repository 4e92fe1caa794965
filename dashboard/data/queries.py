from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from dashboard.data.cache_store import CacheStore, QueryKey, key_matches
from dashboard.errors import ApiError
from dashboard.settings import Settings

logger = logging.getLogger(__name__)

Fetcher = Callable[[], Awaitable[Any]]


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, ApiError):
        return not exc.is_client_error
    return isinstance(exc, httpx.TransportError)


class QueryClient:
    """Read side of the cache: deduplicated fetches, staleness and refetch."""

    def __init__(self, store: CacheStore, settings: Settings):
        self.store = store
        self.settings = settings
        self._fetchers: dict[QueryKey, tuple[Fetcher, float]] = {}
        self._inflight: dict[QueryKey, asyncio.Task] = {}

    def register(self, key: QueryKey, fetcher: Fetcher, stale_time: float | None = None) -> None:
        if stale_time is None:
            stale_time = self.settings.query_stale_seconds
        self._fetchers[key] = (fetcher, stale_time)

    def is_fetching(self, key: QueryKey) -> bool:
        task = self._inflight.get(key)
        return task is not None and not task.done()

    def get_data(self, key: QueryKey, default: Any = None) -> Any:
        return self.store.peek(key, default)

    def set_data(self, key: QueryKey, value: Any) -> None:
        self.store.write(key, value)

    def read(self, key: QueryKey) -> Any:
        """Synchronous read; schedules a background fetch when absent or stale."""
        entry = self.store.read(key)
        registered = self._fetchers.get(key)
        if registered is not None:
            _, stale_time = registered
            if entry is None or entry.is_expired(stale_time):
                self._schedule(key)
        return None if entry is None else entry.data

    async def fetch(
        self,
        key: QueryKey,
        fetcher: Fetcher | None = None,
        stale_time: float | None = None,
        force: bool = False,
    ) -> Any:
        if fetcher is not None:
            self.register(key, fetcher, stale_time)
        if key not in self._fetchers:
            raise KeyError(f"No fetcher registered for {key}")
        _, effective_stale = self._fetchers[key]
        entry = self.store.read(key)
        if not force and entry is not None and not entry.is_expired(effective_stale):
            return entry.data
        task = self._inflight.get(key)
        if task is None or task.done():
            task = self._start(key)
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                return self.store.peek(key)
            raise

    def cancel(self, prefix: QueryKey) -> list[QueryKey]:
        cancelled = []
        for key, task in list(self._inflight.items()):
            if not key_matches(key, prefix):
                continue
            self._inflight.pop(key, None)
            if not task.done():
                task.cancel()
                cancelled.append(key)
        if cancelled:
            logger.debug("Cancelled %s in-flight fetches under %s", len(cancelled), prefix)
        return cancelled

    def invalidate(self, prefix: QueryKey, refetch: bool = True) -> list[QueryKey]:
        changed = self.store.invalidate(prefix)
        if refetch:
            for key in self.store.keys(prefix):
                if key in self._fetchers and not self.is_fetching(key):
                    self._schedule(key)
        return changed

    def remove(self, prefix: QueryKey) -> list[QueryKey]:
        self.cancel(prefix)
        for key in [k for k in self._fetchers if key_matches(k, prefix)]:
            del self._fetchers[key]
        return self.store.remove(prefix)

    def collect_garbage(self) -> list[QueryKey]:
        pruned = self.store.prune(self.settings.query_gc_seconds, keep=list(self._inflight))
        for key in pruned:
            self._fetchers.pop(key, None)
        return pruned

    async def wait_idle(self) -> None:
        while True:
            pending = [task for task in self._inflight.values() if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    def _schedule(self, key: QueryKey) -> None:
        if self.is_fetching(key):
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop; refetch of %s deferred to next read", key)
            return
        self._start(key)

    def _start(self, key: QueryKey) -> asyncio.Task:
        fetcher, _ = self._fetchers[key]
        task = asyncio.get_running_loop().create_task(self._run(key, fetcher))
        self._inflight[key] = task
        task.add_done_callback(lambda done, key=key: self._finished(key, done))
        return task

    def _finished(self, key: QueryKey, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Fetch failed for %s: %s", key, exc)

    async def _run(self, key: QueryKey, fetcher: Fetcher) -> Any:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(max(0, self.settings.query_retries) + 1),
            wait=wait_exponential(multiplier=1, max=self.settings.query_retry_max_wait),
            retry=retry_if_exception(_is_transient),
            before_sleep=before_sleep_log(logger, logging.INFO),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    data = await fetcher()
        except Exception as exc:
            self.store.record_error(key, str(exc))
            raise
        self.store.write(key, data, fetched=True)
        return data
