from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from dashboard.data.api_client import ApiClient
from dashboard.data.cache_store import CacheStore
from dashboard.data.mutations import MutationExecutor
from dashboard.data.queries import QueryClient
from dashboard.notify import Notifier, StreamlitToasts
from dashboard.settings import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Process-wide handles passed explicitly to every query and mutation."""

    settings: Settings
    api: Any
    store: CacheStore
    queries: QueryClient
    mutations: MutationExecutor
    notifier: Notifier

    async def aclose(self) -> None:
        self.queries.cancel(())
        close = getattr(self.api, "aclose", None)
        if close is not None:
            await close()


def build_context(
    settings: Settings | None = None,
    notifier: Notifier | None = None,
    api: Any = None,
) -> AppContext:
    settings = settings or get_settings()
    if api is None:
        api = ApiClient(settings)
    notifier = notifier or StreamlitToasts()
    store = CacheStore()
    queries = QueryClient(store, settings)
    mutations = MutationExecutor(queries, api, notifier)
    if not settings.api_enabled:
        logger.warning("API_BASE_URL or API_TOKEN missing; requests will fail until configured")
    return AppContext(
        settings=settings,
        api=api,
        store=store,
        queries=queries,
        mutations=mutations,
        notifier=notifier,
    )
