from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

import httpx

from dashboard.errors import ApiError, ApiNotConfigured
from dashboard.settings import Settings

logger = logging.getLogger(__name__)


class ApiClient:
    """Async JSON client for the Timecraft REST API.

    One call to `request` performs exactly one HTTP request: retries belong to
    the callers that want them (queries), never to mutations.
    """

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def is_enabled(self) -> bool:
        return self.settings.api_enabled

    def api_base_url(self) -> str:
        return self.settings.api_base_url.rstrip("/")

    def _headers(self) -> dict[str, str]:
        token = self.settings.api_token
        if not token:
            raise ApiNotConfigured("API_TOKEN not configured")
        headers = {"Authorization": f"Bearer {token}", "Accept": "application/json"}
        if self.settings.user_email:
            headers["X-User-Email"] = self.settings.user_email
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        base = self.api_base_url()
        if not base:
            raise ApiNotConfigured("API_BASE_URL not configured")
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=base,
                timeout=self.settings.request_timeout,
                transport=self._transport,
            )
        return self._client

    async def request(
        self,
        method: str,
        path: str,
        params: dict | None = None,
        json: Any = None,
        files: dict | None = None,
        data: dict | None = None,
    ) -> Any:
        client = self._get_client()
        headers = self._headers()
        response = await client.request(
            method,
            path,
            params=_clean_params(params),
            json=json,
            files=files,
            data=data,
            headers=headers,
        )
        if not response.is_success:
            try:
                detail = response.json()
            except ValueError:
                detail = response.text
            logger.debug("API %s %s failed with %s", method, path, response.status_code)
            raise ApiError(response.status_code, response.reason_phrase, detail)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def get(self, path: str, params: dict | None = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None, **kwargs) -> Any:
        return await self.request("POST", path, json=json, **kwargs)

    async def put(self, path: str, json: Any = None) -> Any:
        return await self.request("PUT", path, json=json)

    async def patch(self, path: str, json: Any = None) -> Any:
        return await self.request("PATCH", path, json=json)

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)

    @asynccontextmanager
    async def stream(self, method: str, path: str, params: dict | None = None):
        client = self._get_client()
        headers = self._headers()
        headers["Accept"] = "text/event-stream"
        async with client.stream(
            method,
            path,
            params=_clean_params(params),
            headers=headers,
            timeout=httpx.Timeout(self.settings.request_timeout, read=None),
        ) as response:
            if not response.is_success:
                await response.aread()
                raise ApiError(response.status_code, response.reason_phrase, response.text)
            yield response

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


def _clean_params(params: dict | None) -> dict | None:
    if not params:
        return None
    clean = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            clean[key] = "true" if value else "false"
        else:
            clean[key] = value
    return clean or None
