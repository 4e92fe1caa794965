# tests/fakes.py

from __future__ import annotations

import asyncio
from collections import defaultdict, deque
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

import httpx


@dataclass(slots=True)
class Call:
    method: str
    path: str
    params: dict | None = None
    json: Any = None
    files: dict | None = None
    data: dict | None = None


class FakeApi:
    """
    In-memory stand-in for ApiClient.

    - `respond()` queues one answer (a value or an exception) per call
    - `hold()` queues a future, so the test decides when the call settles
    - `always()` sets the answer used once the queue for a route is empty
    """

    def __init__(self) -> None:
        self.calls: list[Call] = []
        self._queued: dict[tuple[str, str], deque] = defaultdict(deque)
        self._static: dict[tuple[str, str], Any] = {}

    def respond(self, method: str, path: str, outcome: Any) -> None:
        self._queued[(method, path)].append(outcome)

    def always(self, method: str, path: str, outcome: Any) -> None:
        self._static[(method, path)] = outcome

    def hold(self, method: str, path: str) -> asyncio.Future:
        future = asyncio.get_running_loop().create_future()
        self._queued[(method, path)].append(future)
        return future

    def calls_to(self, method: str, path: str) -> list[Call]:
        return [c for c in self.calls if c.method == method and c.path == path]

    async def request(self, method, path, params=None, json=None, files=None, data=None):
        self.calls.append(Call(method, path, params, json, files, data))
        queue = self._queued.get((method, path))
        if queue:
            outcome = queue.popleft()
        elif (method, path) in self._static:
            outcome = self._static[(method, path)]
        else:
            raise AssertionError(f"unexpected call {method} {path}")
        if isinstance(outcome, asyncio.Future):
            outcome = await outcome
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def get(self, path, params=None):
        return await self.request("GET", path, params=params)

    async def post(self, path, json=None, **kwargs):
        return await self.request("POST", path, json=json, **kwargs)

    async def put(self, path, json=None):
        return await self.request("PUT", path, json=json)

    async def patch(self, path, json=None):
        return await self.request("PATCH", path, json=json)

    async def delete(self, path):
        return await self.request("DELETE", path)


@dataclass
class FakeStreamResponse:
    lines: list[str]

    async def aiter_lines(self):
        for line in self.lines:
            yield line


class FakeStreamingApi(FakeApi):
    """
    FakeApi whose `stream()` replays scripted connections.

    Each entry in `connections` is either a list of SSE lines or an exception
    raised when that connection is attempted.
    """

    def __init__(self, connections: list[Any] | None = None) -> None:
        super().__init__()
        self.connections = list(connections or [])
        self.opened = 0

    @asynccontextmanager
    async def stream(self, method, path, params=None):
        self.opened += 1
        self.calls.append(Call(method, path, params))
        if not self.connections:
            raise httpx.ConnectError("no scripted connection")
        script = self.connections.pop(0)
        if isinstance(script, BaseException):
            raise script
        yield FakeStreamResponse(script)
