"""Server-sent push messages: parsing, cache invalidation and reconnects."""

from __future__ import annotations

import asyncio
import json
import logging
from collections import defaultdict
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

import httpx
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from dashboard.constants import (
    SSE_CONNECTED_MESSAGE,
    SSE_DISCONNECTED_MESSAGE,
    SSE_INVALIDATIONS,
    SSE_NOTIFICATION_TYPES,
    SSE_RECONNECT_BASE_SECONDS,
    SSE_RECONNECT_MAX_SECONDS,
    SSE_SILENT_TYPES,
    SSE_TOASTS,
    URGENT_PRIORITIES,
)
from dashboard.errors import ApiError, ApiNotConfigured
from dashboard.schemas import SSEMessage

logger = logging.getLogger(__name__)

Handler = Callable[[SSEMessage], None]


class _Blank(dict):
    def __missing__(self, key):
        return ""


def _build_message(event_type: Optional[str], data_lines: List[str]) -> Optional[SSEMessage]:
    if not data_lines:
        return None
    raw = "\n".join(data_lines)
    try:
        body: Any = json.loads(raw)
    except ValueError:
        body = raw
    try:
        if event_type and event_type != "message":
            timestamp = body.get("timestamp", 0) if isinstance(body, dict) else 0
            return SSEMessage(type=event_type, data=body, timestamp=timestamp or 0)
        if isinstance(body, dict) and isinstance(body.get("type"), str):
            return SSEMessage.model_validate(body)
    except ValidationError:
        pass
    logger.warning("Failed to parse SSE message: %s", raw[:200])
    return None


async def parse_sse_lines(lines: AsyncIterator[str]) -> AsyncIterator[SSEMessage]:
    """Group ``event:``/``data:`` lines into messages; a blank line ends one."""
    event_type: Optional[str] = None
    data_lines: List[str] = []
    async for raw in lines:
        line = raw.rstrip("\r\n")
        if not line:
            message = _build_message(event_type, data_lines)
            event_type, data_lines = None, []
            if message is not None:
                yield message
            continue
        if line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "event":
            event_type = value
        elif field == "data":
            data_lines.append(value)
    message = _build_message(event_type, data_lines)
    if message is not None:
        yield message


def invalidation_prefixes(message_type: str) -> List[tuple]:
    prefixes: List[tuple] = []
    for pattern, keys in SSE_INVALIDATIONS.items():
        if pattern.endswith("."):
            matched = message_type.startswith(pattern)
        else:
            matched = message_type == pattern
        if matched:
            prefixes.extend(key for key in keys if key not in prefixes)
    return prefixes


def toast_for(message: SSEMessage) -> Optional[tuple]:
    """(level, text) for a push message, or None when it is silent."""
    if message.type in SSE_SILENT_TYPES:
        return None
    data = message.data if isinstance(message.data, dict) else {}
    if message.type in SSE_NOTIFICATION_TYPES:
        text = data.get("message")
        if not text:
            return None
        level = "error" if data.get("priority") in URGENT_PRIORITIES else "success"
        return level, text
    entry = SSE_TOASTS.get(message.type)
    if entry is None:
        return None
    level, template = entry
    return level, template.format_map(_Blank(data))


class RealtimeListener:
    def __init__(self, ctx, sleep: Callable[[float], Any] = asyncio.sleep):
        self.ctx = ctx
        self.settings = ctx.settings
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)
        self._sleep = sleep
        self._stopped = False
        self.connected = False
        self._gave_up = False

    def on(self, message_type: str, handler: Handler) -> Callable[[], None]:
        """Subscribe to one message type, or ``"*"`` for every message."""
        self._handlers[message_type].append(handler)

        def _unsubscribe():
            if handler in self._handlers[message_type]:
                self._handlers[message_type].remove(handler)

        return _unsubscribe

    def dispatch(self, message: SSEMessage) -> None:
        if message.type == "heartbeat":
            return
        for prefix in invalidation_prefixes(message.type):
            self.ctx.queries.invalidate(prefix)
        toast = toast_for(message)
        if toast is not None:
            level, text = toast
            if level == "error":
                self.ctx.notifier.error(text)
            else:
                self.ctx.notifier.success(text)
        for handler in list(self._handlers.get(message.type, ())) + list(self._handlers.get("*", ())):
            try:
                handler(message)
            except Exception:
                logger.exception("SSE handler failed for %s", message.type)

    async def listen_once(self) -> None:
        params = {"token": self.settings.api_token}
        try:
            async with self.ctx.api.stream("GET", self.settings.sse_path, params=params) as response:
                self.connected = True
                logger.info("SSE connected")
                self.ctx.notifier.success(SSE_CONNECTED_MESSAGE)
                async for message in parse_sse_lines(response.aiter_lines()):
                    self.dispatch(message)
                    if self._stopped:
                        break
        finally:
            self.connected = False

    def _reconnect_policy(self) -> AsyncRetrying:
        # 2, 4, 8 ... seconds, capped; a fresh policy per connection cycle
        return AsyncRetrying(
            stop=stop_after_attempt(max(self.settings.sse_max_reconnect_attempts, 0) + 1),
            wait=wait_exponential(multiplier=2 * SSE_RECONNECT_BASE_SECONDS, max=SSE_RECONNECT_MAX_SECONDS),
            retry=retry_if_exception_type((httpx.HTTPError, ApiError)),
            before_sleep=before_sleep_log(logger, logging.INFO),
            retry_error_callback=self._give_up,
            sleep=self._sleep,
        )

    def _give_up(self, retry_state) -> None:
        logger.error("Max SSE reconnection attempts reached: %s", retry_state.outcome.exception())
        self._gave_up = True
        self.ctx.notifier.error(SSE_DISCONNECTED_MESSAGE)

    async def run(self) -> None:
        if not self.settings.api_token:
            logger.warning("Cannot connect to SSE without authentication token")
            return
        self._gave_up = False
        while not self._stopped:
            try:
                async for attempt in self._reconnect_policy():
                    with attempt:
                        if not self._stopped:
                            await self.listen_once()
            except ApiNotConfigured as exc:
                logger.warning("SSE disabled: %s", exc)
                return
            if self._stopped or self._gave_up:
                return
            logger.info("SSE stream closed by server; reconnecting")
            await self._sleep(SSE_RECONNECT_BASE_SECONDS)

    def stop(self) -> None:
        self._stopped = True
