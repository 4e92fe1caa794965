"""List and detail patch policies applied to cached containers.

A cached container is either a plain list of records or an envelope (dict or
pydantic model) holding the list under one of LIST_FIELDS. Every function is
pure: the input container is never mutated, a new one is returned.
"""

from __future__ import annotations

import time
from typing import Any, Callable, List, Optional
from uuid import uuid4

from pydantic import BaseModel

TEMP_ID_PREFIX = "temp-"
LIST_FIELDS = ("tasks", "data", "items", "logs", "notes", "challenges", "connections", "notifications")


def now_ms() -> int:
    return int(time.time() * 1000)


def new_temporary_id() -> str:
    return f"{TEMP_ID_PREFIX}{uuid4().hex}"


def is_temporary_id(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(TEMP_ID_PREFIX)


def identity(item: Any) -> Any:
    if isinstance(item, dict):
        return item.get("id")
    return getattr(item, "id", None)


def _list_field(container: Any) -> Optional[str]:
    for name in LIST_FIELDS:
        if isinstance(container, dict):
            value = container.get(name)
        else:
            value = getattr(container, name, None)
        if isinstance(value, list):
            return name
    return None


def get_items(container: Any) -> Optional[List[Any]]:
    if isinstance(container, list):
        return container
    if isinstance(container, (dict, BaseModel)):
        field = _list_field(container)
        if field is None:
            return None
        if isinstance(container, dict):
            return container[field]
        return getattr(container, field)
    return None


def with_items(container: Any, items: List[Any]) -> Any:
    if isinstance(container, list):
        return items
    field = _list_field(container)
    if field is None:
        return container
    if isinstance(container, dict):
        return {**container, field: items}
    return container.model_copy(update={field: items})


def merge(item: Any, changes: dict) -> Any:
    if isinstance(item, dict):
        return {**item, **changes}
    if isinstance(item, BaseModel):
        return item.model_copy(update=changes)
    return item


def _map_items(container: Any, fn: Callable[[List[Any]], List[Any]]) -> Any:
    items = get_items(container)
    if items is None:
        return container
    return with_items(container, fn(list(items)))


def contains_id(container: Any, item_id: Any) -> bool:
    items = get_items(container) or []
    return any(identity(item) == item_id for item in items)


def insert_head(container: Any, record: Any) -> Any:
    return _map_items(container, lambda items: [record, *items])


def replace_by_id(container: Any, item_id: Any, record: Any) -> Any:
    return _map_items(
        container,
        lambda items: [record if identity(item) == item_id else item for item in items],
    )


def merge_by_id(container: Any, item_id: Any, changes: dict) -> Any:
    return _map_items(
        container,
        lambda items: [merge(item, changes) if identity(item) == item_id else item for item in items],
    )


def merge_all(container: Any, changes: dict) -> Any:
    return _map_items(container, lambda items: [merge(item, changes) for item in items])


def remove_by_id(container: Any, item_id: Any) -> Any:
    return _map_items(container, lambda items: [item for item in items if identity(item) != item_id])


def commit_created(container: Any, temporary_id: Any, record: Any) -> Any:
    """Swap the tracked speculative record for the server one, keeping one copy."""
    server_id = identity(record)
    return _map_items(
        container,
        lambda items: [record, *[item for item in items if identity(item) not in (temporary_id, server_id)]],
    )
