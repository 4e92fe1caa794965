from __future__ import annotations

from typing import Any, Dict, List, Optional

from dashboard.constants import STALE_SECONDS
from dashboard.data.cache_store import make_key
from dashboard.data.mutations import MutationHandle, MutationSpec, PatchPolicy
from dashboard.data.patching import merge, now_ms
from dashboard.schemas import (
    DeviceRegistration,
    Notification,
    NotificationPreferences,
    parse_model,
    validate_form,
)


class NotificationKeys:
    all = ("notifications",)

    @staticmethod
    def preferences():
        return ("notifications", "preferences")

    @staticmethod
    def histories():
        return ("notifications", "history")

    @staticmethod
    def history(params: Optional[Dict[str, Any]] = None):
        return make_key("notifications", "history", params or {})

    @staticmethod
    def lists():
        return ("notifications", "list")

    @staticmethod
    def filtered(filter_name: Optional[str] = None):
        return ("notifications", "list", filter_name or "all")


def _notifications(payload) -> List[Notification]:
    if isinstance(payload, dict):
        payload = payload.get("notifications") or []
    return [parse_model(Notification, item) for item in payload or []]


async def preferences(ctx, force: bool = False) -> NotificationPreferences:
    async def fetch():
        payload = await ctx.api.get("/api/notifications/preferences")
        if isinstance(payload, dict) and "preferences" in payload:
            payload = payload["preferences"]
        return parse_model(NotificationPreferences, payload or {})

    return await ctx.queries.fetch(
        NotificationKeys.preferences(), fetch, STALE_SECONDS["notifications.preferences"], force=force
    )


async def notification_history(ctx, limit: Optional[int] = None, kind: Optional[str] = None, force: bool = False):
    params = {"limit": limit, "type": kind}

    async def fetch():
        return _notifications(await ctx.api.get("/api/notifications/history", params=params))

    return await ctx.queries.fetch(
        NotificationKeys.history(params), fetch, STALE_SECONDS["notifications.history"], force=force
    )


async def list_notifications(ctx, filter_name: Optional[str] = None, force: bool = False) -> List[Notification]:
    async def fetch():
        return _notifications(await ctx.api.get("/api/notifications", params={"filter": filter_name}))

    return await ctx.queries.fetch(
        NotificationKeys.filtered(filter_name), fetch, STALE_SECONDS["notifications.list"], force=force
    )


async def _put_preferences(api, prefs: NotificationPreferences) -> NotificationPreferences:
    payload = await api.put("/api/notifications/preferences", json=prefs.to_payload())
    if isinstance(payload, dict) and "preferences" in payload:
        return parse_model(NotificationPreferences, payload["preferences"])
    return prefs


async def _mark_read(api, notification_id: str) -> None:
    await api.put(f"/api/notifications/{notification_id}/read")


async def _mark_all_read(api, _variables) -> None:
    await api.put("/api/notifications/read-all")


async def _delete_notification(api, notification_id: str) -> None:
    await api.delete(f"/api/notifications/{notification_id}")


async def _register_device(api, device: DeviceRegistration) -> Dict[str, Any]:
    return await api.post("/api/notifications/devices/register", json=device.to_payload())


UPDATE_PREFERENCES = MutationSpec(
    name="update-preferences",
    request=_put_preferences,
    policy=PatchPolicy.REPLACE,
    detail_key=lambda prefs: NotificationKeys.preferences(),
    speculative=lambda prefs, current: prefs,
    success_message="Notification preferences updated!",
    failure_message="Failed to update notification preferences",
)

_NOTIFICATION_LISTS = (NotificationKeys.lists(), NotificationKeys.histories())

MARK_READ = MutationSpec(
    name="mark-read",
    request=_mark_read,
    policy=PatchPolicy.UPDATE,
    list_prefixes=_NOTIFICATION_LISTS,
    target_id=lambda notification_id: notification_id,
    changes=lambda notification_id: {"read": True, "read_at": now_ms()},
    failure_message="Failed to mark notification as read",
)

MARK_ALL_READ = MutationSpec(
    name="mark-all-read",
    request=_mark_all_read,
    policy=PatchPolicy.UPDATE,
    list_prefixes=_NOTIFICATION_LISTS,
    changes=lambda _variables: {"read": True, "read_at": now_ms()},
    failure_message="Failed to mark all notifications as read",
)

DELETE_NOTIFICATION = MutationSpec(
    name="delete-notification",
    request=_delete_notification,
    policy=PatchPolicy.DELETE,
    list_prefixes=_NOTIFICATION_LISTS,
    target_id=lambda notification_id: notification_id,
    failure_message="Failed to delete notification",
)

REGISTER_DEVICE = MutationSpec(
    name="register-device",
    request=_register_device,
    success_message="Device registered for notifications",
    failure_message="Failed to register device",
)


def update_preferences(ctx, prefs, current: Optional[NotificationPreferences] = None) -> MutationHandle:
    """Replace the stored preferences; a partial dict is merged over the cached ones."""
    if isinstance(prefs, dict):
        base = current or ctx.queries.get_data(NotificationKeys.preferences()) or NotificationPreferences()
        prefs = merge(base.model_dump(), prefs)
    return ctx.mutations.execute(UPDATE_PREFERENCES, validate_form(NotificationPreferences, prefs))


def mark_read(ctx, notification_id: str) -> MutationHandle:
    return ctx.mutations.execute(MARK_READ, notification_id)


def mark_all_read(ctx) -> MutationHandle:
    return ctx.mutations.execute(MARK_ALL_READ, None)


def delete_notification(ctx, notification_id: str) -> MutationHandle:
    return ctx.mutations.execute(DELETE_NOTIFICATION, notification_id)


def register_device(ctx, device) -> MutationHandle:
    return ctx.mutations.execute(REGISTER_DEVICE, validate_form(DeviceRegistration, device))
