# tests/test_notifications.py

from __future__ import annotations

import pytest

from dashboard.data import notifications
from dashboard.data.mutations import Committed, RolledBack
from dashboard.data.notifications import NotificationKeys
from dashboard.errors import ApiError, FormValidationError
from dashboard.schemas import NotificationPreferences


def _note(note_id: str, read: bool = False) -> dict:
    return {"id": note_id, "title": "Reminder", "message": "Stand up", "read": read}


@pytest.mark.asyncio
async def test_list_and_history_queries(ctx, api) -> None:
    api.respond("GET", "/api/notifications", {"notifications": [_note("n1")]})
    api.respond("GET", "/api/notifications/history", [_note("n2", read=True)])

    unread = await notifications.list_notifications(ctx, "unread")
    history = await notifications.notification_history(ctx, limit=20)

    assert [n.id for n in unread] == ["n1"]
    assert history[0].read is True
    assert api.calls[0].params == {"filter": "unread"}
    assert api.calls[1].params == {"limit": 20, "type": None}
    assert ctx.queries.get_data(NotificationKeys.filtered("unread")) == unread


@pytest.mark.asyncio
async def test_preferences_query_accepts_wrapped_and_bare_payloads(ctx, api) -> None:
    api.respond("GET", "/api/notifications/preferences", {"preferences": {"taskReminders": False}})

    prefs = await notifications.preferences(ctx)

    assert prefs.task_reminders is False
    assert prefs.health_reminders is True
    assert prefs.quiet_hours.start == "22:00"


@pytest.mark.asyncio
async def test_mark_read_patches_every_notification_list(ctx, api) -> None:
    list_key = NotificationKeys.filtered()
    history_key = NotificationKeys.history({"limit": 20, "type": None})
    ctx.queries.set_data(list_key, [_note("n1"), _note("n2")])
    ctx.queries.set_data(history_key, [_note("n1")])
    reply = api.hold("PUT", "/api/notifications/n1/read")

    handle = notifications.mark_read(ctx, "n1")

    assert [n["read"] for n in ctx.queries.get_data(list_key)] == [True, False]
    assert ctx.queries.get_data(history_key)[0]["read"] is True
    assert ctx.queries.get_data(list_key)[0]["read_at"] > 0

    reply.set_result(None)
    assert isinstance(await handle, Committed)
    assert ctx.queries.get_data(list_key)[0]["read"] is True


@pytest.mark.asyncio
async def test_mark_all_read_rolls_back_on_failure(ctx, api, toasts) -> None:
    list_key = NotificationKeys.filtered()
    before = [_note("n1"), _note("n2")]
    ctx.queries.set_data(list_key, [dict(n) for n in before])
    reply = api.hold("PUT", "/api/notifications/read-all")

    handle = notifications.mark_all_read(ctx)
    assert all(n["read"] for n in ctx.queries.get_data(list_key))

    reply.set_exception(ApiError(500, "Internal Server Error"))
    assert isinstance(await handle, RolledBack)

    assert ctx.queries.get_data(list_key) == before
    assert toasts.errors == ["Failed to mark all notifications as read"]


@pytest.mark.asyncio
async def test_delete_notification(ctx, api) -> None:
    list_key = NotificationKeys.filtered()
    ctx.queries.set_data(list_key, [_note("n1"), _note("n2")])
    api.respond("DELETE", "/api/notifications/n1", None)

    await notifications.delete_notification(ctx, "n1")

    assert [n["id"] for n in ctx.queries.get_data(list_key)] == ["n2"]


@pytest.mark.asyncio
async def test_partial_preferences_are_merged_over_cached_ones(ctx, api, toasts) -> None:
    key = NotificationKeys.preferences()
    ctx.queries.set_data(key, NotificationPreferences(social_notifications=False))
    reply = api.hold("PUT", "/api/notifications/preferences")

    handle = notifications.update_preferences(ctx, {"task_reminders": False})

    speculative = ctx.queries.get_data(key)
    assert speculative.task_reminders is False
    assert speculative.social_notifications is False

    reply.set_result({"preferences": speculative.to_payload()})
    await handle

    assert api.calls[0].json["taskReminders"] is False
    assert api.calls[0].json["quietHours"] == {"enabled": False, "start": "22:00", "end": "07:00"}
    assert ctx.queries.get_data(key).task_reminders is False
    assert toasts.successes == ["Notification preferences updated!"]


@pytest.mark.asyncio
async def test_failed_preferences_update_restores_previous_value(ctx, api, toasts) -> None:
    key = NotificationKeys.preferences()
    before = NotificationPreferences()
    ctx.queries.set_data(key, before)
    api.respond(
        "PUT",
        "/api/notifications/preferences",
        ApiError(400, "Bad Request", {"error": "Invalid quiet hours"}),
    )

    await notifications.update_preferences(ctx, {"deadline_alerts": False})

    assert ctx.queries.get_data(key) == before
    assert toasts.errors == ["Invalid quiet hours"]


def test_invalid_quiet_hours_are_rejected(ctx, api) -> None:
    with pytest.raises(FormValidationError) as excinfo:
        notifications.update_preferences(ctx, {"quiet_hours": {"enabled": True, "start": "25:00"}})

    assert any(field.endswith("start") for field in excinfo.value.field_errors)
    assert api.calls == []


@pytest.mark.asyncio
async def test_register_device(ctx, api, toasts) -> None:
    api.respond("POST", "/api/notifications/devices/register", {"success": True})

    outcome = await notifications.register_device(
        ctx, {"deviceToken": "tok-1", "platform": "web", "appVersion": "1.2.0"}
    )

    assert outcome.resource == {"success": True}
    assert api.calls[0].json == {"deviceToken": "tok-1", "platform": "web", "appVersion": "1.2.0"}
    assert toasts.successes == ["Device registered for notifications"]
