# tests/test_voice.py

from __future__ import annotations

import pytest

from dashboard.data import voice
from dashboard.data.mutations import Committed, RolledBack
from dashboard.data.tasks import TaskKeys
from dashboard.data.voice import VoiceKeys
from dashboard.errors import CommandFailed
from dashboard.schemas import VoiceSettings


@pytest.mark.asyncio
async def test_voice_queries(ctx, api) -> None:
    api.respond("GET", "/api/voice/notes", {"notes": [{"id": "v1", "transcription": "buy milk"}], "total": 1})
    api.respond("GET", "/api/voice/notes/v1", {"note": {"id": "v1", "audioUrl": "https://cdn/v1.webm"}})
    api.respond("GET", "/api/voice/settings", {"settings": {"language": "de", "autoTranscribe": False}})
    api.respond("GET", "/api/voice/analytics/usage", {"analytics": {"totalNotes": 4}})

    page = await voice.voice_notes(ctx, {"limit": 10})
    note = await voice.voice_note(ctx, "v1")
    settings = await voice.voice_settings(ctx)
    analytics = await voice.voice_analytics(ctx)

    assert page.total == 1
    assert page.notes[0].transcription == "buy milk"
    assert note.audio_url == "https://cdn/v1.webm"
    assert (settings.language, settings.auto_transcribe) == ("de", False)
    assert analytics == {"totalNotes": 4}
    assert ctx.queries.get_data(VoiceKeys.note("v1")) is note


@pytest.mark.asyncio
async def test_upload_sends_multipart_audio(ctx, api, toasts) -> None:
    ctx.store.write(VoiceKeys.notes_list(), {"notes": []}, fetched=True)
    api.respond(
        "POST",
        "/api/voice/upload",
        {"voiceNote": {"id": "v2", "transcription": "call mum", "confidence": 0.9}},
    )

    outcome = await voice.upload_voice_note(ctx, b"RIFF", filename="note.webm", language="en")

    call = api.calls[0]
    assert call.files == {"audio": ("note.webm", b"RIFF", "audio/webm")}
    assert call.data == {"processType": "transcribe_and_analyze", "language": "en"}
    assert outcome.resource.transcription == "call mum"
    assert ctx.store.read(VoiceKeys.notes_list()).is_stale is True
    assert toasts.successes == ["🎤 Voice note uploaded and transcribed!"]


@pytest.mark.asyncio
async def test_interpret_command_returns_interpretation(ctx, api, toasts) -> None:
    api.respond(
        "POST",
        "/api/voice/commands/interpret",
        {"interpretation": {"intent": "create_task", "confidence": 0.8, "parameters": {"title": "milk"}}},
    )

    outcome = await voice.interpret_command(ctx, {"transcription": "remind me to buy milk"})

    assert outcome.resource.intent == "create_task"
    assert outcome.resource.parameters == {"title": "milk"}
    assert toasts.toasts == []


@pytest.mark.asyncio
async def test_executed_command_invalidates_tasks_and_health(ctx, api, toasts) -> None:
    ctx.store.write(TaskKeys.filtered(), [], fetched=True)
    ctx.store.write(("health", "summary"), {}, fetched=True)
    api.respond("POST", "/api/voice/commands/execute", {"success": True, "result": {"taskId": "t1"}})

    outcome = await voice.execute_command(ctx, "create_task", {"title": "milk"})

    assert isinstance(outcome, Committed)
    assert api.calls[0].json == {"intent": "create_task", "parameters": {"title": "milk"}}
    assert ctx.store.read(TaskKeys.filtered()).is_stale is True
    assert ctx.store.read(("health", "summary")).is_stale is True
    assert toasts.successes == ["✅ Voice command executed!"]


@pytest.mark.asyncio
async def test_unsuccessful_command_is_reported_as_failure(ctx, api, toasts) -> None:
    api.respond("POST", "/api/voice/commands/execute", {"success": False})

    outcome = await voice.execute_command(ctx, "unknown")

    assert isinstance(outcome, RolledBack)
    assert isinstance(outcome.error, CommandFailed)
    assert toasts.errors == ["Voice command failed to execute"]


@pytest.mark.asyncio
async def test_settings_update_is_applied_before_the_server_answers(ctx, api, toasts) -> None:
    key = VoiceKeys.settings()
    ctx.queries.set_data(key, VoiceSettings())
    reply = api.hold("PUT", "/api/voice/settings")

    handle = voice.update_voice_settings(ctx, {"language": "de"})
    assert ctx.queries.get_data(key).language == "de"
    assert ctx.queries.get_data(key).commands_enabled is True

    reply.set_result({"settings": {"language": "de", "confidenceThreshold": 0.8}})
    await handle

    assert api.calls[0].json == {"language": "de"}
    assert ctx.queries.get_data(key).confidence_threshold == 0.8
    assert toasts.successes == ["Voice settings updated!"]
