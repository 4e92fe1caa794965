from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from dashboard.constants import STALE_SECONDS
from dashboard.data.cache_store import make_key
from dashboard.data.mutations import MutationHandle, MutationSpec, PatchPolicy
from dashboard.data.patching import merge
from dashboard.errors import CommandFailed
from dashboard.schemas import (
    VoiceCommand,
    VoiceCommandRequest,
    VoiceNote,
    VoiceNotePage,
    VoiceSettings,
    VoiceSettingsPatch,
    parse_model,
    validate_form,
)


class VoiceKeys:
    all = ("voice",)

    @staticmethod
    def notes():
        return ("voice", "notes")

    @staticmethod
    def notes_list(filters: Optional[Dict[str, Any]] = None):
        return make_key("voice", "notes", {"filters": filters or {}})

    @staticmethod
    def note(note_id: str):
        return ("voice", "note", note_id)

    @staticmethod
    def settings():
        return ("voice", "settings")

    @staticmethod
    def analytics():
        return ("voice", "analytics")


@dataclass(frozen=True)
class VoiceUpload:
    filename: str
    content: bytes
    content_type: str = "audio/webm"
    language: Optional[str] = None


@dataclass(frozen=True)
class CommandExecution:
    intent: str
    parameters: Dict[str, Any]


def _unwrap(payload, field):
    if isinstance(payload, dict) and field in payload:
        return payload[field]
    return payload


async def voice_notes(ctx, filters: Optional[Dict[str, Any]] = None, force: bool = False) -> VoiceNotePage:
    params = dict(filters or {})

    async def fetch():
        return parse_model(VoiceNotePage, await ctx.api.get("/api/voice/notes", params=params) or {})

    return await ctx.queries.fetch(VoiceKeys.notes_list(params), fetch, STALE_SECONDS["voice.notes"], force=force)


async def voice_note(ctx, note_id: str, force: bool = False) -> VoiceNote:
    async def fetch():
        return parse_model(VoiceNote, _unwrap(await ctx.api.get(f"/api/voice/notes/{note_id}"), "note"))

    return await ctx.queries.fetch(VoiceKeys.note(note_id), fetch, STALE_SECONDS["voice.note"], force=force)


async def voice_settings(ctx, force: bool = False) -> VoiceSettings:
    async def fetch():
        return parse_model(VoiceSettings, _unwrap(await ctx.api.get("/api/voice/settings"), "settings") or {})

    return await ctx.queries.fetch(VoiceKeys.settings(), fetch, STALE_SECONDS["voice.settings"], force=force)


async def voice_analytics(ctx, force: bool = False) -> Dict[str, Any]:
    async def fetch():
        return _unwrap(await ctx.api.get("/api/voice/analytics/usage"), "analytics")

    return await ctx.queries.fetch(VoiceKeys.analytics(), fetch, STALE_SECONDS["voice.analytics"], force=force)


async def _upload(api, upload: VoiceUpload) -> VoiceNote:
    data = {"processType": "transcribe_and_analyze"}
    if upload.language:
        data["language"] = upload.language
    payload = await api.post(
        "/api/voice/upload",
        files={"audio": (upload.filename, upload.content, upload.content_type)},
        data=data,
    )
    return parse_model(VoiceNote, _unwrap(payload, "voiceNote"))


async def _interpret(api, request: VoiceCommandRequest) -> VoiceCommand:
    payload = await api.post("/api/voice/commands/interpret", json=request.to_payload())
    return parse_model(VoiceCommand, _unwrap(payload, "interpretation"))


async def _execute(api, command: CommandExecution) -> Dict[str, Any]:
    result = await api.post(
        "/api/voice/commands/execute",
        json={"intent": command.intent, "parameters": command.parameters},
    )
    if not (isinstance(result, dict) and result.get("success")):
        raise CommandFailed("Voice command failed to execute", result)
    return result


async def _put_settings(api, patch: VoiceSettingsPatch) -> VoiceSettings:
    payload = await api.put("/api/voice/settings", json=patch.to_payload())
    return parse_model(VoiceSettings, _unwrap(payload, "settings"))


def _speculative_settings(patch: VoiceSettingsPatch, current) -> VoiceSettings:
    return merge(current or VoiceSettings(), patch.changes())


UPLOAD_VOICE_NOTE = MutationSpec(
    name="upload-voice-note",
    request=_upload,
    invalidates=(VoiceKeys.notes(), VoiceKeys.analytics()),
    success_message="🎤 Voice note uploaded and transcribed!",
    failure_message="Failed to upload voice note",
)

INTERPRET_COMMAND = MutationSpec(
    name="interpret-command",
    request=_interpret,
    failure_message="Failed to interpret voice command",
)

EXECUTE_COMMAND = MutationSpec(
    name="execute-command",
    request=_execute,
    invalidates=(("tasks",), ("health",)),
    success_message="✅ Voice command executed!",
    failure_message="Failed to execute voice command",
)

UPDATE_VOICE_SETTINGS = MutationSpec(
    name="update-voice-settings",
    request=_put_settings,
    policy=PatchPolicy.REPLACE,
    detail_key=lambda patch: VoiceKeys.settings(),
    speculative=_speculative_settings,
    success_message="Voice settings updated!",
    failure_message="Failed to update voice settings",
)


def upload_voice_note(
    ctx, content: bytes, filename: str = "voice-note.webm", language: Optional[str] = None
) -> MutationHandle:
    upload = VoiceUpload(filename=filename, content=content, language=language)
    return ctx.mutations.execute(UPLOAD_VOICE_NOTE, upload)


def interpret_command(ctx, request) -> MutationHandle:
    return ctx.mutations.execute(INTERPRET_COMMAND, validate_form(VoiceCommandRequest, request))


def execute_command(ctx, intent: str, parameters: Optional[Dict[str, Any]] = None) -> MutationHandle:
    return ctx.mutations.execute(EXECUTE_COMMAND, CommandExecution(intent, dict(parameters or {})))


def update_voice_settings(ctx, patch) -> MutationHandle:
    return ctx.mutations.execute(UPDATE_VOICE_SETTINGS, validate_form(VoiceSettingsPatch, patch))
