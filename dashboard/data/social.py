from __future__ import annotations

from typing import Any, Dict, List

from dashboard.constants import STALE_SECONDS
from dashboard.data.mutations import MutationHandle, MutationSpec
from dashboard.schemas import (
    AchievementShare,
    Challenge,
    ChallengeForm,
    ConnectionList,
    ConnectionRequestForm,
    parse_model,
    validate_form,
)


class SocialKeys:
    all = ("social",)

    @staticmethod
    def connections():
        return ("social", "connections")

    @staticmethod
    def challenges():
        return ("social", "challenges")

    @staticmethod
    def public_challenges():
        return ("social", "challenges", "public")

    @staticmethod
    def activity_feed():
        return ("social", "activity-feed")


def _challenges(payload) -> List[Challenge]:
    if isinstance(payload, dict):
        payload = payload.get("challenges") or []
    return [parse_model(Challenge, item) for item in payload or []]


async def connections(ctx, force: bool = False) -> ConnectionList:
    async def fetch():
        return parse_model(ConnectionList, await ctx.api.get("/api/social/connections") or {})

    return await ctx.queries.fetch(SocialKeys.connections(), fetch, STALE_SECONDS["social.connections"], force=force)


async def challenges(ctx, force: bool = False) -> List[Challenge]:
    async def fetch():
        return _challenges(await ctx.api.get("/api/social/challenges"))

    return await ctx.queries.fetch(SocialKeys.challenges(), fetch, STALE_SECONDS["social.challenges"], force=force)


async def public_challenges(ctx, force: bool = False) -> List[Challenge]:
    async def fetch():
        return _challenges(await ctx.api.get("/api/social/challenges/public"))

    return await ctx.queries.fetch(
        SocialKeys.public_challenges(), fetch, STALE_SECONDS["social.public"], force=force
    )


async def activity_feed(ctx, force: bool = False) -> List[Dict[str, Any]]:
    async def fetch():
        payload = await ctx.api.get("/api/social/feed")
        if isinstance(payload, dict):
            payload = payload.get("feed") or []
        return list(payload or [])

    return await ctx.queries.fetch(SocialKeys.activity_feed(), fetch, STALE_SECONDS["social.feed"], force=force)


def _post(path_for):
    async def request(api, variables):
        return await api.post(path_for(variables))

    return request


async def _post_challenge(api, form: ChallengeForm) -> Challenge:
    payload = await api.post("/api/social/challenges", json=form.to_payload())
    if isinstance(payload, dict) and "challenge" in payload:
        payload = payload["challenge"]
    return parse_model(Challenge, payload)


async def _send_request(api, form: ConnectionRequestForm):
    return await api.post("/api/social/connections/request", json=form.to_payload())


async def _share(api, share: AchievementShare):
    return await api.post("/api/social/achievements/share", json=share.to_payload())


CREATE_CHALLENGE = MutationSpec(
    name="create-challenge",
    request=_post_challenge,
    invalidates=(SocialKeys.challenges(),),
    success_message="🏆 Challenge created!",
    failure_message="Failed to create challenge",
)

JOIN_CHALLENGE = MutationSpec(
    name="join-challenge",
    request=_post(lambda challenge_id: f"/api/social/challenges/{challenge_id}/join"),
    invalidates=(SocialKeys.challenges(),),
    success_message="🎯 Joined challenge!",
    failure_message="Failed to join challenge",
)

LEAVE_CHALLENGE = MutationSpec(
    name="leave-challenge",
    request=_post(lambda challenge_id: f"/api/social/challenges/{challenge_id}/leave"),
    invalidates=(SocialKeys.challenges(),),
    success_message="Left challenge",
    failure_message="Failed to leave challenge",
)

SEND_CONNECTION_REQUEST = MutationSpec(
    name="send-connection-request",
    request=_send_request,
    invalidates=(SocialKeys.connections(),),
    success_message="Connection request sent!",
    failure_message="Failed to send connection request",
)

ACCEPT_CONNECTION = MutationSpec(
    name="accept-connection",
    request=_post(lambda connection_id: f"/api/social/connections/{connection_id}/accept"),
    invalidates=(SocialKeys.connections(), SocialKeys.activity_feed()),
    success_message="Connection accepted!",
    failure_message="Failed to accept connection",
)

DECLINE_CONNECTION = MutationSpec(
    name="decline-connection",
    request=_post(lambda connection_id: f"/api/social/connections/{connection_id}/decline"),
    invalidates=(SocialKeys.connections(),),
    success_message="Connection declined",
    failure_message="Failed to decline connection",
)

SHARE_ACHIEVEMENT = MutationSpec(
    name="share-achievement",
    request=_share,
    invalidates=(SocialKeys.activity_feed(),),
    success_message="Achievement shared!",
    failure_message="Failed to share achievement",
)


def create_challenge(ctx, form) -> MutationHandle:
    return ctx.mutations.execute(CREATE_CHALLENGE, validate_form(ChallengeForm, form))


def join_challenge(ctx, challenge_id: str) -> MutationHandle:
    return ctx.mutations.execute(JOIN_CHALLENGE, challenge_id)


def leave_challenge(ctx, challenge_id: str) -> MutationHandle:
    return ctx.mutations.execute(LEAVE_CHALLENGE, challenge_id)


def send_connection_request(ctx, form) -> MutationHandle:
    return ctx.mutations.execute(SEND_CONNECTION_REQUEST, validate_form(ConnectionRequestForm, form))


def accept_connection(ctx, connection_id: str) -> MutationHandle:
    return ctx.mutations.execute(ACCEPT_CONNECTION, connection_id)


def decline_connection(ctx, connection_id: str) -> MutationHandle:
    return ctx.mutations.execute(DECLINE_CONNECTION, connection_id)


def share_achievement(ctx, share) -> MutationHandle:
    return ctx.mutations.execute(SHARE_ACHIEVEMENT, validate_form(AchievementShare, share))
