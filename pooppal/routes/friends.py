"""Friend graph routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from ..config import Settings, get_settings
from ..friends import other_party_id
from ..models import (
    FriendRequestCreate,
    FriendsResponse,
    FriendshipRecord,
    FriendView,
    LogListResponse,
    StatsSummary,
)
from ..rate_limit import limiter
from ..session import CurrentSession, UserSession
from ..stats import summarize_stats
from .errors import raise_for_result
from .stats import resolve_now

router = APIRouter(prefix="/friends", tags=["friends"])


def _friend_request_rate() -> str:
    return get_settings().friend_request_rate


def _views(records: list[FriendshipRecord], session: UserSession) -> list[FriendView]:
    views = []
    for record in records:
        other_id = other_party_id(record, session.user.id)
        views.append(
            FriendView(
                friendship=record,
                other_user_id=other_id,
                profile=session.friends.profiles_by_id.get(other_id),
            )
        )
    return views


def _friends_response(session: UserSession) -> FriendsResponse:
    partition = session.friends.partition
    return FriendsResponse(
        accepted=_views(partition.accepted, session),
        incoming=_views(partition.incoming, session),
        outgoing=_views(partition.outgoing, session),
        error=session.friends.error,
    )


def _require_friend(session: UserSession, friend_id: str) -> None:
    if not session.friends.is_friend(friend_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No accepted friendship with this user",
        )


@router.get("", response_model=FriendsResponse)
async def list_friends(session: CurrentSession, refresh: bool = False):
    """Accepted friends plus incoming and outgoing pending requests."""
    if refresh:
        await session.friends.load(session.user)
    return _friends_response(session)


@router.post("/requests", response_model=FriendshipRecord, status_code=201)
@limiter.limit(_friend_request_rate)
async def send_friend_request(
    request: Request,
    payload: FriendRequestCreate,
    session: CurrentSession,
):
    """
    Send a friend request by email.

    Rejected before anything is written when the email is your own, unknown,
    or already linked to you by a pending or accepted request.
    """
    result = await session.friends.add_friend(session.user, payload.email)
    raise_for_result(result)
    return result.value


@router.post("/requests/{request_id}/accept", response_model=FriendsResponse)
async def accept_friend_request(request_id: str, session: CurrentSession):
    """Accept a pending request sent to you."""
    result = await session.friends.accept_request(session.user, request_id)
    raise_for_result(result)
    return _friends_response(session)


@router.delete("/requests/{request_id}", response_model=FriendsResponse)
async def decline_friend_request(request_id: str, session: CurrentSession):
    """Decline a request sent to you, or cancel one you sent."""
    result = await session.friends.decline_request(session.user, request_id)
    raise_for_result(result)
    return _friends_response(session)


@router.get("/{friend_id}/logs", response_model=LogListResponse)
async def friend_logs(friend_id: str, session: CurrentSession):
    """An accepted friend's logs, newest first."""
    _require_friend(session, friend_id)
    logs = session.friends.logs_for_friend(friend_id)
    return LogListResponse(logs=logs, total=len(logs), error=session.friends.error)


@router.get("/{friend_id}/stats", response_model=StatsSummary)
async def friend_stats(
    friend_id: str,
    session: CurrentSession,
    settings: Annotated[Settings, Depends(get_settings)],
    tz: str | None = Query(default=None),
):
    """Statistics computed over an accepted friend's logs."""
    _require_friend(session, friend_id)
    return summarize_stats(session.friends.logs_for_friend(friend_id), resolve_now(tz, settings))
