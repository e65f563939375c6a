"""Sign-in / sign-out routes."""

from fastapi import APIRouter, Response, status

from ..auth import CurrentUser
from ..models import SessionResponse
from ..session import CurrentSession, Registry, UserSession

router = APIRouter(prefix="/session", tags=["session"])


def _session_response(session: UserSession) -> SessionResponse:
    return SessionResponse(
        user_id=session.user.id,
        email=session.user.email,
        greeting_name=session.greeting_name,
        profile=session.profile,
        log_count=len(session.logs.logs),
        friend_count=len(session.friends.partition.accepted),
        errors=session.errors,
    )


@router.post("", response_model=SessionResponse)
async def sign_in(user: CurrentUser, registry: Registry):
    """
    Start a session for the token's user.

    Upserts the profile from the token metadata and loads logs and friends.
    Load failures do not fail the request; they are reported in ``errors``.
    """
    session = await registry.sign_in(user)
    return _session_response(session)


@router.get("", response_model=SessionResponse)
async def get_session_state(session: CurrentSession):
    """Current session state, signing in on first use."""
    return _session_response(session)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def sign_out(user: CurrentUser, registry: Registry):
    """Drop the user's in-memory collections."""
    registry.sign_out(user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
