"""Authentication utilities.

Sign-in itself happens against Supabase Auth in the client. This module only
verifies the resulting access token and turns its claims into an
``AuthenticatedUser``.
"""

from datetime import datetime, timedelta, timezone
from typing import Annotated, Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from .config import Settings, get_settings
from .constants import DEFAULT_DISPLAY_NAME
from .logging_config import log_auth_event
from .models import AuthenticatedUser, Profile

# Bearer token scheme; auto_error off so we control the 401 body
security = HTTPBearer(auto_error=False)


def create_access_token(
    user_id: str,
    settings: Settings,
    email: str | None = None,
    user_metadata: dict[str, Any] | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Mint a token shaped like a Supabase Auth access token.

    Production tokens come from Supabase; this is for local tooling and tests.
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(hours=1))
    to_encode = {
        "sub": user_id,
        "aud": settings.jwt_audience,
        "role": "authenticated",
        "exp": expire,
        "iat": now,
        "email": email,
        "user_metadata": user_metadata or {},
    }
    return jwt.encode(to_encode, settings.supabase_jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str, settings: Settings) -> dict:
    """Decode and validate a Supabase access token."""
    try:
        payload = jwt.decode(
            token,
            settings.supabase_jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
        )
        return payload
    except JWTError as e:
        log_auth_event("verify", None, False, str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )


def user_from_claims(payload: dict) -> AuthenticatedUser:
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return AuthenticatedUser(
        id=user_id,
        email=payload.get("email") or None,
        user_metadata=payload.get("user_metadata") or {},
    )


def _email_local_part(email: str | None) -> str | None:
    if not email:
        return None
    return email.split("@")[0] or None


def profile_from_user(user: AuthenticatedUser) -> Profile:
    """Profile row to upsert on sign-in, filled from OAuth metadata."""
    metadata = user.user_metadata
    full_name = (
        metadata.get("full_name")
        or metadata.get("name")
        or metadata.get("preferred_username")
        or _email_local_part(user.email)
        or DEFAULT_DISPLAY_NAME
    )
    avatar_url = metadata.get("avatar_url") or metadata.get("picture") or None
    return Profile(id=user.id, email=user.email, full_name=full_name, avatar_url=avatar_url)


def greeting_name(user: AuthenticatedUser | None, profile: Profile | None = None) -> str:
    """Name to greet the user with; stored profile wins over token metadata."""
    metadata = user.user_metadata if user else {}
    return (
        (profile.full_name if profile else None)
        or metadata.get("full_name")
        or metadata.get("name")
        or _email_local_part(user.email if user else None)
        or DEFAULT_DISPLAY_NAME
    )


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> AuthenticatedUser:
    """Resolve the signed-in user from the Authorization header."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated - provide a Bearer access token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    payload = decode_token(credentials.credentials, settings)
    return user_from_claims(payload)


# Type alias for dependency injection
CurrentUser = Annotated[AuthenticatedUser, Depends(get_current_user)]
