"""Per-user sessions.

A ``UserSession`` owns the in-memory collections of one signed-in user. The
``SessionRegistry`` hands out sessions by user id; collections are never
shared between users, and signing out drops them entirely.
"""

import asyncio
from typing import Annotated, Callable, Optional

from fastapi import Depends

from .auth import CurrentUser, greeting_name, profile_from_user
from .config import Settings, get_settings
from .database import StoreError, SupabaseStore, get_store
from .friends import FriendsSync
from .logging_config import get_logger, log_auth_event
from .logs import LogSync
from .models import AuthenticatedUser, Profile

logger = get_logger("session")


class UserSession:
    """Logs, friends and profile for one signed-in user."""

    def __init__(
        self,
        user: AuthenticatedUser,
        store: SupabaseStore,
        undo_window_seconds: float = 5.0,
    ):
        self.user = user
        self.store = store
        self.logs = LogSync(store, undo_window_seconds=undo_window_seconds)
        self.friends = FriendsSync(store)
        self.profile: Optional[Profile] = None
        self.profile_error: Optional[str] = None
        self.signed_in = False

    async def sign_in(self) -> None:
        """Upsert the profile, then load logs and friends."""
        try:
            self.profile = await self.store.upsert_profile(profile_from_user(self.user))
            self.profile_error = None
        except StoreError as e:
            self.profile_error = e.message
            logger.warning(f"PROFILE | {self.user.id} | upsert FAILED ({e.message})")

        await asyncio.gather(self.logs.load(self.user.id), self.friends.load(self.user))
        self.signed_in = True
        log_auth_event("sign_in", self.user.id, True)

    def sign_out(self) -> None:
        self.logs.clear()
        self.friends.clear()
        self.profile = None
        self.profile_error = None
        self.signed_in = False
        log_auth_event("sign_out", self.user.id, True)

    @property
    def greeting_name(self) -> str:
        return greeting_name(self.user, self.profile)

    @property
    def errors(self) -> dict[str, str]:
        """Latest error per domain; logs and friends fail independently."""
        errors = {}
        if self.profile_error:
            errors["profile"] = self.profile_error
        if self.logs.error:
            errors["logs"] = self.logs.error
        if self.friends.error:
            errors["friends"] = self.friends.error
        return errors


class SessionRegistry:
    """Signed-in sessions keyed by user id."""

    def __init__(
        self,
        store_factory: Callable[[], SupabaseStore],
        undo_window_seconds: float = 5.0,
    ):
        self._store_factory = store_factory
        self.undo_window_seconds = undo_window_seconds
        self._sessions: dict[str, UserSession] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = self._locks[user_id] = asyncio.Lock()
        return lock

    def get(self, user_id: str) -> Optional[UserSession]:
        return self._sessions.get(user_id)

    async def _sign_in_locked(self, user: AuthenticatedUser) -> UserSession:
        # Caller holds the user's lock
        previous = self._sessions.pop(user.id, None)
        if previous is not None:
            previous.sign_out()
        session = UserSession(user, self._store_factory(), self.undo_window_seconds)
        await session.sign_in()
        self._sessions[user.id] = session
        return session

    async def sign_in(self, user: AuthenticatedUser) -> UserSession:
        """Start a fresh session, replacing any previous one for this user."""
        async with self._lock_for(user.id):
            return await self._sign_in_locked(user)

    async def get_or_sign_in(self, user: AuthenticatedUser) -> UserSession:
        """Existing live session, or a new one; concurrent first requests share it."""
        session = self._sessions.get(user.id)
        if session is not None and session.signed_in:
            return session
        async with self._lock_for(user.id):
            session = self._sessions.get(user.id)
            if session is not None and session.signed_in:
                return session
            return await self._sign_in_locked(user)

    def sign_out(self, user_id: str) -> bool:
        session = self._sessions.pop(user_id, None)
        self._locks.pop(user_id, None)
        if session is None:
            return False
        session.sign_out()
        return True

    def __len__(self) -> int:
        return len(self._sessions)


_registry: Optional[SessionRegistry] = None


def get_registry(settings: Annotated[Settings, Depends(get_settings)]) -> SessionRegistry:
    """FastAPI dependency for the process-wide session registry."""
    global _registry
    if _registry is None:
        _registry = SessionRegistry(
            store_factory=lambda: get_store(settings),
            undo_window_seconds=settings.undo_window_seconds,
        )
    return _registry


Registry = Annotated[SessionRegistry, Depends(get_registry)]


async def get_session(user: CurrentUser, registry: Registry) -> UserSession:
    """FastAPI dependency: the caller's session, signing in on first use."""
    return await registry.get_or_sign_in(user)


CurrentSession = Annotated[UserSession, Depends(get_session)]
