"""Database utilities for Supabase integration.

``SupabaseStore`` is the only code that talks to the backing service. The
supabase-py client is synchronous, so every request runs in a worker thread
and is bounded by ``request_timeout_seconds``. All failures come out as
``StoreError`` with a human-readable message.
"""

import asyncio
import re
from datetime import datetime
from typing import Any, Callable, Iterable, TypeVar

import httpx
from postgrest.exceptions import APIError
from pydantic import BaseModel, ValidationError
from supabase import Client, create_client

from .config import Settings, get_settings
from .constants import FRIENDSHIPS_TABLE, LOGS_TABLE, PROFILES_TABLE
from .logging_config import get_logger
from .models import FriendshipRecord, FriendshipStatus, LogEntry, Profile

logger = get_logger("database")

PROFILE_COLUMNS = "id, email, full_name, avatar_url"

RecordT = TypeVar("RecordT", bound=BaseModel)


class StoreError(Exception):
    """A store call failed; ``message`` is safe to show to the user."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


def escape_like(query: str) -> str:
    """Escape SQL LIKE special characters so user input matches literally."""
    # Escape backslash first, then %, then _
    return re.sub(r'([%_\\])', r'\\\1', query)


_supabase_client: Client | None = None


def get_supabase_client(settings: Settings | None = None) -> Client:
    """Get cached Supabase client."""
    global _supabase_client
    if _supabase_client is None:
        if settings is None:
            settings = get_settings()
        # Prefer new secret key, fall back to legacy service_role_key
        api_key = settings.supabase_secret_key or settings.supabase_service_role_key
        if not api_key:
            raise ValueError("Either SUPABASE_SECRET_KEY or SUPABASE_SERVICE_ROLE_KEY must be set")
        _supabase_client = create_client(settings.supabase_url, api_key)
    return _supabase_client


def get_store(settings: Settings | None = None) -> "SupabaseStore":
    """Build a store over the cached client."""
    if settings is None:
        settings = get_settings()
    return SupabaseStore(get_supabase_client(settings), timeout=settings.request_timeout_seconds)


class SupabaseStore:
    """Data access for logs, profiles and friendships."""

    def __init__(self, client: Client, timeout: float = 10.0):
        self.client = client
        self.timeout = timeout

    async def _execute(self, build: Callable[[], Any]) -> list[dict]:
        """Run a PostgREST query builder and return its rows."""

        def _run():
            return build().execute()

        try:
            result = await asyncio.wait_for(asyncio.to_thread(_run), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Store request timed out after {self.timeout}s")
            raise StoreError("Request timed out")
        except APIError as e:
            message = getattr(e, "message", None) or str(e)
            logger.warning(f"Store request rejected: {message}")
            raise StoreError(message)
        except httpx.HTTPError as e:
            logger.warning(f"Store transport error: {e}")
            raise StoreError(f"Network error: {e}")
        return result.data or []

    @staticmethod
    def _parse(model: type[RecordT], rows: Iterable[dict]) -> list[RecordT]:
        try:
            return [model.model_validate(row) for row in rows]
        except ValidationError as e:
            logger.error(f"Malformed {model.__name__} row from store: {e}")
            raise StoreError(f"Malformed {model.__name__} data")

    def _single(self, model: type[RecordT], rows: list[dict], action: str) -> RecordT:
        if not rows:
            raise StoreError(f"{action} returned no data")
        return self._parse(model, rows[:1])[0]

    # =========================================================================
    # Logs
    # =========================================================================

    async def list_logs(self, user_id: str) -> list[LogEntry]:
        """All of a user's logs, newest first."""
        rows = await self._execute(
            lambda: self.client.table(LOGS_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .order("occurred_at", desc=True)
        )
        return self._parse(LogEntry, rows)

    async def list_logs_for_users(self, user_ids: list[str]) -> list[LogEntry]:
        """Logs of several users (friends feed), newest first."""
        if not user_ids:
            return []
        rows = await self._execute(
            lambda: self.client.table(LOGS_TABLE)
            .select("*")
            .in_("user_id", user_ids)
            .order("occurred_at", desc=True)
        )
        return self._parse(LogEntry, rows)

    async def create_log(
        self,
        user_id: str,
        type: int,
        notes: str | None,
        occurred_at: datetime,
    ) -> LogEntry:
        """Insert a log; the store assigns the id."""
        data = {
            "user_id": user_id,
            "type": type,
            "notes": notes,
            "occurred_at": occurred_at.isoformat(),
        }
        rows = await self._execute(lambda: self.client.table(LOGS_TABLE).insert(data))
        return self._single(LogEntry, rows, "Insert")

    async def recreate_log(self, log: LogEntry) -> LogEntry:
        """Insert a previously deleted log under its original id."""
        data = {
            "id": log.id,
            "user_id": log.user_id,
            "type": log.type,
            "notes": log.notes,
            "occurred_at": log.occurred_at.isoformat(),
        }
        rows = await self._execute(lambda: self.client.table(LOGS_TABLE).insert(data))
        return self._single(LogEntry, rows, "Insert")

    async def delete_log(self, log_id: str) -> None:
        await self._execute(lambda: self.client.table(LOGS_TABLE).delete().eq("id", log_id))

    # =========================================================================
    # Profiles
    # =========================================================================

    async def find_profile_by_email(self, email: str) -> Profile | None:
        """Case-insensitive exact email lookup."""
        rows = await self._execute(
            lambda: self.client.table(PROFILES_TABLE)
            .select(PROFILE_COLUMNS)
            .ilike("email", escape_like(email))
            .limit(1)
        )
        profiles = self._parse(Profile, rows)
        return profiles[0] if profiles else None

    async def list_profiles(self, ids: list[str]) -> list[Profile]:
        if not ids:
            return []
        rows = await self._execute(
            lambda: self.client.table(PROFILES_TABLE).select(PROFILE_COLUMNS).in_("id", ids)
        )
        return self._parse(Profile, rows)

    async def upsert_profile(self, profile: Profile) -> Profile:
        """Create or replace the profile row keyed by id."""
        data = profile.model_dump()
        rows = await self._execute(
            lambda: self.client.table(PROFILES_TABLE).upsert(data, on_conflict="id")
        )
        return self._single(Profile, rows, "Upsert")

    # =========================================================================
    # Friendships
    # =========================================================================

    async def list_friendships(self, user_id: str) -> list[FriendshipRecord]:
        """Every friendship row where the user is either side."""
        rows = await self._execute(
            lambda: self.client.table(FRIENDSHIPS_TABLE)
            .select("*")
            .or_(f"user_id.eq.{user_id},friend_id.eq.{user_id}")
        )
        return self._parse(FriendshipRecord, rows)

    async def create_friendship(self, user_id: str, friend_id: str) -> FriendshipRecord:
        data = {
            "user_id": user_id,
            "friend_id": friend_id,
            "status": FriendshipStatus.pending.value,
        }
        rows = await self._execute(lambda: self.client.table(FRIENDSHIPS_TABLE).insert(data))
        return self._single(FriendshipRecord, rows, "Insert")

    async def update_friendship_status(
        self,
        friendship_id: str,
        status: FriendshipStatus = FriendshipStatus.accepted,
    ) -> None:
        await self._execute(
            lambda: self.client.table(FRIENDSHIPS_TABLE)
            .update({"status": status.value})
            .eq("id", friendship_id)
        )

    async def delete_friendship(self, friendship_id: str) -> None:
        await self._execute(
            lambda: self.client.table(FRIENDSHIPS_TABLE).delete().eq("id", friendship_id)
        )

    # =========================================================================
    # Health
    # =========================================================================

    async def ping(self) -> bool:
        """Cheap query to verify the store is reachable."""
        await self._execute(lambda: self.client.table(PROFILES_TABLE).select("id").limit(1))
        return True
