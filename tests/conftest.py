"""Pytest configuration and fixtures."""

import asyncio
import os
import secrets
import sys
from datetime import datetime, timezone
from itertools import count

import pytest

# Generate a unique test secret for this test run to prevent token forgery
_TEST_JWT_SECRET = f"test-only-{secrets.token_urlsafe(32)}"

# For unit tests, set mock values ONLY if not running integration tests
if not os.environ.get("RUN_INTEGRATION"):
    os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
    os.environ.setdefault("SUPABASE_SECRET_KEY", "test-secret-key")
    os.environ.setdefault("SUPABASE_PUBLISHABLE_KEY", "test-publishable-key")
    os.environ.setdefault("SUPABASE_JWT_SECRET", _TEST_JWT_SECRET)
else:
    # For integration tests, load from .env
    from pathlib import Path

    from dotenv import load_dotenv

    env_path = Path(__file__).parent.parent / ".env"

    if not os.environ.get("CONFIRM_INTEGRATION_CREDENTIALS"):
        print(
            "\nIntegration tests will use REAL credentials from .env.\n"
            "Set CONFIRM_INTEGRATION_CREDENTIALS=yes to proceed.\n",
            file=sys.stderr,
        )
        pytest.exit(
            "Integration tests require CONFIRM_INTEGRATION_CREDENTIALS=yes",
            returncode=1,
        )

    load_dotenv(env_path, override=True)

from fastapi.testclient import TestClient  # noqa: E402

from pooppal.auth import create_access_token  # noqa: E402
from pooppal.config import get_settings  # noqa: E402
from pooppal.database import StoreError  # noqa: E402
from pooppal.main import app  # noqa: E402
from pooppal.models import (  # noqa: E402
    AuthenticatedUser,
    FriendshipRecord,
    FriendshipStatus,
    LogEntry,
    Profile,
)
from pooppal.rate_limit import limiter  # noqa: E402
from pooppal.session import SessionRegistry, get_registry  # noqa: E402

# Clearly fake ids that cannot collide with production rows
USER_A = "usr_TEST_ONLY_A"
USER_B = "usr_TEST_ONLY_B"
USER_C = "usr_TEST_ONLY_C"


class FakeStore:
    """In-memory stand-in for ``SupabaseStore``.

    ``fail[method] = message`` makes the next calls of ``method`` raise
    ``StoreError``. ``gates[method]`` is an ``asyncio.Event`` the call waits
    on before touching state, for interleaving tests.
    """

    def __init__(self):
        self.logs: dict[str, LogEntry] = {}
        self.profiles: dict[str, Profile] = {}
        self.friendships: dict[str, FriendshipRecord] = {}
        self.fail: dict[str, str] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.calls: list[str] = []
        self._ids = count(1)

    async def _enter(self, method: str) -> None:
        self.calls.append(method)
        gate = self.gates.get(method)
        if gate is not None:
            await gate.wait()
        if method in self.fail:
            raise StoreError(self.fail[method])

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    def add_log(self, log: LogEntry) -> LogEntry:
        self.logs[log.id] = log
        return log

    def add_profile(self, profile: Profile) -> Profile:
        self.profiles[profile.id] = profile
        return profile

    def add_friendship(self, user_id: str, friend_id: str, status=FriendshipStatus.pending) -> FriendshipRecord:
        record = FriendshipRecord(
            id=self._next_id("fr"),
            user_id=user_id,
            friend_id=friend_id,
            status=status,
            created_at=datetime.now(timezone.utc),
        )
        self.friendships[record.id] = record
        return record

    # Logs

    async def list_logs(self, user_id):
        await self._enter("list_logs")
        rows = [log for log in self.logs.values() if log.user_id == user_id]
        return sorted(rows, key=lambda log: log.occurred_at, reverse=True)

    async def list_logs_for_users(self, user_ids):
        await self._enter("list_logs_for_users")
        rows = [log for log in self.logs.values() if log.user_id in user_ids]
        return sorted(rows, key=lambda log: log.occurred_at, reverse=True)

    async def create_log(self, user_id, type, notes, occurred_at):
        await self._enter("create_log")
        log = LogEntry(
            id=self._next_id("log"),
            user_id=user_id,
            type=type,
            notes=notes,
            occurred_at=occurred_at,
        )
        self.logs[log.id] = log
        return log

    async def recreate_log(self, log):
        await self._enter("recreate_log")
        if log.id in self.logs:
            raise StoreError("duplicate key value violates unique constraint")
        self.logs[log.id] = log
        return log

    async def delete_log(self, log_id):
        await self._enter("delete_log")
        self.logs.pop(log_id, None)

    # Profiles

    async def find_profile_by_email(self, email):
        await self._enter("find_profile_by_email")
        for profile in self.profiles.values():
            if (profile.email or "").lower() == email.lower():
                return profile
        return None

    async def list_profiles(self, ids):
        await self._enter("list_profiles")
        return [self.profiles[i] for i in ids if i in self.profiles]

    async def upsert_profile(self, profile):
        await self._enter("upsert_profile")
        self.profiles[profile.id] = profile
        return profile

    # Friendships

    async def list_friendships(self, user_id):
        await self._enter("list_friendships")
        return [
            f for f in self.friendships.values()
            if f.user_id == user_id or f.friend_id == user_id
        ]

    async def create_friendship(self, user_id, friend_id):
        await self._enter("create_friendship")
        return self.add_friendship(user_id, friend_id)

    async def update_friendship_status(self, friendship_id, status=FriendshipStatus.accepted):
        await self._enter("update_friendship_status")
        record = self.friendships[friendship_id]
        self.friendships[friendship_id] = record.model_copy(update={"status": status})

    async def delete_friendship(self, friendship_id):
        await self._enter("delete_friendship")
        self.friendships.pop(friendship_id, None)

    async def ping(self):
        await self._enter("ping")
        return True


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def make_log():
    """Factory for log entries; ``occurred_at`` defaults to a fixed UTC instant."""
    ids = count(1)

    def _make(type=4, occurred_at=None, user_id=USER_A, notes="", id=None):
        return LogEntry(
            id=id or f"seed-{next(ids)}",
            user_id=user_id,
            type=type,
            notes=notes,
            occurred_at=occurred_at or datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc),
        )

    return _make


@pytest.fixture
def user_a():
    return AuthenticatedUser(id=USER_A, email="alice@example.com", user_metadata={"full_name": "Alice"})


@pytest.fixture
def user_b():
    return AuthenticatedUser(id=USER_B, email="bob@example.com")


@pytest.fixture
def registry(store):
    return SessionRegistry(store_factory=lambda: store, undo_window_seconds=5.0)


@pytest.fixture
def client(registry):
    """Test client whose sessions are backed by the fake store."""
    app.dependency_overrides[get_registry] = lambda: registry
    yield TestClient(app)
    app.dependency_overrides.pop(get_registry, None)


@pytest.fixture(autouse=True)
def reset_rate_limits():
    limiter.reset()
    yield
    limiter.reset()


def _headers_for(user_id: str, email: str, **metadata) -> dict:
    token = create_access_token(user_id, get_settings(), email=email, user_metadata=metadata)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers():
    """Auth headers for user A."""
    return _headers_for(USER_A, "alice@example.com", full_name="Alice")


@pytest.fixture
def auth_headers_b():
    return _headers_for(USER_B, "bob@example.com")
