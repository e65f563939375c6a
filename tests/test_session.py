"""Tests for per-user sessions."""

import asyncio

import pytest

from pooppal.session import SessionRegistry, UserSession

USER_A = "usr_TEST_ONLY_A"
USER_B = "usr_TEST_ONLY_B"


class TestUserSession:
    """Test sign-in and sign-out of a single session."""

    @pytest.mark.asyncio
    async def test_sign_in_upserts_profile_and_loads(self, store, user_a, make_log):
        store.add_log(make_log())
        store.add_friendship(USER_B, USER_A)
        session = UserSession(user_a, store)

        await session.sign_in()

        assert session.signed_in
        assert store.profiles[USER_A].full_name == "Alice"
        assert len(session.logs.logs) == 1
        assert len(session.friends.partition.incoming) == 1
        assert session.greeting_name == "Alice"
        assert session.errors == {}

    @pytest.mark.asyncio
    async def test_error_domains_are_independent(self, store, user_a):
        store.fail["list_friendships"] = "friends unavailable"
        session = UserSession(user_a, store)

        await session.sign_in()

        assert session.errors == {"friends": "friends unavailable"}
        assert session.logs.error is None

    @pytest.mark.asyncio
    async def test_profile_failure_does_not_block_sign_in(self, store, user_a):
        store.fail["upsert_profile"] = "permission denied"
        session = UserSession(user_a, store)

        await session.sign_in()

        assert session.signed_in
        assert session.errors == {"profile": "permission denied"}
        assert session.greeting_name == "Alice"

    @pytest.mark.asyncio
    async def test_sign_out_clears_collections(self, store, user_a, make_log):
        store.add_log(make_log())
        session = UserSession(user_a, store)
        await session.sign_in()

        session.sign_out()

        assert not session.signed_in
        assert session.logs.logs == []
        assert session.friends.friendships == []
        assert session.profile is None


class TestSessionRegistry:
    """Test that sessions are per user and replaced on sign-in."""

    @pytest.mark.asyncio
    async def test_sessions_are_per_user(self, registry, user_a, user_b, make_log, store):
        store.add_log(make_log(user_id=USER_A))

        a = await registry.get_or_sign_in(user_a)
        b = await registry.get_or_sign_in(user_b)

        assert a is not b
        assert len(a.logs.logs) == 1
        assert b.logs.logs == []
        assert len(registry) == 2

    @pytest.mark.asyncio
    async def test_get_or_sign_in_reuses_session(self, registry, user_a):
        first = await registry.get_or_sign_in(user_a)
        assert await registry.get_or_sign_in(user_a) is first

    @pytest.mark.asyncio
    async def test_concurrent_first_requests_share_one_session(self, registry, store, user_a, make_log):
        """Parallel first requests from one user sign in once and see the same collections."""
        store.add_log(make_log())
        store.gates["upsert_profile"] = asyncio.Event()

        first = asyncio.create_task(registry.get_or_sign_in(user_a))
        second = asyncio.create_task(registry.get_or_sign_in(user_a))
        await asyncio.sleep(0)
        store.gates["upsert_profile"].set()
        s1, s2 = await asyncio.gather(first, second)

        assert s1 is s2
        assert s1.signed_in
        assert registry.get(USER_A) is s1
        assert store.calls.count("upsert_profile") == 1
        assert len(s1.logs.logs) == 1

    @pytest.mark.asyncio
    async def test_sign_in_replaces_session(self, registry, user_a):
        first = await registry.sign_in(user_a)
        second = await registry.sign_in(user_a)

        assert second is not first
        assert not first.signed_in
        assert registry.get(USER_A) is second

    @pytest.mark.asyncio
    async def test_sign_out(self, store, user_a):
        registry = SessionRegistry(store_factory=lambda: store)
        await registry.sign_in(user_a)

        assert registry.sign_out(USER_A) is True
        assert registry.get(USER_A) is None
        assert registry.sign_out(USER_A) is False
