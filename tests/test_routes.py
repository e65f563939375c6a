"""Test the HTTP surface against the in-memory store."""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from pooppal.config import get_settings
from pooppal.models import FriendshipStatus, Profile

USER_A = "usr_TEST_ONLY_A"
USER_B = "usr_TEST_ONLY_B"


@pytest.fixture
def bob(store):
    return store.add_profile(Profile(id=USER_B, email="bob@example.com", full_name="Bob"))


class TestService:
    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["service"] == "pooppal-backend"

    def test_stool_types(self, client):
        response = client.get("/stool-types")
        assert response.status_code == 200
        types = response.json()
        assert [t["type"] for t in types] == [1, 2, 3, 4, 5, 6, 7]
        assert types[3]["label"] == "Smooth"


class TestAuthRequired:
    """Every user route needs a valid bearer token."""

    @pytest.mark.parametrize("method,path", [
        ("get", "/logs"),
        ("post", "/session"),
        ("get", "/stats"),
        ("get", "/friends"),
    ])
    def test_missing_token(self, client, method, path):
        response = getattr(client, method)(path)
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_garbage_token(self, client):
        response = client.get("/logs", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401


class TestSessionRoutes:
    def test_sign_in(self, client, auth_headers, store, make_log):
        store.add_log(make_log())

        response = client.post("/session", headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["user_id"] == USER_A
        assert body["greeting_name"] == "Alice"
        assert body["log_count"] == 1
        assert body["errors"] == {}
        assert store.profiles[USER_A].email == "alice@example.com"

    def test_sign_in_reports_load_errors(self, client, auth_headers, store):
        store.fail["list_logs"] = "Request timed out"
        response = client.post("/session", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["errors"] == {"logs": "Request timed out"}

    def test_sign_out(self, client, auth_headers, registry):
        client.post("/session", headers=auth_headers)

        response = client.delete("/session", headers=auth_headers)

        assert response.status_code == 204
        assert registry.get(USER_A) is None


class TestLogRoutes:
    def test_add_and_list(self, client, auth_headers):
        created = client.post("/logs", json={"type": 4, "notes": "fine"}, headers=auth_headers)
        assert created.status_code == 201
        assert created.json()["type"] == 4

        listed = client.get("/logs", headers=auth_headers).json()
        assert listed["total"] == 1
        assert listed["logs"][0]["notes"] == "fine"

    @pytest.mark.parametrize("bad_type", [0, 8])
    def test_invalid_type(self, client, auth_headers, store, bad_type):
        response = client.post("/logs", json={"type": bad_type}, headers=auth_headers)
        assert response.status_code == 400
        assert "between 1 and 7" in response.json()["detail"]
        assert "create_log" not in store.calls

    def test_store_failure_is_502(self, client, auth_headers, store):
        store.fail["create_log"] = "Network error: offline"
        response = client.post("/logs", json={"type": 3}, headers=auth_headers)
        assert response.status_code == 502
        assert response.json()["detail"] == "Network error: offline"

    def test_delete_and_restore(self, client, auth_headers, store, make_log):
        store.add_log(make_log(id="l1"))

        deleted = client.delete("/logs/l1", headers=auth_headers)
        assert deleted.status_code == 200
        assert deleted.json()["deleted"] == "l1"
        assert "l1" not in store.logs

        restored = client.post("/logs/l1/restore", headers=auth_headers)
        assert restored.status_code == 200
        assert restored.json()["id"] == "l1"
        assert "l1" in store.logs

    def test_restore_after_window_is_gone(self, client, auth_headers, store, registry, make_log):
        store.add_log(make_log(id="l1"))
        client.delete("/logs/l1", headers=auth_headers)
        logs = registry.get(USER_A).logs
        logs.recently_deleted["l1"] = (logs.recently_deleted["l1"][0], logs._clock() - 60)

        response = client.post("/logs/l1/restore", headers=auth_headers)

        assert response.status_code == 410

    def test_delete_unknown(self, client, auth_headers):
        assert client.delete("/logs/missing", headers=auth_headers).status_code == 404

    def test_refresh_picks_up_new_rows(self, client, auth_headers, store, make_log):
        client.get("/logs", headers=auth_headers)
        store.add_log(make_log(id="l9"))

        assert client.get("/logs", headers=auth_headers).json()["total"] == 0
        assert client.get("/logs?refresh=true", headers=auth_headers).json()["total"] == 1


class TestStatsRoutes:
    def test_empty_stats(self, client, auth_headers):
        response = client.get("/stats", headers=auth_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["streak"] == 0
        assert body["avg_type"] is None
        assert body["health_score"] == 0
        assert body["best_period"]["label"] == "Morning"

    def test_stats_for_today(self, client, auth_headers, store, make_log):
        store.add_log(make_log(type=4, occurred_at=datetime.now(timezone.utc)))
        body = client.get("/stats?tz=UTC", headers=auth_headers).json()
        assert body["streak"] == 1
        assert body["today_count"] == 1
        assert body["health_score"] == 100

    def test_unknown_timezone(self, client, auth_headers):
        response = client.get("/stats?tz=Mars/Olympus_Mons", headers=auth_headers)
        assert response.status_code == 400


class TestFriendRoutes:
    def test_send_request(self, client, auth_headers, bob):
        response = client.post("/friends/requests", json={"email": "bob@example.com"}, headers=auth_headers)

        assert response.status_code == 201
        assert response.json()["friend_id"] == USER_B

        friends = client.get("/friends", headers=auth_headers).json()
        assert friends["outgoing"][0]["other_user_id"] == USER_B
        assert friends["outgoing"][0]["profile"]["full_name"] == "Bob"

    def test_add_self(self, client, auth_headers):
        response = client.post("/friends/requests", json={"email": "alice@example.com"}, headers=auth_headers)
        assert response.status_code == 400

    def test_unknown_email(self, client, auth_headers):
        response = client.post("/friends/requests", json={"email": "nobody@example.com"}, headers=auth_headers)
        assert response.status_code == 404

    def test_duplicate_request(self, client, auth_headers, store, bob):
        store.add_friendship(USER_B, USER_A)
        response = client.post("/friends/requests", json={"email": "bob@example.com"}, headers=auth_headers)
        assert response.status_code == 400
        assert len(store.friendships) == 1

    def test_accept_then_view_friend(self, client, auth_headers, store, bob, make_log):
        request = store.add_friendship(USER_B, USER_A)
        store.add_log(make_log(user_id=USER_B, occurred_at=datetime.now(timezone.utc) - timedelta(minutes=5)))

        accepted = client.post(f"/friends/requests/{request.id}/accept", headers=auth_headers)
        assert accepted.status_code == 200
        assert accepted.json()["accepted"][0]["other_user_id"] == USER_B
        assert store.friendships[request.id].status == FriendshipStatus.accepted

        logs = client.get(f"/friends/{USER_B}/logs", headers=auth_headers).json()
        assert logs["total"] == 1
        stats = client.get(f"/friends/{USER_B}/stats", headers=auth_headers)
        assert stats.status_code == 200
        assert stats.json()["total_logs"] == 1

    def test_friend_data_requires_acceptance(self, client, auth_headers, store, bob):
        store.add_friendship(USER_A, USER_B)
        assert client.get(f"/friends/{USER_B}/logs", headers=auth_headers).status_code == 404
        assert client.get(f"/friends/{USER_B}/stats", headers=auth_headers).status_code == 404

    def test_decline(self, client, auth_headers, store):
        request = store.add_friendship(USER_B, USER_A)
        response = client.delete(f"/friends/requests/{request.id}", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["incoming"] == []
        assert store.friendships == {}

    def test_friend_requests_are_rate_limited(self, client, auth_headers, monkeypatch):
        monkeypatch.setattr(get_settings(), "friend_request_rate", "2/minute")

        statuses = [
            client.post("/friends/requests", json={"email": "nobody@example.com"}, headers=auth_headers).status_code
            for _ in range(3)
        ]

        assert statuses == [404, 404, 429]


class TestHealth:
    def test_misconfigured_client_is_degraded(self, client):
        with patch("pooppal.main.get_store", side_effect=RuntimeError("Invalid URL")):
            response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"
        assert "Invalid URL" in response.json()["database"]

    def test_healthy(self, client, store):
        with patch("pooppal.main.get_store", return_value=store):
            response = client.get("/health")

        assert response.json() == {"status": "healthy", "database": "connected"}
