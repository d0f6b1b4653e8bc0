"""
tests/test_api_routes.py — FastAPI Route Integration Tests
============================================================
End-to-end flows through the TestClient against in-memory SQLite:
auth guards, the error envelope, and the main Q&A actions.
"""

from __future__ import annotations

import pytest

from conftest import DEFAULT_PASSWORD, auth, make_token
from stackit.constants import MAX_UPLOAD_BYTES

QUESTION = {
    "title": "How do I merge two dicts?",
    "content": "I have two dictionaries and want a single merged one.",
    "tags": ["python", "dict"],
}


# ===========================================================================
# Health endpoint
# ===========================================================================
class TestHealthEndpoint:
    def test_health_returns_ok(self, api_client):
        resp = api_client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


# ===========================================================================
# Accounts
# ===========================================================================
class TestAuthRoutes:
    def test_register_login_me(self, api_client):
        resp = api_client.post("/api/auth/register", json={
            "username": "newbie", "email": "newbie@example.com", "password": "Str0ng!pass",
        })
        assert resp.status_code == 201
        token = resp.json()["token"]

        resp = api_client.post("/api/auth/login", json={
            "email": "NEWBIE@example.com", "password": "Str0ng!pass",
        })
        assert resp.status_code == 200

        me = api_client.get("/api/auth/me", headers=auth(token)).json()
        assert me["username"] == "newbie"
        assert me["email"] == "newbie@example.com"

    def test_weak_password_uses_validation_envelope(self, api_client):
        resp = api_client.post("/api/auth/register", json={
            "username": "newbie", "email": "newbie@example.com", "password": "weak",
        })
        assert resp.status_code == 422
        body = resp.json()
        assert body["error"] == "validation"
        assert body["message"]

    def test_duplicate_registration_is_conflict(self, api_client, asker):
        resp = api_client.post("/api/auth/register", json={
            "username": "someone_else", "email": "alice@example.com", "password": DEFAULT_PASSWORD,
        })
        assert resp.status_code == 409
        assert resp.json() == {"error": "conflict", "message": "Email already registered"}

    def test_bad_credentials(self, api_client, asker):
        resp = api_client.post("/api/auth/login", json={
            "email": "alice@example.com", "password": "Wr0ng!pass",
        })
        assert resp.status_code == 401
        assert resp.json()["error"] == "unauthenticated"


# ===========================================================================
# Auth guards
# ===========================================================================
class TestAuthGuards:
    ADMIN_GET_ENDPOINTS = [
        "/api/admin/stats",
        "/api/admin/users",
        "/api/admin/questions",
        "/api/admin/audit",
    ]

    @pytest.mark.parametrize("endpoint", ADMIN_GET_ENDPOINTS)
    def test_admin_get_rejects_no_auth(self, api_client, endpoint):
        assert api_client.get(endpoint).status_code == 401

    @pytest.mark.parametrize("endpoint", ADMIN_GET_ENDPOINTS)
    def test_admin_get_rejects_invalid_token(self, api_client, endpoint):
        resp = api_client.get(endpoint, headers={"Authorization": "Bearer invalid"})
        assert resp.status_code == 401

    @pytest.mark.parametrize("endpoint", ADMIN_GET_ENDPOINTS)
    def test_admin_get_rejects_member(self, api_client, asker, endpoint):
        resp = api_client.get(endpoint, headers=auth(make_token(asker)))
        assert resp.status_code == 403

    @pytest.mark.parametrize("endpoint", ADMIN_GET_ENDPOINTS)
    def test_admin_get_allows_admin(self, api_client, admin, endpoint):
        resp = api_client.get(endpoint, headers=auth(make_token(admin, role="admin")))
        assert resp.status_code == 200

    def test_role_comes_from_database_not_token(self, api_client, asker):
        """A member holding a token that claims admin is still a member."""
        resp = api_client.get("/api/admin/stats", headers=auth(make_token(asker, role="admin")))
        assert resp.status_code == 403

    def test_posting_requires_token(self, api_client):
        assert api_client.post("/api/questions", json=QUESTION).status_code == 401

    def test_token_for_deleted_account(self, api_client):
        resp = api_client.get("/api/auth/me", headers=auth(make_token(9999)))
        assert resp.status_code == 401


# ===========================================================================
# Q&A flow
# ===========================================================================
class TestQuestionFlow:
    def test_ask_answer_vote_accept(self, api_client, asker, answerer, voter):
        asker_h = auth(make_token(asker))
        answerer_h = auth(make_token(answerer))

        resp = api_client.post("/api/questions", json=QUESTION, headers=asker_h)
        assert resp.status_code == 201
        qid = resp.json()["id"]

        resp = api_client.post(
            "/api/answers",
            json={"question_id": qid, "content": "Use the | operator on 3.9+."},
            headers=answerer_h,
        )
        assert resp.status_code == 201
        aid = resp.json()["id"]

        resp = api_client.post(
            "/api/vote",
            json={"item_type": "answer", "item_id": aid, "direction": "up"},
            headers=auth(make_token(voter)),
        )
        assert resp.status_code == 200
        assert resp.json()["upvoted_by"] == [voter]

        resp = api_client.put(f"/api/answers/{aid}/accept", headers=answerer_h)
        assert resp.status_code == 403

        resp = api_client.put(f"/api/answers/{aid}/accept", headers=asker_h)
        assert resp.status_code == 200
        resp = api_client.put(f"/api/answers/{aid}/accept", headers=asker_h)
        assert resp.status_code == 409

        profile = api_client.get(f"/api/users/{answerer}").json()
        assert profile["reputation"] == 100 + 10 + 50
        assert profile["answers_accepted"] == 1

        detail = api_client.get(f"/api/questions/{qid}", headers=asker_h).json()
        assert detail["question"]["has_accepted_answer"] is True
        assert detail["answers"][0]["is_accepted"] is True

        count = api_client.get("/api/notifications/count", headers=answerer_h).json()
        assert count == {"count": 1}

    def test_feed_and_tags(self, api_client, asker):
        api_client.post("/api/questions", json=QUESTION, headers=auth(make_token(asker)))

        feed = api_client.get("/api/questions", params={"filter": "unanswered"}).json()
        assert feed["pagination"]["total"] == 1
        assert feed["questions"][0]["tags"] == ["python", "dict"]

        tags = api_client.get("/api/tags").json()["tags"]
        assert {t["name"] for t in tags} == {"python", "dict"}

    def test_unknown_filter_is_validation_error(self, api_client):
        resp = api_client.get("/api/questions", params={"filter": "hot"})
        assert resp.status_code == 422
        assert resp.json()["error"] == "validation"

    def test_missing_question_is_not_found(self, api_client):
        resp = api_client.get("/api/questions/4040")
        assert resp.status_code == 404
        assert resp.json()["error"] == "not_found"

    def test_bad_vote_direction(self, api_client, voter, question_id):
        resp = api_client.post(
            "/api/vote",
            json={"item_type": "question", "item_id": question_id, "direction": "sideways"},
            headers=auth(make_token(voter)),
        )
        assert resp.status_code == 422


# ===========================================================================
# Notifications
# ===========================================================================
class TestNotificationRoutes:
    def test_read_flow(self, api_client, asker, answer_id):
        headers = auth(make_token(asker))
        notes = api_client.get("/api/notifications", headers=headers).json()["notifications"]
        assert len(notes) == 1

        resp = api_client.put(f"/api/notifications/{notes[0]['id']}/read", headers=headers)
        assert resp.json()["is_read"] is True

        resp = api_client.put("/api/notifications/read-all", headers=headers)
        assert resp.json() == {"updated": 0}


# ===========================================================================
# Moderation
# ===========================================================================
class TestModerationRoutes:
    def test_suspend_blocks_posting(self, api_client, admin, voter):
        admin_h = auth(make_token(admin, role="admin"))
        resp = api_client.put(
            f"/api/admin/users/{voter}/suspend", json={"days": 3}, headers=admin_h
        )
        assert resp.status_code == 200
        assert resp.json()["suspension_reason"] == "Violation of community guidelines"

        resp = api_client.post("/api/questions", json=QUESTION, headers=auth(make_token(voter)))
        assert resp.status_code == 403
        assert resp.json()["error"] == "forbidden"

        api_client.put(f"/api/admin/users/{voter}/unsuspend", headers=admin_h)
        resp = api_client.post("/api/questions", json=QUESTION, headers=auth(make_token(voter)))
        assert resp.status_code == 201

    def test_suspend_days_validated(self, api_client, admin, voter):
        resp = api_client.put(
            f"/api/admin/users/{voter}/suspend",
            json={"days": 400},
            headers=auth(make_token(admin, role="admin")),
        )
        assert resp.status_code == 422

    def test_master_is_untouchable(self, api_client, admin, master):
        resp = api_client.put(
            f"/api/admin/users/{master}/ban", headers=auth(make_token(admin, role="admin"))
        )
        assert resp.status_code == 403

    def test_admin_deletes_question(self, api_client, admin, question_id, answer_id):
        admin_h = auth(make_token(admin, role="admin"))
        resp = api_client.delete(f"/api/admin/questions/{question_id}", headers=admin_h)
        assert resp.status_code == 200
        assert api_client.get(f"/api/questions/{question_id}").status_code == 404

        audit = api_client.get("/api/admin/audit", headers=admin_h).json()
        assert audit["entries"][0]["target_table"] == "questions"


# ===========================================================================
# Uploads
# ===========================================================================
class TestUploadRoute:
    def test_uploaded_image_is_served_back(self, api_client, asker):
        payload = b"\x89PNG\r\n\x1a\n" + b"0" * 32
        resp = api_client.post(
            "/api/upload",
            files={"file": ("pic.png", payload, "image/png")},
            headers=auth(make_token(asker)),
        )
        assert resp.status_code == 201
        url = resp.json()["url"]

        served = api_client.get(url)
        assert served.status_code == 200
        assert served.content == payload

    def test_upload_rejects_oversized_body(self, api_client, asker):
        resp = api_client.post(
            "/api/upload",
            files={"file": ("big.png", b"0" * (MAX_UPLOAD_BYTES + 10), "image/png")},
            headers=auth(make_token(asker)),
        )
        assert resp.status_code == 422
        body = resp.json()
        assert body["error"] == "validation"
        assert "File too large" in body["message"]

    def test_upload_rejects_text(self, api_client, asker):
        resp = api_client.post(
            "/api/upload",
            files={"file": ("notes.txt", b"hello", "text/plain")},
            headers=auth(make_token(asker)),
        )
        assert resp.status_code == 422
        assert resp.json()["error"] == "validation"
