"""Tests for user registration and quota endpoints."""

from __future__ import annotations

from app.models import User, UserQuota
from tests.conftest import auth_header


def _count(db, model, **filters) -> int:
    db.expire_all()
    return db.query(model).filter_by(**filters).count()


class TestCreateUser:
    def test_creates_user_and_default_quota(self, client, verifier, db):
        token = verifier.issue("alice", "alice@example.com")

        response = client.post("/api/user/create", json={"phone": "+15550100"}, headers=auth_header(token))

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["user"]["firebase_uid"] == "alice"
        assert data["user"]["phone"] == "+15550100"
        quota = db.query(UserQuota).filter_by(user_id="alice").one()
        assert (quota.english_analysis_quota, quota.career_survey_quota, quota.premium_modules_quota) == (100, 5, 0)

    def test_is_idempotent(self, client, verifier, db):
        token = verifier.issue("alice", "alice@example.com")
        client.post("/api/user/create", json={}, headers=auth_header(token))
        client.post(
            "/api/user/quotas", json={"english_analysis_quota": 3}, headers=auth_header(token)
        )

        response = client.post("/api/user/create", json={"phone": "+15550199"}, headers=auth_header(token))

        assert response.status_code == 200
        assert response.json() == {"message": "User already exists", "userId": "alice"}
        assert _count(db, User, firebase_uid="alice") == 1
        assert _count(db, UserQuota, user_id="alice") == 1
        db.expire_all()
        assert db.query(User).filter_by(firebase_uid="alice").one().phone is None
        assert db.query(UserQuota).filter_by(user_id="alice").one().english_analysis_quota == 3

    def test_body_is_optional(self, client, verifier):
        response = client.post("/api/user/create", headers=auth_header(verifier.issue("alice", "a@example.com")))

        assert response.status_code == 200

    def test_token_without_email_is_rejected(self, client, verifier, db):
        response = client.post("/api/user/create", json={}, headers=auth_header(verifier.issue("alice")))

        assert response.status_code == 400
        assert response.json()["error"] == "Email not found in token"
        assert _count(db, User) == 0

    def test_requires_auth(self, client):
        assert client.post("/api/user/create", json={}).status_code == 401


class TestQuotaEndpoints:
    def test_get_returns_existing_ledger(self, client, verifier, make_user):
        make_user("alice", english_quota=42)

        response = client.get("/api/user/quotas", headers=auth_header(verifier.issue("alice")))

        assert response.status_code == 200
        assert response.json()["english_analysis_quota"] == 42

    def test_get_lazily_creates_ledger(self, client, verifier, db, make_user):
        make_user("alice", english_quota=None)

        response = client.get("/api/user/quotas", headers=auth_header(verifier.issue("alice")))

        assert response.status_code == 200
        assert response.json()["english_analysis_quota"] == 100
        assert _count(db, UserQuota, user_id="alice") == 1

    def test_get_unknown_user_is_404(self, client, verifier):
        response = client.get("/api/user/quotas", headers=auth_header(verifier.issue("ghost")))

        assert response.status_code == 404
        assert response.json()["error"] == "User not found"

    def test_post_applies_partial_update(self, client, verifier, make_user):
        make_user("alice", english_quota=10)

        response = client.post(
            "/api/user/quotas",
            json={"premium_modules_quota": 2},
            headers=auth_header(verifier.issue("alice")),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["english_analysis_quota"] == 10
        assert data["career_survey_quota"] == 5
        assert data["premium_modules_quota"] == 2

    def test_post_without_ledger_is_404(self, client, verifier, make_user):
        make_user("alice", english_quota=None)

        response = client.post(
            "/api/user/quotas",
            json={"english_analysis_quota": 5},
            headers=auth_header(verifier.issue("alice")),
        )

        assert response.status_code == 404
        assert response.json()["error"] == "User quota not found"

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}
