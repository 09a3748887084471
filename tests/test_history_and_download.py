"""Tests for analysis history and report download resolution."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from app.core.exceptions import ArtifactMissingError, ExpiredError, NotFoundError, NotReadyError
from app.models import RequestStatus
from app.services import analysis_history, artifact_access
from tests.conftest import auth_header

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class TestListForUser:
    def test_newest_first_and_only_own_rows(self, db, make_user, make_request):
        make_user("alice")
        make_user("bob")
        make_request("alice", "old", created_at=NOW - timedelta(days=2))
        make_request("alice", "new", created_at=NOW)
        make_request("alice", "mid", created_at=NOW - timedelta(days=1))
        make_request("bob", "bobs", created_at=NOW + timedelta(days=1))

        items = analysis_history.list_for_user(db, "alice")

        assert [i.request_id for i in items] == ["new", "mid", "old"]
        created = [i.created_at for i in items]
        assert all(a > b for a, b in zip(created, created[1:]))

    def test_projection_exposes_status_and_artifact(self, db, make_user, make_request):
        make_user("alice")
        make_request(
            "alice",
            "done",
            status=RequestStatus.PROCESSED,
            assessed_level="B2",
            gcs_file_path="reports/done.pdf",
            processed_at=NOW,
        )

        (item,) = analysis_history.list_for_user(db, "alice")

        assert item.status == "processed"
        assert item.request_processed == "yes"
        assert item.assessed_level == "B2"
        assert item.gcs_file_path == "reports/done.pdf"
        assert item.processed_at is not None

    def test_empty_history(self, db, make_user):
        make_user("alice")

        assert analysis_history.list_for_user(db, "alice") == []


class TestResolveDownload:
    def test_returns_location_for_processed_request(self, db, make_user, make_request):
        make_user("alice")
        make_request(
            "alice",
            "r1",
            status=RequestStatus.PROCESSED,
            gcs_file_path="reports/r1.pdf",
            gcs_bucket="analysis-reports",
            expires_at=NOW + timedelta(days=7),
        )

        link = artifact_access.resolve_download(db, "alice", "r1", now=NOW)

        assert link.downloadUrl == "reports/r1.pdf"
        assert link.bucket == "analysis-reports"
        assert link.expiresAt is not None

    def test_other_users_request_is_not_found(self, db, make_user, make_request):
        make_user("alice")
        make_user("bob")
        make_request("bob", "r1", status=RequestStatus.PROCESSED, gcs_file_path="reports/r1.pdf")

        with pytest.raises(NotFoundError):
            artifact_access.resolve_download(db, "alice", "r1", now=NOW)

    @pytest.mark.parametrize(
        "status", [RequestStatus.ACCEPTED, RequestStatus.QUOTA_EXCEEDED, RequestStatus.FAILED, RequestStatus.PENDING]
    )
    def test_unprocessed_request_is_not_ready(self, db, make_user, make_request, status):
        make_user("alice")
        make_request("alice", "r1", status=status)

        with pytest.raises(NotReadyError) as exc_info:
            artifact_access.resolve_download(db, "alice", "r1", now=NOW)

        assert exc_info.value.extra["status"] == status.label

    def test_expired_even_when_processed_with_artifact(self, db, make_user, make_request):
        make_user("alice")
        make_request(
            "alice",
            "r1",
            status=RequestStatus.PROCESSED,
            gcs_file_path="reports/r1.pdf",
            expires_at=NOW - timedelta(seconds=1),
        )

        with pytest.raises(ExpiredError):
            artifact_access.resolve_download(db, "alice", "r1", now=NOW)

    def test_processed_without_artifact(self, db, make_user, make_request):
        make_user("alice")
        make_request("alice", "r1", status=RequestStatus.PROCESSED)

        with pytest.raises(ArtifactMissingError):
            artifact_access.resolve_download(db, "alice", "r1", now=NOW)


class TestEndpoints:
    def test_history_endpoint(self, client, verifier, make_user, make_request):
        make_user("alice")
        make_request("alice", "r1", created_at=NOW - timedelta(hours=1))
        make_request("alice", "r2", created_at=NOW)

        response = client.get("/api/user/analysis-history", headers=auth_header(verifier.issue("alice")))

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert [a["request_id"] for a in data["analyses"]] == ["r2", "r1"]
        assert data["analyses"][0]["status"] == "accepted"

    def test_history_requires_auth(self, client):
        response = client.get("/api/user/analysis-history")

        assert response.status_code == 401

    def test_download_endpoint_status_codes(self, client, verifier, make_user, make_request):
        make_user("alice")
        far_future = datetime.now(timezone.utc) + timedelta(days=30)
        make_request("alice", "ready", status=RequestStatus.PROCESSED, gcs_file_path="reports/ready.pdf",
                     gcs_bucket="bucket", expires_at=far_future)
        make_request("alice", "queued")
        make_request("alice", "stale", status=RequestStatus.PROCESSED, gcs_file_path="reports/stale.pdf",
                     expires_at=datetime(2020, 1, 1, tzinfo=timezone.utc))
        make_request("alice", "empty", status=RequestStatus.PROCESSED)
        headers = auth_header(verifier.issue("alice"))

        ready = client.get("/api/download-pdf/ready", headers=headers)
        assert ready.status_code == 200
        assert ready.json()["downloadUrl"] == "reports/ready.pdf"
        assert ready.json()["bucket"] == "bucket"

        queued = client.get("/api/download-pdf/queued", headers=headers)
        assert queued.status_code == 400
        assert queued.json()["status"] == "accepted"

        assert client.get("/api/download-pdf/stale", headers=headers).status_code == 410
        assert client.get("/api/download-pdf/empty", headers=headers).status_code == 404
        assert client.get("/api/download-pdf/missing", headers=headers).status_code == 404
