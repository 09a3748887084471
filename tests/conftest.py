"""Shared fixtures: in-memory database, fake identity verifier and API client."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app import models  # noqa: F401 - register tables with Base
from app.core.exceptions import UnauthorizedError
from app.db.base import Base
from app.db.session import get_db
from app.dependencies.auth import Identity, IdentityVerifier
from app.main import create_app
from app.models import AnalysisRequest, RequestStatus, User, UserQuota


class FakeVerifier(IdentityVerifier):
    """Accepts only tokens registered with `issue`."""

    def __init__(self):
        self.tokens: dict[str, Identity] = {}

    def issue(self, uid: str, email: str | None = None) -> str:
        token = f"header.{uid}.signature"
        self.tokens[token] = Identity(uid=uid, email=email)
        return token

    def verify(self, token: str) -> Identity:
        identity = self.tokens.get(token)
        if identity is None:
            raise UnauthorizedError("Invalid token")
        return identity


@pytest.fixture
def engine():
    """Single-connection in-memory SQLite shared by the test and the app."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def verifier():
    return FakeVerifier()


@pytest.fixture
def client(session_factory, verifier):
    application = create_app(identity_verifier=verifier, run_startup_tasks=False)

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    application.dependency_overrides[get_db] = override_get_db
    return TestClient(application)


@pytest.fixture
def make_user(db):
    """Create a user, optionally with a quota ledger row."""

    def _make_user(uid: str, email: str | None = None, english_quota: int | None = 100) -> User:
        email = email or f"{uid}@example.com"
        user = User(firebase_uid=uid, email=email)
        db.add(user)
        if english_quota is not None:
            db.add(
                UserQuota(
                    user_id=uid,
                    user_email=email,
                    english_analysis_quota=english_quota,
                    career_survey_quota=5,
                    premium_modules_quota=0,
                )
            )
        db.commit()
        return user

    return _make_user


@pytest.fixture
def make_request(db):
    """Insert an analysis request row directly, as the background worker would leave it."""

    def _make_request(
        uid: str,
        request_id: str,
        status: RequestStatus = RequestStatus.ACCEPTED,
        created_at: datetime | None = None,
        **fields,
    ) -> AnalysisRequest:
        row = AnalysisRequest(
            request_id=request_id,
            user_id=uid,
            user_email=f"{uid}@example.com",
            input_text=fields.pop("input_text", "Some text"),
            request_processed=status,
            assessed_level=fields.pop("assessed_level", "Pending"),
            created_at=created_at or datetime.now(timezone.utc),
            **fields,
        )
        db.add(row)
        db.commit()
        return row

    return _make_request


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
