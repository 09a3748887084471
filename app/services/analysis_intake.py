"""
English analysis intake: validate a submission, charge the user's quota and
queue the text for the background worker.

The quota decrement and the request-row insert share one transaction. The
decrement is a conditional UPDATE (balance > 0), so an ACCEPTED row is only
ever committed together with the unit of quota it consumed.
"""
import logging
from datetime import datetime, timezone
from typing import NamedTuple, Optional

from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import (
    AppError,
    DuplicateRequestError,
    IntakeFailedError,
    QuotaExceededError,
    StorageError,
    UnauthorizedError,
    UserNotFoundError,
    ValidationError,
)
from app.core.quota_defaults import QuotaCategory
from app.dependencies.auth import Identity
from app.models.analysis_request import ASSESSED_LEVEL_PLACEHOLDER, AnalysisRequest, RequestStatus
from app.models.user import User
from app.schemas.analysis import AnalysisSubmission
from app.services import quota_ledger

logger = logging.getLogger(__name__)

ACCEPTED_MESSAGE = "Text submitted successfully. Processing will be done by background listener."
NO_QUOTA_ERROR = "No quota available"
NEVER_HAD_QUOTA_MESSAGE = "Please sign up or log in to get your free English analysis quota."
QUOTA_EXHAUSTED_MESSAGE = "You have exceeded your English analysis quota. Please purchase more credits."


class SubmissionFields(NamedTuple):
    text: str
    user_id: str
    user_email: str
    request_id: str
    timestamp: str


class IntakeResult(BaseModel):
    assessment_id: int
    request_id: str
    remaining_quota: int
    client_timestamp: str


def parse_client_timestamp(raw: str) -> datetime:
    """Parse an ISO-8601 timestamp as sent by browsers (trailing 'Z' allowed)."""
    value = raw.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise ValidationError("Invalid timestamp", {"field": "timestamp"})
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def validate_submission(submission: Optional[AnalysisSubmission]) -> SubmissionFields:
    if submission is None:
        submission = AnalysisSubmission()
    values = {
        "text": submission.text,
        "user_id": submission.user_id,
        "user_email": submission.user_email,
        "request_id": submission.request_id,
        "timestamp": submission.timestamp,
    }
    missing = [name for name, value in values.items() if value is None or not str(value).strip()]
    if missing:
        raise ValidationError("Missing required fields", {"missing": missing})
    return SubmissionFields(**values)


def _new_request(fields: SubmissionFields, created_at: datetime, status: RequestStatus) -> AnalysisRequest:
    return AnalysisRequest(
        request_id=fields.request_id,
        user_id=fields.user_id,
        user_email=fields.user_email,
        input_text=fields.text,
        request_processed=status,
        assessed_level=ASSESSED_LEVEL_PLACEHOLDER,
        created_at=created_at,
    )


def _find_by_request_id(db: Session, request_id: str) -> Optional[AnalysisRequest]:
    return db.query(AnalysisRequest).filter(AnalysisRequest.request_id == request_id).first()


def _raise_duplicate(existing: AnalysisRequest, user_id: str):
    if existing.user_id != user_id:
        # Someone else's request: confirm the collision only
        raise DuplicateRequestError(existing.request_id)
    raise DuplicateRequestError(existing.request_id, existing.id, existing.status.label)


def _quota_exhausted_message(db: Session, user_id: str) -> str:
    """A ledger that is missing or at zero never had quota; only an overdrawn one was exhausted."""
    _, current = quota_ledger.has_quota(db, user_id, QuotaCategory.ENGLISH_ANALYSIS)
    if current is None or current == 0:
        return NEVER_HAD_QUOTA_MESSAGE
    return QUOTA_EXHAUSTED_MESSAGE


def _commit_request(db: Session, row: AnalysisRequest) -> None:
    """Commit the pending request row; a unique-key race surfaces as a duplicate."""
    db.add(row)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()  # also undoes any quota decrement in this transaction
        existing = _find_by_request_id(db, row.request_id)
        if existing:
            logger.info("[INTAKE] Concurrent duplicate requestId %s rejected", row.request_id)
            _raise_duplicate(existing, row.user_id)
        raise
    db.refresh(row)


def _accept_or_reject(db: Session, fields: SubmissionFields, created_at: datetime) -> IntakeResult:
    if not db.query(User.id).filter(User.firebase_uid == fields.user_id).first():
        raise UserNotFoundError(fields.user_id)

    existing = _find_by_request_id(db, fields.request_id)
    if existing:
        logger.info("[INTAKE] Duplicate requestId %s for user %s rejected", fields.request_id, fields.user_id)
        _raise_duplicate(existing, fields.user_id)

    remaining = quota_ledger.try_consume(db, fields.user_id, QuotaCategory.ENGLISH_ANALYSIS)
    if remaining is None:
        message = _quota_exhausted_message(db, fields.user_id)
        _commit_request(db, _new_request(fields, created_at, RequestStatus.QUOTA_EXCEEDED))
        logger.info("[INTAKE] Request %s rejected for user %s: no quota", fields.request_id, fields.user_id)
        raise QuotaExceededError(
            NO_QUOTA_ERROR,
            {
                "success": False,
                "message": message,
                "remainingQuota": 0,
                "requestId": fields.request_id,
            },
        )

    row = _new_request(fields, created_at, RequestStatus.ACCEPTED)
    _commit_request(db, row)
    logger.info("[INTAKE] Request %s accepted for user %s (%d remaining)", fields.request_id, fields.user_id, remaining)
    return IntakeResult(
        assessment_id=row.id,
        request_id=fields.request_id,
        remaining_quota=remaining,
        client_timestamp=fields.timestamp,
    )


def record_failed_request(db: Session, fields: SubmissionFields, created_at: datetime) -> Optional[str]:
    """
    Best-effort insert of a FAILED row. Never raises; returns the secondary
    error message when the write itself fails.
    """
    try:
        db.add(_new_request(fields, created_at, RequestStatus.FAILED))
        db.commit()
        return None
    except Exception as e:
        db.rollback()
        logger.error("[INTAKE] Failed to save error record for %s: %s", fields.request_id, e)
        return str(e)


def submit(db: Session, identity: Identity, submission: Optional[AnalysisSubmission]) -> IntakeResult:
    """
    Accept or reject one english-analysis submission.

    Raises:
        ValidationError: a required field is missing or the timestamp is unparseable
        UnauthorizedError: the body's userId is not the token's user
        UserNotFoundError: the user was never registered
        DuplicateRequestError: the requestId was already used (quota untouched)
        QuotaExceededError: no quota left; a quota_exceeded row was stored
        StorageError: transient database failure, safe to retry
        IntakeFailedError: anything else, after trying to store a failed row
    """
    fields = validate_submission(submission)
    if fields.user_id != identity.uid:
        logger.warning("[INTAKE] Token user %s submitted for user %s", identity.uid, fields.user_id)
        raise UnauthorizedError("Token does not match userId")
    created_at = parse_client_timestamp(fields.timestamp)

    try:
        return _accept_or_reject(db, fields, created_at)
    except AppError:
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("[INTAKE] Database error for request %s: %s", fields.request_id, e)
        raise StorageError(extra={"success": False, "requestId": fields.request_id})
    except Exception as e:
        db.rollback()
        logger.exception("[INTAKE] Unexpected error for request %s", fields.request_id)
        secondary = record_failed_request(db, fields, created_at)
        raise IntakeFailedError(fields.request_id, str(e), secondary is None, secondary)
