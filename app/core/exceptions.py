"""
Domain errors raised by the services and rendered by a single handler in app.main.

Every error carries a machine-readable code and the HTTP status it maps to, so
services stay free of FastAPI types and routes stay free of status bookkeeping.
"""
from typing import Any, Dict, Optional


class AppError(Exception):
    """Base exception for the analysis backend."""

    status_code = 500
    error_code = "INTERNAL_ERROR"

    def __init__(self, message: str, extra: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.extra = extra or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        body = {"error": self.message, "code": self.error_code}
        body.update(self.extra)
        return body


class UnauthorizedError(AppError):
    status_code = 401
    error_code = "UNAUTHORIZED"

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class ValidationError(AppError):
    status_code = 400
    error_code = "VALIDATION_ERROR"


class QuotaExceededError(AppError):
    status_code = 429
    error_code = "QUOTA_EXCEEDED"


class NotFoundError(AppError):
    status_code = 404
    error_code = "NOT_FOUND"


class RecordNotFoundError(NotFoundError):
    error_code = "RECORD_NOT_FOUND"


class UserNotFoundError(NotFoundError):
    error_code = "USER_NOT_FOUND"

    def __init__(self, user_id: str) -> None:
        super().__init__("User not found", {"userId": user_id})


class DuplicateRequestError(AppError):
    status_code = 409
    error_code = "DUPLICATE_REQUEST"

    def __init__(self, request_id: str, assessment_id: Optional[int] = None, status: Optional[str] = None) -> None:
        extra: Dict[str, Any] = {"requestId": request_id}
        if assessment_id is not None:
            extra.update({"assessmentId": assessment_id, "status": status})
        super().__init__("A request with this requestId was already submitted", extra)


class NotReadyError(AppError):
    status_code = 400
    error_code = "NOT_READY"

    def __init__(self, status: str) -> None:
        super().__init__("Analysis not yet processed", {"status": status})


class ExpiredError(AppError):
    status_code = 410
    error_code = "EXPIRED"

    def __init__(self, expires_at: Optional[str] = None) -> None:
        super().__init__("PDF has expired", {"expiresAt": expires_at})


class ArtifactMissingError(AppError):
    status_code = 404
    error_code = "ARTIFACT_MISSING"

    def __init__(self) -> None:
        super().__init__("PDF not available")


class StorageError(AppError):
    """Transient database fault. Callers may retry the same request."""

    status_code = 500
    error_code = "STORAGE_ERROR"

    def __init__(self, message: str = "Database connection failed. Please try again later.",
                 extra: Optional[Dict[str, Any]] = None) -> None:
        payload = {"retryable": True}
        payload.update(extra or {})
        super().__init__(message, payload)


class IdentityServiceUnavailableError(AppError):
    """The identity provider's signing keys could not be fetched."""

    status_code = 503
    error_code = "AUTH_UNAVAILABLE"

    def __init__(self) -> None:
        super().__init__(
            "Authentication service temporarily unavailable. Please try again in a moment.",
            {"retryable": True},
        )


class IntakeFailedError(AppError):
    """
    Unexpected intake failure. Reports the primary error together with the
    outcome of the attempt to record a 'failed' request row.
    """

    status_code = 500
    error_code = "INTAKE_FAILED"

    def __init__(self, request_id: str, primary_error: str, failure_recorded: bool,
                 secondary_error: Optional[str] = None) -> None:
        super().__init__(
            "Internal server error",
            {
                "success": False,
                "requestId": request_id,
                "primaryError": primary_error,
                "failureRecorded": failure_recorded,
                "secondaryError": secondary_error,
            },
        )
        self.primary_error = primary_error
        self.failure_recorded = failure_recorded
        self.secondary_error = secondary_error
