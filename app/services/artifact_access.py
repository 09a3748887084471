"""
Resolve a processed analysis request into the location of its PDF report.

Only the stored location is returned; turning it into a time-limited signed
URL is the storage service's job.
"""
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from app.core.exceptions import ArtifactMissingError, ExpiredError, NotFoundError, NotReadyError
from app.models.analysis_request import AnalysisRequest, RequestStatus
from app.schemas.analysis import DownloadLinkResponse


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def resolve_download(db: Session, user_id: str, request_id: str,
                     now: Optional[datetime] = None) -> DownloadLinkResponse:
    # Ownership is part of the lookup: another user's request is simply not found
    row = db.query(AnalysisRequest).filter(
        AnalysisRequest.request_id == request_id,
        AnalysisRequest.user_id == user_id,
    ).first()
    if not row:
        raise NotFoundError("Analysis not found", {"requestId": request_id})

    status = row.status
    if status is not RequestStatus.PROCESSED:
        raise NotReadyError(status.label)

    now = now or datetime.now(timezone.utc)
    if row.expires_at and _as_utc(row.expires_at) < now:
        raise ExpiredError(_as_utc(row.expires_at).isoformat())

    if not row.gcs_file_path:
        raise ArtifactMissingError()

    return DownloadLinkResponse(
        downloadUrl=row.gcs_file_path,
        bucket=row.gcs_bucket,
        expiresAt=row.expires_at,
    )
