"""
English analysis endpoints: submission, history and report download.
"""
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import StorageError
from app.db.session import get_db
from app.dependencies.auth import Identity, get_current_identity
from app.schemas.analysis import (
    AnalysisHistoryResponse,
    AnalysisSubmission,
    DownloadLinkResponse,
    SubmissionAccepted,
    SubmissionTimestamps,
)
from app.services import analysis_history, analysis_intake, artifact_access

router = APIRouter()


@router.post("/evaluate-english-levels", response_model=SubmissionAccepted)
def evaluate_english_levels(
    submission: Optional[AnalysisSubmission] = None,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    """Queue a text for english-level analysis, charging one unit of quota."""
    result = analysis_intake.submit(db, identity, submission)
    return SubmissionAccepted(
        assessmentId=result.assessment_id,
        requestId=result.request_id,
        message=analysis_intake.ACCEPTED_MESSAGE,
        remainingQuota=result.remaining_quota,
        timestamps=SubmissionTimestamps(
            client=result.client_timestamp,
            server=datetime.now(timezone.utc).isoformat(),
        ),
    )


@router.get("/user/analysis-history", response_model=AnalysisHistoryResponse)
def get_analysis_history(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    """Get the current user's analysis requests, newest first."""
    try:
        analyses = analysis_history.list_for_user(db, identity.uid)
    except SQLAlchemyError:
        raise StorageError("Failed to get analysis history")
    return AnalysisHistoryResponse(analyses=analyses, total=len(analyses))


@router.get("/download-pdf/{request_id}", response_model=DownloadLinkResponse)
def get_download_link(
    request_id: str,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    """Resolve the report location for one of the current user's processed requests."""
    try:
        return artifact_access.resolve_download(db, identity.uid, request_id)
    except SQLAlchemyError:
        raise StorageError("Failed to get download URL")
