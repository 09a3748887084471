"""Read-only views over a user's english analysis requests."""
from typing import List

from sqlalchemy.orm import Session

from app.models.analysis_request import AnalysisRequest
from app.schemas.analysis import AnalysisHistoryItem


def list_for_user(db: Session, user_id: str) -> List[AnalysisHistoryItem]:
    """All of the user's requests, newest first. Never returns another user's rows."""
    rows = (
        db.query(AnalysisRequest)
        .filter(AnalysisRequest.user_id == user_id)
        .order_by(AnalysisRequest.created_at.desc(), AnalysisRequest.id.desc())
        .all()
    )
    return [
        AnalysisHistoryItem(
            request_id=row.request_id,
            input_text=row.input_text,
            gcs_file_path=row.gcs_file_path,
            status=row.status.label,
            request_processed=row.status.value,
            assessed_level=row.assessed_level,
            created_at=row.created_at,
            processed_at=row.processed_at,
            expires_at=row.expires_at,
        )
        for row in rows
    ]
