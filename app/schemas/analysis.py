from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import datetime


class AnalysisSubmission(BaseModel):
    # All optional so missing fields surface as our 400, not FastAPI's 422
    model_config = ConfigDict(populate_by_name=True)

    text: Optional[str] = None
    user_id: Optional[str] = Field(default=None, alias="userId")
    user_email: Optional[str] = Field(default=None, alias="userEmail")
    request_id: Optional[str] = Field(default=None, alias="requestId")
    timestamp: Optional[str] = None


class SubmissionTimestamps(BaseModel):
    client: str
    server: str


class SubmissionAccepted(BaseModel):
    success: bool = True
    assessmentId: int
    requestId: str
    message: str
    remainingQuota: int
    timestamps: SubmissionTimestamps


class AnalysisHistoryItem(BaseModel):
    request_id: str
    input_text: str
    gcs_file_path: Optional[str] = None
    status: str
    request_processed: str
    assessed_level: Optional[str] = None
    created_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


class AnalysisHistoryResponse(BaseModel):
    analyses: List[AnalysisHistoryItem]
    total: int


class DownloadLinkResponse(BaseModel):
    downloadUrl: str
    bucket: Optional[str] = None
    expiresAt: Optional[datetime] = None
