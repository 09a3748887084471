"""
English analysis requests and their processing lifecycle.

Rows are inserted by the intake endpoint and later updated exactly once by the
external background worker, which sets request_processed='yes', the assessed
level, the report location and the expiry.
"""
import enum
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Enum as SAEnum
from sqlalchemy.sql import func
from app.db.base import Base


class RequestStatus(str, enum.Enum):
    """
    Lifecycle of an analysis request.

    Stored values keep the vocabulary the background worker reads and writes:
    an accepted-but-unprocessed row is 'no', a processed one is 'yes'.
    """
    PENDING = "pending"
    ACCEPTED = "no"
    PROCESSED = "yes"
    QUOTA_EXCEEDED = "quota_exceeded"
    FAILED = "failed"

    @property
    def label(self) -> str:
        return self.name.lower()

    @classmethod
    def parse(cls, raw: str) -> "RequestStatus":
        for member in cls:
            if member.value == raw or member.label == raw:
                return member
        raise ValueError(f"Unknown request status: {raw!r}")


ASSESSED_LEVEL_PLACEHOLDER = "Pending"


class AnalysisRequest(Base):
    __tablename__ = "english_analysis_requests"

    id = Column(Integer, primary_key=True, index=True)
    request_id = Column(String(255), unique=True, index=True, nullable=False)  # Client-generated
    user_id = Column(String(255), ForeignKey("users.firebase_uid"), index=True, nullable=False)
    user_email = Column(String(255), nullable=False)
    input_text = Column(Text, nullable=False)
    request_processed = Column(
        SAEnum(
            RequestStatus,
            name="request_status",
            native_enum=False,  # Plain VARCHAR so the worker can keep writing 'yes'/'no'
            values_callable=lambda e: [m.value for m in e],
            length=32,
        ),
        nullable=False,
        default=RequestStatus.PENDING,
    )
    assessed_level = Column(String(50), nullable=False, default=ASSESSED_LEVEL_PLACEHOLDER)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    gcs_file_path = Column(String, nullable=True)  # Report location written by the worker
    gcs_bucket = Column(String(255), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def status(self) -> RequestStatus:
        value = self.request_processed
        if isinstance(value, RequestStatus):
            return value
        return RequestStatus.parse(value)
