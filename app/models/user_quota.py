"""
Per-user quota ledger. One row per user, keyed by the identity provider UID.
Counters are only lowered by the intake accept path and only raised through
the explicit quota update endpoint.
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.sql import func
from app.db.base import Base


class UserQuota(Base):
    __tablename__ = "user_quotas"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(255), ForeignKey("users.firebase_uid"), unique=True, index=True, nullable=False)
    user_email = Column(String(255), nullable=False)
    english_analysis_quota = Column(Integer, default=100, nullable=False)
    career_survey_quota = Column(Integer, default=5, nullable=False)
    premium_modules_quota = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "user_email": self.user_email,
            "english_analysis_quota": self.english_analysis_quota,
            "career_survey_quota": self.career_survey_quota,
            "premium_modules_quota": self.premium_modules_quota,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
