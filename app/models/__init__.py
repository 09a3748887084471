from app.models.user import User
from app.models.user_quota import UserQuota
from app.models.analysis_request import AnalysisRequest, RequestStatus

__all__ = [
    "User",
    "UserQuota",
    "AnalysisRequest",
    "RequestStatus",
]
