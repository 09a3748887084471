from pydantic import BaseModel
from typing import Optional


class UserCreateRequest(BaseModel):
    phone: Optional[str] = None


class QuotaUpdate(BaseModel):
    english_analysis_quota: Optional[int] = None
    career_survey_quota: Optional[int] = None
    premium_modules_quota: Optional[int] = None
