import enum
from typing import Dict


class QuotaCategory(str, enum.Enum):
    """Quota categories tracked per user. Values are the ledger column names."""
    ENGLISH_ANALYSIS = "english_analysis_quota"
    CAREER_SURVEY = "career_survey_quota"
    PREMIUM_MODULES = "premium_modules_quota"


# Starting balances granted when a user's ledger row is first created
DEFAULT_QUOTAS: Dict[QuotaCategory, int] = {
    QuotaCategory.ENGLISH_ANALYSIS: 100,
    QuotaCategory.CAREER_SURVEY: 5,
    QuotaCategory.PREMIUM_MODULES: 0,
}
