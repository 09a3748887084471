import os
from dotenv import load_dotenv

load_dotenv()

# Google publishes the signing keys for Firebase ID tokens at this JWKS endpoint
DEFAULT_FIREBASE_JWKS_URL = (
    "https://www.googleapis.com/service_accounts/v1/jwk/securetoken@system.gserviceaccount.com"
)


def _normalize_database_url(url: str) -> str:
    # Normalize postgres:// -> postgresql:// for SQLAlchemy
    if url.startswith("postgres://"):
        return "postgresql://" + url[10:]
    return url


class Settings:
    """Environment-driven settings, read once at import time."""

    def __init__(self):
        self.DATABASE_URL = _normalize_database_url(
            os.getenv("DATABASE_URL", "sqlite:///./english_analysis.db")
        )
        self.DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "10"))
        self.DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "20"))
        self.DB_POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", "30"))

        self.FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID", "")
        self.FIREBASE_JWKS_URL = os.getenv("FIREBASE_JWKS_URL", DEFAULT_FIREBASE_JWKS_URL)
        self.JWKS_CACHE_TTL = int(os.getenv("JWKS_CACHE_TTL", "3600"))

        origins = os.getenv("CORS_ORIGINS", "http://localhost:3000")
        self.CORS_ORIGINS = [o.strip() for o in origins.split(",") if o.strip()]

        self.RUN_MIGRATIONS_ON_STARTUP = os.getenv("RUN_MIGRATIONS_ON_STARTUP", "true").lower() in ("1", "true", "yes")


settings = Settings()
