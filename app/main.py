"""
English Analysis Backend API

Authenticates users with Firebase ID tokens, keeps their quota ledger and
queues english-analysis requests for the background worker.
"""
from dotenv import load_dotenv
load_dotenv()

import logging
import sys
from pathlib import Path
from typing import Optional

from alembic import command
from alembic.config import Config

# Configure logging once for the whole process; modules use logging.getLogger(__name__)
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)],
    force=True  # Override any existing configuration
)

logger = logging.getLogger(__name__)

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes import analysis, users
from app.core.config import settings
from app.core.exceptions import AppError, ValidationError
from app.db.base import Base
from app.db.session import engine
from app.dependencies.auth import FirebaseTokenVerifier, IdentityVerifier
# Import all models to ensure they're registered with Base
from app import models  # noqa: F401


def run_migrations() -> None:
    """Upgrade the schema to the latest Alembic revision against settings.DATABASE_URL."""
    project_root = Path(__file__).resolve().parent.parent
    alembic_ini = project_root / "alembic.ini"
    if not alembic_ini.exists():
        logger.warning("alembic.ini not found, schema left as created by create_all")
        return
    alembic_cfg = Config(str(alembic_ini))
    alembic_cfg.set_main_option("script_location", str(project_root / "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", settings.DATABASE_URL)
    try:
        command.upgrade(alembic_cfg, "head")
    except Exception:
        logger.exception("Schema upgrade failed")
        raise
    logger.info("Schema is at the latest revision")


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.error_code)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies are client errors like any other ValidationError."""
    details = [{"loc": list(err.get("loc", ())), "msg": err.get("msg")} for err in exc.errors()]
    logger.warning("Invalid body for %s %s: %s", request.method, request.url.path, details)
    return await app_error_handler(request, ValidationError("Invalid request body", {"details": details}))


def create_app(identity_verifier: Optional[IdentityVerifier] = None, run_startup_tasks: bool = True) -> FastAPI:
    """
    Build the application. The identity verifier is created once here (or at
    startup from settings) and shared by every request through app.state.
    """
    application = FastAPI(title="English Analysis API")
    application.state.identity_verifier = identity_verifier

    @application.on_event("startup")
    async def startup_event():
        if application.state.identity_verifier is None:
            application.state.identity_verifier = FirebaseTokenVerifier.from_settings()
            logger.info("Firebase token verifier initialized for project %s", settings.FIREBASE_PROJECT_ID)

        if not run_startup_tasks:
            return
        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=engine)
        if settings.RUN_MIGRATIONS_ON_STARTUP:
            logger.info("Running Alembic migrations...")
            run_migrations()

    application.add_exception_handler(AppError, app_error_handler)
    application.add_exception_handler(RequestValidationError, request_validation_handler)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(analysis.router, prefix="/api", tags=["Analysis"])
    application.include_router(users.router, prefix="/api/user", tags=["Users"])

    @application.get("/health")
    def health():
        return {"status": "ok"}

    return application


app = create_app()
