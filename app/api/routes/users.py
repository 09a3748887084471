from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import StorageError
from app.core.quota_defaults import QuotaCategory
from app.db.session import get_db
from app.dependencies.auth import Identity, get_current_identity
from app.schemas.user import QuotaUpdate, UserCreateRequest
from app.services import quota_ledger, user_registry

router = APIRouter()


def _user_dict(user) -> dict:
    return {
        "id": user.id,
        "firebase_uid": user.firebase_uid,
        "email": user.email,
        "phone": user.phone,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


@router.post("/create")
def create_user(
    payload: Optional[UserCreateRequest] = None,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    """Register the signed-in user with default quotas. Safe to call on every login."""
    try:
        user, created = user_registry.create_user(db, identity, payload.phone if payload else None)
    except SQLAlchemyError:
        db.rollback()
        raise StorageError("Failed to create user")

    if not created:
        return {"message": "User already exists", "userId": identity.uid}
    return {
        "success": True,
        "message": "User created successfully",
        "user": _user_dict(user),
    }


@router.get("/quotas")
def get_user_quotas(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    """Get the current user's quotas, creating the default ledger on first access."""
    try:
        record = quota_ledger.get_or_create(db, identity.uid)
    except SQLAlchemyError:
        db.rollback()
        raise StorageError("Failed to get user quotas")
    return record.to_dict()


@router.post("/quotas")
def update_user_quotas(
    payload: QuotaUpdate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    """Update user quotas (for admin use or purchases). Omitted categories are left unchanged."""
    values = {
        QuotaCategory.ENGLISH_ANALYSIS: payload.english_analysis_quota,
        QuotaCategory.CAREER_SURVEY: payload.career_survey_quota,
        QuotaCategory.PREMIUM_MODULES: payload.premium_modules_quota,
    }
    try:
        record = quota_ledger.update_quotas(db, identity.uid, values)
    except SQLAlchemyError:
        db.rollback()
        raise StorageError("Failed to update user quotas")
    return record.to_dict()
