"""
Service for managing the per-user quota ledger.
Handles lazy ledger creation, availability checks, consumption and partial updates.
"""
import logging
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import RecordNotFoundError, UserNotFoundError, ValidationError
from app.core.quota_defaults import DEFAULT_QUOTAS, QuotaCategory
from app.models.user import User
from app.models.user_quota import UserQuota

logger = logging.getLogger(__name__)


def new_quota_record(user_id: str, email: str) -> UserQuota:
    """Build (but do not add) a ledger row with the default starting balances."""
    return UserQuota(
        user_id=user_id,
        user_email=email,
        **{category.value: amount for category, amount in DEFAULT_QUOTAS.items()},
    )


def get_quota_record(db: Session, user_id: str) -> Optional[UserQuota]:
    return db.query(UserQuota).filter(UserQuota.user_id == user_id).first()


def get_or_create(db: Session, user_id: str) -> UserQuota:
    """
    Get the ledger row for the given user, creating it with default balances if absent.
    Raises UserNotFoundError when the user itself does not exist.
    """
    record = get_quota_record(db, user_id)
    if record:
        return record

    user = db.query(User).filter(User.firebase_uid == user_id).first()
    if not user:
        raise UserNotFoundError(user_id)

    record = new_quota_record(user_id, user.email)
    db.add(record)
    try:
        db.commit()
    except IntegrityError:
        # Created by a concurrent request between our lookup and insert
        db.rollback()
        record = get_quota_record(db, user_id)
        if record:
            return record
        raise
    db.refresh(record)
    logger.info("Created default quota ledger for user %s", user_id)
    return record


def has_quota(db: Session, user_id: str, category: QuotaCategory) -> Tuple[bool, Optional[int]]:
    """
    Check whether the user can consume one unit of `category`.

    Returns:
        (has_quota, current_value)
        - current_value is None when the user has no ledger row; a missing row
          counts as "no quota" and is NOT created here.
    """
    record = get_quota_record(db, user_id)
    if record is None:
        return False, None
    current = getattr(record, category.value)
    return current > 0, current


def decrement(db: Session, user_id: str, category: QuotaCategory) -> None:
    """
    Lower the counter by one without re-checking availability.
    The caller must already have verified the balance; concurrent callers can
    push the counter below zero. Intake uses try_consume instead.
    """
    column = getattr(UserQuota, category.value)
    db.execute(
        update(UserQuota)
        .where(UserQuota.user_id == user_id)
        .values({column: column - 1})
    )
    db.commit()


def try_consume(db: Session, user_id: str, category: QuotaCategory) -> Optional[int]:
    """
    Atomically take one unit of `category` if the balance is positive.

    Issues a single conditional UPDATE, so two concurrent callers can never both
    take the last unit. Does NOT commit: the caller commits it together with the
    request row, or rolls both back.

    Returns the remaining balance, or None if nothing was consumed.
    """
    column = getattr(UserQuota, category.value)
    result = db.execute(
        update(UserQuota)
        .where(UserQuota.user_id == user_id, column > 0)
        .values({column: column - 1, UserQuota.updated_at: datetime.now(timezone.utc)})
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        return None
    return db.query(column).filter(UserQuota.user_id == user_id).scalar()


def update_quotas(db: Session, user_id: str, values: Dict[QuotaCategory, Optional[int]]) -> UserQuota:
    """
    Apply the supplied balances; categories that are missing or None stay unchanged.
    Raises RecordNotFoundError when the user has no ledger row.
    """
    for category, amount in values.items():
        if amount is not None and amount < 0:
            raise ValidationError(f"{category.value} cannot be negative")

    record = get_quota_record(db, user_id)
    if not record:
        raise RecordNotFoundError("User quota not found")

    for category, amount in values.items():
        if amount is not None:
            setattr(record, category.value, amount)
    record.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(record)
    logger.info("Updated quota ledger for user %s", user_id)
    return record
