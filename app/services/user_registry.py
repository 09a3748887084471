"""
Registration of users on first authenticated contact.
Creates the users row and its default quota ledger together; repeat calls are no-ops.
"""
import logging
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import ValidationError
from app.dependencies.auth import Identity
from app.models.user import User
from app.services.quota_ledger import get_quota_record, new_quota_record

logger = logging.getLogger(__name__)


def get_user(db: Session, user_id: str) -> Optional[User]:
    return db.query(User).filter(User.firebase_uid == user_id).first()


def create_user(db: Session, identity: Identity, phone: Optional[str] = None) -> Tuple[User, bool]:
    """
    Create the user (and default quota ledger) for a verified identity.

    Returns:
        (user, created) - created is False when the user already existed,
        in which case nothing is modified.
    """
    if not identity.email:
        raise ValidationError("Email not found in token")

    existing = get_user(db, identity.uid)
    if existing:
        return existing, False

    user = User(firebase_uid=identity.uid, email=identity.email, phone=phone or None)
    db.add(user)
    if get_quota_record(db, identity.uid) is None:
        db.add(new_quota_record(identity.uid, identity.email))
    try:
        db.commit()
    except IntegrityError:
        # Another request registered the same uid between our check and insert
        db.rollback()
        existing = get_user(db, identity.uid)
        if existing:
            logger.info("User %s created by concurrent request", identity.uid)
            return existing, False
        raise
    db.refresh(user)
    logger.info("Created user %s with default quotas", identity.uid)
    return user, True
