# alapio/core/user.py

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from alapio.core.errors import StorageError
from alapio.models.base import utcnow
from alapio.models.user import User

logger = logging.getLogger(__name__)


def _write_user(db: Session, user_id: str, username: str, avatar: Optional[str]) -> User:
    existing = db.get(User, user_id)
    if existing:
        existing.username = username
        existing.avatar = avatar
        user = existing
    else:
        user = User(id=user_id, username=username, avatar=avatar, last_seen=utcnow())
        db.add(user)

    db.commit()
    db.refresh(user)
    return user


def upsert_user(db: Session, user_id: str, username: str, avatar: Optional[str]) -> User:
    """Insert a user, or overwrite username/avatar of an existing one. last_seen is left alone."""
    try:
        try:
            return _write_user(db, user_id, username, avatar)
        except IntegrityError:
            db.rollback()
            # Lost the insert race for this id (e.g. two tabs logging in); update instead
            if db.get(User, user_id) is None:
                raise
            return _write_user(db, user_id, username, avatar)
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Upsert rejected for user {user_id}: {e.orig}")
        raise StorageError(f"Username already taken: {username}") from e
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageError(str(e)) from e


def list_users(db: Session) -> List[User]:
    try:
        return db.query(User).order_by(User.username).all()
    except SQLAlchemyError as e:
        raise StorageError(str(e)) from e


def get_user(db: Session, user_id: str) -> Optional[User]:
    try:
        return db.get(User, user_id)
    except SQLAlchemyError as e:
        raise StorageError(str(e)) from e


def touch_last_seen(db: Session, user_id: str, when: Optional[datetime] = None) -> bool:
    """Update last_seen only. Returns False when no such user exists."""
    when = when or utcnow()
    try:
        updated = (
            db.query(User)
            .filter(User.id == user_id)
            .update({User.last_seen: when})
        )
        db.commit()
        return updated > 0
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageError(str(e)) from e
