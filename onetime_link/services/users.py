"""User helpers for the email verification sample flow."""

from __future__ import annotations

import logging
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from onetime_link.models.user import User
from onetime_link.schemas.verification import UserCreate

logger = logging.getLogger(__name__)


def find_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == email.lower()).first()


def create_user(db: Session, data: UserCreate) -> User:
    user = User(id=uuid4(), email=data.email.lower(), name=data.name.strip(), is_verified=False)
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("User created: %s", user.email)
    return user


def mark_user_verified(db: Session, subject_id: str | None) -> User | None:
    try:
        user_id = UUID(str(subject_id))
    except ValueError:
        logger.error("Invalid user id in link subject: %s", subject_id)
        return None

    user = db.get(User, user_id)
    if not user:
        logger.error("User not found for link subject: %s", user_id)
        return None

    user.is_verified = True
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Email verified: %s", user.email)
    return user
