from typing import Dict, Iterable, Optional
import logging
import uuid

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import ValidationError
from app.core.security import get_password_hash, verify_password
from app.modules.user_management.models.user import User
from app.modules.user_management.schemas.user import UserCreate, UserUpdate

logger = logging.getLogger("app")

def get_user(db: Session, user_id: str) -> Optional[User]:
    """Get user by ID"""
    return db.query(User).filter(User.id == user_id).first()

def get_user_by_email(db: Session, email: str) -> Optional[User]:
    """Get user by email"""
    return db.query(User).filter(User.email == email.lower()).first()

def get_users_by_ids(db: Session, user_ids: Iterable[str]) -> Dict[str, User]:
    """Get users keyed by ID, in one query"""
    ids = set(user_ids)
    if not ids:
        return {}
    return {user.id: user for user in db.query(User).filter(User.id.in_(ids)).all()}

def create_user(db: Session, user_in: UserCreate) -> User:
    """Register a new user"""
    if get_user_by_email(db, user_in.email):
        raise ValidationError("The email has already been taken.", field="email")

    user = User(
        id=str(uuid.uuid4()),
        email=user_in.email,
        first_name=user_in.first_name,
        last_name=user_in.last_name,
        hashed_password=get_password_hash(user_in.password),
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationError("The email has already been taken.", field="email")
    db.refresh(user)
    logger.info(f"Registered user {user.id}")
    return user

def authenticate(db: Session, email: str, password: str) -> Optional[User]:
    """Return the active user matching the credentials, None otherwise"""
    user = get_user_by_email(db, email)
    if not user or not user.is_active:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user

def update_user(db: Session, user: User, user_in: UserUpdate) -> User:
    """Update profile fields"""
    update_data = user_in.model_dump(exclude_unset=True, exclude_none=True)
    for field, value in update_data.items():
        setattr(user, field, value)

    db.commit()
    db.refresh(user)
    return user

def update_password(db: Session, user: User, current_password: str, new_password: str) -> User:
    """Change password after checking the current one"""
    if not verify_password(current_password, user.hashed_password):
        raise ValidationError("The current password is incorrect.", field="current_password")

    user.hashed_password = get_password_hash(new_password)
    db.commit()
    db.refresh(user)
    logger.info(f"Password changed for user {user.id}")
    return user
