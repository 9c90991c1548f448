from typing import Any, List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError
from app.db.session import get_db
from app.deps import get_current_user
from app.modules.posts.schemas.post import Post as PostSchema
from app.modules.posts.services.post import list_user_posts
from app.modules.user_management.models.user import User
from app.modules.user_management.schemas.user import PasswordUpdate, User as UserSchema, UserUpdate
from app.modules.user_management.services.user import get_user, update_password, update_user

# mounted at /user (current user) and /users (other users)
router = APIRouter()
users_router = APIRouter()

@router.get("/me", response_model=UserSchema)
def read_user_me(current_user: User = Depends(get_current_user)) -> Any:
    """Get current user"""
    return current_user

@router.put("/update-profile", response_model=UserSchema)
def update_profile(
    *,
    db: Session = Depends(get_db),
    user_in: UserUpdate,
    current_user: User = Depends(get_current_user),
) -> Any:
    """Update current user's name"""
    return update_user(db, current_user, user_in)

@router.put("/update-password")
def change_password(
    *,
    db: Session = Depends(get_db),
    password_in: PasswordUpdate,
    current_user: User = Depends(get_current_user),
) -> Any:
    """Change current user's password"""
    update_password(db, current_user, password_in.current_password, password_in.new_password)
    return {"message": "Password updated successfully"}

@users_router.get("/{user_id}/posts", response_model=List[PostSchema])
def read_user_posts(
    *,
    db: Session = Depends(get_db),
    user_id: str,
    current_user: User = Depends(get_current_user),
) -> Any:
    """Get a user's posts that the current user may see"""
    if not get_user(db, user_id):
        raise NotFoundError("User not found")
    return list_user_posts(db, user_id, current_user.id)
