from typing import Any

from fastapi import APIRouter, Depends, Path
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.deps import get_current_user
from app.modules.likes.models.like import SubjectType
from app.modules.likes.schemas.like import LikeState
from app.modules.likes.services.like import list_likes, toggle_like
from app.modules.user_management.models.user import User

router = APIRouter()

@router.post("/{subject_type}/{subject_id}", response_model=LikeState)
def toggle_subject_like(
    *,
    db: Session = Depends(get_db),
    subject_type: SubjectType = Path(..., description="post or comment"),
    subject_id: str,
    current_user: User = Depends(get_current_user),
) -> Any:
    """Like or unlike a post or comment; returns the recomputed like state"""
    return toggle_like(db, subject_type, subject_id, current_user.id)

@router.get("/{subject_type}/{subject_id}", response_model=LikeState)
def read_subject_likes(
    *,
    db: Session = Depends(get_db),
    subject_type: SubjectType = Path(..., description="post or comment"),
    subject_id: str,
    current_user: User = Depends(get_current_user),
) -> Any:
    """Get like count and liking users of a post or comment"""
    return list_likes(db, subject_type, subject_id, current_user.id)
