from typing import Any
import logging

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.deps import get_current_user
from app.modules.user_management.models.user import User
from app.modules.posts.comments.schemas.comment import (
    CommentCreate, CommentDeleted, CommentEnvelope, CommentThread, CommentUpdate
)
from app.modules.posts.comments.services.comment import (
    create_comment, delete_comment, list_for_post, update_comment
)

router = APIRouter()
logger = logging.getLogger("app")

@router.get("/{post_id}/comments", response_model=CommentThread)
def read_comments_by_post_id(
    *,
    db: Session = Depends(get_db),
    post_id: str = Path(..., description="The ID of the post to get comments for"),
    current_user: User = Depends(get_current_user),
) -> Any:
    """Get the nested comment tree of a post"""
    return list_for_post(db, post_id, current_user.id)

@router.post("/comments/{post_id}", response_model=CommentEnvelope, status_code=status.HTTP_201_CREATED)
def create_new_comment(
    *,
    db: Session = Depends(get_db),
    post_id: str = Path(..., description="The ID of the post to comment on"),
    comment_in: CommentCreate,
    current_user: User = Depends(get_current_user),
) -> Any:
    """Create new comment, or a reply when parent_id is set"""
    comment = create_comment(db, post_id, current_user.id, comment_in.content, comment_in.parent_id)
    return {"message": "Comment added", "comment": comment}

@router.put("/comments/{comment_id}", response_model=CommentEnvelope)
def update_comment_by_id(
    *,
    db: Session = Depends(get_db),
    comment_id: str,
    comment_in: CommentUpdate,
    current_user: User = Depends(get_current_user),
) -> Any:
    """Update a comment"""
    comment = update_comment(db, comment_id, current_user.id, comment_in.content)
    return {"message": "Comment updated successfully", "comment": comment}

@router.delete("/comments/{comment_id}", response_model=CommentDeleted)
def delete_comment_by_id(
    *,
    db: Session = Depends(get_db),
    comment_id: str,
    current_user: User = Depends(get_current_user),
) -> Any:
    """Delete a comment together with its replies"""
    deleted_ids = delete_comment(db, comment_id, current_user.id)
    return {"message": "Comment thread deleted", "deleted_ids": deleted_ids}
