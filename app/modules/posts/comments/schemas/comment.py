from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel

from app.modules.user_management.schemas.user import UserSummary

class CommentCreate(BaseModel):
    content: str
    parent_id: Optional[str] = None

class CommentUpdate(BaseModel):
    content: str

class Comment(BaseModel):
    """Comment model returned to client"""
    id: str
    post_id: str
    user_id: str
    parent_id: Optional[str] = None
    content: str
    created_at: datetime
    updated_at: datetime
    is_edited: bool = False
    user: Optional[UserSummary] = None
    likes_count: int = 0
    liked: bool = False
    liked_by: List[UserSummary] = []

class CommentNode(Comment):
    """Comment with its whole reply subtree"""
    replies: List["CommentNode"] = []

CommentNode.model_rebuild()

class CommentThread(BaseModel):
    post_id: str
    total: int
    comments: List[CommentNode]

class CommentEnvelope(BaseModel):
    message: str
    comment: CommentNode

class CommentDeleted(BaseModel):
    message: str
    deleted_ids: List[str]
