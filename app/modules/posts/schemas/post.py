from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel

from app.modules.posts.models.post import PostVisibility
from app.modules.user_management.schemas.user import UserSummary

class PostCreate(BaseModel):
    content: str = ""
    visibility: PostVisibility = PostVisibility.public
    image: Optional[str] = None

class PostUpdate(BaseModel):
    """Partial update; unset fields are left alone"""
    content: Optional[str] = None
    visibility: Optional[PostVisibility] = None
    image: Optional[str] = None
    remove_image: bool = False

class Post(BaseModel):
    """Post model returned to client"""
    id: str
    user_id: str
    content: str
    image: Optional[str] = None
    image_url: Optional[str] = None
    visibility: PostVisibility
    created_at: datetime
    updated_at: datetime
    user: Optional[UserSummary] = None
    likes_count: int = 0
    liked: bool = False
    liked_by: List[UserSummary] = []
    comments_count: int = 0

class PostPage(BaseModel):
    """One page of the feed"""
    data: List[Post]
    current_page: int
    per_page: int
    total: int
    last_page: int
    has_more: bool

class PostEnvelope(BaseModel):
    message: str
    post: Post
