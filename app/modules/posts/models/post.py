from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import Column, String, DateTime, Text, ForeignKey, Enum, Index

from app.db.session import Base

class PostVisibility(str, PyEnum):
    public = "public"
    private = "private"

class Post(Base):
    __tablename__ = "posts"

    id = Column(String, primary_key=True, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    content = Column(Text, nullable=False, default="")
    image = Column(String, nullable=True)  # storage key, see app.core.storage
    visibility = Column(Enum(PostVisibility, name="post_visibility"), nullable=False, default=PostVisibility.public)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def is_visible_to(self, user_id) -> bool:
        """Public posts are visible to everyone, private ones to their owner only"""
        return self.visibility == PostVisibility.public or self.user_id == user_id

Index("idx_posts_visibility_created", Post.visibility, Post.created_at.desc())
