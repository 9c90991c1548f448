from datetime import datetime

from sqlalchemy import Column, String, DateTime, Text, ForeignKey

from app.db.session import Base

class Comment(Base):
    """A comment on a post; replies point at their parent comment of the same post.

    No database cascades are declared: replies and likes are removed explicitly,
    children before parents, by the comment service.
    """
    __tablename__ = "comments"

    id = Column(String, primary_key=True, index=True)
    content = Column(Text, nullable=False)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    post_id = Column(String, ForeignKey("posts.id"), nullable=False, index=True)
    parent_id = Column(String, ForeignKey("comments.id"), nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    @property
    def is_edited(self) -> bool:
        return bool(self.updated_at and self.created_at and self.updated_at > self.created_at)
