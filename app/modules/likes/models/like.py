from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import Column, String, DateTime, ForeignKey, Enum, Index, UniqueConstraint

from app.db.session import Base

class SubjectType(str, PyEnum):
    post = "post"
    comment = "comment"

class Like(Base):
    """One user's like on a post or a comment.

    subject_id is not a foreign key: it points into posts or comments depending
    on subject_type.
    """
    __tablename__ = "likes"

    id = Column(String, primary_key=True, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    subject_type = Column(Enum(SubjectType, name="like_subject_type"), nullable=False)
    subject_id = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("subject_type", "subject_id", "user_id", name="uq_likes_subject_user"),
    )

Index("idx_likes_subject", Like.subject_type, Like.subject_id)
