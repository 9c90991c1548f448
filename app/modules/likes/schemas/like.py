from typing import List
from pydantic import BaseModel

from app.modules.user_management.schemas.user import UserSummary

class LikeState(BaseModel):
    """Full like state of a subject, as seen by the requesting user.

    Toggle responses carry the whole recomputed state rather than a delta so a
    client can resynchronise from any optimistic drift.
    """
    liked: bool = False
    count: int = 0
    users: List[UserSummary] = []
