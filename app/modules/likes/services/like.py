from typing import Dict, Iterable, Optional
import logging
import uuid

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError
from app.modules.likes.models.like import Like, SubjectType
from app.modules.likes.schemas.like import LikeState
from app.modules.posts.models.post import Post
from app.modules.posts.comments.models.comment import Comment
from app.modules.user_management.models.user import User
from app.modules.user_management.schemas.user import UserSummary

logger = logging.getLogger("app")

_SUBJECT_MODELS = {
    SubjectType.post: Post,
    SubjectType.comment: Comment,
}

def get_subject(db: Session, subject_type: SubjectType, subject_id: str, viewer_id: Optional[str] = None):
    """Get the liked post or comment, raising NotFoundError when it is missing or hidden from the viewer"""
    subject_type = SubjectType(subject_type)
    model = _SUBJECT_MODELS[subject_type]
    subject = db.query(model).filter(model.id == subject_id).first()
    if subject is None:
        raise NotFoundError(f"{subject_type.value.capitalize()} not found")

    post = subject if subject_type == SubjectType.post else db.query(Post).filter(Post.id == subject.post_id).first()
    if post is None or not post.is_visible_to(viewer_id):
        raise NotFoundError(f"{subject_type.value.capitalize()} not found")
    return subject

def get_like(db: Session, subject_type: SubjectType, subject_id: str, user_id: str) -> Optional[Like]:
    """Get a user's like on a subject"""
    return (
        db.query(Like)
        .filter(
            Like.subject_type == subject_type,
            Like.subject_id == subject_id,
            Like.user_id == user_id,
        )
        .first()
    )

def summaries(
    db: Session, subject_type: SubjectType, subject_ids: Iterable[str], viewer_id: Optional[str] = None
) -> Dict[str, LikeState]:
    """Like state for many subjects of one kind, in a single query"""
    ids = list(dict.fromkeys(subject_ids))
    result = {subject_id: LikeState() for subject_id in ids}
    if not ids:
        return result

    rows = (
        db.query(Like.subject_id, User)
        .join(User, User.id == Like.user_id)
        .filter(Like.subject_type == subject_type, Like.subject_id.in_(ids))
        .order_by(Like.created_at.asc(), Like.id.asc())
        .all()
    )
    for subject_id, user in rows:
        state = result[subject_id]
        state.users.append(UserSummary.model_validate(user))
        state.count += 1
        if viewer_id is not None and user.id == viewer_id:
            state.liked = True
    return result

def _like_state(db: Session, subject_type: SubjectType, subject_id: str, viewer_id: Optional[str]) -> LikeState:
    return summaries(db, subject_type, [subject_id], viewer_id)[subject_id]

def list_likes(db: Session, subject_type: SubjectType, subject_id: str, viewer_id: Optional[str] = None) -> LikeState:
    """Count and liking users of a post or comment"""
    get_subject(db, subject_type, subject_id, viewer_id)
    return _like_state(db, subject_type, subject_id, viewer_id)

def toggle_like(db: Session, subject_type: SubjectType, subject_id: str, user_id: str) -> LikeState:
    """
    Like the subject if the user has not liked it yet, unlike it otherwise.
    Returns the state re-queried after the write.
    """
    subject_type = SubjectType(subject_type)
    get_subject(db, subject_type, subject_id, user_id)

    existing = get_like(db, subject_type, subject_id, user_id)
    try:
        if existing:
            db.delete(existing)
        else:
            db.add(Like(
                id=str(uuid.uuid4()),
                user_id=user_id,
                subject_type=subject_type,
                subject_id=subject_id,
            ))
        db.flush()
        state = _like_state(db, subject_type, subject_id, user_id)
        db.commit()
    except IntegrityError:
        # A concurrent request from the same user inserted the like first
        db.rollback()
        logger.info(f"Duplicate like on {subject_type.value} {subject_id} by {user_id} ignored")
        state = _like_state(db, subject_type, subject_id, user_id)

    logger.info(
        f"User {user_id} {'liked' if state.liked else 'unliked'} {subject_type.value} {subject_id} "
        f"(count={state.count})"
    )
    return state

def delete_likes_for(db: Session, subject_type: SubjectType, subject_ids: Iterable[str]) -> int:
    """Delete every like on the given subjects. Does not commit."""
    ids = list(subject_ids)
    if not ids:
        return 0
    return (
        db.query(Like)
        .filter(Like.subject_type == subject_type, Like.subject_id.in_(ids))
        .delete(synchronize_session=False)
    )
