"""
Comment threads of a post.

Comments are stored flat (each row keeps its parent_id) and rebuilt into trees
arena-style: one query loads every comment of the post into a map keyed by id,
children lists are attached from that map, and like state comes from one
batched query against the like store.
"""

from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple
import logging
import uuid

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import NotFoundError, UnauthorizedError, ValidationError
from app.modules.likes.models.like import SubjectType
from app.modules.likes.services.like import delete_likes_for, summaries
from app.modules.posts.comments.models.comment import Comment
from app.modules.posts.comments.schemas.comment import CommentNode, CommentThread
from app.modules.posts.models.post import Post
from app.modules.user_management.models.user import User
from app.modules.user_management.schemas.user import UserSummary

logger = logging.getLogger("app")

ChildMap = Dict[Optional[str], List[str]]

def get_comment(db: Session, comment_id: str) -> Optional[Comment]:
    """Get comment by ID"""
    return db.query(Comment).filter(Comment.id == comment_id).first()

def _get_visible_post(db: Session, post_id: str, viewer_id: Optional[str]) -> Post:
    post = db.query(Post).filter(Post.id == post_id).first()
    if not post or not post.is_visible_to(viewer_id):
        raise NotFoundError("Post not found")
    return post

def _validate_content(content: Optional[str]) -> str:
    content = (content or "").strip()
    if not content:
        raise ValidationError("The content field is required.", field="content")
    if len(content) > settings.MAX_COMMENT_LENGTH:
        raise ValidationError(
            f"The content may not be greater than {settings.MAX_COMMENT_LENGTH} characters.",
            field="content",
        )
    return content

def _to_node(comment: Comment, author: Optional[User], likes) -> CommentNode:
    return CommentNode(
        id=comment.id,
        post_id=comment.post_id,
        user_id=comment.user_id,
        parent_id=comment.parent_id,
        content=comment.content,
        created_at=comment.created_at,
        updated_at=comment.updated_at,
        is_edited=comment.is_edited,
        user=UserSummary.model_validate(author) if author else None,
        likes_count=likes.count,
        liked=likes.liked,
        liked_by=likes.users,
    )

def _single_node(db: Session, comment: Comment, viewer_id: Optional[str]) -> CommentNode:
    author = db.query(User).filter(User.id == comment.user_id).first()
    likes = summaries(db, SubjectType.comment, [comment.id], viewer_id)[comment.id]
    return _to_node(comment, author, likes)

def _child_map(pairs: Iterable[Tuple[str, Optional[str]]]) -> ChildMap:
    """Map parent id -> child ids (None -> roots), keeping the given order.

    Comments whose parent is not among the given ids are unreachable and left out.
    """
    pairs = list(pairs)
    known = {comment_id for comment_id, _ in pairs}
    children: ChildMap = defaultdict(list)
    for comment_id, parent_id in pairs:
        if parent_id is None or parent_id in known:
            children[parent_id].append(comment_id)
    return children

def _post_order(children: ChildMap, root_ids: Iterable[str]) -> List[str]:
    """Depth-first, children before parent. Iterative so depth is unbounded."""
    order = []
    stack = [(root_id, False) for root_id in reversed(list(root_ids))]
    while stack:
        comment_id, expanded = stack.pop()
        if expanded:
            order.append(comment_id)
            continue
        stack.append((comment_id, True))
        for child_id in reversed(children.get(comment_id, [])):
            stack.append((child_id, False))
    return order

def list_for_post(db: Session, post_id: str, viewer_id: Optional[str] = None) -> CommentThread:
    """
    Get the comment tree of a post.

    Root comments come newest first; replies under each comment come oldest
    first. Every node carries its author, like count and whether the viewer
    liked it.
    """
    _get_visible_post(db, post_id, viewer_id)

    rows = (
        db.query(Comment, User)
        .outerjoin(User, User.id == Comment.user_id)
        .filter(Comment.post_id == post_id)
        .order_by(Comment.created_at.asc(), Comment.id.asc())
        .all()
    )
    children = _child_map((comment.id, comment.parent_id) for comment, _ in rows)
    like_states = summaries(db, SubjectType.comment, [comment.id for comment, _ in rows], viewer_id)
    nodes = {
        comment.id: _to_node(comment, author, like_states[comment.id])
        for comment, author in rows
    }

    for comment_id, node in nodes.items():
        node.replies = [nodes[child_id] for child_id in children.get(comment_id, [])]

    roots = [nodes[root_id] for root_id in reversed(children.get(None, []))]
    total = len(_post_order(children, children.get(None, [])))
    return CommentThread(post_id=post_id, total=total, comments=roots)

def count_for_posts(db: Session, post_ids: Iterable[str]) -> Dict[str, int]:
    """Number of comments (replies included) per post"""
    ids = list(post_ids)
    counts = {post_id: 0 for post_id in ids}
    if not ids:
        return counts
    rows = (
        db.query(Comment.post_id, func.count(Comment.id))
        .filter(Comment.post_id.in_(ids))
        .group_by(Comment.post_id)
        .all()
    )
    counts.update({post_id: count for post_id, count in rows})
    return counts

def create_comment(
    db: Session, post_id: str, user_id: str, content: str, parent_id: Optional[str] = None
) -> CommentNode:
    """Create a comment, or a reply when parent_id is given"""
    _get_visible_post(db, post_id, user_id)

    if parent_id:
        parent = get_comment(db, parent_id)
        if not parent:
            raise NotFoundError("Parent comment not found")
        if parent.post_id != post_id:
            raise ValidationError("The parent comment belongs to another post.", field="parent_id")

    content = _validate_content(content)

    now = datetime.utcnow()
    comment = Comment(
        id=str(uuid.uuid4()),
        post_id=post_id,
        user_id=user_id,
        parent_id=parent_id or None,
        content=content,
        created_at=now,
        updated_at=now,
    )
    db.add(comment)
    db.commit()
    db.refresh(comment)
    logger.info(f"User {user_id} commented {comment.id} on post {post_id} (parent={comment.parent_id})")

    return _single_node(db, comment, user_id)

def update_comment(db: Session, comment_id: str, user_id: str, content: str) -> CommentNode:
    """Update comment content; only the author may do it"""
    comment = get_comment(db, comment_id)
    if not comment:
        raise NotFoundError("Comment not found")
    _get_visible_post(db, comment.post_id, user_id)
    if comment.user_id != user_id:
        raise UnauthorizedError("You can only edit your own comments")

    comment.content = _validate_content(content)
    comment.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(comment)
    logger.info(f"User {user_id} edited comment {comment.id}")

    return _single_node(db, comment, user_id)

def _delete_in_order(db: Session, comment_ids: List[str]) -> None:
    for comment_id in comment_ids:
        delete_likes_for(db, SubjectType.comment, [comment_id])
        db.query(Comment).filter(Comment.id == comment_id).delete(synchronize_session=False)
        logger.debug(f"Deleted comment {comment_id} and its likes")

def delete_comment(db: Session, comment_id: str, user_id: str) -> List[str]:
    """
    Delete a comment together with all of its replies and their likes.

    Replies go before the comment they answer, at every level, all in one
    transaction. Returns the deleted comment IDs.
    """
    comment = get_comment(db, comment_id)
    if not comment:
        raise NotFoundError("Comment not found")
    _get_visible_post(db, comment.post_id, user_id)
    if comment.user_id != user_id:
        raise UnauthorizedError("You can only delete your own comments")

    pairs = db.query(Comment.id, Comment.parent_id).filter(Comment.post_id == comment.post_id).all()
    deleted_ids = _post_order(_child_map(pairs), [comment.id])

    try:
        _delete_in_order(db, deleted_ids)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"User {user_id} deleted comment thread {comment_id} ({len(deleted_ids)} comments)")
    return deleted_ids

def delete_for_post(db: Session, post_id: str) -> List[str]:
    """Delete every comment of a post bottom-up, with their likes. Does not commit."""
    pairs = db.query(Comment.id, Comment.parent_id).filter(Comment.post_id == post_id).all()
    known = {comment_id for comment_id, _ in pairs}
    # comments with a dangling parent are treated as roots so nothing is left behind
    normalized = [(comment_id, parent_id if parent_id in known else None) for comment_id, parent_id in pairs]
    children = _child_map(normalized)
    deleted_ids = _post_order(children, children.get(None, []))
    _delete_in_order(db, deleted_ids)
    return deleted_ids
