from typing import List, Optional, Tuple
import logging
import math
import uuid

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import NotFoundError, UnauthorizedError, ValidationError
from app.core.storage import r2_storage
from app.modules.likes.models.like import SubjectType
from app.modules.likes.services.like import delete_likes_for, summaries
from app.modules.posts.comments.services.comment import count_for_posts, delete_for_post
from app.modules.posts.models.post import Post, PostVisibility
from app.modules.posts.schemas.post import Post as PostSchema, PostCreate, PostPage, PostUpdate
from app.modules.user_management.schemas.user import UserSummary
from app.modules.user_management.services.user import get_users_by_ids

logger = logging.getLogger("app")

def _visible_to(query, viewer_id: Optional[str]):
    if viewer_id is None:
        return query.filter(Post.visibility == PostVisibility.public)
    return query.filter(or_(Post.visibility == PostVisibility.public, Post.user_id == viewer_id))

def _validate_content(content: Optional[str], has_image: bool) -> str:
    content = (content or "").strip()
    if not content and not has_image:
        raise ValidationError("A post needs text or an image.", field="content")
    if len(content) > settings.MAX_POST_LENGTH:
        raise ValidationError(
            f"The content may not be greater than {settings.MAX_POST_LENGTH} characters.",
            field="content",
        )
    return content

def to_schemas(db: Session, posts: List[Post], viewer_id: Optional[str]) -> List[PostSchema]:
    """Annotate posts with owner, like state and comment count, in a fixed number of queries"""
    post_ids = [post.id for post in posts]
    owners = get_users_by_ids(db, (post.user_id for post in posts))
    like_states = summaries(db, SubjectType.post, post_ids, viewer_id)
    comment_counts = count_for_posts(db, post_ids)

    result = []
    for post in posts:
        owner = owners.get(post.user_id)
        likes = like_states[post.id]
        result.append(PostSchema(
            id=post.id,
            user_id=post.user_id,
            content=post.content,
            image=post.image,
            image_url=r2_storage.url_for(post.image),
            visibility=post.visibility,
            created_at=post.created_at,
            updated_at=post.updated_at,
            user=UserSummary.model_validate(owner) if owner else None,
            likes_count=likes.count,
            liked=likes.liked,
            liked_by=likes.users,
            comments_count=comment_counts[post.id],
        ))
    return result

def get_post(db: Session, post_id: str) -> Optional[Post]:
    """Get post by ID"""
    return db.query(Post).filter(Post.id == post_id).first()

def get_visible_post(db: Session, post_id: str, viewer_id: Optional[str]) -> Post:
    """Get a post the viewer may see; private posts of others look missing"""
    post = get_post(db, post_id)
    if not post or not post.is_visible_to(viewer_id):
        raise NotFoundError("Post not found")
    return post

def _get_owned_post(db: Session, post_id: str, user_id: str) -> Post:
    post = get_post(db, post_id)
    if not post:
        raise NotFoundError("Post not found")
    if post.user_id != user_id:
        raise UnauthorizedError("Not enough permissions")
    return post

def list_posts(db: Session, viewer_id: Optional[str], page: int = 1, per_page: Optional[int] = None) -> PostPage:
    """Public posts plus the viewer's own private ones, newest first"""
    per_page = min(per_page or settings.POSTS_PER_PAGE, settings.MAX_POSTS_PER_PAGE)
    page = max(page, 1)
    logger.info(f"Listing posts for {viewer_id} page={page} per_page={per_page}")

    query = _visible_to(db.query(Post), viewer_id)
    total = query.count()
    posts = (
        query.order_by(Post.created_at.desc(), Post.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return PostPage(
        data=to_schemas(db, posts, viewer_id),
        current_page=page,
        per_page=per_page,
        total=total,
        last_page=max(1, math.ceil(total / per_page)),
        has_more=total > page * per_page,
    )

def list_user_posts(db: Session, owner_id: str, viewer_id: Optional[str]) -> List[PostSchema]:
    """Posts of one user that the viewer may see"""
    posts = (
        _visible_to(db.query(Post), viewer_id)
        .filter(Post.user_id == owner_id)
        .order_by(Post.created_at.desc(), Post.id.desc())
        .all()
    )
    return to_schemas(db, posts, viewer_id)

def create_post(db: Session, post_in: PostCreate, user_id: str) -> Post:
    """Create new post"""
    content = _validate_content(post_in.content, has_image=bool(post_in.image))
    post = Post(
        id=str(uuid.uuid4()),
        user_id=user_id,
        content=content,
        image=post_in.image,
        visibility=post_in.visibility,
    )
    db.add(post)
    db.commit()
    db.refresh(post)
    logger.info(f"User {user_id} created post {post.id} ({post.visibility.value})")
    return post

def update_post(db: Session, post_id: str, user_id: str, post_in: PostUpdate) -> Tuple[Post, Optional[str]]:
    """
    Apply a partial update to a post owned by user_id.

    Returns the post and the storage key of an image that is no longer
    referenced (replaced or removed), which the caller should delete.
    """
    post = _get_owned_post(db, post_id, user_id)

    image = post.image
    if post_in.image:
        image = post_in.image
    elif post_in.remove_image:
        image = None
    stale_image = post.image if image != post.image else None

    content = post_in.content if post_in.content is not None else post.content
    post.content = _validate_content(content, has_image=bool(image))
    post.image = image
    if post_in.visibility is not None:
        post.visibility = post_in.visibility

    db.commit()
    db.refresh(post)
    logger.info(f"User {user_id} updated post {post.id}")
    return post, stale_image

def delete_post(db: Session, post_id: str, user_id: str) -> Post:
    """
    Delete post and all associated comments and likes.
    The caller removes the stored image once this has committed.
    """
    post = _get_owned_post(db, post_id, user_id)
    try:
        deleted_comments = delete_for_post(db, post.id)
        delete_likes_for(db, SubjectType.post, [post.id])
        db.delete(post)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"User {user_id} deleted post {post_id} with {len(deleted_comments)} comments")
    return post
