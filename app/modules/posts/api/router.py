from typing import Any, Optional
import logging
import os

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import ValidationError
from app.core.storage import r2_storage
from app.db.session import get_db
from app.deps import get_current_user
from app.modules.posts.models.post import PostVisibility
from app.modules.posts.schemas.post import (
    Post as PostSchema, PostCreate, PostEnvelope, PostPage, PostUpdate
)
from app.modules.posts.services.post import (
    create_post, delete_post, get_visible_post, list_posts, to_schemas, update_post
)
from app.modules.user_management.models.user import User

logger = logging.getLogger(__name__)

router = APIRouter()

async def _handle_image_upload(image: Optional[UploadFile]) -> Optional[str]:
    """Validate and store an uploaded image, returning its storage key"""
    if image is None or not image.filename:
        return None

    file_extension = os.path.splitext(image.filename)[1].lower()
    if file_extension not in settings.image_extensions:
        raise ValidationError(
            f"Unsupported file format. Please use one of: {', '.join(settings.image_extensions)}",
            field="image",
        )

    content = await image.read()
    if len(content) > settings.MAX_UPLOAD_SIZE:
        raise ValidationError(
            f"The image may not be greater than {settings.MAX_UPLOAD_SIZE // 1024} kilobytes.",
            field="image",
        )
    return await r2_storage.upload_file(image, "post_images", content=content)

@router.get("", response_model=PostPage)
def read_posts(
    db: Session = Depends(get_db),
    page: int = Query(1, ge=1),
    per_page: int = Query(settings.POSTS_PER_PAGE, ge=1, le=settings.MAX_POSTS_PER_PAGE),
    current_user: User = Depends(get_current_user),
) -> Any:
    """
    Retrieve visible posts, newest first, with like and comment counts.
    """
    return list_posts(db, current_user.id, page=page, per_page=per_page)

@router.post("", response_model=PostEnvelope, status_code=201)
async def create_new_post(
    *,
    db: Session = Depends(get_db),
    content: str = Form(""),
    visibility: PostVisibility = Form(PostVisibility.public),
    image: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
) -> Any:
    """
    Create new post with optional image file.
    """
    image_key = await _handle_image_upload(image)
    try:
        post = create_post(db, PostCreate(content=content, visibility=visibility, image=image_key), current_user.id)
    except Exception:
        r2_storage.delete_file(image_key)
        raise
    return {"message": "Post created!", "post": to_schemas(db, [post], current_user.id)[0]}

@router.get("/{post_id}", response_model=PostSchema)
def read_post_by_id(
    *,
    db: Session = Depends(get_db),
    post_id: str,
    current_user: User = Depends(get_current_user),
) -> Any:
    """
    Get post by ID.
    """
    post = get_visible_post(db, post_id, current_user.id)
    return to_schemas(db, [post], current_user.id)[0]

@router.put("/{post_id}", response_model=PostEnvelope)
@router.post("/{post_id}", response_model=PostEnvelope)
async def update_post_by_id(
    *,
    db: Session = Depends(get_db),
    post_id: str,
    content: Optional[str] = Form(None),
    visibility: Optional[PostVisibility] = Form(None),
    remove_image: bool = Form(False),
    image: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
) -> Any:
    """
    Update a post. Only the given fields change; a new image replaces the old
    one, remove_image drops it. POST is accepted too for multipart clients.
    """
    image_key = await _handle_image_upload(image)
    changes = PostUpdate(content=content, visibility=visibility, image=image_key, remove_image=remove_image)
    try:
        post, stale_image = update_post(db, post_id, current_user.id, changes)
    except Exception:
        r2_storage.delete_file(image_key)
        raise

    if stale_image:
        r2_storage.delete_file(stale_image)
    return {"message": "Post updated!", "post": to_schemas(db, [post], current_user.id)[0]}

@router.delete("/{post_id}")
def delete_post_by_id(
    *,
    db: Session = Depends(get_db),
    post_id: str,
    current_user: User = Depends(get_current_user),
) -> Any:
    """
    Delete a post and all associated data:
    1. Every comment and reply on this post, with their likes
    2. All likes on this post
    3. The post itself, then its stored image
    """
    post = delete_post(db, post_id, current_user.id)
    if post.image:
        r2_storage.delete_file(post.image)
    return {"message": "Post deleted"}
