from typing import List, Optional, Tuple

from app.client.session import ApiSession
from app.modules.likes.models.like import SubjectType
from app.modules.likes.schemas.like import LikeState
from app.modules.posts.comments.schemas.comment import CommentNode, CommentThread
from app.modules.posts.models.post import PostVisibility
from app.modules.posts.schemas.post import Post, PostPage

# (filename, content, content type)
ImageUpload = Tuple[str, bytes, str]

class FeedApi:
    """Typed calls to the feed endpoints over an ApiSession"""

    def __init__(self, session: ApiSession):
        self.session = session

    async def list_posts(self, page: int = 1, per_page: Optional[int] = None) -> PostPage:
        params = {"page": page}
        if per_page:
            params["per_page"] = per_page
        return PostPage.model_validate(await self.session.request("GET", "/posts", params=params))

    async def get_post(self, post_id: str) -> Post:
        return Post.model_validate(await self.session.request("GET", f"/posts/{post_id}"))

    async def create_post(
        self,
        content: str,
        visibility: PostVisibility = PostVisibility.public,
        image: Optional[ImageUpload] = None,
    ) -> Post:
        files = {"image": image} if image else None
        body = await self.session.request(
            "POST", "/posts", data={"content": content, "visibility": PostVisibility(visibility).value}, files=files
        )
        return Post.model_validate(body["post"])

    async def update_post(
        self,
        post_id: str,
        content: Optional[str] = None,
        visibility: Optional[PostVisibility] = None,
        image: Optional[ImageUpload] = None,
        remove_image: bool = False,
    ) -> Post:
        data = {}
        if content is not None:
            data["content"] = content
        if visibility is not None:
            data["visibility"] = PostVisibility(visibility).value
        if remove_image:
            data["remove_image"] = "true"
        files = {"image": image} if image else None
        # POST variant so an image can travel as multipart
        body = await self.session.request("POST", f"/posts/{post_id}", data=data, files=files)
        return Post.model_validate(body["post"])

    async def delete_post(self, post_id: str) -> None:
        await self.session.request("DELETE", f"/posts/{post_id}")

    async def list_comments(self, post_id: str) -> CommentThread:
        return CommentThread.model_validate(await self.session.request("GET", f"/post/{post_id}/comments"))

    async def create_comment(self, post_id: str, content: str, parent_id: Optional[str] = None) -> CommentNode:
        body = await self.session.request(
            "POST", f"/post/comments/{post_id}", json={"content": content, "parent_id": parent_id}
        )
        return CommentNode.model_validate(body["comment"])

    async def update_comment(self, comment_id: str, content: str) -> CommentNode:
        body = await self.session.request("PUT", f"/post/comments/{comment_id}", json={"content": content})
        return CommentNode.model_validate(body["comment"])

    async def delete_comment(self, comment_id: str) -> List[str]:
        body = await self.session.request("DELETE", f"/post/comments/{comment_id}")
        return body["deleted_ids"]

    async def toggle_like(self, subject_type: SubjectType, subject_id: str) -> LikeState:
        path = f"/like/{SubjectType(subject_type).value}/{subject_id}"
        return LikeState.model_validate(await self.session.request("POST", path))

    async def list_likes(self, subject_type: SubjectType, subject_id: str) -> LikeState:
        path = f"/like/{SubjectType(subject_type).value}/{subject_id}"
        return LikeState.model_validate(await self.session.request("GET", path))
