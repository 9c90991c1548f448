"""
Local feed state with optimistic updates.

Every mutation follows the same shape: snapshot, apply locally, send, then
either overwrite with what the server returned or put the snapshot back. Likes
flip immediately; comments are inserted and removed only once the server has
confirmed, but the draft input is cleared up front and restored on failure.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple
import asyncio
import logging

from app.client.api import FeedApi
from app.modules.likes.models.like import SubjectType
from app.modules.likes.schemas.like import LikeState
from app.modules.posts.comments.schemas.comment import CommentNode
from app.modules.posts.schemas.post import Post

logger = logging.getLogger(__name__)

SubjectKey = Tuple[SubjectType, str]
LikeListener = Callable[[SubjectType, str, LikeState], None]

# errors that trigger a rollback, cancellation included
_ROLLBACK_ON = (Exception, asyncio.CancelledError)


def _flip(state: LikeState) -> LikeState:
    return LikeState(
        liked=not state.liked,
        count=max(0, state.count + (-1 if state.liked else 1)),
        users=list(state.users),
    )


class LikeStore:
    """Like state per subject, shared by posts and comments.

    What is shown is the last state the server confirmed with every toggle
    still in flight applied on top, so a failed request only ever takes back
    its own flip.
    """

    def __init__(self, api: FeedApi):
        self.api = api
        self._states: Dict[SubjectKey, LikeState] = {}
        self._confirmed: Dict[SubjectKey, LikeState] = {}
        self._pending: Dict[SubjectKey, int] = {}
        self._locks: Dict[SubjectKey, asyncio.Lock] = {}
        self._listeners: List[LikeListener] = []

    def subscribe(self, listener: LikeListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: LikeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def get(self, subject_type: SubjectType, subject_id: str) -> LikeState:
        return self._states.get((SubjectType(subject_type), subject_id), LikeState())

    def seed(self, subject_type: SubjectType, subject_id: str, state: LikeState) -> None:
        """Record server state received as part of a listing"""
        key = (SubjectType(subject_type), subject_id)
        self._confirmed[key] = state
        self._show(key)

    def forget(self, subject_type: SubjectType, subject_ids: List[str]) -> None:
        for subject_id in subject_ids:
            key = (SubjectType(subject_type), subject_id)
            for states in (self._states, self._confirmed, self._pending, self._locks):
                states.pop(key, None)

    def _set(self, key: SubjectKey, state: LikeState) -> None:
        self._states[key] = state
        for listener in list(self._listeners):
            listener(key[0], key[1], state)

    def _show(self, key: SubjectKey) -> None:
        state = self._confirmed.get(key, LikeState()).model_copy(deep=True)
        for _ in range(self._pending.get(key, 0)):
            state = _flip(state)
        self._set(key, state)

    def _settle(self, key: SubjectKey, confirmed: Optional[LikeState] = None) -> None:
        if confirmed is not None:
            self._confirmed[key] = confirmed
        self._pending[key] = max(0, self._pending.get(key, 0) - 1)
        self._show(key)

    def _lock_for(self, key: SubjectKey) -> asyncio.Lock:
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    async def toggle(self, subject_type: SubjectType, subject_id: str) -> LikeState:
        """
        Flip the like at once, then settle on the server's answer.

        Toggles of one subject are sent one after another; other subjects are
        not blocked. On failure only this flip is taken back; toggles still in
        flight stay applied. The error propagates.
        """
        key = (SubjectType(subject_type), subject_id)
        self._pending[key] = self._pending.get(key, 0) + 1
        self._show(key)

        async with self._lock_for(key):
            try:
                confirmed = await self.api.toggle_like(*key)
            except _ROLLBACK_ON:
                logger.warning(f"Like toggle on {key[0].value} {subject_id} failed, rolling back")
                self._settle(key)
                raise
            self._settle(key, confirmed)

        return confirmed


@dataclass
class ReplyTarget:
    """The comment a draft answers, kept so a failed submit can restore it"""
    id: str
    author: str
    content: str


def _find(nodes: List[CommentNode], comment_id: str) -> Optional[CommentNode]:
    stack = list(nodes)
    while stack:
        node = stack.pop()
        if node.id == comment_id:
            return node
        stack.extend(node.replies)
    return None


def _without(nodes: List[CommentNode], comment_id: str) -> List[CommentNode]:
    """The tree minus one node and its subtree"""
    kept = []
    for node in nodes:
        if node.id == comment_id:
            continue
        node.replies = _without(node.replies, comment_id)
        kept.append(node)
    return kept


def _count(nodes: List[CommentNode]) -> int:
    total = 0
    stack = list(nodes)
    while stack:
        node = stack.pop()
        total += 1
        stack.extend(node.replies)
    return total


class CommentThreadStore:
    """The comment tree of one post, the draft being typed and its reply target."""

    def __init__(
        self,
        api: FeedApi,
        post_id: str,
        likes: LikeStore,
        on_count_change: Optional[Callable[[int], None]] = None,
    ):
        self.api = api
        self.post_id = post_id
        self.likes = likes
        self.on_count_change = on_count_change
        self.comments: List[CommentNode] = []
        self.draft = ""
        self.replying_to: Optional[ReplyTarget] = None
        self.submitting = False
        likes.subscribe(self._on_like_change)

    def close(self) -> None:
        self.likes.unsubscribe(self._on_like_change)

    def _on_like_change(self, subject_type: SubjectType, subject_id: str, state: LikeState) -> None:
        if subject_type != SubjectType.comment:
            return
        node = self.find(subject_id)
        if node is not None:
            node.liked = state.liked
            node.likes_count = state.count
            node.liked_by = list(state.users)

    def _seed_likes(self, nodes: List[CommentNode]) -> None:
        stack = list(nodes)
        while stack:
            node = stack.pop()
            self.likes.seed(
                SubjectType.comment,
                node.id,
                LikeState(liked=node.liked, count=node.likes_count, users=list(node.liked_by)),
            )
            stack.extend(node.replies)

    def _count_changed(self) -> None:
        if self.on_count_change:
            self.on_count_change(self.total_count())

    def find(self, comment_id: str) -> Optional[CommentNode]:
        return _find(self.comments, comment_id)

    def total_count(self) -> int:
        return _count(self.comments)

    async def load(self) -> List[CommentNode]:
        thread = await self.api.list_comments(self.post_id)
        self.comments = thread.comments
        self._seed_likes(self.comments)
        self._count_changed()
        return self.comments

    def reply_to(self, comment_id: str) -> ReplyTarget:
        node = self.find(comment_id)
        if node is None:
            raise KeyError(comment_id)
        author = f"{node.user.first_name} {node.user.last_name}" if node.user else "Unknown User"
        self.replying_to = ReplyTarget(id=node.id, author=author, content=node.content)
        return self.replying_to

    def cancel_reply(self) -> None:
        self.replying_to = None

    def _insert(self, node: CommentNode) -> None:
        if node.parent_id is None:
            self.comments.insert(0, node)
            return
        parent = self.find(node.parent_id)
        if parent is None:
            # the parent disappeared locally while the request was in flight
            logger.warning(f"Parent {node.parent_id} of new comment {node.id} is not loaded, skipping insert")
            return
        parent.replies.append(node)

    async def submit(self) -> Optional[CommentNode]:
        """Send the draft as a comment or as a reply to replying_to"""
        content = self.draft
        if not content.strip() or self.submitting:
            return None

        target = self.replying_to
        self.draft = ""
        self.replying_to = None
        self.submitting = True
        try:
            node = await self.api.create_comment(self.post_id, content, target.id if target else None)
        except _ROLLBACK_ON:
            self.draft = content
            self.replying_to = target
            raise
        finally:
            self.submitting = False

        self._insert(node)
        self._seed_likes([node])
        self._count_changed()
        return node

    async def edit(self, comment_id: str, content: str) -> CommentNode:
        updated = await self.api.update_comment(comment_id, content)
        node = self.find(comment_id)
        if node is not None:
            node.content = updated.content
            node.updated_at = updated.updated_at
            node.is_edited = updated.is_edited
        return updated

    async def delete(self, comment_id: str) -> List[str]:
        """Remove a comment and its replies once the server has deleted them"""
        deleted_ids = await self.api.delete_comment(comment_id)
        self.comments = _without(self.comments, comment_id)
        self.likes.forget(SubjectType.comment, deleted_ids)
        self._count_changed()
        return deleted_ids

    async def toggle_like(self, comment_id: str) -> LikeState:
        return await self.likes.toggle(SubjectType.comment, comment_id)


class FeedStore:
    """Infinite-scroll list of posts plus the comment threads opened under them."""

    def __init__(self, api: FeedApi, likes: Optional[LikeStore] = None, per_page: Optional[int] = None):
        self.api = api
        self.likes = likes or LikeStore(api)
        self.per_page = per_page
        self.posts: List[Post] = []
        self.page = 0
        self.total = 0
        self.has_more = True
        self.threads: Dict[str, CommentThreadStore] = {}
        self.likes.subscribe(self._on_like_change)

    def _on_like_change(self, subject_type: SubjectType, subject_id: str, state: LikeState) -> None:
        if subject_type != SubjectType.post:
            return
        post = self.find(subject_id)
        if post is not None:
            post.liked = state.liked
            post.likes_count = state.count
            post.liked_by = list(state.users)

    def find(self, post_id: str) -> Optional[Post]:
        for post in self.posts:
            if post.id == post_id:
                return post
        return None

    async def load_more(self) -> List[Post]:
        """Fetch the next page; posts already shown are not duplicated"""
        if not self.has_more:
            return []
        page = await self.api.list_posts(self.page + 1, self.per_page)
        known = {post.id for post in self.posts}
        added = [post for post in page.data if post.id not in known]
        self.posts.extend(added)
        for post in added:
            self.likes.seed(
                SubjectType.post,
                post.id,
                LikeState(liked=post.liked, count=post.likes_count, users=list(post.liked_by)),
            )
        self.page = page.current_page
        self.total = page.total
        self.has_more = page.has_more
        return added

    async def refresh(self) -> List[Post]:
        for thread in self.threads.values():
            thread.close()
        self.posts = []
        self.threads = {}
        self.page = 0
        self.has_more = True
        return await self.load_more()

    def thread(self, post_id: str) -> CommentThreadStore:
        """Comment thread of a post, created on first access"""
        if post_id not in self.threads:
            def patch_count(count: int, post_id: str = post_id) -> None:
                post = self.find(post_id)
                if post is not None:
                    post.comments_count = count

            self.threads[post_id] = CommentThreadStore(self.api, post_id, self.likes, on_count_change=patch_count)
        return self.threads[post_id]

    async def toggle_like(self, post_id: str) -> LikeState:
        return await self.likes.toggle(SubjectType.post, post_id)

    async def delete_post(self, post_id: str) -> None:
        """Drop a post locally once the server has deleted it"""
        await self.api.delete_post(post_id)
        self.posts = [post for post in self.posts if post.id != post_id]
        self.total = max(0, self.total - 1)
        self.likes.forget(SubjectType.post, [post_id])
        thread = self.threads.pop(post_id, None)
        if thread is not None:
            thread.close()
