# tests/test_posts.py
"""Tests for the post service: feed pagination, visibility, updates and cascading deletes."""

import pytest

from app.core.exceptions import NotFoundError, UnauthorizedError, ValidationError
from app.modules.likes.models.like import Like, SubjectType
from app.modules.likes.services.like import toggle_like
from app.modules.posts.comments.models.comment import Comment
from app.modules.posts.models.post import Post, PostVisibility
from app.modules.posts.schemas.post import PostCreate, PostUpdate
from app.modules.posts.services.post import (
    create_post,
    delete_post,
    get_visible_post,
    list_posts,
    list_user_posts,
    to_schemas,
    update_post,
)

from conftest import make_comment, make_post


class TestListPosts:
    """Test the paginated feed."""

    def test_newest_first_with_page_metadata(self, db, alice):
        posts = [make_post(db, alice, f"post {i}", minutes=i) for i in range(5)]

        first = list_posts(db, alice.id, page=1, per_page=2)
        last = list_posts(db, alice.id, page=3, per_page=2)

        assert [post.id for post in first.data] == [posts[4].id, posts[3].id]
        assert first.total == 5
        assert first.last_page == 3
        assert first.has_more is True
        assert [post.id for post in last.data] == [posts[0].id]
        assert last.has_more is False

    def test_private_posts_only_for_owner(self, db, alice, bob):
        public = make_post(db, alice, "public")
        private = make_post(db, alice, "private", minutes=1, visibility=PostVisibility.private)

        as_alice = [post.id for post in list_posts(db, alice.id).data]
        as_bob = [post.id for post in list_posts(db, bob.id).data]

        assert as_alice == [private.id, public.id]
        assert as_bob == [public.id]

    def test_per_page_is_capped(self, db, alice):
        page = list_posts(db, alice.id, page=1, per_page=500)

        assert page.per_page == 50
        assert page.last_page == 1
        assert page.data == []

    def test_annotations(self, db, alice, bob):
        post = make_post(db, alice)
        root = make_comment(db, post, bob)
        make_comment(db, post, alice, parent=root, minutes=1)
        toggle_like(db, SubjectType.post, post.id, bob.id)

        [item] = list_posts(db, bob.id).data

        assert item.user.first_name == "Alice"
        assert item.comments_count == 2
        assert item.likes_count == 1
        assert item.liked is True
        assert item.image_url is None


class TestGetPost:
    def test_hidden_post_looks_missing(self, db, alice, bob):
        post = make_post(db, alice, visibility=PostVisibility.private)

        assert get_visible_post(db, post.id, alice.id).id == post.id
        with pytest.raises(NotFoundError):
            get_visible_post(db, post.id, bob.id)

    def test_user_posts_respect_visibility(self, db, alice, bob):
        public = make_post(db, alice)
        make_post(db, alice, minutes=1, visibility=PostVisibility.private)

        assert [post.id for post in list_user_posts(db, alice.id, bob.id)] == [public.id]
        assert len(list_user_posts(db, alice.id, alice.id)) == 2


class TestCreatePost:
    def test_text_post(self, db, alice):
        post = create_post(db, PostCreate(content="  hi  "), alice.id)

        assert post.content == "hi"
        assert post.visibility == PostVisibility.public

    def test_image_only_post(self, db, alice):
        post = create_post(db, PostCreate(content="", image="post_images/abc.png"), alice.id)

        [schema] = to_schemas(db, [post], alice.id)
        assert schema.image == "post_images/abc.png"
        assert schema.image_url.endswith("/api/media/post_images/abc.png")

    def test_empty_post_rejected(self, db, alice):
        with pytest.raises(ValidationError):
            create_post(db, PostCreate(content="   "), alice.id)
        assert db.query(Post).count() == 0

    def test_too_long(self, db, alice):
        with pytest.raises(ValidationError):
            create_post(db, PostCreate(content="x" * 5001), alice.id)


class TestUpdatePost:
    """Test partial updates and stale image reporting."""

    def test_partial_update_keeps_other_fields(self, db, alice):
        post = make_post(db, alice, "before", image="post_images/old.png")

        updated, stale = update_post(db, post.id, alice.id, PostUpdate(visibility=PostVisibility.private))

        assert updated.content == "before"
        assert updated.image == "post_images/old.png"
        assert updated.visibility == PostVisibility.private
        assert stale is None

    def test_replacing_image_reports_old_key(self, db, alice):
        post = make_post(db, alice, image="post_images/old.png")

        updated, stale = update_post(db, post.id, alice.id, PostUpdate(image="post_images/new.png"))

        assert updated.image == "post_images/new.png"
        assert stale == "post_images/old.png"

    def test_removing_image_of_image_only_post_rejected(self, db, alice):
        post = make_post(db, alice, "", image="post_images/old.png")

        with pytest.raises(ValidationError):
            update_post(db, post.id, alice.id, PostUpdate(remove_image=True))

        db.refresh(post)
        assert post.image == "post_images/old.png"

    def test_only_owner(self, db, alice, bob):
        post = make_post(db, alice)

        with pytest.raises(UnauthorizedError):
            update_post(db, post.id, bob.id, PostUpdate(content="mine now"))
        with pytest.raises(NotFoundError):
            update_post(db, "ghost", alice.id, PostUpdate(content="x"))


class TestDeletePost:
    """Test deleting a post with its comments and likes."""

    def test_cascades_comments_and_likes(self, db, alice, bob):
        post = make_post(db, alice)
        other = make_post(db, bob, minutes=1)
        root = make_comment(db, post, bob)
        reply = make_comment(db, post, alice, parent=root, minutes=1)
        kept = make_comment(db, other, bob)
        toggle_like(db, SubjectType.post, post.id, bob.id)
        toggle_like(db, SubjectType.comment, reply.id, bob.id)
        toggle_like(db, SubjectType.comment, kept.id, alice.id)

        delete_post(db, post.id, alice.id)

        assert [p.id for p in db.query(Post).all()] == [other.id]
        assert [c.id for c in db.query(Comment).all()] == [kept.id]
        assert [like.subject_id for like in db.query(Like).all()] == [kept.id]

    def test_only_owner(self, db, alice, bob):
        post = make_post(db, alice)

        with pytest.raises(UnauthorizedError):
            delete_post(db, post.id, bob.id)
        assert db.query(Post).count() == 1
