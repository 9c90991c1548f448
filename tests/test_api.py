# tests/test_api.py
"""HTTP tests for the auth, post, comment, like and media endpoints."""

import pytest

from app.modules.posts.models.post import PostVisibility

from conftest import auth_headers, make_comment, make_post

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class TestAuth:
    """Test registration, login and the current user endpoint."""

    def test_register_login_and_me(self, client):
        response = client.post("/api/auth/user/register", json={
            "first_name": "Dana",
            "last_name": "Scully",
            "email": "Dana@Example.com",
            "password": "trustno1!",
        })
        assert response.status_code == 201
        body = response.json()
        assert body["user"]["email"] == "dana@example.com"
        assert body["token_type"] == "bearer"

        response = client.post("/api/auth/user/login", json={"email": "dana@example.com", "password": "trustno1!"})
        assert response.status_code == 200
        token = response.json()["token"]

        me = client.get("/api/user/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["first_name"] == "Dana"

    def test_duplicate_email(self, client, alice):
        response = client.post("/api/auth/user/register", json={
            "first_name": "Other",
            "last_name": "Alice",
            "email": "alice@example.com",
            "password": "password123",
        })

        assert response.status_code == 422
        assert "email" in response.json()["errors"]

    def test_wrong_password(self, client, alice):
        response = client.post("/api/auth/user/login", json={"email": "alice@example.com", "password": "nope-nope"})

        assert response.status_code == 401
        assert response.json() == {"message": "Wrong credentials"}

    def test_missing_token(self, client):
        response = client.get("/api/posts")

        assert response.status_code == 401
        assert response.json()["message"] == "Unauthenticated"

    def test_garbage_token(self, client):
        response = client.get("/api/posts", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401

    def test_logout(self, client, alice):
        response = client.post("/api/auth/user/logout", headers=auth_headers(alice))

        assert response.status_code == 200
        assert response.json()["message"] == "Logged out successfully"


class TestPostEndpoints:
    """Test the post endpoints, image uploads included."""

    def test_create_with_image_and_serve_it(self, client, alice):
        response = client.post(
            "/api/posts",
            data={"content": "look at this"},
            files={"image": ("photo.png", PNG, "image/png")},
            headers=auth_headers(alice),
        )
        assert response.status_code == 201
        post = response.json()["post"]
        assert response.json()["message"] == "Post created!"
        assert post["image"].startswith("post_images/")
        assert post["image_url"].endswith(f"/api/media/{post['image']}")

        media = client.get(f"/api/media/{post['image']}")
        assert media.status_code == 200
        assert media.content == PNG
        assert media.headers["content-type"] == "image/png"

    def test_rejects_unsupported_image_type(self, client, alice):
        response = client.post(
            "/api/posts",
            data={"content": "virus"},
            files={"image": ("notes.exe", b"MZ", "application/octet-stream")},
            headers=auth_headers(alice),
        )

        assert response.status_code == 422
        assert "image" in response.json()["errors"]

    def test_rejects_empty_post(self, client, alice):
        response = client.post("/api/posts", data={"content": "  "}, headers=auth_headers(alice))

        assert response.status_code == 422
        assert "content" in response.json()["errors"]

    def test_feed_pagination(self, client, db, alice):
        for i in range(3):
            make_post(db, alice, f"post {i}", minutes=i)

        response = client.get("/api/posts", params={"page": 1, "per_page": 2}, headers=auth_headers(alice))

        body = response.json()
        assert response.status_code == 200
        assert [post["content"] for post in body["data"]] == ["post 2", "post 1"]
        assert body["has_more"] is True
        assert body["last_page"] == 2

    def test_get_private_post_of_other_user(self, client, db, alice, bob):
        post = make_post(db, alice, visibility=PostVisibility.private)

        assert client.get(f"/api/posts/{post.id}", headers=auth_headers(bob)).status_code == 404
        assert client.get(f"/api/posts/{post.id}", headers=auth_headers(alice)).status_code == 200

    def test_update_replaces_image_and_removes_old_file(self, client, alice):
        headers = auth_headers(alice)
        created = client.post(
            "/api/posts",
            data={"content": "v1"},
            files={"image": ("one.png", PNG, "image/png")},
            headers=headers,
        ).json()["post"]

        response = client.post(
            f"/api/posts/{created['id']}",
            data={"content": "v2"},
            files={"image": ("two.jpg", b"\xff\xd8\xff", "image/jpeg")},
            headers=headers,
        )

        updated = response.json()["post"]
        assert response.status_code == 200
        assert updated["content"] == "v2"
        assert updated["image"] != created["image"]
        assert client.get(f"/api/media/{created['image']}").status_code == 404
        assert client.get(f"/api/media/{updated['image']}").status_code == 200

    def test_put_partial_update(self, client, db, alice):
        post = make_post(db, alice, "same text")

        response = client.put(f"/api/posts/{post.id}", data={"visibility": "private"}, headers=auth_headers(alice))

        assert response.status_code == 200
        assert response.json()["post"]["visibility"] == "private"
        assert response.json()["post"]["content"] == "same text"

    def test_update_by_other_user(self, client, db, alice, bob):
        post = make_post(db, alice)

        response = client.put(f"/api/posts/{post.id}", data={"content": "hijack"}, headers=auth_headers(bob))

        assert response.status_code == 403

    def test_delete_cascades(self, client, db, alice, bob):
        post = make_post(db, alice)
        root = make_comment(db, post, bob)
        make_comment(db, post, alice, parent=root, minutes=1)
        post_id = post.id

        response = client.delete(f"/api/posts/{post.id}", headers=auth_headers(alice))

        assert response.status_code == 200
        assert response.json() == {"message": "Post deleted"}
        assert client.get(f"/api/posts/{post_id}", headers=auth_headers(alice)).status_code == 404
        assert client.get(f"/api/post/{post_id}/comments", headers=auth_headers(alice)).status_code == 404

    def test_user_posts(self, client, db, alice, bob):
        make_post(db, alice, "public")
        make_post(db, alice, "secret", minutes=1, visibility=PostVisibility.private)

        response = client.get(f"/api/users/{alice.id}/posts", headers=auth_headers(bob))

        assert [post["content"] for post in response.json()] == ["public"]
        assert client.get("/api/users/ghost/posts", headers=auth_headers(bob)).status_code == 404


class TestCommentEndpoints:
    """Test the comment thread endpoints."""

    def test_comment_reply_and_tree(self, client, db, alice, bob):
        post = make_post(db, alice)

        first = client.post(f"/api/post/comments/{post.id}", json={"content": "first"}, headers=auth_headers(bob))
        assert first.status_code == 201
        assert first.json()["message"] == "Comment added"
        root_id = first.json()["comment"]["id"]

        reply = client.post(
            f"/api/post/comments/{post.id}",
            json={"content": "reply", "parent_id": root_id},
            headers=auth_headers(alice),
        )
        assert reply.status_code == 201

        tree = client.get(f"/api/post/{post.id}/comments", headers=auth_headers(alice)).json()
        assert tree["total"] == 2
        assert tree["comments"][0]["id"] == root_id
        assert tree["comments"][0]["replies"][0]["content"] == "reply"
        assert tree["comments"][0]["replies"][0]["user"]["first_name"] == "Alice"

    def test_missing_content_field(self, client, db, alice):
        post = make_post(db, alice)

        response = client.post(f"/api/post/comments/{post.id}", json={}, headers=auth_headers(alice))

        assert response.status_code == 422
        assert response.json()["message"] == "The given data was invalid."
        assert "content" in response.json()["errors"]

    def test_blank_content(self, client, db, alice):
        post = make_post(db, alice)

        response = client.post(f"/api/post/comments/{post.id}", json={"content": "   "}, headers=auth_headers(alice))

        assert response.status_code == 422
        assert response.json()["errors"]["content"]

    def test_edit_and_permissions(self, client, db, alice, bob):
        post = make_post(db, alice)
        comment = make_comment(db, post, bob, "orig")

        forbidden = client.put(f"/api/post/comments/{comment.id}", json={"content": "x"}, headers=auth_headers(alice))
        assert forbidden.status_code == 403

        edited = client.put(f"/api/post/comments/{comment.id}", json={"content": "better"}, headers=auth_headers(bob))
        assert edited.status_code == 200
        assert edited.json()["comment"]["content"] == "better"
        assert edited.json()["comment"]["is_edited"] is True

    def test_delete_returns_removed_ids(self, client, db, alice, bob):
        post = make_post(db, alice)
        root = make_comment(db, post, bob)
        reply = make_comment(db, post, alice, parent=root, minutes=1)
        expected = [reply.id, root.id]
        post_id = post.id

        response = client.delete(f"/api/post/comments/{root.id}", headers=auth_headers(bob))

        assert response.status_code == 200
        assert response.json()["deleted_ids"] == expected
        tree = client.get(f"/api/post/{post_id}/comments", headers=auth_headers(bob)).json()
        assert tree == {"post_id": post_id, "total": 0, "comments": []}

    def test_delete_missing_comment(self, client, alice):
        response = client.delete("/api/post/comments/ghost", headers=auth_headers(alice))

        assert response.status_code == 404
        assert response.json() == {"message": "Comment not found"}


class TestLikeEndpoints:
    """Test the like toggle endpoints."""

    @pytest.mark.parametrize("subject", ["post", "comment"])
    def test_toggle_twice(self, client, db, alice, bob, subject):
        post = make_post(db, alice)
        comment = make_comment(db, post, alice)
        subject_id = post.id if subject == "post" else comment.id
        url = f"/api/like/{subject}/{subject_id}"

        liked = client.post(url, headers=auth_headers(bob)).json()
        assert liked["liked"] is True
        assert liked["count"] == 1
        assert liked["users"][0]["id"] == bob.id

        unliked = client.post(url, headers=auth_headers(bob)).json()
        assert unliked == {"liked": False, "count": 0, "users": []}

    def test_list_likes(self, client, db, alice, bob):
        post = make_post(db, alice)
        client.post(f"/api/like/post/{post.id}", headers=auth_headers(bob))

        state = client.get(f"/api/like/post/{post.id}", headers=auth_headers(alice)).json()

        assert state["count"] == 1
        assert state["liked"] is False

    def test_unknown_subject_type(self, client, db, alice):
        post = make_post(db, alice)

        assert client.post(f"/api/like/photo/{post.id}", headers=auth_headers(alice)).status_code == 422

    def test_like_missing_post(self, client, alice):
        response = client.post("/api/like/post/ghost", headers=auth_headers(alice))

        assert response.status_code == 404
        assert response.json() == {"message": "Post not found"}

    def test_like_shows_up_in_feed(self, client, db, alice, bob):
        post = make_post(db, alice)
        client.post(f"/api/like/post/{post.id}", headers=auth_headers(bob))

        [item] = client.get("/api/posts", headers=auth_headers(bob)).json()["data"]

        assert item["likes_count"] == 1
        assert item["liked"] is True


class TestUserEndpoints:
    def test_update_profile(self, client, alice):
        response = client.put("/api/user/update-profile", json={"first_name": " Alicia "}, headers=auth_headers(alice))

        assert response.status_code == 200
        assert response.json()["first_name"] == "Alicia"
        assert response.json()["last_name"] == "Tester"

    def test_update_password(self, client, alice):
        headers = auth_headers(alice)

        wrong = client.put(
            "/api/user/update-password",
            json={"current_password": "not-it-at-all", "new_password": "newpassword1"},
            headers=headers,
        )
        assert wrong.status_code == 422
        assert "current_password" in wrong.json()["errors"]

        ok = client.put(
            "/api/user/update-password",
            json={"current_password": "password123", "new_password": "newpassword1"},
            headers=headers,
        )
        assert ok.status_code == 200
        login = client.post("/api/auth/user/login", json={"email": "alice@example.com", "password": "newpassword1"})
        assert login.status_code == 200

    def test_root_banner(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert "version" in response.json()
