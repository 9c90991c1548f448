# tests/conftest.py
"""Shared fixtures: an in-memory SQLite database, users and an HTTP client."""

import os
import tempfile
from datetime import datetime, timedelta

# must be set before app.core.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["UPLOAD_DIRECTORY"] = tempfile.mkdtemp(prefix="feed-uploads-")
os.environ["R2_ENDPOINT"] = ""
os.environ["DEBUG"] = "false"

import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.security import create_access_token
from app.db.base import Base
from app.db.init_db import create_all_tables
from app.db.session import get_db
from app.main import app
from app.modules.posts.comments.models.comment import Comment
from app.modules.posts.models.post import Post, PostVisibility
from app.modules.user_management.schemas.user import UserCreate
from app.modules.user_management.services.user import create_user

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture
def db():
    create_all_tables(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    return TestClient(app)


def _user(db, first_name, email):
    return create_user(db, UserCreate(
        first_name=first_name,
        last_name="Tester",
        email=email,
        password="password123",
    ))


@pytest.fixture
def alice(db):
    return _user(db, "Alice", "alice@example.com")


@pytest.fixture
def bob(db):
    return _user(db, "Bob", "bob@example.com")


@pytest.fixture
def carol(db):
    return _user(db, "Carol", "carol@example.com")


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


def make_post(db, user, content="Hello feed", minutes=0, visibility=PostVisibility.public, image=None):
    """Insert a post directly, created `minutes` after BASE_TIME"""
    created = BASE_TIME + timedelta(minutes=minutes)
    post = Post(
        id=str(uuid.uuid4()),
        user_id=user.id,
        content=content,
        image=image,
        visibility=visibility,
        created_at=created,
        updated_at=created,
    )
    db.add(post)
    db.commit()
    db.refresh(post)
    return post


def make_comment(db, post, user, content="A comment", parent=None, minutes=0):
    """Insert a comment directly, created `minutes` after BASE_TIME"""
    created = BASE_TIME + timedelta(minutes=minutes)
    comment = Comment(
        id=str(uuid.uuid4()),
        post_id=post.id,
        user_id=user.id,
        parent_id=parent.id if parent else None,
        content=content,
        created_at=created,
        updated_at=created,
    )
    db.add(comment)
    db.commit()
    db.refresh(comment)
    return comment
