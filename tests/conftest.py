"""Shared fixtures: SQLite schema, users, authenticated clients."""
from __future__ import annotations

import os
from functools import lru_cache
from typing import Callable, Iterator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import delete

# Ensure the database URL and JWT secret are available before importing application modules.
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_snaptalk.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from snaptalk.database import Base, SessionLocal, engine  # noqa: E402
from snaptalk.main import app  # noqa: E402
from snaptalk.models import (  # noqa: E402
    FriendRequest,
    Friendship,
    Message,
    Post,
    PostComment,
    PostLike,
    User,
    ordered_pair,
    post_tags,
)
from snaptalk.services import create_access_token, get_current_user  # noqa: E402
from snaptalk.services.auth_service import hash_password  # noqa: E402
from snaptalk.services.realtime import connection_registry  # noqa: E402

TEST_PASSWORD = "secret123"


@lru_cache(maxsize=None)
def _hashed(password: str) -> str:
    return hash_password(password)


@pytest.fixture(scope="session", autouse=True)
def _create_schema() -> Iterator[None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _clean_database() -> Iterator[None]:
    with SessionLocal() as session:
        for model in (post_tags, PostComment, PostLike, Post, Message, FriendRequest, Friendship, User):
            session.execute(delete(model))
        session.commit()
    connection_registry.clear()
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def user_factory() -> Callable[..., User]:
    def _factory(username: str, *, password: str = TEST_PASSWORD) -> User:
        with SessionLocal() as session:
            user = User(username=username, hashed_password=_hashed(password))
            session.add(user)
            session.commit()
            session.refresh(user)
            return user
    return _factory


@pytest.fixture
def befriend() -> Callable[[User, User], None]:
    def _befriend(first: User, second: User) -> None:
        user_a_id, user_b_id = ordered_pair(first.id, second.id)
        with SessionLocal() as session:
            session.add(Friendship(user_a_id=user_a_id, user_b_id=user_b_id))
            session.commit()
    return _befriend


@pytest.fixture
def client() -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def authed_client(client: TestClient) -> Callable[[User], TestClient]:
    """Return the shared client acting as ``user`` through a dependency override."""

    def _with_user(user: User) -> TestClient:
        def _override() -> User:
            return user
        app.dependency_overrides[get_current_user] = _override
        return client
    return _with_user


@pytest.fixture
def auth_headers() -> Callable[[User], dict[str, str]]:
    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}
    return _headers
