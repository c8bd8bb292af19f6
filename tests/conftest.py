# tests/conftest.py
from __future__ import annotations

from collections.abc import Callable, Generator, Iterator
from datetime import UTC, datetime, timedelta
from itertools import count
from typing import Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from inkwell.db.session import Base
from inkwell.models import Category, Post, PostStatus, Tag, User, UserRole
from inkwell.schemas import Actor, CategoryCreate, PostCreate, TagCreate
from inkwell.services import Platform

TEST_DB_URL = "sqlite://"

_USER_COUNTER = count(1)


class FakeClock:
    """Controllable clock handed to services in place of ``utcnow``."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        """Move the clock forward by ``timedelta(**delta)`` and return the new time."""
        self.now = self.now + timedelta(**delta)
        return self.now


def actor_for(user: User) -> Actor:
    """Return the request-layer identity for a persisted user."""
    return Actor(id=user.id, is_admin=user.is_admin)


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    # Services commit and roll back on their own, so fixture data is committed
    # and every table is emptied after the test instead of rolling back.
    SessionLocal = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 1, 12, 0, tzinfo=UTC))


@pytest.fixture()
def platform(db_session: Session, clock: FakeClock) -> Platform:
    return Platform(db_session, clock)


@pytest.fixture()
def make_user(db_session: Session, clock: FakeClock) -> Callable[..., User]:
    """Return a factory persisting users with unique usernames."""

    def _make(username: str | None = None, role: UserRole = UserRole.USER, **kwargs: Any) -> User:
        user = User(
            username=username or f"user{next(_USER_COUNTER)}",
            role=role,
            created_at=clock(),
            **kwargs,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture()
def author(make_user: Callable[..., User]) -> User:
    """Create and return the primary post author."""
    return make_user("ada", display_name="Ada")


@pytest.fixture()
def reader(make_user: Callable[..., User]) -> User:
    """Create and return a second, non-admin user."""
    return make_user("grace", display_name="Grace")


@pytest.fixture()
def admin(make_user: Callable[..., User]) -> User:
    """Create and return an administrator."""
    return make_user("root", role=UserRole.ADMIN)


@pytest.fixture()
def category(platform: Platform) -> Category:
    return platform.categories.create(CategoryCreate(name="Engineering"))


@pytest.fixture()
def tags(platform: Platform) -> list[Tag]:
    return [
        platform.tags.create(TagCreate(name="Python")),
        platform.tags.create(TagCreate(name="Databases", color="#0ea5e9")),
    ]


@pytest.fixture()
def make_post(
    platform: Platform,
    author: User,
    category: Category,
) -> Callable[..., Post]:
    """Return a factory creating posts through the lifecycle service."""
    titles = count(1)

    def _make(
        owner: User | None = None,
        status: PostStatus = PostStatus.PUBLISHED,
        **fields: Any,
    ) -> Post:
        fields.setdefault("title", f"Post number {next(titles)}")
        fields.setdefault("content", "<p>Some&nbsp;content worth reading.</p>")
        fields.setdefault("category_id", category.id)
        data = PostCreate(status=status, **fields)
        return platform.posts.create(actor_for(owner or author), data).value

    return _make


@pytest.fixture()
def post(make_post: Callable[..., Post]) -> Post:
    """Create a baseline published post."""
    return make_post(title="Hello World")
