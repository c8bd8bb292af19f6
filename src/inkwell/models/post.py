# src/inkwell/models/post.py
"""SQLAlchemy models for posts and their like relation."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import (
    CheckConstraint,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inkwell.db.session import Base
from inkwell.db.time import UTCDateTime, utcnow

if TYPE_CHECKING:
    from .category import Category
    from .tag import Tag
    from .user import User


class PostStatus(str, Enum):
    """Publication states of a post."""

    DRAFT = "draft"
    PUBLISHED = "published"
    SCHEDULED = "scheduled"


# (from, to) pairs a post may move through; anything else is a conflict.
ALLOWED_TRANSITIONS: frozenset[tuple[PostStatus, PostStatus]] = frozenset({
    (PostStatus.DRAFT, PostStatus.PUBLISHED),
    (PostStatus.DRAFT, PostStatus.SCHEDULED),
    (PostStatus.SCHEDULED, PostStatus.PUBLISHED),
    (PostStatus.SCHEDULED, PostStatus.SCHEDULED),
    (PostStatus.PUBLISHED, PostStatus.DRAFT),
    (PostStatus.SCHEDULED, PostStatus.DRAFT),
})


class Post(Base):
    """Primary content entity written by an author."""

    __tablename__ = "post"
    __table_args__ = (
        CheckConstraint("view_count >= 0", name="ck_post_view_count"),
        CheckConstraint("like_count >= 0", name="ck_post_like_count"),
        CheckConstraint("comment_count >= 0", name="ck_post_comment_count"),
        CheckConstraint("save_count >= 0", name="ck_post_save_count"),
        Index("ix_post_status_publish_date", "status", "publish_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    slug: Mapped[str] = mapped_column(String(160), unique=True, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    summary: Mapped[str | None] = mapped_column(String(500), nullable=True)
    featured_image: Mapped[str | None] = mapped_column(Text, nullable=True)

    author_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("user_account.id"),
        nullable=False,
        index=True,
    )
    category_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("category.id"),
        nullable=False,
        index=True,
    )

    status: Mapped[PostStatus] = mapped_column(
        SAEnum(PostStatus, native_enum=False, length=16, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=PostStatus.DRAFT,
    )
    # Set exactly when status is published or scheduled.
    publish_date: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    # Denormalised counters maintained by CounterLedger.
    view_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    like_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    comment_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    save_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    author: Mapped[User] = relationship("User", lazy="joined")
    category: Mapped[Category] = relationship("Category")
    tags: Mapped[list[Tag]] = relationship("Tag", secondary="post_tag", order_by="Tag.name")
    liked_by: Mapped[list[User]] = relationship("User", secondary="post_like", viewonly=True)

    @property
    def tag_ids(self) -> list[int]:
        """Return identifiers of the attached tags."""
        return [tag.id for tag in self.tags]


class PostTag(Base):
    """Association between posts and tags."""

    __tablename__ = "post_tag"

    post_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("post.id", ondelete="CASCADE"),
        primary_key=True,
    )
    tag_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tag.id"),
        primary_key=True,
        index=True,
    )


class PostLike(Base):
    """Per-user like on a post.

    The composite primary key makes a like an atomic set-add: a second insert
    for the same pair violates the key instead of double counting.
    """

    __tablename__ = "post_like"

    post_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("post.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("user_account.id", ondelete="CASCADE"),
        primary_key=True,
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
