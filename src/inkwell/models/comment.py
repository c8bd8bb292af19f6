# src/inkwell/models/comment.py
"""SQLAlchemy models for threaded comments."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inkwell.db.session import Base
from inkwell.db.time import UTCDateTime, utcnow

if TYPE_CHECKING:
    from .post import Post
    from .user import User


class Comment(Base):
    """Node of a per-post comment forest.

    ``level`` and ``path`` are written once at creation from the parent and
    never change afterwards; soft deletion only affects visibility.
    """

    __tablename__ = "comment"
    __table_args__ = (
        CheckConstraint("level >= 1", name="ck_comment_level"),
        CheckConstraint("like_count >= 0", name="ck_comment_like_count"),
        Index("ix_comment_post_created", "post_id", "created_at"),
        Index("ix_comment_author_created", "author_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    post_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("post.id", ondelete="CASCADE"),
        nullable=False,
    )
    author_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("user_account.id"),
        nullable=False,
    )
    parent_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("comment.id"),
        nullable=True,
        index=True,
    )
    # 1 = top-level, parent.level + 1 for replies.
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    # Ancestor ids joined by "/", empty for top-level comments.
    path: Mapped[str] = mapped_column(String(512), nullable=False, default="", index=True)

    like_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_edited: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_highlighted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    deleted_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    post: Mapped[Post] = relationship("Post")
    author: Mapped[User] = relationship("User", lazy="joined")
    parent: Mapped[Comment | None] = relationship("Comment", remote_side=[id])
    liked_by: Mapped[list[User]] = relationship("User", secondary="comment_like", viewonly=True)

    @property
    def ancestor_ids(self) -> list[int]:
        """Return ancestor identifiers from the root down, parsed from ``path``."""
        return [int(part) for part in self.path.split("/") if part]

    @property
    def counts_toward_post(self) -> bool:
        """Return True when this comment is included in ``Post.comment_count``."""
        return self.is_approved and not self.is_deleted


class CommentLike(Base):
    """Per-user like on a comment."""

    __tablename__ = "comment_like"

    comment_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("comment.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("user_account.id", ondelete="CASCADE"),
        primary_key=True,
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
