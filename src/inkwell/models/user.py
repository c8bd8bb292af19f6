# src/inkwell/models/user.py
"""SQLAlchemy models for user identities and the follow graph."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, Enum as SAEnum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inkwell.db.session import Base
from inkwell.db.time import UTCDateTime, utcnow

if TYPE_CHECKING:
    from .post import Post


class UserRole(str, Enum):
    """Roles recognised by the core; only ``admin`` carries extra rights."""

    USER = "user"
    EDITOR = "editor"
    ADMIN = "admin"


class User(Base):
    """Account owned by the identity provider; the core owns its social sets."""

    __tablename__ = "user_account"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(30), unique=True, nullable=False)
    display_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    avatar: Mapped[str | None] = mapped_column(Text, nullable=True)
    role: Mapped[UserRole] = mapped_column(
        SAEnum(UserRole, native_enum=False, length=16, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=UserRole.USER,
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    # Both directions read the same rows, so b in a.following <=> a in b.followers.
    following: Mapped[list[User]] = relationship(
        "User",
        secondary="user_follow",
        primaryjoin="User.id == UserFollow.follower_id",
        secondaryjoin="User.id == UserFollow.followed_id",
        viewonly=True,
        order_by="User.username",
    )
    followers: Mapped[list[User]] = relationship(
        "User",
        secondary="user_follow",
        primaryjoin="User.id == UserFollow.followed_id",
        secondaryjoin="User.id == UserFollow.follower_id",
        viewonly=True,
        order_by="User.username",
    )
    saved_posts: Mapped[list[Post]] = relationship(
        "Post",
        secondary="saved_post",
        viewonly=True,
    )

    @property
    def is_admin(self) -> bool:
        """Return True when the user holds the admin role."""
        return self.role == UserRole.ADMIN

    @property
    def name(self) -> str:
        """Return the name shown in notification text."""
        return self.display_name or self.username


class UserFollow(Base):
    """Directed follow edge; presence implies the relation."""

    __tablename__ = "user_follow"
    __table_args__ = (
        CheckConstraint("follower_id <> followed_id", name="ck_user_follow_not_self"),
    )

    follower_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("user_account.id", ondelete="CASCADE"),
        primary_key=True,
    )
    followed_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("user_account.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)


class SavedPost(Base):
    """Bookmark of a post by a user."""

    __tablename__ = "saved_post"

    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("user_account.id", ondelete="CASCADE"),
        primary_key=True,
    )
    post_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("post.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
