# src/inkwell/models/__init__.py
"""SQLAlchemy models for the Inkwell core."""

from .category import Category
from .comment import Comment, CommentLike
from .notification import Notification, NotificationType
from .post import ALLOWED_TRANSITIONS, Post, PostLike, PostStatus, PostTag
from .tag import Tag
from .user import SavedPost, User, UserFollow, UserRole

__all__ = [
    "ALLOWED_TRANSITIONS",
    "Category",
    "Comment", "CommentLike",
    "Notification", "NotificationType",
    "Post", "PostLike", "PostStatus", "PostTag",
    "SavedPost",
    "Tag",
    "User", "UserFollow", "UserRole",
]
