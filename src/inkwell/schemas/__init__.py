"""Pydantic schemas consumed by the service layer."""

from .category import CategoryCreate, CategoryUpdate, TagCreate, TagUpdate
from .comment import CommentCreate, CommentUpdate
from .common import Actor, Page
from .notification import SystemBroadcast
from .post import PostCreate, PostFilters, PostUpdate

__all__ = [
    "Actor",
    "CategoryCreate",
    "CategoryUpdate",
    "CommentCreate",
    "CommentUpdate",
    "Page",
    "PostCreate",
    "PostFilters",
    "PostUpdate",
    "SystemBroadcast",
    "TagCreate",
    "TagUpdate",
]
