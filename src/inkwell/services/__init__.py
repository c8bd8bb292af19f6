"""Service layer of the Inkwell core."""

from .categories import UNSET, CategoryTree
from .comments import CommentThread, ThreadEntry
from .counters import CounterLedger
from .events import (
    CommentAdded,
    CommentLiked,
    DomainEvent,
    Outcome,
    PostLiked,
    ReplyAdded,
    UserFollowed,
)
from .notifications import NotificationDispatcher
from .platform import Platform
from .posts import PostLifecycle
from .social import SocialGraph
from .tags import TagCatalog

__all__ = [
    "UNSET",
    "CategoryTree",
    "CommentAdded",
    "CommentLiked",
    "CommentThread",
    "CounterLedger",
    "DomainEvent",
    "NotificationDispatcher",
    "Outcome",
    "Platform",
    "PostLifecycle",
    "PostLiked",
    "ReplyAdded",
    "SocialGraph",
    "TagCatalog",
    "ThreadEntry",
    "UserFollowed",
]
