"""Domain events emitted by mutating operations.

Operations return an ``Outcome`` carrying both their result and the events the
mutation produced. Nothing is dispatched implicitly: the caller hands the
events to ``NotificationDispatcher`` once the primary transaction committed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, TypeVar

from inkwell.models.notification import NotificationType

T = TypeVar("T")


@dataclass(frozen=True)
class DomainEvent:
    """Base class for events; ``sender_id`` and ``recipient_id`` are user ids."""

    sender_id: int
    recipient_id: int

    @property
    def notification_type(self) -> NotificationType:
        raise NotImplementedError

    @property
    def is_self_directed(self) -> bool:
        """Return True when the actor would be notifying themselves."""
        return self.sender_id == self.recipient_id


@dataclass(frozen=True)
class UserFollowed(DomainEvent):
    """``sender_id`` started following ``recipient_id``."""

    @property
    def notification_type(self) -> NotificationType:
        return NotificationType.FOLLOW


@dataclass(frozen=True)
class CommentAdded(DomainEvent):
    """A top-level comment was written on the recipient's post."""

    post_id: int = 0
    comment_id: int = 0

    @property
    def notification_type(self) -> NotificationType:
        return NotificationType.COMMENT


@dataclass(frozen=True)
class ReplyAdded(DomainEvent):
    """A reply was written to the recipient's comment."""

    post_id: int = 0
    comment_id: int = 0
    parent_comment_id: int = 0

    @property
    def notification_type(self) -> NotificationType:
        return NotificationType.REPLY


@dataclass(frozen=True)
class PostLiked(DomainEvent):
    """The recipient's post was liked."""

    post_id: int = 0

    @property
    def notification_type(self) -> NotificationType:
        return NotificationType.LIKE_POST


@dataclass(frozen=True)
class CommentLiked(DomainEvent):
    """The recipient's comment was liked."""

    post_id: int = 0
    comment_id: int = 0

    @property
    def notification_type(self) -> NotificationType:
        return NotificationType.LIKE_COMMENT


@dataclass
class Outcome(Generic[T]):
    """Result of a mutating operation together with the events it produced."""

    value: T
    events: list[DomainEvent] = field(default_factory=list)


__all__ = [
    "CommentAdded",
    "CommentLiked",
    "DomainEvent",
    "Outcome",
    "PostLiked",
    "ReplyAdded",
    "UserFollowed",
]
