"""Notification fan-out and inbox management."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.orm import Session

from inkwell.core.errors import ForbiddenError, InvalidArgumentError, NotFoundError
from inkwell.core.settings import settings
from inkwell.db.session import transaction
from inkwell.db.time import Clock, utcnow
from inkwell.models import Notification, NotificationType, Post, User
from inkwell.schemas.common import Actor, Page
from inkwell.schemas.notification import SystemBroadcast
from inkwell.services.events import (
    CommentAdded,
    CommentLiked,
    DomainEvent,
    PostLiked,
    ReplyAdded,
    UserFollowed,
)
from inkwell.services.paging import paginate

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Turns domain events into notifications and manages each user's inbox."""

    def __init__(
        self,
        session: Session,
        clock: Clock = utcnow,
        link_prefix: str | None = None,
    ) -> None:
        self.session = session
        self.clock = clock
        self.link_prefix = settings.notification_link_prefix if link_prefix is None else link_prefix

    # -- fan-out ------------------------------------------------------

    def dispatch(self, events: Iterable[DomainEvent]) -> list[Notification]:
        """Persist one notification per event, each in its own transaction.

        Runs after the mutation that produced the events has committed. A
        failure is logged and skipped so it never reaches the caller.
        """
        created: list[Notification] = []
        for event in events:
            if event.is_self_directed:
                continue
            try:
                with transaction(self.session):
                    notification = self._build(event)
                    self.session.add(notification)
            except Exception:
                logger.exception(
                    "Failed to create %s notification for user %s",
                    event.notification_type.value, event.recipient_id,
                    extra={"event_type": type(event).__name__, "user_id": event.recipient_id},
                )
                continue
            created.append(notification)
        return created

    def _build(self, event: DomainEvent) -> Notification:
        sender = self.session.get(User, event.sender_id)
        if sender is None:
            raise NotFoundError("User", event.sender_id)
        if self.session.get(User, event.recipient_id) is None:
            raise NotFoundError("User", event.recipient_id)

        notification = Notification(
            recipient_id=event.recipient_id,
            sender_id=sender.id,
            type=event.notification_type,
            created_at=self.clock(),
        )
        if isinstance(event, UserFollowed):
            notification.title = "New follower"
            notification.content = f"{sender.name} started following you"
            notification.link = f"/users/{sender.id}"
            return notification

        post = self.session.get(Post, event.post_id)
        if post is None:
            raise NotFoundError("Post", event.post_id)
        notification.related_post_id = post.id
        post_link = f"{self.link_prefix}/{post.slug}"

        if isinstance(event, CommentAdded):
            notification.title = "New comment"
            notification.content = f'{sender.name} commented on your post "{post.title}"'
            notification.related_comment_id = event.comment_id
            notification.link = f"{post_link}#comment-{event.comment_id}"
        elif isinstance(event, ReplyAdded):
            notification.title = "New reply"
            notification.content = f"{sender.name} replied to your comment"
            notification.related_comment_id = event.comment_id
            notification.link = f"{post_link}#comment-{event.comment_id}"
        elif isinstance(event, PostLiked):
            notification.title = "Post liked"
            notification.content = f'{sender.name} liked your post "{post.title}"'
            notification.link = post_link
        elif isinstance(event, CommentLiked):
            notification.title = "Comment liked"
            notification.content = f"{sender.name} liked your comment"
            notification.related_comment_id = event.comment_id
            notification.link = f"{post_link}#comment-{event.comment_id}"
        else:
            raise TypeError(f"Unsupported event {type(event).__name__}")
        return notification

    def broadcast(self, actor: Actor, data: SystemBroadcast) -> int:
        """Send a system notice to the listed users, or to every user; return how many."""
        if not actor.is_admin:
            raise ForbiddenError("Only admins can send system notifications")
        with transaction(self.session):
            stmt = select(User.id).order_by(User.id)
            if data.recipients != "all":
                if not data.recipients:
                    raise InvalidArgumentError("At least one recipient is required")
                stmt = stmt.where(User.id.in_(set(data.recipients)))
            recipient_ids = list(self.session.scalars(stmt))
            if not recipient_ids:
                raise InvalidArgumentError("No matching recipients")
            now = self.clock()
            self.session.execute(
                insert(Notification),
                [
                    {
                        "recipient_id": recipient_id,
                        "sender_id": None,
                        "type": NotificationType.SYSTEM,
                        "title": data.title,
                        "content": data.content,
                        "link": data.link,
                        "is_read": False,
                        "created_at": now,
                    }
                    for recipient_id in recipient_ids
                ],
            )
        logger.info('System notification "%s" sent to %d user(s)', data.title, len(recipient_ids))
        return len(recipient_ids)

    # -- inbox --------------------------------------------------------

    def _owned(self, notification_id: int, recipient_id: int) -> Notification:
        notification = self.session.get(Notification, notification_id)
        if notification is None:
            raise NotFoundError("Notification", notification_id)
        if notification.recipient_id != recipient_id:
            raise ForbiddenError("Notification belongs to another user")
        return notification

    def mark_read(self, notification_id: int, recipient_id: int) -> Notification:
        with transaction(self.session):
            notification = self._owned(notification_id, recipient_id)
            if not notification.is_read:
                notification.is_read = True
                notification.read_at = self.clock()
        return notification

    def mark_all_read(self, recipient_id: int, ids: Sequence[int] | None = None) -> int:
        """Mark unread notifications as read, optionally only those in ``ids``."""
        with transaction(self.session):
            stmt = update(Notification).where(
                Notification.recipient_id == recipient_id,
                Notification.is_read.is_(False),
            )
            if ids is not None:
                stmt = stmt.where(Notification.id.in_(list(ids)))
            result = self.session.execute(
                stmt.values(is_read=True, read_at=self.clock()).execution_options(
                    synchronize_session="evaluate"
                )
            )
        return result.rowcount or 0

    def delete(self, notification_id: int, recipient_id: int) -> None:
        with transaction(self.session):
            notification = self._owned(notification_id, recipient_id)
            self.session.delete(notification)

    def bulk_delete(
        self,
        recipient_id: int,
        ids: Sequence[int] | None = None,
        delete_all_read: bool = False,
    ) -> int:
        """Delete the listed notifications, or all read ones; with neither, nothing."""
        stmt = delete(Notification).where(Notification.recipient_id == recipient_id)
        if ids:
            stmt = stmt.where(Notification.id.in_(list(ids)))
        elif delete_all_read:
            stmt = stmt.where(Notification.is_read.is_(True))
        else:
            return 0
        with transaction(self.session):
            result = self.session.execute(stmt.execution_options(synchronize_session="evaluate"))
        return result.rowcount or 0

    def list_for(
        self,
        recipient_id: int,
        is_read: bool | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> Page[Notification]:
        """A user's notifications newest first; ``meta["unread"]`` holds the unread total."""
        stmt = select(Notification).where(Notification.recipient_id == recipient_id)
        if is_read is not None:
            stmt = stmt.where(Notification.is_read.is_(is_read))
        result = paginate(
            self.session,
            stmt.order_by(Notification.created_at.desc(), Notification.id.desc()),
            page,
            limit,
        )
        result.meta["unread"] = self.unread_count(recipient_id)
        return result

    def unread_count(self, recipient_id: int) -> int:
        return self.session.scalar(
            select(func.count())
            .select_from(Notification)
            .where(Notification.recipient_id == recipient_id, Notification.is_read.is_(False))
        ) or 0
