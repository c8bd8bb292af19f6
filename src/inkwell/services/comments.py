"""Threaded comments: creation, moderation, likes and thread reads."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from inkwell.core.errors import ForbiddenError, InvalidArgumentError, NotFoundError
from inkwell.core.settings import settings
from inkwell.db.session import transaction
from inkwell.db.time import Clock, utcnow
from inkwell.models import Comment, CommentLike, Post, User
from inkwell.schemas.comment import CommentCreate, CommentUpdate
from inkwell.schemas.common import Actor, Page
from inkwell.services.counters import CounterLedger
from inkwell.services.events import CommentAdded, CommentLiked, DomainEvent, Outcome, ReplyAdded
from inkwell.services.paging import paginate

logger = logging.getLogger(__name__)


@dataclass
class ThreadEntry:
    """A top-level comment with a preview of its earliest replies."""

    comment: Comment
    replies: list[Comment] = field(default_factory=list)
    reply_count: int = 0


def _visible(stmt: Select) -> Select:
    return stmt.where(Comment.is_approved.is_(True), Comment.is_deleted.is_(False))


class CommentThread:
    """Service maintaining per-post comment forests.

    ``Post.comment_count`` tracks comments that are approved and not deleted;
    every operation that flips either flag adjusts it in the same transaction.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock = utcnow,
        ledger: CounterLedger | None = None,
    ) -> None:
        self.session = session
        self.clock = clock
        self.ledger = ledger or CounterLedger(session)

    def get(self, comment_id: int) -> Comment:
        """Return a comment that has not been soft-deleted."""
        comment = self.session.get(Comment, comment_id)
        if comment is None or comment.is_deleted:
            raise NotFoundError("Comment", comment_id)
        return comment

    def create(self, actor: Actor, data: CommentCreate) -> Outcome[Comment]:
        """Add a top-level comment or a reply.

        A reply's level is its parent's plus one and its path is the parent's
        path extended with the parent id.
        """
        with transaction(self.session):
            post = self.session.get(Post, data.post_id)
            if post is None:
                raise NotFoundError("Post", data.post_id)
            if self.session.get(User, actor.id) is None:
                raise NotFoundError("User", actor.id)

            parent: Comment | None = None
            level, path = 1, ""
            if data.parent_id is not None:
                parent = self.session.get(Comment, data.parent_id)
                if parent is None:
                    raise NotFoundError("Comment", data.parent_id)
                if parent.post_id != post.id:
                    raise InvalidArgumentError("Parent comment belongs to a different post")
                level = parent.level + 1
                path = f"{parent.path}/{parent.id}" if parent.path else str(parent.id)

            now = self.clock()
            comment = Comment(
                content=data.content,
                post_id=post.id,
                author_id=actor.id,
                parent_id=parent.id if parent else None,
                level=level,
                path=path,
                is_approved=True,
                created_at=now,
                updated_at=now,
            )
            self.session.add(comment)
            self.session.flush()
            self.ledger.adjust_comment_count(post.id, 1)

        events: list[DomainEvent] = []
        if parent is None:
            if post.author_id != actor.id:
                events.append(
                    CommentAdded(actor.id, post.author_id, post_id=post.id, comment_id=comment.id)
                )
        elif parent.author_id != actor.id:
            events.append(
                ReplyAdded(
                    actor.id,
                    parent.author_id,
                    post_id=post.id,
                    comment_id=comment.id,
                    parent_comment_id=parent.id,
                )
            )
        logger.info(
            "Comment %s added to post %s by user %s",
            comment.id, post.id, actor.id,
            extra={"comment_id": comment.id, "post_id": post.id},
        )
        return Outcome(comment, events)

    def update(self, comment_id: int, actor: Actor, data: CommentUpdate) -> Comment:
        with transaction(self.session):
            comment = self.get(comment_id)
            if comment.author_id != actor.id:
                raise ForbiddenError("Only the author can edit this comment")
            comment.content = data.content
            comment.is_edited = True
            comment.updated_at = self.clock()
        return comment

    def delete(self, comment_id: int, actor: Actor) -> None:
        """Soft-delete a comment; its replies stay in place."""
        with transaction(self.session):
            comment = self.get(comment_id)
            if comment.author_id != actor.id and not actor.is_admin:
                raise ForbiddenError("Only the author or an admin can delete this comment")
            counted = comment.counts_toward_post
            now = self.clock()
            comment.is_deleted = True
            comment.deleted_at = now
            comment.updated_at = now
            if counted:
                self.ledger.adjust_comment_count(comment.post_id, -1)
        logger.info("Comment %s deleted by user %s", comment_id, actor.id, extra={"comment_id": comment_id})

    def like(self, comment_id: int, actor: Actor) -> Outcome[Comment]:
        """Like a comment; liking it again leaves it unchanged."""
        with transaction(self.session):
            comment = self.get(comment_id)
            if self.session.get(CommentLike, (comment_id, actor.id)) is not None:
                return Outcome(comment)
            if self.session.get(User, actor.id) is None:
                raise NotFoundError("User", actor.id)
            self.session.add(
                CommentLike(comment_id=comment_id, user_id=actor.id, created_at=self.clock())
            )
            self.ledger.sync_comment_likes(comment_id)
        events: list[DomainEvent] = []
        if comment.author_id != actor.id:
            events.append(
                CommentLiked(actor.id, comment.author_id, post_id=comment.post_id, comment_id=comment_id)
            )
        return Outcome(comment, events)

    def unlike(self, comment_id: int, actor: Actor) -> Comment:
        """Remove a like; unliking a comment that is not liked changes nothing."""
        with transaction(self.session):
            comment = self.get(comment_id)
            like = self.session.get(CommentLike, (comment_id, actor.id))
            if like is not None:
                self.session.delete(like)
                self.ledger.sync_comment_likes(comment_id)
        return comment

    def moderate(self, comment_id: int, actor: Actor, is_approved: bool) -> Comment:
        """Approve or reject a comment.

        Repeating the current state is a no-op. The post's comment count only
        moves when the state flips on a comment that is not deleted.
        """
        if not actor.is_admin:
            raise ForbiddenError("Only admins can moderate comments")
        with transaction(self.session):
            comment = self.session.get(Comment, comment_id)
            if comment is None:
                raise NotFoundError("Comment", comment_id)
            if comment.is_approved != is_approved:
                comment.is_approved = is_approved
                comment.updated_at = self.clock()
                if not comment.is_deleted:
                    self.ledger.adjust_comment_count(comment.post_id, 1 if is_approved else -1)
        logger.info(
            "Comment %s moderation: %s", comment_id, "approved" if is_approved else "rejected",
            extra={"comment_id": comment_id},
        )
        return comment

    def highlight(self, comment_id: int, actor: Actor, is_highlighted: bool) -> Comment:
        if not actor.is_admin:
            raise ForbiddenError("Only admins can highlight comments")
        with transaction(self.session):
            comment = self.get(comment_id)
            comment.is_highlighted = is_highlighted
            comment.updated_at = self.clock()
        return comment

    # -- reads --------------------------------------------------------

    def list_by_post(self, post_id: int, page: int = 1, limit: int | None = None) -> Page[ThreadEntry]:
        """Top-level visible comments, highlighted first then newest first."""
        if self.session.get(Post, post_id) is None:
            raise NotFoundError("Post", post_id)
        stmt = _visible(
            select(Comment).where(Comment.post_id == post_id, Comment.parent_id.is_(None))
        ).order_by(Comment.is_highlighted.desc(), Comment.created_at.desc(), Comment.id.desc())
        roots = paginate(self.session, stmt, page, limit)
        entries = [self._entry(comment) for comment in roots.items]
        return Page(items=entries, total=roots.total, page=roots.page, limit=roots.limit)

    def _entry(self, comment: Comment) -> ThreadEntry:
        replies = _visible(select(Comment).where(Comment.parent_id == comment.id))
        preview = list(
            self.session.scalars(
                replies.order_by(Comment.created_at.asc(), Comment.id.asc()).limit(
                    settings.reply_preview_size
                )
            )
        )
        total = self.session.scalar(select(func.count()).select_from(replies.subquery())) or 0
        return ThreadEntry(comment=comment, replies=preview, reply_count=total)

    def list_replies(self, comment_id: int, page: int = 1, limit: int | None = None) -> Page[Comment]:
        """Visible direct replies, oldest first.

        The parent itself may be soft-deleted; its replies remain reachable.
        """
        if self.session.get(Comment, comment_id) is None:
            raise NotFoundError("Comment", comment_id)
        stmt = _visible(select(Comment).where(Comment.parent_id == comment_id)).order_by(
            Comment.created_at.asc(), Comment.id.asc()
        )
        return paginate(self.session, stmt, page, limit)

    def list_by_user(self, user_id: int, page: int = 1, limit: int | None = None) -> Page[Comment]:
        if self.session.get(User, user_id) is None:
            raise NotFoundError("User", user_id)
        stmt = _visible(select(Comment).where(Comment.author_id == user_id)).order_by(
            Comment.created_at.desc(), Comment.id.desc()
        )
        return paginate(self.session, stmt, page, limit)
