# src/inkwell/services/counters.py
"""Denormalised counter maintenance.

Every relation change that alters a cardinality updates the matching counter in
the caller's transaction using a single SQL statement, either ``col = col +
delta`` or ``col = (SELECT COUNT(*) ...)``, so concurrent writers never derive
a count from a stale in-memory collection. The ``refresh_*`` methods are
on-demand reconciliation passes that overwrite drifted counters.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy import case, func, select, update
from sqlalchemy.orm import Session

from inkwell.db.session import transaction
from inkwell.models import Category, Comment, CommentLike, Post, PostLike, PostTag, SavedPost, Tag

logger = logging.getLogger(__name__)


def _clamped(column, delta: int):
    """Return ``column + delta`` floored at zero as a SQL expression."""
    return case((column + delta < 0, 0), else_=column + delta)


class CounterLedger:
    """Keeps post, comment, tag and category counters equal to their relations."""

    def __init__(self, session: Session) -> None:
        self.session = session

    # -- same-transaction maintenance ---------------------------------

    def adjust_comment_count(self, post_id: int, delta: int) -> None:
        """Shift ``Post.comment_count`` by ``delta``."""
        self._execute(
            update(Post)
            .where(Post.id == post_id)
            .values(comment_count=_clamped(Post.comment_count, delta))
        )
        self._expire(Post, post_id, "comment_count")

    def increment_views(self, post_id: int) -> None:
        """Add one to ``Post.view_count``."""
        self._execute(
            update(Post).where(Post.id == post_id).values(view_count=Post.view_count + 1)
        )
        self._expire(Post, post_id, "view_count")

    def sync_post_likes(self, post_id: int) -> None:
        """Set ``Post.like_count`` to the number of like rows for the post."""
        total = (
            select(func.count())
            .select_from(PostLike)
            .where(PostLike.post_id == post_id)
            .scalar_subquery()
        )
        self._execute(update(Post).where(Post.id == post_id).values(like_count=total))
        self._expire(Post, post_id, "like_count")

    def sync_post_saves(self, post_id: int) -> None:
        """Set ``Post.save_count`` to the number of users who saved the post."""
        total = (
            select(func.count())
            .select_from(SavedPost)
            .where(SavedPost.post_id == post_id)
            .scalar_subquery()
        )
        self._execute(update(Post).where(Post.id == post_id).values(save_count=total))
        self._expire(Post, post_id, "save_count")

    def sync_comment_likes(self, comment_id: int) -> None:
        """Set ``Comment.like_count`` to the number of like rows for the comment."""
        total = (
            select(func.count())
            .select_from(CommentLike)
            .where(CommentLike.comment_id == comment_id)
            .scalar_subquery()
        )
        self._execute(update(Comment).where(Comment.id == comment_id).values(like_count=total))
        self._expire(Comment, comment_id, "like_count")

    def adjust_category_count(self, category_id: int, delta: int) -> None:
        """Shift ``Category.post_count`` by ``delta``."""
        self._execute(
            update(Category)
            .where(Category.id == category_id)
            .values(post_count=_clamped(Category.post_count, delta))
        )
        self._expire(Category, category_id, "post_count")

    def adjust_tag_counts(self, tag_ids: Iterable[int], delta: int) -> None:
        """Shift ``Tag.post_count`` by ``delta`` for every id in ``tag_ids``."""
        ids = sorted(set(tag_ids))
        if not ids:
            return
        self._execute(
            update(Tag)
            .where(Tag.id.in_(ids))
            .values(post_count=_clamped(Tag.post_count, delta))
        )
        for tag_id in ids:
            self._expire(Tag, tag_id, "post_count")

    # -- reconciliation -----------------------------------------------

    def refresh_tag_counts(self) -> int:
        """Recompute every tag's post count; return how many rows were corrected."""
        with transaction(self.session):
            actual = dict(
                self.session.execute(
                    select(PostTag.tag_id, func.count()).group_by(PostTag.tag_id)
                ).all()
            )
            corrected = self._overwrite(Tag, "post_count", actual)
        logger.info("Tag counters reconciled: %d corrected", corrected)
        return corrected

    def refresh_category_counts(self) -> int:
        """Recompute every category's post count; return how many rows were corrected."""
        with transaction(self.session):
            actual = dict(
                self.session.execute(
                    select(Post.category_id, func.count()).group_by(Post.category_id)
                ).all()
            )
            corrected = self._overwrite(Category, "post_count", actual)
        logger.info("Category counters reconciled: %d corrected", corrected)
        return corrected

    def refresh_comment_counts(self) -> int:
        """Recompute every post's visible comment count; return rows corrected."""
        with transaction(self.session):
            actual = dict(
                self.session.execute(
                    select(Comment.post_id, func.count())
                    .where(Comment.is_approved.is_(True), Comment.is_deleted.is_(False))
                    .group_by(Comment.post_id)
                ).all()
            )
            corrected = self._overwrite(Post, "comment_count", actual)
        logger.info("Comment counters reconciled: %d corrected", corrected)
        return corrected

    # -- internals ----------------------------------------------------

    def _overwrite(self, model, attr: str, actual: dict[int, int]) -> int:
        column = getattr(model, attr)
        corrected = 0
        for row_id, stored in self.session.execute(select(model.id, column)).all():
            expected = actual.get(row_id, 0)
            if stored == expected:
                continue
            logger.info(
                "Correcting %s %s.%s: %d -> %d",
                model.__name__, row_id, attr, stored, expected,
            )
            self._execute(update(model).where(model.id == row_id).values({attr: expected}))
            self._expire(model, row_id, attr)
            corrected += 1
        return corrected

    def _execute(self, stmt) -> None:
        # Pending inserts must be visible to the COUNT subqueries.
        self.session.flush()
        self.session.execute(stmt.execution_options(synchronize_session=False))

    def _expire(self, model, ident: int, *attrs: str) -> None:
        instance = self.session.identity_map.get(Session.identity_key(model, ident))
        if instance is not None:
            self.session.expire(instance, list(attrs))
