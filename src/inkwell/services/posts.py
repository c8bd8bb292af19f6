# src/inkwell/services/posts.py
"""Post lifecycle: creation, editing, the publication state machine and reads."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timedelta

from sqlalchemy import Select, delete, false, or_, select, update
from sqlalchemy.orm import Session

from inkwell.core.errors import (
    ConflictError,
    ForbiddenError,
    InvalidArgumentError,
    NotFoundError,
)
from inkwell.core.settings import settings
from inkwell.db.session import expire_loaded, transaction
from inkwell.db.time import Clock, ensure_utc, utcnow
from inkwell.models import (
    ALLOWED_TRANSITIONS,
    Category,
    Comment,
    CommentLike,
    Notification,
    Post,
    PostLike,
    PostStatus,
    PostTag,
    SavedPost,
    Tag,
    User,
)
from inkwell.schemas.common import Actor, Page
from inkwell.schemas.post import PostCreate, PostFilters, PostUpdate
from inkwell.services.counters import CounterLedger
from inkwell.services.events import Outcome, PostLiked
from inkwell.services.paging import paginate
from inkwell.utils.text import slugify, summarize

logger = logging.getLogger(__name__)

_SORTABLE = {
    "publish_date": Post.publish_date,
    "created_at": Post.created_at,
    "view_count": Post.view_count,
    "like_count": Post.like_count,
    "comment_count": Post.comment_count,
    "title": Post.title,
}


class PostLifecycle:
    """Service owning posts, their status transitions and reader interactions."""

    def __init__(
        self,
        session: Session,
        clock: Clock = utcnow,
        ledger: CounterLedger | None = None,
    ) -> None:
        self.session = session
        self.clock = clock
        self.ledger = ledger or CounterLedger(session)

    # -- lookups ------------------------------------------------------

    def get(self, post_id: int) -> Post:
        """Return a post in any status or raise ``NotFoundError``."""
        post = self.session.get(Post, post_id)
        if post is None:
            raise NotFoundError("Post", post_id)
        return post

    def _owned(self, post_id: int, actor: Actor) -> Post:
        post = self.get(post_id)
        if post.author_id != actor.id:
            raise ForbiddenError("Only the author can modify this post")
        return post

    def _require_user(self, user_id: int) -> User:
        user = self.session.get(User, user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def _require_category(self, category_id: int) -> Category:
        category = self.session.get(Category, category_id)
        if category is None:
            raise NotFoundError("Category", category_id)
        return category

    def _load_tags(self, tag_ids: Sequence[int]) -> list[Tag]:
        ids = list(dict.fromkeys(tag_ids))
        if not ids:
            return []
        found = {tag.id: tag for tag in self.session.scalars(select(Tag).where(Tag.id.in_(ids)))}
        missing = [tag_id for tag_id in ids if tag_id not in found]
        if missing:
            raise NotFoundError("Tag", missing[0])
        return [found[tag_id] for tag_id in ids]

    # -- slugs and dates ----------------------------------------------

    def _slug_taken(self, slug: str, exclude_id: int | None) -> bool:
        stmt = select(Post.id).where(Post.slug == slug)
        if exclude_id is not None:
            stmt = stmt.where(Post.id != exclude_id)
        return self.session.scalar(stmt) is not None

    def _unique_slug(self, title: str, exclude_id: int | None = None) -> str:
        base = slugify(title)[:150] or "post"
        candidate = base
        suffix = 2
        while self._slug_taken(candidate, exclude_id):
            candidate = f"{base}-{suffix}"
            suffix += 1
        return candidate

    def _claim_slug(self, requested: str, exclude_id: int | None = None) -> str:
        slug = slugify(requested)
        if not slug:
            raise InvalidArgumentError("Slug must contain a letter or digit")
        if self._slug_taken(slug, exclude_id):
            raise ConflictError(f"Slug '{slug}' is already in use")
        return slug

    def _future_date(self, publish_date: datetime | None, now: datetime) -> datetime:
        if publish_date is None:
            raise InvalidArgumentError("A publish_date is required to schedule a post")
        publish_date = ensure_utc(publish_date)
        if publish_date <= now:
            raise InvalidArgumentError("Scheduled publish_date must be in the future")
        return publish_date

    def _transition(
        self,
        post: Post,
        target: PostStatus,
        publish_date: datetime | None,
        now: datetime,
    ) -> None:
        if (post.status, target) not in ALLOWED_TRANSITIONS:
            raise ConflictError(f"Cannot move post from {post.status.value} to {target.value}")
        if target == PostStatus.PUBLISHED:
            post.publish_date = now
        elif target == PostStatus.SCHEDULED:
            post.publish_date = self._future_date(publish_date, now)
        else:
            post.publish_date = None
        post.status = target

    # -- lifecycle ----------------------------------------------------

    def create(self, actor: Actor, data: PostCreate) -> Outcome[Post]:
        """Create a post in the requested initial status."""
        with transaction(self.session):
            self._require_user(actor.id)
            category = self._require_category(data.category_id)
            tags = self._load_tags(data.tag_ids)
            now = self.clock()

            if data.status == PostStatus.SCHEDULED:
                publish_date = self._future_date(data.publish_date, now)
            elif data.status == PostStatus.PUBLISHED:
                publish_date = now
            else:
                publish_date = None

            slug = self._claim_slug(data.slug) if data.slug else self._unique_slug(data.title)
            post = Post(
                title=data.title,
                slug=slug,
                content=data.content,
                summary=data.summary or summarize(data.content, settings.summary_length),
                featured_image=data.featured_image,
                author_id=actor.id,
                category_id=category.id,
                status=data.status,
                publish_date=publish_date,
                created_at=now,
                updated_at=now,
            )
            post.tags = tags
            self.session.add(post)
            self.session.flush()
            self.ledger.adjust_category_count(category.id, 1)
            self.ledger.adjust_tag_counts([tag.id for tag in tags], 1)
        logger.info(
            "Post %s created by user %s (%s)",
            post.id, actor.id, post.status.value,
            extra={"post_id": post.id, "user_id": actor.id},
        )
        return Outcome(post)

    def update(self, post_id: int, actor: Actor, patch: PostUpdate) -> Outcome[Post]:
        """Apply the fields present in ``patch``.

        A status change follows the transition table. Moving into scheduled
        needs a future ``publish_date`` in the same patch; a ``publish_date``
        alone reschedules an already scheduled post and is ignored otherwise.
        """
        fields = patch.model_fields_set
        with transaction(self.session):
            post = self._owned(post_id, actor)
            now = self.clock()

            if "title" in fields and patch.title and patch.title != post.title:
                post.title = patch.title
                if not ("slug" in fields and patch.slug):
                    post.slug = self._unique_slug(patch.title, exclude_id=post.id)
            if "slug" in fields and patch.slug and slugify(patch.slug) != post.slug:
                post.slug = self._claim_slug(patch.slug, exclude_id=post.id)

            if "content" in fields and patch.content:
                post.content = patch.content
                if not ("summary" in fields and patch.summary):
                    post.summary = summarize(patch.content, settings.summary_length)
            if "summary" in fields and patch.summary:
                post.summary = patch.summary
            if "featured_image" in fields:
                post.featured_image = patch.featured_image

            if (
                "category_id" in fields
                and patch.category_id is not None
                and patch.category_id != post.category_id
            ):
                self._require_category(patch.category_id)
                self.ledger.adjust_category_count(post.category_id, -1)
                self.ledger.adjust_category_count(patch.category_id, 1)
                post.category_id = patch.category_id

            if "tag_ids" in fields and patch.tag_ids is not None:
                tags = self._load_tags(patch.tag_ids)
                before = set(post.tag_ids)
                after = {tag.id for tag in tags}
                post.tags = tags
                self.ledger.adjust_tag_counts(before - after, -1)
                self.ledger.adjust_tag_counts(after - before, 1)

            requested_date = patch.publish_date if "publish_date" in fields else None
            if "status" in fields and patch.status is not None and patch.status != post.status:
                self._transition(post, patch.status, requested_date, now)
            elif post.status == PostStatus.SCHEDULED and requested_date is not None:
                post.publish_date = self._future_date(requested_date, now)

            post.updated_at = now
        logger.info("Post %s updated by user %s", post_id, actor.id, extra={"post_id": post_id})
        return Outcome(post)

    def publish(self, post_id: int, actor: Actor) -> Post:
        """Publish a draft or scheduled post immediately."""
        with transaction(self.session):
            post = self._owned(post_id, actor)
            if post.status == PostStatus.PUBLISHED:
                raise ConflictError("Post is already published")
            now = self.clock()
            self._transition(post, PostStatus.PUBLISHED, None, now)
            post.updated_at = now
        logger.info("Post %s published", post_id, extra={"post_id": post_id})
        return post

    def unpublish(self, post_id: int, actor: Actor) -> Post:
        """Return a published or scheduled post to draft."""
        with transaction(self.session):
            post = self._owned(post_id, actor)
            if post.status == PostStatus.DRAFT:
                raise ConflictError("Post is already a draft")
            now = self.clock()
            self._transition(post, PostStatus.DRAFT, None, now)
            post.updated_at = now
        logger.info("Post %s unpublished", post_id, extra={"post_id": post_id})
        return post

    def schedule(self, post_id: int, actor: Actor, publish_date: datetime) -> Post:
        """Schedule a draft, or reschedule a scheduled post, for a future date."""
        with transaction(self.session):
            post = self._owned(post_id, actor)
            now = self.clock()
            self._transition(post, PostStatus.SCHEDULED, publish_date, now)
            post.updated_at = now
        logger.info(
            "Post %s scheduled for %s", post_id, post.publish_date.isoformat(),
            extra={"post_id": post_id},
        )
        return post

    def sweep_scheduled(self) -> int:
        """Publish every scheduled post whose date has come; return how many."""
        now = self.clock()
        with transaction(self.session):
            result = self.session.execute(
                update(Post)
                .where(Post.status == PostStatus.SCHEDULED, Post.publish_date <= now)
                .values(status=PostStatus.PUBLISHED, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            count = result.rowcount or 0
            expire_loaded(self.session, Post, "status", "updated_at")
        if count:
            logger.info("Published %d scheduled post(s)", count)
        return count

    def delete(self, post_id: int, actor: Actor) -> None:
        """Hard-delete a post together with everything that hangs off it."""
        with transaction(self.session):
            post = self.get(post_id)
            if post.author_id != actor.id and not actor.is_admin:
                raise ForbiddenError("Only the author or an admin can delete this post")
            tag_ids = post.tag_ids
            category_id = post.category_id
            comment_ids = select(Comment.id).where(Comment.post_id == post_id)

            self.session.execute(
                update(Notification)
                .where(
                    or_(
                        Notification.related_post_id == post_id,
                        Notification.related_comment_id.in_(comment_ids),
                    )
                )
                .values(related_post_id=None, related_comment_id=None)
                .execution_options(synchronize_session=False)
            )
            expire_loaded(self.session, Notification, "related_post_id", "related_comment_id")
            self.session.execute(delete(CommentLike).where(CommentLike.comment_id.in_(comment_ids)))
            self.session.execute(delete(Comment).where(Comment.post_id == post_id))
            self.session.execute(delete(PostLike).where(PostLike.post_id == post_id))
            self.session.execute(delete(SavedPost).where(SavedPost.post_id == post_id))
            self.session.execute(delete(PostTag).where(PostTag.post_id == post_id))
            self.session.execute(delete(Post).where(Post.id == post_id))

            self.ledger.adjust_category_count(category_id, -1)
            self.ledger.adjust_tag_counts(tag_ids, -1)
        logger.info("Post %s deleted by user %s", post_id, actor.id, extra={"post_id": post_id})

    # -- reader interactions ------------------------------------------

    def like(self, post_id: int, actor: Actor) -> Outcome[Post]:
        """Record a like; liking twice is a conflict."""
        with transaction(self.session):
            post = self.get(post_id)
            self._require_user(actor.id)
            if self.session.get(PostLike, (post_id, actor.id)) is not None:
                raise ConflictError("Post already liked")
            self.session.add(PostLike(post_id=post_id, user_id=actor.id, created_at=self.clock()))
            self.ledger.sync_post_likes(post_id)
        return Outcome(post, [PostLiked(actor.id, post.author_id, post_id=post_id)])

    def unlike(self, post_id: int, actor: Actor) -> Post:
        """Remove a like; unliking a post that is not liked is a conflict."""
        with transaction(self.session):
            post = self.get(post_id)
            like = self.session.get(PostLike, (post_id, actor.id))
            if like is None:
                raise ConflictError("Post is not liked")
            self.session.delete(like)
            self.ledger.sync_post_likes(post_id)
        return post

    def save(self, post_id: int, actor: Actor) -> Post:
        """Bookmark a published post; saving again changes nothing."""
        with transaction(self.session):
            post = self.get(post_id)
            if post.status != PostStatus.PUBLISHED:
                raise InvalidArgumentError("Only published posts can be saved")
            self._require_user(actor.id)
            if self.session.get(SavedPost, (actor.id, post_id)) is None:
                self.session.add(SavedPost(user_id=actor.id, post_id=post_id, created_at=self.clock()))
                self.ledger.sync_post_saves(post_id)
        return post

    def unsave(self, post_id: int, actor: Actor) -> Post:
        with transaction(self.session):
            post = self.get(post_id)
            saved = self.session.get(SavedPost, (actor.id, post_id))
            if saved is not None:
                self.session.delete(saved)
                self.ledger.sync_post_saves(post_id)
        return post

    def is_liked(self, post_id: int, user_id: int) -> bool:
        return self.session.get(PostLike, (post_id, user_id)) is not None

    def is_saved(self, post_id: int, user_id: int) -> bool:
        return self.session.get(SavedPost, (user_id, post_id)) is not None

    # -- reads --------------------------------------------------------

    def get_detail(self, id_or_slug: int | str, increment_views: bool = True) -> Post:
        """Return a published post by id or slug, counting the view."""
        if isinstance(id_or_slug, int):
            post = self.session.get(Post, id_or_slug)
        else:
            post = self.session.scalar(select(Post).where(Post.slug == id_or_slug))
            if post is None and id_or_slug.isdigit():
                post = self.session.get(Post, int(id_or_slug))
        if post is None or post.status != PostStatus.PUBLISHED:
            raise NotFoundError("Post", id_or_slug)
        if increment_views:
            with transaction(self.session):
                self.ledger.increment_views(post.id)
        return post

    def list_by_author(
        self,
        author_id: int,
        status: PostStatus | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> Page[Post]:
        self._require_user(author_id)
        stmt = select(Post).where(Post.author_id == author_id)
        if status is not None:
            stmt = stmt.where(Post.status == status)
        return paginate(
            self.session, stmt.order_by(Post.created_at.desc(), Post.id.desc()), page, limit
        )

    def search(
        self,
        filters: PostFilters | None = None,
        page: int = 1,
        limit: int | None = None,
        sort: str = "publish_date",
        order: str = "desc",
    ) -> Page[Post]:
        """Filter posts by text, category, tag, author and publish-date range."""
        filters = filters or PostFilters()
        if sort not in _SORTABLE:
            raise InvalidArgumentError(f"Cannot sort posts by '{sort}'")
        if order not in ("asc", "desc"):
            raise InvalidArgumentError("order must be 'asc' or 'desc'")
        stmt = self._filtered(filters)
        column = _SORTABLE[sort]
        ordering = column.asc() if order == "asc" else column.desc()
        return paginate(self.session, stmt.order_by(ordering, Post.id.desc()), page, limit)

    def _resolve_key(self, model: type[Category] | type[Tag], key: int | str) -> int | None:
        # Slugs win over ids; "2024" may be either.
        if isinstance(key, int):
            return key
        found = self.session.scalar(select(model.id).where(model.slug == key))
        if found is None and key.isdigit():
            return int(key)
        return found

    def _filtered(self, filters: PostFilters) -> Select:
        stmt = select(Post).where(Post.status == filters.status)
        if filters.search:
            pattern = f"%{filters.search.strip()}%"
            stmt = stmt.where(
                or_(
                    Post.title.ilike(pattern),
                    Post.content.ilike(pattern),
                    Post.summary.ilike(pattern),
                )
            )
        if filters.category is not None:
            category_id = self._resolve_key(Category, filters.category)
            stmt = stmt.where(
                Post.category_id == category_id if category_id is not None else false()
            )
        if filters.tag is not None:
            tag_id = self._resolve_key(Tag, filters.tag)
            tagged = select(PostTag.post_id).where(
                PostTag.tag_id == tag_id if tag_id is not None else false()
            )
            stmt = stmt.where(Post.id.in_(tagged))
        if filters.author_id is not None:
            stmt = stmt.where(Post.author_id == filters.author_id)
        if filters.from_date is not None:
            stmt = stmt.where(Post.publish_date >= ensure_utc(filters.from_date))
        if filters.to_date is not None:
            stmt = stmt.where(Post.publish_date <= ensure_utc(filters.to_date))
        return stmt

    def related(self, post_id: int, limit: int = 5) -> list[Post]:
        """Published posts sharing the category or a tag, newest first."""
        post = self.get(post_id)
        shared_tag = select(PostTag.post_id).where(PostTag.tag_id.in_(post.tag_ids))
        stmt = (
            select(Post)
            .where(
                Post.id != post.id,
                Post.status == PostStatus.PUBLISHED,
                or_(Post.category_id == post.category_id, Post.id.in_(shared_tag)),
            )
            .order_by(Post.publish_date.desc(), Post.id.desc())
            .limit(limit)
        )
        return list(self.session.scalars(stmt))

    def popular(self, limit: int = 10, days: int | None = None) -> list[Post]:
        """Published posts from the last ``days`` days ranked by views then likes."""
        window = days if days is not None else settings.popular_window_days
        since = self.clock() - timedelta(days=window)
        stmt = (
            select(Post)
            .where(Post.status == PostStatus.PUBLISHED, Post.publish_date >= since)
            .order_by(Post.view_count.desc(), Post.like_count.desc(), Post.id.desc())
            .limit(limit)
        )
        return list(self.session.scalars(stmt))

    def saved_by(self, user_id: int, page: int = 1, limit: int | None = None) -> Page[Post]:
        """Posts bookmarked by a user, most recently saved first."""
        self._require_user(user_id)
        stmt = (
            select(Post)
            .join(SavedPost, SavedPost.post_id == Post.id)
            .where(SavedPost.user_id == user_id)
            .order_by(SavedPost.created_at.desc(), Post.id.desc())
        )
        return paginate(self.session, stmt, page, limit)
