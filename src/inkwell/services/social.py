"""Follow graph between users."""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from inkwell.core.errors import ConflictError, InvalidArgumentError, NotFoundError
from inkwell.db.session import transaction
from inkwell.db.time import Clock, utcnow
from inkwell.models import Post, PostStatus, User, UserFollow
from inkwell.schemas.common import Actor, Page
from inkwell.services.events import Outcome, UserFollowed
from inkwell.services.paging import paginate

logger = logging.getLogger(__name__)


class SocialGraph:
    """Service over the directed follow relation.

    One ``user_follow`` row backs both ``User.following`` and
    ``User.followers``, so the two views cannot disagree.
    """

    def __init__(self, session: Session, clock: Clock = utcnow) -> None:
        self.session = session
        self.clock = clock

    def _require_user(self, user_id: int) -> User:
        user = self.session.get(User, user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def follow(self, actor: Actor, target_id: int) -> Outcome[User]:
        if actor.id == target_id:
            raise InvalidArgumentError("Users cannot follow themselves")
        with transaction(self.session):
            self._require_user(actor.id)
            target = self._require_user(target_id)
            if self.session.get(UserFollow, (actor.id, target_id)) is not None:
                raise ConflictError("Already following this user")
            self.session.add(
                UserFollow(follower_id=actor.id, followed_id=target_id, created_at=self.clock())
            )
        logger.info("User %s followed user %s", actor.id, target_id, extra={"user_id": actor.id})
        return Outcome(target, [UserFollowed(actor.id, target_id)])

    def unfollow(self, actor: Actor, target_id: int) -> User:
        if actor.id == target_id:
            raise InvalidArgumentError("Users cannot unfollow themselves")
        with transaction(self.session):
            target = self._require_user(target_id)
            edge = self.session.get(UserFollow, (actor.id, target_id))
            if edge is None:
                raise ConflictError("Not following this user")
            self.session.delete(edge)
        logger.info("User %s unfollowed user %s", actor.id, target_id, extra={"user_id": actor.id})
        return target

    def is_following(self, follower_id: int, followed_id: int) -> bool:
        return self.session.get(UserFollow, (follower_id, followed_id)) is not None

    def following(self, user_id: int, page: int = 1, limit: int | None = None) -> Page[User]:
        """Users that ``user_id`` follows, most recent first."""
        self._require_user(user_id)
        stmt = (
            select(User)
            .join(UserFollow, UserFollow.followed_id == User.id)
            .where(UserFollow.follower_id == user_id)
            .order_by(UserFollow.created_at.desc(), User.id)
        )
        return paginate(self.session, stmt, page, limit)

    def followers(self, user_id: int, page: int = 1, limit: int | None = None) -> Page[User]:
        """Users following ``user_id``, most recent first."""
        self._require_user(user_id)
        stmt = (
            select(User)
            .join(UserFollow, UserFollow.follower_id == User.id)
            .where(UserFollow.followed_id == user_id)
            .order_by(UserFollow.created_at.desc(), User.id)
        )
        return paginate(self.session, stmt, page, limit)

    def follower_count(self, user_id: int) -> int:
        return self.session.scalar(
            select(func.count()).select_from(UserFollow).where(UserFollow.followed_id == user_id)
        ) or 0

    def following_count(self, user_id: int) -> int:
        return self.session.scalar(
            select(func.count()).select_from(UserFollow).where(UserFollow.follower_id == user_id)
        ) or 0

    def mutual_following(self, user_id: int, other_id: int) -> list[User]:
        """Users followed by both ``user_id`` and ``other_id``."""
        self._require_user(user_id)
        self._require_user(other_id)
        followed_by_other = select(UserFollow.followed_id).where(UserFollow.follower_id == other_id)
        stmt = (
            select(User)
            .join(UserFollow, UserFollow.followed_id == User.id)
            .where(UserFollow.follower_id == user_id, User.id.in_(followed_by_other))
            .order_by(User.username)
        )
        return list(self.session.scalars(stmt))

    def recommended(self, user_id: int, limit: int = 10) -> list[User]:
        """Users not yet followed, ranked by follower count then published posts."""
        self._require_user(user_id)
        already = select(UserFollow.followed_id).where(UserFollow.follower_id == user_id)
        followers = (
            select(func.count())
            .select_from(UserFollow)
            .where(UserFollow.followed_id == User.id)
            .correlate(User)
            .scalar_subquery()
        )
        posts = (
            select(func.count())
            .select_from(Post)
            .where(Post.author_id == User.id, Post.status == PostStatus.PUBLISHED)
            .correlate(User)
            .scalar_subquery()
        )
        stmt = (
            select(User)
            .where(User.id != user_id, User.id.not_in(already))
            .order_by(followers.desc(), posts.desc(), User.id)
            .limit(limit)
        )
        return list(self.session.scalars(stmt))
