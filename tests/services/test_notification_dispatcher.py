"""Tests for notification fan-out and inbox management."""

import logging

import pytest

from inkwell.core.errors import ForbiddenError, InvalidArgumentError, NotFoundError
from inkwell.models import Notification, NotificationType, Post
from inkwell.schemas import CommentCreate, SystemBroadcast
from inkwell.services import CommentAdded, PostLiked, UserFollowed
from tests.conftest import actor_for


def test_follow_notification(platform, author, reader) -> None:
    platform.run(platform.social.follow(actor_for(reader), author.id))

    [notification] = platform.session.query(Notification).all()
    assert notification.recipient_id == author.id
    assert notification.sender_id == reader.id
    assert notification.type == NotificationType.FOLLOW
    assert notification.content == "Grace started following you"
    assert notification.link == f"/users/{reader.id}"


def test_comment_and_like_notifications(platform, post, author, reader) -> None:
    comment = platform.run(
        platform.comments.create(actor_for(reader), CommentCreate(post_id=post.id, content="hi"))
    )
    platform.run(platform.posts.like(post.id, actor_for(reader)))
    platform.run(platform.comments.like(comment.id, actor_for(author)))

    inbox = platform.notifications.list_for(author.id)
    kinds = {n.type: n for n in inbox.items}
    assert set(kinds) == {NotificationType.COMMENT, NotificationType.LIKE_POST}
    assert kinds[NotificationType.COMMENT].link == f"/blog/{post.slug}#comment-{comment.id}"
    assert kinds[NotificationType.COMMENT].related_comment_id == comment.id
    assert kinds[NotificationType.LIKE_POST].content == 'Grace liked your post "Hello World"'
    assert kinds[NotificationType.LIKE_POST].link == f"/blog/{post.slug}"

    [liked] = platform.notifications.list_for(reader.id).items
    assert liked.type == NotificationType.LIKE_COMMENT


def test_reply_notification_targets_parent_author(platform, post, author, reader) -> None:
    top = platform.run(
        platform.comments.create(actor_for(author), CommentCreate(post_id=post.id, content="q"))
    )
    platform.run(
        platform.comments.create(
            actor_for(reader), CommentCreate(post_id=post.id, content="a", parent_id=top.id)
        )
    )

    [reply] = platform.notifications.list_for(author.id).items
    assert reply.type == NotificationType.REPLY
    assert reply.content == "Grace replied to your comment"


def test_self_directed_events_are_suppressed(platform, author) -> None:
    created = platform.notifications.dispatch([UserFollowed(author.id, author.id)])
    assert created == []
    assert platform.session.query(Notification).count() == 0


def test_dispatch_failure_is_swallowed(platform, post, author, reader, caplog) -> None:
    events = [
        CommentAdded(reader.id, author.id, post_id=424242, comment_id=1),
        PostLiked(reader.id, author.id, post_id=post.id),
    ]
    with caplog.at_level(logging.ERROR, logger="inkwell.services.notifications"):
        created = platform.notifications.dispatch(events)

    assert [n.type for n in created] == [NotificationType.LIKE_POST]
    assert "Failed to create comment notification" in caplog.text
    assert platform.session.get(Post, post.id) is not None


def test_broadcast(platform, author, reader, admin) -> None:
    notice = SystemBroadcast(recipients="all", title="Maintenance", content="Back soon")
    with pytest.raises(ForbiddenError):
        platform.notifications.broadcast(actor_for(author), notice)

    assert platform.notifications.broadcast(actor_for(admin), notice) == 3
    targeted = SystemBroadcast(recipients=[reader.id, reader.id], title="Hi", content="Just you")
    assert platform.notifications.broadcast(actor_for(admin), targeted) == 1
    assert platform.notifications.unread_count(reader.id) == 2

    with pytest.raises(InvalidArgumentError):
        platform.notifications.broadcast(
            actor_for(admin), SystemBroadcast(recipients=[], title="x", content="y")
        )
    system = platform.notifications.list_for(author.id).items[0]
    assert system.type == NotificationType.SYSTEM
    assert system.sender_id is None


def test_mark_read_and_ownership(platform, author, reader, admin) -> None:
    platform.notifications.broadcast(
        actor_for(admin), SystemBroadcast(recipients=[author.id, reader.id], title="t", content="c")
    )
    mine = platform.notifications.list_for(author.id).items[0]

    with pytest.raises(ForbiddenError):
        platform.notifications.mark_read(mine.id, reader.id)
    with pytest.raises(NotFoundError):
        platform.notifications.mark_read(999999, author.id)

    read = platform.notifications.mark_read(mine.id, author.id)
    assert read.is_read
    assert read.read_at is not None
    assert platform.notifications.mark_read(mine.id, author.id).read_at == read.read_at
    assert platform.notifications.unread_count(author.id) == 0
    assert platform.notifications.list_for(author.id, is_read=True).total == 1


def test_mark_all_read_and_bulk_delete(platform, author, admin) -> None:
    for title in ("one", "two", "three"):
        platform.notifications.broadcast(
            actor_for(admin), SystemBroadcast(recipients=[author.id], title=title, content="c")
        )
    ids = [n.id for n in platform.notifications.list_for(author.id).items]

    assert platform.notifications.mark_all_read(author.id, ids=ids[:1]) == 1
    assert platform.notifications.mark_all_read(author.id) == 2
    assert platform.notifications.mark_all_read(author.id) == 0

    assert platform.notifications.bulk_delete(author.id) == 0
    assert platform.notifications.bulk_delete(author.id, ids=ids[:1]) == 1
    assert platform.notifications.bulk_delete(author.id, delete_all_read=True) == 2
    assert platform.notifications.list_for(author.id).total == 0


def test_delete_single(platform, author, reader, admin) -> None:
    platform.notifications.broadcast(
        actor_for(admin), SystemBroadcast(recipients=[author.id], title="t", content="c")
    )
    [notice] = platform.notifications.list_for(author.id).items

    with pytest.raises(ForbiddenError):
        platform.notifications.delete(notice.id, reader.id)
    platform.notifications.delete(notice.id, author.id)
    with pytest.raises(NotFoundError):
        platform.notifications.delete(notice.id, author.id)


def test_list_for_reports_unread_meta(platform, author, admin) -> None:
    platform.notifications.broadcast(
        actor_for(admin), SystemBroadcast(recipients=[author.id], title="t", content="c")
    )
    page = platform.notifications.list_for(author.id)
    assert page.meta == {"unread": 1}
