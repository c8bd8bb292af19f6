"""Tests for threaded comments and the post comment counter."""

from datetime import timedelta

import pytest

from inkwell.core.errors import ForbiddenError, InvalidArgumentError, NotFoundError
from inkwell.models import Comment, PostStatus
from inkwell.schemas import CommentCreate, CommentUpdate
from inkwell.services import CommentAdded, CommentLiked, ReplyAdded
from tests.conftest import actor_for


def _comment(platform, user, post, content="nice", parent=None):
    data = CommentCreate(post_id=post.id, content=content, parent_id=parent.id if parent else None)
    return platform.comments.create(actor_for(user), data)


def _visible_count(platform, post) -> int:
    return (
        platform.session.query(Comment)
        .filter(
            Comment.post_id == post.id,
            Comment.is_approved.is_(True),
            Comment.is_deleted.is_(False),
        )
        .count()
    )


def test_levels_and_paths(platform, post, reader, author) -> None:
    top = _comment(platform, reader, post).value
    reply = _comment(platform, author, post, parent=top).value
    nested = _comment(platform, reader, post, parent=reply).value

    assert (top.level, top.path) == (1, "")
    assert (reply.level, reply.path) == (2, str(top.id))
    assert (nested.level, nested.path) == (3, f"{top.id}/{reply.id}")
    assert nested.ancestor_ids == [top.id, reply.id]


def test_create_emits_events_for_other_users_only(platform, post, reader, author) -> None:
    top = _comment(platform, reader, post)
    assert top.events == [
        CommentAdded(reader.id, author.id, post_id=post.id, comment_id=top.value.id)
    ]

    reply = _comment(platform, author, post, parent=top.value)
    assert reply.events == [
        ReplyAdded(
            author.id,
            reader.id,
            post_id=post.id,
            comment_id=reply.value.id,
            parent_comment_id=top.value.id,
        )
    ]

    own = _comment(platform, author, post)
    assert own.events == []


def test_create_validates_references(platform, post, reader, make_post) -> None:
    with pytest.raises(NotFoundError):
        platform.comments.create(actor_for(reader), CommentCreate(post_id=9999, content="x"))
    with pytest.raises(NotFoundError):
        platform.comments.create(
            actor_for(reader), CommentCreate(post_id=post.id, content="x", parent_id=9999)
        )

    other_post = make_post(title="Elsewhere")
    foreign = _comment(platform, reader, other_post).value
    with pytest.raises(InvalidArgumentError):
        _comment(platform, reader, post, parent=foreign)

    platform.session.refresh(post)
    assert post.comment_count == 0


def test_reply_to_soft_deleted_parent(platform, post, reader, author) -> None:
    top = _comment(platform, reader, post).value
    reply = _comment(platform, author, post, parent=top).value
    platform.comments.delete(top.id, actor_for(reader))

    late = _comment(platform, author, post, content="late", parent=reply).value
    direct = _comment(platform, author, post, content="direct", parent=top).value

    assert (late.level, late.path) == (3, f"{top.id}/{reply.id}")
    assert (direct.level, direct.path) == (2, str(top.id))
    assert direct.parent_id == top.id


def test_reply_parent_must_exist(platform, post, reader) -> None:
    with pytest.raises(NotFoundError):
        platform.comments.create(
            actor_for(reader), CommentCreate(post_id=post.id, content="x", parent_id=424242)
        )


def test_likes_keep_comment_updated_at(platform, post, reader, author, clock) -> None:
    comment = _comment(platform, reader, post).value
    before = comment.updated_at
    clock.advance(hours=2)

    platform.run(platform.comments.like(comment.id, actor_for(author)))

    platform.session.refresh(comment)
    assert comment.like_count == 1
    assert comment.updated_at == before


def test_soft_deleted_parent_keeps_replies_reachable(platform, post, reader, author) -> None:
    a = _comment(platform, reader, post, content="A").value
    b = _comment(platform, author, post, content="B", parent=a).value

    platform.comments.delete(a.id, actor_for(reader))

    threads = platform.comments.list_by_post(post.id)
    assert a.id not in [entry.comment.id for entry in threads.items]
    replies = platform.comments.list_replies(a.id)
    assert [c.id for c in replies.items] == [b.id]


def test_delete_rules(platform, post, reader, author, admin) -> None:
    comment = _comment(platform, reader, post).value
    with pytest.raises(ForbiddenError):
        platform.comments.delete(comment.id, actor_for(author))

    platform.comments.delete(comment.id, actor_for(admin))
    stored = platform.session.get(Comment, comment.id)
    assert stored.is_deleted
    assert stored.deleted_at is not None

    with pytest.raises(NotFoundError):
        platform.comments.delete(comment.id, actor_for(admin))


def test_update_marks_edited(platform, post, reader, author) -> None:
    comment = _comment(platform, reader, post).value
    with pytest.raises(ForbiddenError):
        platform.comments.update(comment.id, actor_for(author), CommentUpdate(content="no"))

    edited = platform.comments.update(comment.id, actor_for(reader), CommentUpdate(content="better"))
    assert edited.content == "better"
    assert edited.is_edited


def test_comment_count_tracks_visible_comments(platform, post, reader, author, admin) -> None:
    admin_actor = actor_for(admin)
    c1 = _comment(platform, reader, post).value
    c2 = _comment(platform, author, post).value
    c3 = _comment(platform, reader, post, parent=c1).value

    steps = [
        lambda: platform.comments.moderate(c2.id, admin_actor, False),
        lambda: platform.comments.moderate(c2.id, admin_actor, False),
        lambda: platform.comments.delete(c3.id, actor_for(reader)),
        lambda: platform.comments.delete(c2.id, actor_for(author)),
        lambda: platform.comments.moderate(c2.id, admin_actor, True),
        lambda: _comment(platform, author, post),
        lambda: platform.comments.moderate(c1.id, admin_actor, True),
    ]
    for step in steps:
        step()
        platform.session.refresh(post)
        assert post.comment_count == _visible_count(platform, post)

    assert post.comment_count == 2


def test_moderation_and_highlight_require_admin(platform, post, reader, author) -> None:
    comment = _comment(platform, reader, post).value
    with pytest.raises(ForbiddenError):
        platform.comments.moderate(comment.id, actor_for(author), False)
    with pytest.raises(ForbiddenError):
        platform.comments.highlight(comment.id, actor_for(author), True)


def test_comment_like_is_idempotent(platform, post, reader, author) -> None:
    comment = _comment(platform, reader, post).value

    first = platform.comments.like(comment.id, actor_for(author))
    assert first.events == [
        CommentLiked(author.id, reader.id, post_id=post.id, comment_id=comment.id)
    ]
    second = platform.comments.like(comment.id, actor_for(author))
    assert second.events == []
    assert second.value.like_count == 1

    assert platform.comments.unlike(comment.id, actor_for(author)).like_count == 0
    assert platform.comments.unlike(comment.id, actor_for(author)).like_count == 0


def test_list_by_post_orders_and_previews(platform, post, reader, author, admin, clock) -> None:
    old = _comment(platform, reader, post, content="old").value
    clock.advance(minutes=1)
    new = _comment(platform, reader, post, content="new").value
    clock.advance(minutes=1)
    starred = _comment(platform, author, post, content="starred").value
    platform.comments.highlight(old.id, actor_for(admin), True)

    replies = []
    for index in range(5):
        clock.advance(minutes=1)
        replies.append(_comment(platform, author, post, content=f"r{index}", parent=old).value)
    platform.comments.moderate(replies[0].id, actor_for(admin), False)

    page = platform.comments.list_by_post(post.id)
    assert [entry.comment.id for entry in page.items] == [old.id, starred.id, new.id]
    preview = page.items[0]
    assert [c.id for c in preview.replies] == [r.id for r in replies[1:4]]
    assert preview.reply_count == 4

    all_replies = platform.comments.list_replies(old.id)
    assert [c.id for c in all_replies.items] == [r.id for r in replies[1:]]


def test_list_by_user_newest_first(platform, post, reader, clock) -> None:
    first = _comment(platform, reader, post).value
    clock.advance(seconds=30)
    second = _comment(platform, reader, post).value

    page = platform.comments.list_by_user(reader.id)
    assert [c.id for c in page.items] == [second.id, first.id]


def test_counter_survives_scheduled_post(platform, author, make_post, reader, clock) -> None:
    draft = make_post(status=PostStatus.DRAFT)
    platform.posts.schedule(draft.id, actor_for(author), clock() + timedelta(hours=1))
    _comment(platform, reader, draft)

    clock.advance(hours=2)
    platform.posts.sweep_scheduled()
    platform.session.refresh(draft)
    assert draft.status == PostStatus.PUBLISHED
    assert draft.comment_count == 1
