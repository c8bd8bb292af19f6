"""Unit tests for the ORM models in inkwell.models.

These verify mapping details that the services rely on: table names,
composite primary keys used as atomic set membership, and the single
association table behind both directions of the follow graph.
"""

from datetime import UTC, datetime, timezone, timedelta

from sqlalchemy.orm import attributes

from inkwell.db.time import UTCDateTime, ensure_utc
from inkwell.models import (
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
    UserFollow,
)
from inkwell.models.post import ALLOWED_TRANSITIONS


def test_table_names():
    """Model classes expose expected __tablename__ values."""
    assert User.__tablename__ == "user_account"
    assert UserFollow.__tablename__ == "user_follow"
    assert Post.__tablename__ == "post"
    assert Category.__tablename__ == "category"
    assert Tag.__tablename__ == "tag"
    assert Comment.__tablename__ == "comment"
    assert Notification.__tablename__ == "notification"


def test_composite_primary_keys():
    """Relation rows are keyed by the pair they connect."""
    expected = {
        UserFollow: {"follower_id", "followed_id"},
        SavedPost: {"user_id", "post_id"},
        PostLike: {"post_id", "user_id"},
        PostTag: {"post_id", "tag_id"},
        CommentLike: {"comment_id", "user_id"},
    }
    for model, columns in expected.items():
        assert {c.name for c in model.__table__.primary_key} == columns


def test_follow_directions_share_one_table():
    following = User.following.property
    followers = User.followers.property
    assert following.secondary is followers.secondary
    assert following.secondary.name == "user_follow"
    assert isinstance(User.following, attributes.InstrumentedAttribute)


def test_notification_relations_are_nulled_on_delete():
    fks = {fk.parent.name: fk.ondelete for fk in Notification.__table__.foreign_keys}
    assert fks["related_post_id"] == "SET NULL"
    assert fks["related_comment_id"] == "SET NULL"
    assert fks["sender_id"] == "SET NULL"


def test_transition_table():
    assert (PostStatus.PUBLISHED, PostStatus.SCHEDULED) not in ALLOWED_TRANSITIONS
    assert (PostStatus.SCHEDULED, PostStatus.SCHEDULED) in ALLOWED_TRANSITIONS
    assert (PostStatus.DRAFT, PostStatus.DRAFT) not in ALLOWED_TRANSITIONS


def test_comment_helpers():
    comment = Comment(path="3/8", is_approved=True, is_deleted=False)
    assert comment.ancestor_ids == [3, 8]
    assert comment.counts_toward_post
    comment.is_deleted = True
    assert not comment.counts_toward_post
    assert Comment(path="").ancestor_ids == []


def test_utc_datetime_round_trip_values():
    column_type = UTCDateTime()
    plus_two = datetime(2026, 1, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))

    stored = column_type.process_bind_param(plus_two, None)
    assert stored == datetime(2026, 1, 1, 12, 0)
    assert stored.tzinfo is None
    assert column_type.process_result_value(stored, None) == datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
    assert column_type.process_bind_param(None, None) is None
    assert ensure_utc(datetime(2026, 1, 1)).tzinfo is UTC
