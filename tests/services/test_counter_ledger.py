"""Tests for counter maintenance and reconciliation."""

import logging

from sqlalchemy import update

from inkwell.models import Category, Post, Tag
from inkwell.schemas import CommentCreate
from tests.conftest import actor_for


def _corrupt(session, model, row_id, **values) -> None:
    session.execute(update(model).where(model.id == row_id).values(**values))
    session.commit()
    session.expire_all()


def test_decrements_are_clamped_at_zero(platform, post) -> None:
    platform.counters.adjust_comment_count(post.id, -5)
    platform.session.commit()

    platform.session.refresh(post)
    assert post.comment_count == 0


def test_loaded_instances_see_new_values(platform, post) -> None:
    platform.counters.increment_views(post.id)
    platform.counters.increment_views(post.id)
    platform.session.commit()

    assert post.view_count == 2


def test_refresh_tag_counts(platform, make_post, tags, caplog) -> None:
    python, databases = tags
    make_post(tag_ids=[python.id, databases.id])
    _corrupt(platform.session, Tag, python.id, post_count=7)
    _corrupt(platform.session, Tag, databases.id, post_count=0)

    with caplog.at_level(logging.INFO, logger="inkwell.services.counters"):
        assert platform.counters.refresh_tag_counts() == 2
    assert "Tag counters reconciled: 2 corrected" in caplog.text

    platform.session.refresh(python)
    platform.session.refresh(databases)
    assert (python.post_count, databases.post_count) == (1, 1)
    assert platform.counters.refresh_tag_counts() == 0


def test_refresh_category_counts(platform, make_post, category) -> None:
    make_post()
    make_post()
    _corrupt(platform.session, Category, category.id, post_count=0)

    assert platform.counters.refresh_category_counts() == 1
    platform.session.refresh(category)
    assert category.post_count == 2


def test_refresh_comment_counts(platform, post, reader, admin) -> None:
    first = platform.run(
        platform.comments.create(actor_for(reader), CommentCreate(post_id=post.id, content="1"))
    )
    platform.run(
        platform.comments.create(actor_for(reader), CommentCreate(post_id=post.id, content="2"))
    )
    platform.comments.moderate(first.id, actor_for(admin), False)
    _corrupt(platform.session, Post, post.id, comment_count=9)

    assert platform.counters.refresh_comment_counts() == 1
    platform.session.refresh(post)
    assert post.comment_count == 1
