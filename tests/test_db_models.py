"""Tests for the ORM models and their constraints."""

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from micropub_site.models import Category, Post, PostHistory

STAMP = "2024-01-06T15:00:00.000000+00:00"


def _post(slug: str = "2024-01-06/x", **fields) -> Post:
    values = {"entry_type": "note", "content": "x", "created_at": STAMP, "updated_at": STAMP}
    values.update(fields)
    return Post(slug=slug, **values)


def test_slug_is_unique(db_session: Session) -> None:
    db_session.add(_post())
    db_session.commit()
    db_session.add(_post())
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()


def test_category_is_unique_per_post(db_session: Session) -> None:
    post = _post()
    post.categories = [Category(category="a"), Category(category="a")]
    db_session.add(post)
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()


def test_same_category_on_different_posts(db_session: Session) -> None:
    first, second = _post("one"), _post("two")
    first.categories = [Category(category="a")]
    second.categories = [Category(category="a")]
    db_session.add_all([first, second])
    db_session.commit()
    assert first.category_names == second.category_names == ["a"]


def test_history_snapshot_copies_scalars(db_session: Session) -> None:
    post = _post(name="Title", content_type="html", client_id="c", bookmark_of="https://example.org/")
    db_session.add(post)
    db_session.commit()

    snapshot = PostHistory.snapshot(post)

    assert snapshot.post_id == post.id
    assert snapshot.slug == post.slug
    assert snapshot.name == "Title"
    assert snapshot.content_type == "html"
    assert snapshot.client_id == "c"
    assert snapshot.bookmark_of == "https://example.org/"
    assert snapshot.created_at == snapshot.updated_at == STAMP
