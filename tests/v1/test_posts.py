# tests/v1/test_posts.py
"""Tests for the read-only post endpoints."""

from datetime import UTC, datetime

import pytest
from fastapi import status
from sqlalchemy.orm import Session

from micropub_site.schemas.post import PhotoRef, PostInput
from micropub_site.services.post_service import PostStore

POSTS = "/api/v1/posts"


@pytest.fixture()
def seeded(db_session: Session, test_settings) -> list[str]:
    store = PostStore(db_session, test_settings)
    inputs = [
        PostInput(content="First note", categories=["python"]),
        PostInput(name="An article", content="Body", categories=["python", "web"]),
        PostInput(content="Third", photos=[PhotoRef(url="https://example.com/p.jpg", alt="p")]),
    ]
    return [
        store.create_post(post_input, b"", now=datetime(2024, 1, day, 12, tzinfo=UTC)).slug
        for day, post_input in enumerate(inputs, start=1)
    ]


def test_list_posts_newest_first(client, seeded) -> None:
    response = client.get(f"{POSTS}/")
    assert response.status_code == 200
    assert [p["slug"] for p in response.json()] == list(reversed(seeded))


def test_list_posts_limit_and_before(client, seeded) -> None:
    limited = client.get(f"{POSTS}/", params={"limit": 1}).json()
    assert [p["slug"] for p in limited] == [seeded[2]]

    older = client.get(f"{POSTS}/", params={"before": "2024-01-02T12:00:00.000000+00:00"}).json()
    assert [p["slug"] for p in older] == [seeded[0]]


def test_list_posts_rejects_bad_limit(client) -> None:
    assert client.get(f"{POSTS}/", params={"limit": 0}).status_code == 422


def test_get_post_by_slug(client, seeded) -> None:
    response = client.get(f"{POSTS}/{seeded[2]}")

    assert response.status_code == 200
    body = response.json()
    assert body["slug"] == "2024-01-03/third"
    assert body["entry_type"] == "photo"
    assert body["photos"] == [{"url": "https://example.com/p.jpg", "alt": "p"}]
    assert body["categories"] == []


def test_get_article(client, seeded) -> None:
    body = client.get(f"{POSTS}/{seeded[1]}").json()
    assert body["name"] == "An article"
    assert body["entry_type"] == "article"
    assert body["categories"] == ["python", "web"]


def test_get_unknown_post(client) -> None:
    response = client.get(f"{POSTS}/2024-01-01/missing")
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["error"] == "not_found"


def test_list_tags(client, seeded) -> None:
    response = client.get(f"{POSTS}/tags/")
    assert response.json() == [
        {"category": "python", "count": 2},
        {"category": "web", "count": 1},
    ]


def test_posts_for_tag(client, seeded) -> None:
    response = client.get(f"{POSTS}/tags/python")
    assert [p["slug"] for p in response.json()] == [seeded[1], seeded[0]]
    assert client.get(f"{POSTS}/tags/none").json() == []
