"""Read-only post endpoints for rendering and feed consumers."""

from fastapi import APIRouter, Query

from micropub_site.api.v1.dependencies import SessionDep
from micropub_site.repositories.post_repo import PostRepository
from micropub_site.schemas.post import CategoryCount, PostRead

router = APIRouter(prefix="/posts", tags=["posts"])


@router.get("/", response_model=list[PostRead])
def list_posts(
    db: SessionDep,
    limit: int = Query(20, ge=1, le=100),
    before: str | None = Query(None, description="Only posts created before this timestamp"),
) -> list[PostRead]:
    """List posts newest first."""
    posts = PostRepository(db).list_recent(limit, before)
    return [PostRead.model_validate(post) for post in posts]


@router.get("/tags/", response_model=list[CategoryCount])
def list_tags(db: SessionDep) -> list[CategoryCount]:
    """List every category with its post count."""
    return [
        CategoryCount(category=name, count=count)
        for name, count in PostRepository(db).list_categories()
    ]


@router.get("/tags/{category}", response_model=list[PostRead])
def list_posts_for_tag(
    category: str,
    db: SessionDep,
    limit: int = Query(20, ge=1, le=100),
) -> list[PostRead]:
    """List posts tagged with ``category``, newest first."""
    posts = PostRepository(db).list_by_category(category, limit)
    return [PostRead.model_validate(post) for post in posts]


@router.get("/{slug:path}", response_model=PostRead)
def get_post(slug: str, db: SessionDep) -> PostRead:
    """Return the current state of a single post."""
    return PostRead.model_validate(PostRepository(db).get_by_slug(slug))
