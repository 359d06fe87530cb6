"""Data access helpers for reading posts."""
from __future__ import annotations

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session, selectinload

from micropub_site.core.errors import NotFoundError
from micropub_site.models import Category, Post

__all__ = ["PostRepository"]


def _with_associations(stmt: Select[tuple[Post]]) -> Select[tuple[Post]]:
    return stmt.options(selectinload(Post.categories), selectinload(Post.photos))


class PostRepository:
    """Read-only queries over the current state of posts.

    History rows are never consulted here.
    """

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session

    def get_by_slug(self, slug: str) -> Post:
        """Return the post for ``slug`` with categories and photos loaded."""
        post = self.session.scalars(_with_associations(select(Post).where(Post.slug == slug))).first()
        if post is None:
            raise NotFoundError(f"No post with slug '{slug}'")
        return post

    def list_recent(self, limit: int, before: str | None = None) -> list[Post]:
        """Return posts newest first, optionally only those created before ``before``."""
        stmt = select(Post)
        if before is not None:
            stmt = stmt.where(Post.created_at < before)
        stmt = stmt.order_by(Post.created_at.desc(), Post.id.desc()).limit(limit)
        return list(self.session.scalars(_with_associations(stmt)))

    def list_by_category(self, category: str, limit: int) -> list[Post]:
        """Return posts tagged with ``category``, newest first."""
        stmt = (
            select(Post)
            .join(Category, Category.post_id == Post.id)
            .where(Category.category == category)
            .order_by(Post.created_at.desc(), Post.id.desc())
            .limit(limit)
        )
        return list(self.session.scalars(_with_associations(stmt)))

    def list_categories(self) -> list[tuple[str, int]]:
        """Return every category with the number of posts carrying it."""
        stmt = (
            select(Category.category, func.count(Category.post_id))
            .group_by(Category.category)
            .order_by(func.count(Category.post_id).desc(), Category.category)
        )
        return [(name, count) for name, count in self.session.execute(stmt)]
