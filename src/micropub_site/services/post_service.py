"""Service-level helpers for creating and revising posts."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from micropub_site.core.errors import (
    NotFoundError,
    PostValidationError,
    SlugConflictError,
    StoreError,
)
from micropub_site.core.settings import Settings, settings
from micropub_site.db.time import next_after, parse_timestamp, to_text, utcnow
from micropub_site.models import Category, OriginalBlob, Photo, Post, PostHistory
from micropub_site.schemas.entry import classify
from micropub_site.schemas.post import ContentType, PhotoRef, PostInput
from micropub_site.services.slug import derive_slug

logger = logging.getLogger(__name__)


def _category_rows(categories: list[str]) -> list[Category]:
    # Normalized input is already de-duplicated; guard against hand-built inputs too.
    return [Category(category=c) for c in dict.fromkeys(categories)]


def _photo_rows(photos: list[PhotoRef]) -> list[Photo]:
    return [Photo(url=p.url, alt=p.alt) for p in photos]


def post_to_input(post: Post) -> PostInput:
    """Rebuild the canonical input that describes a stored post's current state."""
    return PostInput(
        entry_type="entry",
        name=post.name,
        content=post.content or "",
        content_type=ContentType(post.content_type) if post.content_type else None,
        bookmark_of=post.bookmark_of,
        categories=post.category_names,
        photos=[PhotoRef(url=p.url, alt=p.alt) for p in post.photos],
        client_id=post.client_id,
        slug=post.slug,
        published=post.created_at,
    )


class PostStore:
    """Persists posts, their associations, history and original request bytes.

    Every public method is a single transaction on the supplied session: it is
    committed on success and rolled back on any failure.
    """

    def __init__(self, session: Session, config: Settings | None = None) -> None:
        self.session = session
        self.config = config or settings

    def _published_at(self, post_input: PostInput) -> datetime | None:
        if not post_input.published:
            return None
        try:
            return parse_timestamp(post_input.published, self.config.timezone_offset_seconds)
        except ValueError as exc:
            raise PostValidationError(
                f"Unrecognised published timestamp '{post_input.published}'"
            ) from exc

    def _slug_taken(self, slug: str) -> bool:
        return self.session.scalar(select(Post.id).where(Post.slug == slug)) is not None

    def get_by_slug(self, slug: str) -> Post:
        """Return the post for ``slug`` or raise ``NotFoundError``."""
        post = self.session.scalars(select(Post).where(Post.slug == slug)).first()
        if post is None:
            raise NotFoundError(f"No post with slug '{slug}'")
        return post

    def create_post(
        self,
        post_input: PostInput,
        raw_bytes: bytes,
        now: datetime | None = None,
    ) -> Post:
        """Insert a post with its categories, photos and original request bytes.

        Args:
            post_input: Normalized post.
            raw_bytes: Body of the creating request, stored verbatim.
            now: Creation instant; defaults to the current time.

        Raises:
            PostValidationError: If the entry kind or published timestamp is invalid.
            SlugConflictError: If the derived or requested slug already exists.
            StoreError: If the database rejects the write.
        """
        now = now or utcnow()
        entry = classify(post_input)
        published = self._published_at(post_input)
        slug = derive_slug(post_input, now, self.config.timezone_offset_seconds)
        created_at = to_text(published or now)

        try:
            if self._slug_taken(slug):
                raise SlugConflictError(slug)

            post = Post(
                slug=slug,
                entry_type=entry.kind.value,
                name=post_input.name,
                content=post_input.content,
                content_type=post_input.content_type.value if post_input.content_type else None,
                client_id=post_input.client_id,
                bookmark_of=post_input.bookmark_of,
                created_at=created_at,
                updated_at=created_at,
            )
            post.categories = _category_rows(post_input.categories)
            post.photos = _photo_rows(post_input.photos)
            self.session.add(post)
            self.session.flush()

            self.session.add(OriginalBlob(post_id=post.id, post_blob=bytes(raw_bytes)))
            self.session.commit()
        except SlugConflictError:
            self.session.rollback()
            logger.info("Rejected post with existing slug %s", slug)
            raise
        except IntegrityError as exc:
            self.session.rollback()
            # A concurrent writer claimed the slug between the check and the insert.
            if self._slug_taken(slug):
                raise SlugConflictError(slug) from exc
            logger.error("Integrity error creating post %s: %s", slug, exc)
            raise StoreError("Could not store post") from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Database error creating post %s: %s", slug, exc)
            raise StoreError("Could not store post") from exc

        logger.info("Created %s post %s", post.entry_type, slug)
        return post

    def update_post(
        self,
        slug: str,
        post_input: PostInput,
        now: datetime | None = None,
    ) -> Post:
        """Replace a post's state, recording the previous state in history.

        Scalar fields are overwritten, categories and photos are replaced as a
        whole. ``slug`` and ``created_at`` never change. Only scalar fields are
        captured in the history row.

        Raises:
            NotFoundError: If no post has ``slug``.
            PostValidationError: If the new state is not a valid entry.
            StoreError: If the database rejects the write.
        """
        now = now or utcnow()
        try:
            post = self.get_by_slug(slug)
            entry = classify(post_input)

            self.session.add(PostHistory.snapshot(post))

            post.entry_type = entry.kind.value
            post.name = post_input.name
            post.content = post_input.content
            post.content_type = post_input.content_type.value if post_input.content_type else None
            post.bookmark_of = post_input.bookmark_of
            if post_input.client_id is not None:
                post.client_id = post_input.client_id
            post.updated_at = to_text(next_after(post.updated_at, now))

            # Flush the removals first so re-added categories do not trip the unique index.
            post.categories.clear()
            post.photos.clear()
            self.session.flush()
            post.categories.extend(_category_rows(post_input.categories))
            post.photos.extend(_photo_rows(post_input.photos))
            self.session.commit()
        except (NotFoundError, PostValidationError):
            self.session.rollback()
            raise
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Database error updating post %s: %s", slug, exc)
            raise StoreError("Could not update post") from exc

        logger.info("Updated post %s", slug)
        return post

    def history(self, slug: str) -> list[PostHistory]:
        """Return the recorded prior states of a post, oldest first."""
        post = self.get_by_slug(slug)
        return list(
            self.session.scalars(
                select(PostHistory)
                .where(PostHistory.post_id == post.id)
                .order_by(PostHistory.id)
            )
        )
