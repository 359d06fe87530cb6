"""SQLAlchemy models for posts and their associated rows."""

from __future__ import annotations

from sqlalchemy import ForeignKey, Index, Integer, LargeBinary, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from micropub_site.db.session import Base


class Post(Base):
    """Current state of a published entry.

    ``slug`` doubles as the public URL path and never changes once assigned.
    Timestamps are ISO-8601 text.
    """

    __tablename__ = "posts"
    __table_args__ = (
        Index("index_posts_slug", "slug", unique=True),
        Index("index_posts_entry_type", "entry_type"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(Text, nullable=False)
    entry_type: Mapped[str] = mapped_column(Text, nullable=False)
    name: Mapped[str | None] = mapped_column(Text, nullable=True)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    # None for plain text, "html" for rendered markup, "markdown" for deferred rendering.
    content_type: Mapped[str | None] = mapped_column(Text, nullable=True)
    client_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    bookmark_of: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[str] = mapped_column(Text, nullable=False)

    categories: Mapped[list[Category]] = relationship(
        "Category",
        back_populates="post",
        cascade="all, delete-orphan",
        order_by="Category.id",
    )
    photos: Mapped[list[Photo]] = relationship(
        "Photo",
        back_populates="post",
        cascade="all, delete-orphan",
        order_by="Photo.id",
    )

    @property
    def category_names(self) -> list[str]:
        """Return the post's categories as plain strings."""
        return [c.category for c in self.categories]


class Category(Base):
    """Tag attached to a post."""

    __tablename__ = "categories"
    __table_args__ = (
        UniqueConstraint("post_id", "category", name="index_category_post"),
        Index("index_post_id", "post_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[int] = mapped_column(Integer, ForeignKey("posts.id"), nullable=False)
    category: Mapped[str] = mapped_column(Text, nullable=False)

    post: Mapped[Post] = relationship("Post", back_populates="categories")


class Photo(Base):
    """Photo reference owned by a post."""

    __tablename__ = "photos"
    __table_args__ = (Index("index_photos_post_id", "post_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[int] = mapped_column(Integer, ForeignKey("posts.id"), nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    alt: Mapped[str | None] = mapped_column(Text, nullable=True)

    post: Mapped[Post] = relationship("Post", back_populates="photos")


class PostHistory(Base):
    """Snapshot of a post's scalar fields taken just before an update.

    Rows are append-only. Categories and photos are not captured.
    """

    __tablename__ = "post_history"
    __table_args__ = (
        Index("index_slug_on_post_history", "slug"),
        Index("index_post_id_on_post_history", "post_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[int] = mapped_column(Integer, nullable=False)
    slug: Mapped[str] = mapped_column(Text, nullable=False)
    entry_type: Mapped[str] = mapped_column(Text, nullable=False)
    name: Mapped[str | None] = mapped_column(Text, nullable=True)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    client_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[str] = mapped_column(Text, nullable=False)
    content_type: Mapped[str | None] = mapped_column(Text, nullable=True)
    bookmark_of: Mapped[str | None] = mapped_column(Text, nullable=True)

    @classmethod
    def snapshot(cls, post: Post) -> PostHistory:
        """Capture the current scalar state of ``post``."""
        return cls(
            post_id=post.id,
            slug=post.slug,
            entry_type=post.entry_type,
            name=post.name,
            content=post.content,
            client_id=post.client_id,
            created_at=post.created_at,
            updated_at=post.updated_at,
            content_type=post.content_type,
            bookmark_of=post.bookmark_of,
        )


class OriginalBlob(Base):
    """Verbatim bytes of the request that created a post."""

    __tablename__ = "original_blobs"
    __table_args__ = (Index("original_blobs_index_post_id", "post_id", unique=True),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[int] = mapped_column(Integer, ForeignKey("posts.id"), nullable=False)
    post_blob: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
