"""Read-side data access for the Micropub site."""

from .post_repo import PostRepository

__all__ = ["PostRepository"]
