"""SQLAlchemy models for the Micropub site."""

from .media import Media
from .post import Category, OriginalBlob, Photo, Post, PostHistory

__all__ = [
    "Category",
    "Media",
    "OriginalBlob",
    "Photo",
    "Post",
    "PostHistory",
]
