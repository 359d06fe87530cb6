"""Business logic services for the Micropub site."""

from .indieauth import IndieAuthClient
from .media_service import MediaStore
from .post_service import PostStore

__all__ = [
    "IndieAuthClient",
    "MediaStore",
    "PostStore",
]
