"""API endpoint modules for version 1."""

from .media import router as media_router
from .micropub import router as micropub_router
from .posts import router as posts_router

__all__ = [
    "media_router",
    "micropub_router",
    "posts_router",
]
