"""Pydantic schemas for the Micropub site."""

from .auth import TokenVerification
from .entry import Entry, EntryKind, classify
from .post import CategoryCount, ContentType, MicropubUpdate, PhotoRef, PostInput, PostRead

__all__ = [
    "CategoryCount",
    "ContentType",
    "Entry",
    "EntryKind",
    "MicropubUpdate",
    "PhotoRef",
    "PostInput",
    "PostRead",
    "TokenVerification",
    "classify",
]
