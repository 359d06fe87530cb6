"""Slug derivation for new posts."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone

from micropub_site.db.time import parse_timestamp
from micropub_site.schemas.post import PostInput

logger = logging.getLogger(__name__)

SLUG_TEXT_LENGTH = 32
FALLBACK_SLUG_TEXT = "post"
DATE_SEGMENT_FORMAT = "%Y-%m-%d"

_SEPARATORS_RE = re.compile(r"[\W_]+")


def slugify(text: str, max_length: int = SLUG_TEXT_LENGTH) -> str:
    """Lower-case ``text`` and collapse everything but letters and digits to single hyphens."""
    slug = _SEPARATORS_RE.sub("-", text.lower()).strip("-")
    return slug[:max_length].strip("-")


def slug_date(post: PostInput, now: datetime, offset_seconds: int = 0) -> datetime:
    """Return the instant whose date prefixes the slug: ``published`` if it parses, else ``now``."""
    if post.published:
        try:
            return parse_timestamp(post.published, offset_seconds)
        except ValueError:
            logger.warning("Unparseable published value %r, using current time", post.published)
    if now.tzinfo is not None:
        return now.astimezone(timezone(timedelta(seconds=offset_seconds)))
    return now


def derive_slug(post: PostInput, now: datetime, offset_seconds: int = 0) -> str:
    """Return the slug for a new post.

    An explicit slug is used verbatim. Otherwise the name, or failing that the
    content, is slugified and placed under a ``YYYY-MM-DD/`` date segment.
    Uniqueness is not checked here.
    """
    if post.slug and post.slug.strip():
        return post.slug

    text = ""
    if post.name and post.name.strip():
        text = slugify(post.name)
    if not text and post.content:
        text = slugify(post.content)
    text = text or FALLBACK_SLUG_TEXT

    prefix = slug_date(post, now, offset_seconds).strftime(DATE_SEGMENT_FORMAT)
    return f"{prefix}/{text}"
