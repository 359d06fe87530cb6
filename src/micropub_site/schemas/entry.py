"""Entry kinds accepted by the publishing core.

The set of kinds is fixed by the protocol, so each one is its own model and
``Entry`` is a discriminated union over them. ``classify`` turns a
``PostInput`` into exactly one of these, or rejects it.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from micropub_site.core.errors import PostValidationError
from micropub_site.schemas.post import PhotoRef, PostInput


class EntryKind(str, Enum):
    """Kinds of entry a post can be stored as."""

    NOTE = "note"
    ARTICLE = "article"
    BOOKMARK = "bookmark"
    PHOTO = "photo"


# Raw types that ask for post type discovery instead of naming a kind.
GENERIC_ENTRY_TYPES = frozenset({"entry"})


class NoteEntry(BaseModel):
    """Short untitled post."""

    kind: Literal[EntryKind.NOTE] = EntryKind.NOTE
    content: str


class ArticleEntry(BaseModel):
    """Titled post."""

    kind: Literal[EntryKind.ARTICLE] = EntryKind.ARTICLE
    name: str = Field(min_length=1)
    content: str


class BookmarkEntry(BaseModel):
    """Link to another page, optionally titled and annotated."""

    kind: Literal[EntryKind.BOOKMARK] = EntryKind.BOOKMARK
    bookmark_of: str = Field(min_length=1)
    name: str | None = None
    content: str = ""


class PhotoEntry(BaseModel):
    """One or more photos with an optional caption."""

    kind: Literal[EntryKind.PHOTO] = EntryKind.PHOTO
    photos: list[PhotoRef] = Field(min_length=1)
    name: str | None = None
    content: str = ""


Entry = Annotated[
    NoteEntry | ArticleEntry | BookmarkEntry | PhotoEntry,
    Field(discriminator="kind"),
]

_ENTRY_ADAPTER: TypeAdapter[Entry] = TypeAdapter(Entry)


def discover_kind(post: PostInput) -> EntryKind:
    """Infer the kind of a generic ``h-entry`` from the properties it carries."""
    if post.bookmark_of:
        return EntryKind.BOOKMARK
    if post.photos:
        return EntryKind.PHOTO
    if post.name and post.name.strip():
        return EntryKind.ARTICLE
    return EntryKind.NOTE


def classify(post: PostInput) -> Entry:
    """Return the typed entry for ``post``.

    Raises:
        PostValidationError: If the entry type is unknown or the payload does
            not have the shape its kind requires.
    """
    raw = post.entry_type.strip().lower().removeprefix("h-")
    if raw in GENERIC_ENTRY_TYPES:
        kind = discover_kind(post)
    else:
        try:
            kind = EntryKind(raw)
        except ValueError:
            raise PostValidationError(f"Unsupported entry type '{post.entry_type}'") from None

    payload = post.model_dump(exclude={"entry_type"})
    payload["kind"] = kind
    try:
        return _ENTRY_ADAPTER.validate_python(payload)
    except PydanticValidationError as exc:
        fields = ", ".join(str(err["loc"][-1]) for err in exc.errors())
        raise PostValidationError(f"Invalid {kind.value} entry: check {fields}") from exc
