"""Post-related Pydantic schemas."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ContentType(str, Enum):
    """How ``content`` should be interpreted; plain text is represented by None."""

    HTML = "html"
    MARKDOWN = "markdown"


class PhotoRef(BaseModel):
    """Photo attached to a post."""

    url: str
    alt: str | None = None

    model_config = ConfigDict(from_attributes=True)


class PostInput(BaseModel):
    """Canonical post produced from any accepted request encoding."""

    entry_type: str = "entry"
    name: str | None = None
    content: str = ""
    content_type: ContentType | None = None
    bookmark_of: str | None = None
    categories: list[str] = Field(default_factory=list)
    photos: list[PhotoRef] = Field(default_factory=list)
    client_id: str | None = None
    slug: str | None = None
    published: str | None = None

    model_config = ConfigDict(use_enum_values=False)


class PostRead(BaseModel):
    """Post read model returned to rendering and feed consumers."""

    id: int
    slug: str
    entry_type: str
    name: str | None
    content: str | None
    content_type: str | None
    client_id: str | None
    bookmark_of: str | None
    created_at: str
    updated_at: str
    categories: list[str] = Field(default_factory=list, validation_alias="category_names")
    photos: list[PhotoRef] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class CategoryCount(BaseModel):
    """Number of posts carrying a category."""

    category: str
    count: int


class MicropubUpdate(BaseModel):
    """JSON body of a Micropub ``update`` action."""

    action: str
    url: str
    replace: dict[str, list[object]] = Field(default_factory=dict)
    add: dict[str, list[object]] = Field(default_factory=dict)
    delete: dict[str, list[object]] | list[str] = Field(default_factory=dict)
