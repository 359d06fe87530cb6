"""Turn Micropub request bodies into a canonical ``PostInput``.

Three encodings are accepted:

- ``application/x-www-form-urlencoded`` forms,
- canonical microformats2 JSON (``{"type": [...], "properties": {...}}`` with
  every property value wrapped in a list),
- looser JSON sent by some clients, either with scalar property values or as
  a flat object using the form field names.

JSON is matched against each shape in turn (``JSON_SHAPES``), so the handling
of every shape can be read and tested on its own. Whatever the shape, the
property values end up in ``properties_to_input`` which owns the vocabulary.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable, Iterable, Mapping
from typing import Any
from urllib.parse import parse_qsl

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from micropub_site.core.errors import ParseError, PostValidationError, UnsupportedContentTypeError
from micropub_site.schemas.post import ContentType, MicropubUpdate, PhotoRef, PostInput

logger = logging.getLogger(__name__)

FORM_MEDIA_TYPE = "application/x-www-form-urlencoded"
JSON_MEDIA_TYPE = "application/json"

# An opening, closing or self-closing tag such as <p>, </div> or <br />.
_MARKUP_RE = re.compile(r"<\s*/?\s*[a-zA-Z][a-zA-Z0-9-]*(\s[^<>]*)?/?\s*>")

# Properties whose value is a single string; the first value wins.
_SINGLE_VALUED = {
    "name": "name",
    "published": "published",
    "mp-slug": "slug",
    "bookmark-of": "bookmark_of",
}


def media_type(content_type: str | None) -> str:
    """Return the bare, lower-cased media type of a Content-Type header.

    Requests without a header are treated as form encoded.
    """
    if not content_type or not content_type.strip():
        return FORM_MEDIA_TYPE
    return content_type.split(";", 1)[0].strip().lower()


def is_json_media_type(kind: str) -> bool:
    """Return True for ``application/json`` and structured ``+json`` media types."""
    return kind == JSON_MEDIA_TYPE or kind.endswith("+json")


def looks_like_html(text: str) -> bool:
    """Return True when ``text`` contains markup."""
    return bool(_MARKUP_RE.search(text))


def normalize(body: bytes, content_type: str | None) -> PostInput:
    """Parse a create request body into a ``PostInput``.

    Raises:
        UnsupportedContentTypeError: For anything but form or JSON bodies.
        ParseError: For malformed bodies.
    """
    kind = media_type(content_type)
    if kind == FORM_MEDIA_TYPE:
        return parse_form(body)
    if is_json_media_type(kind):
        return parse_json(body)
    raise UnsupportedContentTypeError(f"Unsupported content type '{kind}'")


def _decode_form(body: bytes) -> list[tuple[str, str]]:
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ParseError("Form body is not valid UTF-8") from exc
    return parse_qsl(text, keep_blank_values=True)


def form_access_token(body: bytes) -> str | None:
    """Return the ``access_token`` field of a form body, if any."""
    try:
        pairs = _decode_form(body)
    except ParseError:
        return None
    for key, value in pairs:
        if key == "access_token" and value:
            return value
    return None


def parse_form(body: bytes) -> PostInput:
    """Parse a form-encoded create request."""
    entry_type = "entry"
    fields: dict[str, Any] = {}
    categories: list[str] = []
    photos: list[PhotoRef] = []

    for key, value in _decode_form(body):
        if key == "h":
            entry_type = value.strip().removeprefix("h-") or "entry"
        elif key == "content":
            fields["content"] = value
            if "content_type" not in fields and looks_like_html(value):
                fields["content_type"] = ContentType.HTML
        elif key == "content[html]":
            fields["content"] = value
            fields["content_type"] = ContentType.HTML
        elif key in ("category", "category[]"):
            categories.append(value)
        elif key in ("photo", "photo[]"):
            if value.strip():
                photos.append(PhotoRef(url=value.strip()))
        elif key in _SINGLE_VALUED:
            if value.strip():
                fields[_SINGLE_VALUED[key]] = value
        # access_token, post-status and other keys carry nothing for the post

    return PostInput(
        entry_type=entry_type,
        categories=clean_categories(categories),
        photos=photos,
        **fields,
    )


class CanonicalJsonEntry(BaseModel):
    """``{"type": ["h-entry"], "properties": {"content": ["..."]}}``."""

    type: list[str] = Field(min_length=1)
    properties: dict[str, list[Any]]


class LegacyJsonEntry(BaseModel):
    """Microformats-like JSON whose type and property values may be scalars."""

    type: list[str] | str = "h-entry"
    properties: dict[str, Any]


class FlatJsonEntry(BaseModel):
    """Form field names in a JSON object: ``{"h": "entry", "content": "..."}``."""

    h: str | list[str] = "entry"
    content: Any = None
    name: Any = None
    category: Any = None
    photo: Any = None
    published: Any = None
    bookmark_of: Any = Field(default=None, alias="bookmark-of")
    mp_slug: Any = Field(default=None, alias="mp-slug")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def _require_entry_fields(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            raise ValueError("expected an object")
        if "properties" in data or "type" in data:
            raise ValueError("microformats documents are handled by other shapes")
        if not any(key in data for key in ("h", "content", "name", "bookmark-of", "photo")):
            raise ValueError("no entry fields present")
        return data


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _from_canonical(document: dict[str, Any]) -> PostInput:
    entry = CanonicalJsonEntry.model_validate(document)
    return properties_to_input(entry.type[0], entry.properties)


def _from_legacy(document: dict[str, Any]) -> PostInput:
    entry = LegacyJsonEntry.model_validate(document)
    types = _as_list(entry.type)
    entry_type = types[0] if types and isinstance(types[0], str) else "h-entry"
    props = {key: _as_list(value) for key, value in entry.properties.items()}
    return properties_to_input(entry_type, props)


def _from_flat(document: dict[str, Any]) -> PostInput:
    entry = FlatJsonEntry.model_validate(document)
    props = {
        key: _as_list(value)
        for key, value in entry.model_dump(by_alias=True, exclude={"h"}).items()
    }
    # Form field names carry the form rule: markup in plain content means HTML.
    if isinstance(entry.content, str) and looks_like_html(entry.content):
        props["content"] = [{"html": entry.content}]
    if "content[html]" in document:
        props["content"] = [{"html": document["content[html]"]}]
    types = _as_list(entry.h)
    return properties_to_input(types[0] if types else "entry", props)


# Tried in order; the first shape that validates wins.
JSON_SHAPES: tuple[tuple[str, Callable[[dict[str, Any]], PostInput]], ...] = (
    ("canonical", _from_canonical),
    ("legacy", _from_legacy),
    ("flat", _from_flat),
)


def parse_json(body: bytes) -> PostInput:
    """Parse a JSON create request, trying each known shape in turn."""
    try:
        document = json.loads(body)
    except ValueError as exc:
        raise ParseError(f"Malformed JSON body: {exc}") from exc
    if not isinstance(document, dict):
        raise ParseError("JSON body must be an object")

    for shape_name, parser in JSON_SHAPES:
        try:
            post = parser(document)
        except PydanticValidationError:
            continue
        logger.debug("Parsed JSON entry using the %s shape", shape_name)
        return post
    raise ParseError("JSON body does not describe an entry")


def _first_string(values: list[Any], prop: str) -> str | None:
    for value in values:
        if isinstance(value, str):
            return value
        logger.warning("Ignoring non-string value for '%s': %r", prop, value)
    return None


def _content(values: list[Any]) -> tuple[str | None, ContentType | None]:
    for value in values:
        if isinstance(value, str):
            return value, None
        if isinstance(value, dict):
            if isinstance(value.get("html"), str):
                return value["html"], ContentType.HTML
            if isinstance(value.get("markdown"), str):
                return value["markdown"], ContentType.MARKDOWN
            if isinstance(value.get("value"), str):
                return value["value"], None
        logger.warning("Ignoring unexpected content value: %r", value)
    return None, None


def _photos(values: Iterable[Any]) -> list[PhotoRef]:
    photos: list[PhotoRef] = []
    for value in values:
        if isinstance(value, str):
            if value.strip():
                photos.append(PhotoRef(url=value.strip()))
        elif isinstance(value, dict) and isinstance(value.get("value"), str):
            alt = value.get("alt")
            photos.append(PhotoRef(url=value["value"], alt=alt if isinstance(alt, str) else None))
        elif isinstance(value, list):
            photos.extend(_photos(value))
        else:
            logger.warning("Ignoring unexpected photo value: %r", value)
    return photos


def clean_categories(values: Iterable[Any]) -> list[str]:
    """Strip, drop empty and de-duplicate categories, keeping first occurrences."""
    seen: dict[str, None] = {}
    for value in values:
        if not isinstance(value, str):
            logger.warning("Ignoring non-string category: %r", value)
            continue
        tag = value.strip()
        if tag:
            seen.setdefault(tag, None)
    return list(seen)


def properties_to_input(entry_type: str, properties: Mapping[str, list[Any]]) -> PostInput:
    """Map microformats2 property lists onto a ``PostInput``.

    Unknown properties are ignored and missing ones fall back to defaults.
    """
    fields: dict[str, Any] = {}

    html_key = not properties.get("content")
    content_values = properties.get("content[html]", []) if html_key else properties["content"]
    content, content_type = _content(content_values)
    if content is not None:
        fields["content"] = content
        if content_type is None and html_key:
            content_type = ContentType.HTML
        fields["content_type"] = content_type

    for prop, field in _SINGLE_VALUED.items():
        value = _first_string(properties.get(prop, []), prop)
        if value is not None and value.strip():
            fields[field] = value

    return PostInput(
        entry_type=entry_type.strip().removeprefix("h-") or "entry",
        categories=clean_categories(properties.get("category", [])),
        photos=_photos(properties.get("photo", [])),
        **fields,
    )


def input_to_properties(post: PostInput) -> dict[str, list[Any]]:
    """Render a ``PostInput`` as microformats2 properties."""
    properties: dict[str, list[Any]] = {}
    if post.content_type == ContentType.HTML:
        properties["content"] = [{"html": post.content}]
    elif post.content_type == ContentType.MARKDOWN:
        properties["content"] = [{"markdown": post.content}]
    elif post.content:
        properties["content"] = [post.content]
    if post.name:
        properties["name"] = [post.name]
    if post.bookmark_of:
        properties["bookmark-of"] = [post.bookmark_of]
    if post.published:
        properties["published"] = [post.published]
    if post.categories:
        properties["category"] = list(post.categories)
    if post.photos:
        properties["photo"] = [
            {"value": photo.url, "alt": photo.alt} if photo.alt else photo.url
            for photo in post.photos
        ]
    return properties


def to_mf2(post: PostInput) -> dict[str, Any]:
    """Render a ``PostInput`` as a canonical microformats2 JSON document."""
    return {"type": [f"h-{post.entry_type}"], "properties": input_to_properties(post)}


def apply_update(current: PostInput, update: MicropubUpdate) -> PostInput:
    """Apply a Micropub ``update`` action to the current state of a post.

    ``replace`` overwrites whole properties, ``add`` appends values and
    ``delete`` removes either whole properties (list form) or individual
    values (mapping form). Slug and client are carried over unchanged.
    """
    if update.action != "update":
        raise PostValidationError(f"Unsupported action '{update.action}'")

    properties = input_to_properties(current)
    for prop, values in update.replace.items():
        properties[prop] = list(values)
    for prop, values in update.add.items():
        properties.setdefault(prop, []).extend(values)
    if isinstance(update.delete, list):
        for prop in update.delete:
            properties.pop(prop, None)
    else:
        for prop, values in update.delete.items():
            remaining = [v for v in properties.get(prop, []) if v not in values]
            properties[prop] = remaining

    updated = properties_to_input(current.entry_type, properties)
    return updated.model_copy(update={"slug": current.slug, "client_id": current.client_id})
