"""Tests for turning Micropub request bodies into PostInput."""

import json
from urllib.parse import urlencode

import pytest

from micropub_site.core.errors import ParseError, PostValidationError, UnsupportedContentTypeError
from micropub_site.schemas.post import ContentType, MicropubUpdate, PhotoRef, PostInput
from micropub_site.services.normalizer import (
    FORM_MEDIA_TYPE,
    JSON_MEDIA_TYPE,
    apply_update,
    form_access_token,
    looks_like_html,
    media_type,
    normalize,
    parse_json,
    to_mf2,
)


def _form(pairs: list[tuple[str, str]]) -> bytes:
    return urlencode(pairs).encode()


def _json(document: object) -> bytes:
    return json.dumps(document).encode()


def test_same_post_in_every_encoding_normalizes_identically() -> None:
    form = normalize(
        _form([("h", "entry"), ("content", "Hello"), ("category[]", "a"), ("category[]", "b")]),
        FORM_MEDIA_TYPE,
    )
    canonical = normalize(
        _json({"type": ["h-entry"], "properties": {"content": ["Hello"], "category": ["a", "b"]}}),
        JSON_MEDIA_TYPE,
    )
    legacy = normalize(
        _json({"type": "h-entry", "properties": {"content": "Hello", "category": ["a", "b"]}}),
        JSON_MEDIA_TYPE,
    )
    flat = normalize(
        _json({"h": "entry", "content": "Hello", "category": ["a", "b"]}),
        "application/json; charset=utf-8",
    )

    expected = PostInput(entry_type="entry", content="Hello", categories=["a", "b"])
    assert form == expected
    assert canonical == expected
    assert legacy == expected
    assert flat == expected


def test_form_single_category_and_missing_category() -> None:
    single = normalize(_form([("content", "x"), ("category", "python")]), FORM_MEDIA_TYPE)
    missing = normalize(_form([("content", "x")]), FORM_MEDIA_TYPE)

    assert single.categories == ["python"]
    assert missing.categories == []


def test_categories_are_stripped_and_deduplicated() -> None:
    post = normalize(
        _form([("category", " a "), ("category", "a"), ("category", ""), ("category", "b")]),
        FORM_MEDIA_TYPE,
    )
    assert post.categories == ["a", "b"]


def test_form_content_with_markup_is_html() -> None:
    post = normalize(_form([("content", "<p>Hi <em>there</em></p>")]), FORM_MEDIA_TYPE)
    assert post.content_type == ContentType.HTML


def test_form_plain_content_has_no_content_type() -> None:
    post = normalize(_form([("content", "2 < 3 and 5 > 4")]), FORM_MEDIA_TYPE)
    assert post.content == "2 < 3 and 5 > 4"
    assert post.content_type is None


def test_form_content_html_field() -> None:
    post = normalize(_form([("content[html]", "plain words")]), FORM_MEDIA_TYPE)
    assert post.content == "plain words"
    assert post.content_type == ContentType.HTML


def test_form_scalar_fields_and_photos() -> None:
    post = normalize(
        _form(
            [
                ("h", "entry"),
                ("name", "Trip"),
                ("published", "2024-01-06T10:00:00Z"),
                ("mp-slug", "trips/alps"),
                ("photo[]", "https://example.com/a.jpg"),
                ("photo[]", "https://example.com/b.jpg"),
                ("access_token", "secret"),
            ]
        ),
        FORM_MEDIA_TYPE,
    )
    assert post.name == "Trip"
    assert post.published == "2024-01-06T10:00:00Z"
    assert post.slug == "trips/alps"
    assert [p.url for p in post.photos] == ["https://example.com/a.jpg", "https://example.com/b.jpg"]


def test_missing_content_type_header_is_treated_as_form() -> None:
    assert media_type(None) == FORM_MEDIA_TYPE
    assert normalize(_form([("content", "x")]), None).content == "x"


def test_form_access_token() -> None:
    assert form_access_token(_form([("content", "x"), ("access_token", "abc")])) == "abc"
    assert form_access_token(_form([("content", "x")])) is None


def test_json_html_content_from_rich_editor() -> None:
    post = parse_json(
        _json(
            {
                "type": ["h-entry"],
                "properties": {"name": ["Title"], "content": [{"html": "<p>Body</p>"}]},
            }
        )
    )
    assert post.name == "Title"
    assert post.content == "<p>Body</p>"
    assert post.content_type == ContentType.HTML


def test_json_markdown_content() -> None:
    post = parse_json(
        _json({"type": ["h-entry"], "properties": {"content": [{"markdown": "# Heading"}]}})
    )
    assert post.content == "# Heading"
    assert post.content_type == ContentType.MARKDOWN


def test_json_bookmark_and_photos_with_alt() -> None:
    post = parse_json(
        _json(
            {
                "type": ["h-entry"],
                "properties": {
                    "bookmark-of": ["https://example.org/article"],
                    "photo": [
                        {"value": "https://example.com/cat.jpg", "alt": "A cat"},
                        "https://example.com/dog.jpg",
                    ],
                },
            }
        )
    )
    assert post.bookmark_of == "https://example.org/article"
    assert post.photos == [
        PhotoRef(url="https://example.com/cat.jpg", alt="A cat"),
        PhotoRef(url="https://example.com/dog.jpg"),
    ]


def test_json_legacy_scalar_photo() -> None:
    post = parse_json(
        _json({"type": ["h-entry"], "properties": {"photo": "https://example.com/p.jpg"}})
    )
    assert post.photos == [PhotoRef(url="https://example.com/p.jpg")]


def test_json_flat_content_html_key() -> None:
    post = parse_json(_json({"h": "entry", "content[html]": "<b>x</b>"}))
    assert post.content == "<b>x</b>"
    assert post.content_type == ContentType.HTML


def test_json_flat_markup_matches_form_encoding() -> None:
    body = "<p>Hi <em>there</em></p>"
    form = normalize(_form([("content", body)]), FORM_MEDIA_TYPE)
    flat = normalize(_json({"content": body}), JSON_MEDIA_TYPE)

    assert flat == form
    assert flat.content_type == ContentType.HTML


def test_json_entry_type_is_kept() -> None:
    post = parse_json(_json({"type": ["h-food"], "properties": {"content": ["x"]}}))
    assert post.entry_type == "food"


def test_unknown_properties_are_ignored() -> None:
    post = parse_json(
        _json({"type": ["h-entry"], "properties": {"content": ["x"], "syndication": ["y"]}})
    )
    assert post == PostInput(content="x")


@pytest.mark.parametrize(
    "body",
    [b"{not json", b"[1, 2]", b'{"foo": 1}'],
)
def test_malformed_json_is_a_parse_error(body: bytes) -> None:
    with pytest.raises(ParseError):
        normalize(body, JSON_MEDIA_TYPE)


def test_unsupported_content_type() -> None:
    with pytest.raises(UnsupportedContentTypeError):
        normalize(b"hello", "text/plain")


def test_looks_like_html() -> None:
    assert looks_like_html("<br/>")
    assert looks_like_html("a <a href='x'>link</a>")
    assert not looks_like_html("a < b")


def test_to_mf2_renders_canonical_properties() -> None:
    post = PostInput(
        name="T",
        content="<p>x</p>",
        content_type=ContentType.HTML,
        categories=["a"],
        photos=[PhotoRef(url="https://example.com/p.jpg", alt="alt text")],
    )
    assert to_mf2(post) == {
        "type": ["h-entry"],
        "properties": {
            "content": [{"html": "<p>x</p>"}],
            "name": ["T"],
            "category": ["a"],
            "photo": [{"value": "https://example.com/p.jpg", "alt": "alt text"}],
        },
    }


def test_apply_update_replace_add_and_delete_values() -> None:
    current = PostInput(content="old", categories=["a", "b"], slug="2024-01-06/x", client_id="c")
    update = MicropubUpdate(
        action="update",
        url="https://example.com/2024-01-06/x",
        replace={"content": ["new"]},
        add={"category": ["c"]},
        delete={"category": ["a"]},
    )

    revised = apply_update(current, update)

    assert revised.content == "new"
    assert revised.categories == ["b", "c"]
    assert revised.slug == "2024-01-06/x"
    assert revised.client_id == "c"


def test_apply_update_delete_whole_property() -> None:
    current = PostInput(content="x", categories=["a", "b"])
    update = MicropubUpdate(action="update", url="u", delete=["category"])
    assert apply_update(current, update).categories == []


def test_apply_update_rejects_other_actions() -> None:
    with pytest.raises(PostValidationError):
        apply_update(PostInput(content="x"), MicropubUpdate(action="delete", url="u"))
