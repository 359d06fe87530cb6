"""Micropub endpoint: creating and updating posts, and client queries."""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Query, Request, Response, status
from pydantic import ValidationError as PydanticValidationError
from starlette.concurrency import run_in_threadpool

from micropub_site.api.v1.dependencies import IndieAuthDep, SessionDep, bearer_token
from micropub_site.core.errors import FormatError, ParseError
from micropub_site.core.settings import settings
from micropub_site.schemas.post import MicropubUpdate
from micropub_site.services.indieauth import authorize
from micropub_site.services.normalizer import (
    FORM_MEDIA_TYPE,
    apply_update,
    form_access_token,
    is_json_media_type,
    media_type,
    normalize,
    to_mf2,
)
from micropub_site.services.post_service import PostStore, post_to_input

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/micropub", tags=["micropub"])


def _json_action(body: bytes, kind: str) -> dict[str, Any] | None:
    """Return the decoded body if it is a JSON action request such as ``update``."""
    if not is_json_media_type(kind):
        return None
    try:
        document = json.loads(body)
    except ValueError:
        # Left for the normalizer to report.
        return None
    if isinstance(document, dict) and "action" in document:
        return document
    return None


@router.post("")
async def micropub_post(
    request: Request,
    db: SessionDep,
    auth: IndieAuthDep,
) -> Response:
    """Create a post from a form or JSON body, or apply a JSON update action.

    Returns:
        201 with a Location header for creates, 204 for updates.
    """
    body = await request.body()
    content_type = request.headers.get("content-type")
    kind = media_type(content_type)

    token = bearer_token(request)
    if token is None and kind == FORM_MEDIA_TYPE:
        token = form_access_token(body)
    verification = await auth.verify(token or "")

    action = _json_action(body, kind)
    if action is not None:
        authorize(verification, settings.host_website, "update")
        try:
            update = MicropubUpdate.model_validate(action)
        except PydanticValidationError as exc:
            raise ParseError("Malformed update request") from exc
        slug = settings.slug_from_url(update.url)

        def _update() -> None:
            store = PostStore(db)
            current = post_to_input(store.get_by_slug(slug))
            revised = apply_update(current, update)
            if verification.client_id:
                revised = revised.model_copy(update={"client_id": verification.client_id})
            store.update_post(slug, revised)

        await run_in_threadpool(_update)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    authorize(verification, settings.host_website, "create")
    post_input = normalize(body, content_type)
    post_input = post_input.model_copy(update={"client_id": verification.client_id})

    def _create() -> str:
        return PostStore(db).create_post(post_input, body).slug

    slug = await run_in_threadpool(_create)
    return Response(
        status_code=status.HTTP_201_CREATED,
        headers={"Location": settings.post_url(slug)},
    )


@router.get("")
async def micropub_query(
    request: Request,
    db: SessionDep,
    auth: IndieAuthDep,
    q: str = Query(..., description="Query type: config, source or syndicate-to"),
    url: str | None = Query(None, description="Post URL for q=source"),
    access_token: str | None = Query(None),
) -> dict[str, Any]:
    """Answer Micropub client queries."""
    verification = await auth.verify(bearer_token(request) or access_token or "")
    authorize(verification, settings.host_website)

    if q == "config":
        return {"media-endpoint": settings.media_endpoint, "syndicate-to": []}
    if q == "syndicate-to":
        return {"syndicate-to": []}
    if q == "source":
        if not url:
            raise FormatError("q=source requires a url")
        slug = settings.slug_from_url(url)
        post = await run_in_threadpool(lambda: post_to_input(PostStore(db).get_by_slug(slug)))
        return to_mf2(post)

    logger.info("Unsupported micropub query %r", q)
    raise FormatError(f"Unsupported query '{q}'")
