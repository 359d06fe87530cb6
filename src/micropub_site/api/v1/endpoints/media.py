"""Micropub media endpoint: uploads and content-addressed downloads."""

import logging

from fastapi import APIRouter, File, Form, Request, Response, UploadFile, status
from starlette.concurrency import run_in_threadpool

from micropub_site.api.v1.dependencies import (
    IndieAuthDep,
    MediaStoreDep,
    SessionDep,
    bearer_token,
)
from micropub_site.core.errors import FormatError
from micropub_site.core.settings import settings
from micropub_site.services.indieauth import authorize

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/media", tags=["media"])


@router.post("")
async def upload_media(
    request: Request,
    db: SessionDep,
    auth: IndieAuthDep,
    store: MediaStoreDep,
    file: UploadFile | None = File(None),
    access_token: str | None = Form(None),
) -> Response:
    """Store the multipart ``file`` part and return its URL in the Location header.

    Args:
        request: Incoming request, used for the bearer token
        db: Database session
        auth: IndieAuth client
        store: Media store
        file: Uploaded file part
        access_token: Token sent in the form instead of the Authorization header

    Returns:
        201 response whose Location is the media URL

    Raises:
        PayloadTooLargeError: If the upload exceeds the configured limit
        FormatError: If the request carries no ``file`` part
    """
    verification = await auth.verify(bearer_token(request) or access_token or "")
    authorize(verification, settings.host_website, "media")

    if file is None:
        raise FormatError("Media upload requires a 'file' part")

    if file.size is not None:
        store.check_size(file.size)
    data = await file.read(store.max_upload_bytes + 1)
    store.check_size(len(data))

    record = await run_in_threadpool(
        store.store_media, db, data, file.filename, file.content_type
    )
    hex_digest = record.hex_digest
    logger.info("Media upload %s stored as %s", file.filename, hex_digest)
    return Response(
        status_code=status.HTTP_201_CREATED,
        headers={"Location": settings.media_url(hex_digest)},
    )


@router.get("/{hex_digest}")
def get_media(hex_digest: str, db: SessionDep, store: MediaStoreDep) -> Response:
    """Return a stored blob with the content type it was uploaded with."""
    record = store.get_record(db, hex_digest)
    data = store.fetch_media(hex_digest)
    return Response(
        content=data,
        media_type=record.content_type or "application/octet-stream",
        headers={"Cache-Control": "public, max-age=31536000, immutable"},
    )
