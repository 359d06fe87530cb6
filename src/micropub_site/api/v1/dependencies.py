"""Shared API dependencies for authentication and storage."""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from micropub_site.db.session import get_db
from micropub_site.services.indieauth import IndieAuthClient, get_indieauth_client
from micropub_site.services.media_service import MediaStore, get_media_store

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_indieauth_client_dep() -> IndieAuthClient:
    """Return the shared IndieAuth client."""
    return get_indieauth_client()


def get_media_store_dep() -> MediaStore:
    """Return the shared media store."""
    return get_media_store()


IndieAuthDep = Annotated[IndieAuthClient, Depends(get_indieauth_client_dep)]
MediaStoreDep = Annotated[MediaStore, Depends(get_media_store_dep)]


def bearer_token(request: Request) -> str | None:
    """Return the bearer token from the Authorization header, if one was sent.

    Args:
        request: Incoming request

    Returns:
        The token string, or None when the header is absent or not a bearer credential
    """
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()
