"""Exception taxonomy shared by the services and the HTTP layer.

Every error carries the HTTP status and Micropub ``error`` code it should be
reported with, so the API layer can render any of them with one handler.
"""

from __future__ import annotations


class MicropubError(Exception):
    """Base class for all errors raised by the publishing core."""

    status_code: int = 400
    error_code: str = "invalid_request"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.__class__.__doc__ or "")
        self.message = message or (self.__class__.__doc__ or "").strip()


class FormatError(MicropubError):
    """Request body could not be interpreted."""


class UnsupportedContentTypeError(FormatError):
    """Request content type is not one Micropub accepts."""

    status_code = 415


class ParseError(FormatError):
    """Request body is malformed."""


class PostValidationError(MicropubError):
    """Request is well formed but describes an invalid post."""


class SlugConflictError(MicropubError):
    """A post with this slug already exists."""

    status_code = 409

    def __init__(self, slug: str) -> None:
        super().__init__(f"A post with slug '{slug}' already exists")
        self.slug = slug


class NotFoundError(MicropubError):
    """No post or media exists for the given key."""

    status_code = 404
    error_code = "not_found"


class PayloadTooLargeError(MicropubError):
    """Upload exceeds the configured maximum size."""

    status_code = 413

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"Upload of {size} bytes exceeds the {limit} byte limit")
        self.size = size
        self.limit = limit


class AuthError(MicropubError):
    """Credential is missing, invalid or could not be verified."""

    status_code = 401
    error_code = "unauthorized"


class ForbiddenError(AuthError):
    """Token was issued to an identity that may not publish here."""

    status_code = 403
    error_code = "forbidden"


class InsufficientScopeError(AuthError):
    """Token lacks the scope required for the operation."""

    status_code = 403
    error_code = "insufficient_scope"


class StoreError(MicropubError):
    """Durable store or blob backend failure."""

    status_code = 500
    error_code = "server_error"


__all__ = [
    "AuthError",
    "ForbiddenError",
    "FormatError",
    "InsufficientScopeError",
    "MicropubError",
    "NotFoundError",
    "ParseError",
    "PayloadTooLargeError",
    "PostValidationError",
    "SlugConflictError",
    "StoreError",
    "UnsupportedContentTypeError",
]
