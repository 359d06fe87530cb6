"""IndieAuth token verification.

Micropub clients present a bearer token issued by an IndieAuth token
endpoint. The only network call the publishing core makes is asking that
endpoint who the token belongs to.
"""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError as PydanticValidationError

from micropub_site.core.errors import AuthError, ForbiddenError, InsufficientScopeError
from micropub_site.core.settings import Settings, settings
from micropub_site.schemas.auth import TokenVerification

logger = logging.getLogger(__name__)

HTTP_OK = 200

# Scopes that imply another; legacy clients request "post" instead of "create".
_SCOPE_EQUIVALENTS = {"create": {"create", "post"}}


class IndieAuthClient:
    """Verifies bearer tokens against an IndieAuth token endpoint."""

    def __init__(
        self,
        token_endpoint: str,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.token_endpoint = token_endpoint
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def verify(self, token: str) -> TokenVerification:
        """Return the identity the token endpoint reports for ``token``.

        Raises:
            AuthError: If the token is empty, the endpoint cannot be reached in
                time, rejects the token, or answers with something unexpected.
        """
        if not token:
            raise AuthError("Missing access token")

        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds),
                transport=self._transport,
            ) as client:
                response = await client.get(
                    self.token_endpoint,
                    headers={
                        "Accept": "application/json",
                        "Authorization": f"Bearer {token}",
                    },
                )
        except httpx.HTTPError as exc:
            logger.warning("Token endpoint request failed: %s", exc)
            raise AuthError("Could not verify access token") from exc

        if response.status_code != HTTP_OK:
            logger.info("Token endpoint rejected token with status %s", response.status_code)
            raise AuthError("Invalid access token")

        try:
            verification = TokenVerification.model_validate_json(response.content)
        except PydanticValidationError as exc:
            logger.warning("Unexpected token endpoint response: %s", exc)
            raise AuthError("Invalid access token") from exc

        logger.info(
            "Verified token for %s (client %s, scopes %s)",
            verification.me,
            verification.client_id,
            verification.scopes(),
        )
        return verification


def _normalize_me(url: str) -> str:
    return url.strip().rstrip("/").lower()


def authorize(verification: TokenVerification, me: str, scope: str | None = None) -> None:
    """Check a verified token may act for ``me`` with ``scope``.

    Raises:
        ForbiddenError: If the token belongs to a different site.
        InsufficientScopeError: If ``scope`` was not granted.
    """
    if _normalize_me(verification.me) != _normalize_me(me):
        logger.warning("Token for %s may not publish to %s", verification.me, me)
        raise ForbiddenError(f"Token was not issued for {me}")
    if scope is None:
        return
    accepted = _SCOPE_EQUIVALENTS.get(scope, {scope})
    if not accepted.intersection(verification.scopes()):
        raise InsufficientScopeError(f"Token lacks the '{scope}' scope")


_indieauth_client: IndieAuthClient | None = None


def build_indieauth_client(config: Settings) -> IndieAuthClient:
    """Create a client from configuration."""
    return IndieAuthClient(config.token_endpoint, config.auth_timeout_seconds)


def get_indieauth_client() -> IndieAuthClient:
    """Return the shared IndieAuth client."""
    global _indieauth_client
    if _indieauth_client is None:
        _indieauth_client = build_indieauth_client(settings)
    return _indieauth_client
