"""Schemas for IndieAuth token verification."""

from pydantic import BaseModel, ConfigDict


class TokenVerification(BaseModel):
    """Token endpoint response describing who a bearer token was issued to."""

    me: str
    client_id: str | None = None
    scope: str = ""
    issued_at: int | None = None
    nonce: int | None = None

    model_config = ConfigDict(extra="ignore")

    def scopes(self) -> list[str]:
        """Return the granted scopes as a list."""
        return self.scope.split()
