"""Authentication type definitions."""

from __future__ import annotations

from typing import Literal, NamedTuple

from pydantic import BaseModel, ConfigDict, Field


TokenType = Literal["Bearer"]
GrantType = Literal["client_credentials"]


class AccessToken(NamedTuple):
    """An issued bearer credential. Superseded on refresh, never mutated."""

    value: str
    """The opaque token string."""

    token_type: str
    """Authorization scheme, ``Bearer`` for the Pax8 token service."""

    expires_at: float
    """Expiry as Unix time in seconds, measured from when the response arrived."""

    @property
    def authorization(self) -> str:
        return f"{self.token_type} {self.value}"


class TokenWireModel(BaseModel):
    """Base class for token service payloads."""

    model_config = ConfigDict(extra="ignore", frozen=True)


class TokenRequest(TokenWireModel):
    client_id: str
    client_secret: str
    audience: str
    grant_type: GrantType = "client_credentials"


class TokenResponse(TokenWireModel):
    access_token: str = Field(min_length=1)
    expires_in: int = Field(ge=0)
    token_type: str = "Bearer"


class TokenErrorResponse(TokenWireModel):
    error: str | None = None
    error_description: str | None = None

    def as_details(self) -> dict[str, str | None]:
        return {"error": self.error, "error_description": self.error_description}


__all__ = [
    "AccessToken",
    "GrantType",
    "TokenErrorResponse",
    "TokenRequest",
    "TokenResponse",
    "TokenType",
]
