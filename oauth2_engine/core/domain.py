"""
Core domain models for the OAuth 2.0 engine.

These models describe clients, authorization codes and tokens independently
of any storage backend. Users are opaque to the engine and are carried
around as ``Any``.
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    """Current wall-clock time, timezone aware."""
    return datetime.now(UTC)


def is_expired(expires_at: datetime | None, now: datetime | None = None) -> bool:
    """
    Check an expiry timestamp against the wall clock.

    A timestamp at or before ``now`` is expired. ``None`` never expires.
    """
    if expires_at is None:
        return False
    now = now or utcnow()
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=UTC)
    return expires_at <= now


class Client(BaseModel):
    """
    Registered OAuth 2.0 client.

    Loaded from the store once per request and never mutated by the engine.
    """

    id: str = Field(description="Client identifier")
    secret: str | None = Field(
        default=None, description="Client secret (confidential clients only)"
    )
    redirect_uris: list[str] = Field(
        default_factory=list, description="Registered redirect URIs"
    )
    grants: list[str] = Field(
        default_factory=list,
        description="Allowed grant types ('implicit' enables response_type=token)",
    )
    scopes: list[str] | None = Field(
        default=None, description="Allowed scope, None means unrestricted"
    )
    access_token_lifetime: int | None = Field(
        default=None, description="Per-client access token lifetime (seconds)"
    )
    refresh_token_lifetime: int | None = Field(
        default=None, description="Per-client refresh token lifetime (seconds)"
    )

    model_config = ConfigDict(frozen=True, extra="allow")

    @property
    def is_confidential(self) -> bool:
        return self.secret is not None

    def allows_grant(self, grant_type: str) -> bool:
        return grant_type in self.grants


class AuthorizationCode(BaseModel):
    """
    Short-lived, single-use authorization code.

    The store must invalidate it atomically when it is exchanged.
    """

    authorization_code: str
    expires_at: datetime
    redirect_uri: str | None = None
    scope: list[str] | None = None
    client: Client | None = None
    user: Any = None

    model_config = ConfigDict(extra="allow")

    def is_expired(self) -> bool:
        return is_expired(self.expires_at)


class Token(BaseModel):
    """
    Access token, optionally paired with a refresh token.

    Extra attributes set by the store are kept and can be exposed in the
    token response with ``allow_extended_token_attributes``.
    """

    access_token: str
    access_token_expires_at: datetime | None = None
    refresh_token: str | None = None
    refresh_token_expires_at: datetime | None = None
    scope: list[str] | None = None
    client: Client | None = None
    user: Any = None

    model_config = ConfigDict(extra="allow")

    def is_expired(self) -> bool:
        """Check if the access token is expired."""
        return is_expired(self.access_token_expires_at)

    def is_refresh_token_expired(self) -> bool:
        """Check if the refresh token is expired."""
        return is_expired(self.refresh_token_expires_at)

    def expires_in(self, now: datetime | None = None) -> int | None:
        """Seconds until the access token expires, rounded to the nearest second."""
        if self.access_token_expires_at is None:
            return None
        now = now or utcnow()
        expires_at = self.access_token_expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=UTC)
        return max(round((expires_at - now).total_seconds()), 0)

    @property
    def extended_attributes(self) -> dict[str, Any]:
        """Attributes outside the standard model (set by the store)."""
        return dict(self.model_extra or {})
