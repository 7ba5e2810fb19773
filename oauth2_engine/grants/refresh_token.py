"""
Refresh token grant (RFC 6749 section 6).
"""

import logging

from authlib.oauth2.rfc6749.util import scope_to_list

from oauth2_engine.core.domain import Client, Token
from oauth2_engine.core.envelope import Request
from oauth2_engine.core.exceptions import (
    InvalidGrantError,
    InvalidRequestError,
    InvalidScopeError,
    ServerError,
)
from oauth2_engine.core.validators import is_nqschar, is_vschar
from oauth2_engine.grants.base import AbstractGrant

logger = logging.getLogger(__name__)


class RefreshTokenGrant(AbstractGrant):
    """
    Mint a new access token from a refresh token.

    With ``always_issue_new_refresh_token`` (the default) the presented
    refresh token is revoked before the new pair is saved, so there is no
    moment where both refresh tokens are valid. Otherwise the old refresh
    token and its expiry are carried over to the new access token.
    """

    grant_type = "refresh_token"
    required_store_methods = AbstractGrant.required_store_methods + (
        "get_refresh_token",
        "revoke_token",
    )

    async def handle(self, request: Request, client: Client) -> Token:
        token = await self.get_refresh_token(request, client)
        scope = self.get_refreshed_scope(request, token)

        if self.config.always_issue_new_refresh_token:
            await self.revoke_token(token)
            return await self.save_token(token.user, client, scope)

        return await self.save_token(
            token.user,
            client,
            scope,
            refresh_token=token.refresh_token,
            refresh_token_expires_at=token.refresh_token_expires_at,
        )

    async def get_refresh_token(self, request: Request, client: Client) -> Token:
        """
        Load and check the presented refresh token.

        Raises:
            InvalidRequestError: If ``refresh_token`` is missing or malformed
            InvalidGrantError: If it is unknown, expired, or belongs to
                another client
            ServerError: If the store returned an incomplete token
        """
        value = request.param("refresh_token", source="body")
        if not value:
            raise InvalidRequestError("Missing parameter: `refresh_token`")
        if not is_vschar(value):
            raise InvalidRequestError("Invalid parameter: `refresh_token`")

        token = await self.store.get_refresh_token(value)
        if token is None or token.refresh_token != value:
            raise InvalidGrantError("Invalid grant: refresh token is invalid")
        if token.client is None:
            raise ServerError(
                "Server error: `get_refresh_token()` did not return a `client` object"
            )
        if token.user is None:
            raise ServerError(
                "Server error: `get_refresh_token()` did not return a `user` object"
            )
        if token.client.id != client.id:
            raise InvalidGrantError("Invalid grant: refresh token is invalid")
        if token.is_refresh_token_expired():
            raise InvalidGrantError("Invalid grant: refresh token has expired")
        return token

    def get_refreshed_scope(self, request: Request, token: Token) -> list[str] | None:
        """
        Scope of the new access token.

        A requested scope may narrow the original grant but never widen it.

        Raises:
            InvalidScopeError: If the requested scope exceeds the original
        """
        requested = request.param("scope", source="body")
        if requested is None:
            return token.scope
        if not is_nqschar(requested):
            raise InvalidRequestError("Invalid parameter: `scope`")
        scope = [s for s in scope_to_list(requested) if s]
        if not set(scope).issubset(token.scope or []):
            raise InvalidScopeError(
                "Invalid scope: Requested scope exceeds the original grant"
            )
        return scope or token.scope

    async def revoke_token(self, token: Token) -> None:
        """
        Revoke the old refresh token.

        Raises:
            InvalidGrantError: If it was revoked concurrently
        """
        revoked = await self.store.revoke_token(token)
        if not revoked:
            logger.warning(f"Refresh token reuse rejected for client {token.client.id}")
            raise InvalidGrantError("Invalid grant: refresh token is invalid")
