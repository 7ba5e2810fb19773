"""
Authorization code grant (RFC 6749 section 4.1.3).
"""

import logging

from oauth2_engine.core.domain import AuthorizationCode, Client, Token
from oauth2_engine.core.envelope import Request
from oauth2_engine.core.exceptions import (
    InvalidGrantError,
    InvalidRequestError,
    ServerError,
)
from oauth2_engine.core.validators import is_uri, is_vschar
from oauth2_engine.grants.base import AbstractGrant

logger = logging.getLogger(__name__)


class AuthorizationCodeGrant(AbstractGrant):
    """
    Exchange a single-use authorization code for an access/refresh token pair.

    The code is consumed through ``revoke_authorization_code`` once every
    check (redirect URI, scope) has passed and before any token is minted.
    When two exchanges race for the same code only the one whose revocation
    succeeds gets a token.
    """

    grant_type = "authorization_code"
    required_store_methods = AbstractGrant.required_store_methods + (
        "get_authorization_code",
        "revoke_authorization_code",
    )

    async def handle(self, request: Request, client: Client) -> Token:
        code = await self.get_authorization_code(request, client)
        self.validate_redirect_uri(request, code)
        scope = await self.validate_scope(code.user, client, code.scope)
        await self.revoke_authorization_code(code)
        return await self.save_token(code.user, client, scope)

    async def get_authorization_code(
        self, request: Request, client: Client
    ) -> AuthorizationCode:
        """
        Load and check the presented authorization code.

        Raises:
            InvalidRequestError: If ``code`` is missing or malformed
            InvalidGrantError: If the code is unknown, expired, or was issued
                to another client
            ServerError: If the store returned an incomplete code
        """
        value = request.param("code", source="body")
        if not value:
            raise InvalidRequestError("Missing parameter: `code`")
        if not is_vschar(value):
            raise InvalidRequestError("Invalid parameter: `code`")

        code = await self.store.get_authorization_code(value)
        if code is None:
            raise InvalidGrantError("Invalid grant: authorization code is invalid")
        if code.client is None:
            raise ServerError(
                "Server error: `get_authorization_code()` did not return a `client` object"
            )
        if code.user is None:
            raise ServerError(
                "Server error: `get_authorization_code()` did not return a `user` object"
            )
        if code.client.id != client.id:
            raise InvalidGrantError("Invalid grant: authorization code is invalid")
        if code.is_expired():
            raise InvalidGrantError("Invalid grant: authorization code has expired")
        return code

    def validate_redirect_uri(self, request: Request, code: AuthorizationCode) -> None:
        """
        The redirect URI must match the one recorded at issuance, if any.

        Raises:
            InvalidRequestError: If the presented redirect URI is malformed
            InvalidGrantError: If it is missing or does not match
        """
        if not code.redirect_uri:
            return
        redirect_uri = request.param("redirect_uri", source="body")
        if redirect_uri and not is_uri(redirect_uri):
            raise InvalidRequestError(
                "Invalid request: `redirect_uri` is not a valid URI"
            )
        if redirect_uri != code.redirect_uri:
            raise InvalidGrantError("Invalid grant: `redirect_uri` is invalid")

    async def revoke_authorization_code(self, code: AuthorizationCode) -> None:
        """
        Consume the code.

        Raises:
            InvalidGrantError: If the store reports it was already consumed
        """
        revoked = await self.store.revoke_authorization_code(code)
        if not revoked:
            logger.warning(
                f"Authorization code reuse rejected for client "
                f"{code.client.id if code.client else 'unknown'}"
            )
            raise InvalidGrantError("Invalid grant: authorization code is invalid")
