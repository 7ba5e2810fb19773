"""
Resource owner password credentials grant (RFC 6749 section 4.3).
"""

from typing import Any

from oauth2_engine.core.domain import Client, Token
from oauth2_engine.core.envelope import Request
from oauth2_engine.core.exceptions import InvalidGrantError, InvalidRequestError
from oauth2_engine.core.validators import is_uchar
from oauth2_engine.grants.base import AbstractGrant


class PasswordGrant(AbstractGrant):
    """Exchange a username and password for an access/refresh token pair."""

    grant_type = "password"
    required_store_methods = AbstractGrant.required_store_methods + ("get_user",)

    async def handle(self, request: Request, client: Client) -> Token:
        scope = self.get_scope(request)
        user = await self.get_user(request)
        scope = await self.validate_scope(user, client, scope)
        return await self.save_token(user, client, scope)

    async def get_user(self, request: Request) -> Any:
        """
        Verify the resource owner credentials through the store.

        Raises:
            InvalidRequestError: If ``username`` or ``password`` is missing or malformed
            InvalidGrantError: If the store rejects the credentials
        """
        username = request.param("username", source="body")
        if not username:
            raise InvalidRequestError("Missing parameter: `username`")
        password = request.param("password", source="body")
        if not password:
            raise InvalidRequestError("Missing parameter: `password`")
        if not is_uchar(username):
            raise InvalidRequestError("Invalid parameter: `username`")
        if not is_uchar(password):
            raise InvalidRequestError("Invalid parameter: `password`")

        user = await self.store.get_user(username, password)
        if user is None:
            raise InvalidGrantError("Invalid grant: user credentials are invalid")
        return user
