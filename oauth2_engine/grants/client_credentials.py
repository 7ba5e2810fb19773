"""
Client credentials grant (RFC 6749 section 4.4).
"""

from oauth2_engine.core.domain import Client, Token
from oauth2_engine.core.envelope import Request
from oauth2_engine.core.exceptions import InvalidGrantError
from oauth2_engine.grants.base import AbstractGrant


class ClientCredentialsGrant(AbstractGrant):
    """
    Issue an access token to a confidential client acting on its own behalf.

    No refresh token is issued (RFC 6749 section 4.4.3).
    """

    grant_type = "client_credentials"
    required_store_methods = AbstractGrant.required_store_methods + (
        "get_user_from_client",
    )

    async def handle(self, request: Request, client: Client) -> Token:
        scope = self.get_scope(request)

        user = await self.store.get_user_from_client(client)
        if user is None:
            raise InvalidGrantError("Invalid grant: user credentials are invalid")

        scope = await self.validate_scope(user, client, scope)
        return await self.save_token(user, client, scope, issue_refresh_token=False)
