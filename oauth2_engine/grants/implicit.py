"""
Implicit grant (RFC 6749 section 4.2).
"""

from typing import Any

from oauth2_engine.config import ServerConfig
from oauth2_engine.core.domain import Client, Token
from oauth2_engine.core.envelope import Request
from oauth2_engine.core.ports import OAuthStore
from oauth2_engine.grants.base import AbstractGrant


class ImplicitGrant(AbstractGrant):
    """
    Issue an access token straight from the authorization endpoint.

    The user and scope are resolved by the authorization flow beforehand.
    No refresh token is issued (RFC 6749 section 4.2.2). The token is passed
    to ``save_token`` like any other; whether it is persisted for later
    revocation is up to the store.
    """

    grant_type = "implicit"

    def __init__(
        self,
        store: OAuthStore,
        config: ServerConfig,
        user: Any,
        scope: list[str] | None,
    ):
        super().__init__(store, config)
        self.user = user
        self.scope = scope

    async def handle(self, request: Request, client: Client) -> Token:
        return await self.save_token(
            self.user, client, self.scope, issue_refresh_token=False
        )
