"""
Grant type base class.

Holds the token-minting primitive shared by every grant: value generation,
expiry computation, scope resolution/validation and persistence through the
store.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any

from authlib.common.security import generate_token
from authlib.oauth2.rfc6749.util import scope_to_list

from oauth2_engine.config import ServerConfig
from oauth2_engine.core.domain import Client, Token, utcnow
from oauth2_engine.core.envelope import Request
from oauth2_engine.core.exceptions import (
    InvalidRequestError,
    InvalidScopeError,
    ServerError,
)
from oauth2_engine.core.ports import (
    OAuthStore,
    call_optional_hook,
    require_store_methods,
)
from oauth2_engine.core.validators import is_nqschar

logger = logging.getLogger(__name__)


class AbstractGrant(ABC):
    """
    Base class for grant type handlers.

    Subclasses set ``grant_type`` and implement ``handle``, which returns the
    saved token or raises an ``OAuthError``.
    """

    grant_type: str = ""
    required_store_methods: tuple[str, ...] = ("save_token", "validate_scope")

    def __init__(self, store: OAuthStore, config: ServerConfig):
        require_store_methods(store, self.required_store_methods)
        self.store = store
        self.config = config

    @abstractmethod
    async def handle(self, request: Request, client: Client) -> Token:
        """
        Validate the grant and issue a token.

        Args:
            request: Token request envelope
            client: Authenticated client

        Returns:
            The saved token
        """

    def access_token_lifetime(self, client: Client) -> int:
        return client.access_token_lifetime or self.config.access_token_lifetime

    def refresh_token_lifetime(self, client: Client) -> int:
        return client.refresh_token_lifetime or self.config.refresh_token_lifetime

    def get_access_token_expires_at(self, client: Client) -> datetime:
        return utcnow() + timedelta(seconds=self.access_token_lifetime(client))

    def get_refresh_token_expires_at(self, client: Client) -> datetime:
        return utcnow() + timedelta(seconds=self.refresh_token_lifetime(client))

    async def generate_access_token(
        self, client: Client, user: Any, scope: list[str] | None
    ) -> str:
        value = await call_optional_hook(
            self.store, "generate_access_token", client, user, scope
        )
        return value or generate_token(self.config.token_length)

    async def generate_refresh_token(
        self, client: Client, user: Any, scope: list[str] | None
    ) -> str:
        value = await call_optional_hook(
            self.store, "generate_refresh_token", client, user, scope
        )
        return value or generate_token(self.config.token_length)

    def get_scope(self, request: Request) -> list[str] | None:
        """
        Requested scope from the request, or the configured default.

        Raises:
            InvalidRequestError: If the scope has invalid characters
        """
        scope = request.param("scope", source="body")
        if scope is None:
            scope = self.config.default_scope
        if scope is None:
            return None
        if not is_nqschar(scope):
            raise InvalidRequestError("Invalid parameter: `scope`")
        return [s for s in scope_to_list(scope) if s]

    async def validate_scope(
        self, user: Any, client: Client, scope: list[str] | None
    ) -> list[str] | None:
        """
        Ask the store which part of ``scope`` may be granted.

        Raises:
            InvalidScopeError: If the store rejects the scope
        """
        validated = await self.store.validate_scope(user, client, scope)
        if validated is None or validated is False:
            raise InvalidScopeError("Invalid scope: Requested scope is invalid")
        return list(validated) or None

    async def save_token(
        self,
        user: Any,
        client: Client,
        scope: list[str] | None,
        *,
        issue_refresh_token: bool = True,
        refresh_token: str | None = None,
        refresh_token_expires_at: datetime | None = None,
    ) -> Token:
        """
        Mint a token and hand it to the store.

        Args:
            user: Resource owner the token is issued for
            client: Client the token is issued to
            scope: Granted scope (already validated)
            issue_refresh_token: Mint a refresh token alongside
            refresh_token: Reuse this refresh token instead of minting one
            refresh_token_expires_at: Expiry for a reused refresh token

        Returns:
            The token as returned by the store
        """
        access_token = await self.generate_access_token(client, user, scope)
        token = Token(
            access_token=access_token,
            access_token_expires_at=self.get_access_token_expires_at(client),
            scope=scope,
            client=client,
            user=user,
        )

        if refresh_token is not None:
            token.refresh_token = refresh_token
            token.refresh_token_expires_at = refresh_token_expires_at
        elif issue_refresh_token:
            token.refresh_token = await self.generate_refresh_token(
                client, user, scope
            )
            token.refresh_token_expires_at = self.get_refresh_token_expires_at(client)

        saved = await self.store.save_token(token, client, user)
        if saved is None:
            raise ServerError("Server error: `save_token()` did not return a token")
        if saved.client is None:
            saved.client = client
        if saved.user is None:
            saved.user = user

        logger.debug(
            f"Saved token for client {client.id} "
            f"(grant={self.grant_type}, "
            f"refresh={'yes' if saved.refresh_token else 'no'})"
        )
        return saved
