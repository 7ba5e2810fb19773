"""
In-memory store implementation.

Useful for testing and local development. Data is lost when the process
exits. Production deployments implement ``OAuthStore`` on top of their own
persistence.
"""

import asyncio
import hmac
import logging
from typing import Any

from oauth2_engine.core.domain import AuthorizationCode, Client, Token
from oauth2_engine.core.ports import BaseOAuthStore


logger = logging.getLogger(__name__)


class InMemoryOAuthStore(BaseOAuthStore):
    """
    In-memory implementation of OAuthStore.

    Codes and refresh tokens are consumed with ``dict.pop``, which never
    suspends, so two coroutines racing for the same code cannot both
    succeed.
    """

    def __init__(self):
        self._clients: dict[str, Client] = {}
        # username -> (password, user)
        self._users: dict[str, tuple[str, Any]] = {}
        # client_id -> user the client acts as (client_credentials)
        self._client_users: dict[str, Any] = {}
        self._codes: dict[str, AuthorizationCode] = {}
        self._access_tokens: dict[str, Token] = {}
        self._refresh_tokens: dict[str, Token] = {}
        self._lock = asyncio.Lock()

    def add_client(self, client: Client, user: Any = None) -> Client:
        """
        Register a client.

        Args:
            client: Client to register
            user: User the client acts as for the client_credentials grant

        Raises:
            ValueError: If the client is already registered
        """
        if client.id in self._clients:
            raise ValueError(f"Client {client.id} already exists")
        self._clients[client.id] = client
        if user is not None:
            self._client_users[client.id] = user
        logger.info(f"Registered client: {client.id}")
        return client

    def add_user(self, username: str, password: str, user: Any = None) -> Any:
        """Register resource owner credentials; ``user`` defaults to the username."""
        if username in self._users:
            raise ValueError(f"User {username} already exists")
        user = username if user is None else user
        self._users[username] = (password, user)
        logger.info(f"Registered user: {username}")
        return user

    async def get_client(
        self, client_id: str, client_secret: str | None
    ) -> Client | None:
        client = self._clients.get(client_id)
        if client is None:
            return None
        if client_secret is None:
            return client
        if client.secret is None or not hmac.compare_digest(
            client.secret.encode(), client_secret.encode()
        ):
            logger.debug(f"Client secret mismatch for client {client_id}")
            return None
        return client

    async def get_user(self, username: str, password: str) -> Any | None:
        entry = self._users.get(username)
        if entry is None:
            return None
        stored_password, user = entry
        if not hmac.compare_digest(stored_password.encode(), password.encode()):
            return None
        return user

    async def get_user_from_client(self, client: Client) -> Any | None:
        return self._client_users.get(client.id)

    async def save_token(self, token: Token, client: Client, user: Any) -> Token:
        async with self._lock:
            self._access_tokens[token.access_token] = token
            if token.refresh_token:
                self._refresh_tokens[token.refresh_token] = token
        return token

    async def get_token(self, access_token: str) -> Token | None:
        return self._access_tokens.get(access_token)

    async def get_refresh_token(self, refresh_token: str) -> Token | None:
        return self._refresh_tokens.get(refresh_token)

    async def revoke_token(self, token: Token) -> bool:
        if not token.refresh_token:
            return False
        revoked = self._refresh_tokens.pop(token.refresh_token, None)
        return revoked is not None

    async def save_authorization_code(
        self, code: AuthorizationCode, client: Client, user: Any
    ) -> AuthorizationCode:
        async with self._lock:
            self._codes[code.authorization_code] = code
        return code

    async def get_authorization_code(self, code: str) -> AuthorizationCode | None:
        return self._codes.get(code)

    async def revoke_authorization_code(self, code: AuthorizationCode) -> bool:
        return self._codes.pop(code.authorization_code, None) is not None

    def clear(self) -> None:
        """Drop every code and token; registered clients and users are kept."""
        self._codes.clear()
        self._access_tokens.clear()
        self._refresh_tokens.clear()
