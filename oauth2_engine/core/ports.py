"""
Port definitions (interfaces) for the OAuth 2.0 engine.

The store port defines every persistence and authority operation the engine
needs. Backends (in-memory, relational, distributed) implement this port;
the engine only ever holds a reference to the interface.
"""

from typing import Any, Protocol

from oauth2_engine.core.domain import AuthorizationCode, Client, Token
from oauth2_engine.core.exceptions import InvalidArgumentError


class OAuthStore(Protocol):
    """
    Port (interface) for client, user, token and code storage.

    All operations are asynchronous. Any exception that is not an
    ``OAuthError`` is surfaced to the caller as ``ServerError``.
    """

    async def get_client(
        self, client_id: str, client_secret: str | None
    ) -> Client | None:
        """
        Look up a client.

        When ``client_secret`` is given the store must also verify it.

        Returns:
            The client, or None if unknown or the secret does not match
        """
        ...

    async def get_user(self, username: str, password: str) -> Any | None:
        """Verify resource owner credentials (password grant)."""
        ...

    async def get_user_from_client(self, client: Client) -> Any | None:
        """Resolve the user a client acts as (client_credentials grant)."""
        ...

    async def save_token(self, token: Token, client: Client, user: Any) -> Token:
        """
        Persist a freshly minted token.

        Returns:
            The stored token, which may carry extra attributes
        """
        ...

    async def get_token(self, access_token: str) -> Token | None:
        """Look up an access token."""
        ...

    async def get_refresh_token(self, refresh_token: str) -> Token | None:
        """Look up a token by its refresh token."""
        ...

    async def revoke_token(self, token: Token) -> bool:
        """
        Invalidate the refresh token of ``token``.

        Returns:
            True if it was revoked, False if it was already gone
        """
        ...

    async def save_authorization_code(
        self, code: AuthorizationCode, client: Client, user: Any
    ) -> AuthorizationCode:
        """Persist a freshly minted authorization code."""
        ...

    async def get_authorization_code(self, code: str) -> AuthorizationCode | None:
        """Look up an authorization code."""
        ...

    async def revoke_authorization_code(self, code: AuthorizationCode) -> bool:
        """
        Consume an authorization code.

        Must be an atomic check-and-delete: when two exchanges race for the
        same code exactly one call may return True.
        """
        ...

    async def validate_scope(
        self, user: Any, client: Client, scope: list[str] | None
    ) -> list[str] | None:
        """
        Validate a requested scope for a user/client pair.

        Returns:
            The granted scope (possibly narrowed), or None if invalid
        """
        ...

    async def verify_scope(self, token: Token, scope: list[str]) -> bool:
        """Check that ``token`` was granted every scope in ``scope``."""
        ...

    async def generate_access_token(
        self, client: Client, user: Any, scope: list[str] | None
    ) -> str | None:
        """Custom access token value, or None for a random one."""
        ...

    async def generate_refresh_token(
        self, client: Client, user: Any, scope: list[str] | None
    ) -> str | None:
        """Custom refresh token value, or None for a random one."""
        ...

    async def generate_authorization_code(
        self, client: Client, user: Any, scope: list[str] | None
    ) -> str | None:
        """Custom authorization code value, or None for a random one."""
        ...


class BaseOAuthStore(OAuthStore):
    """
    Convenience base for store implementations.

    Provides the optional hooks: random token generation is left to the
    engine, and scope checks are plain set comparisons against
    ``Client.scopes``.
    """

    async def validate_scope(
        self, user: Any, client: Client, scope: list[str] | None
    ) -> list[str] | None:
        requested = list(scope or [])
        if client.scopes is None:
            return requested
        if not set(requested).issubset(client.scopes):
            return None
        return requested

    async def verify_scope(self, token: Token, scope: list[str]) -> bool:
        if not scope:
            return True
        return set(scope).issubset(token.scope or [])

    async def generate_access_token(
        self, client: Client, user: Any, scope: list[str] | None
    ) -> str | None:
        return None

    async def generate_refresh_token(
        self, client: Client, user: Any, scope: list[str] | None
    ) -> str | None:
        return None

    async def generate_authorization_code(
        self, client: Client, user: Any, scope: list[str] | None
    ) -> str | None:
        return None


def require_store_methods(store: Any, names: tuple[str, ...]) -> None:
    """
    Check that ``store`` implements the operations a flow depends on.

    Raises:
        InvalidArgumentError: If an operation is missing
    """
    for name in names:
        if not callable(getattr(store, name, None)):
            raise InvalidArgumentError(
                f"Invalid argument: store does not implement `{name}()`"
            )


async def call_optional_hook(store: Any, name: str, *args: Any) -> Any:
    """Await an optional store hook, returning None if it is not implemented."""
    hook = getattr(store, name, None)
    if hook is None:
        return None
    return await hook(*args)
