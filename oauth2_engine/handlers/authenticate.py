"""
Authentication flow: validate the bearer token on a protected-resource
request (RFC 6750).
"""

import logging
import re

from authlib.oauth2.rfc6749.util import list_to_scope, scope_to_list

from oauth2_engine.config import ServerConfig
from oauth2_engine.core.domain import Token
from oauth2_engine.core.envelope import Request, Response
from oauth2_engine.core.exceptions import (
    InsufficientScopeError,
    InvalidRequestError,
    InvalidTokenError,
    OAuthError,
    ServerError,
    UnauthorizedRequestError,
)
from oauth2_engine.core.ports import OAuthStore, require_store_methods

logger = logging.getLogger(__name__)

_BEARER = re.compile(r"^Bearer\s+(\S+)$", re.IGNORECASE)


class AuthenticateHandler:
    """
    Resolve and check the bearer token presented with a request.

    Token locations: the ``Authorization`` header, the ``access_token`` form
    body parameter (non-GET form requests only) and, when enabled, the
    ``access_token`` query parameter. Exactly one may be used.
    """

    def __init__(
        self,
        store: OAuthStore,
        config: ServerConfig,
        scope: str | list[str] | None = None,
    ):
        self.scope = scope_to_list(scope) if scope else None
        require_store_methods(
            store, ("get_token", "verify_scope") if self.scope else ("get_token",)
        )
        self.store = store
        self.config = config

    async def handle(self, request: Request, response: Response) -> Token:
        """
        Authenticate ``request``.

        Returns:
            The resolved token, including its client and user

        Raises:
            UnauthorizedRequestError: If no credentials were presented
            InvalidRequestError: If credentials are malformed or ambiguous
            InvalidTokenError: If the token is unknown or expired
            InsufficientScopeError: If the token lacks a required scope
            ServerError: If the store fails
        """
        try:
            value = self.get_token_from_request(request)
            token = await self.get_access_token(value)
            self.validate_access_token(token)
            if self.scope:
                await self.verify_scope(token)
            self.update_response(response, token)
            return token
        except UnauthorizedRequestError:
            response.set_header(
                "WWW-Authenticate", f'Bearer realm="{self.config.realm}"'
            )
            raise
        except OAuthError as e:
            logger.info(f"Bearer authentication failed: {e.name}: {e.message}")
            raise
        except Exception as e:
            logger.error(f"Store failure during authentication: {e}", exc_info=True)
            raise ServerError(f"Server error: {e}") from e

    def get_token_from_request(self, request: Request) -> str:
        header = request.header("authorization")
        query = request.param("access_token", source="query")
        body = request.param("access_token", source="body")

        present = sum(1 for v in (header, query, body) if v)
        if present > 1:
            raise InvalidRequestError(
                "Invalid request: only one authentication method is allowed"
            )
        if header:
            return self.get_token_from_header(header)
        if query:
            return self.get_token_from_query(query)
        if body:
            return self.get_token_from_body(request, body)
        raise UnauthorizedRequestError("Unauthorized request: no authentication given")

    def get_token_from_header(self, header: str) -> str:
        match = _BEARER.match(header.strip())
        if not match:
            raise InvalidRequestError("Invalid request: malformed authorization header")
        return match.group(1)

    def get_token_from_query(self, value: str) -> str:
        if not self.config.allow_bearer_tokens_in_query_string:
            raise InvalidRequestError(
                "Invalid request: do not send bearer tokens in query URLs"
            )
        return value

    def get_token_from_body(self, request: Request, value: str) -> str:
        if request.method == "GET":
            raise InvalidRequestError(
                "Invalid request: token may not be passed in the body when using the GET verb"
            )
        if not request.is_form():
            raise InvalidRequestError(
                "Invalid request: content must be application/x-www-form-urlencoded"
            )
        return value

    async def get_access_token(self, value: str) -> Token:
        token = await self.store.get_token(value)
        if token is None:
            raise InvalidTokenError("Invalid token: access token is invalid")
        if token.user is None:
            raise ServerError("Server error: `get_token()` did not return a `user` object")
        return token

    def validate_access_token(self, token: Token) -> None:
        if token.access_token_expires_at is None:
            raise ServerError(
                "Server error: `access_token_expires_at` must be set on the token"
            )
        if token.is_expired():
            raise InvalidTokenError("Invalid token: access token has expired")

    async def verify_scope(self, token: Token) -> None:
        if not await self.store.verify_scope(token, self.scope):
            raise InsufficientScopeError(
                "Insufficient scope: authorized scope is insufficient"
            )

    def update_response(self, response: Response, token: Token) -> None:
        if self.scope and self.config.add_accepted_scopes_header:
            response.set_header("X-Accepted-OAuth-Scopes", list_to_scope(self.scope))
        if self.scope and self.config.add_authorized_scopes_header:
            response.set_header("X-OAuth-Scopes", list_to_scope(token.scope or []))
