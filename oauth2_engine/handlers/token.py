"""
Token flow: the token endpoint and grant dispatcher (RFC 6749 section 3.2).
"""

import logging
from typing import Any

from authlib.oauth2.rfc6749.util import extract_basic_authorization, list_to_scope

from oauth2_engine.config import ServerConfig
from oauth2_engine.core.domain import Client, Token
from oauth2_engine.core.envelope import Request, Response
from oauth2_engine.core.exceptions import (
    InvalidArgumentError,
    InvalidClientError,
    InvalidRequestError,
    OAuthError,
    ServerError,
    UnauthorizedClientError,
    UnsupportedGrantTypeError,
)
from oauth2_engine.core.ports import OAuthStore, require_store_methods
from oauth2_engine.core.validators import is_nchar, is_uri, is_vschar
from oauth2_engine.grants.base import AbstractGrant
from oauth2_engine.grants.registry import resolve_grant_types

logger = logging.getLogger(__name__)

_STANDARD_TOKEN_FIELDS = {
    "access_token",
    "access_token_expires_at",
    "refresh_token",
    "refresh_token_expires_at",
    "scope",
    "client",
    "user",
}


class TokenHandler:
    """
    Authenticate the client, dispatch on ``grant_type`` and render the
    token response.
    """

    def __init__(self, store: OAuthStore, config: ServerConfig):
        require_store_methods(store, ("get_client", "save_token", "validate_scope"))
        self.store = store
        self.config = config
        self.grant_types = resolve_grant_types(config.extended_grant_types)

    async def handle(self, request: Request, response: Response) -> Token:
        """
        Handle a token request.

        Returns:
            The issued token; ``response`` carries the JSON body

        Raises:
            OAuthError: Any protocol error; store failures become ServerError
        """
        try:
            if request.method != "POST":
                raise InvalidRequestError("Invalid request: method must be POST")
            if not request.is_form():
                raise InvalidRequestError(
                    "Invalid request: content must be application/x-www-form-urlencoded"
                )

            grant_type = self.get_grant_type(request)
            client = await self.get_client(request, response, grant_type)
            token = await self.handle_grant_type(request, client, grant_type)
        except OAuthError as e:
            logger.info(f"Token request failed: {e.name}: {e.message}")
            raise
        except Exception as e:
            logger.error(f"Store failure during token request: {e}", exc_info=True)
            raise ServerError(f"Server error: {e}") from e

        self.update_success_response(response, token)
        logger.info(
            f"Issued {grant_type} token to client {client.id}",
            extra={
                "extra_fields": {
                    "client_id": client.id,
                    "grant_type": grant_type,
                    "refresh_token_issued": bool(token.refresh_token),
                }
            },
        )
        return token

    def get_grant_type(self, request: Request) -> str:
        grant_type = request.param("grant_type", source="body")
        if not grant_type:
            raise InvalidRequestError("Missing parameter: `grant_type`")
        if not is_nchar(grant_type) and not is_uri(grant_type):
            raise InvalidRequestError("Invalid parameter: `grant_type`")
        if grant_type not in self.grant_types:
            raise UnsupportedGrantTypeError(
                "Unsupported grant type: `grant_type` is invalid"
            )
        return grant_type

    def get_client_credentials(
        self, request: Request, grant_type: str
    ) -> tuple[str, str | None, bool]:
        """
        Extract client credentials from exactly one transport.

        Returns:
            (client_id, client_secret, used_basic_auth)
        """
        try:
            basic_id, basic_secret = extract_basic_authorization(request)
        except UnicodeDecodeError:
            raise InvalidRequestError(
                "Invalid request: malformed basic authorization header"
            )
        body_id = request.param("client_id", source="body")
        body_secret = request.param("client_secret", source="body")

        if basic_id and (body_id or body_secret):
            raise InvalidRequestError(
                "Invalid request: only one client authentication method is allowed"
            )

        if basic_id:
            client_id, client_secret, used_basic = basic_id, basic_secret, True
        elif body_id:
            client_id, client_secret, used_basic = body_id, body_secret, False
        else:
            raise InvalidRequestError(
                "Invalid request: cannot retrieve client credentials"
            )

        if not is_vschar(client_id):
            raise InvalidRequestError("Invalid parameter: `client_id`")
        if client_secret and not is_vschar(client_secret):
            raise InvalidRequestError("Invalid parameter: `client_secret`")

        if not client_secret and self.config.requires_client_secret(grant_type):
            raise InvalidClientError(
                "Invalid client: cannot retrieve client credentials"
            )
        return client_id, client_secret or None, used_basic

    async def get_client(
        self, request: Request, response: Response, grant_type: str
    ) -> Client:
        client_id, client_secret, used_basic = self.get_client_credentials(
            request, grant_type
        )
        try:
            client = await self.store.get_client(client_id, client_secret)
            if client is None:
                raise InvalidClientError("Invalid client: client is invalid")
        except InvalidClientError:
            if used_basic:
                response.set_header(
                    "WWW-Authenticate", f'Basic realm="{self.config.realm}"'
                )
            raise

        if not client.grants:
            raise ServerError("Server error: missing client `grants`")
        if not client.allows_grant(grant_type):
            raise UnauthorizedClientError(
                "Unauthorized client: `grant_type` is invalid"
            )
        return client

    async def handle_grant_type(
        self, request: Request, client: Client, grant_type: str
    ) -> Token:
        grant_class = self.grant_types[grant_type]
        grant: AbstractGrant = grant_class(self.store, self.config)
        token = await grant.handle(request, client)
        if not isinstance(token, Token):
            raise InvalidArgumentError(
                f"Invalid argument: grant `{grant_type}` did not return a Token"
            )
        return token

    def get_token_body(self, token: Token) -> dict[str, Any]:
        body: dict[str, Any] = {
            "access_token": token.access_token,
            "token_type": "Bearer",
        }
        expires_in = token.expires_in()
        if expires_in is not None:
            body["expires_in"] = expires_in
        if token.refresh_token:
            body["refresh_token"] = token.refresh_token
        if token.scope:
            body["scope"] = list_to_scope(token.scope)
        if self.config.allow_extended_token_attributes:
            for key, value in token.extended_attributes.items():
                if key not in _STANDARD_TOKEN_FIELDS and key not in body:
                    body[key] = value
        return body

    def update_success_response(self, response: Response, token: Token) -> None:
        response.body = self.get_token_body(token)
        response.status = 200
        response.set_header("Cache-Control", "no-store")
        response.set_header("Pragma", "no-cache")
