"""
Authorization flow: the authorization endpoint (RFC 6749 sections 4.1.1,
4.1.2 and 4.2.1).
"""

import inspect
import logging
from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import Any

from authlib.common.security import generate_token
from authlib.common.urls import add_params_to_uri
from authlib.oauth2.rfc6749.util import list_to_scope, scope_to_list

from oauth2_engine.config import ServerConfig
from oauth2_engine.core.domain import AuthorizationCode, Client, Token, utcnow
from oauth2_engine.core.envelope import Request, Response
from oauth2_engine.core.exceptions import (
    AccessDeniedError,
    InvalidClientError,
    InvalidRequestError,
    InvalidScopeError,
    OAuthError,
    ServerError,
    UnauthorizedClientError,
    UnsupportedResponseTypeError,
)
from oauth2_engine.core.ports import (
    OAuthStore,
    call_optional_hook,
    require_store_methods,
)
from oauth2_engine.core.validators import is_nqschar, is_uri, is_vschar
from oauth2_engine.grants.implicit import ImplicitGrant
from oauth2_engine.handlers.authenticate import AuthenticateHandler

logger = logging.getLogger(__name__)

UserHook = Callable[[Request, Response], Awaitable[Any] | Any]

# response_type -> grant the client must be allowed to use
RESPONSE_TYPES = {
    "code": "authorization_code",
    "token": "implicit",
}


class AuthorizeHandler:
    """
    Validate an authorization request and answer it with a redirect.

    Errors found before the redirect URI is validated are raised directly;
    there is no trustworthy place to send them. Every later error is also
    sent to the client's redirect URI (``error``, ``error_description``,
    ``state``), the response is turned into that redirect, and the raised
    error carries the URI in ``redirect_uri``.
    """

    def __init__(
        self,
        store: OAuthStore,
        config: ServerConfig,
        authenticate_handler: UserHook | None = None,
    ):
        require_store_methods(
            store,
            ("get_client", "save_authorization_code", "save_token", "validate_scope"),
        )
        self.store = store
        self.config = config
        self.authenticate_handler = authenticate_handler

    async def handle(
        self, request: Request, response: Response
    ) -> AuthorizationCode | Token:
        """
        Authorize ``request``.

        Returns:
            The saved authorization code (``response_type=code``) or access
            token (``response_type=token``)
        """
        try:
            client = await self.get_client(request)
            redirect_uri = self.get_redirect_uri(request, client)
        except OAuthError:
            raise
        except Exception as e:
            logger.error(f"Store failure during authorization: {e}", exc_info=True)
            raise ServerError(f"Server error: {e}") from e

        state = None
        response_type = None
        try:
            state = self.get_state(request)
            response_type = self.get_response_type(request, client)
            if request.param("allowed") == "false":
                raise AccessDeniedError(
                    "Access denied: user denied access to application"
                )
            user = await self.get_user(request, response)
            scope = await self.validate_scope(user, client, self.get_scope(request))

            if response_type == "token":
                result = await ImplicitGrant(
                    self.store, self.config, user=user, scope=scope
                ).handle(request, client)
                location = self.build_token_redirect_uri(redirect_uri, result, state)
            else:
                result = await self.save_authorization_code(
                    request, client, user, scope, redirect_uri
                )
                location = add_params_to_uri(
                    redirect_uri,
                    self._with_state([("code", result.authorization_code)], state),
                )
        except Exception as e:
            if not isinstance(e, OAuthError):
                logger.error(f"Store failure during authorization: {e}", exc_info=True)
                error = ServerError(f"Server error: {e}")
                error.__cause__ = e
            else:
                error = e
            location = self.build_error_redirect_uri(
                redirect_uri, error, state, response_type
            )
            error.redirect_uri = location
            response.redirect(location)
            logger.info(
                f"Authorization request for client {client.id} redirected with error",
                extra={"extra_fields": {"client_id": client.id, "error": error.name}},
            )
            raise error

        response.redirect(location)
        logger.info(
            f"Authorization granted to client {client.id}",
            extra={
                "extra_fields": {"client_id": client.id, "response_type": response_type}
            },
        )
        return result

    async def get_client(self, request: Request) -> Client:
        client_id = request.param("client_id")
        if not client_id:
            raise InvalidRequestError("Missing parameter: `client_id`")
        if not is_vschar(client_id):
            raise InvalidRequestError("Invalid parameter: `client_id`")

        redirect_uri = request.param("redirect_uri")
        if redirect_uri and not is_uri(redirect_uri):
            raise InvalidRequestError(
                "Invalid request: `redirect_uri` is not a valid URI"
            )

        client = await self.store.get_client(client_id, None)
        if client is None:
            raise InvalidClientError("Invalid client: client credentials are invalid")
        if not client.redirect_uris:
            raise InvalidClientError("Invalid client: missing client `redirect_uri`")
        return client

    def get_redirect_uri(self, request: Request, client: Client) -> str:
        """
        Pick the redirect URI for this request.

        A single registered URI is used when the request names none.
        """
        redirect_uri = request.param("redirect_uri")
        if not redirect_uri:
            if len(client.redirect_uris) > 1:
                raise InvalidRequestError("Missing parameter: `redirect_uri`")
            return client.redirect_uris[0]
        if redirect_uri not in client.redirect_uris:
            raise InvalidClientError(
                "Invalid client: `redirect_uri` does not match client value"
            )
        return redirect_uri

    def get_state(self, request: Request) -> str | None:
        state = request.param("state")
        if not state:
            if self.config.allow_empty_state:
                return None
            raise InvalidRequestError("Missing parameter: `state`")
        if not is_vschar(state):
            raise InvalidRequestError("Invalid parameter: `state`")
        return state

    def get_response_type(self, request: Request, client: Client) -> str:
        response_type = request.param("response_type")
        if not response_type:
            raise InvalidRequestError("Missing parameter: `response_type`")
        if response_type not in RESPONSE_TYPES:
            raise UnsupportedResponseTypeError(
                "Unsupported response type: `response_type` is not supported"
            )
        if not client.allows_grant(RESPONSE_TYPES[response_type]):
            raise UnauthorizedClientError(
                "Unauthorized client: `response_type` is not allowed for this client"
            )
        return response_type

    def get_scope(self, request: Request) -> list[str] | None:
        scope = request.param("scope")
        if scope is None:
            scope = self.config.default_scope
        if scope is None:
            return None
        if not is_nqschar(scope):
            raise InvalidRequestError("Invalid parameter: `scope`")
        return [s for s in scope_to_list(scope) if s]

    async def get_user(self, request: Request, response: Response) -> Any:
        """
        Resolve the resource owner.

        Uses the application hook when one is configured, otherwise the
        bearer token presented with the request.

        Raises:
            AccessDeniedError: If the hook returns no user
        """
        if self.authenticate_handler is None:
            token = await AuthenticateHandler(self.store, self.config).handle(
                request, response
            )
            return token.user

        user = self.authenticate_handler(request, response)
        if inspect.isawaitable(user):
            user = await user
        if user is None:
            raise AccessDeniedError("Access denied: user denied access to application")
        return user

    async def validate_scope(
        self, user: Any, client: Client, scope: list[str] | None
    ) -> list[str] | None:
        validated = await self.store.validate_scope(user, client, scope)
        if validated is None or validated is False:
            raise InvalidScopeError("Invalid scope: Requested scope is invalid")
        return list(validated) or None

    async def save_authorization_code(
        self,
        request: Request,
        client: Client,
        user: Any,
        scope: list[str] | None,
        redirect_uri: str,
    ) -> AuthorizationCode:
        value = await call_optional_hook(
            self.store, "generate_authorization_code", client, user, scope
        )
        code = AuthorizationCode(
            authorization_code=value
            or generate_token(self.config.authorization_code_length),
            expires_at=utcnow()
            + timedelta(seconds=self.config.authorization_code_lifetime),
            # only a redirect_uri the client actually sent must be repeated
            # at the token endpoint
            redirect_uri=request.param("redirect_uri") and redirect_uri,
            scope=scope,
            client=client,
            user=user,
        )
        saved = await self.store.save_authorization_code(code, client, user)
        if saved is None:
            raise ServerError(
                "Server error: `save_authorization_code()` did not return a code"
            )
        return saved

    def build_token_redirect_uri(
        self, redirect_uri: str, token: Token, state: str | None
    ) -> str:
        params = [
            ("access_token", token.access_token),
            ("token_type", "Bearer"),
        ]
        expires_in = token.expires_in()
        if expires_in is not None:
            params.append(("expires_in", str(expires_in)))
        if token.scope:
            params.append(("scope", list_to_scope(token.scope)))
        return add_params_to_uri(
            redirect_uri, self._with_state(params, state), fragment=True
        )

    def build_error_redirect_uri(
        self,
        redirect_uri: str,
        error: OAuthError,
        state: str | None,
        response_type: str | None,
    ) -> str:
        params = [("error", error.name), ("error_description", error.message)]
        return add_params_to_uri(
            redirect_uri,
            self._with_state(params, state),
            fragment=response_type == "token",
        )

    @staticmethod
    def _with_state(params: list[tuple[str, str]], state: str | None):
        if state:
            params.append(("state", state))
        return params
