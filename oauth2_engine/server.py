"""
OAuth 2.0 server facade.

Entry points for the three flows. An adapter builds a ``Request`` and an
empty ``Response``, awaits one of ``authenticate``, ``authorize`` or
``token``, and on failure passes the raised error to ``render_error``.
"""

import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from oauth2_engine.config import ServerConfig, get_server_config
from oauth2_engine.core.domain import AuthorizationCode, Token
from oauth2_engine.core.envelope import Request, Response
from oauth2_engine.core.exceptions import (
    InvalidArgumentError,
    OAuthError,
    ServerError,
)
from oauth2_engine.core.ports import OAuthStore
from oauth2_engine.handlers.authenticate import AuthenticateHandler
from oauth2_engine.handlers.authorize import AuthorizeHandler, UserHook
from oauth2_engine.handlers.token import TokenHandler

logger = logging.getLogger(__name__)

T = TypeVar("T")

CompletionHook = Callable[[], Awaitable[None] | None]


class OAuth2Server:
    """
    Authorization server bound to one store and one configuration.

    Every entry point accepts ``options`` (per-call overrides of
    ``ServerConfig`` fields) and ``on_complete``, a sync or async callable
    invoked exactly once when the flow finishes, whether it succeeded or
    raised.
    """

    def __init__(self, store: OAuthStore | None, config: ServerConfig | None = None):
        if store is None:
            raise InvalidArgumentError("Missing parameter: `store`")
        self.store = store
        self.config = config or get_server_config()

    async def authenticate(
        self,
        request: Request,
        response: Response | None = None,
        *,
        scope: str | list[str] | None = None,
        options: dict[str, Any] | None = None,
        on_complete: CompletionHook | None = None,
    ) -> Token:
        """
        Validate the bearer token presented with ``request``.

        Args:
            request: Protected-resource request
            response: Receives ``WWW-Authenticate`` and scope headers
            scope: Scope the token must have been granted
            options: Per-call configuration overrides
            on_complete: Completion hook

        Returns:
            The token, with its client and user
        """
        response = response if response is not None else Response()

        async def flow() -> Token:
            config = self.config.with_options(options)
            handler = AuthenticateHandler(self.store, config, scope=scope)
            return await handler.handle(request, response)

        return await self._run(flow, on_complete)

    async def authorize(
        self,
        request: Request,
        response: Response,
        *,
        authenticate_handler: UserHook | None = None,
        options: dict[str, Any] | None = None,
        on_complete: CompletionHook | None = None,
    ) -> AuthorizationCode | Token:
        """
        Answer an authorization request with a redirect.

        Args:
            request: Authorization request
            response: Receives the 302 redirect, on success and on
                redirected errors alike
            authenticate_handler: Resolves the resource owner; defaults to
                authenticating the bearer token on ``request``
            options: Per-call configuration overrides
            on_complete: Completion hook

        Returns:
            The saved authorization code, or the access token for
            ``response_type=token``
        """

        async def flow() -> AuthorizationCode | Token:
            config = self.config.with_options(options)
            handler = AuthorizeHandler(
                self.store, config, authenticate_handler=authenticate_handler
            )
            return await handler.handle(request, response)

        return await self._run(flow, on_complete)

    async def token(
        self,
        request: Request,
        response: Response,
        *,
        options: dict[str, Any] | None = None,
        on_complete: CompletionHook | None = None,
    ) -> Token:
        """
        Exchange a grant for tokens.

        Args:
            request: Token request (POST, form encoded)
            response: Receives the JSON token body and cache headers
            options: Per-call configuration overrides
            on_complete: Completion hook

        Returns:
            The issued token
        """

        async def flow() -> Token:
            config = self.config.with_options(options)
            handler = TokenHandler(self.store, config)
            return await handler.handle(request, response)

        return await self._run(flow, on_complete)

    async def _run(
        self,
        flow: Callable[[], Awaitable[T]],
        on_complete: CompletionHook | None,
    ) -> T:
        try:
            return await flow()
        finally:
            if on_complete is not None:
                result = on_complete()
                if inspect.isawaitable(result):
                    await result


def render_error(exc: BaseException, response: Response) -> Response:
    """
    Render a flow failure into ``response``.

    Authorization errors that were already redirected keep their 302.
    Everything else gets ``status = error.code`` and the error body;
    non-protocol exceptions are rendered as ``server_error``.

    Args:
        exc: The exception raised by a flow
        response: Response to populate

    Returns:
        The populated response
    """
    if isinstance(exc, OAuthError) and exc.redirect_uri:
        response.redirect(exc.redirect_uri)
        return response

    if not isinstance(exc, OAuthError):
        logger.error(f"Unhandled error rendered as server_error: {exc}", exc_info=exc)
        error = ServerError(f"Server error: {exc}")
        error.__cause__ = exc
        exc = error

    response.status = exc.code
    response.body = exc.to_dict()
    return response
