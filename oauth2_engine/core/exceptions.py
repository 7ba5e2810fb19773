"""
Protocol exceptions for the OAuth 2.0 engine.

Every error carries its canonical HTTP status (``code``) and the machine
readable name from RFC 6749 / RFC 6750 (``name``). Adapters only need one
rule to render them: ``status = error.code`` and
``body = {"error": error.name, "error_description": error.message}``.
"""

from typing import Any


class OAuthError(Exception):
    """
    Base class for all protocol errors raised by the engine.

    Attributes:
        message: Human readable description (``error_description``)
        code: HTTP status code for the error response
        name: RFC error code (``error``)
        redirect_uri: Set by the authorization flow when the error has
            already been redirected to the client's validated redirect URI
    """

    code: int = 500
    name: str = "server_error"
    default_message: str = "Server error"

    def __init__(self, message: str | None = None, **properties: Any):
        self.message = message or self.default_message
        self.redirect_uri: str | None = None
        for key, value in properties.items():
            setattr(self, key, value)
        super().__init__(self.message)

    def to_dict(self) -> dict[str, str]:
        """Wire representation of the error."""
        return {"error": self.name, "error_description": self.message}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, message={self.message!r})"


class InvalidArgumentError(OAuthError):
    """
    Raised for programming or configuration mistakes (missing store,
    unknown options, malformed store return values).
    """

    code = 500
    name = "invalid_argument"
    default_message = "Invalid argument"


class InvalidRequestError(OAuthError):
    """
    The request is missing a required parameter, includes an invalid
    parameter value, repeats a parameter, or is otherwise malformed.
    """

    code = 400
    name = "invalid_request"
    default_message = "Invalid request"


class UnauthorizedRequestError(InvalidRequestError):
    """
    The request carries no authentication at all.

    Per RFC 6750 section 3.1 the resource server should not disclose an
    error code in this case, so the rendered body is empty.
    """

    code = 401
    name = "unauthorized_request"
    default_message = "Unauthorized request"

    def to_dict(self) -> dict[str, str]:
        return {}


class InvalidClientError(OAuthError):
    """Client authentication failed."""

    code = 401
    name = "invalid_client"
    default_message = "Invalid client"


class InvalidGrantError(OAuthError):
    """
    The authorization grant or refresh token is invalid, expired, revoked,
    does not match the redirect URI, or was issued to another client.
    """

    code = 400
    name = "invalid_grant"
    default_message = "Invalid grant"


class InvalidScopeError(OAuthError):
    """The requested scope is invalid, unknown, or exceeds what is allowed."""

    code = 400
    name = "invalid_scope"
    default_message = "Invalid scope"


class InvalidTokenError(OAuthError):
    """The access token is unknown, expired or revoked."""

    code = 401
    name = "invalid_token"
    default_message = "Invalid token"


class UnauthorizedClientError(OAuthError):
    """The client is not allowed to use this grant or response type."""

    code = 400
    name = "unauthorized_client"
    default_message = "Unauthorized client"


class UnsupportedGrantTypeError(OAuthError):
    """The grant type is not supported by the server."""

    code = 400
    name = "unsupported_grant_type"
    default_message = "Unsupported grant type"


class UnsupportedResponseTypeError(OAuthError):
    """The response type is not supported by the server."""

    code = 400
    name = "unsupported_response_type"
    default_message = "Unsupported response type"


class AccessDeniedError(OAuthError):
    """The resource owner or authorization server denied the request."""

    code = 403
    name = "access_denied"
    default_message = "Access denied"


class InsufficientScopeError(OAuthError):
    """The token does not carry the scope required by the resource."""

    code = 403
    name = "insufficient_scope"
    default_message = "Insufficient scope"


class ServerError(OAuthError):
    """
    Unexpected failure, typically raised by the store.

    The original exception is kept as ``__cause__`` by callers using
    ``raise ServerError(...) from exc``.
    """

    code = 500
    name = "server_error"
    default_message = "Server error"
