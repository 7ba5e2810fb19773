"""
Transport-neutral request and response envelopes.

Adapters build a ``Request`` once at the boundary from whatever their
framework hands them. The envelope copies method, headers, query and body at
construction, so later mutation of the transport object cannot change what
the engine sees. The engine fills in a ``Response`` which the adapter then
forwards verbatim (status, headers, body).
"""

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from oauth2_engine.core.exceptions import InvalidRequestError

ParamValue = str | list[str]

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def _normalize_params(value: Any) -> dict[str, ParamValue]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise TypeError("parameters must be a mapping")
    params: dict[str, ParamValue] = {}
    for key, item in value.items():
        if item is None:
            continue
        if isinstance(item, (list, tuple)):
            params[str(key)] = [str(v) for v in item]
        else:
            params[str(key)] = str(item)
    return params


class Request(BaseModel):
    """
    Immutable snapshot of an inbound HTTP request.

    Header names are stored lower-cased; ``header()`` lookups are
    case-insensitive. Query and body are flat mappings of string keys to a
    string or a list of strings.
    """

    method: str = Field(default="GET", description="HTTP method, upper-cased")
    headers: dict[str, str] = Field(default_factory=dict)
    query: dict[str, ParamValue] = Field(default_factory=dict)
    body: dict[str, ParamValue] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @field_validator("method", mode="before")
    @classmethod
    def normalize_method(cls, v):
        return str(v or "GET").upper()

    @field_validator("headers", mode="before")
    @classmethod
    def normalize_headers(cls, v):
        if v is None:
            return {}
        if isinstance(v, Mapping):
            items = v.items()
        else:
            # list of (name, value) pairs, e.g. ASGI raw headers
            items = v
        headers: dict[str, str] = {}
        for name, value in items:
            if isinstance(name, bytes):
                name = name.decode("latin-1")
            if isinstance(value, bytes):
                value = value.decode("latin-1")
            if isinstance(value, (list, tuple)):
                value = ", ".join(str(part) for part in value)
            key = str(name).lower()
            headers[key] = f"{headers[key]}, {value}" if key in headers else str(value)
        return headers

    @field_validator("query", "body", mode="before")
    @classmethod
    def normalize_params(cls, v):
        return _normalize_params(v)

    def header(self, name: str, default: str | None = None) -> str | None:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)

    def get(self, name: str, default: str | None = None) -> str | None:
        """
        Mapping-style header access.

        Lets helpers written against header mappings (such as Authlib's
        ``extract_basic_authorization``) accept the request directly.
        """
        return self.header(name, default)

    @property
    def content_type(self) -> str:
        """Media type of the body without parameters (``charset`` etc.)."""
        raw = self.header("content-type") or ""
        return raw.split(";", 1)[0].strip().lower()

    def is_form(self) -> bool:
        """True if the body is ``application/x-www-form-urlencoded``."""
        return self.content_type == FORM_CONTENT_TYPE

    def param(self, name: str, *, source: str = "any") -> str | None:
        """
        Return a single request parameter.

        Args:
            name: Parameter name
            source: ``"body"``, ``"query"`` or ``"any"`` (body first)

        Returns:
            The parameter value, or None if absent or empty

        Raises:
            InvalidRequestError: If the parameter is repeated (RFC 6749 3.1)
        """
        if source == "body":
            sources = (self.body,)
        elif source == "query":
            sources = (self.query,)
        else:
            sources = (self.body, self.query)

        for params in sources:
            value = params.get(name)
            if value is None:
                continue
            if isinstance(value, list):
                if len(value) > 1:
                    raise InvalidRequestError(
                        f"Invalid request: `{name}` parameter repeated"
                    )
                value = value[0] if value else None
            if value:
                return value
        return None


class Response(BaseModel):
    """
    Outbound response populated by the engine.

    Header names are stored lower-cased.
    """

    status: int = 200
    headers: dict[str, str] = Field(default_factory=dict)
    body: dict[str, Any] = Field(default_factory=dict)

    @field_validator("headers", mode="before")
    @classmethod
    def normalize_headers(cls, v):
        return {str(k).lower(): str(val) for k, val in (v or {}).items()}

    def get_header(self, name: str) -> str | None:
        return self.headers.get(name.lower())

    def set_header(self, name: str, value: str) -> None:
        self.headers[name.lower()] = value

    def redirect(self, url: str) -> None:
        """Turn the response into a 302 redirect to ``url``."""
        self.set_header("Location", url)
        self.status = 302

    @property
    def location(self) -> str | None:
        return self.get_header("location")
