"""
Engine configuration.

Loaded from environment variables (``OAUTH_*``) with defaults matching
RFC 6749 practice. Individual calls can override any setting through
``ServerConfig.with_options``.
"""

import dataclasses
import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any

from oauth2_engine.core.exceptions import InvalidArgumentError


logger = logging.getLogger(__name__)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise InvalidArgumentError(f"Invalid argument: `{name}` must be an integer")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class ServerConfig:
    """
    OAuth 2.0 engine settings.

    Lifetimes are in seconds.
    """

    access_token_lifetime: int = 3600
    refresh_token_lifetime: int = 1209600  # 2 weeks
    authorization_code_lifetime: int = 300
    authorization_code_length: int = 40
    token_length: int = 40

    always_issue_new_refresh_token: bool = True
    allow_bearer_tokens_in_query_string: bool = False
    allow_empty_state: bool = True
    allow_extended_token_attributes: bool = False
    add_accepted_scopes_header: bool = True
    add_authorized_scopes_header: bool = True

    default_scope: str | None = None
    realm: str = "Service"

    # grant_type -> whether a client_secret is required at the token endpoint
    require_client_authentication: dict[str, bool] = field(default_factory=dict)
    # grant_type URI -> AbstractGrant subclass
    extended_grant_types: dict[str, type] = field(default_factory=dict)

    def __post_init__(self):
        for name in (
            "access_token_lifetime",
            "refresh_token_lifetime",
            "authorization_code_lifetime",
        ):
            if getattr(self, name) <= 0:
                raise InvalidArgumentError(
                    f"Invalid argument: `{name}` must be positive"
                )
        if self.authorization_code_length < 32:
            raise InvalidArgumentError(
                "Invalid argument: `authorization_code_length` must be at least 32"
            )
        if self.token_length < 32:
            raise InvalidArgumentError(
                "Invalid argument: `token_length` must be at least 32"
            )

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """Load configuration from environment variables."""
        return cls(
            access_token_lifetime=_env_int("OAUTH_ACCESS_TOKEN_LIFETIME", 3600),
            refresh_token_lifetime=_env_int("OAUTH_REFRESH_TOKEN_LIFETIME", 1209600),
            authorization_code_lifetime=_env_int(
                "OAUTH_AUTHORIZATION_CODE_LIFETIME", 300
            ),
            authorization_code_length=_env_int("OAUTH_AUTHORIZATION_CODE_LENGTH", 40),
            token_length=_env_int("OAUTH_TOKEN_LENGTH", 40),
            always_issue_new_refresh_token=_env_bool(
                "OAUTH_ALWAYS_ISSUE_NEW_REFRESH_TOKEN", True
            ),
            allow_bearer_tokens_in_query_string=_env_bool(
                "OAUTH_ALLOW_BEARER_TOKENS_IN_QUERY_STRING", False
            ),
            allow_empty_state=_env_bool("OAUTH_ALLOW_EMPTY_STATE", True),
            allow_extended_token_attributes=_env_bool(
                "OAUTH_ALLOW_EXTENDED_TOKEN_ATTRIBUTES", False
            ),
            default_scope=os.getenv("OAUTH_DEFAULT_SCOPE") or None,
            realm=os.getenv("OAUTH_REALM", "Service"),
        )

    def with_options(self, options: dict[str, Any] | None) -> "ServerConfig":
        """
        Return a copy with per-call overrides applied.

        Raises:
            InvalidArgumentError: If an option name is unknown
        """
        if not options:
            return self
        known = {f.name for f in dataclasses.fields(self)}
        unknown = sorted(set(options) - known)
        if unknown:
            raise InvalidArgumentError(
                f"Invalid argument: unknown option(s) {', '.join(unknown)}"
            )
        return dataclasses.replace(self, **options)

    def requires_client_secret(self, grant_type: str) -> bool:
        """Whether the token endpoint must authenticate the client for a grant."""
        if grant_type == "client_credentials":
            return True
        return self.require_client_authentication.get(grant_type, True)


@lru_cache()
def get_server_config() -> ServerConfig:
    """Get engine configuration singleton."""
    config = ServerConfig.from_env()
    logger.debug(
        f"Loaded OAuth engine configuration: "
        f"access_token_lifetime={config.access_token_lifetime}, "
        f"refresh_token_lifetime={config.refresh_token_lifetime}"
    )
    return config


def reset_server_config() -> None:
    """
    Clear the configuration singleton so the environment is read again.
    """
    get_server_config.cache_clear()
