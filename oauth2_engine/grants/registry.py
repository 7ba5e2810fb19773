"""
Built-in grant types available at the token endpoint.
"""

from oauth2_engine.core.exceptions import InvalidArgumentError
from oauth2_engine.grants.authorization_code import AuthorizationCodeGrant
from oauth2_engine.grants.base import AbstractGrant
from oauth2_engine.grants.client_credentials import ClientCredentialsGrant
from oauth2_engine.grants.password import PasswordGrant
from oauth2_engine.grants.refresh_token import RefreshTokenGrant

BUILTIN_GRANT_TYPES: dict[str, type[AbstractGrant]] = {
    AuthorizationCodeGrant.grant_type: AuthorizationCodeGrant,
    ClientCredentialsGrant.grant_type: ClientCredentialsGrant,
    PasswordGrant.grant_type: PasswordGrant,
    RefreshTokenGrant.grant_type: RefreshTokenGrant,
}


def resolve_grant_types(
    extended: dict[str, type] | None = None,
) -> dict[str, type[AbstractGrant]]:
    """
    Merge extension grants into the built-in table.

    Raises:
        InvalidArgumentError: If an extension is not an ``AbstractGrant``
            subclass or tries to replace a built-in grant type
    """
    grant_types = dict(BUILTIN_GRANT_TYPES)
    for name, grant_class in (extended or {}).items():
        if name in BUILTIN_GRANT_TYPES:
            raise InvalidArgumentError(
                f"Invalid argument: cannot override built-in grant type `{name}`"
            )
        if not (isinstance(grant_class, type) and issubclass(grant_class, AbstractGrant)):
            raise InvalidArgumentError(
                f"Invalid argument: grant type `{name}` must subclass AbstractGrant"
            )
        grant_types[name] = grant_class
    return grant_types
