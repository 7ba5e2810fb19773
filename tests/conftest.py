"""
Shared test configuration and fixtures.
"""

from datetime import timedelta

import pytest

from oauth2_engine.config import ServerConfig, reset_server_config
from oauth2_engine.core.domain import Client, Token, utcnow
from oauth2_engine.core.envelope import FORM_CONTENT_TYPE, Request
from oauth2_engine.infrastructure.memory_store import InMemoryOAuthStore
from oauth2_engine.server import OAuth2Server

CLIENT_ID = "c1"
CLIENT_SECRET = "s1"
REDIRECT_URI = "https://app/cb"


@pytest.fixture(autouse=True)
def reset_config():
    """Clear the configuration singleton around every test."""
    reset_server_config()
    yield
    reset_server_config()


@pytest.fixture
def oauth_client():
    """Confidential client allowed every built-in grant."""
    return Client(
        id=CLIENT_ID,
        secret=CLIENT_SECRET,
        redirect_uris=[REDIRECT_URI],
        grants=[
            "authorization_code",
            "client_credentials",
            "password",
            "refresh_token",
            "implicit",
        ],
        scopes=["read", "write"],
    )


@pytest.fixture
def service_user():
    """User the sample client acts as for client_credentials."""
    return {"id": "service-c1"}


@pytest.fixture
def resource_owner():
    """Resource owner registered with password credentials."""
    return {"id": "alice"}


@pytest.fixture
def store(oauth_client, service_user, resource_owner):
    """Fresh in-memory store with the sample client and user."""
    store = InMemoryOAuthStore()
    store.add_client(oauth_client, user=service_user)
    store.add_user("alice", "wonderland", user=resource_owner)
    return store


@pytest.fixture
def config():
    """Default engine configuration."""
    return ServerConfig()


@pytest.fixture
def server(store, config):
    """Server bound to the in-memory store."""
    return OAuth2Server(store, config)


@pytest.fixture
def form_request():
    """Factory for form-encoded POST requests."""

    def _make(body, headers=None, method="POST", query=None):
        return Request(
            method=method,
            headers={"Content-Type": FORM_CONTENT_TYPE, **(headers or {})},
            query=query or {},
            body=body,
        )

    return _make


@pytest.fixture
def issue_token(store, oauth_client, resource_owner):
    """
    Factory that saves a token straight into the store.

    ``expires_in`` is relative to now; negative values give an expired token.
    """

    async def _issue(
        access_token="access-1",
        expires_in=3600,
        refresh_token=None,
        refresh_expires_in=1209600,
        scope=None,
        user=resource_owner,
    ):
        now = utcnow()
        token = Token(
            access_token=access_token,
            access_token_expires_at=now + timedelta(seconds=expires_in),
            refresh_token=refresh_token,
            refresh_token_expires_at=(
                now + timedelta(seconds=refresh_expires_in) if refresh_token else None
            ),
            scope=scope,
            client=oauth_client,
            user=user,
        )
        return await store.save_token(token, oauth_client, user)

    return _issue
