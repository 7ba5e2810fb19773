"""
Tests for the token endpoint: client authentication, dispatch and the
success response.
"""

import base64
from unittest.mock import AsyncMock

import pytest

from oauth2_engine.core.domain import Client, Token
from oauth2_engine.core.envelope import Request, Response
from oauth2_engine.core.exceptions import (
    InvalidArgumentError,
    InvalidClientError,
    InvalidRequestError,
    ServerError,
    UnauthorizedClientError,
    UnsupportedGrantTypeError,
)
from oauth2_engine.grants.base import AbstractGrant
from oauth2_engine.grants.registry import BUILTIN_GRANT_TYPES, resolve_grant_types
from oauth2_engine.handlers.token import TokenHandler
from oauth2_engine.infrastructure.memory_store import InMemoryOAuthStore
from oauth2_engine.server import OAuth2Server, render_error


def _basic(client_id="c1", client_secret="s1"):
    raw = f"{client_id}:{client_secret}".encode()
    return {"Authorization": "Basic " + base64.b64encode(raw).decode()}


def _client_credentials(**extra):
    body = {"grant_type": "client_credentials", "client_id": "c1", "client_secret": "s1"}
    body.update(extra)
    return body


class StaticGrant(AbstractGrant):
    """Extension grant that issues a token for a fixed user."""

    grant_type = "urn:example:static"

    async def handle(self, request, client):
        return await self.save_token("static-user", client, None)


class BrokenGrant(AbstractGrant):
    """Extension grant that returns something other than a Token."""

    grant_type = "urn:example:broken"

    async def handle(self, request, client):
        return {"access_token": "nope"}


class TestTokenSuccess:
    """Tests for successful token requests."""

    @pytest.mark.asyncio
    async def test_client_credentials_response(self, server, form_request):
        """Test the token body and cache headers."""
        response = Response()

        token = await server.token(form_request(_client_credentials()), response)

        assert response.status == 200
        assert response.body["access_token"] == token.access_token
        assert response.body["token_type"] == "Bearer"
        assert response.body["expires_in"] == 3600
        assert "refresh_token" not in response.body
        assert response.get_header("Cache-Control") == "no-store"
        assert response.get_header("Pragma") == "no-cache"

    @pytest.mark.asyncio
    async def test_basic_authentication(self, server, form_request):
        """Test client credentials in the Authorization header."""
        request = form_request({"grant_type": "client_credentials"}, headers=_basic())

        token = await server.token(request, Response())

        assert token.client.id == "c1"

    @pytest.mark.asyncio
    async def test_scope_in_body(self, server, form_request):
        """Test the granted scope is returned space-delimited."""
        response = Response()

        await server.token(form_request(_client_credentials(scope="read write")), response)

        assert response.body["scope"] == "read write"

    @pytest.mark.asyncio
    async def test_access_token_lifetime_option(self, server, form_request):
        """Test per-call lifetime override."""
        response = Response()

        await server.token(
            form_request(_client_credentials()),
            response,
            options={"access_token_lifetime": 60},
        )

        assert response.body["expires_in"] == 60

    @pytest.mark.asyncio
    async def test_extended_attributes(self, oauth_client, config, form_request):
        """Test store-provided attributes are exposed only when enabled."""

        class AnnotatingStore(InMemoryOAuthStore):
            async def save_token(self, token, client, user):
                token = Token(**token.model_dump(), tenant="acme")
                return await super().save_token(token, client, user)

        store = AnnotatingStore()
        store.add_client(oauth_client, user="svc")
        server = OAuth2Server(store, config)

        hidden = Response()
        await server.token(form_request(_client_credentials()), hidden)
        shown = Response()
        await server.token(
            form_request(_client_credentials()),
            shown,
            options={"allow_extended_token_attributes": True},
        )

        assert "tenant" not in hidden.body
        assert shown.body["tenant"] == "acme"

    @pytest.mark.asyncio
    async def test_extension_grant(self, store, config, form_request):
        """Test a configured extension grant is dispatched."""
        store.add_client(
            Client(id="ext", secret="ext-secret", grants=["urn:example:static"])
        )
        server = OAuth2Server(
            store,
            config.with_options(
                {"extended_grant_types": {"urn:example:static": StaticGrant}}
            ),
        )

        token = await server.token(
            form_request(
                {
                    "grant_type": "urn:example:static",
                    "client_id": "ext",
                    "client_secret": "ext-secret",
                }
            ),
            Response(),
        )

        assert token.user == "static-user"
        assert token.refresh_token is not None


class TestTokenRequestValidation:
    """Tests for malformed token requests."""

    @pytest.mark.asyncio
    async def test_method_must_be_post(self, server, form_request):
        """Test GET is rejected."""
        with pytest.raises(InvalidRequestError, match="POST"):
            await server.token(
                form_request(_client_credentials(), method="GET"), Response()
            )

    @pytest.mark.asyncio
    async def test_content_must_be_form(self, server):
        """Test JSON bodies are rejected."""
        request = Request(
            method="POST",
            headers={"content-type": "application/json"},
            body=_client_credentials(),
        )

        with pytest.raises(InvalidRequestError, match="x-www-form-urlencoded"):
            await server.token(request, Response())

    @pytest.mark.asyncio
    async def test_missing_grant_type(self, server, form_request):
        """Test a request without grant_type."""
        with pytest.raises(InvalidRequestError, match="grant_type"):
            await server.token(
                form_request({"client_id": "c1", "client_secret": "s1"}), Response()
            )

    @pytest.mark.asyncio
    async def test_malformed_grant_type(self, server, form_request):
        """Test a grant_type that is neither a name nor a URI."""
        with pytest.raises(InvalidRequestError, match="grant_type"):
            await server.token(
                form_request(_client_credentials(grant_type="no spaces")), Response()
            )

    @pytest.mark.asyncio
    async def test_unsupported_grant_type(self, server, form_request):
        """Test an unknown grant type."""
        response = Response()

        with pytest.raises(UnsupportedGrantTypeError) as exc_info:
            await server.token(
                form_request(_client_credentials(grant_type="foo")), response
            )

        render_error(exc_info.value, response)
        assert response.status == 400
        assert response.body["error"] == "unsupported_grant_type"


class TestClientAuthentication:
    """Tests for client authentication at the token endpoint."""

    @pytest.mark.asyncio
    async def test_two_methods_rejected(self, server, form_request):
        """Test Basic and body credentials together."""
        request = form_request(_client_credentials(), headers=_basic())

        with pytest.raises(InvalidRequestError, match="only one"):
            await server.token(request, Response())

    @pytest.mark.asyncio
    async def test_no_credentials(self, server, form_request):
        """Test a request without any client credentials."""
        with pytest.raises(InvalidRequestError, match="client credentials"):
            await server.token(
                form_request({"grant_type": "client_credentials"}), Response()
            )

    @pytest.mark.asyncio
    async def test_wrong_secret(self, server, form_request):
        """Test a bad secret in the body."""
        response = Response()

        with pytest.raises(InvalidClientError) as exc_info:
            await server.token(
                form_request(_client_credentials(client_secret="wrong")), response
            )

        assert response.get_header("WWW-Authenticate") is None
        render_error(exc_info.value, response)
        assert response.status == 401

    @pytest.mark.asyncio
    async def test_undecodable_basic_credentials(self, server, form_request):
        """Test Basic credentials that are not UTF-8 are a client error."""
        raw = base64.b64encode(b"\xff\xfe:s1").decode()
        request = form_request(
            {"grant_type": "client_credentials"},
            headers={"Authorization": f"Basic {raw}"},
        )
        response = Response()

        with pytest.raises(InvalidRequestError) as exc_info:
            await server.token(request, response)

        render_error(exc_info.value, response)
        assert response.status == 400
        assert response.body["error"] == "invalid_request"

    @pytest.mark.asyncio
    async def test_wrong_secret_basic_challenge(self, server, form_request):
        """Test a bad Basic secret adds a Basic challenge."""
        response = Response()
        request = form_request(
            {"grant_type": "client_credentials"}, headers=_basic(client_secret="bad")
        )

        with pytest.raises(InvalidClientError):
            await server.token(request, response)

        assert response.get_header("WWW-Authenticate") == 'Basic realm="Service"'

    @pytest.mark.asyncio
    async def test_missing_secret(self, server, form_request):
        """Test a secret is required by default."""
        body = {
            "grant_type": "password",
            "client_id": "c1",
            "username": "alice",
            "password": "wonderland",
        }

        with pytest.raises(InvalidClientError):
            await server.token(form_request(body), Response())

    @pytest.mark.asyncio
    async def test_secret_optional_when_configured(self, server, form_request):
        """Test require_client_authentication can waive the secret."""
        body = {
            "grant_type": "password",
            "client_id": "c1",
            "username": "alice",
            "password": "wonderland",
        }

        token = await server.token(
            form_request(body),
            Response(),
            options={"require_client_authentication": {"password": False}},
        )

        assert token.user == {"id": "alice"}

    @pytest.mark.asyncio
    async def test_grant_not_allowed(self, store, server, form_request):
        """Test a client using a grant type it was not registered for."""
        store.add_client(Client(id="c2", secret="s2", grants=["password"]))

        with pytest.raises(UnauthorizedClientError):
            await server.token(
                form_request(_client_credentials(client_id="c2", client_secret="s2")),
                Response(),
            )

    @pytest.mark.asyncio
    async def test_client_without_grants(self, store, server, form_request):
        """Test a client registered without any grant."""
        store.add_client(Client(id="c3", secret="s3"))

        with pytest.raises(ServerError, match="grants"):
            await server.token(
                form_request(_client_credentials(client_id="c3", client_secret="s3")),
                Response(),
            )

    @pytest.mark.asyncio
    async def test_store_failure(self, store, server, form_request):
        """Test store exceptions become ServerError."""
        failure = ConnectionError("db down")
        store.get_client = AsyncMock(side_effect=failure)

        with pytest.raises(ServerError) as exc_info:
            await server.token(form_request(_client_credentials()), Response())

        assert exc_info.value.__cause__ is failure


class TestGrantDispatch:
    """Tests for the grant type registry and dispatcher."""

    def test_builtin_grants(self):
        """Test the built-in grant types."""
        assert set(BUILTIN_GRANT_TYPES) == {
            "authorization_code",
            "client_credentials",
            "password",
            "refresh_token",
        }

    def test_extension_cannot_override_builtin(self):
        """Test built-in grant types are protected."""
        with pytest.raises(InvalidArgumentError, match="built-in"):
            resolve_grant_types({"password": StaticGrant})

    def test_extension_must_be_grant(self):
        """Test extensions must subclass AbstractGrant."""
        with pytest.raises(InvalidArgumentError, match="AbstractGrant"):
            resolve_grant_types({"urn:example:bad": object})

    @pytest.mark.asyncio
    async def test_grant_must_return_token(self, store, config, form_request):
        """Test a grant returning something else is rejected."""
        store.add_client(
            Client(id="ext", secret="ext-secret", grants=["urn:example:broken"])
        )
        handler = TokenHandler(
            store,
            config.with_options(
                {"extended_grant_types": {"urn:example:broken": BrokenGrant}}
            ),
        )
        request = form_request(
            {
                "grant_type": "urn:example:broken",
                "client_id": "ext",
                "client_secret": "ext-secret",
            }
        )

        with pytest.raises(InvalidArgumentError, match="Token"):
            await handler.handle(request, Response())

    def test_store_must_implement_required_methods(self, config):
        """Test a store missing token operations is rejected up front."""

        class ReadOnlyStore:
            async def get_client(self, client_id, client_secret):
                return None

        with pytest.raises(InvalidArgumentError, match="save_token"):
            TokenHandler(ReadOnlyStore(), config)
