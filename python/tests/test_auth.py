"""Integration tests for authentication middleware, verification and bootstrap.

Tests the full auth flow including:
- Bearer token validation
- User bootstrap and public id assignment on first request
- Admin routes gate
- GET /me endpoint
- Supabase JWKS verifier key lookup
"""

from types import SimpleNamespace
from uuid import UUID

import jwt
import pytest
from fastapi.testclient import TestClient
from jwt import PyJWKClient
from jwt.exceptions import PyJWKClientError

from memoryhaze.app import create_app
from memoryhaze.auth.middleware import AuthMiddleware
from memoryhaze.auth.verifier import SupabaseJwksVerifier
from memoryhaze.db.models import User
from memoryhaze.errors import ApiError, ApiErrorCode
from tests.helpers import (
    DEFAULT_AUDIENCE,
    DEFAULT_ISSUER,
    auth_headers,
    create_test_user_id,
    mint_expired_token,
    mint_test_token,
)
from tests.support.test_verifier import MockJwtVerifier


class TestAuthBoundary:
    """Unauthenticated requests are rejected before any route runs."""

    def test_no_authorization_header(self, client):
        response = client.get("/me")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "E_UNAUTHENTICATED"

    def test_wrong_authorization_format(self, client):
        response = client.get("/me", headers={"Authorization": "Basic dXNlcjpwYXNz"})

        assert response.status_code == 401

    def test_empty_bearer_token(self, client):
        response = client.get("/me", headers={"Authorization": "Bearer "})

        assert response.status_code == 401

    def test_expired_token(self, client):
        token = mint_expired_token(create_test_user_id())

        response = client.get("/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Token expired"

    def test_wrong_audience(self, client):
        headers = auth_headers(create_test_user_id(), audience="someone-else")

        response = client.get("/me", headers=headers)

        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Invalid token audience"

    def test_sub_must_be_uuid(self, client):
        token = mint_test_token("not-a-uuid")

        response = client.get("/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert "sub" in response.json()["error"]["message"]

    def test_health_no_auth_required(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"data": {"status": "ok"}}


class TestBootstrap:
    """First authenticated request creates the user row."""

    def test_first_request_creates_user(self, client, db_session):
        user_id = create_test_user_id()

        response = client.get("/me", headers=auth_headers(user_id, email="first@example.com"))

        assert response.status_code == 200
        user = db_session.get(User, user_id)
        assert user is not None
        assert user.email == "first@example.com"
        assert user.public_id == "usr-00001"

    def test_public_ids_are_sequential(self, client, db_session):
        first, second = create_test_user_id(), create_test_user_id()

        client.get("/me", headers=auth_headers(first))
        client.get("/me", headers=auth_headers(second))
        client.get("/me", headers=auth_headers(first))

        assert db_session.get(User, first).public_id == "usr-00001"
        assert db_session.get(User, second).public_id == "usr-00002"

    def test_bootstrap_failure_is_internal_error(self):
        def failing_bootstrap(user_id: UUID, email: str | None):
            raise RuntimeError("database unavailable")

        app = create_app(skip_auth_middleware=True)
        app.add_middleware(
            AuthMiddleware, verifier=MockJwtVerifier(), bootstrap_callback=failing_bootstrap
        )

        with TestClient(app) as client:
            response = client.get("/me", headers=auth_headers(create_test_user_id()))

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "E_INTERNAL"


class TestMe:
    def test_me_response_shape(self, client, owner):
        response = client.get("/me", headers=auth_headers(owner.id))

        assert response.status_code == 200
        assert response.json()["data"] == {
            "user_id": str(owner.id),
            "public_id": owner.public_id,
            "is_admin": False,
        }

    def test_me_reports_admin(self, client, admin):
        response = client.get("/me", headers=auth_headers(admin.id))

        assert response.json()["data"]["is_admin"] is True


class TestSupabaseJwksVerifier:
    """Key lookup and failure mapping, with the JWKS fetch stubbed out."""

    @pytest.fixture
    def verifier(self) -> SupabaseJwksVerifier:
        return SupabaseJwksVerifier(
            jwks_url="https://auth.example.test/.well-known/jwks.json",
            issuer=f"{DEFAULT_ISSUER}/",
            audiences=[DEFAULT_AUDIENCE],
        )

    def test_valid_token(self, verifier, monkeypatch):
        public_key = MockJwtVerifier.get_public_key()
        monkeypatch.setattr(
            PyJWKClient,
            "get_signing_key_from_jwt",
            lambda self, token: SimpleNamespace(key=public_key),
        )
        user_id = create_test_user_id()

        claims = verifier.verify(mint_test_token(user_id, email="a@example.com"))

        assert claims["sub"] == str(user_id)
        assert claims["email"] == "a@example.com"

    def test_kid_miss_refetches_once(self, verifier, monkeypatch):
        calls = []

        def missing_key(self, token):
            calls.append(token)
            raise PyJWKClientError('Unable to find a signing key that matches: "kid-1"')

        monkeypatch.setattr(PyJWKClient, "get_signing_key_from_jwt", missing_key)

        with pytest.raises(ApiError) as exc_info:
            verifier.verify(mint_test_token(create_test_user_id()))

        assert exc_info.value.code == ApiErrorCode.E_UNAUTHENTICATED
        assert len(calls) == 2

    def test_jwks_unavailable(self, verifier, monkeypatch):
        def unreachable(self, token):
            raise PyJWKClientError("Fail to fetch data from the url, err: timed out")

        monkeypatch.setattr(PyJWKClient, "get_signing_key_from_jwt", unreachable)

        with pytest.raises(ApiError) as exc_info:
            verifier.verify(mint_test_token(create_test_user_id()))

        assert exc_info.value.code == ApiErrorCode.E_AUTH_UNAVAILABLE
        assert exc_info.value.status_code == 503

    def test_undecodable_token(self, verifier):
        with pytest.raises(ApiError) as exc_info:
            verifier.verify("not.a.jwt")

        assert exc_info.value.code == ApiErrorCode.E_UNAUTHENTICATED


def test_mock_verifier_rejects_foreign_signature():
    """Tokens signed with another key fail verification."""
    from cryptography.hazmat.primitives import serialization
    from cryptography.hazmat.primitives.asymmetric import rsa

    other_key = rsa.generate_private_key(public_exponent=65537, key_size=2048).private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    token = jwt.encode(
        {"sub": str(create_test_user_id()), "iss": DEFAULT_ISSUER, "aud": DEFAULT_AUDIENCE, "exp": 9999999999},
        other_key,
        algorithm="RS256",
    )

    with pytest.raises(ApiError) as exc_info:
        MockJwtVerifier().verify(token)

    assert exc_info.value.message == "Invalid token signature"
