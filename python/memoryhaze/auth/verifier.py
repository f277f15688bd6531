"""Bearer token verification.

Provides:
- TokenVerifier: Protocol for token verification
- decode_claims: shared claim validation used by every verifier
- SupabaseJwksVerifier: verifier backed by the Supabase JWKS endpoint

Note: Test-only verifiers are in tests/support/test_verifier.py
"""

import logging
import threading
from typing import Any, Protocol
from uuid import UUID

import jwt
from jwt import PyJWKClient
from jwt.exceptions import (
    DecodeError,
    ExpiredSignatureError,
    InvalidAudienceError,
    InvalidIssuerError,
    InvalidSignatureError,
    InvalidTokenError,
    PyJWKClientError,
)

from memoryhaze.errors import ApiError, ApiErrorCode

logger = logging.getLogger(__name__)

# Clock skew allowance in seconds
CLOCK_SKEW_SECONDS = 60

# Most specific first; InvalidTokenError is the base class of the others
_JWT_FAILURES: tuple[tuple[type[InvalidTokenError], str, str], ...] = (
    (ExpiredSignatureError, "expired_token", "Token expired"),
    (InvalidSignatureError, "invalid_signature", "Invalid token signature"),
    (InvalidIssuerError, "invalid_issuer", "Invalid token issuer"),
    (InvalidAudienceError, "invalid_audience", "Invalid token audience"),
    (DecodeError, "decode_error", "Invalid token format"),
    (InvalidTokenError, "invalid_token", "Invalid token"),
)


class TokenVerifier(Protocol):
    def verify(self, token: str) -> dict[str, Any]:
        """Verify token and return decoded claims.

        Raises:
            ApiError(E_UNAUTHENTICATED): Token is invalid, expired, or malformed.
            ApiError(E_AUTH_UNAVAILABLE): Key material could not be fetched.
        """
        ...


def decode_claims(
    token: str,
    key: Any,
    *,
    algorithms: list[str],
    issuer: str,
    audiences: list[str],
) -> dict[str, Any]:
    """Decode a JWT and validate the claims MemoryHaze relies on.

    Validates exp (with clock skew), iss, aud, and that ``sub`` is a UUID.
    ``email`` is optional and passed through untouched.
    """
    try:
        payload = jwt.decode(
            token,
            key,
            algorithms=algorithms,
            audience=audiences,
            issuer=issuer,
            leeway=CLOCK_SKEW_SECONDS,
            options={"require": ["exp", "iss", "sub"], "verify_aud": True},
        )
    except InvalidTokenError as e:
        for exc_type, reason, message in _JWT_FAILURES:
            if isinstance(e, exc_type):
                logger.warning("auth_failure", extra={"reason": reason})
                raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, message) from e
        raise

    sub = payload.get("sub")
    try:
        UUID(str(sub))
    except ValueError as e:
        logger.warning("auth_failure", extra={"reason": "invalid_sub"})
        raise ApiError(
            ApiErrorCode.E_UNAUTHENTICATED, "Invalid token: sub is not a valid UUID"
        ) from e

    return payload


class SupabaseJwksVerifier:
    """Production verifier using Supabase JWKS.

    Accepts RS256 and ES256 signatures. On a key-id miss the JWKS is
    refetched once before the token is rejected.
    """

    def __init__(
        self,
        jwks_url: str,
        issuer: str,
        audiences: list[str],
        cache_ttl: int = 3600,
    ):
        self.jwks_url = jwks_url
        self.issuer = issuer.rstrip("/")
        self.audiences = audiences
        self.cache_ttl = cache_ttl
        self._jwks_client: PyJWKClient | None = None
        self._jwks_lock = threading.Lock()

    def _client(self, refresh: bool = False) -> PyJWKClient:
        with self._jwks_lock:
            if self._jwks_client is None or refresh:
                self._jwks_client = PyJWKClient(
                    self.jwks_url, cache_keys=True, lifespan=self.cache_ttl
                )
            return self._jwks_client

    def _signing_key(self, token: str) -> Any:
        try:
            return self._client().get_signing_key_from_jwt(token)
        except PyJWKClientError as e:
            if "Unable to find" not in str(e):
                raise
            logger.info("Refreshing JWKS due to kid miss")

        try:
            return self._client(refresh=True).get_signing_key_from_jwt(token)
        except PyJWKClientError as e:
            if "Unable to find" not in str(e):
                raise
            logger.warning("auth_failure", extra={"reason": "kid_not_found"})
            raise ApiError(
                ApiErrorCode.E_UNAUTHENTICATED, "Invalid token: signing key not found"
            ) from e

    def verify(self, token: str) -> dict[str, Any]:
        try:
            signing_key = self._signing_key(token)
        except PyJWKClientError as e:
            logger.warning("auth_failure", extra={"reason": "jwks_unavailable", "error": str(e)})
            raise ApiError(
                ApiErrorCode.E_AUTH_UNAVAILABLE, "Authentication service unavailable"
            ) from e
        except DecodeError as e:
            logger.warning("auth_failure", extra={"reason": "decode_error"})
            raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token format") from e

        return decode_claims(
            token,
            signing_key.key,
            algorithms=["RS256", "ES256"],
            issuer=self.issuer,
            audiences=self.audiences,
        )
