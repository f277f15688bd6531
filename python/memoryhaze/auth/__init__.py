"""Authentication and authorization module.

This module provides:
- Token verification (Supabase JWKS verifier)
- Auth middleware for FastAPI
- Request state with viewer identity
- Admin-only route dependency

Note: Test-only verifiers are in tests/support/test_verifier.py
"""

from memoryhaze.auth.middleware import AuthMiddleware, Viewer, get_viewer
from memoryhaze.auth.permissions import require_admin
from memoryhaze.auth.verifier import SupabaseJwksVerifier, TokenVerifier, decode_claims

__all__ = [
    "AuthMiddleware",
    "Viewer",
    "get_viewer",
    "require_admin",
    "SupabaseJwksVerifier",
    "TokenVerifier",
    "decode_claims",
]
