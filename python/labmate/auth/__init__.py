"""Authentication module.

This module provides:
- Token verification (Supabase JWKS verifier, Supabase user-endpoint verifier)
- Auth middleware for FastAPI
- Request state with viewer identity

Note: Test-only verifiers are in tests/support/test_verifier.py
"""

from labmate.auth.middleware import AuthMiddleware, Viewer, get_viewer
from labmate.auth.verifier import SupabaseJwksVerifier, SupabaseUserVerifier, TokenVerifier

__all__ = [
    "AuthMiddleware",
    "Viewer",
    "get_viewer",
    "SupabaseJwksVerifier",
    "SupabaseUserVerifier",
    "TokenVerifier",
]
