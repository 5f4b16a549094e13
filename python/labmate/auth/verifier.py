"""Token verification implementations.

Provides:
- TokenVerifier: Protocol for token verification
- SupabaseJwksVerifier: Verifies Supabase JWTs locally against the JWKS endpoint
- SupabaseUserVerifier: Asks the Supabase Auth service who the token belongs to

Note: Test-only verifiers are in tests/support/test_verifier.py
"""

import logging
import threading
from typing import Any, Protocol
from uuid import UUID

import httpx
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

from labmate.errors import ApiError, ApiErrorCode

logger = logging.getLogger(__name__)

# Clock skew allowance in seconds
CLOCK_SKEW_SECONDS = 60


class TokenVerifier(Protocol):
    """Protocol for token verification.

    Implementations return claims with at least "sub" (a UUID string) and,
    when known, "email" and "user_metadata".
    """

    def verify(self, token: str) -> dict[str, Any]:
        """Verify token and return decoded claims.

        Raises:
            ApiError(E_UNAUTHENTICATED): Token is invalid, expired, or malformed.
            ApiError(E_AUTH_UNAVAILABLE): Identity infrastructure unreachable.
        """
        ...


def _require_uuid_sub(claims: dict[str, Any]) -> dict[str, Any]:
    sub = claims.get("sub")
    if not sub:
        logger.warning("auth_failure", extra={"reason": "missing_sub"})
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token: missing sub")
    try:
        UUID(str(sub))
    except ValueError as e:
        logger.warning("auth_failure", extra={"reason": "invalid_sub"})
        raise ApiError(
            ApiErrorCode.E_UNAUTHENTICATED, "Invalid token: sub is not a valid UUID"
        ) from e
    return claims


class SupabaseJwksVerifier:
    """Token verifier using Supabase JWKS.

    Validates:
    - Signature via JWKS (RS256 or ES256)
    - exp with ±60s clock skew
    - iss matches configured issuer (after normalization)
    - aud must be in configured audience list
    - sub must be valid UUID
    """

    def __init__(self, jwks_url: str, issuer: str, audiences: list[str], cache_ttl: int = 3600):
        self.jwks_url = jwks_url
        self.issuer = issuer.rstrip("/")
        self.audiences = audiences
        self.cache_ttl = cache_ttl

        self._jwks_client: PyJWKClient | None = None
        self._jwks_lock = threading.Lock()

    def _get_jwks_client(self, refresh: bool = False) -> PyJWKClient:
        with self._jwks_lock:
            if self._jwks_client is None or refresh:
                self._jwks_client = PyJWKClient(
                    self.jwks_url,
                    cache_keys=True,
                    lifespan=self.cache_ttl,
                )
            return self._jwks_client

    def verify(self, token: str) -> dict[str, Any]:
        try:
            signing_key = self._get_signing_key(token)
        except PyJWKClientError as e:
            logger.warning("auth_failure", extra={"reason": "jwks_unavailable", "error": str(e)})
            raise ApiError(
                ApiErrorCode.E_AUTH_UNAVAILABLE,
                "Authentication service unavailable",
            ) from e
        except DecodeError as e:
            logger.warning("auth_failure", extra={"reason": "decode_error"})
            raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token format") from e

        try:
            payload = jwt.decode(
                token,
                signing_key.key,
                algorithms=["RS256", "ES256"],
                audience=self.audiences,
                issuer=self.issuer,
                leeway=CLOCK_SKEW_SECONDS,
                options={"require": ["exp", "iss", "sub"], "verify_aud": True},
            )
        except ExpiredSignatureError as e:
            logger.warning("auth_failure", extra={"reason": "expired_token"})
            raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Token expired") from e
        except InvalidSignatureError as e:
            logger.warning("auth_failure", extra={"reason": "invalid_signature"})
            raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token signature") from e
        except InvalidIssuerError as e:
            logger.warning("auth_failure", extra={"reason": "invalid_issuer"})
            raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token issuer") from e
        except InvalidAudienceError as e:
            logger.warning("auth_failure", extra={"reason": "invalid_audience"})
            raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token audience") from e
        except DecodeError as e:
            logger.warning("auth_failure", extra={"reason": "decode_error"})
            raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token format") from e
        except InvalidTokenError as e:
            logger.warning("auth_failure", extra={"reason": "invalid_token"})
            raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token") from e

        return _require_uuid_sub(payload)

    def _get_signing_key(self, token: str) -> Any:
        """Get the signing key for the token, refreshing the JWKS once on a kid miss."""
        client = self._get_jwks_client()

        try:
            return client.get_signing_key_from_jwt(token)
        except PyJWKClientError as e:
            if "Unable to find" not in str(e) and "kid" not in str(e).lower():
                raise
            logger.info("Refreshing JWKS due to kid miss")
            client = self._get_jwks_client(refresh=True)
            try:
                return client.get_signing_key_from_jwt(token)
            except PyJWKClientError as retry_e:
                logger.warning("auth_failure", extra={"reason": "kid_not_found"})
                raise ApiError(
                    ApiErrorCode.E_UNAUTHENTICATED,
                    "Invalid token: signing key not found",
                ) from retry_e


class SupabaseUserVerifier:
    """Resolves a bearer token through GET {SUPABASE_URL}/auth/v1/user.

    Used when no JWKS endpoint is configured. The returned user object is
    normalized to the claim shape the rest of the app expects: sub, email,
    user_metadata.
    """

    def __init__(self, supabase_url: str, api_key: str, timeout_s: float = 10.0):
        self.user_url = f"{supabase_url.rstrip('/')}/auth/v1/user"
        self._api_key = api_key
        self._client = httpx.Client(timeout=httpx.Timeout(timeout_s))

    def close(self) -> None:
        self._client.close()

    def verify(self, token: str) -> dict[str, Any]:
        try:
            response = self._client.get(
                self.user_url,
                headers={"Authorization": f"Bearer {token}", "apikey": self._api_key},
            )
        except httpx.HTTPError as e:
            logger.warning("auth_failure", extra={"reason": "identity_unavailable"})
            raise ApiError(
                ApiErrorCode.E_AUTH_UNAVAILABLE, "Authentication service unavailable"
            ) from e

        if response.status_code in (401, 403, 404):
            logger.warning("auth_failure", extra={"reason": "user_lookup_rejected"})
            raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Unauthorized")
        if response.status_code >= 400:
            logger.warning(
                "auth_failure",
                extra={"reason": "identity_error", "status_code": response.status_code},
            )
            raise ApiError(ApiErrorCode.E_AUTH_UNAVAILABLE, "Authentication service unavailable")

        try:
            user = response.json()
        except ValueError as e:
            raise ApiError(
                ApiErrorCode.E_AUTH_UNAVAILABLE, "Authentication service unavailable"
            ) from e
        if not isinstance(user, dict):
            raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Unauthorized")

        return _require_uuid_sub(
            {
                "sub": user.get("id"),
                "email": user.get("email"),
                "user_metadata": user.get("user_metadata") or {},
            }
        )
