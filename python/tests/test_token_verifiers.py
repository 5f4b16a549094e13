"""Unit tests for the production token verifiers.

SupabaseJwksVerifier runs against a patched PyJWKClient; SupabaseUserVerifier
runs against a respx-mocked identity service. No network access.
"""

import time
from unittest.mock import MagicMock, patch
from uuid import uuid4

import httpx
import jwt
import pytest
import respx
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jwt.exceptions import PyJWKClientError

from labmate.auth.verifier import SupabaseJwksVerifier, SupabaseUserVerifier
from labmate.errors import ApiError, ApiErrorCode

ISSUER = "https://project.supabase.co/auth/v1"
USER_URL = "https://project.supabase.co/auth/v1/user"


@pytest.fixture(scope="module")
def private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def mint(private_key, **overrides) -> str:
    now = int(time.time())
    payload = {
        "sub": str(uuid4()),
        "iss": ISSUER,
        "aud": "authenticated",
        "iat": now,
        "exp": now + 3600,
        **overrides,
    }
    pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return jwt.encode(payload, pem, algorithm="RS256", headers={"kid": "k1"})


class TestSupabaseJwksVerifier:
    @pytest.fixture
    def verifier(self):
        return SupabaseJwksVerifier(
            jwks_url=f"{ISSUER}/.well-known/jwks.json",
            issuer=ISSUER + "/",
            audiences=["authenticated"],
        )

    def patch_signing_key(self, verifier, private_key, side_effect=None):
        jwk_client = MagicMock()
        if side_effect is not None:
            jwk_client.get_signing_key_from_jwt.side_effect = side_effect
        else:
            jwk_client.get_signing_key_from_jwt.return_value = MagicMock(
                key=private_key.public_key()
            )
        return patch.object(verifier, "_get_jwks_client", return_value=jwk_client)

    def test_valid_token(self, verifier, private_key):
        token = mint(private_key, email="ada@example.org")

        with self.patch_signing_key(verifier, private_key):
            claims = verifier.verify(token)

        assert claims["email"] == "ada@example.org"

    def test_wrong_issuer(self, verifier, private_key):
        token = mint(private_key, iss="https://elsewhere.example.org")

        with self.patch_signing_key(verifier, private_key), pytest.raises(ApiError) as exc_info:
            verifier.verify(token)

        assert exc_info.value.code == ApiErrorCode.E_UNAUTHENTICATED
        assert exc_info.value.message == "Invalid token issuer"

    def test_expired_beyond_skew(self, verifier, private_key):
        token = mint(private_key, exp=int(time.time()) - 120)

        with self.patch_signing_key(verifier, private_key), pytest.raises(ApiError) as exc_info:
            verifier.verify(token)

        assert exc_info.value.message == "Token expired"

    def test_kid_miss_refreshes_once(self, verifier, private_key):
        token = mint(private_key)
        key = MagicMock(key=private_key.public_key())
        side_effect = [PyJWKClientError("Unable to find a signing key that matches"), key]

        with self.patch_signing_key(verifier, private_key, side_effect=side_effect) as patched:
            verifier.verify(token)

        assert patched.call_args_list[-1].kwargs == {"refresh": True}

    def test_jwks_unreachable(self, verifier, private_key):
        side_effect = PyJWKClientError("Fail to fetch data from the url")

        with self.patch_signing_key(verifier, private_key, side_effect=side_effect):
            with pytest.raises(ApiError) as exc_info:
                verifier.verify(mint(private_key))

        assert exc_info.value.code == ApiErrorCode.E_AUTH_UNAVAILABLE
        assert exc_info.value.status_code == 503


class TestSupabaseUserVerifier:
    @pytest.fixture
    def verifier(self):
        verifier = SupabaseUserVerifier("https://project.supabase.co/", api_key="anon-key")
        yield verifier
        verifier.close()

    @respx.mock
    def test_resolves_user(self, verifier):
        user_id = str(uuid4())
        route = respx.get(USER_URL).mock(
            return_value=httpx.Response(
                200,
                json={
                    "id": user_id,
                    "email": "ada@example.org",
                    "user_metadata": {"full_name": "Ada"},
                    "role": "authenticated",
                },
            )
        )

        claims = verifier.verify("access-token")

        assert claims == {
            "sub": user_id,
            "email": "ada@example.org",
            "user_metadata": {"full_name": "Ada"},
        }
        sent = route.calls.last.request
        assert sent.headers["Authorization"] == "Bearer access-token"
        assert sent.headers["apikey"] == "anon-key"

    @respx.mock
    def test_rejected_token(self, verifier):
        respx.get(USER_URL).mock(return_value=httpx.Response(401, json={"msg": "bad jwt"}))

        with pytest.raises(ApiError) as exc_info:
            verifier.verify("expired")

        assert exc_info.value.code == ApiErrorCode.E_UNAUTHENTICATED

    @respx.mock
    def test_identity_service_error(self, verifier):
        respx.get(USER_URL).mock(return_value=httpx.Response(500))

        with pytest.raises(ApiError) as exc_info:
            verifier.verify("token")

        assert exc_info.value.code == ApiErrorCode.E_AUTH_UNAVAILABLE

    @respx.mock
    def test_identity_service_unreachable(self, verifier):
        respx.get(USER_URL).mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(ApiError) as exc_info:
            verifier.verify("token")

        assert exc_info.value.code == ApiErrorCode.E_AUTH_UNAVAILABLE
