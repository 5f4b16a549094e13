"""Supabase Auth (GoTrue) REST client.

Endpoints used:
- POST /auth/v1/token?grant_type=password      sign in
- POST /auth/v1/token?grant_type=refresh_token refresh
- POST /auth/v1/signup                         sign up (metadata in "data")
- POST /auth/v1/logout                         sign out
"""

import time
from dataclasses import asdict, dataclass, field
from typing import Any

import httpx

from labmate.logging import get_logger

logger = get_logger(__name__)

INVALID_RESPONSE_MESSAGE = "Invalid response from authentication service"


class IdentityError(Exception):
    """Raised when the identity service rejects a request or cannot be reached."""

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: str | None = None
    user_metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AuthSession:
    access_token: str
    refresh_token: str | None
    expires_at: int | None
    user: AuthUser

    def is_expired(self, now: float | None = None, leeway_s: int = 10) -> bool:
        if self.expires_at is None:
            return False
        now = time.time() if now is None else now
        return now >= self.expires_at - leeway_s

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AuthSession":
        user = data["user"]
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_at=data.get("expires_at"),
            user=AuthUser(
                id=user["id"],
                email=user.get("email"),
                user_metadata=user.get("user_metadata") or {},
            ),
        )


def _session_from_token_response(data: Any) -> AuthSession:
    """Build a session from a token or sign-up body.

    Raises:
        IdentityError: If the body lacks the token or the user.
    """
    try:
        expires_at = data.get("expires_at")
        if expires_at is None and data.get("expires_in") is not None:
            expires_at = int(time.time()) + int(data["expires_in"])
        return AuthSession.from_dict(
            {
                "access_token": data["access_token"],
                "refresh_token": data.get("refresh_token"),
                "expires_at": expires_at,
                "user": data["user"],
            }
        )
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        logger.warning("identity.response.invalid", error_type=type(e).__name__)
        raise IdentityError(INVALID_RESPONSE_MESSAGE) from e


def _json_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise IdentityError(INVALID_RESPONSE_MESSAGE, status_code=response.status_code) from e


class IdentityClient:
    """Thin async wrapper over the Supabase Auth REST API."""

    def __init__(self, supabase_url: str, anon_key: str, http: httpx.AsyncClient):
        self.auth_url = f"{supabase_url.rstrip('/')}/auth/v1"
        self._anon_key = anon_key
        self._http = http

    def _headers(self, access_token: str | None = None) -> dict[str, str]:
        headers = {"apikey": self._anon_key, "Content-Type": "application/json"}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return headers

    async def _post(
        self,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
        access_token: str | None = None,
    ) -> httpx.Response:
        try:
            response = await self._http.post(
                f"{self.auth_url}{path}",
                json=json,
                params=params,
                headers=self._headers(access_token),
            )
        except httpx.HTTPError as e:
            logger.warning("identity.request.failed", path=path, error_type=type(e).__name__)
            raise IdentityError("Authentication service unavailable") from e

        if response.status_code >= 400:
            raise IdentityError(_error_message(response), status_code=response.status_code)
        return response

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        response = await self._post(
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        return _session_from_token_response(_json_body(response))

    async def refresh(self, refresh_token: str) -> AuthSession:
        response = await self._post(
            "/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
        )
        return _session_from_token_response(_json_body(response))

    async def sign_up(
        self,
        email: str,
        password: str,
        metadata: dict[str, Any],
        redirect_to: str | None = None,
    ) -> AuthSession | None:
        """Register a new user.

        Returns:
            The new session, or None when the project requires email
            confirmation before the first sign-in.
        """
        response = await self._post(
            "/signup",
            params={"redirect_to": redirect_to} if redirect_to else None,
            json={"email": email, "password": password, "data": metadata},
        )
        data = _json_body(response)
        if isinstance(data, dict) and data.get("access_token"):
            return _session_from_token_response(data)
        return None

    async def sign_out(self, access_token: str) -> None:
        await self._post("/logout", access_token=access_token)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"Authentication failed ({response.status_code})"
    if isinstance(body, dict):
        for key in ("error_description", "msg", "message", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return f"Authentication failed ({response.status_code})"
