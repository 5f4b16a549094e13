"""Client session controller.

Holds the current identity session and notifies subscribers on every
change. A view mounts the controller to restore any persisted session and
receive notifications, and unmounts it to stop them:

    controller = SessionController(identity, storage=FileSessionStorage(path))
    await controller.mount(on_change)
    ...
    await controller.sign_in(SignInForm(email, password))
    ...
    controller.unmount()

view is "auth" until a session exists, then "app".
"""

import json
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Literal, Protocol

from labmate.client.identity import AuthSession, AuthUser, IdentityClient, IdentityError
from labmate.logging import get_logger

logger = get_logger(__name__)


class AuthEvent(str, Enum):
    INITIAL_SESSION = "INITIAL_SESSION"
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"


SessionListener = Callable[[AuthEvent, AuthSession | None], None]
AuthSuccessCallback = Callable[[AuthUser, AuthSession], None]


@dataclass(frozen=True)
class SignInForm:
    email: str
    password: str


@dataclass(frozen=True)
class SignUpForm:
    email: str
    password: str
    full_name: str = ""
    institution: str = ""
    research_field: str = ""

    def metadata(self) -> dict[str, str]:
        """User metadata stored by the identity service and copied into the profile."""
        return {
            "full_name": self.full_name,
            "institution": self.institution,
            "research_field": self.research_field,
        }


class SessionStorage(Protocol):
    def load(self) -> AuthSession | None: ...

    def save(self, session: AuthSession) -> None: ...

    def clear(self) -> None: ...


class MemorySessionStorage:
    def __init__(self, session: AuthSession | None = None):
        self._session = session

    def load(self) -> AuthSession | None:
        return self._session

    def save(self, session: AuthSession) -> None:
        self._session = session

    def clear(self) -> None:
        self._session = None


class FileSessionStorage:
    """Persists the session as JSON. A corrupt file is treated as no session."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> AuthSession | None:
        if not self.path.exists():
            return None
        try:
            data: dict[str, Any] = json.loads(self.path.read_text(encoding="utf-8"))
            return AuthSession.from_dict(data)
        except (ValueError, KeyError, TypeError):
            logger.warning("session.storage.unreadable", path=str(self.path))
            return None

    def save(self, session: AuthSession) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(session.to_dict()), encoding="utf-8")

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class Subscription:
    """Handle returned by subscribe(). unsubscribe() is idempotent."""

    def __init__(self, controller: "SessionController", listener: SessionListener):
        self._controller = controller
        self._listener = listener
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._controller._remove_listener(self._listener)
            self.active = False


class SessionController:
    def __init__(
        self,
        identity: IdentityClient,
        storage: SessionStorage | None = None,
        redirect_url: str | None = None,
    ):
        self._identity = identity
        self._storage = storage or MemorySessionStorage()
        self._redirect_url = redirect_url
        self._listeners: list[SessionListener] = []
        self._view_subscriptions: list[Subscription] = []
        self._session: AuthSession | None = None
        self.is_loading = True

    @property
    def session(self) -> AuthSession | None:
        return self._session

    @property
    def user(self) -> AuthUser | None:
        return self._session.user if self._session else None

    @property
    def view(self) -> Literal["auth", "app"]:
        return "app" if self._session is not None else "auth"

    def access_token(self) -> str | None:
        return self._session.access_token if self._session else None

    # -------------------------------------------------------------------------
    # Subscription
    # -------------------------------------------------------------------------

    def subscribe(self, listener: SessionListener) -> Subscription:
        self._listeners.append(listener)
        return Subscription(self, listener)

    def _remove_listener(self, listener: SessionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, event: AuthEvent) -> None:
        for listener in list(self._listeners):
            listener(event, self._session)

    def _set_session(self, session: AuthSession | None, event: AuthEvent) -> None:
        self._session = session
        if session is None:
            self._storage.clear()
        else:
            self._storage.save(session)
        self.is_loading = False
        logger.info("session.changed", auth_event=event.value, signed_in=session is not None)
        self._emit(event)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def mount(
        self,
        listener: SessionListener | None = None,
        on_auth_success: AuthSuccessCallback | None = None,
    ) -> Subscription | None:
        """Restore a persisted session and subscribe the view.

        An expired session is refreshed once; if that fails the user is
        signed out locally. on_auth_success fires when a session is restored.
        """
        subscription = None
        if listener is not None:
            subscription = self.subscribe(listener)
            self._view_subscriptions.append(subscription)

        session = self._storage.load()
        if session is not None and session.is_expired():
            session = await self._try_refresh(session)

        self._set_session(session, AuthEvent.INITIAL_SESSION)
        if session is not None and on_auth_success is not None:
            on_auth_success(session.user, session)
        return subscription

    def unmount(self) -> None:
        for subscription in self._view_subscriptions:
            subscription.unsubscribe()
        self._view_subscriptions.clear()

    async def _try_refresh(self, session: AuthSession) -> AuthSession | None:
        if not session.refresh_token:
            return None
        try:
            return await self._identity.refresh(session.refresh_token)
        except IdentityError as e:
            logger.info("session.refresh.failed", status_code=e.status_code)
            return None

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def sign_in(self, form: SignInForm) -> AuthSession:
        """Raises IdentityError on rejected credentials; the state is unchanged then."""
        session = await self._identity.sign_in_with_password(form.email, form.password)
        self._set_session(session, AuthEvent.SIGNED_IN)
        return session

    async def sign_up(self, form: SignUpForm) -> AuthSession | None:
        """Register. Returns None when the email must be confirmed first."""
        session = await self._identity.sign_up(
            form.email, form.password, form.metadata(), redirect_to=self._redirect_url
        )
        if session is not None:
            self._set_session(session, AuthEvent.SIGNED_IN)
        return session

    async def refresh(self) -> AuthSession | None:
        if self._session is None:
            return None
        session = await self._try_refresh(self._session)
        self._set_session(session, AuthEvent.TOKEN_REFRESHED if session else AuthEvent.SIGNED_OUT)
        return session

    async def sign_out(self) -> None:
        """Revoke the session remotely, then clear it locally.

        Raises IdentityError if the identity service rejects the logout; the
        local session is kept in that case.
        """
        if self._session is None:
            return
        await self._identity.sign_out(self._session.access_token)
        self._set_session(None, AuthEvent.SIGNED_OUT)
