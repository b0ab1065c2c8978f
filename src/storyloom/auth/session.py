"""Auth collaborator interface.

The sign-in provider itself lives outside this library. AuthProvider is the
contract it must meet; AuthSession tracks the current user, notifies
observers on change, and maps provider failures to user-facing messages.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from storyloom.errors import AuthFailure, SignInCancelledError
from storyloom.observability.logging import get_logger
from storyloom.persistence.gateway import StoryScope

if TYPE_CHECKING:
    from collections.abc import Callable

log = get_logger(__name__)

SIGN_IN_CANCELLED_MESSAGE = "Sign-in cancelled by user."
SIGN_IN_FAILED_MESSAGE = "Authentication failed. Please check your connection."
SIGN_OUT_FAILED_MESSAGE = "Sign out failed."


@dataclass(frozen=True)
class User:
    """An authenticated user as seen by the story engine."""

    uid: str
    email: str | None = None
    display_name: str | None = None
    is_anonymous: bool = False


@runtime_checkable
class AuthProvider(Protocol):
    """Sign-in provider contract.

    ``sign_in`` raises SignInCancelledError when the user backs out and
    AuthFailure for any other provider error.
    """

    async def sign_in(self) -> User:
        ...

    async def sign_out(self) -> None:
        ...

    def current_user(self) -> User | None:
        ...


class LocalAuthProvider:
    """Provider with a fixed local user, for offline use and tests."""

    def __init__(self, user: User | None = None, *, signed_in: bool = False) -> None:
        self._user = user or User(uid="local", display_name="Local Author")
        self._signed_in = signed_in

    async def sign_in(self) -> User:
        self._signed_in = True
        return self._user

    async def sign_out(self) -> None:
        self._signed_in = False

    def current_user(self) -> User | None:
        return self._user if self._signed_in else None


def describe_auth_error(error: AuthFailure) -> str:
    """Map a provider failure to the message shown to the user."""
    if isinstance(error, SignInCancelledError):
        return SIGN_IN_CANCELLED_MESSAGE
    return str(error) or SIGN_IN_FAILED_MESSAGE


class AuthSession:
    """Current-user tracker with observer registration.

    Attributes:
        error: Last auth failure message, cleared by the next success.
        is_loading: True while a sign-in is in flight.
    """

    def __init__(self, provider: AuthProvider) -> None:
        self._provider = provider
        self._user = provider.current_user()
        self._handlers: list[Callable[[User | None], None]] = []
        self.error: str | None = None
        self.is_loading = False

    @property
    def user(self) -> User | None:
        return self._user

    def subscribe(self, handler: Callable[[User | None], None]) -> Callable[[], None]:
        """Register *handler* for user changes and call it with the current user.

        Returns:
            A function that unregisters the handler.
        """
        self._handlers.append(handler)
        handler(self._user)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def _set_user(self, user: User | None) -> None:
        if user == self._user:
            return
        self._user = user
        log.info("auth_user_changed", uid=user.uid if user else None)
        for handler in list(self._handlers):
            handler(user)

    async def sign_in(self) -> User | None:
        """Sign in through the provider.

        Failures are recorded in ``error`` rather than raised.
        """
        self.is_loading = True
        try:
            user = await self._provider.sign_in()
        except AuthFailure as e:
            self.error = describe_auth_error(e)
            log.warning("sign_in_failed", error=str(e), cancelled=isinstance(e, SignInCancelledError))
            return None
        finally:
            self.is_loading = False
        self.error = None
        self._set_user(user)
        return user

    async def sign_out(self) -> None:
        try:
            await self._provider.sign_out()
        except AuthFailure as e:
            self.error = SIGN_OUT_FAILED_MESSAGE
            log.warning("sign_out_failed", error=str(e))
            return
        self.error = None
        self._set_user(None)

    def scope_for(self, story_id: str) -> StoryScope | None:
        """Persistence scope for *story_id*, or None when signed out."""
        if self._user is None:
            return None
        return StoryScope(user_id=self._user.uid, story_id=story_id)
