"""Tests for AuthSession and the local auth provider."""

from __future__ import annotations

import pytest

from storyloom.auth.session import (
    SIGN_IN_CANCELLED_MESSAGE,
    SIGN_IN_FAILED_MESSAGE,
    SIGN_OUT_FAILED_MESSAGE,
    AuthProvider,
    AuthSession,
    LocalAuthProvider,
    User,
    describe_auth_error,
)
from storyloom.errors import AuthFailure, SignInCancelledError
from storyloom.persistence.gateway import StoryScope


class FailingProvider(LocalAuthProvider):
    """Provider that raises a configured error on sign-in and sign-out."""

    def __init__(self, error: AuthFailure) -> None:
        super().__init__()
        self.error = error

    async def sign_in(self) -> User:
        raise self.error

    async def sign_out(self) -> None:
        raise self.error


class TestDescribeAuthError:
    def test_cancelled(self) -> None:
        assert describe_auth_error(SignInCancelledError()) == SIGN_IN_CANCELLED_MESSAGE

    def test_generic_without_message(self) -> None:
        assert describe_auth_error(AuthFailure()) == SIGN_IN_FAILED_MESSAGE

    def test_provider_message_kept(self) -> None:
        assert describe_auth_error(AuthFailure("popup blocked")) == "popup blocked"


class TestAuthSession:
    def test_local_provider_satisfies_protocol(self) -> None:
        assert isinstance(LocalAuthProvider(), AuthProvider)

    def test_subscribe_reports_current_user_immediately(self) -> None:
        session = AuthSession(LocalAuthProvider(signed_in=True))
        seen: list[User | None] = []

        session.subscribe(seen.append)

        assert seen == [User(uid="local", display_name="Local Author")]

    @pytest.mark.asyncio
    async def test_sign_in_and_out_notify(self) -> None:
        session = AuthSession(LocalAuthProvider(User(uid="u1")))
        seen: list[str | None] = []
        session.subscribe(lambda u: seen.append(u.uid if u else None))

        user = await session.sign_in()
        await session.sign_out()

        assert user == User(uid="u1")
        assert seen == [None, "u1", None]
        assert session.user is None

    @pytest.mark.asyncio
    async def test_repeat_sign_in_does_not_renotify(self) -> None:
        session = AuthSession(LocalAuthProvider(User(uid="u1")))
        seen: list[User | None] = []
        session.subscribe(seen.append)

        await session.sign_in()
        await session.sign_in()

        assert len(seen) == 2

    @pytest.mark.asyncio
    async def test_cancelled_sign_in_sets_error(self) -> None:
        session = AuthSession(FailingProvider(SignInCancelledError()))

        assert await session.sign_in() is None

        assert session.error == SIGN_IN_CANCELLED_MESSAGE
        assert not session.is_loading

    @pytest.mark.asyncio
    async def test_sign_out_failure_keeps_user(self) -> None:
        provider = FailingProvider(AuthFailure("network"))
        session = AuthSession(provider)
        session._set_user(User(uid="u1"))

        await session.sign_out()

        assert session.error == SIGN_OUT_FAILED_MESSAGE
        assert session.user == User(uid="u1")

    @pytest.mark.asyncio
    async def test_success_clears_error(self) -> None:
        provider = LocalAuthProvider()
        session = AuthSession(provider)
        session.error = "stale"

        await session.sign_in()

        assert session.error is None

    @pytest.mark.asyncio
    async def test_scope_for(self) -> None:
        session = AuthSession(LocalAuthProvider(User(uid="u1")))
        assert session.scope_for("s1") is None

        await session.sign_in()

        assert session.scope_for("s1") == StoryScope("u1", "s1")

    def test_unsubscribe(self) -> None:
        session = AuthSession(LocalAuthProvider())
        seen: list[User | None] = []
        unsubscribe = session.subscribe(seen.append)
        unsubscribe()

        session._set_user(User(uid="x"))

        assert seen == [None]
