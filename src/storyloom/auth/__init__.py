"""Auth package - sign-in collaborator interface and session tracking."""

from storyloom.auth.session import (
    AuthProvider,
    AuthSession,
    LocalAuthProvider,
    User,
    describe_auth_error,
)

__all__ = [
    "AuthProvider",
    "AuthSession",
    "LocalAuthProvider",
    "User",
    "describe_auth_error",
]
