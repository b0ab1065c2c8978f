"""Error types for story persistence, validation, auth and export.

Persistence errors are raised by gateways and document stores. The sync
orchestrator catches them and records a user-facing message in the state
store's single ``error`` slot, so none of these cross the UI boundary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

    from storyloom.graph.validation import GraphIssue


class StoryloomError(Exception):
    """Base class for all storyloom errors."""


class PersistenceError(StoryloomError):
    """Raised when a remote read or write fails."""

    def __init__(self, operation: str, target: str, reason: str = "") -> None:
        self.operation = operation
        self.target = target
        self.reason = reason
        msg = f"{operation} failed for '{target}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class LoadFailure(PersistenceError):
    """A read from the persistence backend failed."""

    def __init__(self, target: str, reason: str = "") -> None:
        super().__init__("load", target, reason)


class SaveFailure(PersistenceError):
    """A write to the persistence backend failed."""

    def __init__(self, target: str, reason: str = "") -> None:
        super().__init__("save", target, reason)


class DeleteFailure(PersistenceError):
    """A delete against the persistence backend failed."""

    def __init__(self, target: str, reason: str = "") -> None:
        super().__init__("delete", target, reason)


@dataclass
class StoryValidationError(StoryloomError):
    """Raised when an edit is rejected before any state change.

    Attributes:
        message: User-facing explanation.
        subject: Node id or stat name the rejection concerns.
    """

    message: str
    subject: str = ""

    def __post_init__(self) -> None:
        super().__init__(self.message)


class AuthFailure(StoryloomError):
    """Raised by an auth provider when sign-in or sign-out fails."""


class SignInCancelledError(AuthFailure):
    """Raised when the user dismisses the sign-in flow."""


@dataclass
class ExportBlockedError(StoryloomError):
    """Raised when export is attempted while graph issues remain.

    Attributes:
        issues: The diagnostics that block the export.
    """

    issues: list[GraphIssue] = field(default_factory=list)

    def __post_init__(self) -> None:
        super().__init__(
            f"Cannot export: please fix {len(self.issues)} graph issue(s) "
            "(Orphans, Dead Ends, Invalid Links)."
        )


class ConfigError(StoryloomError):
    """Raised when project configuration cannot be loaded."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load storyloom config at {path}: {reason}")
