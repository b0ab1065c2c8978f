"""Composition root wiring config, auth, persistence, state and drafts.

A UI creates one StoryEditor, calls ``start()`` from inside its event loop,
and forwards intents to ``orchestrator`` and ``drafts``. The story reloads
whenever the signed-in user changes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from storyloom.auth.session import AuthSession
from storyloom.config import (
    StoryloomConfig,
    create_default_config,
    create_document_store,
    load_config,
    resolve_log_file,
)
from storyloom.drafts.autosave import EditorSession
from storyloom.errors import ConfigError
from storyloom.observability.logging import configure_logging, get_logger
from storyloom.persistence.gateway import DocumentGateway
from storyloom.state.store import StateStore
from storyloom.sync.orchestrator import StoryOrchestrator
from storyloom.sync.tasks import BackgroundTasks

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from storyloom.auth.session import AuthProvider, User
    from storyloom.persistence.gateway import PersistenceGateway

log = get_logger(__name__)


class StoryEditor:
    """One editing session over one story.

    Attributes:
        config: Active configuration.
        store: Authoritative state.
        auth: Current-user tracker.
        orchestrator: Load/save/add/delete use cases.
        drafts: Focused-node draft with autosave.
        tasks: Fire-and-forget runner for remote work.
    """

    def __init__(
        self,
        config: StoryloomConfig,
        gateway: PersistenceGateway,
        provider: AuthProvider,
    ) -> None:
        self.config = config
        self.store = StateStore()
        self.tasks = BackgroundTasks()
        self.auth = AuthSession(provider)
        self.orchestrator = StoryOrchestrator.for_session(gateway, self.store, self.auth, config)
        self.drafts = EditorSession(
            self.store, self.orchestrator, self.tasks, delay=config.autosave_delay
        )
        self._unsubscribe_auth: Callable[[], None] | None = None

    @classmethod
    def open(cls, project_path: Path, provider: AuthProvider) -> StoryEditor:
        """Create an editor from ``storyloom.yaml`` in *project_path*.

        Falls back to default configuration when the file does not exist.
        Logging is (re)configured from the loaded settings.
        """
        try:
            config = load_config(project_path)
        except ConfigError as e:
            if e.reason != "File not found":
                raise
            log.info("config_missing_using_defaults", path=str(e.path))
            config = create_default_config()
        configure_logging(config.log_verbosity, resolve_log_file(config, project_path))
        gateway = DocumentGateway(create_document_store(config, project_path))
        return cls(config, gateway, provider)

    def start(self) -> None:
        """Begin following the signed-in user; each change triggers a reload.

        Must be called with an event loop running.
        """
        if self._unsubscribe_auth is None:
            self._unsubscribe_auth = self.auth.subscribe(self._on_user_changed)

    def _on_user_changed(self, user: User | None) -> None:
        log.info("story_reload_requested", uid=user.uid if user else None)
        self.drafts.close()
        self.tasks.spawn(self.orchestrator.load_story(), name="load_story")

    async def shutdown(self) -> None:
        """Flush the open draft and wait for outstanding remote work."""
        self.drafts.dispose()
        if self._unsubscribe_auth is not None:
            self._unsubscribe_auth()
            self._unsubscribe_auth = None
        await self.tasks.drain()
