"""Use-case layer keeping the state store and the persistence gateway in step.

Every write is optimistic: the state store is updated synchronously, then
the remote call is awaited. A failed remote call records a message in
``StoryState.error`` and leaves the local state as it is; nothing is rolled
back. Local and remote state may therefore diverge until the next
successful save or reload.

Remote completions are not sequenced. Two overlapping saves of the same
node can land in either order, and the backend keeps whichever arrives
last.

No use case raises across the caller boundary. Failures end up in the
single-slot ``error`` and are cleared by the next successful operation.
A story that cannot be read is reported, never replaced by a fresh seed.

Each remote use case logs inside ``story_context`` so its events carry the
story and user they concern.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from storyloom.errors import ExportBlockedError, PersistenceError, StoryValidationError
from storyloom.models.story import (
    DEFAULT_STATS,
    START_NODE_ID,
    TERMINAL,
    CustomStat,
    StatType,
    StoryNode,
    generate_id,
    new_empty_node,
    slugify_stat_name,
)
from storyloom.observability.logging import get_logger, story_context
from storyloom.state.store import (
    AddCustomStat,
    AddNode,
    DeleteNode,
    RemoveCustomStat,
    SelectNode,
    SetCustomStats,
    SetError,
    SetLoading,
    SetNodes,
    UpsertNode,
    WriteFinished,
    WriteStarted,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from storyloom.auth.session import AuthSession
    from storyloom.config import StoryloomConfig
    from storyloom.export.json_exporter import JsonExporter
    from storyloom.persistence.gateway import PersistenceGateway, StoryScope
    from storyloom.state.store import StateStore, StoryState

log = get_logger(__name__)

LOAD_FAILED_MESSAGE = "Failed to load story from persistence."
SAVE_FAILED_MESSAGE = "Failed to save node to persistence."
DELETE_FAILED_MESSAGE = "Failed to delete node from persistence."
STATS_LOAD_FAILED_MESSAGE = "Failed to load stat configuration."
STATS_SAVE_FAILED_MESSAGE = "Failed to save stat configuration."
EXPORT_FAILED_MESSAGE = "Failed to export story."
LAST_NODE_MESSAGE = "Cannot delete the last node."


class StoryOrchestrator:
    """Coordinates load/save/add/delete between StateStore and a gateway.

    The gateway is injected; there is no process-wide instance. The scope
    provider is called on every remote call so a sign-out takes effect
    immediately (the gateway then turns calls into no-ops).
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        store: StateStore,
        scope_provider: Callable[[], StoryScope | None],
        *,
        seed_default_stats: bool = True,
    ) -> None:
        self._gateway = gateway
        self._store = store
        self._scope_provider = scope_provider
        self._seed_default_stats = seed_default_stats

        # First run: the editor always has a start node to show.
        if not store.state.nodes:
            seed = new_empty_node(START_NODE_ID)
            store.dispatch(SetNodes((seed,)))
            store.dispatch(SelectNode(seed.id))

    @classmethod
    def for_session(
        cls,
        gateway: PersistenceGateway,
        store: StateStore,
        session: AuthSession,
        config: StoryloomConfig,
    ) -> StoryOrchestrator:
        """Build an orchestrator scoped to the session's user and the configured story."""
        return cls(
            gateway,
            store,
            lambda: session.scope_for(config.story_id),
            seed_default_stats=config.seed_default_stats,
        )

    @property
    def state(self) -> StoryState:
        return self._store.state

    @property
    def gateway(self) -> PersistenceGateway:
        return self._gateway

    # -------------------------------------------------------------------------
    # Load
    # -------------------------------------------------------------------------

    async def load_story(self) -> None:
        """Fetch the story, seeding and persisting a start node if it is empty.

        A failed read leaves the current nodes in place and sets
        ``LOAD_FAILED_MESSAGE``. Only a story that reads back empty is seeded.
        """
        self._store.dispatch(SetLoading(True))
        scope = self._scope_provider()
        with story_context(scope):
            try:
                nodes = await self._gateway.fetch_nodes(scope)
                if nodes:
                    self._store.dispatch(SetNodes(tuple(nodes)))
                    self._store.dispatch(SelectNode(nodes[0].id))
                else:
                    seed = new_empty_node(START_NODE_ID)
                    await self._gateway.save_bulk(scope, [seed])
                    self._store.dispatch(SetNodes((seed,)))
                    self._store.dispatch(SelectNode(seed.id))
                await self._fetch_stats(scope)
                self._store.dispatch(SetError(None))
                log.info("story_loaded", count=len(self.state.nodes))
            except PersistenceError as e:
                log.error("story_load_failed", error=str(e))
                self._store.dispatch(SetError(LOAD_FAILED_MESSAGE))
            finally:
                self._store.dispatch(SetLoading(False))

    async def load_stats(self) -> None:
        """Reload the stat catalog on its own.

        On a failed read the current catalog is kept and
        ``STATS_LOAD_FAILED_MESSAGE`` is set.
        """
        scope = self._scope_provider()
        with story_context(scope):
            try:
                await self._fetch_stats(scope)
            except PersistenceError as e:
                log.error("stat_config_load_failed", error=str(e))
                self._store.dispatch(SetError(STATS_LOAD_FAILED_MESSAGE))

    async def _fetch_stats(self, scope: StoryScope | None) -> None:
        stats = await self._gateway.fetch_stat_config(scope)
        if not stats and self._seed_default_stats:
            stats = list(DEFAULT_STATS)
        self._store.dispatch(SetCustomStats(tuple(stats)))

    # -------------------------------------------------------------------------
    # Nodes
    # -------------------------------------------------------------------------

    def select_node(self, node_id: str) -> None:
        self._store.dispatch(SelectNode(node_id))

    async def save_node(self, node: StoryNode) -> None:
        """Apply *node* locally, then persist it. No rollback on failure."""
        self._store.dispatch(UpsertNode(node))
        await self._persist_node(node)

    async def _persist_node(self, node: StoryNode) -> None:
        scope = self._scope_provider()
        self._store.dispatch(WriteStarted())
        with story_context(scope):
            try:
                await self._gateway.save_node(scope, node)
            except PersistenceError as e:
                log.error("node_save_failed", node_id=node.id, error=str(e))
                self._store.dispatch(SetError(SAVE_FAILED_MESSAGE))
            else:
                self._store.dispatch(SetError(None))
            finally:
                self._store.dispatch(WriteFinished())

    async def add_node(self, parent_id: str | None = None) -> StoryNode:
        """Append a fresh node, linking it from *parent_id* when possible.

        Only the parent's first choice with an empty target is relinked. A
        parent without such a choice, or an unknown parent id, is left as is
        and the new node starts unlinked.

        Returns:
            The new node.
        """
        node = new_empty_node(generate_id("node", self.state.node_ids))

        parent = self.state.get_node(parent_id) if parent_id else None
        linked_parent = _link_first_open_choice(parent, node.id) if parent else None
        if linked_parent is not None:
            self._store.dispatch(UpsertNode(linked_parent))
        self._store.dispatch(AddNode(node))
        log.debug(
            "node_added",
            node_id=node.id,
            parent_id=parent_id,
            linked=linked_parent is not None,
        )

        if linked_parent is not None:
            await self._persist_node(linked_parent)
        await self._persist_node(node)
        return node

    def _check_deletable(self, node_id: str) -> None:
        if len(self.state.nodes) <= 1:
            raise StoryValidationError(LAST_NODE_MESSAGE, subject=node_id)

    async def delete_node(self, node_id: str) -> bool:
        """Remove a node locally, then remotely. The last node cannot be deleted.

        Returns:
            False if the delete was refused, True otherwise (even when the
            remote delete failed; the node stays removed locally).
        """
        try:
            self._check_deletable(node_id)
        except StoryValidationError as e:
            log.warning("node_delete_refused", node_id=node_id, reason=e.message)
            self._store.dispatch(SetError(e.message))
            return False

        scope = self._scope_provider()
        self._store.dispatch(DeleteNode(node_id))
        self._store.dispatch(WriteStarted())
        with story_context(scope):
            try:
                await self._gateway.delete_node(scope, node_id)
            except PersistenceError as e:
                log.error("node_delete_failed", node_id=node_id, error=str(e))
                self._store.dispatch(SetError(DELETE_FAILED_MESSAGE))
            else:
                self._store.dispatch(SetError(None))
            finally:
                self._store.dispatch(WriteFinished())
        return True

    # -------------------------------------------------------------------------
    # Stat catalog
    # -------------------------------------------------------------------------

    def _validate_new_stat(self, name: str) -> str:
        slug = slugify_stat_name(name)
        if not slug:
            raise StoryValidationError("Stat name cannot be empty.", subject=name)
        if any(s.name == slug for s in self.state.custom_stats):
            raise StoryValidationError(f"Stat '{slug}' already exists.", subject=slug)
        return slug

    async def add_custom_stat(
        self,
        name: str,
        initial_value: int = 0,
        stat_type: StatType = StatType.PERSONALITY,
    ) -> CustomStat | None:
        """Add a stat under its slugified name and persist the catalog.

        Returns:
            The new stat, or None if the name was empty or already taken.
        """
        try:
            slug = self._validate_new_stat(name)
        except StoryValidationError as e:
            log.warning("stat_add_refused", name=name, reason=e.message)
            self._store.dispatch(SetError(e.message))
            return None

        stat = CustomStat(name=slug, initial_value=initial_value, type=stat_type)
        self._store.dispatch(AddCustomStat(stat))
        await self._persist_stats()
        return stat

    async def delete_custom_stat(self, name: str) -> None:
        """Remove a stat and persist the catalog.

        The caller confirms destructive intent. Adjustments that still name
        the stat are left alone.
        """
        self._store.dispatch(RemoveCustomStat(name))
        await self._persist_stats()

    async def _persist_stats(self) -> None:
        scope = self._scope_provider()
        self._store.dispatch(WriteStarted())
        with story_context(scope):
            try:
                await self._gateway.save_stat_config(scope, list(self.state.custom_stats))
            except PersistenceError as e:
                log.error("stat_config_save_failed", error=str(e))
                self._store.dispatch(SetError(STATS_SAVE_FAILED_MESSAGE))
            else:
                self._store.dispatch(SetError(None))
            finally:
                self._store.dispatch(WriteFinished())

    # -------------------------------------------------------------------------
    # Export
    # -------------------------------------------------------------------------

    def export(self, exporter: JsonExporter, output_dir: Path) -> Path | None:
        """Export the current story unless graph issues block it.

        Returns:
            Path to the written file, or None if export was blocked or the
            file could not be written.
        """
        try:
            path = exporter.export(self.state.nodes, output_dir)
        except ExportBlockedError as e:
            log.warning("export_blocked", issues=len(e.issues))
            self._store.dispatch(SetError(str(e)))
            return None
        except OSError as e:
            log.error("story_export_failed", output_dir=str(output_dir), error=str(e))
            self._store.dispatch(SetError(EXPORT_FAILED_MESSAGE))
            return None
        self._store.dispatch(SetError(None))
        log.info("story_exported", path=str(path), format=exporter.format_name)
        return path


def _link_first_open_choice(parent: StoryNode, target_id: str) -> StoryNode | None:
    """Point the parent's first unlinked choice at *target_id*.

    Returns:
        The updated parent, or None if every choice already has a target.
    """
    for i, choice in enumerate(parent.choices):
        if choice.next_node_id == TERMINAL:
            choices = list(parent.choices)
            choices[i] = choice.model_copy(update={"next_node_id": target_id})
            return parent.model_copy(update={"choices": choices})
    return None
