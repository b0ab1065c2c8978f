"""Persistence gateway: the remote read/write contract the sync engine uses.

Every call takes a StoryScope naming the signed-in user and the story. A
``None`` scope means nobody is signed in; every call is then a no-op that
returns an empty result instead of failing.

DocumentStore backends are synchronous. DocumentGateway runs each store
call in a worker thread, one call at a time, so the event loop keeps
running while the backend works and calls still reach it in order.

Logical layout under a DocumentStore::

    users/{user_id}/stories/{story_id}/nodes/{node_id}   one record per node
    users/{user_id}/stories/{story_id}/config/stats      {"customStats": [...]}
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, TypeVar, runtime_checkable

from pydantic import ValidationError

from storyloom.errors import LoadFailure, PersistenceError
from storyloom.models.story import CustomStat, StoryNode
from storyloom.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from storyloom.persistence.store import DocumentStore

log = get_logger(__name__)

STATS_FIELD = "customStats"

T = TypeVar("T")


@dataclass(frozen=True)
class StoryScope:
    """Identifies one user's story in the backend."""

    user_id: str
    story_id: str

    @property
    def root(self) -> str:
        return f"users/{self.user_id}/stories/{self.story_id}"

    @property
    def nodes_collection(self) -> str:
        return f"{self.root}/nodes"

    def node_path(self, node_id: str) -> str:
        return f"{self.nodes_collection}/{node_id}"

    @property
    def stats_path(self) -> str:
        return f"{self.root}/config/stats"


@runtime_checkable
class PersistenceGateway(Protocol):
    """Asynchronous remote read/write contract.

    Reads raise LoadFailure when the backend or a stored record cannot be
    read, so an unreadable story is never mistaken for an empty one. Writes
    raise the other PersistenceError subclasses. Writes are idempotent
    field-merging upserts, so retrying is safe.
    """

    async def fetch_nodes(self, scope: StoryScope | None) -> list[StoryNode]:
        """Return the story's nodes in persisted order."""
        ...

    async def save_node(self, scope: StoryScope | None, node: StoryNode) -> None:
        """Upsert one node by id, keeping fields the record has but *node* omits."""
        ...

    async def delete_node(self, scope: StoryScope | None, node_id: str) -> None:
        """Delete one node by id."""
        ...

    async def save_bulk(self, scope: StoryScope | None, nodes: Sequence[StoryNode]) -> None:
        """Upsert nodes one after another. Not atomic as a batch."""
        ...

    async def fetch_stat_config(self, scope: StoryScope | None) -> list[CustomStat]:
        """Return the stat catalog."""
        ...

    async def save_stat_config(
        self, scope: StoryScope | None, stats: Sequence[CustomStat]
    ) -> None:
        """Replace the whole stat catalog."""
        ...


class DocumentGateway:
    """PersistenceGateway implementation over a DocumentStore backend."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store
        self._lock = asyncio.Lock()

    @property
    def store(self) -> DocumentStore:
        return self._store

    async def _run(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        async with self._lock:
            return await asyncio.to_thread(fn, *args, **kwargs)

    async def fetch_nodes(self, scope: StoryScope | None) -> list[StoryNode]:
        if scope is None:
            return []
        try:
            records = await self._run(self._store.list_collection, scope.nodes_collection)
            nodes = [StoryNode.model_validate({**data, "id": doc_id}) for doc_id, data in records]
        except LoadFailure as e:
            log.error("nodes_fetch_failed", story=scope.story_id, error=str(e))
            raise
        except ValidationError as e:
            log.error("nodes_fetch_failed", story=scope.story_id, error=str(e))
            raise LoadFailure(scope.nodes_collection, "malformed node record") from e
        log.debug("nodes_fetched", story=scope.story_id, count=len(nodes))
        return nodes

    async def save_node(self, scope: StoryScope | None, node: StoryNode) -> None:
        if scope is None:
            return
        try:
            await self._run(
                self._store.set, scope.node_path(node.id), node.to_record(), merge=True
            )
        except PersistenceError as e:
            log.error("node_save_failed", node_id=node.id, error=str(e))
            raise
        log.debug("node_saved", node_id=node.id)

    async def delete_node(self, scope: StoryScope | None, node_id: str) -> None:
        if scope is None:
            return
        try:
            await self._run(self._store.delete, scope.node_path(node_id))
        except PersistenceError as e:
            log.error("node_delete_failed", node_id=node_id, error=str(e))
            raise
        log.debug("node_deleted", node_id=node_id)

    async def save_bulk(self, scope: StoryScope | None, nodes: Sequence[StoryNode]) -> None:
        for node in nodes:
            await self.save_node(scope, node)

    async def fetch_stat_config(self, scope: StoryScope | None) -> list[CustomStat]:
        if scope is None:
            return []
        try:
            record = await self._run(self._store.get, scope.stats_path)
            if record is None:
                return []
            stats = [CustomStat.model_validate(s) for s in record.get(STATS_FIELD, [])]
        except LoadFailure as e:
            log.error("stat_config_fetch_failed", story=scope.story_id, error=str(e))
            raise
        except ValidationError as e:
            log.error("stat_config_fetch_failed", story=scope.story_id, error=str(e))
            raise LoadFailure(scope.stats_path, "malformed stat record") from e
        return stats

    async def save_stat_config(
        self, scope: StoryScope | None, stats: Sequence[CustomStat]
    ) -> None:
        if scope is None:
            return
        try:
            await self._run(
                self._store.set,
                scope.stats_path,
                {STATS_FIELD: [s.to_record() for s in stats]},
                merge=True,
            )
        except PersistenceError as e:
            log.error("stat_config_save_failed", story=scope.story_id, error=str(e))
            raise
        log.debug("stat_config_saved", story=scope.story_id, count=len(stats))
