"""Per-editor drafts with debounced autosave.

An open editor works on a NodeDraft, a private copy of one node. Edits
touch only the draft and mark it dirty. The draft is committed when the
user has been idle for ``delay`` seconds, or immediately when focus moves
away. Each draft owns at most one pending timer; every edit cancels it and
schedules a new one.

EditorSession tracks which node is focused and wires commits into the
state store and the sync orchestrator.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from storyloom.models.story import StatAdjustment, new_choice
from storyloom.observability.logging import get_logger
from storyloom.state.store import UpsertNode

if TYPE_CHECKING:
    from collections.abc import Callable

    from storyloom.models.story import GameChoice, StoryNode
    from storyloom.state.store import StateStore, StoryState, Transition
    from storyloom.sync.orchestrator import StoryOrchestrator
    from storyloom.sync.tasks import BackgroundTasks

log = get_logger(__name__)


class NodeDraft:
    """Private, debounced working copy of a single node.

    Edits must happen on a thread running an asyncio event loop; the idle
    timer is scheduled with ``loop.call_later``.
    """

    def __init__(
        self,
        node: StoryNode,
        on_commit: Callable[[StoryNode], None],
        delay: float,
    ) -> None:
        self._node = node
        self._on_commit = on_commit
        self._delay = delay
        self._dirty = False
        self._closed = False
        self._timer: asyncio.TimerHandle | None = None

    @property
    def node(self) -> StoryNode:
        return self._node

    @property
    def node_id(self) -> str:
        return self._node.id

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    @property
    def has_pending_timer(self) -> bool:
        return self._timer is not None

    # -- Edits -----------------------------------------------------------------

    def set_title(self, title: str) -> None:
        self._edit(title=title)

    def set_content(self, content: str) -> None:
        self._edit(content=content)

    def add_choice(self) -> GameChoice:
        """Append an unlinked choice and return it."""
        choice = new_choice(c.id for c in self._node.choices)
        self._edit(choices=[*self._node.choices, choice])
        return choice

    def update_choice(self, index: int, choice: GameChoice) -> None:
        choices = list(self._node.choices)
        choices[index] = choice
        self._edit(choices=choices)

    def set_choice_text(self, index: int, text: str) -> None:
        self.update_choice(index, self._node.choices[index].model_copy(update={"text": text}))

    def link_choice(self, index: int, next_node_id: str) -> None:
        """Point a choice at another node, or at ``""`` to end the story there."""
        self.update_choice(
            index, self._node.choices[index].model_copy(update={"next_node_id": next_node_id})
        )

    def remove_choice(self, index: int) -> None:
        choices = list(self._node.choices)
        del choices[index]
        self._edit(choices=choices)

    def add_adjustment(self, choice_index: int, stat_name: str, value: int) -> None:
        choice = self._node.choices[choice_index]
        adjustments = [*choice.adjustments, StatAdjustment(stat_name=stat_name, value=value)]
        self.update_choice(choice_index, choice.model_copy(update={"adjustments": adjustments}))

    def remove_adjustment(self, choice_index: int, adjustment_index: int) -> None:
        choice = self._node.choices[choice_index]
        adjustments = list(choice.adjustments)
        del adjustments[adjustment_index]
        self.update_choice(choice_index, choice.model_copy(update={"adjustments": adjustments}))

    def _edit(self, **changes: object) -> None:
        if self._closed:
            raise RuntimeError(f"Draft for node '{self.node_id}' is closed")
        self._node = self._node.model_copy(update=changes)
        self._dirty = True
        self._schedule()

    # -- Timer -----------------------------------------------------------------

    def _schedule(self) -> None:
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self._delay, self._on_timer)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self) -> None:
        self._timer = None
        self.flush()

    # -- Lifecycle -------------------------------------------------------------

    def flush(self) -> bool:
        """Commit now if dirty.

        Returns:
            True if a commit happened.
        """
        self._cancel_timer()
        if not self._dirty:
            return False
        self._dirty = False
        log.debug("draft_committed", node_id=self.node_id)
        self._on_commit(self._node)
        return True

    def close(self) -> None:
        """Flush pending edits and stop accepting new ones."""
        if self._closed:
            return
        self.flush()
        self._closed = True

    def discard(self) -> None:
        """Drop pending edits without committing."""
        self._cancel_timer()
        self._dirty = False
        self._closed = True

    def reset(self, node: StoryNode) -> None:
        """Replace a clean draft's copy with a newer authoritative node."""
        if self._dirty:
            raise RuntimeError(f"Cannot reset dirty draft for node '{self.node_id}'")
        self._node = node


class EditorSession:
    """Owns the single open draft and routes its commits.

    While the open draft is clean it follows the authoritative node (for
    example when auto-linking rewrites it). If the node is deleted the
    draft is discarded rather than committed.
    """

    def __init__(
        self,
        store: StateStore,
        orchestrator: StoryOrchestrator,
        tasks: BackgroundTasks,
        *,
        delay: float,
    ) -> None:
        self._store = store
        self._orchestrator = orchestrator
        self._tasks = tasks
        self._delay = delay
        self._draft: NodeDraft | None = None
        self._unsubscribe = store.subscribe(self._on_state)

    @property
    def draft(self) -> NodeDraft | None:
        return self._draft

    def focus(self, node_id: str) -> NodeDraft | None:
        """Switch the editor to *node_id*, flushing the previous draft if dirty.

        Returns:
            The new draft, or None if the node does not exist.
        """
        if self._draft is not None and self._draft.node_id == node_id:
            return self._draft
        self.close()
        node = self._store.state.get_node(node_id)
        if node is None:
            return None
        self._orchestrator.select_node(node_id)
        self._draft = NodeDraft(node, self._commit, self._delay)
        return self._draft

    def close(self) -> None:
        """Close the open draft, flushing it if dirty."""
        draft, self._draft = self._draft, None
        if draft is not None:
            draft.close()

    def dispose(self) -> None:
        """Close the draft and stop following the state store."""
        self.close()
        self._unsubscribe()

    def _commit(self, node: StoryNode) -> None:
        self._store.dispatch(UpsertNode(node))
        self._tasks.spawn(self._orchestrator.save_node(node), name=f"save:{node.id}")

    def _on_state(self, state: StoryState, transition: Transition) -> None:
        draft = self._draft
        if draft is None:
            return
        current = state.get_node(draft.node_id)
        if current is None:
            log.debug("draft_discarded", node_id=draft.node_id, dirty=draft.is_dirty)
            draft.discard()
            self._draft = None
        elif not draft.is_dirty and current != draft.node:
            draft.reset(current)
