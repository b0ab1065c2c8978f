"""In-memory authoritative story state.

StoryState is an immutable snapshot. It changes only through the named
transitions below, applied by ``reduce``. StateStore serializes dispatches
into one FIFO queue: a dispatch issued while another is being applied (for
example from a subscriber) waits its turn.

Whenever a transition replaces the node list, the store re-runs the graph
analyzer over the whole list and applies SetGraphIssues before any queued
transition.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, replace

from storyloom.graph.validation import GraphIssue, analyze_graph
from storyloom.models.story import CustomStat, StoryNode  # noqa: TC001 - dataclass fields
from storyloom.observability.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class StoryState:
    """Snapshot of the editor's story state.

    Attributes:
        nodes: Story nodes in persisted order; index 0 is the start node.
        selected_node_id: Node currently focused, if any.
        is_loading: True while a load is in flight.
        error: Single-slot user-facing error message.
        graph_issues: Diagnostics derived from ``nodes``.
        custom_stats: Stat catalog in display order.
        pending_writes: Remote writes issued but not yet settled.
    """

    nodes: tuple[StoryNode, ...] = ()
    selected_node_id: str | None = None
    is_loading: bool = False
    error: str | None = None
    graph_issues: tuple[GraphIssue, ...] = ()
    custom_stats: tuple[CustomStat, ...] = ()
    pending_writes: int = 0

    @property
    def selected_node(self) -> StoryNode | None:
        return self.get_node(self.selected_node_id) if self.selected_node_id else None

    @property
    def is_saving(self) -> bool:
        return self.pending_writes > 0

    @property
    def node_ids(self) -> list[str]:
        return [n.id for n in self.nodes]

    def get_node(self, node_id: str) -> StoryNode | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SetLoading:
    value: bool


@dataclass(frozen=True)
class SetError:
    message: str | None


@dataclass(frozen=True)
class SetNodes:
    """Replace the whole node list (after a load)."""

    nodes: tuple[StoryNode, ...]


@dataclass(frozen=True)
class SetGraphIssues:
    issues: tuple[GraphIssue, ...]


@dataclass(frozen=True)
class SelectNode:
    node_id: str | None


@dataclass(frozen=True)
class UpsertNode:
    """Replace the node with the same id. Unknown ids are ignored; use AddNode."""

    node: StoryNode


@dataclass(frozen=True)
class AddNode:
    """Append a node and select it."""

    node: StoryNode


@dataclass(frozen=True)
class DeleteNode:
    """Remove a node unless it is the last one."""

    node_id: str


@dataclass(frozen=True)
class SetCustomStats:
    stats: tuple[CustomStat, ...]


@dataclass(frozen=True)
class AddCustomStat:
    """Append a stat unless its name is already in the catalog."""

    stat: CustomStat


@dataclass(frozen=True)
class RemoveCustomStat:
    name: str


@dataclass(frozen=True)
class WriteStarted:
    pass


@dataclass(frozen=True)
class WriteFinished:
    pass


Transition = (
    SetLoading
    | SetError
    | SetNodes
    | SetGraphIssues
    | SelectNode
    | UpsertNode
    | AddNode
    | DeleteNode
    | SetCustomStats
    | AddCustomStat
    | RemoveCustomStat
    | WriteStarted
    | WriteFinished
)


def reduce(state: StoryState, transition: Transition) -> StoryState:
    """Apply one transition and return the next state.

    Pure: never mutates *state*. Returns *state* itself when the transition
    is a no-op, so callers can detect changes by identity.
    """
    match transition:
        case SetLoading(value):
            return replace(state, is_loading=value)
        case SetError(message):
            return replace(state, error=message)
        case SetNodes(nodes):
            return replace(state, nodes=tuple(nodes))
        case SetGraphIssues(issues):
            return replace(state, graph_issues=tuple(issues))
        case SelectNode(node_id):
            return replace(state, selected_node_id=node_id)
        case UpsertNode(node):
            if state.get_node(node.id) is None:
                return state
            return replace(
                state,
                nodes=tuple(node if n.id == node.id else n for n in state.nodes),
            )
        case AddNode(node):
            return replace(state, nodes=(*state.nodes, node), selected_node_id=node.id)
        case DeleteNode(node_id):
            if len(state.nodes) <= 1 or state.get_node(node_id) is None:
                return state
            remaining = tuple(n for n in state.nodes if n.id != node_id)
            selected = state.selected_node_id
            if selected == node_id:
                selected = remaining[0].id
            return replace(state, nodes=remaining, selected_node_id=selected)
        case SetCustomStats(stats):
            return replace(state, custom_stats=tuple(stats))
        case AddCustomStat(stat):
            if any(s.name == stat.name for s in state.custom_stats):
                return state
            return replace(state, custom_stats=(*state.custom_stats, stat))
        case RemoveCustomStat(name):
            kept = tuple(s for s in state.custom_stats if s.name != name)
            if len(kept) == len(state.custom_stats):
                return state
            return replace(state, custom_stats=kept)
        case WriteStarted():
            return replace(state, pending_writes=state.pending_writes + 1)
        case WriteFinished():
            return replace(state, pending_writes=max(0, state.pending_writes - 1))
    raise TypeError(f"Unknown transition: {transition!r}")


Listener = Callable[[StoryState, Transition], None]


class StateStore:
    """Single-writer owner of StoryState.

    All mutation goes through ``dispatch``. Subscribers are called after
    each applied transition with the new state and the transition.
    """

    def __init__(self, state: StoryState | None = None) -> None:
        state = state or StoryState()
        if state.nodes and not state.graph_issues:
            state = replace(state, graph_issues=tuple(analyze_graph(state.nodes)))
        self.state = state
        self._queue: deque[Transition] = deque()
        self._dispatching = False
        self._listeners: list[Listener] = []

    def dispatch(self, transition: Transition) -> None:
        """Queue *transition* and apply the queue in arrival order.

        The queue is always drained, even when a listener raises, so state
        derived from the node list is never left behind. The first listener
        error is re-raised once the queue is empty.
        """
        self._queue.append(transition)
        if self._dispatching:
            return
        self._dispatching = True
        failure: Exception | None = None
        try:
            while self._queue:
                pending = self._queue.popleft()
                try:
                    self._apply(pending)
                except Exception as e:
                    log.error(
                        "state_listener_failed",
                        transition=type(pending).__name__,
                        error=str(e),
                    )
                    if failure is None:
                        failure = e
        finally:
            self._dispatching = False
        if failure is not None:
            raise failure

    def _apply(self, transition: Transition) -> None:
        previous = self.state
        self.state = reduce(previous, transition)
        if self.state is previous:
            return
        if self.state.nodes is not previous.nodes:
            # Re-validation runs ahead of anything already queued.
            issues = tuple(analyze_graph(self.state.nodes))
            self._queue.appendleft(SetGraphIssues(issues))
        log.debug("state_transition", transition=type(transition).__name__)
        for listener in list(self._listeners):
            listener(self.state, transition)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener*; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
