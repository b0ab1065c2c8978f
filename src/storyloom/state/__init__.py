"""State package - the authoritative in-memory story state machine."""

from storyloom.state.store import (
    AddCustomStat,
    AddNode,
    DeleteNode,
    RemoveCustomStat,
    SelectNode,
    SetCustomStats,
    SetError,
    SetGraphIssues,
    SetLoading,
    SetNodes,
    StateStore,
    StoryState,
    Transition,
    UpsertNode,
    WriteFinished,
    WriteStarted,
    reduce,
)

__all__ = [
    "AddCustomStat",
    "AddNode",
    "DeleteNode",
    "RemoveCustomStat",
    "SelectNode",
    "SetCustomStats",
    "SetError",
    "SetGraphIssues",
    "SetLoading",
    "SetNodes",
    "StateStore",
    "StoryState",
    "Transition",
    "UpsertNode",
    "WriteFinished",
    "WriteStarted",
    "reduce",
]
