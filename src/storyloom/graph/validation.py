"""Structural diagnostics for a story graph.

``analyze_graph`` scans a node list once and reports three kinds of issue:

- Dead End: a node with no outgoing choices.
- Orphan: a non-start node that no choice points at.
- Invalid Link: a choice whose target id is not a node in the story.

Orphan detection only looks at direct inbound edges. A cluster of nodes
that link to each other but are never linked from the start node's side of
the graph is not flagged.

Issues are diagnostics, not errors. They block export only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from storyloom.models.story import StoryNode


class IssueType(StrEnum):
    """Kind of structural problem found on a node."""

    DEAD_END = "Dead End"
    ORPHAN = "Orphan"
    INVALID_LINK = "Invalid Link"


@dataclass(frozen=True)
class GraphIssue:
    """A diagnostic attached to a node.

    Attributes:
        id: Id of the offending node.
        type: Kind of issue.
        message: Human-readable description.
    """

    id: str
    type: IssueType
    message: str


def analyze_graph(nodes: Sequence[StoryNode]) -> list[GraphIssue]:
    """Compute structural issues for a node sequence.

    Pure and deterministic. Output follows input node order; within a node
    the order is Dead End, Orphan, then one Invalid Link per bad choice in
    choice order. The node at index 0 is the start node and is never an
    orphan.

    Args:
        nodes: Story nodes in persisted order.

    Returns:
        Issues found, possibly empty.
    """
    if not nodes:
        return []

    targets = {c.next_node_id for n in nodes for c in n.choices if c.next_node_id}
    node_ids = {n.id for n in nodes}
    start_id = nodes[0].id

    issues: list[GraphIssue] = []
    for node in nodes:
        if not node.choices:
            issues.append(
                GraphIssue(node.id, IssueType.DEAD_END, "Node has no outbound choices.")
            )

        if node.id != start_id and node.id not in targets:
            issues.append(
                GraphIssue(
                    node.id,
                    IssueType.ORPHAN,
                    "Node is unreachable from the starting point.",
                )
            )

        for choice in node.choices:
            if choice.next_node_id and choice.next_node_id not in node_ids:
                issues.append(
                    GraphIssue(
                        node.id,
                        IssueType.INVALID_LINK,
                        f"Links to missing node: '{choice.next_node_id}'.",
                    )
                )

    return issues


@dataclass
class GraphReport:
    """Aggregated view over a list of graph issues.

    Attributes:
        issues: Issues in analyzer order.
    """

    issues: list[GraphIssue] = field(default_factory=list)

    @classmethod
    def for_nodes(cls, nodes: Sequence[StoryNode]) -> GraphReport:
        return cls(analyze_graph(nodes))

    @property
    def has_issues(self) -> bool:
        return bool(self.issues)

    def by_type(self, issue_type: IssueType) -> list[GraphIssue]:
        """Issues of one kind, in analyzer order."""
        return [i for i in self.issues if i.type == issue_type]

    def for_node(self, node_id: str) -> list[GraphIssue]:
        return [i for i in self.issues if i.id == node_id]

    @property
    def summary(self) -> str:
        """Human-readable count per issue kind, e.g. ``"1 dead end, 2 orphans"``."""
        if not self.issues:
            return "no issues"
        labels = {
            IssueType.DEAD_END: ("dead end", "dead ends"),
            IssueType.ORPHAN: ("orphan", "orphans"),
            IssueType.INVALID_LINK: ("invalid link", "invalid links"),
        }
        parts: list[str] = []
        for issue_type, (singular, plural) in labels.items():
            count = len(self.by_type(issue_type))
            if count:
                parts.append(f"{count} {singular if count == 1 else plural}")
        return ", ".join(parts)
