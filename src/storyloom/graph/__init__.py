"""Graph package - structural analysis of story graphs."""

from storyloom.graph.validation import GraphIssue, GraphReport, IssueType, analyze_graph

__all__ = [
    "GraphIssue",
    "GraphReport",
    "IssueType",
    "analyze_graph",
]
