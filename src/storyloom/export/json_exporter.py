"""JSON export format.

Serializes the story's node list to ``story.json``. Export is refused while
the graph has structural issues; editing and saving never are.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from storyloom.errors import ExportBlockedError
from storyloom.graph.validation import analyze_graph

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from storyloom.models.story import StoryNode


class JsonExporter:
    """Export a story as a JSON array of node records."""

    format_name = "json"

    def export(self, nodes: Sequence[StoryNode], output_dir: Path) -> Path:
        """Write the node list as formatted JSON.

        Args:
            nodes: Story nodes in persisted order.
            output_dir: Directory to write output files.

        Returns:
            Path to the generated story.json file.

        Raises:
            ExportBlockedError: If the graph has dead ends, orphans or
                invalid links.
            OSError: If the output directory or file cannot be written.
        """
        issues = analyze_graph(nodes)
        if issues:
            raise ExportBlockedError(issues)

        output_dir.mkdir(parents=True, exist_ok=True)
        output_file = output_dir / "story.json"

        data = [node.to_record() for node in nodes]
        output_file.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")

        return output_file
