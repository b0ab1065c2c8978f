"""Story domain models."""

from storyloom.models.story import (
    DEFAULT_STATS,
    START_NODE_ID,
    TERMINAL,
    CustomStat,
    GameChoice,
    StatAdjustment,
    StatType,
    StoryNode,
    find_stale_stat_references,
    generate_id,
    new_choice,
    new_empty_node,
    slugify_stat_name,
)

__all__ = [
    "DEFAULT_STATS",
    "START_NODE_ID",
    "TERMINAL",
    "CustomStat",
    "GameChoice",
    "StatAdjustment",
    "StatType",
    "StoryNode",
    "find_stale_stat_references",
    "generate_id",
    "new_choice",
    "new_empty_node",
    "slugify_stat_name",
]
