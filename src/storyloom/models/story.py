"""Story graph models.

A story is an ordered list of StoryNode scenes. Each node carries an
ordered list of GameChoice edges; a choice points at another node by id,
or at nothing (empty string) when it ends the story. Choices may adjust
named character stats defined in the CustomStat catalog.

Persisted records use camelCase keys (``nextNodeId``, ``statName``,
``initialValue``); serialize with ``model_dump(by_alias=True)``.
"""

from __future__ import annotations

import re
import secrets
from enum import StrEnum
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, field_validator

if TYPE_CHECKING:
    from collections.abc import Iterable

# Marks a choice that ends the story instead of linking to a node.
TERMINAL = ""

START_NODE_ID = "start_node"

_SLUG_STRIP = re.compile(r"[^a-z0-9]")


def slugify_stat_name(raw: str) -> str:
    """Normalize a user-typed stat name into its catalog key.

    ``" Street Smarts! "`` becomes ``"streetsmarts"``.
    """
    return _SLUG_STRIP.sub("", raw.strip().lower())


class StatType(StrEnum):
    """Category a custom stat is grouped under."""

    PERSONALITY = "Personality"
    SECONDARY = "Secondary"


class StatAdjustment(BaseModel):
    """A signed delta applied to a named stat when a choice is taken."""

    model_config = ConfigDict(populate_by_name=True)

    stat_name: str = Field(alias="statName")
    value: int = 0


class GameChoice(BaseModel):
    """A labeled edge from one node to another, or to the terminal marker."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(min_length=1)
    text: str = ""
    next_node_id: str = Field(default=TERMINAL, alias="nextNodeId")
    adjustments: list[StatAdjustment] = Field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.next_node_id == TERMINAL


class StoryNode(BaseModel):
    """A scene: markdown content plus its outgoing choices.

    ``id`` never changes after creation. Edits produce new instances via
    ``model_copy(update=...)`` so the state store can detect changes by
    identity.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(min_length=1)
    title: str = ""
    content: str = ""
    choices: list[GameChoice] = Field(default_factory=list)

    def to_record(self) -> dict[str, object]:
        """Serialize to the persisted (camelCase) record shape."""
        return self.model_dump(by_alias=True)

    def choice_index(self, choice_id: str) -> int | None:
        for i, choice in enumerate(self.choices):
            if choice.id == choice_id:
                return i
        return None


class CustomStat(BaseModel):
    """A catalog entry: stat name, starting value and category."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1)
    initial_value: int = Field(default=0, alias="initialValue")
    type: StatType = StatType.PERSONALITY

    @field_validator("name")
    @classmethod
    def name_is_slug(cls, value: str) -> str:
        """Reject names that are not already lower-case alphanumeric slugs."""
        if slugify_stat_name(value) != value:
            msg = f"stat name must be a lower-case alphanumeric slug, got {value!r}"
            raise ValueError(msg)
        return value

    def to_record(self) -> dict[str, object]:
        return self.model_dump(by_alias=True, mode="json")


DEFAULT_STATS: tuple[CustomStat, ...] = (
    CustomStat(name="discipline", initial_value=5, type=StatType.PERSONALITY),
    CustomStat(name="empathy", initial_value=5, type=StatType.PERSONALITY),
    CustomStat(name="logic", initial_value=5, type=StatType.PERSONALITY),
    CustomStat(name="impulse", initial_value=5, type=StatType.PERSONALITY),
    CustomStat(name="loyalty", initial_value=5, type=StatType.PERSONALITY),
    CustomStat(name="skepticism", initial_value=5, type=StatType.PERSONALITY),
    CustomStat(name="strength", initial_value=5, type=StatType.SECONDARY),
    CustomStat(name="dexterity", initial_value=5, type=StatType.SECONDARY),
    CustomStat(name="charm", initial_value=5, type=StatType.SECONDARY),
    CustomStat(name="power", initial_value=5, type=StatType.SECONDARY),
)


# ---------------------------------------------------------------------------
# Construction helpers
# ---------------------------------------------------------------------------


def generate_id(prefix: str, existing: Iterable[str] = ()) -> str:
    """Generate a random id of the form ``{prefix}_{hex}``.

    Args:
        prefix: Id prefix, e.g. ``"node"`` or ``"choice"``.
        existing: Ids already in use; the result is guaranteed not to be one.

    Returns:
        A fresh id.
    """
    taken = set(existing)
    while True:
        candidate = f"{prefix}_{secrets.token_hex(4)}"
        if candidate not in taken:
            return candidate


def new_empty_node(node_id: str) -> StoryNode:
    """Create a placeholder scene with no choices."""
    return StoryNode(
        id=node_id,
        title="New Scene Title",
        content="Write the descriptive Markdown text for the scene here.",
        choices=[],
    )


def new_choice(existing: Iterable[str] = ()) -> GameChoice:
    """Create an unlinked choice with a fresh id."""
    return GameChoice(id=generate_id("choice", existing), text="New Choice")


def find_stale_stat_references(
    nodes: Iterable[StoryNode],
    stats: Iterable[CustomStat],
) -> dict[str, list[str]]:
    """Find adjustments that name stats missing from the catalog.

    Stat names are not checked at write time, so deleting a stat can leave
    dangling references. This is for display only; nothing is repaired.

    Returns:
        Mapping of node id to the unknown stat names it references, in
        first-seen order. Nodes without stale references are omitted.
    """
    known = {s.name for s in stats}
    stale: dict[str, list[str]] = {}
    for node in nodes:
        for choice in node.choices:
            for adj in choice.adjustments:
                if adj.stat_name in known:
                    continue
                names = stale.setdefault(node.id, [])
                if adj.stat_name not in names:
                    names.append(adj.stat_name)
    return stale
