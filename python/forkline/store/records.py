"""Flat records exchanged between the story store and the core services.

Ids are opaque strings on this side of the store boundary: persisted rows
carry UUIDs, import bundles carry whatever the exporter wrote, and
synthesized tree nodes carry derived ids.
"""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class StoryRecord:
    """A persisted story row."""

    id: str
    author_id: str
    title: str
    description: str | None = None
    media_url: str | None = None
    media_type: str | None = None
    status: str = "draft"
    max_depth: int = 5
    scheduled_publish_at: datetime | None = None


@dataclass(frozen=True)
class StoryDraft:
    """A story about to be inserted. The store allocates the id."""

    author_id: str
    title: str
    description: str | None = None
    media_url: str | None = None
    media_type: str | None = None
    status: str = "draft"
    max_depth: int = 5


@dataclass(frozen=True)
class NodeRecord:
    """One flat story_nodes row, in either storage shape."""

    id: str
    story_id: str
    parent_node_id: str | None
    depth: int
    choice_label: str | None = None
    content: str | None = None
    media_url: str | None = None
    media_type: str | None = None
    choice_a_label: str | None = None
    choice_a_content: str | None = None
    choice_b_label: str | None = None
    choice_b_content: str | None = None

    @property
    def has_embedded_pair(self) -> bool:
        """Whether any choice_a_* / choice_b_* field is set on this record."""
        return any(
            value is not None
            for value in (
                self.choice_a_label,
                self.choice_a_content,
                self.choice_b_label,
                self.choice_b_content,
            )
        )


@dataclass(frozen=True)
class TagRecord:
    """A tag attached to a story."""

    id: str
    name: str
    slug: str


@dataclass(frozen=True)
class ProgressRecord:
    """A reader's progress through one story. Never mutated by the core."""

    story_id: str
    user_id: str
    path: tuple[str, ...] = field(default_factory=tuple)
    current_depth: int = 0
    completed: bool = False
