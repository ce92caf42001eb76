"""Story store abstraction.

Provides the narrow read/write interface the core services use to reach
persisted stories, nodes, tags and reader progress:
- Single-fetch reads (all nodes of one story, all progress rows of one story)
- Single-record writes (story insert, node insert, tag attach, story delete)

The services never assume the store offers multi-statement transactions.
Every write method is independently durable, and callers compensate
explicitly (delete the story) when a dependent write fails. Deleting a story
cascades to its nodes, tags and progress rows; that is the store's contract.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from uuid import UUID, uuid4

from sqlalchemy import delete, insert, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from forkline.db.models import Story, StoryNode, StoryTag, Tag, UserStoryProgress
from forkline.db.session import committed_write
from forkline.errors import StoreError
from forkline.logging import get_logger
from forkline.store.records import (
    NodeRecord,
    ProgressRecord,
    StoryDraft,
    StoryRecord,
    TagRecord,
)

logger = get_logger(__name__)


class StoryStoreBase(ABC):
    """Abstract base class for story store implementations."""

    @abstractmethod
    def get_story(self, story_id: str) -> StoryRecord | None:
        """Fetch a story row.

        Returns:
            The story, or None if it does not exist.

        Raises:
            StoreError: If the fetch fails.
        """
        ...

    @abstractmethod
    def list_nodes(self, story_id: str) -> list[NodeRecord]:
        """Fetch every node of a story in one read (a consistent snapshot).

        Rows come back in ascending depth; callers must not rely on any
        other ordering.

        Raises:
            StoreError: If the fetch fails.
        """
        ...

    @abstractmethod
    def list_story_tags(self, story_id: str) -> list[TagRecord]:
        """Fetch the tags attached to a story.

        Raises:
            StoreError: If the fetch fails.
        """
        ...

    @abstractmethod
    def find_tags(self, names_or_slugs: Iterable[str]) -> list[TagRecord]:
        """Fetch existing tags whose name or slug matches any of the given keys.

        Raises:
            StoreError: If the fetch fails.
        """
        ...

    @abstractmethod
    def list_progress(self, story_id: str) -> list[ProgressRecord]:
        """Fetch every reader progress row of a story.

        Raises:
            StoreError: If the fetch fails.
        """
        ...

    @abstractmethod
    def list_all_progress(self) -> list[ProgressRecord]:
        """Fetch every reader progress row on the platform.

        Raises:
            StoreError: If the fetch fails.
        """
        ...

    @abstractmethod
    def create_story(self, draft: StoryDraft) -> StoryRecord:
        """Insert a story row and return it with its allocated id.

        Raises:
            StoreError: If the insert fails.
        """
        ...

    @abstractmethod
    def insert_node(self, node: NodeRecord) -> None:
        """Insert one node row. The node's parent must already exist.

        Raises:
            StoreError: If the insert fails.
        """
        ...

    @abstractmethod
    def attach_tags(self, story_id: str, tag_ids: list[str]) -> None:
        """Attach existing tags to a story.

        Raises:
            StoreError: If the insert fails.
        """
        ...

    @abstractmethod
    def delete_story(self, story_id: str) -> None:
        """Delete a story together with its nodes, tags and progress rows.

        Raises:
            StoreError: If the delete fails.
        """
        ...


def _as_uuid(value: str) -> UUID:
    return value if isinstance(value, UUID) else UUID(str(value))


def _optional_uuid(value: str | None) -> UUID | None:
    return None if value is None else _as_uuid(value)


def _story_record(row: Story) -> StoryRecord:
    return StoryRecord(
        id=str(row.id),
        author_id=str(row.author_id),
        title=row.title,
        description=row.description,
        media_url=row.media_url,
        media_type=row.media_type,
        status=row.status,
        max_depth=row.max_depth,
        scheduled_publish_at=row.scheduled_publish_at,
    )


def _node_record(row: StoryNode) -> NodeRecord:
    return NodeRecord(
        id=str(row.id),
        story_id=str(row.story_id),
        parent_node_id=str(row.parent_node_id) if row.parent_node_id else None,
        depth=row.depth,
        choice_label=row.choice_label,
        content=row.content,
        media_url=row.media_url,
        media_type=row.media_type,
        choice_a_label=row.choice_a_label,
        choice_a_content=row.choice_a_content,
        choice_b_label=row.choice_b_label,
        choice_b_content=row.choice_b_content,
    )


def _tag_record(row: Tag) -> TagRecord:
    return TagRecord(id=str(row.id), name=row.name, slug=row.slug)


def _progress_record(row: UserStoryProgress) -> ProgressRecord:
    return ProgressRecord(
        story_id=str(row.story_id),
        user_id=str(row.user_id),
        path=tuple(row.path or ()),
        current_depth=row.current_depth or 0,
        completed=bool(row.completed),
    )


class SqlStoryStore(StoryStoreBase):
    """Production story store backed by a SQLAlchemy session.

    Each write commits on its own, mirroring a store that offers no
    multi-statement transactions.
    """

    def __init__(self, db: Session):
        self._db = db

    def get_story(self, story_id: str) -> StoryRecord | None:
        try:
            story_uuid = _as_uuid(story_id)
        except ValueError:
            return None

        try:
            stmt = select(Story).where(Story.id == story_uuid)
            row = self._db.execute(stmt).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to fetch story: {e}", operation="get_story") from e

        return _story_record(row) if row is not None else None

    def list_nodes(self, story_id: str) -> list[NodeRecord]:
        stmt = (
            select(StoryNode)
            .where(StoryNode.story_id == _as_uuid(story_id))
            .order_by(StoryNode.depth)
        )
        try:
            rows = self._db.execute(stmt).scalars().all()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to fetch story nodes: {e}", operation="list_nodes") from e

        return [_node_record(row) for row in rows]

    def list_story_tags(self, story_id: str) -> list[TagRecord]:
        stmt = (
            select(Tag)
            .join(StoryTag, StoryTag.tag_id == Tag.id)
            .where(StoryTag.story_id == _as_uuid(story_id))
            .order_by(Tag.name)
        )
        try:
            rows = self._db.execute(stmt).scalars().all()
        except SQLAlchemyError as e:
            raise StoreError(
                f"Failed to fetch story tags: {e}", operation="list_story_tags"
            ) from e

        return [_tag_record(row) for row in rows]

    def find_tags(self, names_or_slugs: Iterable[str]) -> list[TagRecord]:
        keys = sorted({key for key in names_or_slugs if key})
        if not keys:
            return []

        stmt = select(Tag).where(or_(Tag.name.in_(keys), Tag.slug.in_(keys))).order_by(Tag.name)
        try:
            rows = self._db.execute(stmt).scalars().all()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to look up tags: {e}", operation="find_tags") from e

        return [_tag_record(row) for row in rows]

    def list_progress(self, story_id: str) -> list[ProgressRecord]:
        stmt = select(UserStoryProgress).where(UserStoryProgress.story_id == _as_uuid(story_id))
        try:
            rows = self._db.execute(stmt).scalars().all()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to fetch progress: {e}", operation="list_progress") from e

        return [_progress_record(row) for row in rows]

    def list_all_progress(self) -> list[ProgressRecord]:
        stmt = select(UserStoryProgress)
        try:
            rows = self._db.execute(stmt).scalars().all()
        except SQLAlchemyError as e:
            raise StoreError(
                f"Failed to fetch progress: {e}", operation="list_all_progress"
            ) from e

        return [_progress_record(row) for row in rows]

    def create_story(self, draft: StoryDraft) -> StoryRecord:
        story_id = uuid4()
        with committed_write(self._db, "create_story", "Failed to create story"):
            self._db.execute(
                insert(Story).values(
                    id=story_id,
                    author_id=_as_uuid(draft.author_id),
                    title=draft.title,
                    description=draft.description,
                    media_url=draft.media_url,
                    media_type=draft.media_type,
                    status=draft.status,
                    max_depth=draft.max_depth,
                )
            )

        return StoryRecord(
            id=str(story_id),
            author_id=str(draft.author_id),
            title=draft.title,
            description=draft.description,
            media_url=draft.media_url,
            media_type=draft.media_type,
            status=draft.status,
            max_depth=draft.max_depth,
        )

    def insert_node(self, node: NodeRecord) -> None:
        with committed_write(self._db, "insert_node", "Failed to insert story node"):
            self._db.execute(
                insert(StoryNode).values(
                    id=_as_uuid(node.id),
                    story_id=_as_uuid(node.story_id),
                    parent_node_id=_optional_uuid(node.parent_node_id),
                    depth=node.depth,
                    choice_label=node.choice_label,
                    content=node.content,
                    media_url=node.media_url,
                    media_type=node.media_type,
                    choice_a_label=node.choice_a_label,
                    choice_a_content=node.choice_a_content,
                    choice_b_label=node.choice_b_label,
                    choice_b_content=node.choice_b_content,
                )
            )

    def attach_tags(self, story_id: str, tag_ids: list[str]) -> None:
        if not tag_ids:
            return

        story_uuid = _as_uuid(story_id)
        rows = [{"story_id": story_uuid, "tag_id": _as_uuid(tag_id)} for tag_id in tag_ids]
        with committed_write(self._db, "attach_tags", "Failed to attach tags"):
            self._db.execute(insert(StoryTag), rows)

    def delete_story(self, story_id: str) -> None:
        story_uuid = _as_uuid(story_id)
        with committed_write(self._db, "delete_story", "Failed to delete story"):
            self._db.execute(delete(Story).where(Story.id == story_uuid))

        logger.info("story_deleted", story_id=str(story_id))


class FakeStoryStore(StoryStoreBase):
    """Fake story store for testing without a database.

    Keeps rows in memory and can be told to fail specific writes, which is
    how the compensation paths of duplication and import are exercised.

    Args:
        fail_node_insert_at: 1-based index of the insert_node call that fails.
        fail_attach_tags: If True, attach_tags raises StoreError.
        fail_tag_reads: If True, list_story_tags and find_tags raise StoreError.
    """

    def __init__(
        self,
        *,
        fail_node_insert_at: int | None = None,
        fail_attach_tags: bool = False,
        fail_tag_reads: bool = False,
    ):
        self._stories: dict[str, StoryRecord] = {}
        self._nodes: dict[str, NodeRecord] = {}
        self._tags: dict[str, TagRecord] = {}
        self._story_tags: dict[str, list[str]] = {}
        self._progress: list[ProgressRecord] = []
        self.fail_node_insert_at = fail_node_insert_at
        self.fail_attach_tags = fail_attach_tags
        self.fail_tag_reads = fail_tag_reads
        self.node_insert_calls = 0

    def get_story(self, story_id: str) -> StoryRecord | None:
        return self._stories.get(str(story_id))

    def list_nodes(self, story_id: str) -> list[NodeRecord]:
        nodes = [n for n in self._nodes.values() if n.story_id == str(story_id)]
        return sorted(nodes, key=lambda n: n.depth)

    def list_story_tags(self, story_id: str) -> list[TagRecord]:
        if self.fail_tag_reads:
            raise StoreError("Tag read failed", operation="list_story_tags")
        tag_ids = self._story_tags.get(str(story_id), [])
        return sorted((self._tags[tag_id] for tag_id in tag_ids), key=lambda t: t.name)

    def find_tags(self, names_or_slugs: Iterable[str]) -> list[TagRecord]:
        if self.fail_tag_reads:
            raise StoreError("Tag read failed", operation="find_tags")
        keys = set(names_or_slugs)
        matches = [t for t in self._tags.values() if t.name in keys or t.slug in keys]
        return sorted(matches, key=lambda t: t.name)

    def list_progress(self, story_id: str) -> list[ProgressRecord]:
        return [p for p in self._progress if p.story_id == str(story_id)]

    def list_all_progress(self) -> list[ProgressRecord]:
        return list(self._progress)

    def create_story(self, draft: StoryDraft) -> StoryRecord:
        story = StoryRecord(
            id=str(uuid4()),
            author_id=str(draft.author_id),
            title=draft.title,
            description=draft.description,
            media_url=draft.media_url,
            media_type=draft.media_type,
            status=draft.status,
            max_depth=draft.max_depth,
        )
        self._stories[story.id] = story
        return story

    def insert_node(self, node: NodeRecord) -> None:
        self.node_insert_calls += 1
        if self.node_insert_calls == self.fail_node_insert_at:
            raise StoreError(
                f"Injected failure on node insert #{self.node_insert_calls}",
                operation="insert_node",
            )
        if node.story_id not in self._stories:
            raise StoreError(f"Story {node.story_id} does not exist", operation="insert_node")
        if node.parent_node_id is not None and node.parent_node_id not in self._nodes:
            raise StoreError(
                f"Parent node {node.parent_node_id} does not exist", operation="insert_node"
            )
        if node.id in self._nodes:
            raise StoreError(f"Duplicate node id {node.id}", operation="insert_node")
        self._nodes[node.id] = node

    def attach_tags(self, story_id: str, tag_ids: list[str]) -> None:
        if self.fail_attach_tags:
            raise StoreError("Injected tag attach failure", operation="attach_tags")
        self._story_tags.setdefault(str(story_id), []).extend(tag_ids)

    def delete_story(self, story_id: str) -> None:
        story_id = str(story_id)
        self._stories.pop(story_id, None)
        self._nodes = {k: n for k, n in self._nodes.items() if n.story_id != story_id}
        self._story_tags.pop(story_id, None)
        self._progress = [p for p in self._progress if p.story_id != story_id]

    # Test helper methods

    def put_story(self, story: StoryRecord) -> None:
        """Store a story directly (test helper)."""
        self._stories[story.id] = story

    def put_nodes(self, nodes: Iterable[NodeRecord]) -> None:
        """Store node rows directly, bypassing parent checks (test helper)."""
        for node in nodes:
            self._nodes[node.id] = node

    def put_tag(self, tag: TagRecord, story_id: str | None = None) -> None:
        """Store a tag, optionally attaching it to a story (test helper)."""
        self._tags[tag.id] = tag
        if story_id is not None:
            self._story_tags.setdefault(str(story_id), []).append(tag.id)

    def put_progress(self, rows: Iterable[ProgressRecord]) -> None:
        """Store progress rows directly (test helper)."""
        self._progress.extend(rows)

    def story_ids(self) -> list[str]:
        """All stored story ids (test helper)."""
        return list(self._stories)

    def node_count(self, story_id: str) -> int:
        """Number of nodes stored for a story (test helper)."""
        return sum(1 for n in self._nodes.values() if n.story_id == str(story_id))
