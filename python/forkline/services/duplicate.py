"""Story duplication service.

Deep-copies a story and its whole node tree into a new draft story with
fresh node ids. Parent references are rewritten through an old -> new id
map that is fully allocated before the first write, so every node can be
inserted as soon as its parent exists.

The store commits each write on its own. If any node insert fails, the new
story is deleted (the store cascades to the nodes already written) and the
failure is re-raised, so a failed duplicate leaves nothing behind. Copying
tags is a separate, non-critical step: its failures become warnings on the
result instead of undoing the copy.
"""

from dataclasses import replace
from uuid import uuid4

from forkline.config import get_settings
from forkline.errors import ApiErrorCode, NotFoundError, StoreError, StructuralError
from forkline.logging import get_logger
from forkline.services.types import DuplicateResult, PartialFailure
from forkline.store.client import StoryStoreBase
from forkline.store.records import NodeRecord, StoryDraft

logger = get_logger(__name__)


def _check_parents(nodes: list[NodeRecord]) -> None:
    """Reject orphaned parent references before anything is written."""
    ids = {node.id for node in nodes}
    for node in nodes:
        if node.parent_node_id is not None and node.parent_node_id not in ids:
            raise StructuralError(
                f"Node {node.id} references missing parent {node.parent_node_id}",
                node_id=node.id,
            )


def _copy_tags(
    store: StoryStoreBase, source_story_id: str, new_story_id: str
) -> tuple[int, list[PartialFailure]]:
    try:
        tags = store.list_story_tags(source_story_id)
        if tags:
            store.attach_tags(new_story_id, [tag.id for tag in tags])
    except StoreError as e:
        logger.warning(
            "duplicate_tags_failed",
            source_story_id=source_story_id,
            story_id=new_story_id,
            error=e.message,
        )
        return 0, [PartialFailure(step="tags", message=f"Tags were not copied: {e.message}")]
    return len(tags), []


def duplicate_story(
    store: StoryStoreBase,
    source_story_id: str,
    *,
    author_id: str | None = None,
) -> DuplicateResult:
    """Copy a story and all of its nodes into a new draft story.

    Args:
        store: Story store to read from and write to.
        source_story_id: Story to copy.
        author_id: Owner of the copy. Defaults to the source story's author.

    Returns:
        DuplicateResult with the new story id, the node id map and any
        tag-copy warnings.

    Raises:
        NotFoundError: If the source story does not exist.
        StructuralError: If a source node references a missing parent.
        StoreError: If creating the story or any node fails. The new story
            has already been removed when this is raised.
    """
    settings = get_settings()

    source = store.get_story(source_story_id)
    if source is None:
        raise NotFoundError(ApiErrorCode.E_STORY_NOT_FOUND, "Story not found")

    nodes = store.list_nodes(source.id)
    _check_parents(nodes)

    id_map = {node.id: str(uuid4()) for node in nodes}

    new_story = store.create_story(
        StoryDraft(
            author_id=author_id or source.author_id,
            title=f"{source.title}{settings.duplicate_title_suffix}",
            description=source.description,
            media_url=source.media_url,
            media_type=source.media_type,
            status="draft",
            max_depth=source.max_depth or settings.default_max_depth,
        )
    )

    # sorted() is stable: siblings keep their fetch order
    ordered = sorted(nodes, key=lambda node: node.depth)
    for written, node in enumerate(ordered):
        copy = replace(
            node,
            id=id_map[node.id],
            story_id=new_story.id,
            parent_node_id=id_map[node.parent_node_id] if node.parent_node_id else None,
        )
        try:
            store.insert_node(copy)
        except StoreError as e:
            logger.warning(
                "duplicate_nodes_failed",
                source_story_id=source.id,
                story_id=new_story.id,
                written=written,
                total=len(ordered),
                error=e.message,
            )
            discard_story(store, new_story.id)
            raise

    tag_count, warnings = _copy_tags(store, source.id, new_story.id)

    logger.info(
        "story_duplicated",
        source_story_id=source.id,
        story_id=new_story.id,
        node_count=len(ordered),
        tag_count=tag_count,
    )

    return DuplicateResult(
        story_id=new_story.id,
        source_story_id=source.id,
        node_count=len(ordered),
        tag_count=tag_count,
        node_id_map=id_map,
        warnings=warnings,
    )


def discard_story(store: StoryStoreBase, story_id: str) -> None:
    """Delete a half-written story.

    A failing delete is logged rather than raised so the caller can re-raise
    the original write failure.
    """
    try:
        store.delete_story(story_id)
    except StoreError as e:
        logger.error("story_compensation_failed", story_id=story_id, error=e.message)
