"""Store-backed story read operations.

Each function loads one consistent snapshot from the store and hands it to
the pure tree, path and analytics functions. Route handlers call exactly
one function from here, or from duplicate / bundle.
"""

from forkline.errors import ApiErrorCode, InvalidPathError, NotFoundError
from forkline.services.analytics import path_coverage, summarize_progress
from forkline.services.paths import decode_path
from forkline.services.tree import TreeNode, build_story_tree, find_node_by_path
from forkline.services.types import PathAnalyticsSummary, PathCoverage
from forkline.store.client import StoryStoreBase
from forkline.store.records import StoryRecord


def require_story(store: StoryStoreBase, story_id: str) -> StoryRecord:
    story = store.get_story(story_id)
    if story is None:
        raise NotFoundError(ApiErrorCode.E_STORY_NOT_FOUND, "Story not found")
    return story


def get_story_tree(store: StoryStoreBase, story_id: str) -> tuple[StoryRecord, list[TreeNode]]:
    """Load a story and build its tree.

    Raises:
        NotFoundError: If the story does not exist.
        StructuralError: If the stored nodes do not form a valid tree.
    """
    story = require_story(store, story_id)
    return story, build_story_tree(store.list_nodes(story.id))


def get_node_by_path(store: StoryStoreBase, story_id: str, path: str) -> TreeNode:
    """Find the node a path key leads to.

    Raises:
        InvalidPathError: If the key is malformed or empty (the root is not
            a node).
        NotFoundError: If the story does not exist or the path leads nowhere.
    """
    labels = decode_path(path)
    if not labels:
        raise InvalidPathError("Path must contain at least one choice")

    _, tree = get_story_tree(store, story_id)
    node = find_node_by_path(tree, labels)
    if node is None:
        raise NotFoundError(ApiErrorCode.E_NODE_NOT_FOUND, f"No node at path {path}")
    return node


def get_path_coverage(store: StoryStoreBase, story_id: str) -> list[PathCoverage]:
    """Every root-to-leaf path of a story with its reader count."""
    story, tree = get_story_tree(store, story_id)
    return path_coverage(tree, store.list_progress(story.id))


def get_story_analytics(
    store: StoryStoreBase, story_id: str, *, top_n: int
) -> PathAnalyticsSummary:
    """Reader path statistics for one story.

    Raises:
        NotFoundError: If the story does not exist.
    """
    story = require_story(store, story_id)
    return summarize_progress(store.list_progress(story.id), top_n=top_n)


def get_platform_analytics(store: StoryStoreBase, *, top_n: int) -> PathAnalyticsSummary:
    """Reader path statistics across every story."""
    return summarize_progress(store.list_all_progress(), top_n=top_n)
