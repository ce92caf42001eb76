"""Story services.

Pure tree, path and analytics functions plus the duplicate/export/import
operations. Services are called by route handlers and reach persisted data
only through a StoryStoreBase.
"""

from forkline.services.analytics import path_coverage, summarize_progress
from forkline.services.bundle import (
    build_export_bundle,
    bundle_to_tree,
    export_story,
    import_story,
    plan_import,
)
from forkline.services.duplicate import duplicate_story
from forkline.services.paths import decode_path, encode_path, format_path
from forkline.services.tree import (
    TreeNode,
    build_story_tree,
    enumerate_leaf_paths,
    find_node_by_path,
)

__all__ = [
    "TreeNode",
    "build_story_tree",
    "find_node_by_path",
    "enumerate_leaf_paths",
    "encode_path",
    "decode_path",
    "format_path",
    "duplicate_story",
    "export_story",
    "build_export_bundle",
    "plan_import",
    "import_story",
    "bundle_to_tree",
    "summarize_progress",
    "path_coverage",
]
