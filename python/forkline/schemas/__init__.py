"""Pydantic schemas for request/response models.

All schemas are re-exported here for convenient imports.
"""

from forkline.schemas.bundle import (
    BundleNode,
    BundleStory,
    BundleTag,
    ExportBundle,
    ImportBundle,
    ImportNode,
)
from forkline.schemas.story import (
    DuplicateResultOut,
    ImportResultOut,
    PartialFailureOut,
    PathAnalyticsOut,
    PathCoverageOut,
    PathStatOut,
    SkippedGroupOut,
    StoryTreeOut,
    TreeNodeOut,
)

__all__ = [
    # Bundle
    "BundleNode",
    "BundleStory",
    "BundleTag",
    "ExportBundle",
    "ImportBundle",
    "ImportNode",
    # Story
    "TreeNodeOut",
    "StoryTreeOut",
    "PathCoverageOut",
    "PartialFailureOut",
    "SkippedGroupOut",
    "DuplicateResultOut",
    "ImportResultOut",
    # Analytics
    "PathStatOut",
    "PathAnalyticsOut",
]
