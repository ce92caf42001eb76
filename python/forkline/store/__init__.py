"""Store module for persisted stories, nodes, tags and reader progress.

Provides:
- StoryStoreBase, the interface the core services depend on
- SqlStoryStore for the SQLAlchemy-backed database
- FakeStoryStore for tests, with failure injection
"""

from forkline.store.client import FakeStoryStore, SqlStoryStore, StoryStoreBase
from forkline.store.records import (
    NodeRecord,
    ProgressRecord,
    StoryDraft,
    StoryRecord,
    TagRecord,
)

__all__ = [
    "StoryStoreBase",
    "SqlStoryStore",
    "FakeStoryStore",
    "StoryRecord",
    "StoryDraft",
    "NodeRecord",
    "TagRecord",
    "ProgressRecord",
]
