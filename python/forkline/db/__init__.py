"""Database module for Forkline.

Provides engine creation, request sessions, the committed-write helper and ORM models.
"""

from forkline.db.engine import create_db_engine, get_engine
from forkline.db.models import (
    Base,
    ChoiceLabel,
    MediaType,
    Story,
    StoryNode,
    StoryStatus,
    StoryTag,
    Tag,
    UserStoryProgress,
)
from forkline.db.session import committed_write, get_db

__all__ = [
    # Engine and session
    "create_db_engine",
    "get_engine",
    "get_db",
    "committed_write",
    # Base
    "Base",
    # Enums
    "StoryStatus",
    "MediaType",
    "ChoiceLabel",
    # Models
    "Story",
    "StoryNode",
    "Tag",
    "StoryTag",
    "UserStoryProgress",
]
