"""FastAPI dependencies for route handlers.

Common dependencies like database sessions and the story store.
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session

from forkline.db.session import get_db
from forkline.store import SqlStoryStore, StoryStoreBase

__all__ = ["get_db", "get_story_store"]


def get_story_store(db: Annotated[Session, Depends(get_db)]) -> StoryStoreBase:
    """Get the story store for the current request's database session.

    Tests override this dependency to substitute a FakeStoryStore.
    """
    return SqlStoryStore(db)
