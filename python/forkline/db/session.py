"""Sessions for the story store.

Every store write is its own unit of work: committed on its own, rolled
back on its own. Duplication and import never span a database transaction
across several writes; they compensate by deleting the new story instead.
"""

from collections.abc import Generator, Iterator
from contextlib import contextmanager

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from forkline.db.engine import get_engine
from forkline.errors import StoreError

_session_factory: sessionmaker[Session] | None = None


def create_session_factory(engine: Engine | None = None) -> sessionmaker[Session]:
    """Sessions bound to an engine (the configured one by default).

    Rows stay readable after commit, since records are built from them once
    each write has landed.
    """
    return sessionmaker(
        bind=engine if engine is not None else get_engine(),
        autoflush=False,
        expire_on_commit=False,
    )


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency: one session per request, closed afterwards."""
    global _session_factory
    if _session_factory is None:
        _session_factory = create_session_factory()

    db = _session_factory()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def committed_write(db: Session, operation: str, failure: str) -> Iterator[None]:
    """Commit the statements issued inside the block as one store write.

    Raises:
        StoreError: "<failure>: <database error>" tagged with the store
            operation, after rolling back.
    """
    try:
        yield
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise StoreError(f"{failure}: {e}", operation=operation) from e
    except Exception:
        db.rollback()
        raise
