"""Dependency checks backing the readiness endpoint."""

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from forkline.errors import StoreError


def check_database(db: Session) -> None:
    """Run a trivial query against the database.

    Raises:
        StoreError: If the database does not answer.
    """
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        raise StoreError("Database is not reachable", operation="readiness") from e
