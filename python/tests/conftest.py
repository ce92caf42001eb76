"""Pytest configuration and fixtures for Forkline tests.

Test isolation strategy:
- Every test that touches the database gets its own in-memory SQLite
  engine with the schema created from the ORM metadata
- The app's get_db dependency is overridden to use that engine, so rows
  seeded through db_session are visible to requests made with client
- Service tests that do not need SQL use FakeStoryStore
"""

import os
import sys
from collections.abc import Generator
from pathlib import Path

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("FORKLINE_ENV", "test")
os.environ.setdefault("LOG_JSON", "false")

# Add repo root to sys.path for importing top-level packages (e.g., apps)
_repo_root = Path(__file__).parent.parent.parent
if str(_repo_root) not in sys.path:
    sys.path.insert(0, str(_repo_root))

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import Engine
from sqlalchemy.orm import Session

from forkline.api.deps import get_db
from forkline.app import add_request_id_middleware, create_app
from forkline.config import clear_settings_cache
from forkline.db.engine import create_db_engine
from forkline.db.models import Base
from forkline.db.session import create_session_factory
from forkline.store import FakeStoryStore, SqlStoryStore

TEST_DATABASE_URL = "sqlite+pysqlite:///:memory:"


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """Create a fresh in-memory database with the full schema."""
    engine = create_db_engine(TEST_DATABASE_URL)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine: Engine) -> Generator[Session, None, None]:
    """Provide a database session bound to the test engine."""
    session = create_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sql_store(db_session: Session) -> SqlStoryStore:
    """Provide the SQL-backed story store over the test session."""
    return SqlStoryStore(db_session)


@pytest.fixture
def fake_store() -> FakeStoryStore:
    """Provide an empty in-memory story store."""
    return FakeStoryStore()


@pytest.fixture
def app(engine: Engine) -> FastAPI:
    """Provide the application wired to the test engine."""
    session_factory = create_session_factory(engine)

    def override_get_db() -> Generator[Session, None, None]:
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app = create_app()
    app.dependency_overrides[get_db] = override_get_db
    add_request_id_middleware(app, log_requests=False)
    return app


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """Provide a FastAPI test client over the test database."""
    with TestClient(app) as client:
        yield client


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Reset the settings cache before each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()
