"""Pytest configuration and fixtures for MemoryHaze tests.

Test isolation strategy:
- Every test gets its own SQLite database file under tmp_path, created from
  the ORM metadata; nothing is shared between tests
- The app under test uses a session factory bound to that database, so
  auth bootstrap, route handlers and test assertions all see committed data
- The asset store and notifier are in-memory fakes placed on app.state
- Auth uses MockJwtVerifier; mint headers with tests.helpers.auth_headers()
"""

import os
import sys
from collections.abc import Generator
from pathlib import Path

# Settings are read at import time by some modules; set test defaults first
os.environ.setdefault("MEMORYHAZE_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SUPABASE_JWKS_URL", "https://auth.example.test/.well-known/jwks.json")
os.environ.setdefault("SUPABASE_ISSUER", "test-issuer")
os.environ.setdefault("SUPABASE_AUDIENCES", "test-audience")
os.environ.setdefault("GIFT_LINK_SECRET", "test-gift-link-secret")
os.environ.setdefault("FRONTEND_URL", "https://memoryhaze.test")

# Add repo root to sys.path for importing top-level packages (e.g., apps)
_repo_root = Path(__file__).parent.parent.parent
if str(_repo_root) not in sys.path:
    sys.path.insert(0, str(_repo_root))

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from memoryhaze.app import create_app, create_bootstrap_callback
from memoryhaze.auth.middleware import AuthMiddleware
from memoryhaze.db.models import Base, User
from memoryhaze.db.session import create_session_factory, get_db
from memoryhaze.notifications.notifier import FakeNotifier
from memoryhaze.storage.client import FakeAssetStore
from tests.factories import create_test_user
from tests.support.test_verifier import MockJwtVerifier


@pytest.fixture
def engine(tmp_path: Path) -> Generator[Engine, None, None]:
    """A fresh SQLite database with the full schema."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'memoryhaze_test.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return create_session_factory(engine)


@pytest.fixture
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """A session for arranging and asserting test data.

    Services commit as they go; use ``db_session.get(Model, id,
    populate_existing=True)`` to read state written by the app.
    """
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_asset_store() -> FakeAssetStore:
    return FakeAssetStore()


@pytest.fixture
def fake_notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def app(
    session_factory: sessionmaker[Session],
    fake_asset_store: FakeAssetStore,
    fake_notifier: FakeNotifier,
) -> FastAPI:
    """The application with test auth, the test database and fake collaborators."""
    app = create_app(skip_auth_middleware=True)

    app.add_middleware(
        AuthMiddleware,
        verifier=MockJwtVerifier(),
        bootstrap_callback=create_bootstrap_callback(session_factory),
    )

    def override_get_db() -> Generator[Session, None, None]:
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.state.asset_store = fake_asset_store
    app.state.notifier = fake_notifier
    return app


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """Authenticated-capable test client; pass auth_headers() per request."""
    with TestClient(app) as client:
        yield client


@pytest.fixture
def owner(db_session: Session) -> User:
    """A regular user who requests gifts."""
    return create_test_user(db_session, email="owner@example.com")


@pytest.fixture
def other_user(db_session: Session) -> User:
    return create_test_user(db_session, email="someone-else@example.com")


@pytest.fixture
def admin(db_session: Session) -> User:
    return create_test_user(db_session, email="admin@example.com", is_admin=True)
