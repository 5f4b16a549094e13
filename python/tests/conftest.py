"""Pytest configuration and fixtures for Labmate tests.

Test isolation strategy:
- Every test gets its own in-memory SQLite database built from the ORM
  metadata (StaticPool, so the app and the test share one connection)
- The completion provider is replaced by StubAdapter; no test calls out
- Authenticated tests use MockJwtVerifier with locally minted RS256 tokens
"""

import os
import sys
from collections.abc import Generator
from pathlib import Path

# Settings are read from the environment; pin them before labmate imports
os.environ["LABMATE_ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SUPABASE_JWKS_URL"] = "http://localhost:54321/auth/v1/.well-known/jwks.json"
os.environ["SUPABASE_ISSUER"] = "test-issuer"
os.environ["SUPABASE_AUDIENCES"] = "test-audience"
os.environ["AIML_API_KEY"] = "test-aiml-key"
os.environ["CORS_ALLOW_ORIGINS"] = "*"

# Add repo root to sys.path for importing top-level packages (e.g., apps)
_repo_root = Path(__file__).parent.parent.parent
if str(_repo_root) not in sys.path:
    sys.path.insert(0, str(_repo_root))

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from labmate.api.deps import get_completion_client
from labmate.app import add_request_id_middleware, create_app
from labmate.config import clear_settings_cache
from labmate.db.engine import enable_sqlite_foreign_keys
from labmate.db.models import Base
from labmate.db.session import create_session_factory, get_db
from labmate.services.bootstrap import create_bootstrap_callback
from labmate.services.llm import CompletionClient
from tests.helpers import create_test_user_id
from tests.support.stub_llm import StubAdapter
from tests.support.test_verifier import MockJwtVerifier


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """A fresh in-memory database with the full schema."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return create_session_factory(engine)


@pytest.fixture
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def stub_adapter() -> StubAdapter:
    return StubAdapter()


@pytest.fixture
def completion_client(stub_adapter: StubAdapter) -> CompletionClient:
    return CompletionClient(stub_adapter, timeout_s=5.0)


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """Test client without auth middleware, for public endpoints."""
    app = create_app(skip_auth_middleware=True)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def authenticated_app(
    session_factory: sessionmaker[Session], completion_client: CompletionClient
) -> FastAPI:
    """App with auth middleware, the test verifier, the test database and the stub provider."""
    app = create_app(
        token_verifier=MockJwtVerifier(),
        bootstrap_callback=create_bootstrap_callback(session_factory),
    )
    add_request_id_middleware(app, log_requests=False)

    def override_get_db() -> Generator[Session, None, None]:
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_completion_client] = lambda: completion_client
    return app


@pytest.fixture
def authenticated_client(authenticated_app: FastAPI) -> Generator[TestClient, None, None]:
    """Use auth_headers() from tests.helpers to authenticate requests."""
    with TestClient(authenticated_app) as client:
        yield client


@pytest.fixture
def test_user_id():
    return create_test_user_id()


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Reset the settings cache before each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()
