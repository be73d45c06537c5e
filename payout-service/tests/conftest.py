# tests/conftest.py

import os
import tempfile

from cryptography.fernet import Fernet

# Settings are read at import time; configure the environment first
_TEST_DB_DIR = tempfile.mkdtemp(prefix="payout-tests-")
os.environ.setdefault("ENV", "local")
os.environ.setdefault(
    "DATABASE_URL_LOCAL", f"sqlite:///{os.path.join(_TEST_DB_DIR, 'app.db')}"
)
os.environ.setdefault("PAYOUT_ENCRYPTION_KEY", Fernet.generate_key().decode("utf-8"))
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("INTERNAL_API_KEY", "test-internal-key")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

import pytest
from starlette.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.main import app
from app.api import deps
from app.core.limiter import limiter
from app.models import Base
from app.schemas.token import TokenPayload

from tests.utils.payout import ORGANIZER_ID


# --- Test Database Setup ---
# A fresh on-disk SQLite database per test; on-disk so that several
# sessions (threads, streamed exports) see the same data.


@pytest.fixture(scope="function")
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'payouts.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


# --- Mock Dependencies Setup ---
def override_get_current_user():
    return TokenPayload(sub=ORGANIZER_ID, org_id="org_abc", email="owner@example.com", exp=9999999999)


# --- Test Client Fixtures ---
@pytest.fixture(scope="function")
def client(session_factory):
    """
    TestClient backed by the per-test SQLite database with authentication
    mocked to the default organizer.
    """

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[deps.get_db] = override_get_db
    app.dependency_overrides[deps.get_session_factory] = lambda: session_factory
    app.dependency_overrides[deps.get_current_user] = override_get_current_user
    limiter.reset()

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def internal_headers():
    from app.core.config import settings

    return {"X-Internal-Api-Key": settings.INTERNAL_API_KEY}
