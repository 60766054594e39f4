"""
Shared test fixtures: SQLite test database, test client, auth helpers, CAD exports.
"""

import os
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Set JWT_SECRET before importing app modules
os.environ["JWT_SECRET"] = "test-secret-key-for-testing-only"
os.environ["DATABASE_URL"] = "sqlite:///./test.db"

from quote_engine import models
from quote_engine.auth import create_access_token
from quote_engine.database import Base, get_db
from quote_engine.main import app

FIXTURE_DIR = Path(__file__).parent / "fixtures"

TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def setup_database():
    """Create all tables before each test, drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    """FastAPI test client."""
    return TestClient(app)


@pytest.fixture
def db():
    """Direct database session for test setup/assertions."""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def operator(db):
    """An active sales operator, as the identity provider would know it."""
    op = models.Operator(email="seller@store.com", name="Seller", is_active=True)
    db.add(op)
    db.commit()
    db.refresh(op)
    return op


@pytest.fixture
def auth_headers(operator):
    """Bearer header for the test operator."""
    token = create_access_token(operator.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def cad_export():
    """Raw bytes of an XML export under tests/fixtures/."""
    def _load(name: str) -> bytes:
        return (FIXTURE_DIR / name).read_bytes()
    return _load
