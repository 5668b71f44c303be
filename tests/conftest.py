import os

# Keep the module-level engine away from any real database
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from taskboard.database import get_db
from taskboard.main import app
from taskboard.models import User
from taskboard.repository import SERVICE_POLICY, SESSION_POLICY, TaskRepository

MCP_TOKEN = "test-mcp-token"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def make_user(db, email: str) -> User:
    user = User(email=email, hashed_password="not-a-real-hash")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def owner(db):
    return make_user(db, "owner@example.com")


@pytest.fixture
def other_user(db):
    return make_user(db, "other@example.com")


@pytest.fixture
def repo(db, owner):
    return TaskRepository(db, owner.id, SESSION_POLICY)


@pytest.fixture
def service_repo(db, owner):
    return TaskRepository(db, owner.id, SERVICE_POLICY)


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    # Not used as a context manager so startup (tables, scheduler) is skipped
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(client):
    response = client.post(
        "/api/auth/signup",
        json={"email": "alice@example.com", "password": "s3cret-pass", "name": "Alice"},
    )
    assert response.status_code == 200
    client.cookies.clear()
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def mcp_env(monkeypatch, owner):
    monkeypatch.setenv("MCP_API_TOKEN", MCP_TOKEN)
    monkeypatch.setenv("MCP_USER_ID", owner.id)
    return {"Authorization": f"Bearer {MCP_TOKEN}"}
