# tests/conftest.py

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from taskmanager.auth import AuthService, UserIdentity
from taskmanager.database import Base, get_db, init_db
from taskmanager.main import app
from taskmanager.services import TaskService

from .fakes import InMemoryTaskRepository, InMemoryUserRepository


@pytest.fixture()
def engine():
    """Fresh in-memory SQLite database per test, shared across connections."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def client(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def user_repo() -> InMemoryUserRepository:
    return InMemoryUserRepository()


@pytest.fixture()
def task_repo() -> InMemoryTaskRepository:
    return InMemoryTaskRepository()


@pytest.fixture()
def auth_service(user_repo) -> AuthService:
    return AuthService(user_repo)


@pytest.fixture()
def task_service(task_repo) -> TaskService:
    return TaskService(task_repo)


@pytest.fixture()
def alice() -> UserIdentity:
    return UserIdentity(id=1, username="alice")


@pytest.fixture()
def bob() -> UserIdentity:
    return UserIdentity(id=2, username="bob")


def register_and_login(client: TestClient, username: str, password: str) -> dict:
    """Register a user through the API and return its Authorization header."""
    assert client.post("/auth/register", json={"username": username, "password": password}).status_code == 200
    resp = client.post("/auth/login", json={"username": username, "password": password})
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['token']}"}
