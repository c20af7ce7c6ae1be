import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from fintrack.auth import get_password_hash
from fintrack.crud import create_user
from fintrack.database import create_db_and_tables, get_session
from fintrack.main import app

PASSWORD = "correct-horse-battery"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(engine):
    def override_get_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session):
    def _make(email, password=PASSWORD, is_admin=False):
        return create_user(session, email, get_password_hash(password), is_admin=is_admin)
    return _make


@pytest.fixture
def login(client):
    """Log in and return the Authorization header for the account."""
    def _login(email, password=PASSWORD):
        response = client.post("/api/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}
    return _login


@pytest.fixture
def alice(make_user, login):
    make_user("alice@example.com")
    return login("alice@example.com")


@pytest.fixture
def bob(make_user, login):
    make_user("bob@example.com")
    return login("bob@example.com")
