import pytest
from fastapi.testclient import TestClient

from taskboard.config import Settings
from taskboard.db import Database
from taskboard.identity import IdentityService
from taskboard.main import create_app


@pytest.fixture
def settings() -> Settings:
    # Lowest bcrypt cost keeps the suite fast.
    return Settings(
        database_url="sqlite://",
        jwt_secret="test-secret-key-for-the-test-suite-only",
        bcrypt_rounds=4,
        log_level="WARNING",
    )


@pytest.fixture
def database(settings):
    db = Database(settings.database_url)
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def session(database):
    with database.session() as session:
        yield session


@pytest.fixture
def identity(session, settings) -> IdentityService:
    return IdentityService(session, settings)


@pytest.fixture
def client(settings, database):
    app = create_app(settings, database)
    with TestClient(app) as test_client:
        yield test_client


def register(client, name: str, email: str, password: str = "secret123"):
    """Register through the API and return ``(headers, user)``."""
    response = client.post("/api/auth/register", json={"name": name, "email": email, "password": password})
    assert response.status_code == 201, response.text
    body = response.json()
    return {"Authorization": f"Bearer {body['token']}"}, body["user"]


@pytest.fixture
def alice(client):
    return register(client, "Alice", "alice@example.com")


@pytest.fixture
def bob(client):
    return register(client, "Bob", "bob@example.com")


@pytest.fixture
def carol(client):
    return register(client, "Carol", "carol@example.com")
