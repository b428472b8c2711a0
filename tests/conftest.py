from typing import Any, Callable

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import security
from database import get_db, init_db, make_engine
from main import app

REGISTER = """
mutation Register($name: String!, $email: String!, $password: String!) {
  register(name: $name, email: $email, password: $password) {
    token
    message
    user { id name email }
  }
}
"""

LOGIN = """
mutation Login($email: String!, $password: String!) {
  login(email: $email, password: $password) {
    token
    message
    user { id name email }
  }
}
"""

CREATE_TASK = """
mutation CreateTask($title: String!, $description: String, $status: TaskStatus) {
  createTask(title: $title, description: $description, status: $status) {
    id title description status
    user { id name }
  }
}
"""

MY_TASKS = """
query { myTasks { id title description status user { id name } } }
"""


@pytest.fixture(scope="session", autouse=True)
def fast_password_hashing():
    # Minimum bcrypt cost keeps the suite quick; hashes stay real bcrypt hashes
    security.pwd_context.update(bcrypt__rounds=4)
    yield


@pytest.fixture()
def engine():
    """
    Fresh in-memory SQLite database per test.

    StaticPool keeps a single connection so every session sees the same
    in-memory database.
    """
    engine = make_engine("sqlite://", poolclass=StaticPool)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def client_factory(session_factory) -> Callable[[], TestClient]:
    """Build clients with independent cookie jars against the same database."""

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    # Not entered as a context manager: the lifespan would touch the real database
    yield lambda: TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def client(client_factory) -> TestClient:
    return client_factory()


def run_gql(
    client: TestClient,
    query: str,
    variables: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> dict[str, Any]:
    response = client.post("/graphql", json={"query": query, "variables": variables or {}}, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()


def error_code(result: dict[str, Any]) -> str:
    assert result.get("errors"), result
    return result["errors"][0]["extensions"]["code"]


@pytest.fixture()
def gql(client) -> Callable[..., dict[str, Any]]:
    def _gql(query: str, variables: dict[str, Any] | None = None, headers: dict[str, str] | None = None):
        return run_gql(client, query, variables, headers)

    return _gql


@pytest.fixture()
def register(client):
    def _register(
        name: str = "Alice",
        email: str = "alice@example.com",
        password: str = "secret123",
        on: TestClient | None = None,
    ) -> dict[str, Any]:
        result = run_gql(on or client, REGISTER, {"name": name, "email": email, "password": password})
        assert "errors" not in result, result
        return result["data"]["register"]

    return _register


@pytest.fixture()
def login(client):
    def _login(
        email: str = "alice@example.com",
        password: str = "secret123",
        on: TestClient | None = None,
    ) -> dict[str, Any]:
        result = run_gql(on or client, LOGIN, {"email": email, "password": password})
        assert "errors" not in result, result
        return result["data"]["login"]

    return _login
