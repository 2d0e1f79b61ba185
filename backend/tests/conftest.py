import os
import tempfile
from pathlib import Path

import pytest

# Point the app's default engine at a throwaway file before it is imported.
_TMP = Path(tempfile.mkdtemp(prefix="skillhub-tests-"))
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TMP / 'app.db'}")

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, create_engine  # noqa: E402

from skillhub.database import create_db_and_tables, get_session  # noqa: E402
from skillhub.main import app  # noqa: E402
from skillhub.services import AuthService, UserService  # noqa: E402
from skillhub.store import DocumentStore  # noqa: E402


@pytest.fixture()
def engine():
    """A fresh in-memory database per test."""
    eng = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    create_db_and_tables(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session(engine):
    with Session(engine) as s:
        yield s


@pytest.fixture()
def store(session):
    return DocumentStore(session)


@pytest.fixture()
def make_user(store):
    """Register a user directly through the service and return its public document."""
    counter = {"n": 0}

    def _make(name=None, role="student"):
        counter["n"] += 1
        n = counter["n"]
        created = AuthService(store).register({
            "name": name or f"user{n}",
            "email": f"user{n}@example.com",
            "password": "secret123",
        })
        user = created["user"]
        if role != "student":
            user = UserService(store).set_role(user["id"], role)
        return user

    return _make


@pytest.fixture()
def client(engine):
    def _session_override():
        with Session(engine) as s:
            yield s

    app.dependency_overrides[get_session] = _session_override
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def register(client):
    """Register through the API and return `(user, auth_headers)`."""
    counter = {"n": 0}

    def _register(name=None):
        counter["n"] += 1
        n = counter["n"]
        r = client.post('/users', json={'name': name or f'api{n}', 'email': f'api{n}@example.com', 'password': 'secret123'})
        assert r.status_code == 201, r.text
        body = r.json()
        return body['user'], {'Authorization': f"Bearer {body['access_token']}"}

    return _register


@pytest.fixture()
def admin_headers(client, register, engine):
    """Headers for a freshly registered user promoted to admin."""
    user, _ = register('admin')
    with Session(engine) as s:
        UserService(DocumentStore(s)).set_role(user['id'], 'admin')
    # log in again so the token reflects the new role
    r = client.post('/users/login', json={'email': user['email'], 'password': 'secret123'})
    assert r.status_code == 200
    return {'Authorization': f"Bearer {r.json()['access_token']}"}
