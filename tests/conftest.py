import os
import pytest


@pytest.fixture(scope="session", autouse=True)
def set_test_env(tmp_path_factory):
    db_file = tmp_path_factory.mktemp("data") / "test.db"
    os.environ["DB_PATH"] = str(db_file)
    os.environ["APP_PASSWORD"] = "testpass"
    os.environ["SECRET_KEY"] = "test-secret-key-for-testing"
    from household.db.database import init_db
    init_db()


@pytest.fixture(scope="session")
def client(set_test_env):
    from fastapi.testclient import TestClient
    from app.main import app
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c


@pytest.fixture(scope="session")
def authed_client(client):
    client.post("/login", data={"password": "testpass"}, follow_redirects=False)
    return client


@pytest.fixture
def make_cosmetic():
    """Insert a cosmetic straight through the core layer and return it."""
    from household.core import cosmetics as cosmetics_core
    from household.db.models import Cosmetic

    def _make(name="Test Serum", **fields):
        cosmetic = Cosmetic(id=None, name=name, **fields)
        cosmetic.id = cosmetics_core.add(cosmetic)
        return cosmetics_core.get(cosmetic.id)

    return _make
