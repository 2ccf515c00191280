import pytest
from werkzeug.security import generate_password_hash

from app.squadron import create_app
from app.squadron import auth
from app.squadron.db import session_scope
from app.squadron.models import Base, Role, User

ADMIN_PASSWORD = "admin-pass-123"
USER_PASSWORD = "user-pass-123"


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("STORAGE_ROOT", str(tmp_path / "storage"))
    for k in ("S3_ENDPOINT", "S3_REGION", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY"):
        monkeypatch.delenv(k, raising=False)
    auth._login_attempts.clear()

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        s.add_all(
            [
                User(
                    username="admin",
                    full_name="Flt Lt Admin",
                    password_hash=generate_password_hash(ADMIN_PASSWORD),
                    role=Role.ADMIN,
                    is_active=True,
                ),
                User(
                    username="alice",
                    full_name="Alice Adams",
                    password_hash=generate_password_hash(USER_PASSWORD),
                    role=Role.USER,
                    is_active=True,
                ),
                User(
                    username="bob",
                    full_name="Bob Brown",
                    password_hash=generate_password_hash(USER_PASSWORD),
                    role=Role.USER,
                    is_active=True,
                ),
            ]
        )
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def user_ids(app):
    with session_scope(app) as s:
        return {u.username: u.id for u in s.query(User).all()}


def login(client, username: str = "admin", password: str = ADMIN_PASSWORD) -> dict:
    """JSON login; every later request from this client carries the CSRF header."""
    r = client.post("/auth/login", json={"username": username, "password": password})
    assert r.status_code == 200, r.json
    client.environ_base["HTTP_X_CSRF_TOKEN"] = r.json["csrf_token"]
    return r.json["user"]


@pytest.fixture()
def admin_client(client):
    login(client)
    return client


@pytest.fixture()
def alice_client(app):
    c = app.test_client()
    login(c, "alice", USER_PASSWORD)
    return c


@pytest.fixture()
def bob_client(app):
    c = app.test_client()
    login(c, "bob", USER_PASSWORD)
    return c
