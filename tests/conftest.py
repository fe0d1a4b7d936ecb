import pytest
from werkzeug.security import generate_password_hash

from app.cms import create_app
from app.cms.auth import _login_attempts
from app.cms.constants import PERMISSIONS
from app.cms.db import session_scope
from app.cms.models import Base, Permission, Role, User


@pytest.fixture(autouse=True)
def _reset_login_rate_limit():
    _login_attempts.clear()
    yield
    _login_attempts.clear()


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("STORAGE_ROOT", str(tmp_path / "storage"))
    for k in (
        "S3_ENDPOINT",
        "S3_REGION",
        "S3_BUCKET",
        "S3_ACCESS_KEY_ID",
        "S3_SECRET_ACCESS_KEY",
        "DB_POOLS",
        "CMS_USER_ADMIN",
        "CMS_USER_GUEST",
        "CMS_USER_EXPORT",
        "CMS_USER_DELETED_RESOURCE",
        "CMS_GROUP_GUESTS",
        "CMS_AUTO_LOCK",
        "CMS_DECORATOR_CONFIG",
        "CMS_SESSION_MAX_INACTIVE",
    ):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        perms = [Permission(key=key, name=name) for key, name in PERMISSIONS.items()]
        admin = Role(key="admin", name="Administrator")
        admin.permissions.extend(perms)
        viewer = Role(key="viewer", name="Viewer")
        viewer.permissions.extend(p for p in perms if p.key in ("admin.view", "datatypes.view"))

        u = User(name="Admin", password_hash=generate_password_hash("pw"), is_active=True)
        u.roles.append(admin)
        editor = User(name="sales/jdoe", password_hash=generate_password_hash("pw"), is_active=True)
        editor.roles.append(viewer)
        guest = User(name="Guest", password_hash=generate_password_hash("pw"), is_active=True)
        guest.roles.append(admin)
        s.add_all(perms + [admin, viewer, u, editor, guest])

    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def _login(client, name="Admin", password="pw"):
    return client.post("/auth/login", data={"name": name, "password": password}, follow_redirects=False)


@pytest.fixture()
def login(client):
    """Log the test client in; returns the login response."""

    def _do(name="Admin", password="pw"):
        return _login(client, name, password)

    return _do


@pytest.fixture()
def admin_client(client):
    r = _login(client)
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/admin/")
    return client


@pytest.fixture()
def csrf_token(client) -> str:
    client.get("/")
    with client.session_transaction() as sess:
        return sess["csrf_token"]
