from app.cms.db import session_scope
from app.cms.models import AuditEvent


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True


def test_login_and_admin_access(client, login):
    # Anonymous should be redirected to login
    r = client.get("/admin/")
    assert r.status_code in (302, 403)

    r = login()
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/admin/")

    r = client.get("/admin/")
    assert r.status_code == 200
    assert b"default" in r.data


def test_login_failure_is_audited(app, client, login):
    r = login(password="wrong")
    assert r.status_code == 302
    assert "/auth/login" in r.headers["Location"]

    r = client.get("/admin/")
    assert r.status_code in (302, 403)

    with session_scope(app) as s:
        actions = [e.action for e in s.query(AuditEvent).all()]
    assert "auth.login_failed" in actions


def test_missing_permission_is_forbidden(client, login):
    login("sales/jdoe")
    assert client.get("/admin/").status_code == 200
    assert client.get("/admin/sessions").status_code == 403


def test_post_without_csrf_token_is_rejected(admin_client):
    r = admin_client.post("/admin/datatypes/new", data={"restype": "plain", "NAME": "abc"})
    assert r.status_code == 400


def test_logout_removes_registered_session(app, admin_client):
    manager = app.extensions["cms_session_manager"]
    assert manager.get_session_count() == 1

    r = admin_client.get("/auth/logout")
    assert r.status_code == 302
    assert manager.get_session_count() == 0
    assert admin_client.get("/admin/").status_code in (302, 403)
