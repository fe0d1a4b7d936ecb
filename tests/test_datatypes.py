import pytest

from app.cms.db import session_scope
from app.cms.errors import CmsError, ErrorCode
from app.cms.models import AuditEvent
from app.cms.modules.datatypes.models import ExtensionMapping
from app.cms.modules.datatypes.service import (
    add_extension,
    extension_mapping,
    extensions_by_resource_type,
    format_extension,
    remove_extension,
    resource_type_for,
)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("html", "html"),
        ("*.HTML", "html"),
        (".txt", "txt"),
        ("**..Jpg", "jpg"),
        ("  pdf ", "pdf"),
        ("tar.gz", "tar.gz"),
    ],
)
def test_format_extension(raw, expected):
    assert format_extension(raw) == expected


@pytest.mark.parametrize("raw", ["", "   ", "*.", None, "my ext", "*.a b"])
def test_format_extension_rejects_bad_names(raw):
    with pytest.raises(CmsError) as exc:
        format_extension(raw)
    assert exc.value.code == ErrorCode.BAD_NAME


def test_extensions_by_resource_type():
    assert extensions_by_resource_type(None) is None
    assert extensions_by_resource_type({}) == {}
    assert extensions_by_resource_type({"png": "image", "txt": "plain", "gif": "image"}) == {
        "image": ["gif", "png"],
        "plain": ["txt"],
    }


def test_add_and_remove_extension(app):
    with session_scope(app) as s:
        row = add_extension(s, "*.MD", "plain")
        assert row.extension == "md"

    with session_scope(app) as s:
        assert extension_mapping(s) == {"md": "plain"}
        assert resource_type_for(s, "README.md") == "plain"
        assert resource_type_for(s, "photo.png") == "plain"
        assert remove_extension(s, "MD").extension == "md"
        assert remove_extension(s, "md") is None

    with session_scope(app) as s:
        assert s.query(ExtensionMapping).count() == 0


def test_add_extension_errors(app):
    with session_scope(app) as s:
        add_extension(s, "png", "image")

    with session_scope(app) as s:
        with pytest.raises(CmsError) as exc:
            add_extension(s, ".PNG", "binary")
        assert exc.value.code == ErrorCode.NOT_EMPTY

        with pytest.raises(CmsError) as exc:
            add_extension(s, "svg", "vector")
        assert exc.value.code == ErrorCode.NOT_FOUND

        with pytest.raises(CmsError) as exc:
            add_extension(s, "s v g", "image")
        assert exc.value.code == ErrorCode.BAD_NAME

        assert resource_type_for(s, "logo.PNG") == "image"


def test_datatypes_list_requires_auth(client):
    r = client.get("/admin/datatypes")
    assert r.status_code in (302, 403)


def test_datatypes_list_ok(admin_client):
    r = admin_client.get("/admin/datatypes")
    assert r.status_code == 200
    assert b"xmlcontent" in r.data


def test_datatypes_add_and_delete(app, admin_client, csrf_token):
    r = admin_client.post(
        "/admin/datatypes/new",
        data={"restype": "image", "NAME": "*.WEBP", "csrf_token": csrf_token},
        follow_redirects=True,
    )
    assert r.status_code == 200
    assert b"webp" in r.data

    r = admin_client.post(
        "/admin/datatypes/new",
        data={"restype": "binary", "NAME": "webp", "csrf_token": csrf_token},
        follow_redirects=True,
    )
    assert b"already in use" in r.data

    r = admin_client.post(
        "/admin/datatypes/new",
        data={"restype": "binary", "NAME": "we bp", "csrf_token": csrf_token},
        follow_redirects=True,
    )
    assert b"Invalid extension format" in r.data

    r = admin_client.post(
        "/admin/datatypes/new",
        data={"restype": "nonsense", "NAME": "abc", "csrf_token": csrf_token},
        follow_redirects=True,
    )
    assert b"Could not add extension" in r.data

    # deletion needs confirmation
    admin_client.post(
        "/admin/datatypes/delete",
        data={"extension": "webp", "csrf_token": csrf_token},
        follow_redirects=True,
    )
    with session_scope(app) as s:
        assert extension_mapping(s) == {"webp": "image"}

    r = admin_client.post(
        "/admin/datatypes/delete",
        data={"extension": "webp", "sure": "true", "csrf_token": csrf_token},
        follow_redirects=True,
    )
    assert r.status_code == 200

    with session_scope(app) as s:
        assert extension_mapping(s) == {}
        actions = [e.action for e in s.query(AuditEvent).order_by(AuditEvent.id).all()]
    assert "datatypes.add" in actions
    assert "datatypes.delete" in actions


def test_datatypes_edit_requires_permission(client, login, csrf_token):
    login("sales/jdoe")
    assert client.get("/admin/datatypes").status_code == 200
    r = client.post("/admin/datatypes/new", data={"restype": "plain", "NAME": "abc", "csrf_token": csrf_token})
    assert r.status_code == 403
