import threading

import pytest

from app.cms.db import session_scope
from app.cms.errors import CmsError, ErrorCode
from app.cms.modules.sitemap.client import FunctionCallback, SitemapServiceAsync
from app.cms.modules.sitemap.service import (
    ClientSitemapEntry,
    SitemapService,
    add_entry,
    normalize_site_path,
)


@pytest.fixture()
def sitemap(app):
    with session_scope(app) as s:
        add_entry(s, parent_path=None, name="/", title="Home", vfs_path="/sites/default/")
        add_entry(s, parent_path="/", name="news", title="News", vfs_path="/sites/default/news/", position=2)
        add_entry(s, parent_path="/", name="about", title="About", vfs_path="/sites/default/about/", position=1)
        add_entry(
            s,
            parent_path="/",
            name="contact.html",
            title="Contact",
            vfs_path="/sites/default/contact.html",
            position=1,
            properties={"template": "plain"},
            folder=False,
        )
        add_entry(s, parent_path="/news", name="2024", title="2024", vfs_path="/sites/default/news/2024/")
    return app


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("", "/"),
        ("/", "/"),
        ("news", "/news"),
        ("/news/", "/news/"),
        ("/news/../about/", "/about/"),
        ("\\news\\2024", "/news/2024"),
    ],
)
def test_normalize_site_path(raw, expected):
    assert normalize_site_path(raw) == expected


def test_get_sitemap_entry(sitemap):
    with session_scope(sitemap) as s:
        service = SitemapService(s)
        root = service.get_sitemap_entry("/")
        assert root.title == "Home"
        assert root.has_children is True

        news = service.get_sitemap_entry("/news")
        assert news.site_path == "/news/"
        assert news.has_children is True
        assert service.get_sitemap_entry("news/").id == news.id

        contact = service.get_sitemap_entry("/contact.html")
        assert contact.properties == {"template": "plain"}
        assert contact.has_children is False


def test_get_sitemap_children_ordering(sitemap):
    with session_scope(sitemap) as s:
        service = SitemapService(s)
        children = service.get_sitemap_children("/")
        assert [c.name for c in children] == ["about", "contact.html", "news"]
        assert service.get_sitemap_children("/news/2024/") == []


def test_unknown_path_raises_not_found(sitemap):
    with session_scope(sitemap) as s:
        service = SitemapService(s)
        for call in (service.get_sitemap_entry, service.get_sitemap_children):
            with pytest.raises(CmsError) as exc:
                call("/missing/")
            assert exc.value.code == ErrorCode.NOT_FOUND


def test_add_entry_errors(sitemap):
    with session_scope(sitemap) as s:
        with pytest.raises(CmsError) as exc:
            add_entry(s, parent_path="/", name="news")
        assert exc.value.code == ErrorCode.NOT_EMPTY

        with pytest.raises(CmsError) as exc:
            add_entry(s, parent_path="/", name="a/b")
        assert exc.value.code == ErrorCode.BAD_NAME

        with pytest.raises(CmsError) as exc:
            add_entry(s, parent_path="/nowhere/", name="x")
        assert exc.value.code == ErrorCode.NOT_FOUND


def test_client_entry_round_trip():
    entry = ClientSitemapEntry(id=3, name="news", title="News", site_path="/news/", vfs_path="/v/", has_children=True)
    assert ClientSitemapEntry.from_dict(entry.to_dict()) == entry


def _rpc(client, token, method, root):
    return client.post(
        "/rpc/sitemap",
        json={"method": method, "params": {"root": root}},
        headers={"X-CSRF-Token": token},
    )


def test_rpc_requires_login(client, sitemap):
    r = client.get("/rpc/token")
    assert r.status_code == 401
    assert r.json["error"]["code"] == "UNAUTHORIZED"


def test_rpc_get_entry_and_children(sitemap, admin_client):
    token = admin_client.get("/rpc/token").json["csrf_token"]

    r = _rpc(admin_client, token, "getSitemapEntry", "/news")
    assert r.status_code == 200
    assert r.json["result"]["title"] == "News"

    r = _rpc(admin_client, token, "getSitemapChildren", "/")
    assert [e["name"] for e in r.json["result"]] == ["about", "contact.html", "news"]


def test_rpc_errors(sitemap, admin_client):
    token = admin_client.get("/rpc/token").json["csrf_token"]

    r = _rpc(admin_client, token, "getSitemapEntry", "/missing")
    assert r.status_code == 200
    assert r.json["error"]["code"] == ErrorCode.NOT_FOUND

    r = _rpc(admin_client, token, "deleteEverything", "/")
    assert r.json["error"]["code"] == ErrorCode.RPC_FAILED

    r = admin_client.post("/rpc/sitemap", data="not json", headers={"X-CSRF-Token": token})
    assert r.status_code == 400

    r = admin_client.post("/rpc/sitemap", json={"method": "getSitemapEntry", "params": {"root": "/"}})
    assert r.status_code == 400
    assert r.json["error"]["code"] == "CSRF"


def test_rpc_requires_sitemap_permission(sitemap, client, login):
    login("sales/jdoe")
    r = client.get("/rpc/token")
    assert r.status_code == 403


class FlaskTransport:
    """Routes client calls through the Flask test client."""

    def __init__(self, client):
        self.client = client
        self.token = client.get("/rpc/token").json["csrf_token"]
        self._lock = threading.Lock()

    def __call__(self, path, payload):
        with self._lock:
            if payload is None:
                return self.client.get(path).json
            return self.client.post(path, json=payload, headers={"X-CSRF-Token": self.token}).json


class Recorder:
    def __init__(self):
        self.results = []
        self.errors = []
        self.done = threading.Event()

    def on_success(self, result):
        self.results.append(result)
        self.done.set()

    def on_failure(self, error):
        self.errors.append(error)
        self.done.set()


def test_async_client_success(sitemap, admin_client):
    recorder = Recorder()
    with SitemapServiceAsync(FlaskTransport(admin_client)) as service:
        future = service.get_sitemap_entry("/news/", recorder)
        entry = future.result(timeout=10)
        assert recorder.done.wait(10)
    assert isinstance(entry, ClientSitemapEntry)
    assert entry.title == "News"
    assert recorder.results == [entry]
    assert recorder.errors == []


def test_async_client_children(sitemap, admin_client):
    seen = []
    done = threading.Event()
    callback = FunctionCallback(on_success=lambda r: (seen.extend(r), done.set()))
    with SitemapServiceAsync(FlaskTransport(admin_client)) as service:
        children = service.get_sitemap_children("/", callback).result(timeout=10)
        assert done.wait(10)
    assert [c.name for c in children] == ["about", "contact.html", "news"]
    assert seen == children


def test_async_client_failure_goes_to_callback(sitemap, admin_client):
    recorder = Recorder()
    with SitemapServiceAsync(FlaskTransport(admin_client)) as service:
        future = service.get_sitemap_entry("/missing/", recorder)
        with pytest.raises(CmsError):
            future.result(timeout=10)
        assert recorder.done.wait(10)
    assert recorder.results == []
    assert recorder.errors[0].code == ErrorCode.NOT_FOUND


def test_async_client_transport_error():
    def broken(path, payload):
        raise ConnectionError("down")

    recorder = Recorder()
    with SitemapServiceAsync(broken) as service:
        service.get_sitemap_children("/", recorder)
    assert isinstance(recorder.errors[0], ConnectionError)


def test_async_client_malformed_response():
    recorder = Recorder()
    with SitemapServiceAsync(lambda path, payload: {"unexpected": True}) as service:
        service.get_sitemap_entry("/", recorder)
    assert recorder.errors[0].code == ErrorCode.RPC_FAILED


def test_public_index_shows_navigation(sitemap, client):
    r = client.get("/")
    assert r.status_code == 200
    assert b"<h1>Home</h1>" in r.data
    assert b'href="/news/"' in r.data
