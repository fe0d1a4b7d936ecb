"""
Client for the sitemap RPC endpoint.

Calls run on a thread pool. Each call takes an `AsyncCallback`: exactly one
of `on_success` / `on_failure` is invoked when the call finishes. The
`Future` is returned as well for callers that prefer to wait.
"""
from __future__ import annotations

import http.cookiejar
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Protocol, TypeVar

from app.cms.errors import CmsError, ErrorCode
from app.cms.modules.sitemap.service import ClientSitemapEntry

logger = logging.getLogger(__name__)

T = TypeVar("T")

# (path, json payload or None for GET) -> decoded JSON response
Transport = Callable[[str, "dict[str, Any] | None"], "dict[str, Any]"]


class AsyncCallback(Protocol[T]):
    def on_success(self, result: T) -> None: ...

    def on_failure(self, error: BaseException) -> None: ...


class FunctionCallback:
    """Adapts two plain callables to `AsyncCallback`."""

    def __init__(
        self,
        on_success: Callable[[Any], None] | None = None,
        on_failure: Callable[[BaseException], None] | None = None,
    ):
        self._on_success = on_success
        self._on_failure = on_failure

    def on_success(self, result: Any) -> None:
        if self._on_success is not None:
            self._on_success(result)

    def on_failure(self, error: BaseException) -> None:
        if self._on_failure is not None:
            self._on_failure(error)


class HttpTransport:
    """urllib transport keeping the login cookie and CSRF token between calls."""

    def __init__(self, base_url: str, timeout_seconds: int = 30):
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._cookies = http.cookiejar.CookieJar()
        self._opener = urllib.request.build_opener(urllib.request.HTTPCookieProcessor(self._cookies))
        self._csrf_token: str | None = None

    def _open(self, req: urllib.request.Request) -> dict[str, Any]:
        try:
            with self._opener.open(req, timeout=self.timeout_seconds) as resp:
                raw = resp.read()
        except urllib.error.HTTPError as e:
            raw = e.read()
            if not raw:
                raise CmsError(ErrorCode.RPC_FAILED, f"HTTP {e.code} from {req.full_url}") from e
        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CmsError(ErrorCode.RPC_FAILED, f"Invalid JSON from {req.full_url}") from e

    def login(self, user_name: str, password: str) -> None:
        data = urllib.parse.urlencode({"name": user_name, "password": password}).encode("utf-8")
        req = urllib.request.Request(self.base_url + "/auth/login", data=data, method="POST")
        try:
            with self._opener.open(req, timeout=self.timeout_seconds):
                pass
        except urllib.error.HTTPError as e:
            raise CmsError(ErrorCode.RPC_FAILED, f"Login failed with HTTP {e.code}") from e
        self._csrf_token = None

    def _token(self) -> str:
        if self._csrf_token is None:
            body = self._open(urllib.request.Request(self.base_url + "/rpc/token", method="GET"))
            token = body.get("csrf_token")
            if not token:
                raise CmsError(ErrorCode.RPC_FAILED, "Could not obtain CSRF token (not logged in?)")
            self._csrf_token = str(token)
        return self._csrf_token

    def __call__(self, path: str, payload: dict[str, Any] | None) -> dict[str, Any]:
        url = self.base_url + path
        if payload is None:
            return self._open(urllib.request.Request(url, method="GET"))
        req = urllib.request.Request(url, data=json.dumps(payload).encode("utf-8"), method="POST")
        req.add_header("Content-Type", "application/json")
        req.add_header("Accept", "application/json")
        req.add_header("X-CSRF-Token", self._token())
        return self._open(req)


class SitemapServiceAsync:
    def __init__(self, transport: Transport, executor: ThreadPoolExecutor | None = None):
        self.transport = transport
        self._executor = executor or ThreadPoolExecutor(max_workers=4, thread_name_prefix="sitemap-rpc")
        self._owns_executor = executor is None

    def _call(self, method: str, root: str) -> Any:
        body = self.transport("/rpc/sitemap", {"method": method, "params": {"root": root}})
        if "error" in body:
            err = body.get("error") or {}
            raise CmsError(str(err.get("code") or ErrorCode.RPC_FAILED), err.get("message"))
        if "result" not in body:
            raise CmsError(ErrorCode.RPC_FAILED, f"Malformed RPC response for {method}")
        return body["result"]

    def _submit(self, fn: Callable[[], T], callback: AsyncCallback[T] | None) -> "Future[T]":
        future = self._executor.submit(fn)

        def _done(f: "Future[T]") -> None:
            if callback is None:
                return
            error = f.exception()
            try:
                if error is not None:
                    callback.on_failure(error)
                else:
                    callback.on_success(f.result())
            except Exception:
                logger.exception("Sitemap RPC callback raised")

        future.add_done_callback(_done)
        return future

    def get_sitemap_entry(
        self, root: str, callback: AsyncCallback[ClientSitemapEntry] | None = None
    ) -> "Future[ClientSitemapEntry]":
        return self._submit(
            lambda: ClientSitemapEntry.from_dict(self._call("getSitemapEntry", root)),
            callback,
        )

    def get_sitemap_children(
        self, root: str, callback: AsyncCallback[list[ClientSitemapEntry]] | None = None
    ) -> "Future[list[ClientSitemapEntry]]":
        return self._submit(
            lambda: [ClientSitemapEntry.from_dict(d) for d in self._call("getSitemapChildren", root)],
            callback,
        )

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    def __enter__(self) -> "SitemapServiceAsync":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
