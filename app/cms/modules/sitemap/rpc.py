from __future__ import annotations

from typing import Any

from flask import Blueprint, current_app, g, request

from app.cms.db import db_session
from app.cms.errors import CmsError, ErrorCode
from app.cms.modules.sitemap.service import SitemapService
from app.cms.rbac import require_permission
from app.cms.security import ensure_csrf_token

bp = Blueprint("sitemap_rpc", __name__)

METHOD_GET_ENTRY = "getSitemapEntry"
METHOD_GET_CHILDREN = "getSitemapChildren"


def _error(code: str, message: str, status: int = 200):
    return {"error": {"code": code, "message": message}}, status


def _dispatch(service: SitemapService, method: str, params: dict[str, Any]) -> Any:
    root = params.get("root")
    if not isinstance(root, str):
        raise CmsError(ErrorCode.RPC_FAILED, "params.root must be a string")
    if method == METHOD_GET_ENTRY:
        return service.get_sitemap_entry(root).to_dict()
    if method == METHOD_GET_CHILDREN:
        return [e.to_dict() for e in service.get_sitemap_children(root)]
    raise CmsError(ErrorCode.RPC_FAILED, f"Unknown method: {method!r}")


@bp.get("/token")
@require_permission("sitemap.view", api=True)
def token():
    """CSRF token for RPC clients that are not rendered pages."""
    return {"csrf_token": ensure_csrf_token()}


@bp.post("/sitemap")
@require_permission("sitemap.view", api=True)
def sitemap():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return _error(ErrorCode.RPC_FAILED, "Request body must be a JSON object.", 400)
    method = payload.get("method")
    params = payload.get("params") or {}
    if not isinstance(method, str) or not isinstance(params, dict):
        return _error(ErrorCode.RPC_FAILED, "Expected {method: str, params: object}.", 400)

    try:
        result = _dispatch(SitemapService(db_session()), method, params)
    except CmsError as e:
        current_app.logger.info(
            "Sitemap RPC %s failed: %s (request_id=%s)", method, e.code, getattr(g, "request_id", None)
        )
        return {"error": e.to_dict()}
    return {"result": result}
