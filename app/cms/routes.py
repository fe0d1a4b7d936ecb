from flask import Blueprint, render_template

from app.cms.db import db_session
from app.cms.modules.sitemap.service import SitemapService, find_entry

bp = Blueprint("routes", __name__)


@bp.get("/")
def index():
    """Public start page: the sitemap root and its first navigation level."""
    s = db_session()
    root = find_entry(s, "/")
    navigation = SitemapService(s).get_sitemap_children("/") if root is not None else []
    return render_template("public/index.html", root=root, navigation=navigation)


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """
    Liveness probe. No DB access.
    """
    return "ok", 200
