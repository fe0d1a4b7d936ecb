from datetime import date, datetime, time, timedelta

from flask import Blueprint, current_app, flash, g, render_template, request
from sqlalchemy import text

from app.cms.auth import session_manager
from app.cms.db import db_session, sql_manager
from app.cms.models import AuditEvent
from app.cms.rbac import require_permission

bp = Blueprint("admin", __name__)


def _parse_date(s: str) -> date | None:
    s = (s or "").strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s)
    except ValueError:
        return None


def _pool_status() -> list[dict]:
    """Ping every configured database pool."""
    out = []
    manager = sql_manager()
    for name in sorted(manager.pools):
        row = {"name": name, "connected": False, "error": None}
        try:
            with manager.get_connection(name) as conn:
                conn.execute(text("SELECT 1"))
            row["connected"] = True
        except Exception as e:
            current_app.logger.warning("DB pool %s not reachable: %s", name, e)
            row["error"] = str(e)
        out.append(row)
    return out


@bp.get("/")
@require_permission("admin.view")
def index():
    cfg = current_app.config
    status = {
        "env": (cfg.get("ENV") or "development").strip().lower(),
        "pools": _pool_status(),
        "storage_backend": cfg.get("STORAGE_BACKEND") or "local",
        "session_count": session_manager().get_session_count(),
        "default_users": current_app.extensions["cms_default_users"],
        "decorator_config": cfg.get("CMS_DECORATOR_CONFIG") or None,
    }
    return render_template("admin/index.html", system_status=status)


@bp.get("/me")
@require_permission("admin.view")
def me():
    user = getattr(g, "current_user", None)
    role_keys: list[str] = []
    perm_keys: list[str] = []
    if user:
        role_keys = sorted({r.key for r in (user.roles or [])})
        perms = set()
        for r in user.roles or []:
            for p in r.permissions or []:
                perms.add(p.key)
        perm_keys = sorted(perms)
    return render_template("admin/me.html", user=user, role_keys=role_keys, perm_keys=perm_keys)


@bp.get("/sessions")
@require_permission("sessions.view")
def sessions_list():
    manager = session_manager()
    manager.validate_sessions()
    return render_template("admin/sessions.html", sessions=manager.get_session_infos())


@bp.get("/audit")
@require_permission("admin.view")
def audit_list():
    """
    Minimal audit trail UI (last 200 events) with simple filters:
    - action (contains)
    - actor_name (contains)
    - date range (YYYY-MM-DD)
    """
    s = db_session()
    action = (request.args.get("action") or "").strip()
    actor_name = (request.args.get("actor_name") or "").strip()
    date_from = _parse_date(request.args.get("date_from") or "")
    date_to = _parse_date(request.args.get("date_to") or "")

    if (request.args.get("date_from") or "").strip() and not date_from:
        flash("date_from must be YYYY-MM-DD", "danger")
    if (request.args.get("date_to") or "").strip() and not date_to:
        flash("date_to must be YYYY-MM-DD", "danger")

    q = s.query(AuditEvent)
    if action:
        q = q.filter(AuditEvent.action.like(f"%{action}%"))
    if actor_name:
        q = q.filter(AuditEvent.actor_user_name.like(f"%{actor_name}%"))
    if date_from:
        q = q.filter(AuditEvent.created_at >= datetime.combine(date_from, time.min))
    if date_to:
        # inclusive end-date (treat as whole day)
        q = q.filter(AuditEvent.created_at < datetime.combine(date_to + timedelta(days=1), time.min))

    events = q.order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc()).limit(200).all()
    return render_template(
        "admin/audit/list.html",
        events=events,
        action=action,
        actor_name=actor_name,
        date_from=(request.args.get("date_from") or "").strip(),
        date_to=(request.args.get("date_to") or "").strip(),
    )
