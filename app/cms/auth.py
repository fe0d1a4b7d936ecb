from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import datetime, timedelta

from flask import Blueprint, current_app, flash, g, redirect, render_template, request, session, url_for
from werkzeug.security import check_password_hash

from app.cms.audit import record_event
from app.cms.db import db_session
from app.cms.models import User
from app.cms.sessions import AuthorizationHandler, RequestContext, SessionManager

bp = Blueprint("auth", __name__)
_login_attempts: dict[str, list[datetime]] = defaultdict(list)
_LOGIN_RATE_LIMIT = 5
_LOGIN_RATE_WINDOW = 300  # seconds


def _check_rate_limit(ip: str) -> bool:
    now = datetime.utcnow()
    cutoff = now - timedelta(seconds=_LOGIN_RATE_WINDOW)
    _login_attempts[ip] = [t for t in _login_attempts[ip] if t > cutoff]
    return len(_login_attempts[ip]) >= _LOGIN_RATE_LIMIT


def _record_attempt(ip: str) -> None:
    _login_attempts[ip].append(datetime.utcnow())


def authorization_handler() -> AuthorizationHandler:
    return current_app.extensions["cms_authorization_handler"]


def session_manager() -> SessionManager:
    return current_app.extensions["cms_session_manager"]


def current_request_context() -> RequestContext:
    """Request context for the current user; anonymous requests run as the guest user."""
    user: User | None = getattr(g, "current_user", None)
    default_users = current_app.extensions["cms_default_users"]
    return RequestContext(
        user_name=user.name if user else default_users.user_guest,
        project=session.get("cms_project") or "Online",
        site_root=session.get("cms_site_root") or "/",
        locale=(request.accept_languages.best_match(["en", "de"]) or "en"),
        remote_addr=request.remote_addr,
        session_id=session.get("cms_session_id"),
    )


def load_current_user() -> None:
    """
    Loads g.current_user from the signed session cookie.
    Also assigns a simple per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    if request.path.startswith(("/static/", "/health", "/healthz")):
        g.current_user = None
        return

    user_id = session.get("user_id")
    if not user_id:
        g.current_user = None
        return

    try:
        s = db_session()
        user = s.get(User, int(user_id))
        if not user or not user.is_active:
            session.pop("user_id", None)
            session_manager().remove_session(session.pop("cms_session_id", None))
            g.current_user = None
            return
        g.current_user = user
    except Exception as e:
        current_app.logger.error("load_current_user DB error (clearing session): %s", e)
        session.pop("user_id", None)
        g.current_user = None
        return

    sid = session.get("cms_session_id")
    if sid and session_manager().update_session_info(sid) is None:
        # registry entry expired or the process restarted
        ctx = authorization_handler().register_session(current_request_context())
        session["cms_session_id"] = ctx.session_id


@bp.get("/login")
def login_get():
    nxt = (request.args.get("next") or "").strip()
    return render_template("auth/login.html", next=nxt)


@bp.post("/login")
def login_post():
    name = (request.form.get("name") or "").strip()
    password = request.form.get("password") or ""
    nxt = (request.form.get("next") or "").strip()
    ip = request.remote_addr or "unknown"

    if _check_rate_limit(ip):
        flash("Too many login attempts. Please wait 5 minutes.", "danger")
        return redirect(url_for("auth.login_get"))

    _record_attempt(ip)

    try:
        s = db_session()
        user = s.query(User).filter(User.name == name).one_or_none()
        if not user or not user.is_active or not check_password_hash(user.password_hash, password):
            record_event(
                s,
                actor=None,
                action="auth.login_failed",
                entity_type="User",
                entity_id=name,
                reason="Invalid credentials",
                metadata={"name": name},
            )
            s.commit()
            flash("Invalid credentials.", "danger")
            return redirect(url_for("auth.login_get"))

        session["user_id"] = user.id
        g.current_user = user
        _login_attempts[ip].clear()

        # register the session with the CMS, only for 'real' users;
        # a previous login in this browser is replaced
        session_manager().remove_session(session.pop("cms_session_id", None))
        ctx =authorization_handler().register_session(current_request_context())
        if ctx.session_id:
            session["cms_session_id"] = ctx.session_id
        else:
            session.pop("cms_session_id", None)

        record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=str(user.id))
        s.commit()
        # Optional "next" redirect (only allow local paths to avoid open redirects).
        if nxt.startswith("/") and not nxt.startswith("//"):
            return redirect(nxt)
        return redirect(url_for("admin.index"))
    except Exception:
        current_app.logger.exception("Login POST crashed (name=%s request_id=%s)", name, getattr(g, "request_id", None))
        raise


@bp.get("/logout")
def logout():
    s = db_session()
    user = getattr(g, "current_user", None)
    if user:
        record_event(s, actor=user, action="auth.logout", entity_type="User", entity_id=str(user.id))
        s.commit()
    session_manager().remove_session(session.pop("cms_session_id", None))
    session.pop("user_id", None)
    return redirect(url_for("routes.index"))
