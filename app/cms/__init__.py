import logging
import os
from datetime import timedelta

from flask import Flask, g, render_template, request, session
from markupsafe import Markup, escape
from dotenv import load_dotenv
from sqlalchemy import inspect as sa_inspect

from app.cms.config import load_config
from app.cms.db import init_db, teardown_db_session
from app.cms.default_users import DefaultUsers
from app.cms.errors import CmsError
from app.cms.routes import bp as routes_bp
from app.cms.auth import bp as auth_bp, load_current_user
from app.cms.admin import bp as admin_bp
from app.cms.modules.datatypes.admin import bp as datatypes_bp
from app.cms.modules.explorer.admin import bp as explorer_bp
from app.cms.modules.explorer.menu import menu_rules
from app.cms.modules.sitemap.rpc import bp as sitemap_rpc_bp
from app.cms.sessions import AuthorizationHandler, SessionManager
from app.cms.utils import configure_logging

logger = logging.getLogger(__name__)

REQUIRED_TABLES = ("users", "roles", "permissions", "audit_events", "extension_mappings", "sitemap_entries")


def _init_decorator(app: Flask) -> None:
    """
    Load the text decoration configuration (if configured) and expose it as
    the `decorate` template filter.
    """
    from app.cms.modules.decorator.html import HtmlDecorator
    from app.cms.modules.decorator.service import DecoratorConfiguration
    from app.cms.storage import StorageError, storage_from_config

    config_file = app.config.get("CMS_DECORATOR_CONFIG")
    decorator = None
    if config_file:
        try:
            configuration = DecoratorConfiguration(storage_from_config(app.config), config_file)
            decorator = HtmlDecorator(configuration)
        except (CmsError, StorageError) as e:
            app.logger.error("DECORATOR CONFIG ERROR: cannot load %s: %s", config_file, e)
    app.extensions["cms_decorator"] = decorator

    @app.template_filter("decorate")
    def _decorate_filter(value):
        d = app.extensions.get("cms_decorator")
        if d is None or not value:
            return value
        # decorations are markup; the input text is escaped first
        return Markup(d.decorate(str(escape(value))))


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__, template_folder="templates", static_folder="static")
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(seconds=app.config["CMS_SESSION_MAX_INACTIVE"])
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True

    env = (app.config.get("ENV") or "").strip().lower()
    if env != "test":
        configure_logging(app.config.get("LOG_LEVEL") or "INFO")

    # Production guardrails (fail fast with clear logs)
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    # Raises CmsRuntimeError when a configured default user/group name is empty.
    default_users = DefaultUsers.from_config(app.config)
    session_manager = SessionManager()
    app.extensions["cms_default_users"] = default_users
    app.extensions["cms_session_manager"] = session_manager
    app.extensions["cms_authorization_handler"] = AuthorizationHandler(
        session_manager,
        default_users,
        app.config["CMS_SESSION_MAX_INACTIVE"],
    )
    app.extensions["cms_menu_rules"] = menu_rules()

    from app.cms.security import ensure_csrf_token, validate_csrf

    @app.context_processor
    def _inject_csrf() -> dict:
        return {"csrf_token": ensure_csrf_token()}

    @app.context_processor
    def _inject_permissions() -> dict:
        from app.cms.rbac import user_has_permission

        def has_perm(key: str) -> bool:
            return user_has_permission(getattr(g, "current_user", None), key)

        return {"has_perm": has_perm}

    @app.template_filter("dateformat")
    def _dateformat_filter(value, format: str = "%Y-%m-%d %H:%M") -> str:
        if value is None:
            return "-"
        if hasattr(value, "strftime"):
            return value.strftime(format)
        return str(value)

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(("/static/", "/health", "/healthz")):
            return None
        ensure_csrf_token()
        session.permanent = True
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            # Allow safe auth endpoints to pass through (login/logout)
            if (request.endpoint or "").startswith("auth."):
                return None
            if not validate_csrf(request):
                if request.path.startswith("/rpc/"):
                    return {"error": {"code": "CSRF", "message": "CSRF token missing or invalid."}}, 400
                return render_template("errors/400.html", message="CSRF token missing or invalid."), 400

    init_db(app)
    _init_decorator(app)

    def _dispose_engine_on_fork() -> None:
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                manager = app.extensions.get("cms_sql_manager")
                if manager:
                    manager.dispose()
                    app.logger.info("Disposed DB engines after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(admin_bp, url_prefix="/admin")
    app.register_blueprint(datatypes_bp, url_prefix="/admin")
    app.register_blueprint(explorer_bp, url_prefix="/admin")
    app.register_blueprint(sitemap_rpc_bp, url_prefix="/rpc")

    def _load_user_wrapper():
        if request.path.startswith(("/static/", "/health", "/healthz")):
            g.current_user = None
            return None
        return load_current_user()

    app.before_request(_load_user_wrapper)
    app.teardown_appcontext(teardown_db_session)

    # Schema health: checked lazily on the first admin request, so that
    # `alembic upgrade` / create_all can run after the app is built.
    app.config.setdefault("_schema_health_ok", None)
    app.config.setdefault("_schema_health_missing", [])

    def _run_schema_health_check() -> bool:
        missing: list[str] = []
        try:
            insp = sa_inspect(app.extensions["sqlalchemy_engine"])
            missing = [f"{t} (table)" for t in REQUIRED_TABLES if not insp.has_table(t)]
        except Exception as e:
            app.logger.exception("Schema health check failed: %s", e)
            return True
        if missing:
            app.config["_schema_health_missing"] = missing
            app.logger.error("DB schema out of date; run `alembic upgrade head`. Missing: %s", ", ".join(missing))
        return not missing

    @app.before_request
    def _schema_health_guardrail():  # type: ignore[no-redef]
        if not request.path.startswith("/admin"):
            return None
        if app.config.get("_schema_health_ok") is None:
            app.config["_schema_health_ok"] = _run_schema_health_check()
        if app.config.get("_schema_health_ok"):
            return None
        if getattr(g, "current_user", None):
            return render_template("errors/schema_out_of_date.html", missing=app.config.get("_schema_health_missing") or []), 500
        return None

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return render_template("errors/500.html"), 500

    @app.errorhandler(404)
    def _err_404(e):  # type: ignore[no-redef]
        if request.path.startswith("/rpc/"):
            return {"error": {"code": "NOT_FOUND", "message": "Route not found"}}, 404
        return render_template("errors/404.html"), 404

    @app.errorhandler(403)
    def _err_403(e):  # type: ignore[no-redef]
        missing = getattr(g, "missing_permission", None)
        if missing:
            app.logger.warning("Forbidden: missing_permission=%s request_id=%s", missing, getattr(g, "request_id", None))
        return render_template("errors/403.html", missing_permission=missing), 403

    logger.info("create_app() complete; app ready to serve")

    return app
