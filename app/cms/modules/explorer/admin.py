from __future__ import annotations

from flask import Blueprint, current_app, g, request

from app.cms.modules.explorer.menu import (
    LockType,
    MenuContext,
    MenuRule,
    ProjectState,
    ResourceInfo,
    ResourceState,
)
from app.cms.rbac import require_permission

bp = Blueprint("explorer", __name__)


def _flag(name: str, default: bool) -> bool:
    raw = (request.args.get(name) or "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def _resource_from_args() -> ResourceInfo:
    """
    Build the selected resource from query args:
    path, state (U/C/N/D), inside_project, project_locked, locked_by, lock_type.
    """
    state = (request.args.get("state") or "U").strip().upper()
    lock_type = (request.args.get("lock_type") or "").strip().lower()
    locked_by = (request.args.get("locked_by") or "").strip() or None
    return ResourceInfo(
        path=(request.args.get("path") or "/").strip(),
        state=ResourceState(state),
        inside_project=_flag("inside_project", True),
        project_state=ProjectState.LOCKED_FOR_PUBLISHING if _flag("project_locked", False) else ProjectState.UNLOCKED,
        locked_by_name=locked_by,
        lock_type=LockType(lock_type) if lock_type else (LockType.EXCLUSIVE if locked_by else LockType.UNLOCKED),
    )


@bp.get("/explorer/menu")
@require_permission("admin.view", api=True)
def menu_visibility():
    """Visibility of every configured menu rule for one resource, as JSON."""
    try:
        resource = _resource_from_args()
    except ValueError as e:
        return {"error": {"code": "BAD_REQUEST", "message": str(e)}}, 400

    ctx = MenuContext(
        user_name=g.current_user.name,
        auto_lock_resources=bool(current_app.config.get("CMS_AUTO_LOCK", True)),
    )
    rules: dict[str, MenuRule] = current_app.extensions["cms_menu_rules"]
    wanted = request.args.get("rule")
    result = {}
    for name, rule in sorted(rules.items()):
        if wanted and name != wanted:
            continue
        matched = rule.matching_rule(ctx, [resource])
        mode = rule.get_visibility(ctx, [resource])
        result[name] = {
            "mode": mode.mode,
            "message_key": mode.message_key,
            "matched": matched.name if matched else None,
        }
    if wanted and not result:
        return {"error": {"code": "NOT_FOUND", "message": f"Unknown menu rule: {wanted}"}}, 404
    return {"resource": resource.path, "state": resource.state_abbreviation, "rules": result}
