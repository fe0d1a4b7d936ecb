from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import abort, g, redirect, request, url_for

from app.cms.models import User


def user_has_permission(user: User | None, permission_key: str) -> bool:
    if not user or not user.is_active:
        return False
    for role in user.roles:
        for perm in role.permissions:
            if perm.key == permission_key:
                return True
    return False


def require_permission(permission_key: str, *, api: bool = False) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Guard a view. Pages redirect anonymous users to the login form; API views
    (`api=True`) answer with a JSON 401 instead.
    """

    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user: User | None = getattr(g, "current_user", None)
            if not user or not user.is_active:
                if api:
                    return {"error": {"code": "UNAUTHORIZED", "message": "Login required."}}, 401
                nxt = request.full_path or request.path
                # Avoid trailing '?' from full_path when there is no query string.
                if nxt.endswith("?"):
                    nxt = nxt[:-1]
                return redirect(url_for("auth.login_get", next=nxt))
            if not user_has_permission(user, permission_key):
                g.missing_permission = permission_key
                if api:
                    return {"error": {"code": "FORBIDDEN", "message": f"Missing permission {permission_key}."}}, 403
                abort(403)
            return fn(*args, **kwargs)

        return wrapped

    return decorator
