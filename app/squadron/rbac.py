from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import g, redirect, request, url_for

from app.squadron.errors import UnauthenticatedError, UnauthorizedError
from app.squadron.models import Role, User

API_PREFIX = "/api/"
ADMIN_PATH_PREFIXES = ("/admin", "/api/admin")


def is_api_request() -> bool:
    return request.path.startswith(API_PREFIX)


def current_user() -> User:
    u: User | None = getattr(g, "current_user", None)
    if not u:
        raise UnauthenticatedError("Unauthorized.")
    return u


def user_has_role(user: User | None, role: Role) -> bool:
    if not user or not user.is_active:
        return False
    if role == Role.USER:
        # Every active account holds the base role.
        return True
    return user.role == role


def _login_redirect():
    nxt = request.full_path or request.path
    # Avoid trailing '?' from full_path when there is no query string.
    if nxt.endswith("?"):
        nxt = nxt[:-1]
    return redirect(url_for("auth.login_get", next=nxt))


def _check(role: Role):
    """
    Returns a response to short-circuit with, or None when the caller may proceed.
    Pages redirect anonymous users to the login form; the JSON API gets a 401.
    """
    user: User | None = getattr(g, "current_user", None)
    if not user or not user.is_active:
        if is_api_request():
            raise UnauthenticatedError("Unauthorized.")
        return _login_redirect()
    if not user_has_role(user, role):
        g.missing_role = role.value
        raise UnauthorizedError("You do not have permission to perform this action.")
    return None


def require_role(role: Role) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            early = _check(role)
            if early is not None:
                return early
            return fn(*args, **kwargs)

        return wrapped

    return decorator


require_login = require_role(Role.USER)
require_admin = require_role(Role.ADMIN)


def admin_path_gate():
    """
    before_request hook: everything under /admin and /api/admin is ADMIN-only,
    regardless of what the individual handler declares.
    """
    path = request.path
    if not any(path == p or path.startswith(p + "/") for p in ADMIN_PATH_PREFIXES):
        return None
    return _check(Role.ADMIN)
