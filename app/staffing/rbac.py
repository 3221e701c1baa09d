from __future__ import annotations

from collections.abc import Callable
from functools import wraps
from typing import TYPE_CHECKING, Any

from flask import g, redirect, request, url_for

from app.staffing.models import User

if TYPE_CHECKING:
    from app.staffing.modules.angeltypes.models import AngelType


def user_has_permission(user: User | None, permission_key: str) -> bool:
    if not user or not user.is_active:
        return False
    for role in user.roles:
        for perm in role.permissions:
            if perm.key == permission_key:
                return True
    return False


def is_angeltype_supporter(user: User | None, angeltype: "AngelType") -> bool:
    """True if `user` holds supporter rights on this specific angel type."""
    if not user or not user.is_active:
        return False
    return any(m.angeltype_id == angeltype.id and m.supporter for m in user.angeltype_memberships)


def _login_redirect():
    nxt = request.full_path or request.path
    # Avoid trailing '?' from full_path when there is no query string.
    if nxt.endswith("?"):
        nxt = nxt[:-1]
    return redirect(url_for("auth.login_get", next=nxt))


def login_required(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        user: User | None = getattr(g, "current_user", None)
        if not user or not user.is_active:
            return _login_redirect()
        return fn(*args, **kwargs)

    return wrapped

