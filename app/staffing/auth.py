from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import datetime, timedelta

from flask import Blueprint, current_app, flash, g, redirect, render_template, request, session, url_for
from sqlalchemy import func
from werkzeug.security import check_password_hash, generate_password_hash

from app.staffing.audit import record_event
from app.staffing.db import db_session
from app.staffing.i18n import translate
from app.staffing.models import User

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


def verify_password(user: User, password: str) -> bool:
    if not user.password_hash:
        return False
    return check_password_hash(user.password_hash, password)


def set_password(user: User, password: str) -> None:
    user.password_hash = generate_password_hash(password)


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

    s = db_session()
    user = s.get(User, int(user_id))
    if not user or not user.is_active:
        session.pop("user_id", None)
        g.current_user = None
        return
    g.current_user = user


@bp.get("/login")
def login_get():
    nxt = (request.args.get("next") or "").strip()
    return render_template("auth/login.html", next=nxt, title=translate("auth.login"))


@bp.post("/login")
def login_post():
    login = (request.form.get("login") or request.form.get("email") or "").strip()
    password = request.form.get("password") or ""
    nxt = (request.form.get("next") or "").strip()
    ip = request.remote_addr or "unknown"

    if _check_rate_limit(ip):
        flash(translate("auth.rate_limited"), "danger")
        return redirect(url_for("auth.login_get"))

    _record_attempt(ip)

    s = db_session()
    user = (
        s.query(User)
        .filter((func.lower(User.email) == login.lower()) | (User.name == login))
        .one_or_none()
    )
    if not user or not user.is_active or not verify_password(user, password):
        current_app.logger.info("Login failed (login=%s request_id=%s)", login, getattr(g, "request_id", None))
        flash(translate("auth.invalid"), "danger")
        return redirect(url_for("auth.login_get"))

    session["user_id"] = user.id
    session["locale"] = user.settings.language if user.settings else None
    _login_attempts[ip].clear()
    record_event(
        s,
        actor=user,
        action="auth.login",
        message=f"User {user.name} logged in.",
        entity_type="User",
        entity_id=str(user.id),
    )
    s.commit()
    # Optional "next" redirect (only allow local paths to avoid open redirects).
    if nxt.startswith("/") and not nxt.startswith("//"):
        return redirect(nxt)
    return redirect(url_for("angeltypes.angeltypes_list"))


@bp.get("/logout")
def logout():
    user = getattr(g, "current_user", None)
    if user:
        s = db_session()
        record_event(
            s,
            actor=user,
            action="auth.logout",
            message=f"User {user.name} logged out.",
            entity_type="User",
            entity_id=str(user.id),
        )
        s.commit()
    session.pop("user_id", None)
    session.pop("locale", None)
    return redirect(url_for("routes.index"))
