from __future__ import annotations

from flask import Blueprint, flash, g, redirect, render_template, request, url_for

from app.staffing.constants import (
    FIELD_AUTO_CONFIRM,
    FIELD_CONFIRM_ALL,
    FIELD_CONFIRM_USER,
    FIELD_DELETE,
    FIELD_DENY_ALL,
    FIELD_SUBMIT,
    PERM_ADMIN_ANGEL_TYPES,
    PERM_ADMIN_USER_ANGELTYPES,
)
from app.staffing.db import db_session
from app.staffing.errors import UserFacingError
from app.staffing.i18n import translate
from app.staffing.models import User
from app.staffing.modules.angeltypes import service
from app.staffing.modules.angeltypes.models import AngelType
from app.staffing.rbac import is_angeltype_supporter, login_required, user_has_permission

bp = Blueprint("angeltypes", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _posted(field: str) -> bool:
    """True when this request is the apply phase of a two-phase action."""
    return request.method == "POST" and field in request.form


def _list_redirect():
    return redirect(url_for("angeltypes.angeltypes_list"))


def _finish(result: service.ActionResult):
    db_session().commit()
    flash(result.message, "success")
    service.send_notifications(result)
    return redirect(url_for("angeltypes.angeltype_detail", angeltype_id=result.angeltype.id))


def _confirm_page(title: str, question: str, field: str, **hidden):
    return render_template(
        "user_angeltypes/confirm.html",
        title=title,
        question=question,
        field=field,
        hidden=hidden,
    )


@bp.errorhandler(UserFacingError)
def _user_facing_error(e: UserFacingError):
    flash(e.message, "danger")
    return _list_redirect()


# ---------- List / detail ----------
@bp.get("/angeltypes")
@login_required
def angeltypes_list():
    s = db_session()
    u = _current_user()
    angeltypes = s.query(AngelType).order_by(AngelType.name.asc()).all()
    return render_template(
        "angeltypes/list.html",
        title=translate("angeltypes.title"),
        angeltypes=[(at, service.membership_state(u, at)) for at in angeltypes],
        hint=service.unconfirmed_hint(s, u),
    )


@bp.get("/angeltypes/<int:angeltype_id>")
@login_required
def angeltype_detail(angeltype_id: int):
    s = db_session()
    u = _current_user()
    angeltype = service.get_angeltype(s, angeltype_id)
    return render_template(
        "angeltypes/detail.html",
        title=angeltype.name,
        angeltype=angeltype,
        groups=service.members_by_state(angeltype),
        state=service.membership_state(u, angeltype),
        is_supporter=is_angeltype_supporter(u, angeltype),
        can_confirm_all=user_has_permission(u, PERM_ADMIN_USER_ANGELTYPES),
        can_set_supporter=user_has_permission(u, PERM_ADMIN_ANGEL_TYPES),
    )


# ---------- Membership actions ----------
def delete_all_action():
    s = db_session()
    u = _current_user()
    angeltype = service.authorize_deny_all(s, u, service.parse_id(request.values.get("angeltype_id")))
    if _posted(FIELD_DENY_ALL):
        return _finish(service.deny_all(s, u, angeltype))
    return _confirm_page(
        translate("angeltype.delete_all.title"),
        translate("angeltype.delete_all.question", angeltype=angeltype.name),
        FIELD_DENY_ALL,
        action="delete_all",
        angeltype_id=angeltype.id,
    )


def confirm_all_action():
    s = db_session()
    u = _current_user()
    angeltype = service.authorize_confirm_all(s, u, service.parse_id(request.values.get("angeltype_id")))
    if _posted(FIELD_CONFIRM_ALL):
        return _finish(service.confirm_all(s, u, angeltype))
    return _confirm_page(
        translate("angeltype.confirm_all.title"),
        translate("angeltype.confirm_all.question", angeltype=angeltype.name),
        FIELD_CONFIRM_ALL,
        action="confirm_all",
        angeltype_id=angeltype.id,
    )


def confirm_action():
    s = db_session()
    u = _current_user()
    m = service.authorize_confirm(s, u, service.parse_id(request.values.get("user_angeltype_id")))
    if _posted(FIELD_CONFIRM_USER):
        return _finish(service.confirm(s, u, m))
    return _confirm_page(
        translate("user_angeltype.confirm.title"),
        translate("user_angeltype.confirm.question", user=m.user.name, angeltype=m.angeltype.name),
        FIELD_CONFIRM_USER,
        action="confirm",
        user_angeltype_id=m.user_angeltype.id,
    )


def delete_action():
    s = db_session()
    u = _current_user()
    m = service.authorize_delete(s, u, service.parse_id(request.values.get("user_angeltype_id")))
    if _posted(FIELD_DELETE):
        return _finish(service.delete(s, u, m))
    return _confirm_page(
        translate("user_angeltype.delete.title"),
        translate("user_angeltype.delete.question", user=m.user.name, angeltype=m.angeltype.name),
        FIELD_DELETE,
        action="delete",
        user_angeltype_id=m.user_angeltype.id,
    )


def update_action():
    s = db_session()
    u = _current_user()
    m, supporter = service.authorize_update(
        s,
        u,
        service.parse_id(request.values.get("user_angeltype_id")),
        request.values.get("supporter"),
    )
    if _posted(FIELD_SUBMIT):
        return _finish(service.update_supporter(s, u, m, supporter))
    kind = "add" if supporter else "remove"
    return _confirm_page(
        translate(f"user_angeltype.supporter.{kind}_title"),
        translate(f"user_angeltype.supporter.{kind}_question", angeltype=m.angeltype.name, user=m.user.name),
        FIELD_SUBMIT,
        action="update",
        user_angeltype_id=m.user_angeltype.id,
        supporter="1" if supporter else "0",
    )


def add_action():
    s = db_session()
    u = _current_user()
    angeltype = service.get_angeltype(s, service.parse_id(request.values.get("angeltype_id")))

    if not is_angeltype_supporter(u, angeltype):
        return _join(angeltype)

    selected_user_id = u.id
    if _posted(FIELD_SUBMIT):
        target = service.get_user(s, service.parse_id(request.form.get("user_id")))
        selected_user_id = target.id
        if service.membership_for(s, target, angeltype) is None:
            return _finish(service.add_user(s, u, angeltype, target, FIELD_AUTO_CONFIRM in request.form))
        flash(translate("user_angeltype.add.exists", user=target.name, angeltype=angeltype.name), "danger")

    return render_template(
        "user_angeltypes/add.html",
        title=translate("user_angeltype.add.title"),
        angeltype=angeltype,
        users=service.add_candidates(s, angeltype),
        selected_user_id=selected_user_id,
    )


def _join(angeltype: AngelType):
    s = db_session()
    u = _current_user()
    service.authorize_join(s, u, angeltype)
    if _posted(FIELD_SUBMIT):
        return _finish(service.join(s, u, angeltype, FIELD_AUTO_CONFIRM in request.form))
    return render_template(
        "user_angeltypes/join.html",
        title=translate("user_angeltype.join.title", angeltype=angeltype.name),
        angeltype=angeltype,
        can_auto_confirm=user_has_permission(u, PERM_ADMIN_USER_ANGELTYPES),
    )


_ACTIONS = {
    "delete_all": delete_all_action,
    "confirm_all": confirm_all_action,
    "confirm": confirm_action,
    "delete": delete_action,
    "update": update_action,
    "add": add_action,
}


@bp.route("/user-angeltypes", methods=["GET", "POST"])
@login_required
def user_angeltypes():
    handler = _ACTIONS.get(request.values.get("action") or "")
    if handler is None:
        return _list_redirect()
    return handler()
