from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from app.staffing.audit import record_event
from app.staffing.constants import PERM_ADMIN_ANGEL_TYPES, PERM_ADMIN_USER_ANGELTYPES
from app.staffing.errors import UserFacingError
from app.staffing.i18n import translate
from app.staffing.mail import MailTransportError, send_translated
from app.staffing.models import User
from app.staffing.modules.angeltypes.models import AngelType, UserAngelType
from app.staffing.rbac import is_angeltype_supporter, user_has_permission

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

# notification kind -> (subject message id, mail template)
NOTIFICATIONS = {
    "confirmed": ("notification.angeltype.confirmed", "angeltype_confirmed"),
    "added": ("notification.angeltype.added", "angeltype_added"),
}


@dataclass(frozen=True)
class Membership:
    """A UserAngelType resolved together with its angel type and member."""

    user_angeltype: UserAngelType
    angeltype: AngelType
    user: User


@dataclass
class ActionResult:
    message: str
    angeltype: AngelType
    notify: list[User] = field(default_factory=list)
    notification: str | None = None


def parse_id(raw: Any) -> int | None:
    if raw is None:
        return None
    try:
        return int(str(raw).strip())
    except ValueError:
        return None


# ---------- Lookups ----------
def get_angeltype(s: "Session", angeltype_id: int | None) -> AngelType:
    angeltype = s.get(AngelType, angeltype_id) if angeltype_id is not None else None
    if angeltype is None:
        raise UserFacingError(translate("angeltype.not_found"))
    return angeltype


def get_user(s: "Session", user_id: int | None) -> User:
    user = s.get(User, user_id) if user_id is not None else None
    if user is None:
        raise UserFacingError(translate("user.not_found"))
    return user


def get_membership(s: "Session", user_angeltype_id: int | None) -> Membership:
    ua = s.get(UserAngelType, user_angeltype_id) if user_angeltype_id is not None else None
    if ua is None:
        raise UserFacingError(translate("user_angeltype.not_found"))
    angeltype = get_angeltype(s, ua.angeltype_id)
    user = get_user(s, ua.user_id)
    return Membership(user_angeltype=ua, angeltype=angeltype, user=user)


def membership_for(s: "Session", user: User, angeltype: AngelType) -> UserAngelType | None:
    return (
        s.query(UserAngelType)
        .filter(UserAngelType.user_id == user.id)
        .filter(UserAngelType.angeltype_id == angeltype.id)
        .one_or_none()
    )


def unconfirmed_memberships(s: "Session", angeltype: AngelType) -> list[UserAngelType]:
    return (
        s.query(UserAngelType)
        .filter(UserAngelType.angeltype_id == angeltype.id)
        .filter(UserAngelType.confirm_user_id.is_(None))
        .order_by(UserAngelType.id.asc())
        .all()
    )


def add_candidates(s: "Session", angeltype: AngelType) -> list[User]:
    """Active users that have no membership row for this angel type yet."""
    member_ids = select(UserAngelType.user_id).where(UserAngelType.angeltype_id == angeltype.id)
    return (
        s.query(User)
        .filter(User.is_active.is_(True))
        .filter(~User.id.in_(member_ids))
        .order_by(User.name.asc())
        .all()
    )


def membership_state(user: User, angeltype: AngelType) -> str:
    for m in user.angeltype_memberships:
        if m.angeltype_id != angeltype.id:
            continue
        if m.supporter:
            return "supporter"
        return "member" if m.confirmed else "unconfirmed"
    return "none"


def members_by_state(angeltype: AngelType) -> dict[str, list[UserAngelType]]:
    groups: dict[str, list[UserAngelType]] = {"supporters": [], "members": [], "unconfirmed": []}
    for m in sorted(angeltype.memberships, key=lambda m: m.user.name.lower()):
        if m.supporter:
            groups["supporters"].append(m)
        elif m.confirmed:
            groups["members"].append(m)
        else:
            groups["unconfirmed"].append(m)
    return groups


def unconfirmed_angeltypes(s: "Session", actor: User) -> list[tuple[AngelType, int]]:
    """Restricted angel types supported by `actor` with pending members, and the pending count."""
    supported = (
        select(UserAngelType.angeltype_id)
        .where(UserAngelType.user_id == actor.id)
        .where(UserAngelType.supporter.is_(True))
    )
    rows = (
        s.query(AngelType, func.count(UserAngelType.id))
        .join(UserAngelType, UserAngelType.angeltype_id == AngelType.id)
        .filter(AngelType.restricted.is_(True))
        .filter(AngelType.id.in_(supported))
        .filter(UserAngelType.confirm_user_id.is_(None))
        .group_by(AngelType.id)
        .order_by(AngelType.name.asc())
        .all()
    )
    return [(angeltype, count) for angeltype, count in rows]


def unconfirmed_hint(s: "Session", actor: User) -> tuple[str, list[tuple[AngelType, int]]] | None:
    pending = unconfirmed_angeltypes(s, actor)
    if not pending:
        return None
    text = translate("angeltypes.unconfirmed_hint", count=len(pending)) + " " + translate("angeltypes.need_approval")
    return text, pending


# ---------- Deny all ----------
def authorize_deny_all(s: "Session", actor: User, angeltype_id: int | None) -> AngelType:
    angeltype = get_angeltype(s, angeltype_id)
    if not is_angeltype_supporter(actor, angeltype):
        raise UserFacingError(translate("angeltype.delete_all.forbidden"))
    return angeltype


def deny_all(s: "Session", actor: User, angeltype: AngelType) -> ActionResult:
    pending = unconfirmed_memberships(s, angeltype)
    denied_user_ids = [ua.user_id for ua in pending]
    for ua in pending:
        s.delete(ua)

    record_event(
        s,
        actor=actor,
        action="angeltype.deny_all",
        message=f"Denied all users for angeltype {angeltype.name}",
        entity_type="AngelType",
        entity_id=str(angeltype.id),
        metadata={"user_ids": denied_user_ids},
    )
    return ActionResult(
        message=translate("angeltype.delete_all.success", angeltype=angeltype.name),
        angeltype=angeltype,
    )


# ---------- Confirm all ----------
def authorize_confirm_all(s: "Session", actor: User, angeltype_id: int | None) -> AngelType:
    angeltype = get_angeltype(s, angeltype_id)
    if not user_has_permission(actor, PERM_ADMIN_USER_ANGELTYPES) and not is_angeltype_supporter(actor, angeltype):
        raise UserFacingError(translate("angeltype.confirm_all.forbidden"))
    return angeltype


def confirm_all(s: "Session", actor: User, angeltype: AngelType) -> ActionResult:
    pending = unconfirmed_memberships(s, angeltype)
    for ua in pending:
        ua.confirm_user_id = actor.id

    record_event(
        s,
        actor=actor,
        action="angeltype.confirm_all",
        message=f"Confirmed all users for angeltype {angeltype.name}",
        entity_type="AngelType",
        entity_id=str(angeltype.id),
        metadata={"user_ids": [ua.user_id for ua in pending]},
    )
    return ActionResult(
        message=translate("angeltype.confirm_all.success", angeltype=angeltype.name),
        angeltype=angeltype,
        notify=[ua.user for ua in pending],
        notification="confirmed",
    )


# ---------- Confirm ----------
def authorize_confirm(s: "Session", actor: User, user_angeltype_id: int | None) -> Membership:
    m = get_membership(s, user_angeltype_id)
    if not is_angeltype_supporter(actor, m.angeltype):
        raise UserFacingError(translate("user_angeltype.confirm.forbidden"))
    return m


def confirm(s: "Session", actor: User, m: Membership) -> ActionResult:
    m.user_angeltype.confirm_user_id = actor.id

    record_event(
        s,
        actor=actor,
        action="user_angeltype.confirm",
        message=f"{m.user.name} confirmed for angeltype {m.angeltype.name}",
        entity_type="UserAngelType",
        entity_id=str(m.user_angeltype.id),
    )
    return ActionResult(
        message=translate("user_angeltype.confirm.success", user=m.user.name, angeltype=m.angeltype.name),
        angeltype=m.angeltype,
        notify=[m.user],
        notification="confirmed",
    )


# ---------- Delete ----------
def authorize_delete(s: "Session", actor: User, user_angeltype_id: int | None) -> Membership:
    m = get_membership(s, user_angeltype_id)
    if actor.id != m.user.id and not is_angeltype_supporter(actor, m.angeltype):
        raise UserFacingError(translate("user_angeltype.delete.forbidden"))
    return m


def delete(s: "Session", actor: User, m: Membership) -> ActionResult:
    entity_id = str(m.user_angeltype.id)
    s.delete(m.user_angeltype)

    record_event(
        s,
        actor=actor,
        action="user_angeltype.delete",
        message=f"User {m.user.name} removed from {m.angeltype.name}.",
        entity_type="UserAngelType",
        entity_id=entity_id,
    )
    return ActionResult(
        message=translate("user_angeltype.delete.success", user=m.user.name, angeltype=m.angeltype.name),
        angeltype=m.angeltype,
    )


# ---------- Supporter rights ----------
def authorize_update(
    s: "Session", actor: User, user_angeltype_id: int | None, supporter_raw: str | None
) -> tuple[Membership, bool]:
    if not user_has_permission(actor, PERM_ADMIN_ANGEL_TYPES):
        raise UserFacingError(translate("user_angeltype.update.forbidden"))
    if user_angeltype_id is None:
        raise UserFacingError(translate("user_angeltype.not_found"))
    if supporter_raw not in ("0", "1"):
        raise UserFacingError(translate("user_angeltype.update.missing"))
    return get_membership(s, user_angeltype_id), supporter_raw == "1"


def update_supporter(s: "Session", actor: User, m: Membership, supporter: bool) -> ActionResult:
    m.user_angeltype.supporter = supporter

    if supporter:
        message_id, line = "user_angeltype.supporter.added", "Added supporter rights for {angeltype} to {user}."
    else:
        message_id, line = "user_angeltype.supporter.removed", "Removed supporter rights for {angeltype} from {user}."
    record_event(
        s,
        actor=actor,
        action="user_angeltype.update",
        message=line.format(angeltype=m.angeltype.name, user=m.user.name),
        entity_type="UserAngelType",
        entity_id=str(m.user_angeltype.id),
        metadata={"supporter": supporter},
    )
    return ActionResult(
        message=translate(message_id, angeltype=m.angeltype.name, user=m.user.name),
        angeltype=m.angeltype,
    )


# ---------- Add / join ----------
def _create_membership(s: "Session", user: User, angeltype: AngelType, exists_message: str) -> UserAngelType:
    if membership_for(s, user, angeltype) is not None:
        raise UserFacingError(exists_message)
    ua = UserAngelType(user_id=user.id, angeltype_id=angeltype.id, supporter=False)
    s.add(ua)
    try:
        s.flush()
    except IntegrityError:
        # Lost a race against a concurrent submission for the same pair.
        s.rollback()
        raise UserFacingError(exists_message) from None
    return ua


def _auto_confirm(s: "Session", actor: User, ua: UserAngelType, user: User, angeltype: AngelType) -> None:
    ua.confirm_user_id = actor.id
    record_event(
        s,
        actor=actor,
        action="user_angeltype.confirm",
        message=f"User {user.name} confirmed as {angeltype.name}.",
        entity_type="UserAngelType",
        entity_id=str(ua.id),
    )


def add_user(s: "Session", actor: User, angeltype: AngelType, user: User, auto_confirm: bool) -> ActionResult:
    ua = _create_membership(
        s,
        user,
        angeltype,
        translate("user_angeltype.add.exists", user=user.name, angeltype=angeltype.name),
    )
    record_event(
        s,
        actor=actor,
        action="user_angeltype.add",
        message=f"User {user.name} added to {angeltype.name}.",
        entity_type="UserAngelType",
        entity_id=str(ua.id),
    )
    if auto_confirm:
        _auto_confirm(s, actor, ua, user, angeltype)

    return ActionResult(
        message=translate("user_angeltype.add.success", user=user.name, angeltype=angeltype.name),
        angeltype=angeltype,
        notify=[] if user.id == actor.id else [user],
        notification="added",
    )


def authorize_join(s: "Session", actor: User, angeltype: AngelType) -> None:
    if membership_for(s, actor, angeltype) is not None:
        raise UserFacingError(translate("user_angeltype.join.exists", angeltype=angeltype.name))


def join(s: "Session", actor: User, angeltype: AngelType, auto_confirm: bool) -> ActionResult:
    ua = _create_membership(
        s,
        actor,
        angeltype,
        translate("user_angeltype.join.exists", angeltype=angeltype.name),
    )
    record_event(
        s,
        actor=actor,
        action="user_angeltype.join",
        message=f"User {actor.name} joined {angeltype.name}.",
        entity_type="UserAngelType",
        entity_id=str(ua.id),
    )
    if auto_confirm and user_has_permission(actor, PERM_ADMIN_USER_ANGELTYPES):
        _auto_confirm(s, actor, ua, actor, angeltype)

    return ActionResult(
        message=translate("user_angeltype.join.success", angeltype=angeltype.name),
        angeltype=angeltype,
    )


# ---------- Mail ----------
def send_notifications(result: ActionResult) -> None:
    """Best-effort: transport failures are logged and never reach the caller."""
    if not result.notification:
        return
    subject_key, template = NOTIFICATIONS[result.notification]
    for user in result.notify:
        if not user.settings or not user.settings.email_shiftinfo:
            continue
        try:
            send_translated(user, subject_key, template, angeltype=result.angeltype.name, name=user.name)
        except MailTransportError:
            logger.error(
                'Unable to send email "%s" to user %s',
                translate(subject_key, angeltype=result.angeltype.name),
                user.name,
                exc_info=True,
            )
