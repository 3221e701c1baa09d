from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Any

from sqlalchemy import func
from werkzeug.exceptions import NotFound

from app.staffing.audit import record_event
from app.staffing.auth import set_password, verify_password
from app.staffing.errors import ValidationError
from app.staffing.i18n import translate
from app.staffing.models import User

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass(frozen=True)
class ProfileFields:
    """Which optional profile fields are switched on for this event."""

    pronoun: bool
    user_name: bool
    planned_arrival: bool
    dect: bool
    mobile_show: bool
    goody: bool
    tshirt_size: bool

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "ProfileFields":
        return cls(
            pronoun=bool(config.get("ENABLE_PRONOUN")),
            user_name=bool(config.get("ENABLE_USER_NAME")),
            planned_arrival=bool(config.get("ENABLE_PLANNED_ARRIVAL")),
            dect=bool(config.get("ENABLE_DECT")),
            mobile_show=bool(config.get("ENABLE_MOBILE_SHOW")),
            goody=bool(config.get("ENABLE_GOODY")),
            tshirt_size=bool(config.get("ENABLE_TSHIRT_SIZE")),
        )


# flag -> (record, attribute, value stored while the flag is off)
OPTIONAL_PROFILE_FIELDS: tuple[tuple[str, str, str, Any], ...] = (
    ("pronoun", "personal_data", "pronoun", ""),
    ("user_name", "personal_data", "first_name", ""),
    ("user_name", "personal_data", "last_name", ""),
    ("planned_arrival", "personal_data", "planned_arrival_date", None),
    ("planned_arrival", "personal_data", "planned_departure_date", None),
    ("dect", "contact", "dect", ""),
    ("mobile_show", "settings", "mobile_show", False),
    ("goody", "settings", "email_goody", False),
    ("tshirt_size", "personal_data", "shirt_size", ""),
)

# Always saved, regardless of feature flags.
PROFILE_FIELDS: tuple[tuple[str, str], ...] = (
    ("contact", "mobile"),
    ("settings", "email_shiftinfo"),
    ("settings", "email_news"),
    ("settings", "email_human"),
)


def _text(form: Mapping[str, Any], key: str) -> str:
    return (form.get(key) or "").strip()


def _checked(form: Mapping[str, Any], key: str) -> bool:
    return _text(form, key).lower() in ("1", "true", "on", "yes")


def _as_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def _max_length(errors: dict[str, list[str]], field: str, value: str, limit: int) -> None:
    if len(value) > limit:
        errors.setdefault(field, []).append(translate("validation.max_length", max=limit))


def _parse_date_field(errors: dict[str, list[str]], form: Mapping[str, Any], field: str, required: bool) -> date | None:
    raw = _text(form, field)
    if not raw:
        if required:
            errors.setdefault(field, []).append(translate("validation.required"))
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        errors.setdefault(field, []).append(translate("validation.date"))
        return None


# ---------- Profile ----------
def validate_profile(form: Mapping[str, Any], fields: ProfileFields, config: Mapping[str, Any]) -> dict[str, Any]:
    """
    Returns cleaned values for every profile field; fields whose flag is off
    carry their blank value. Raises ValidationError on bad input.
    """
    errors: dict[str, list[str]] = {}
    data: dict[str, Any] = {}

    email = _text(form, "email")
    if not email:
        errors.setdefault("email", []).append(translate("validation.required"))
    elif not _EMAIL_RE.match(email):
        errors.setdefault("email", []).append(translate("validation.email"))
    data["email"] = email

    data["mobile"] = _text(form, "mobile")
    _max_length(errors, "mobile", data["mobile"], 40)
    for flag in ("email_shiftinfo", "email_news", "email_human"):
        data[flag] = _checked(form, flag)

    if fields.pronoun:
        data["pronoun"] = _text(form, "pronoun")
        _max_length(errors, "pronoun", data["pronoun"], 15)
    if fields.user_name:
        data["first_name"] = _text(form, "first_name")
        data["last_name"] = _text(form, "last_name")
        _max_length(errors, "first_name", data["first_name"], 64)
        _max_length(errors, "last_name", data["last_name"], 64)
    if fields.planned_arrival:
        data["planned_arrival_date"] = _parse_date_field(errors, form, "planned_arrival_date", required=True)
        data["planned_departure_date"] = _parse_date_field(errors, form, "planned_departure_date", required=False)
    if fields.dect:
        data["dect"] = _text(form, "dect")
        _max_length(errors, "dect", data["dect"], 40)
    if fields.mobile_show:
        data["mobile_show"] = _checked(form, "mobile_show")
    if fields.goody:
        data["email_goody"] = _checked(form, "email_goody")
    if fields.tshirt_size:
        size = _text(form, "shirt_size")
        if not size:
            errors.setdefault("shirt_size", []).append(translate("validation.required"))
        elif size not in (config.get("TSHIRT_SIZES") or {}):
            errors.setdefault("shirt_size", []).append(translate("validation.in"))
        data["shirt_size"] = size

    if errors:
        raise ValidationError(errors)

    if fields.planned_arrival:
        buildup_start = _as_date(config.get("BUILDUP_START"))
        teardown_end = _as_date(config.get("TEARDOWN_END"))
        arrival = data["planned_arrival_date"]
        departure = data["planned_departure_date"]
        if buildup_start and arrival < buildup_start:
            raise ValidationError.single(
                "planned_arrival_date", translate("settings.profile.planned_arrival_date.invalid")
            )
        if teardown_end and departure and departure > teardown_end:
            raise ValidationError.single(
                "planned_departure_date", translate("settings.profile.planned_departure_date.invalid")
            )

    for flag, _record, attr, blank in OPTIONAL_PROFILE_FIELDS:
        if not getattr(fields, flag):
            data[attr] = blank
    return data


def email_taken(s: "Session", user: "User", email: str) -> bool:
    """True if another user already holds `email` (compared case-insensitively)."""
    return (
        s.query(User.id)
        .filter(func.lower(User.email) == email.lower())
        .filter(User.id != user.id)
        .first()
        is not None
    )


def save_profile(s: "Session", user: "User", form: Mapping[str, Any], config: Mapping[str, Any]) -> None:
    fields = ProfileFields.from_config(config)
    data = validate_profile(form, fields, config)
    if data["email"] != user.email and email_taken(s, user, data["email"]):
        raise ValidationError.single("email", translate("settings.profile.email.already-taken"))

    user.email = data["email"]
    for record, attr in PROFILE_FIELDS:
        setattr(getattr(user, record), attr, data[attr])
    for _flag, record, attr, _blank in OPTIONAL_PROFILE_FIELDS:
        setattr(getattr(user, record), attr, data[attr])

    record_event(
        s,
        actor=user,
        action="settings.profile",
        message=f"User {user.name} updated their profile.",
        entity_type="User",
        entity_id=str(user.id),
    )


# ---------- Password ----------
def save_password(s: "Session", user: "User", form: Mapping[str, Any], config: Mapping[str, Any]) -> None:
    min_length = int(config.get("MIN_PASSWORD_LENGTH") or 8)
    current = form.get("password") or ""
    new_password = form.get("new_password") or ""
    new_password2 = form.get("new_password2") or ""
    has_password = bool(user.password_hash)

    errors: dict[str, list[str]] = {}
    if has_password and not current:
        errors["password"] = [translate("validation.required")]
    if not new_password:
        errors["new_password"] = [translate("validation.required")]
    elif len(new_password) < min_length:
        errors["new_password"] = [translate("validation.min_length", min=min_length)]
    if not new_password2:
        errors["new_password2"] = [translate("validation.required")]
    if errors:
        raise ValidationError(errors)

    if has_password and not verify_password(user, current):
        raise ValidationError.single("password", translate("auth.password.error"))
    if new_password != new_password2:
        raise ValidationError.single("new_password2", translate("validation.password.confirmed"))

    set_password(user, new_password)
    logger.info("User set new password.")
    record_event(
        s,
        actor=user,
        action="settings.password",
        message=f"User {user.name} set new password.",
        entity_type="User",
        entity_id=str(user.id),
    )


# ---------- Theme / language ----------
def save_theme(s: "Session", user: "User", form: Mapping[str, Any], config: Mapping[str, Any]) -> int:
    raw = _text(form, "select_theme")
    if not raw:
        raise ValidationError.single("select_theme", translate("validation.required"))
    try:
        theme = int(raw)
    except ValueError:
        raise NotFound() from None
    if theme not in (config.get("THEMES") or {}):
        raise NotFound()

    user.settings.theme = theme
    record_event(
        s,
        actor=user,
        action="settings.theme",
        message=f"User {user.name} selected theme {theme}.",
        entity_type="User",
        entity_id=str(user.id),
    )
    return theme


def save_language(s: "Session", user: "User", form: Mapping[str, Any], config: Mapping[str, Any]) -> str:
    locale = _text(form, "select_language")
    if not locale:
        raise ValidationError.single("select_language", translate("validation.required"))
    if locale not in (config.get("LOCALES") or {}):
        raise NotFound()

    user.settings.language = locale
    record_event(
        s,
        actor=user,
        action="settings.language",
        message=f"User {user.name} selected language {locale}.",
        entity_type="User",
        entity_id=str(user.id),
    )
    return locale


# ---------- OAuth ----------
def oauth_providers(config: Mapping[str, Any]) -> dict[str, dict]:
    providers = config.get("OAUTH_PROVIDERS") or {}
    if not providers:
        raise NotFound()
    return providers


def oauth_hidden(providers: Mapping[str, Mapping[str, Any]]) -> bool:
    """The OAuth menu entry is hidden only when every provider asks for it."""
    return all(p.get("hidden") for p in providers.values())
