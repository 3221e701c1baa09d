from __future__ import annotations

from flask import Blueprint, current_app, flash, g, redirect, render_template, request, session, url_for

from app.staffing.db import db_session
from app.staffing.errors import ValidationError
from app.staffing.i18n import translate
from app.staffing.models import User
from app.staffing.modules.settings import service
from app.staffing.rbac import login_required

bp = Blueprint("settings", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def settings_menu() -> dict[str, str | dict]:
    """Settings sub-pages in display order, url -> label."""
    menu: dict[str, str | dict] = {
        url_for("settings.profile"): translate("settings.profile"),
        url_for("settings.password"): translate("settings.password"),
        url_for("settings.language"): translate("settings.language"),
        url_for("settings.theme"): translate("settings.theme"),
    }
    providers = current_app.config.get("OAUTH_PROVIDERS") or {}
    if providers:
        menu[url_for("settings.oauth")] = {
            "title": translate("settings.oauth"),
            "hidden": service.oauth_hidden(providers),
        }
    return menu


def _render(template: str, title_key: str, **context):
    return render_template(
        f"settings/{template}.html",
        title=translate(title_key),
        settings_menu=settings_menu(),
        errors=session.pop("_field_errors", {}),
        **context,
    )


@bp.errorhandler(ValidationError)
def _validation_error(e: ValidationError):
    # Kept for the next render so each message shows beside its input.
    session["_field_errors"] = e.errors
    for messages in e.errors.values():
        for message in messages:
            flash(message, "danger")
    return redirect(request.path)


@bp.get("/")
@login_required
def index():
    return redirect(url_for("settings.profile"))


# ---------- Profile ----------
@bp.get("/profile")
@login_required
def profile():
    return _render(
        "profile",
        "settings.profile",
        user=_current_user(),
        fields=service.ProfileFields.from_config(current_app.config),
        tshirt_sizes=current_app.config.get("TSHIRT_SIZES") or {},
    )


@bp.post("/profile")
@login_required
def profile_post():
    s = db_session()
    service.save_profile(s, _current_user(), request.form, current_app.config)
    s.commit()
    flash(translate("settings.profile.success"), "success")
    return redirect(url_for("settings.profile"))


# ---------- Password ----------
@bp.get("/password")
@login_required
def password():
    return _render("password", "settings.password", has_password=bool(_current_user().password_hash))


@bp.post("/password")
@login_required
def password_post():
    s = db_session()
    service.save_password(s, _current_user(), request.form, current_app.config)
    s.commit()
    flash(translate("settings.password.success"), "success")
    return redirect(url_for("settings.password"))


# ---------- Theme ----------
@bp.get("/theme")
@login_required
def theme():
    themes = current_app.config.get("THEMES") or {}
    return _render(
        "theme",
        "settings.theme",
        themes={idx: t["name"] for idx, t in themes.items()},
        current_theme=_current_user().settings.theme,
    )


@bp.post("/theme")
@login_required
def theme_post():
    s = db_session()
    service.save_theme(s, _current_user(), request.form, current_app.config)
    s.commit()
    flash(translate("settings.theme.success"), "success")
    return redirect(url_for("settings.theme"))


# ---------- Language ----------
@bp.get("/language")
@login_required
def language():
    return _render(
        "language",
        "settings.language",
        languages=current_app.config.get("LOCALES") or {},
        current_language=_current_user().settings.language,
    )


@bp.post("/language")
@login_required
def language_post():
    s = db_session()
    locale = service.save_language(s, _current_user(), request.form, current_app.config)
    s.commit()
    session["locale"] = locale
    flash(translate("settings.language.success"), "success")
    return redirect(url_for("settings.language"))


# ---------- OAuth ----------
@bp.get("/oauth")
@login_required
def oauth():
    providers = service.oauth_providers(current_app.config)
    return _render(
        "oauth",
        "settings.oauth",
        information=translate("settings.oauth.info"),
        providers=providers,
    )
