"""
Message catalog and lookup.

Entries are either a plain string or a (singular, plural) pair picked by
``count``. Parameters are ``str.format`` fields, so ``{angeltype}`` in a
message is filled from ``translate(..., angeltype="Engel")``.
"""
from __future__ import annotations

from flask import current_app, g, has_app_context, has_request_context, session

FALLBACK_LOCALE = "en_US"

MESSAGES: dict[str, dict[str, str | tuple[str, str]]] = {
    "en_US": {
        # angel types
        "angeltypes.title": "Angeltypes",
        "angeltype.not_found": "Angeltype doesn't exist.",
        "user_angeltype.not_found": "User angeltype doesn't exist.",
        "user.not_found": "User doesn't exist.",
        "angeltype.delete_all.title": "Deny all users",
        "angeltype.delete_all.question": "Do you really want to deny all users for {angeltype}?",
        "angeltype.delete_all.forbidden": "You are not allowed to delete all users for this angeltype.",
        "angeltype.delete_all.success": "Denied all users for angeltype {angeltype}.",
        "angeltype.confirm_all.title": "Confirm all users",
        "angeltype.confirm_all.question": "Do you really want to confirm all users for {angeltype}?",
        "angeltype.confirm_all.forbidden": "You are not allowed to confirm all users for this angeltype.",
        "angeltype.confirm_all.success": "Confirmed all users for angeltype {angeltype}.",
        "user_angeltype.confirm.title": "Confirm angeltype for user",
        "user_angeltype.confirm.question": "Do you really want to confirm {user} for {angeltype}?",
        "user_angeltype.confirm.forbidden": "You are not allowed to confirm this users angeltype.",
        "user_angeltype.confirm.success": "{user} confirmed for angeltype {angeltype}.",
        "user_angeltype.delete.title": "Remove angeltype",
        "user_angeltype.delete.question": "Do you really want to delete {user} from {angeltype}?",
        "user_angeltype.delete.forbidden": "You are not allowed to delete this users angeltype.",
        "user_angeltype.delete.success": "User {user} removed from {angeltype}.",
        "user_angeltype.update.forbidden": "You are not allowed to set supporter rights.",
        "user_angeltype.update.missing": "No supporter update given.",
        "user_angeltype.supporter.add_title": "Add supporter rights",
        "user_angeltype.supporter.remove_title": "Remove supporter rights",
        "user_angeltype.supporter.add_question": "Do you really want to add supporter rights for {angeltype} to {user}?",
        "user_angeltype.supporter.remove_question": "Do you really want to remove supporter rights for {angeltype} from {user}?",
        "user_angeltype.supporter.added": "Added supporter rights for {angeltype} to {user}.",
        "user_angeltype.supporter.removed": "Removed supporter rights for {angeltype} from {user}.",
        "user_angeltype.add.title": "Add user to angeltype",
        "user_angeltype.add.success": "User {user} added to {angeltype}.",
        "user_angeltype.add.exists": "User {user} is already a {angeltype}.",
        "user_angeltype.join.title": "Become a {angeltype}",
        "user_angeltype.join.question": "Do you want to become a {angeltype}?",
        "user_angeltype.join.success": "You joined {angeltype}.",
        "user_angeltype.join.exists": "You are already a {angeltype}.",
        "user_angeltype.auto_confirm": "Confirm user",
        "angeltypes.unconfirmed_hint": (
            "There is {count} unconfirmed angeltype.",
            "There are {count} unconfirmed angeltypes.",
        ),
        "angeltypes.need_approval": "Angel types which need approvals:",
        "angeltype.state.supporter": "Supporter",
        "angeltype.state.member": "Member",
        "angeltype.state.unconfirmed": "Unconfirmed",
        "angeltype.state.none": "Not a member",
        "angeltype.supporters": "Supporters",
        "angeltype.members": "Members",
        "angeltype.unconfirmed": "Unconfirmed",
        # mails
        "notification.angeltype.confirmed": "Your membership as {angeltype} was confirmed",
        "notification.angeltype.added": "You have been added to {angeltype}",
        "email.greeting": "Hi {name},",
        "email.angeltype.confirmed": "your membership as {angeltype} has been confirmed by a supporter.",
        "email.angeltype.added": "a supporter added you to the angeltype {angeltype}.",
        # settings
        "settings.title": "Settings",
        "settings.profile": "Profile",
        "settings.password": "Password",
        "settings.language": "Language",
        "settings.theme": "Theme",
        "settings.oauth": "OAuth",
        "settings.profile.success": "Settings saved.",
        "settings.profile.email.already-taken": "This e-mail address is already taken by another user.",
        "settings.profile.planned_arrival_date.invalid": "Please enter your planned date of arrival. It should be after the buildup start date and before teardown end date.",
        "settings.profile.planned_departure_date.invalid": "Please enter your planned date of departure. It should be after your planned arrival date and before teardown end date.",
        "settings.password.success": "Password saved.",
        "settings.theme.success": "Theme changed successfully.",
        "settings.language.success": "Language changed successfully.",
        "settings.oauth.info": "Connect your account to one of the following providers to log in with it.",
        "auth.password.error": "Your password is incorrect. Please try it again.",
        # validation
        "validation.required": "This field is required.",
        "validation.min_length": "Must be at least {min} characters long.",
        "validation.max_length": "Must be at most {max} characters long.",
        "validation.email": "Please enter a valid e-mail address.",
        "validation.date": "Please enter a valid date (YYYY-MM-DD).",
        "validation.in": "Please select a valid value.",
        "validation.password.confirmed": "Your passwords don't match.",
        # auth / errors
        "auth.login": "Login",
        "auth.logout": "Logout",
        "auth.invalid": "Invalid credentials.",
        "auth.rate_limited": "Too many login attempts. Please wait 5 minutes.",
        "form.submit": "Save",
        "form.yes": "Yes",
        "form.cancel": "Cancel",
    },
    "de_DE": {
        "angeltypes.title": "Engeltypen",
        "angeltype.not_found": "Engeltyp existiert nicht.",
        "user_angeltype.not_found": "Engeltyp des Users existiert nicht.",
        "user.not_found": "User existiert nicht.",
        "angeltype.delete_all.title": "Alle User ablehnen",
        "angeltype.delete_all.question": "Möchtest Du wirklich alle User für {angeltype} ablehnen?",
        "angeltype.delete_all.forbidden": "Du darfst nicht alle User für diesen Engeltyp entfernen.",
        "angeltype.delete_all.success": "Alle User für Engeltyp {angeltype} abgelehnt.",
        "angeltype.confirm_all.title": "Alle User bestätigen",
        "angeltype.confirm_all.question": "Möchtest Du wirklich alle User für {angeltype} bestätigen?",
        "angeltype.confirm_all.forbidden": "Du darfst nicht alle User für diesen Engeltyp bestätigen.",
        "angeltype.confirm_all.success": "Alle User für Engeltyp {angeltype} bestätigt.",
        "user_angeltype.confirm.title": "Engeltyp für User bestätigen",
        "user_angeltype.confirm.question": "Möchtest Du wirklich {user} für {angeltype} bestätigen?",
        "user_angeltype.confirm.forbidden": "Du darfst diesen Engeltyp des Users nicht bestätigen.",
        "user_angeltype.confirm.success": "{user} für Engeltyp {angeltype} bestätigt.",
        "user_angeltype.delete.title": "Engeltyp entfernen",
        "user_angeltype.delete.question": "Möchtest Du wirklich {user} aus {angeltype} entfernen?",
        "user_angeltype.delete.forbidden": "Du darfst diesen Engeltyp des Users nicht entfernen.",
        "user_angeltype.delete.success": "User {user} aus {angeltype} entfernt.",
        "user_angeltype.update.forbidden": "Du darfst keine Supporterrechte vergeben.",
        "user_angeltype.update.missing": "Keine Supporter-Änderung angegeben.",
        "user_angeltype.supporter.add_title": "Supporterrechte geben",
        "user_angeltype.supporter.remove_title": "Supporterrechte entfernen",
        "user_angeltype.supporter.added": "Supporterrechte für {angeltype} an {user} vergeben.",
        "user_angeltype.supporter.removed": "Supporterrechte für {angeltype} von {user} entfernt.",
        "user_angeltype.add.title": "User zu Engeltyp hinzufügen",
        "user_angeltype.add.success": "User {user} zu {angeltype} hinzugefügt.",
        "user_angeltype.add.exists": "User {user} ist bereits {angeltype}.",
        "user_angeltype.join.title": "Werde ein {angeltype}",
        "user_angeltype.join.question": "Möchtest Du ein {angeltype} werden?",
        "user_angeltype.join.success": "Du bist {angeltype} beigetreten.",
        "user_angeltype.join.exists": "Du bist bereits {angeltype}.",
        "angeltypes.unconfirmed_hint": (
            "Es gibt {count} unbestätigten Engeltyp.",
            "Es gibt {count} unbestätigte Engeltypen.",
        ),
        "angeltypes.need_approval": "Engeltypen, die bestätigt werden müssen:",
        "notification.angeltype.confirmed": "Deine Mitgliedschaft als {angeltype} wurde bestätigt",
        "notification.angeltype.added": "Du wurdest zu {angeltype} hinzugefügt",
        "email.greeting": "Hallo {name},",
        "email.angeltype.confirmed": "Deine Mitgliedschaft als {angeltype} wurde von einem Supporter bestätigt.",
        "email.angeltype.added": "ein Supporter hat Dich zum Engeltyp {angeltype} hinzugefügt.",
        "settings.title": "Einstellungen",
        "settings.profile": "Profil",
        "settings.password": "Passwort",
        "settings.language": "Sprache",
        "settings.theme": "Theme",
        "settings.profile.success": "Einstellungen gespeichert.",
        "settings.profile.email.already-taken": "Diese E-Mail-Adresse wird bereits von einem anderen User verwendet.",
        "settings.password.success": "Passwort gespeichert.",
        "settings.theme.success": "Theme erfolgreich geändert.",
        "settings.language.success": "Sprache erfolgreich geändert.",
        "auth.password.error": "Dein Passwort ist falsch. Bitte versuche es erneut.",
        "validation.required": "Dieses Feld ist ein Pflichtfeld.",
        "validation.password.confirmed": "Deine Passwörter stimmen nicht überein.",
        "form.submit": "Speichern",
        "form.yes": "Ja",
        "form.cancel": "Abbrechen",
    },
}


def default_locale() -> str:
    if has_app_context():
        return current_app.config.get("DEFAULT_LOCALE") or FALLBACK_LOCALE
    return FALLBACK_LOCALE


def current_locale() -> str:
    """Session locale, then the user's stored language, then the configured default."""
    if has_request_context():
        locale = session.get("locale")
        if locale in MESSAGES:
            return locale
        user = getattr(g, "current_user", None)
        if user is not None and user.settings is not None and user.settings.language in MESSAGES:
            return user.settings.language
    return default_locale()


def _lookup(key: str, locale: str) -> str | tuple[str, str] | None:
    for loc in (locale, default_locale(), FALLBACK_LOCALE):
        entry = MESSAGES.get(loc, {}).get(key)
        if entry is not None:
            return entry
    return None


def translate(key: str, count: int | None = None, locale: str | None = None, **params) -> str:
    entry = _lookup(key, locale or current_locale())
    if entry is None:
        return key
    if isinstance(entry, tuple):
        singular, plural = entry
        entry = singular if count == 1 else plural
    if count is not None:
        params.setdefault("count", count)
    return entry.format(**params) if params else entry
