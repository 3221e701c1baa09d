"""Tests for the user settings pages."""
import json
from datetime import date

import pytest
from werkzeug.security import check_password_hash, generate_password_hash

from app.staffing import auth, create_app
from app.staffing.db import session_scope
from app.staffing.models import Base, User
from app.staffing.modules.settings.routes import settings_menu
from app.staffing.modules.settings.service import OPTIONAL_PROFILE_FIELDS

PROFILE_FLAGS = ("pronoun", "user_name", "planned_arrival", "dect", "mobile_show", "goody", "tshirt_size")


def _make_app(tmp_path, monkeypatch, **env):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("MAIL_SUPPRESS_SEND", "1")
    for flag in PROFILE_FLAGS:
        monkeypatch.delenv(f"ENABLE_{flag.upper()}", raising=False)
    for k in ("BUILDUP_START", "TEARDOWN_END"):
        monkeypatch.delenv(k, raising=False)
    monkeypatch.delenv("OAUTH_PROVIDERS", raising=False)
    for k, v in env.items():
        monkeypatch.setenv(k, v)
    auth._login_attempts.clear()

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        s.add(User(name="alice", email="alice@example.com", password_hash=generate_password_hash("old-password")))
    return app


@pytest.fixture()
def app(tmp_path, monkeypatch):
    return _make_app(tmp_path, monkeypatch)


@pytest.fixture()
def client(app):
    c = app.test_client()
    _login(c)
    return c


def _login(client, name="alice", password="old-password"):
    r = client.post("/auth/login", data={"login": name, "password": password}, follow_redirects=False)
    assert r.status_code == 302


def _post(client, path, **data):
    with client.session_transaction() as sess:
        data["csrf_token"] = sess["csrf_token"]
    return client.post(path, data=data, follow_redirects=False)


def _flashes(client):
    with client.session_transaction() as sess:
        return list(sess.get("_flashes", []))


def _alice(app):
    with session_scope(app) as s:
        return s.query(User).filter(User.name == "alice").one()


def test_settings_requires_login(app):
    r = app.test_client().get("/settings/profile")
    assert r.status_code == 302
    assert "/auth/login" in r.headers["Location"]


def test_settings_index_redirects_to_profile(client):
    r = client.get("/settings/")
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/settings/profile")


# ---------- Profile ----------
def test_profile_page_renders(client):
    r = client.get("/settings/profile")
    assert r.status_code == 200
    assert b'name="shirt_size"' in r.data
    assert b'name="dect"' in r.data
    assert b'name="planned_arrival_date"' not in r.data


def test_profile_save(client, app):
    r = _post(
        client,
        "/settings/profile",
        email="Alice@Example.org",
        mobile="+49 123",
        dect="4242",
        shirt_size="XL",
        email_shiftinfo="1",
        email_news="on",
    )
    assert r.status_code == 302
    assert ("success", "Settings saved.") in _flashes(client)

    u = _alice(app)
    assert u.email == "Alice@Example.org"
    assert u.contact.mobile == "+49 123"
    assert u.contact.dect == "4242"
    assert u.personal_data.shirt_size == "XL"
    assert u.settings.email_shiftinfo is True
    assert u.settings.email_news is True
    assert u.settings.email_human is False


def test_profile_requires_shirt_size(client, app):
    r = _post(client, "/settings/profile", email="alice@example.com", mobile="+49 999")
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/settings/profile")
    assert ("danger", "This field is required.") in _flashes(client)
    assert _alice(app).contact.mobile in (None, "")


def test_profile_rejects_unknown_shirt_size(client):
    _post(client, "/settings/profile", email="alice@example.com", shirt_size="XXXXL")
    assert ("danger", "Please select a valid value.") in _flashes(client)


def test_profile_rejects_bad_email(client):
    _post(client, "/settings/profile", email="not-an-address", shirt_size="M")
    assert ("danger", "Please enter a valid e-mail address.") in _flashes(client)


def test_profile_bad_email_shows_error_beside_field(client):
    _post(client, "/settings/profile", email="not-an-address", shirt_size="M")
    with client.session_transaction() as sess:
        assert sess["_field_errors"] == {"email": ["Please enter a valid e-mail address."]}

    r = client.get("/settings/profile")
    assert b'<small class="field-error" data-field="email">Please enter a valid e-mail address.</small>' in r.data
    with client.session_transaction() as sess:
        assert "_field_errors" not in sess

    # Shown once only.
    r = client.get("/settings/profile")
    assert b'class="field-error"' not in r.data


def test_profile_email_taken_by_other_user(client, app):
    with session_scope(app) as s:
        s.add(User(name="bob", email="bob@example.com"))

    r = _post(client, "/settings/profile", email="Bob@Example.com", shirt_size="M")
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/settings/profile")
    assert ("danger", "This e-mail address is already taken by another user.") in _flashes(client)
    with client.session_transaction() as sess:
        assert sess["_field_errors"] == {"email": ["This e-mail address is already taken by another user."]}
    assert _alice(app).email == "alice@example.com"


def test_profile_keeping_own_email_with_other_case(client, app):
    r = _post(client, "/settings/profile", email="ALICE@example.com", shirt_size="M")
    assert r.status_code == 302
    assert ("success", "Settings saved.") in _flashes(client)
    assert _alice(app).email == "ALICE@example.com"


def test_login_with_email_in_any_case(app):
    c = app.test_client()
    _login(c, name="Alice@EXAMPLE.com")


_POSTED_PROFILE = {
    "pronoun": "they",
    "first_name": "Alice",
    "last_name": "Liddell",
    "planned_arrival_date": date(2026, 8, 10),
    "planned_departure_date": date(2026, 8, 20),
    "dect": "4242",
    "mobile_show": True,
    "email_goody": True,
    "shirt_size": "XL",
}


@pytest.mark.parametrize("disabled", PROFILE_FLAGS)
def test_profile_stores_blank_for_disabled_field(tmp_path, monkeypatch, disabled):
    env = {f"ENABLE_{flag.upper()}": "1" for flag in PROFILE_FLAGS}
    env[f"ENABLE_{disabled.upper()}"] = "0"
    app = _make_app(tmp_path, monkeypatch, **env)
    with session_scope(app) as s:
        u = s.query(User).filter(User.name == "alice").one()
        u.personal_data.pronoun = "she"
        u.personal_data.first_name = "Al"
        u.personal_data.last_name = "Ice"
        u.personal_data.planned_arrival_date = date(2026, 8, 1)
        u.personal_data.planned_departure_date = date(2026, 8, 2)
        u.contact.dect = "1111"
        u.settings.mobile_show = True
        u.settings.email_goody = True
        u.personal_data.shirt_size = "M"

    client = app.test_client()
    _login(client)
    r = _post(
        client,
        "/settings/profile",
        email="alice@example.com",
        pronoun="they",
        first_name="Alice",
        last_name="Liddell",
        planned_arrival_date="2026-08-10",
        planned_departure_date="2026-08-20",
        dect="4242",
        mobile_show="1",
        email_goody="1",
        shirt_size="XL",
    )
    assert r.status_code == 302
    assert ("success", "Settings saved.") in _flashes(client)

    u = _alice(app)
    for flag, record, attr, blank in OPTIONAL_PROFILE_FIELDS:
        stored = getattr(getattr(u, record), attr)
        if flag == disabled:
            assert stored == blank, attr
        else:
            assert stored == _POSTED_PROFILE[attr], attr


def test_profile_planned_dates_inside_event_window(tmp_path, monkeypatch):
    app = _make_app(
        tmp_path,
        monkeypatch,
        ENABLE_PLANNED_ARRIVAL="1",
        BUILDUP_START="2026-08-01",
        TEARDOWN_END="2026-08-31",
    )
    client = app.test_client()
    _login(client)
    base = {"email": "alice@example.com", "shirt_size": "M"}

    _post(client, "/settings/profile", planned_arrival_date="2026-07-15", **base)
    assert (
        "danger",
        "Please enter your planned date of arrival. It should be after the buildup start date and before teardown end date.",
    ) in _flashes(client)

    _post(
        client,
        "/settings/profile",
        planned_arrival_date="2026-08-10",
        planned_departure_date="2026-09-05",
        **base,
    )
    assert (
        "danger",
        "Please enter your planned date of departure. It should be after your planned arrival date and before teardown end date.",
    ) in _flashes(client)
    assert _alice(app).personal_data.planned_arrival_date is None

    r = _post(
        client,
        "/settings/profile",
        planned_arrival_date="2026-08-10",
        planned_departure_date="2026-08-30",
        **base,
    )
    assert r.status_code == 302
    u = _alice(app)
    assert u.personal_data.planned_arrival_date == date(2026, 8, 10)
    assert u.personal_data.planned_departure_date == date(2026, 8, 30)


def test_profile_planned_arrival_required_when_enabled(tmp_path, monkeypatch):
    app = _make_app(tmp_path, monkeypatch, ENABLE_PLANNED_ARRIVAL="1")
    client = app.test_client()
    _login(client)
    _post(client, "/settings/profile", email="alice@example.com", shirt_size="M")
    assert ("danger", "This field is required.") in _flashes(client)


# ---------- Password ----------
def test_password_change(client, app):
    r = _post(
        client,
        "/settings/password",
        password="old-password",
        new_password="new-password",
        new_password2="new-password",
    )
    assert r.status_code == 302
    assert ("success", "Password saved.") in _flashes(client)
    assert check_password_hash(_alice(app).password_hash, "new-password")


def test_password_wrong_current(client, app):
    _post(client, "/settings/password", password="nope", new_password="new-password", new_password2="new-password")
    assert ("danger", "Your password is incorrect. Please try it again.") in _flashes(client)
    assert check_password_hash(_alice(app).password_hash, "old-password")


def test_password_confirmation_mismatch(client, app):
    _post(
        client,
        "/settings/password",
        password="old-password",
        new_password="new-password",
        new_password2="other-password",
    )
    assert ("danger", "Your passwords don't match.") in _flashes(client)
    assert check_password_hash(_alice(app).password_hash, "old-password")


def test_password_too_short(client):
    _post(client, "/settings/password", password="old-password", new_password="short", new_password2="short")
    assert ("danger", "Must be at least 8 characters long.") in _flashes(client)


def test_password_without_existing_password_skips_current_check(tmp_path, monkeypatch):
    app = _make_app(tmp_path, monkeypatch)
    with session_scope(app) as s:
        s.query(User).filter(User.name == "alice").one().password_hash = ""
    client = app.test_client()
    # Log in as alice by seeding the session directly; an empty hash never verifies.
    with client.session_transaction() as sess:
        sess["user_id"] = _alice(app).id
        sess["csrf_token"] = "token"
    r = client.get("/settings/password")
    assert r.status_code == 200
    assert b'name="password"' not in r.data

    _post(client, "/settings/password", new_password="brand-new-pw", new_password2="brand-new-pw")
    assert ("success", "Password saved.") in _flashes(client)
    assert check_password_hash(_alice(app).password_hash, "brand-new-pw")


# ---------- Theme ----------
def test_theme_change(client, app):
    r = _post(client, "/settings/theme", select_theme="1")
    assert r.status_code == 302
    assert ("success", "Theme changed successfully.") in _flashes(client)
    assert _alice(app).settings.theme == 1


def test_theme_unknown_is_not_found(client, app):
    r = _post(client, "/settings/theme", select_theme="2")
    assert r.status_code == 404
    assert _alice(app).settings.theme == 0


def test_theme_missing_selection(client, app):
    r = _post(client, "/settings/theme")
    assert r.status_code == 302
    assert ("danger", "This field is required.") in _flashes(client)


# ---------- Language ----------
def test_language_change_updates_session(client, app):
    r = _post(client, "/settings/language", select_language="de_DE")
    assert r.status_code == 302
    assert _alice(app).settings.language == "de_DE"
    with client.session_transaction() as sess:
        assert sess["locale"] == "de_DE"
    assert ("success", "Sprache erfolgreich geändert.") in _flashes(client)


def test_language_unknown_is_not_found(client, app):
    r = _post(client, "/settings/language", select_language="xx_XX")
    assert r.status_code == 404
    assert _alice(app).settings.language == "en_US"


# ---------- OAuth ----------
def test_oauth_without_providers_is_not_found(client):
    r = client.get("/settings/oauth")
    assert r.status_code == 404


def test_oauth_lists_providers(tmp_path, monkeypatch):
    providers = {"sso": {"name": "Event SSO"}}
    app = _make_app(tmp_path, monkeypatch, OAUTH_PROVIDERS=json.dumps(providers))
    client = app.test_client()
    _login(client)
    r = client.get("/settings/oauth")
    assert r.status_code == 200
    assert b"Event SSO" in r.data
    assert b'href="/settings/oauth"' in r.data


# ---------- Menu ----------
def test_settings_menu_order_without_oauth(app):
    with app.test_request_context("/settings/profile"):
        menu = settings_menu()
    assert list(menu) == ["/settings/profile", "/settings/password", "/settings/language", "/settings/theme"]
    assert menu["/settings/profile"] == "Profile"


def test_settings_menu_oauth_hidden_only_when_all_hidden(tmp_path, monkeypatch):
    providers = {"a": {"hidden": True}, "b": {"hidden": False}}
    app = _make_app(tmp_path, monkeypatch, OAUTH_PROVIDERS=json.dumps(providers))
    with app.test_request_context("/settings/profile"):
        menu = settings_menu()
    assert menu["/settings/oauth"] == {"title": "OAuth", "hidden": False}

    app.config["OAUTH_PROVIDERS"] = {"a": {"hidden": True}}
    with app.test_request_context("/settings/profile"):
        menu = settings_menu()
    assert menu["/settings/oauth"] == {"title": "OAuth", "hidden": True}
