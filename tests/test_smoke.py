import pytest
from werkzeug.security import generate_password_hash

from app.staffing import auth, create_app
from app.staffing.db import session_scope
from app.staffing.models import AuditEvent, Base, User
from app.staffing.modules.angeltypes.models import AngelType


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("MAIL_SUPPRESS_SEND", "1")
    auth._login_attempts.clear()

    app = create_app()

    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        u = User(name="angel", email="angel@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        s.add_all([u, AngelType(name="Engel", restricted=True)])
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True


def test_healthz_ok(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.data == b"ok"


def test_index_is_public(client):
    r = client.get("/")
    assert r.status_code == 200


def test_login_by_name_and_email(client, app):
    # Anonymous should be redirected to login
    r = client.get("/angeltypes")
    assert r.status_code == 302

    r = client.post("/auth/login", data={"login": "angel", "password": "pw"}, follow_redirects=False)
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/angeltypes")

    r = client.get("/angeltypes")
    assert r.status_code == 200
    assert b"Engel" in r.data

    client.get("/auth/logout")
    r = client.post("/auth/login", data={"email": "ANGEL@example.com", "password": "pw"}, follow_redirects=False)
    assert r.headers["Location"].endswith("/angeltypes")

    with session_scope(app) as s:
        assert s.query(AuditEvent).filter(AuditEvent.action == "auth.login").count() == 2


def test_login_honours_local_next(client):
    r = client.post(
        "/auth/login",
        data={"login": "angel", "password": "pw", "next": "/settings/theme"},
        follow_redirects=False,
    )
    assert r.headers["Location"].endswith("/settings/theme")

    client.get("/auth/logout")
    r = client.post(
        "/auth/login",
        data={"login": "angel", "password": "pw", "next": "//evil.example.com/"},
        follow_redirects=False,
    )
    assert r.headers["Location"].endswith("/angeltypes")


def test_login_rejects_bad_password(client):
    r = client.post("/auth/login", data={"login": "angel", "password": "wrong"}, follow_redirects=True)
    assert r.status_code == 200
    assert b"Invalid credentials." in r.data
    r = client.get("/angeltypes")
    assert r.status_code == 302


def test_login_is_rate_limited(client):
    for _ in range(5):
        client.post("/auth/login", data={"login": "angel", "password": "wrong"})
    r = client.post("/auth/login", data={"login": "angel", "password": "pw"}, follow_redirects=True)
    assert b"Too many login attempts" in r.data
    assert client.get("/angeltypes").status_code == 302


def test_logged_in_index_redirects_to_angeltypes(client):
    client.post("/auth/login", data={"login": "angel", "password": "pw"})
    r = client.get("/")
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/angeltypes")


def test_unknown_page_is_404(client):
    r = client.get("/does-not-exist")
    assert r.status_code == 404
    assert b"Not found" in r.data


def test_missing_tables_render_schema_page(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'empty.db'}")
    monkeypatch.setenv("ENV", "test")
    app = create_app()
    client = app.test_client()
    assert client.get("/healthz").status_code == 200
    r = client.get("/")
    assert r.status_code == 500
    assert b"user_angel_types" in r.data
