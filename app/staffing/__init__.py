import logging
import os
from datetime import timedelta

from flask import Flask, g, render_template, request, session
from dotenv import load_dotenv
from sqlalchemy import inspect as sa_inspect

from app.staffing.config import load_config
from app.staffing.db import init_db, teardown_db_session
from app.staffing.routes import bp as routes_bp
from app.staffing.auth import bp as auth_bp, load_current_user
from app.staffing.i18n import current_locale, translate
from app.staffing.mail import mail
from app.staffing.modules.angeltypes.routes import bp as angeltypes_bp
from app.staffing.modules.settings.routes import bp as settings_bp
from app.staffing.rbac import user_has_permission
from app.staffing.security import ensure_csrf_token, validate_csrf

logger = logging.getLogger(__name__)

# Tables the running code expects; checked once against the live schema.
EXPECTED_TABLES = (
    "users",
    "users_personal_data",
    "users_contact",
    "users_settings",
    "angel_types",
    "user_angel_types",
    "audit_events",
)

# Health-check and asset paths skip the session, CSRF, schema and user machinery.
_BARE_PATHS = ("/static/", "/health", "/healthz")


def _check_production(app: Flask) -> None:
    """Fail fast on settings that are only acceptable in development."""
    env = (app.config.get("ENV") or "").strip().lower()
    if env not in ("prod", "production"):
        return
    db_url = str(app.config.get("DATABASE_URL") or "").strip()
    if not db_url:
        raise RuntimeError("DATABASE_URL is required in production.")
    if db_url.startswith("sqlite"):
        raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
    if str(app.config.get("SECRET_KEY") or "") in ("", "change-me"):
        raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")


def _register_template_helpers(app: Flask) -> None:
    app.jinja_env.globals["_"] = translate

    @app.context_processor
    def _inject_globals() -> dict:
        def has_perm(key: str) -> bool:
            return user_has_permission(getattr(g, "current_user", None), key)

        return {
            "csrf_token": ensure_csrf_token(),
            "has_perm": has_perm,
            "current_locale": current_locale(),
        }

    @app.template_filter("dateformat")
    def _dateformat_filter(value, format: str = "%Y-%m-%d") -> str:
        if value is None:
            return ""
        if hasattr(value, "strftime"):
            return value.strftime(format)
        return str(value)


def _register_request_hooks(app: Flask) -> None:
    @app.before_request
    def _csrf_guard():
        if request.path.startswith(_BARE_PATHS):
            return None
        ensure_csrf_token()
        session.permanent = True
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            # Login/logout carry no token yet.
            if (request.endpoint or "").startswith("auth."):
                return None
            if not validate_csrf(request):
                return render_template("errors/400.html", message="CSRF token missing or invalid."), 400
        return None

    # Checked on the first request so schemas created after startup are seen.
    app.config.setdefault("_schema_health_missing", None)

    @app.before_request
    def _schema_health_guardrail():
        missing = app.config["_schema_health_missing"]
        if missing is None:
            insp = sa_inspect(app.extensions["sqlalchemy_engine"])
            missing = [t for t in EXPECTED_TABLES if not insp.has_table(t)]
            app.config["_schema_health_missing"] = missing
            if missing:
                app.logger.error("DB schema out of date; run `alembic upgrade head`. Missing: %s", ", ".join(missing))
        if missing and not request.path.startswith(_BARE_PATHS):
            return render_template("errors/schema_out_of_date.html", missing=missing), 500
        return None

    @app.before_request
    def _load_user():
        if request.path.startswith(_BARE_PATHS):
            g.current_user = None
            return None
        return load_current_user()

    app.teardown_appcontext(teardown_db_session)


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(404)
    def _err_404(e):
        return render_template("errors/404.html"), 404

    @app.errorhandler(500)
    def _err_500(e):
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return render_template("errors/500.html"), 500


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__, template_folder="templates")
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True

    _check_production(app)
    init_db(app)
    mail.init_app(app)

    if hasattr(os, "register_at_fork"):

        def _after_fork_child():
            engine = app.extensions.get("sqlalchemy_engine")
            if engine:
                engine.dispose()
                app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

        os.register_at_fork(after_in_child=_after_fork_child)

    _register_template_helpers(app)
    _register_request_hooks(app)
    _register_error_handlers(app)

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(angeltypes_bp)
    app.register_blueprint(settings_bp, url_prefix="/settings")

    logger.info("create_app() complete; app ready to serve")
    return app
