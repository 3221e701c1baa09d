import json
import os
from dataclasses import dataclass, field
from datetime import date


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str

    mail_server: str
    mail_port: int
    mail_use_tls: bool
    mail_use_ssl: bool
    mail_username: str
    mail_password: str
    mail_default_sender: str
    mail_suppress_send: bool

    # Optional profile fields
    enable_pronoun: bool
    enable_user_name: bool
    enable_planned_arrival: bool
    enable_dect: bool
    enable_mobile_show: bool
    enable_goody: bool
    enable_tshirt_size: bool

    buildup_start: date | None
    teardown_end: date | None
    min_password_length: int

    default_theme: int
    default_locale: str
    themes: dict[int, dict] = field(default_factory=dict)
    locales: dict[str, str] = field(default_factory=dict)
    tshirt_sizes: dict[str, str] = field(default_factory=dict)
    oauth_providers: dict[str, dict] = field(default_factory=dict)


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getbool(name: str, default: bool = False) -> bool:
    raw = _getenv(name)
    if not raw:
        return default
    return raw.lower() in ("1", "true", "yes", "on")


def _getdate(name: str) -> date | None:
    raw = _getenv(name)
    return date.fromisoformat(raw) if raw else None


def _parse_pairs(raw: str) -> dict[str, str]:
    """Parse ``key=Label,key2=Label2`` into an ordered dict."""
    out: dict[str, str] = {}
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        key, _, label = chunk.partition("=")
        key = key.strip()
        out[key] = (label or key).strip()
    return out


def _parse_themes(raw: str) -> dict[int, dict]:
    names = [n.strip() for n in raw.split(",") if n.strip()]
    return {i: {"name": name} for i, name in enumerate(names)}


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///staffing.db"),
        mail_server=_getenv("MAIL_SERVER", "localhost"),
        mail_port=int(_getenv("MAIL_PORT", "25")),
        mail_use_tls=_getbool("MAIL_USE_TLS"),
        mail_use_ssl=_getbool("MAIL_USE_SSL"),
        mail_username=_getenv("MAIL_USERNAME"),
        mail_password=_getenv("MAIL_PASSWORD"),
        mail_default_sender=_getenv("MAIL_DEFAULT_SENDER", "noreply@staffing.local"),
        mail_suppress_send=_getbool("MAIL_SUPPRESS_SEND"),
        enable_pronoun=_getbool("ENABLE_PRONOUN"),
        enable_user_name=_getbool("ENABLE_USER_NAME"),
        enable_planned_arrival=_getbool("ENABLE_PLANNED_ARRIVAL"),
        enable_dect=_getbool("ENABLE_DECT", True),
        enable_mobile_show=_getbool("ENABLE_MOBILE_SHOW"),
        enable_goody=_getbool("ENABLE_GOODY"),
        enable_tshirt_size=_getbool("ENABLE_TSHIRT_SIZE", True),
        buildup_start=_getdate("BUILDUP_START"),
        teardown_end=_getdate("TEARDOWN_END"),
        min_password_length=int(_getenv("MIN_PASSWORD_LENGTH", "8")),
        default_theme=int(_getenv("DEFAULT_THEME", "0")),
        default_locale=_getenv("DEFAULT_LOCALE", "en_US"),
        themes=_parse_themes(_getenv("THEMES", "Light,Dark")),
        locales=_parse_pairs(_getenv("LOCALES", "en_US=English,de_DE=Deutsch")),
        tshirt_sizes=_parse_pairs(_getenv("TSHIRT_SIZES", "S=Small,M=Medium,L=Large,XL=XLarge")),
        oauth_providers=json.loads(_getenv("OAUTH_PROVIDERS", "{}")),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        # Flask-Mail
        "MAIL_SERVER": s.mail_server,
        "MAIL_PORT": s.mail_port,
        "MAIL_USE_TLS": s.mail_use_tls,
        "MAIL_USE_SSL": s.mail_use_ssl,
        "MAIL_USERNAME": s.mail_username or None,
        "MAIL_PASSWORD": s.mail_password or None,
        "MAIL_DEFAULT_SENDER": s.mail_default_sender,
        "MAIL_SUPPRESS_SEND": s.mail_suppress_send,
        # profile feature flags
        "ENABLE_PRONOUN": s.enable_pronoun,
        "ENABLE_USER_NAME": s.enable_user_name,
        "ENABLE_PLANNED_ARRIVAL": s.enable_planned_arrival,
        "ENABLE_DECT": s.enable_dect,
        "ENABLE_MOBILE_SHOW": s.enable_mobile_show,
        "ENABLE_GOODY": s.enable_goody,
        "ENABLE_TSHIRT_SIZE": s.enable_tshirt_size,
        "BUILDUP_START": s.buildup_start,
        "TEARDOWN_END": s.teardown_end,
        "MIN_PASSWORD_LENGTH": s.min_password_length,
        "THEMES": s.themes,
        "DEFAULT_THEME": s.default_theme,
        "LOCALES": s.locales,
        "DEFAULT_LOCALE": s.default_locale,
        "TSHIRT_SIZES": s.tshirt_sizes,
        "OAUTH_PROVIDERS": s.oauth_providers,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
    }
