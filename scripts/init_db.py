"""
Seed permissions, the admin role and the admin user.

Idempotent: existing rows are reused and an existing admin keeps its password.

Environment:
    DATABASE_URL     target database (default sqlite:///staffing.db)
    ADMIN_NAME       nick of the admin user (default "admin")
    ADMIN_EMAIL      e-mail of the admin user (default admin@staffing.local)
    ADMIN_PASSWORD   initial password, only used when the admin is created
"""
import os
import sys
from pathlib import Path

from sqlalchemy import func
from sqlalchemy.orm import Session, sessionmaker
from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.staffing.constants import PERMISSIONS
from app.staffing.db import make_engine
from app.staffing.models import Permission, Role, User


def _ensure_permission(s: Session, key: str, name: str) -> Permission:
    p = s.query(Permission).filter(Permission.key == key).one_or_none()
    if p is None:
        p = Permission(key=key, name=name)
        s.add(p)
    return p


def _ensure_admin_role(s: Session, permissions: list[Permission]) -> Role:
    role = s.query(Role).filter(Role.key == "admin").one_or_none()
    if role is None:
        role = Role(key="admin", name="Administrator")
        s.add(role)
    for p in permissions:
        if p not in role.permissions:
            role.permissions.append(p)
    return role


def _ensure_admin_user(s: Session, role: Role, *, name: str, email: str, password: str) -> User:
    user = s.query(User).filter((func.lower(User.email) == email.lower()) | (User.name == name)).one_or_none()
    if user is None:
        user = User(name=name, email=email, password_hash=generate_password_hash(password), is_active=True)
        s.add(user)
    if role not in user.roles:
        user.roles.append(role)
    return user


def seed_only(*, database_url: str | None = None) -> None:
    admin_name = (os.environ.get("ADMIN_NAME") or "admin").strip()
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@staffing.local").strip()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"
    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///staffing.db").strip()

    # Direct engine/session so release can seed without building the Flask app.
    engine = make_engine(db_url)
    s = sessionmaker(bind=engine, class_=Session, autoflush=False, expire_on_commit=False)()
    try:
        perms = [_ensure_permission(s, key, name) for key, name in PERMISSIONS.items()]
        role = _ensure_admin_role(s, perms)
        _ensure_admin_user(s, role, name=admin_name, email=admin_email, password=admin_password)
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
        engine.dispose()

    print(f"Seeded {len(PERMISSIONS)} permissions and admin {admin_name} <{admin_email}>.")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
