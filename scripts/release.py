"""
Release phase: migrate the schema to head, then seed permissions and the admin.

Refuses to run without DATABASE_URL, and refuses sqlite when ENV is production.

Usage:
  python scripts/release.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _database_url() -> str:
    db_url = (os.environ.get("DATABASE_URL") or "").strip()
    if not db_url:
        raise RuntimeError("Missing required environment variable DATABASE_URL.")
    env = (os.environ.get("ENV") or "").strip().lower()
    if env in ("prod", "production") and db_url.startswith("sqlite"):
        raise RuntimeError("Refusing to run release on sqlite DATABASE_URL in production. Set DATABASE_URL to Postgres.")
    return db_url


def migrate(db_url: str) -> None:
    from alembic import command
    from alembic.config import Config

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    command.upgrade(cfg, "head")


def run_release() -> None:
    db_url = _database_url()

    print("=== staffing release start ===", flush=True)
    print("Running Alembic migrations...", flush=True)
    migrate(db_url)
    print("Migrations complete. Seeding permissions/admin...", flush=True)

    from scripts import init_db

    init_db.seed_only(database_url=db_url)
    print("=== staffing release done ===", flush=True)


def main() -> None:
    run_release()


if __name__ == "__main__":
    main()
