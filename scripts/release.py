"""
Release phase: migrate the database to head, then run the idempotent seed
(permissions, roles, default plan, bootstrap admin).

Run before every deploy, or let scripts/start.py run it:
  python scripts/release.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def database_url_for_release() -> str:
    url = (os.environ.get("DATABASE_URL") or "").strip()
    if not url:
        raise RuntimeError("DATABASE_URL must be set for the release phase.")
    env = (os.environ.get("ENV") or "").strip().lower()
    if env in ("prod", "production") and url.startswith("sqlite"):
        raise RuntimeError("Refusing to release a production deploy onto SQLite; point DATABASE_URL at Postgres.")
    return url


def migrate(db_url: str) -> None:
    from alembic import command
    from alembic.config import Config

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    command.upgrade(cfg, "head")


def run_release() -> None:
    db_url = database_url_for_release()
    print(f"[release] ENV={os.environ.get('ENV') or '(unset)'}", flush=True)

    print("[release] alembic upgrade head", flush=True)
    migrate(db_url)

    print("[release] seeding roles, permissions, default plan and admin", flush=True)
    from scripts import init_db

    init_db.seed_only(database_url=db_url)
    print("[release] done", flush=True)


if __name__ == "__main__":
    run_release()
