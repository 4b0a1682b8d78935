"""
Release-phase helper.

Runs before gunicorn starts on every deploy:
- migrate the schema to head
- seed the administrator (idempotent; does NOT overwrite existing passwords)
- drop token rows that expired while the previous release was running

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


def alembic_config(db_url: str):
    from alembic.config import Config

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    return cfg


def run_release(*, skip_seed: bool = False) -> dict:
    """Returns a summary of what ran, for the deploy log."""
    from alembic import command

    from scripts import init_db, prune_tokens

    db_url = _database_url()
    summary = {"migrated": False, "admin": None, "pruned": 0}

    print("Cheongwon release: migrating...", flush=True)
    command.upgrade(alembic_config(db_url), "head")
    summary["migrated"] = True

    if not skip_seed:
        admin = init_db.seed_only(database_url=db_url)
        summary["admin"] = admin.email if admin else None

    summary["pruned"] = prune_tokens.prune(database_url=db_url)
    print(f"Cheongwon release done: {summary}", flush=True)
    return summary


def main() -> None:
    run_release(skip_seed="--skip-seed" in sys.argv[1:])


if __name__ == "__main__":
    main()
