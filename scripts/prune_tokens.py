"""
Delete expired rows from the token blocklist and refresh token tables.

Usage:
  python scripts/prune_tokens.py
"""
from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.cheongwon.config import load_config  # noqa: E402
from app.cheongwon.tokens import token_service_from_config  # noqa: E402
from scripts._db_utils import script_session  # noqa: E402


def prune(*, database_url: str | None = None) -> int:
    config = load_config()
    db_url = (database_url or config["DATABASE_URL"]).strip()
    tokens = token_service_from_config(config)
    with script_session(db_url) as s:
        n = tokens.prune_revoked(s)
    print(f"Pruned {n} expired token rows.", flush=True)
    return n


def main() -> None:
    prune(database_url=os.environ.get("DATABASE_URL"))


if __name__ == "__main__":
    main()
