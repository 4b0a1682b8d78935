"""
Seed the administrator account.

Idempotent: an existing account keeps its password; only its role is promoted.

Usage:
  ADMIN_EMAIL=... ADMIN_PASSWORD=... python scripts/init_db.py
"""
import os
import sys
from pathlib import Path

from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.cheongwon.constants import ROLE_ADMIN, USER_STATUS_ACTIVE  # noqa: E402
from app.cheongwon.models import User  # noqa: E402
from scripts._db_utils import script_session  # noqa: E402


def seed_only(*, database_url: str | None = None) -> User | None:
    """
    Create or promote the admin user named by ADMIN_EMAIL.
    Does NOT overwrite an existing user's password.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or ""
    if not admin_email:
        print("ADMIN_EMAIL not set; skipping admin seed.", flush=True)
        return None

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///cheongwon.db").strip()

    with script_session(db_url) as s:
        user = s.query(User).filter(User.email == admin_email).one_or_none()
        if user is None:
            if not admin_password or admin_password == "change-me":
                raise RuntimeError("ADMIN_PASSWORD must be set to create the admin user.")
            user = User(
                email=admin_email,
                password_hash=generate_password_hash(admin_password),
                status=USER_STATUS_ACTIVE,
                role=ROLE_ADMIN,
            )
            s.add(user)
            print(f"Created admin user {admin_email}", flush=True)
        elif user.role != ROLE_ADMIN:
            user.role = ROLE_ADMIN
            print(f"Promoted {admin_email} to admin", flush=True)
        else:
            print(f"Admin user {admin_email} already present", flush=True)
        s.flush()
        return user


def main() -> None:
    seed_only()


if __name__ == "__main__":
    main()
