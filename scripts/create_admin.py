"""
Create or reset an admin account in the configured database.

Usage:
  DATABASE_URL=postgresql+psycopg://... python scripts/create_admin.py alice
"""

from __future__ import annotations

import argparse
import getpass
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from storybook.auth import hash_password
from storybook.config import get_settings
from storybook.db import AdminRecord, SqlDbClient

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create or reset an admin account.")
    parser.add_argument("username")
    parser.add_argument(
        "--password",
        default=None,
        help="Password to set (prompted for when omitted).",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="SQLAlchemy URL (defaults to DATABASE_URL).",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")

    database_url = args.database_url or get_settings().database_url
    if not database_url:
        parser.error("DATABASE_URL is not set and --database-url was not given")

    password = args.password or getpass.getpass("Password: ")
    if not password:
        parser.error("password must not be empty")

    db = SqlDbClient(database_url)
    db.save_admin(AdminRecord(username=args.username, password_hash=hash_password(password)))
    logger.info("Saved admin %s", args.username)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
