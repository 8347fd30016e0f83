"""Command line entry point that prepares the configured database."""
from __future__ import annotations

import argparse
import logging
import sys

from alembic.util.exc import CommandError
from sqlalchemy.exc import SQLAlchemyError

from groupchat_stage.core.settings import settings
from groupchat_stage.db.session import SessionLocal, create_tables, drop_tables
from groupchat_stage.init_db import seed
from groupchat_stage.scripts.migrate import run_upgrade_head


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create tables and seed the group chat database")
    schema = parser.add_mutually_exclusive_group()
    schema.add_argument(
        "--drop-tables",
        action="store_true",
        help="Drop every table before creating them again.",
    )
    schema.add_argument(
        "--migrate",
        action="store_true",
        help="Apply Alembic migrations up to head instead of creating tables directly.",
    )
    parser.add_argument(
        "--no-seed",
        action="store_true",
        help="Only create tables; skip Main Chat, default groups and the admin account.",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=settings.log_level.upper())
    try:
        if args.migrate:
            run_upgrade_head()
        else:
            if args.drop_tables:
                drop_tables()
            create_tables()
        if not args.no_seed:
            with SessionLocal() as db:
                seed(db)
    except (SQLAlchemyError, CommandError) as exc:
        print(f"[bootstrap] ERROR: {exc}", file=sys.stderr)
        return 1
    print("[bootstrap] database ready")
    return 0


if __name__ == "__main__":
    sys.exit(main())
