"""Create tables and seed the data every deployment starts with."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from groupchat_stage.core.settings import settings
from groupchat_stage.db.session import SessionLocal, create_tables
from groupchat_stage.services.groups import GroupService
from groupchat_stage.services.users import UserService

logger = logging.getLogger(__name__)


def seed(db: Session) -> None:
    """Ensure Main Chat, the default groups and the admin account exist.

    Every step is a find-or-create, so running this on several processes at
    once is safe.
    """
    groups = GroupService(db)
    groups.ensure_main_chat()
    if settings.seed_default_groups:
        groups.ensure_default_groups()
    UserService(db).ensure_admin_user()


def init_db(*, create: bool = True) -> None:
    """Initialize the database by creating all tables and seeding it."""
    if create:
        create_tables()
    with SessionLocal() as db:
        seed(db)
    logger.info("Database initialized")
