# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from itertools import count

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-pytest-only")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")
os.environ.setdefault("ADMIN_PASSWORD", "")

from groupchat_stage.core.security import create_access_token, get_password_hash
from groupchat_stage.db.session import Base
from groupchat_stage.db.session import get_db as app_get_session
from groupchat_stage.main import app as fastapi_app
from groupchat_stage.models import Group, GroupMember, Message, User
from groupchat_stage.models.membership import MEMBER_ROLE_ADMIN, MEMBER_ROLE_MEMBER
from groupchat_stage.models.user import USER_ROLE_ADMIN, USER_ROLE_USER
from groupchat_stage.services.access import AccessEngine

TEST_DB_URL = "sqlite://"
TEST_PASSWORD = "Secret123"

_USER_COUNTER = count(1)
_GROUP_COUNTER = count(1)


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()

        # Services commit, so every test wipes the tables it touched.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(app: FastAPI, db_session: Session) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture()
def client(app: FastAPI) -> TestClient:
    # Not entered as a context manager: startup seeding targets the real engine.
    return TestClient(app, base_url="http://test")


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    """Factory that persists a user with a known password."""

    def _make_user(
        name: str | None = None,
        email: str | None = None,
        role: str = USER_ROLE_USER,
        password: str = TEST_PASSWORD,
    ) -> User:
        n = next(_USER_COUNTER)
        user = User(
            name=name or f"Test User {chr(ord('A') + n % 26)}",
            email=email or f"user{n}@example.com",
            password_hash=get_password_hash(password),
            role=role,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture()
def user(make_user: Callable[..., User]) -> User:
    return make_user(name="Alice Example", email="alice@example.com")


@pytest.fixture()
def other_user(make_user: Callable[..., User]) -> User:
    return make_user(name="Bob Example", email="bob@example.com")


@pytest.fixture()
def system_admin(make_user: Callable[..., User]) -> User:
    return make_user(name="Site Admin", email="siteadmin@example.com", role=USER_ROLE_ADMIN)


def auth_headers_for(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture()
def auth_headers(user: User) -> dict[str, str]:
    return auth_headers_for(user)


@pytest.fixture()
def other_headers(other_user: User) -> dict[str, str]:
    return auth_headers_for(other_user)


@pytest.fixture()
def admin_headers(system_admin: User) -> dict[str, str]:
    return auth_headers_for(system_admin)


@pytest.fixture()
def make_group(db_session: Session) -> Callable[..., Group]:
    """Factory for a group whose ``admin`` holds an active admin membership."""

    def _make_group(
        admin: User,
        *,
        name: str | None = None,
        is_public: bool = False,
        max_members: int = 50,
        members: tuple[User, ...] = (),
    ) -> Group:
        group = Group(
            name=name or f"Test Group {next(_GROUP_COUNTER)}",
            is_public=is_public,
            max_members=max_members,
            created_by_id=admin.id,
        )
        db_session.add(group)
        db_session.flush()
        db_session.add(GroupMember(user_id=admin.id, group_id=group.id, role=MEMBER_ROLE_ADMIN))
        for member in members:
            db_session.add(
                GroupMember(user_id=member.id, group_id=group.id, role=MEMBER_ROLE_MEMBER)
            )
        db_session.commit()
        db_session.refresh(group)
        return group

    return _make_group


@pytest.fixture()
def group(make_group: Callable[..., Group], user: User, other_user: User) -> Group:
    """Private group administered by ``user`` with ``other_user`` as a member."""
    return make_group(user, name="Book Club", members=(other_user,))


@pytest.fixture()
def post_messages(db_session: Session) -> Callable[..., list[Message]]:
    """Send ``n`` text messages from ``sender`` through the access engine."""

    def _post(group: Group, sender: User, n: int, prefix: str = "message") -> list[Message]:
        engine = AccessEngine(db_session)
        return [engine.send_message(group.id, sender, f"{prefix} {i}") for i in range(n)]

    return _post


@pytest.fixture()
def headers_for() -> Callable[[User], dict[str, str]]:
    return auth_headers_for


@pytest.fixture()
def break_commits(monkeypatch: pytest.MonkeyPatch, db_session: Session) -> Callable[[], None]:
    """Return a switch that makes later commits fail as a locked database would."""

    def _commit() -> None:
        db_session.flush()
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    def _break() -> None:
        monkeypatch.setattr(db_session, "commit", _commit)

    return _break
