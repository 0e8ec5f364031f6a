from __future__ import annotations

import os
from decimal import Decimal
from functools import lru_cache
from typing import Callable, Generator

# Configure the app for an isolated in-memory database before it is imported
os.environ["DATABASE_URL"] = os.getenv("TEST_DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ["RUN_MIGRATIONS"] = "false"
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-that-is-at-least-32-characters")

import pytest  # noqa: E402
from dotenv import load_dotenv  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from app import models  # noqa: E402
from app.auth import create_access_token, load_user_with_roles  # noqa: E402
from app.db import Base, SessionLocal, engine  # noqa: E402
from app.main import app  # noqa: E402
from app.models import RoleName, UserStatus  # noqa: E402
from app.seed import ensure_seed_data  # noqa: E402
from app.services.passwords import hash_password  # noqa: E402
from app.services.roles import grant_role  # noqa: E402
from app.settings import SYSTEM_ACTOR  # noqa: E402
from app.utils.ids import generate_account_number, generate_id  # noqa: E402

load_dotenv()

DEFAULT_PASSWORD = "password123"


@lru_cache(maxsize=None)
def _hashed(password: str) -> str:
    # bcrypt is slow on purpose; hash each distinct test password once
    return hash_password(password)


@pytest.fixture(autouse=True)
def reset_database(monkeypatch) -> Generator[None, None, None]:
    """Fresh schema and role rows for every test."""
    monkeypatch.delenv("SUPERADMIN_EMAIL", raising=False)
    monkeypatch.delenv("SUPERADMIN_PASSWORD", raising=False)
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    ensure_seed_data()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def client() -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def db() -> Generator[Session, None, None]:
    """Create a database session for testing."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture()
def make_user(db: Session) -> Callable[..., models.User]:
    """Factory for users with roles, a stats row and a wallet."""

    def _make(
        full_name: str = "Test User",
        email: str | None = None,
        user_name: str | None = None,
        bio: str | None = None,
        roles: tuple[RoleName, ...] = (RoleName.AUTHENTICATED,),
        verified: bool = True,
        status: UserStatus = UserStatus.ACTIVE,
        balance: Decimal | str = "0.00",
        password: str = DEFAULT_PASSWORD,
    ) -> models.User:
        user_id = generate_id()
        db.add(
            models.User(
                user_id=user_id,
                full_name=full_name,
                user_name=user_name,
                bio=bio,
                email=email or f"{user_id}@example.com",
                password=_hashed(password),
                verified=verified,
                status=status,
                created_by=SYSTEM_ACTOR,
                updated_by=SYSTEM_ACTOR,
            )
        )
        db.flush()
        for role_name in roles:
            grant_role(db, user_id, role_name, SYSTEM_ACTOR)
        db.add(models.UsersStats(user_id=user_id, created_by=SYSTEM_ACTOR, updated_by=SYSTEM_ACTOR))
        db.add(
            models.Wallet(
                user_id=user_id,
                account_number=generate_account_number(),
                balance=Decimal(balance),
                currency="SLE",
                created_by=SYSTEM_ACTOR,
                updated_by=SYSTEM_ACTOR,
            )
        )
        db.commit()
        return load_user_with_roles(db, user_id)

    return _make


@pytest.fixture()
def auth_headers() -> Callable[[models.User], dict[str, str]]:
    """Bearer header for a user, signed with the app's configuration."""

    def _headers(user: models.User) -> dict[str, str]:
        token = create_access_token(user, app.state.auth_config)
        return {"Authorization": f"Bearer {token}"}

    return _headers
