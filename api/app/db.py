from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Generator, Iterator
from urllib.parse import quote_plus

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


def get_database_url() -> str:
    """Get the database URL for API operations (uses API worker user)."""
    # An explicit URL wins (tests, local sqlite, managed databases)
    explicit_url = os.getenv("DATABASE_URL")
    if explicit_url:
        return explicit_url

    # Construct from components using API worker credentials
    api_user = os.getenv("DB_API_WORKER_USER")
    api_pass = os.getenv("DB_API_WORKER_PASSWORD")
    db_name = os.getenv("DB_DATABASE")
    db_host = os.getenv("DB_HOST", "db")
    db_port = os.getenv("DB_PORT", "5432")

    if api_user and api_pass and db_name:
        # URL-encode the password in case it contains special characters
        encoded_pass = quote_plus(api_pass)
        return f"postgresql+psycopg://{api_user}:{encoded_pass}@{db_host}:{db_port}/{db_name}"

    raise RuntimeError(
        "DATABASE_URL must be set, or DB_API_WORKER_USER, DB_API_WORKER_PASSWORD, "
        "and DB_DATABASE must all be set."
    )


DATABASE_URL = get_database_url()


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""


def _engine_options(url: str) -> dict:
    options: dict = {
        "future": True,
        "echo": os.getenv("LOG_LEVEL", "INFO").upper() == "DEBUG",
    }
    if url.startswith("sqlite"):
        # One shared connection so an in-memory database survives across sessions
        options["connect_args"] = {"check_same_thread": False}
        options["poolclass"] = StaticPool
    else:
        options["pool_pre_ping"] = True
    return options


engine = create_engine(DATABASE_URL, **_engine_options(DATABASE_URL))

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


def get_session() -> Generator[Session, None, None]:
    session: Session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """
    Run a unit of work: commit when the block exits cleanly, roll back otherwise.

    Every use case that writes to more than one table goes through this so the
    row mutations and their counter updates land together or not at all.
    """
    try:
        yield db
        db.commit()
    except Exception:
        logger.debug("transaction: rolling back")
        db.rollback()
        raise
