from __future__ import annotations

from typing import Generator

from sqlalchemy.orm import Session

from .db import get_session


def get_db() -> Generator[Session, None, None]:
    """One session per request, shared by the guard and the handler."""
    yield from get_session()
