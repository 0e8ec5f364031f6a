"""Denormalized counter maintenance.

Counters are changed with ``UPDATE ... SET col = col + delta`` so concurrent
requests never lose an increment. Callers run these inside the same
transaction as the row mutation the counter describes.
"""

from __future__ import annotations

import logging

from sqlalchemy.orm import InstrumentedAttribute, Session

from .. import models

logger = logging.getLogger(__name__)


def adjust_counter(
    db: Session,
    column: InstrumentedAttribute,
    key_column: InstrumentedAttribute,
    key: str,
    delta: int,
) -> int:
    """Add ``delta`` to ``column`` on the row(s) where ``key_column == key``; returns rows hit."""
    if delta == 0:
        return 0
    model = column.class_
    updated = (
        db.query(model)
        .filter(key_column == key)
        .update({column: column + delta}, synchronize_session=False)
    )
    logger.debug(f"adjust_counter: {model.__tablename__}.{column.key} {delta:+d} for {key} ({updated} rows)")
    return updated


def adjust_user_stat(db: Session, user_id: str, column: InstrumentedAttribute, delta: int) -> int:
    return adjust_counter(db, column, models.UsersStats.user_id, user_id, delta)


def adjust_blog_counter(db: Session, blog_id: str, column: InstrumentedAttribute, delta: int) -> int:
    return adjust_counter(db, column, models.Blog.blog_id, blog_id, delta)


def adjust_comment_counter(db: Session, comment_id: str, column: InstrumentedAttribute, delta: int) -> int:
    return adjust_counter(db, column, models.Comment.comment_id, comment_id, delta)
