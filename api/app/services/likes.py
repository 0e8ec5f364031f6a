"""Like toggling shared by blogs and comments."""

from __future__ import annotations

import logging

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import InstrumentedAttribute, Session, joinedload

from .. import models
from ..auth import CurrentUser
from ..db import transaction
from ..pagination import PageRequest, paginate
from .counters import adjust_counter, adjust_user_stat

logger = logging.getLogger(__name__)


def find_like(db: Session, user_id: str, ref_id: str) -> models.Like | None:
    return (
        db.query(models.Like)
        .filter(models.Like.user_id == user_id, models.Like.ref_id == ref_id)
        .first()
    )


def liked_ref_ids(db: Session, user_id: str | None, ref_ids: list[str]) -> set[str]:
    """Subset of ``ref_ids`` the user has liked; empty for anonymous callers."""
    if not user_id or not ref_ids:
        return set()
    rows = (
        db.query(models.Like.ref_id)
        .filter(models.Like.user_id == user_id, models.Like.ref_id.in_(ref_ids))
        .all()
    )
    return {row.ref_id for row in rows}


def toggle_like(
    db: Session,
    current_user: CurrentUser,
    ref_id: str,
    counter_column: InstrumentedAttribute,
    key_column: InstrumentedAttribute,
    user_stat_column: InstrumentedAttribute | None = None,
) -> bool:
    """
    Like ``ref_id`` if the caller has not, otherwise remove the like.

    The Like row, the target's counter and (optionally) the caller's stat move
    together in one transaction. Returns the new liked state.
    """
    user_id = current_user.user_id
    try:
        with transaction(db):
            existing = find_like(db, user_id, ref_id)
            delta = -1 if existing else 1
            if existing:
                db.delete(existing)
            else:
                db.add(
                    models.Like(
                        ref_id=ref_id,
                        user_id=user_id,
                        created_by=current_user.actor_name,
                        updated_by=current_user.actor_name,
                    )
                )
            db.flush()
            adjust_counter(db, counter_column, key_column, ref_id, delta)
            if user_stat_column is not None:
                adjust_user_stat(db, user_id, user_stat_column, delta)
    except IntegrityError:
        # A concurrent request recorded the same like first
        logger.warning(f"Duplicate like for user {user_id} on {ref_id}")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Like already recorded",
        )

    liked = existing is None
    logger.info(f"User {user_id} {'liked' if liked else 'unliked'} {ref_id}")
    return liked


def list_likes(db: Session, ref_id: str, page_request: PageRequest):
    query = (
        db.query(models.Like)
        .options(joinedload(models.Like.user))
        .filter(models.Like.ref_id == ref_id)
        .order_by(models.Like.created_at.desc())
    )
    return paginate(query, page_request)
