"""Role rows and grants."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from .. import models
from ..models import RoleName

logger = logging.getLogger(__name__)


def get_or_create_role(db: Session, role_name: RoleName, actor: str) -> models.Role:
    """Return the Role row for ``role_name``, inserting it on first use."""
    role = db.query(models.Role).filter(models.Role.role_name == role_name).first()
    if role is None:
        role = models.Role(role_name=role_name, created_by=actor, updated_by=actor)
        db.add(role)
        db.flush()
        logger.info(f"Created role {role_name.value}")
    return role


def grant_role(db: Session, user_id: str, role_name: RoleName, actor: str) -> bool:
    """Give ``user_id`` the role unless they already hold it. Returns True when granted."""
    role = get_or_create_role(db, role_name, actor)
    existing = (
        db.query(models.UserRole)
        .filter(models.UserRole.user_id == user_id, models.UserRole.role_id == role.role_id)
        .first()
    )
    if existing:
        return False
    db.add(
        models.UserRole(
            user_id=user_id,
            role_id=role.role_id,
            created_by=actor,
            updated_by=actor,
        )
    )
    db.flush()
    return True
