"""Audit logging utility for administrative actions."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from .. import models

logger = logging.getLogger(__name__)


def log_admin_action(
    db: Session,
    actor_id: str | None,
    action: str,
    target_type: str | None = None,
    target_id: str | None = None,
    note: str | None = None,
) -> models.AuditLog:
    """
    Record an administrative action in the audit log.

    The entry is added to the caller's session and flushed, not committed, so
    it lands in the same transaction as the change it describes.

    Args:
        db: Database session
        actor_id: ID of the user performing the action
        action: Action name (e.g., "update_user_status", "replace_user_roles")
        target_type: Type of target (e.g., "user", "blog")
        target_id: ID of the target entity
        note: Additional context about the action

    Returns:
        The AuditLog entry
    """
    audit_entry = models.AuditLog(
        actor_id=actor_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        note=note,
    )
    db.add(audit_entry)
    db.flush()
    logger.info(f"Audit: {action} on {target_type}:{target_id} by {actor_id}")
    return audit_entry
