from __future__ import annotations

import logging
import os
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import Session

from . import models
from .db import SessionLocal, transaction
from .models import RoleName
from .services.passwords import hash_password
from .services.roles import get_or_create_role, grant_role
from .settings import SYSTEM_ACTOR, WALLET_CURRENCY
from .utils.ids import generate_account_number, generate_id

logger = logging.getLogger(__name__)


def _ensure_super_admin(db: Session) -> None:
    """Create the bootstrap SuperAdmin named by SUPERADMIN_EMAIL / SUPERADMIN_PASSWORD."""
    email = os.getenv("SUPERADMIN_EMAIL", "").strip().lower()
    password = os.getenv("SUPERADMIN_PASSWORD", "")
    if not email or not password:
        logger.info("ensure_seed_data: SUPERADMIN_EMAIL/SUPERADMIN_PASSWORD not set, no super admin seeded.")
        return

    existing = db.query(models.User).filter(func.lower(models.User.email) == email).first()
    if existing is not None:
        # Keep the role if someone stripped it; never touch the password
        if grant_role(db, existing.user_id, RoleName.SUPER_ADMIN, SYSTEM_ACTOR):
            logger.warning(f"ensure_seed_data: Restored SuperAdmin role for {existing.user_id}.")
        return

    user_id = generate_id()
    db.add(
        models.User(
            user_id=user_id,
            email=email,
            password=hash_password(password),
            full_name=os.getenv("SUPERADMIN_FULL_NAME", "Super Admin"),
            verified=True,
            created_by=SYSTEM_ACTOR,
            updated_by=SYSTEM_ACTOR,
        )
    )
    db.flush()
    grant_role(db, user_id, RoleName.SUPER_ADMIN, SYSTEM_ACTOR)
    db.add(models.UsersStats(user_id=user_id, created_by=SYSTEM_ACTOR, updated_by=SYSTEM_ACTOR))
    db.add(
        models.Wallet(
            user_id=user_id,
            account_number=generate_account_number(),
            balance=Decimal("0.00"),
            currency=WALLET_CURRENCY,
            created_by=SYSTEM_ACTOR,
            updated_by=SYSTEM_ACTOR,
        )
    )
    logger.info(f"ensure_seed_data: Created super admin {user_id} ({email}).")


def ensure_seed_data() -> None:
    """
    Ensure one Role row exists per RoleName, plus the bootstrap SuperAdmin.

    Idempotent; safe to run on every startup. The SuperAdmin account is only
    created when SUPERADMIN_EMAIL and SUPERADMIN_PASSWORD are set and no user
    holds that email yet. Everyone else is created through the API.
    """
    db = SessionLocal()
    try:
        with transaction(db):
            for role_name in RoleName:
                get_or_create_role(db, role_name, SYSTEM_ACTOR)
            _ensure_super_admin(db)
        logger.info(f"ensure_seed_data: {len(RoleName)} roles present.")
    finally:
        db.close()


if __name__ == "__main__":
    logging.basicConfig(level="INFO")
    ensure_seed_data()
