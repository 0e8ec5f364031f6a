"""Business profiles and their counters."""

from __future__ import annotations

import logging

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import CurrentUser, require_ownership
from ..db import transaction
from ..models import RoleName
from .roles import grant_role

logger = logging.getLogger(__name__)


class BusinessService:
    def __init__(self, db: Session, current_user: CurrentUser):
        self.db = db
        self.current_user = current_user

    def get_business_or_404(self, business_id: str) -> models.Business:
        business = (
            self.db.query(models.Business)
            .filter(models.Business.business_id == business_id)
            .first()
        )
        if not business:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Business not found",
            )
        return business

    def create_business(self, payload: schemas.BusinessCreate) -> models.Business:
        """Open the caller's business, create its stats row and make them a BusinessOwner."""
        user_id = self.current_user.user_id
        existing = self.db.query(models.Business).filter(models.Business.user_id == user_id).first()
        if existing:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Business already exists for this user",
            )

        actor = self.current_user.actor_name
        with transaction(self.db):
            business = models.Business(
                user_id=user_id,
                name=payload.name,
                description=payload.description,
                logo=payload.logo,
                created_by=actor,
                updated_by=actor,
            )
            self.db.add(business)
            self.db.flush()
            self.db.add(
                models.BusinessStats(
                    business_id=business.business_id,
                    created_by=actor,
                    updated_by=actor,
                )
            )
            grant_role(self.db, user_id, RoleName.BUSINESS_OWNER, actor)

        logger.info(f"Business {business.business_id} created by {user_id}")
        return self.get_business_or_404(business.business_id)

    def get_stats(self, business_id: str) -> models.BusinessStats:
        business = self.get_business_or_404(business_id)
        require_ownership(business.user_id, self.current_user)
        if business.stats is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Business stats not found",
            )
        return business.stats
