"""Access token issuance."""

from __future__ import annotations

import logging

from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import check_user_can_authenticate, create_access_token, load_user_with_roles
from ..settings import AuthConfig
from .passwords import verify_password
from .users import build_user_detail

logger = logging.getLogger(__name__)


def _find_by_email(db: Session, email: str) -> models.User | None:
    row = (
        db.query(models.User.user_id)
        .filter(func.lower(models.User.email) == email.lower())
        .first()
    )
    return load_user_with_roles(db, row.user_id) if row else None


def _token_response(user: models.User, config: AuthConfig) -> schemas.TokenResponse:
    if not user.verified:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User is not verified",
        )
    check_user_can_authenticate(user)
    token = create_access_token(user, config)
    logger.info(f"Issued access token for user {user.user_id}")
    return schemas.TokenResponse(
        message="Token generated successfully",
        token=token,
        user=build_user_detail(user),
    )


def issue_token_for_email(db: Session, email: str, config: AuthConfig) -> schemas.TokenResponse:
    """Token for a verified account, looked up by email alone."""
    user = _find_by_email(db, email)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    return _token_response(user, config)


def login(db: Session, email: str, password: str, config: AuthConfig) -> schemas.TokenResponse:
    """Token for a verified account after checking its password."""
    user = _find_by_email(db, email)
    if not user or not verify_password(password, user.password):
        logger.info(f"Failed login for {email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )
    return _token_response(user, config)
