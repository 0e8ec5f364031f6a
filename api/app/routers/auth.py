"""Authentication endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import schemas
from ..auth import CurrentUser, get_auth_config, get_current_user
from ..deps import get_db
from ..services import tokens
from ..services.users import build_user_detail
from ..settings import AuthConfig

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/token", response_model=schemas.TokenResponse)
def issue_token(
    payload: schemas.TokenRequest,
    db: Session = Depends(get_db),
    config: AuthConfig = Depends(get_auth_config),
) -> schemas.TokenResponse:
    """
    Issue an access token for a verified account by email.

    Used by trusted flows that have already established the caller's
    identity out of band. 404 for an unknown email, 401 when the account is
    not verified.
    """
    return tokens.issue_token_for_email(db, payload.email, config)


@router.post("/login", response_model=schemas.TokenResponse)
def login(
    payload: schemas.LoginRequest,
    db: Session = Depends(get_db),
    config: AuthConfig = Depends(get_auth_config),
) -> schemas.TokenResponse:
    """Exchange email and password for an access token."""
    return tokens.login(db, payload.email, payload.password, config)


@router.get("/me", response_model=schemas.UserDetail)
def get_me(current_user: CurrentUser = Depends(get_current_user)) -> schemas.UserDetail:
    """The authenticated caller with counters and roles."""
    return build_user_detail(current_user.user)
