"""Business and wallet deposit endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import schemas
from ..auth import (
    CurrentUser,
    get_current_user,
    get_current_user_or_anonymous,
    require_business_owner,
    require_payment_agent,
)
from ..deps import get_db
from ..services.businesses import BusinessService
from ..services.wallets import WalletService

router = APIRouter(prefix="", tags=["Businesses"])


@router.post(
    "/businesses",
    response_model=schemas.Envelope[schemas.BusinessOut],
    status_code=status.HTTP_201_CREATED,
)
def create_business(
    payload: schemas.BusinessCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> schemas.Envelope[schemas.BusinessOut]:
    """Open a business for the caller, who becomes a BusinessOwner. One per user."""
    business = BusinessService(db, current_user).create_business(payload)
    return schemas.Envelope[schemas.BusinessOut](
        message="Business created successfully",
        data=schemas.BusinessOut.model_validate(business),
    )


@router.get("/businesses/{business_id}", response_model=schemas.BusinessOut)
def get_business(
    business_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user_or_anonymous),
) -> schemas.BusinessOut:
    business = BusinessService(db, current_user).get_business_or_404(business_id)
    return schemas.BusinessOut.model_validate(business)


@router.get("/businesses/{business_id}/stats", response_model=schemas.BusinessStatsOut)
def get_business_stats(
    business_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_business_owner),
) -> schemas.BusinessStatsOut:
    """Counters for a business; visible to its owner and to admins."""
    stats = BusinessService(db, current_user).get_stats(business_id)
    return schemas.BusinessStatsOut.model_validate(stats)


@router.post(
    "/wallets/{wallet_id}/deposits",
    response_model=schemas.Envelope[schemas.DepositResponse],
    status_code=status.HTTP_201_CREATED,
)
def deposit(
    wallet_id: str,
    payload: schemas.DepositRequest,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_payment_agent),
) -> schemas.Envelope[schemas.DepositResponse]:
    """Credit a wallet (payment agents and admins)."""
    result = WalletService(db, current_user).deposit(wallet_id, payload)
    return schemas.Envelope[schemas.DepositResponse](message="Deposit recorded successfully", data=result)
