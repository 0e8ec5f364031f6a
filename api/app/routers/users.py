"""User endpoints: accounts, follows, roles, wallet and subscriptions."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from .. import schemas
from ..auth import (
    CurrentUser,
    get_current_user,
    get_current_user_or_anonymous,
    require_admin,
    require_super_admin,
)
from ..deps import get_db
from ..pagination import PageRequest
from ..services.blogs import BlogService
from ..services.users import UserService
from ..services.wallets import WalletService
from ..settings import PAGE_SIZE_MAX, USER_PAGE_SIZE_DEFAULT
from .blogs import blog_page

router = APIRouter(prefix="/users", tags=["Users"])
logger = logging.getLogger(__name__)


def user_page(
    page: int = Query(1, description="1-based page number; values below 1 are treated as 1"),
    limit: int = Query(USER_PAGE_SIZE_DEFAULT, ge=1, le=PAGE_SIZE_MAX),
) -> PageRequest:
    return PageRequest.of(page, limit, USER_PAGE_SIZE_DEFAULT)


@router.post(
    "",
    response_model=schemas.Envelope[schemas.UserDetail],
    status_code=status.HTTP_201_CREATED,
)
def create_user(
    payload: schemas.UserCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
) -> schemas.Envelope[schemas.UserDetail]:
    """
    Create an account (admin only).

    Provisions the user's role (Authenticated unless given), stats row and an
    empty wallet in the same transaction. 409 if the email or user name is
    taken.
    """
    user = UserService(db, current_user).create_user(payload)
    return schemas.Envelope[schemas.UserDetail](message="User created successfully", data=user)


@router.get("", response_model=schemas.Page[schemas.UserListItem])
def list_users(
    search: str | None = Query(None),
    page_request: PageRequest = Depends(user_page),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user_or_anonymous),
) -> schemas.Page[schemas.UserListItem]:
    """
    Search users.

    Every word of ``search`` must match full name, email, user name or bio.
    Results are shuffled and flagged with whether the caller follows them.
    """
    return UserService(db, current_user).list_users(search, page_request)


@router.post("/follows", response_model=schemas.FollowResponse)
def toggle_follow(
    payload: schemas.FollowRequest,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> schemas.FollowResponse:
    """Follow ``followingId`` as ``followerId``, or unfollow if already following."""
    return UserService(db, current_user).toggle_follow(payload)


@router.get("/{user_id}", response_model=schemas.UserDetail)
def get_user(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user_or_anonymous),
) -> schemas.UserDetail:
    return UserService(db, current_user).get_user(user_id)


@router.put("/{user_id}", response_model=schemas.Envelope[schemas.UserDetail])
def update_user(
    user_id: str,
    payload: schemas.UserUpdate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> schemas.Envelope[schemas.UserDetail]:
    """Partially update a profile (self or admin). A new password is re-hashed."""
    user = UserService(db, current_user).update_user(user_id, payload)
    return schemas.Envelope[schemas.UserDetail](message="User updated successfully", data=user)


@router.delete("/{user_id}", response_model=schemas.MessageResponse)
def delete_user(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> schemas.MessageResponse:
    """Delete an account and everything it owns (self or admin)."""
    UserService(db, current_user).delete_user(user_id)
    return schemas.MessageResponse(message="User deleted successfully")


@router.get("/{user_id}/blogs", response_model=schemas.Page[schemas.BlogWithMeta])
def list_user_blogs(
    user_id: str,
    page_request: PageRequest = Depends(blog_page),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user_or_anonymous),
) -> schemas.Page[schemas.BlogWithMeta]:
    return BlogService(db, current_user).list_user_blogs(user_id, page_request)


@router.get("/{user_id}/followers", response_model=schemas.Page[schemas.UserListItem])
def list_followers(
    user_id: str,
    search: str | None = Query(None),
    page_request: PageRequest = Depends(user_page),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user_or_anonymous),
) -> schemas.Page[schemas.UserListItem]:
    return UserService(db, current_user).list_followers(user_id, search, page_request)


@router.get("/{user_id}/followings", response_model=schemas.Page[schemas.UserListItem])
def list_followings(
    user_id: str,
    search: str | None = Query(None),
    page_request: PageRequest = Depends(user_page),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user_or_anonymous),
) -> schemas.Page[schemas.UserListItem]:
    return UserService(db, current_user).list_followings(user_id, search, page_request)


@router.get("/{user_id}/unfollowings", response_model=schemas.Page[schemas.UserListItem])
def list_unfollowings(
    user_id: str,
    search: str | None = Query(None),
    page_request: PageRequest = Depends(user_page),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user_or_anonymous),
) -> schemas.Page[schemas.UserListItem]:
    """Users that ``user_id`` does not follow yet; useful for suggestions."""
    return UserService(db, current_user).list_unfollowings(user_id, search, page_request)


@router.get("/{user_id}/roles", response_model=schemas.UserRolesResponse)
def get_user_roles(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
) -> schemas.UserRolesResponse:
    return UserService(db, current_user).get_roles(user_id)


@router.put("/{user_id}/roles", response_model=schemas.Envelope[schemas.UserRolesResponse])
def replace_user_roles(
    user_id: str,
    payload: schemas.UserRolesUpdate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_super_admin),
) -> schemas.Envelope[schemas.UserRolesResponse]:
    """Replace a user's role set (super admin only). Recorded in the audit log."""
    roles = UserService(db, current_user).replace_roles(user_id, payload)
    return schemas.Envelope[schemas.UserRolesResponse](message="User roles updated successfully", data=roles)


@router.patch("/{user_id}/status", response_model=schemas.Envelope[schemas.UserDetail])
def update_user_status(
    user_id: str,
    payload: schemas.UserStatusUpdate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
) -> schemas.Envelope[schemas.UserDetail]:
    """Set active / banned / suspended / online (admin only). Recorded in the audit log."""
    user = UserService(db, current_user).update_status(user_id, payload)
    return schemas.Envelope[schemas.UserDetail](message="User status updated successfully", data=user)


@router.get("/{user_id}/wallet", response_model=schemas.WalletWithTransactions)
def get_user_wallet(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> schemas.WalletWithTransactions:
    """The user's wallet with its most recent transactions (self or admin)."""
    return WalletService(db, current_user).get_wallet(user_id)


@router.post("/{user_id}/subscribe", response_model=schemas.Envelope[schemas.SubscriptionOut])
def subscribe(
    user_id: str,
    payload: schemas.SubscribeRequest,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> schemas.Envelope[schemas.SubscriptionOut]:
    """
    Buy a monthly (50.00) or yearly (500.00) plan for the user's business.

    The price is debited from the user's wallet and recorded as a payment
    transaction. 400 when the balance does not cover the price.
    """
    subscription = WalletService(db, current_user).subscribe(user_id, payload)
    return schemas.Envelope[schemas.SubscriptionOut](
        message=f"Successfully subscribed to {payload.plan.value} plan.",
        data=subscription,
    )
