"""
Wallet service: balances, deposits and subscription payments.

Balance changes are conditional ``UPDATE`` statements
(``balance = balance - price WHERE balance >= price``) so two concurrent
purchases can never overdraw a wallet.
"""

from __future__ import annotations

import calendar
import logging
from datetime import datetime

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import CurrentUser, require_ownership
from ..db import transaction
from ..models import RoleName, SubscriptionPlan, SubscriptionStatus, TransactionStatus, TransactionType, utcnow
from ..settings import SUBSCRIPTION_PRICES, WALLET_RECENT_TRANSACTIONS
from .counters import adjust_counter

logger = logging.getLogger(__name__)

PLAN_MONTHS = {
    SubscriptionPlan.MONTHLY: 1,
    SubscriptionPlan.YEARLY: 12,
}


def add_months(moment: datetime, months: int) -> datetime:
    """Calendar month arithmetic, clamping the day to the target month's length."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


class WalletService:
    """Use cases on wallets, on behalf of one caller."""

    def __init__(self, db: Session, current_user: CurrentUser):
        self.db = db
        self.current_user = current_user

    def _wallet_for_user(self, user_id: str) -> models.Wallet:
        wallet = self.db.query(models.Wallet).filter(models.Wallet.user_id == user_id).first()
        if not wallet:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Wallet not found",
            )
        return wallet

    def get_wallet(self, user_id: str) -> schemas.WalletWithTransactions:
        require_ownership(user_id, self.current_user)
        wallet = self._wallet_for_user(user_id)
        recent = (
            self.db.query(models.Transaction)
            .filter(models.Transaction.wallet_id == wallet.wallet_id)
            .order_by(models.Transaction.created_at.desc())
            .limit(WALLET_RECENT_TRANSACTIONS)
            .all()
        )
        return schemas.WalletWithTransactions.model_validate(wallet).model_copy(
            update={"transactions": [schemas.TransactionOut.model_validate(txn) for txn in recent]}
        )

    def deposit(self, wallet_id: str, payload: schemas.DepositRequest) -> schemas.DepositResponse:
        """Credit a wallet and record a completed deposit."""
        wallet = self.db.query(models.Wallet).filter(models.Wallet.wallet_id == wallet_id).first()
        if not wallet:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Wallet not found",
            )
        if not wallet.is_active:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Wallet is inactive",
            )

        actor = self.current_user.actor_name
        with transaction(self.db):
            self.db.query(models.Wallet).filter(models.Wallet.wallet_id == wallet_id).update(
                {
                    models.Wallet.balance: models.Wallet.balance + payload.amount,
                    models.Wallet.updated_by: actor,
                },
                synchronize_session=False,
            )
            txn = models.Transaction(
                wallet_id=wallet_id,
                amount=payload.amount,
                type=TransactionType.DEPOSIT,
                status=TransactionStatus.COMPLETED,
                description=payload.description or "Deposit",
                created_by=actor,
                updated_by=actor,
            )
            self.db.add(txn)

        logger.info(f"Deposit of {payload.amount} to wallet {wallet_id} by {self.current_user.user_id}")
        self.db.refresh(wallet)
        return schemas.DepositResponse(
            wallet=schemas.WalletOut.model_validate(wallet),
            transaction=schemas.TransactionOut.model_validate(txn),
        )

    def _resolve_business(self, user_id: str, business_id: str | None) -> models.Business:
        if business_id:
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
            if business.user_id != user_id and not self.current_user.has_role(RoleName.ADMIN):
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail="Business does not belong to this user",
                )
            return business

        business = self.db.query(models.Business).filter(models.Business.user_id == user_id).first()
        if not business:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Business not found for user",
            )
        return business

    def subscribe(self, user_id: str, payload: schemas.SubscribeRequest) -> schemas.SubscriptionOut:
        """
        Pay for a plan from the user's wallet and activate it on their business.

        Debit, ledger entry and subscription upsert share one transaction.
        """
        user = self.db.query(models.User).filter(models.User.user_id == user_id).first()
        if not user:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User not found",
            )
        require_ownership(user_id, self.current_user)

        plan = payload.plan
        price = SUBSCRIPTION_PRICES.get(plan.value)
        if price is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid subscription plan",
            )
        actor = self.current_user.actor_name

        with transaction(self.db):
            business = self._resolve_business(user_id, payload.business_id)
            wallet = self._wallet_for_user(user_id)

            debited = (
                self.db.query(models.Wallet)
                .filter(models.Wallet.wallet_id == wallet.wallet_id, models.Wallet.balance >= price)
                .update(
                    {
                        models.Wallet.balance: models.Wallet.balance - price,
                        models.Wallet.updated_by: actor,
                    },
                    synchronize_session=False,
                )
            )
            if not debited:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Insufficient wallet balance.",
                )

            self.db.add(
                models.Transaction(
                    wallet_id=wallet.wallet_id,
                    amount=price,
                    type=TransactionType.PAYMENT,
                    status=TransactionStatus.COMPLETED,
                    description=f"Subscription to {plan.value} plan",
                    created_by=actor,
                    updated_by=actor,
                )
            )

            start = utcnow()
            end = add_months(start, PLAN_MONTHS[plan])
            subscription = business.subscription
            if subscription is None:
                subscription = models.Subscription(
                    business_id=business.business_id,
                    created_by=actor,
                )
                self.db.add(subscription)
            subscription.plan = plan
            subscription.status = SubscriptionStatus.ACTIVE
            subscription.start_date = start
            subscription.end_date = end
            subscription.updated_by = actor

            adjust_counter(
                self.db,
                models.BusinessStats.subscriptions_count,
                models.BusinessStats.business_id,
                business.business_id,
                1,
            )

        logger.info(f"User {user_id} subscribed business {business.business_id} to {plan.value} plan")
        return schemas.SubscriptionOut.model_validate(subscription)
