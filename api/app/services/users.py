"""
User service.

Covers accounts, follow edges and administrative changes. Follow toggles move
the Follow row and both users' counters in one transaction; account creation
provisions the role, stats row and wallet alongside the user.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from fastapi import HTTPException, status
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session, joinedload, selectinload

from .. import models, schemas
from ..auth import CurrentUser, ROLE_RANK, highest_rank, require_ownership
from ..db import transaction
from ..models import RoleName
from ..pagination import PageRequest, paginate
from ..settings import USER_SEARCH_MAX_LENGTH, WALLET_CURRENCY
from ..utils.audit import log_admin_action
from ..utils.ids import generate_account_number, generate_id
from .blogs import purge_blog
from .comments import remove_comment
from .counters import adjust_blog_counter, adjust_comment_counter, adjust_user_stat
from .passwords import hash_password
from .roles import get_or_create_role, grant_role

logger = logging.getLogger(__name__)

PROFILE_FIELDS = (
    "first_name",
    "middle_name",
    "last_name",
    "full_name",
    "user_name",
    "profile_image",
    "bio",
    "phone_number",
    "gender",
    "dob",
)
NAME_PARTS = ("first_name", "middle_name", "last_name")
FULL_NAME_MAX_LENGTH = models.User.__table__.c.full_name.type.length


def compose_full_name(first_name: str | None, middle_name: str | None, last_name: str | None) -> str | None:
    parts = [part.strip() for part in (first_name, middle_name, last_name) if part and part.strip()]
    # Truncated to the width of the full_name column
    return " ".join(parts)[:FULL_NAME_MAX_LENGTH].rstrip() or None


def find_follow(db: Session, follower_id: str, following_id: str) -> models.Follow | None:
    return (
        db.query(models.Follow)
        .filter(
            models.Follow.follower_id == follower_id,
            models.Follow.following_id == following_id,
        )
        .first()
    )


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def apply_search(query: Query, search: str | None) -> Query:
    """
    Filter users by free text.

    Every whitespace separated term must appear, case-insensitively, in at
    least one of full name, email, user name or bio. Terms are AND-ed, fields
    are OR-ed per term. "undefined" and over-long inputs are ignored.
    """
    if not search or search == "undefined" or len(search) > USER_SEARCH_MAX_LENGTH:
        return query
    for term in search.split():
        pattern = _like_pattern(term)
        query = query.filter(
            or_(
                models.User.full_name.ilike(pattern, escape="\\"),
                models.User.email.ilike(pattern, escape="\\"),
                models.User.user_name.ilike(pattern, escape="\\"),
                models.User.bio.ilike(pattern, escape="\\"),
            )
        )
    return query


def build_user_detail(user: models.User, following: bool = False) -> schemas.UserDetail:
    return schemas.UserDetail.model_validate(user).model_copy(
        update={
            "following": following,
            "users_stats": schemas.UsersStatsOut.model_validate(user.stats) if user.stats else None,
            "roles": user.role_names,
        }
    )


class UserService:
    """Use cases on users, on behalf of one caller."""

    def __init__(self, db: Session, current_user: CurrentUser):
        self.db = db
        self.current_user = current_user

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_user_or_404(self, user_id: str) -> models.User:
        user = (
            self.db.query(models.User)
            .options(
                joinedload(models.User.stats),
                selectinload(models.User.user_roles).joinedload(models.UserRole.role),
            )
            .filter(models.User.user_id == user_id)
            .first()
        )
        if not user:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User not found",
            )
        return user

    def _ensure_unique(self, email: str | None, user_name: str | None, exclude_user_id: str | None = None) -> None:
        """409 when another account already uses the email or user name."""
        if email:
            query = self.db.query(models.User.user_id).filter(func.lower(models.User.email) == email.lower())
            if exclude_user_id:
                query = query.filter(models.User.user_id != exclude_user_id)
            if query.first():
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="Email already in use",
                )
        if user_name:
            query = self.db.query(models.User.user_id).filter(models.User.user_name == user_name)
            if exclude_user_id:
                query = query.filter(models.User.user_id != exclude_user_id)
            if query.first():
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="User name already in use",
                )

    def _ensure_can_grant(self, role_name: RoleName) -> None:
        if role_name == RoleName.ANONYMOUS:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="The Anonymous role cannot be assigned",
            )
        if ROLE_RANK[role_name] > highest_rank(self.current_user.roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Cannot grant a role above your own",
            )

    def _ensure_outranks_or_equals(self, target: models.User) -> None:
        """Admins may not act on accounts that hold a higher role than they do."""
        target_rank = highest_rank({RoleName(name) for name in target.role_names})
        if target_rank > highest_rank(self.current_user.roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Cannot modify a user with a higher role",
            )

    def followed_ids(self, candidate_ids: list[str]) -> set[str]:
        """Which of ``candidate_ids`` the caller follows; empty for anonymous callers."""
        caller_id = self.current_user.user_id
        if not caller_id or not candidate_ids:
            return set()
        rows = (
            self.db.query(models.Follow.following_id)
            .filter(
                models.Follow.follower_id == caller_id,
                models.Follow.following_id.in_(candidate_ids),
            )
            .all()
        )
        return {row.following_id for row in rows}

    def _list_items(self, users: list[models.User]) -> list[schemas.UserListItem]:
        followed = self.followed_ids([user.user_id for user in users])
        return [
            schemas.UserListItem.model_validate(user).model_copy(
                update={"following": user.user_id in followed}
            )
            for user in users
        ]

    def _page(self, query: Query, page_request: PageRequest) -> schemas.Page[schemas.UserListItem]:
        rows, metadata = paginate(query, page_request)
        return schemas.Page[schemas.UserListItem](data=self._list_items(rows), metadata=metadata)

    def list_users(self, search: str | None, page_request: PageRequest) -> schemas.Page[schemas.UserListItem]:
        """Search users; results come back in random order."""
        query = apply_search(self.db.query(models.User), search).order_by(func.random())
        return self._page(query, page_request)

    def get_user(self, user_id: str) -> schemas.UserDetail:
        user = self.get_user_or_404(user_id)
        return build_user_detail(user, following=user.user_id in self.followed_ids([user.user_id]))

    def list_followers(self, user_id: str, search: str | None, page_request: PageRequest) -> schemas.Page[schemas.UserListItem]:
        """Users following ``user_id``, most recent follow first."""
        self.get_user_or_404(user_id)
        query = (
            self.db.query(models.User)
            .join(models.Follow, models.Follow.follower_id == models.User.user_id)
            .filter(models.Follow.following_id == user_id)
        )
        query = apply_search(query, search).order_by(models.Follow.created_at.desc())
        return self._page(query, page_request)

    def list_followings(self, user_id: str, search: str | None, page_request: PageRequest) -> schemas.Page[schemas.UserListItem]:
        """Users ``user_id`` follows, most recent follow first."""
        self.get_user_or_404(user_id)
        query = (
            self.db.query(models.User)
            .join(models.Follow, models.Follow.following_id == models.User.user_id)
            .filter(models.Follow.follower_id == user_id)
        )
        query = apply_search(query, search).order_by(models.Follow.created_at.desc())
        return self._page(query, page_request)

    def list_unfollowings(self, user_id: str, search: str | None, page_request: PageRequest) -> schemas.Page[schemas.UserListItem]:
        """Users ``user_id`` does not follow yet (excluding themselves), newest accounts first."""
        self.get_user_or_404(user_id)
        followed = select(models.Follow.following_id).where(models.Follow.follower_id == user_id)
        query = self.db.query(models.User).filter(
            models.User.user_id != user_id,
            models.User.user_id.not_in(followed),
        )
        query = apply_search(query, search).order_by(models.User.created_at.desc())
        return self._page(query, page_request)

    def get_roles(self, user_id: str) -> schemas.UserRolesResponse:
        user = self.get_user_or_404(user_id)
        return schemas.UserRolesResponse(user_id=user.user_id, roles=user.role_names)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_user(self, payload: schemas.UserCreate) -> schemas.UserDetail:
        """
        Create an account with its role, stats row and empty wallet.

        All four rows are written in one transaction.
        """
        email = payload.email.lower()
        self._ensure_unique(email, payload.user_name)
        self._ensure_can_grant(payload.role)
        actor = self.current_user.actor_name

        profile = payload.model_dump(include=set(PROFILE_FIELDS))
        if not profile.get("full_name"):
            profile["full_name"] = compose_full_name(
                payload.first_name, payload.middle_name, payload.last_name
            )

        user_id = generate_id()
        with transaction(self.db):
            self.db.add(
                models.User(
                    user_id=user_id,
                    email=email,
                    password=hash_password(payload.password),
                    verified=payload.verified,
                    created_by=actor,
                    updated_by=actor,
                    **profile,
                )
            )
            self.db.flush()
            grant_role(self.db, user_id, payload.role, actor)
            self.db.add(models.UsersStats(user_id=user_id, created_by=actor, updated_by=actor))
            self.db.add(
                models.Wallet(
                    user_id=user_id,
                    account_number=generate_account_number(),
                    balance=Decimal("0.00"),
                    currency=WALLET_CURRENCY,
                    created_by=actor,
                    updated_by=actor,
                )
            )

        logger.info(f"User {user_id} created by {self.current_user.user_id} with role {payload.role.value}")
        return self.get_user(user_id)

    def update_user(self, user_id: str, payload: schemas.UserUpdate) -> schemas.UserDetail:
        """Write only the provided, non-empty fields; a new password is re-hashed."""
        user = self.get_user_or_404(user_id)
        require_ownership(user.user_id, self.current_user)

        changes = {
            key: value
            for key, value in payload.model_dump(include=set(PROFILE_FIELDS)).items()
            if value
        }
        email = payload.email.lower() if payload.email else None
        self._ensure_unique(email, changes.get("user_name"), exclude_user_id=user_id)

        with transaction(self.db):
            for key, value in changes.items():
                setattr(user, key, value)
            if "full_name" not in changes and any(part in changes for part in NAME_PARTS):
                user.full_name = compose_full_name(user.first_name, user.middle_name, user.last_name)
            if email:
                user.email = email
            if payload.password:
                user.password = hash_password(payload.password)
            user.updated_by = self.current_user.actor_name

        logger.info(f"User {user_id} updated by {self.current_user.user_id}")
        return self.get_user(user_id)

    def update_status(self, user_id: str, payload: schemas.UserStatusUpdate) -> schemas.UserDetail:
        user = self.get_user_or_404(user_id)
        self._ensure_outranks_or_equals(user)
        with transaction(self.db):
            previous = user.status
            user.status = payload.status
            user.updated_by = self.current_user.actor_name
            log_admin_action(
                self.db,
                actor_id=self.current_user.user_id,
                action="update_user_status",
                target_type="user",
                target_id=user_id,
                note=f"{previous.value} -> {payload.status.value}",
            )
        return self.get_user(user_id)

    def replace_roles(self, user_id: str, payload: schemas.UserRolesUpdate) -> schemas.UserRolesResponse:
        """Swap the user's role set for the given one."""
        user = self.get_user_or_404(user_id)
        role_names = list(dict.fromkeys(payload.roles))
        for role_name in role_names:
            self._ensure_can_grant(role_name)
        actor = self.current_user.actor_name

        with transaction(self.db):
            previous = sorted(user.role_names)
            self.db.query(models.UserRole).filter(models.UserRole.user_id == user_id).delete(
                synchronize_session=False
            )
            for role_name in role_names:
                role = get_or_create_role(self.db, role_name, actor)
                self.db.add(
                    models.UserRole(
                        user_id=user_id, role_id=role.role_id, created_by=actor, updated_by=actor
                    )
                )
            log_admin_action(
                self.db,
                actor_id=self.current_user.user_id,
                action="replace_user_roles",
                target_type="user",
                target_id=user_id,
                note=f"{previous} -> {sorted(role.value for role in role_names)}",
            )

        return self.get_roles(user_id)

    def toggle_follow(self, payload: schemas.FollowRequest) -> schemas.FollowResponse:
        """
        Follow or unfollow.

        The Follow row, the target's followers_count and the actor's
        followings_count change together in one transaction.
        """
        follower_id = payload.follower_id
        following_id = payload.following_id
        require_ownership(follower_id, self.current_user)
        if follower_id == following_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Users cannot follow themselves",
            )
        self.get_user_or_404(follower_id)
        self.get_user_or_404(following_id)
        actor = self.current_user.actor_name

        try:
            with transaction(self.db):
                existing = find_follow(self.db, follower_id, following_id)
                delta = -1 if existing else 1
                if existing:
                    self.db.delete(existing)
                else:
                    self.db.add(
                        models.Follow(
                            follower_id=follower_id,
                            following_id=following_id,
                            created_by=actor,
                            updated_by=actor,
                        )
                    )
                self.db.flush()
                adjust_user_stat(self.db, following_id, models.UsersStats.followers_count, delta)
                adjust_user_stat(self.db, follower_id, models.UsersStats.followings_count, delta)
        except IntegrityError:
            logger.warning(f"Duplicate follow {follower_id} -> {following_id}")
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Follow already recorded",
            )

        followed = existing is None
        logger.info(f"User {follower_id} {'followed' if followed else 'unfollowed'} {following_id}")
        return schemas.FollowResponse(followed=followed)

    def delete_user(self, user_id: str) -> None:
        """
        Delete an account and everything it owns, all or nothing.

        Order: blogs (full blog cascade), remaining comments (full comment
        cascade), likes, shares and views (each decrementing its target),
        follow edges (decrementing the other side), business, wallet, roles,
        stats, user.
        """
        user = self.get_user_or_404(user_id)
        require_ownership(user.user_id, self.current_user)
        if user.user_id != self.current_user.user_id:
            self._ensure_outranks_or_equals(user)
        db = self.db

        with transaction(db):
            blog_ids = [row.blog_id for row in db.query(models.Blog.blog_id).filter(models.Blog.user_id == user_id).all()]
            for blog_id in blog_ids:
                purge_blog(db, blog_id, user_id)

            authored = (
                db.query(models.Comment.comment_id)
                .filter(models.Comment.user_id == user_id)
                .order_by(models.Comment.created_at)
                .all()
            )
            for row in authored:
                # Earlier removals may already have taken this one with its parent
                comment = db.query(models.Comment).filter(models.Comment.comment_id == row.comment_id).first()
                if comment:
                    remove_comment(db, comment.comment_id, comment.ref_id)

            for like in db.query(models.Like).filter(models.Like.user_id == user_id).all():
                if not adjust_blog_counter(db, like.ref_id, models.Blog.likes_count, -1):
                    adjust_comment_counter(db, like.ref_id, models.Comment.likes_count, -1)
            db.query(models.Like).filter(models.Like.user_id == user_id).delete(synchronize_session=False)

            for share in db.query(models.Share).filter(models.Share.user_id == user_id).all():
                adjust_blog_counter(db, share.ref_id, models.Blog.shares_count, -1)
            db.query(models.Share).filter(models.Share.user_id == user_id).delete(synchronize_session=False)

            for view in db.query(models.View).filter(models.View.user_id == user_id).all():
                adjust_blog_counter(db, view.ref_id, models.Blog.views_count, -1)
            db.query(models.View).filter(models.View.user_id == user_id).delete(synchronize_session=False)

            for follow in db.query(models.Follow).filter(models.Follow.follower_id == user_id).all():
                adjust_user_stat(db, follow.following_id, models.UsersStats.followers_count, -1)
            for follow in db.query(models.Follow).filter(models.Follow.following_id == user_id).all():
                adjust_user_stat(db, follow.follower_id, models.UsersStats.followings_count, -1)
            db.query(models.Follow).filter(
                or_(models.Follow.follower_id == user_id, models.Follow.following_id == user_id)
            ).delete(synchronize_session=False)

            db.query(models.PinnedBlog).filter(models.PinnedBlog.user_id == user_id).delete(synchronize_session=False)

            business = db.query(models.Business).filter(models.Business.user_id == user_id).first()
            if business:
                business_id = business.business_id
                db.query(models.Subscription).filter(models.Subscription.business_id == business_id).delete(synchronize_session=False)
                db.query(models.BusinessStats).filter(models.BusinessStats.business_id == business_id).delete(synchronize_session=False)
                db.query(models.Business).filter(models.Business.business_id == business_id).delete(synchronize_session=False)

            wallet_ids = select(models.Wallet.wallet_id).where(models.Wallet.user_id == user_id)
            db.query(models.Transaction).filter(models.Transaction.wallet_id.in_(wallet_ids)).delete(synchronize_session=False)
            db.query(models.Wallet).filter(models.Wallet.user_id == user_id).delete(synchronize_session=False)

            db.query(models.UserRole).filter(models.UserRole.user_id == user_id).delete(synchronize_session=False)
            db.query(models.UsersStats).filter(models.UsersStats.user_id == user_id).delete(synchronize_session=False)
            db.query(models.User).filter(models.User.user_id == user_id).delete(synchronize_session=False)

        logger.info(f"User {user_id} deleted by {self.current_user.user_id}")
