from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session, selectinload

from . import models
from .deps import get_db
from .models import RoleName, UserStatus
from .settings import SYSTEM_ACTOR, AuthConfig

logger = logging.getLogger(__name__)

# Security scheme for Bearer token (documentation only; the header is parsed by the guards)
oauth2_scheme = HTTPBearer(auto_error=False)

# Numeric rank per role. BusinessOwner and PaymentAgent share a rank and do not
# satisfy each other's guard.
ROLE_RANK: dict[RoleName, int] = {
    RoleName.ANONYMOUS: 0,
    RoleName.AUTHENTICATED: 1,
    RoleName.BUSINESS_OWNER: 2,
    RoleName.PAYMENT_AGENT: 2,
    RoleName.ADMIN: 3,
    RoleName.SUPER_ADMIN: 4,
}

BLOCKED_STATUSES = (UserStatus.BANNED, UserStatus.SUSPENDED)


def highest_rank(roles: frozenset[RoleName] | set[RoleName]) -> int:
    return max((ROLE_RANK[role] for role in roles), default=0)


def role_satisfies(roles: frozenset[RoleName] | set[RoleName], minimum: RoleName) -> bool:
    """
    Check a role set against a minimum role.

    Passes when the minimum is Anonymous, when the caller holds the minimum role
    itself, or when the caller's highest role ranks strictly above it.
    """
    if minimum == RoleName.ANONYMOUS:
        return True
    if minimum in roles:
        return True
    return highest_rank(roles) > ROLE_RANK[minimum]


# ============================================================================
# CALLER IDENTITY
# ============================================================================


@dataclass
class CurrentUser:
    """The caller attached to a request by a guard, authenticated or not."""

    user_id: str | None
    roles: frozenset[RoleName]
    is_authenticated: bool
    ip: str
    email: str | None = None
    full_name: str | None = None
    user: models.User | None = field(default=None, repr=False)

    @property
    def actor_name(self) -> str:
        """Value written to created_by / updated_by audit columns."""
        if self.user is not None:
            return self.user.full_name or self.user.user_name or self.user.email
        return SYSTEM_ACTOR

    def has_role(self, minimum: RoleName) -> bool:
        return role_satisfies(self.roles, minimum)

    @classmethod
    def anonymous(cls, ip: str) -> "CurrentUser":
        return cls(
            user_id=None,
            roles=frozenset({RoleName.ANONYMOUS}),
            is_authenticated=False,
            ip=ip,
        )

    @classmethod
    def from_user(cls, user: models.User, ip: str) -> "CurrentUser":
        return cls(
            user_id=user.user_id,
            roles=frozenset(RoleName(name) for name in user.role_names),
            is_authenticated=True,
            ip=ip,
            email=user.email,
            full_name=user.full_name,
            user=user,
        )


def get_client_ip(request: Request) -> str:
    """
    Extract client IP address from request, handling proxies.

    Checks X-Forwarded-For header first (for reverse proxy setups),
    then falls back to direct client IP.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # X-Forwarded-For can contain multiple IPs; take the first one
        return forwarded_for.split(",")[0].strip()

    if request.client:
        return request.client.host

    return "unknown"


# ============================================================================
# TOKENS
# ============================================================================


def get_auth_config(request: Request) -> AuthConfig:
    """Signing configuration installed on the application at construction time."""
    return request.app.state.auth_config


def create_access_token(
    user: models.User,
    config: AuthConfig,
    expires_in_seconds: int | None = None,
) -> str:
    """
    Create a JWT access token for a user.

    Claims: sub/userId, email, isAuthenticated, roles (array of role names),
    ver (claim-shape version), iat, exp.
    """
    if expires_in_seconds is None:
        expires_in_seconds = config.access_token_expire_minutes * 60

    now = datetime.now(timezone.utc)
    payload = {
        "sub": user.user_id,
        "userId": user.user_id,
        "email": user.email,
        "isAuthenticated": True,
        "roles": user.role_names,
        "ver": config.token_version,
        "iat": now,
        "exp": now + timedelta(seconds=expires_in_seconds),
    }
    return jwt.encode(payload, config.secret_key, algorithm=config.algorithm)


def decode_access_token(token: str, config: AuthConfig) -> dict:
    """Verify signature, expiry and claim version; 401 on any failure."""
    try:
        payload = jwt.decode(
            token,
            config.secret_key,
            algorithms=[config.algorithm],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired",
        )
    except jwt.InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )

    if payload.get("ver") != config.token_version:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unsupported token version",
        )
    return payload


def _extract_bearer_token(request: Request) -> str | None:
    """Return the raw token, None when no header is sent, 401 on a malformed header."""
    header = request.headers.get("Authorization")
    if header is None:
        return None
    parts = header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token format",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return parts[1]


def load_user_with_roles(db: Session, user_id: str) -> models.User | None:
    return (
        db.query(models.User)
        .options(selectinload(models.User.user_roles).joinedload(models.UserRole.role))
        .filter(models.User.user_id == user_id)
        .first()
    )


def check_user_can_authenticate(user: models.User) -> None:
    """
    Reject banned and suspended accounts.

    Called by the guards and by every token-issuing flow so the rule is applied
    consistently.
    """
    if user.status in BLOCKED_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Account is {user.status.value}",
        )


# ============================================================================
# GUARDS
# ============================================================================


def require_role(minimum: RoleName) -> Callable[..., CurrentUser]:
    """
    Build a dependency that resolves the caller and enforces a minimum role.

    Every request re-reads the user and their roles from the database; the
    roles claim in the token is informational only.
    """

    async def guard(
        request: Request,
        _credentials: HTTPAuthorizationCredentials | None = Depends(oauth2_scheme),
        db: Session = Depends(get_db),
        config: AuthConfig = Depends(get_auth_config),
    ) -> CurrentUser:
        ip = get_client_ip(request)
        token = _extract_bearer_token(request)

        if token is None:
            if minimum == RoleName.ANONYMOUS:
                return CurrentUser.anonymous(ip)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="No token provided",
                headers={"WWW-Authenticate": "Bearer"},
            )

        payload = decode_access_token(token, config)
        user = load_user_with_roles(db, payload["sub"])
        if not user:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="User not found",
            )
        check_user_can_authenticate(user)

        current_user = CurrentUser.from_user(user, ip)
        if not current_user.has_role(minimum):
            logger.info(
                f"Forbidden: user {user.user_id} with roles "
                f"{sorted(role.value for role in current_user.roles)} needs {minimum.value}"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user

    guard.__name__ = f"require_{minimum.name.lower()}"
    return guard


get_current_user_or_anonymous = require_role(RoleName.ANONYMOUS)
get_current_user = require_role(RoleName.AUTHENTICATED)
require_business_owner = require_role(RoleName.BUSINESS_OWNER)
require_payment_agent = require_role(RoleName.PAYMENT_AGENT)
require_admin = require_role(RoleName.ADMIN)
require_super_admin = require_role(RoleName.SUPER_ADMIN)


def check_ownership(resource_owner_id: str, current_user: CurrentUser) -> bool:
    """
    Check if the current user owns a resource.

    Returns True if:
    - User owns the resource, OR
    - User is an Admin or SuperAdmin
    """
    if current_user.user_id is not None and resource_owner_id == current_user.user_id:
        return True
    return current_user.has_role(RoleName.ADMIN)


def require_ownership(resource_owner_id: str, current_user: CurrentUser) -> None:
    """
    Require that the current user owns a resource or is an admin.

    Raises 403 Forbidden if not authorized.
    """
    if not check_ownership(resource_owner_id, current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You don't have permission to access this resource",
        )
