"""Centralized environment-driven settings.

Keep this module lightweight: stdlib only, no app imports, to avoid circular deps.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# Run Alembic migrations from the application lifespan.
# Configured via .env: RUN_MIGRATIONS=false to skip (tests, read replicas)
RUN_MIGRATIONS: bool = _bool_env("RUN_MIGRATIONS", True)

# Comma-separated allowed origins; "*" allows any origin
CORS_ORIGINS: list[str] = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost").split(",")
    if origin.strip()
]

# Page sizes for list endpoints
BLOG_PAGE_SIZE_DEFAULT: int = _int_env("BLOG_PAGE_SIZE_DEFAULT", 10)
USER_PAGE_SIZE_DEFAULT: int = _int_env("USER_PAGE_SIZE_DEFAULT", 20)
PAGE_SIZE_MAX: int = 100

# Free-text user search longer than this is ignored
USER_SEARCH_MAX_LENGTH: int = 100

# Wallets
WALLET_CURRENCY: str = os.getenv("WALLET_CURRENCY", "SLE")
WALLET_RECENT_TRANSACTIONS: int = 20

# Subscription plan prices, in wallet currency
SUBSCRIPTION_PRICES: dict[str, Decimal] = {
    "monthly": Decimal("50.00"),
    "yearly": Decimal("500.00"),
}

# Pinned blogs
PIN_DAYS_MAX: int = 365

# Actor name recorded in audit columns for rows created without a user
SYSTEM_ACTOR: str = "system"

# Current shape of issued access tokens; bump when claims change
TOKEN_VERSION: int = 2


@dataclass(frozen=True)
class AuthConfig:
    """Signing configuration handed to the token service and the guards."""

    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 24 * 60
    token_version: int = TOKEN_VERSION

    @classmethod
    def from_env(cls) -> "AuthConfig":
        secret_key = os.getenv("JWT_SECRET_KEY")
        if not secret_key:
            raise RuntimeError(
                "JWT_SECRET_KEY environment variable is required but not set. "
                "Generate a secure key with: python -c 'import secrets; print(secrets.token_urlsafe(32))'"
            )
        # 256 bits minimum; this checks length, not entropy
        if len(secret_key) < 32:
            raise RuntimeError(
                "JWT_SECRET_KEY is too short. Must be at least 32 characters long."
            )
        return cls(
            secret_key=secret_key,
            algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
            access_token_expire_minutes=_int_env("JWT_ACCESS_TOKEN_EXPIRE_MINUTES", 24 * 60),
        )
