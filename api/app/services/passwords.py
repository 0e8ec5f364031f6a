"""Password hashing for user accounts."""

from __future__ import annotations

from passlib.context import CryptContext

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash; malformed hashes never verify."""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        return False
