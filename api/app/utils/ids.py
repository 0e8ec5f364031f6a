"""
Public identifiers.

Every row id is ``phi`` followed by 22 characters drawn from ``[a-z0-9]``
(25 characters in total), e.g. ``phi4k9x0m2q7r1t8v3w5y6z0ab``.
"""

from __future__ import annotations

import secrets
import string

ID_PREFIX = "phi"
ID_ALPHABET = string.ascii_lowercase + string.digits
ID_RANDOM_LENGTH = 22
ID_LENGTH = len(ID_PREFIX) + ID_RANDOM_LENGTH

ACCOUNT_NUMBER_LENGTH = 10


def generate_id() -> str:
    """
    Generate a prefixed random id.

    Uses the secrets module, 36^22 combinations, so collisions are not a
    practical concern and ids cannot be enumerated.
    """
    random_part = "".join(secrets.choice(ID_ALPHABET) for _ in range(ID_RANDOM_LENGTH))
    return f"{ID_PREFIX}{random_part}"


def generate_account_number() -> str:
    """Generate a 10-digit wallet account number."""
    return "".join(secrets.choice(string.digits) for _ in range(ACCOUNT_NUMBER_LENGTH))
