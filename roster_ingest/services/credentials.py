from __future__ import annotations

import secrets
from enum import Enum
from functools import lru_cache

from passlib.context import CryptContext

from ..models.roster_row import RosterRow

"""Initial credentials for imported students.

Two policies:
- RANDOM: a fresh token per student, handed back to the caller for
  out-of-band delivery
- EMAIL: the normalized email doubles as the first password (opt-in; kept
  for deployments that onboard students that way)

Stores persist only ``hash_password`` output: a standard ``$2b$`` bcrypt
hash, the format the portal's login check compares against.
"""

__all__ = [
    "CredentialPolicy",
    "initial_password",
    "hash_password",
    "verify_password",
]

BCRYPT_ROUNDS = 12
MIN_BCRYPT_ROUNDS = 4


class CredentialPolicy(Enum):
    RANDOM = "random"
    EMAIL = "email"


def initial_password(row: RosterRow, policy: CredentialPolicy) -> str:
    if policy is CredentialPolicy.EMAIL:
        return row.email
    return secrets.token_urlsafe(12)


@lru_cache(maxsize=None)
def _context(rounds: int) -> CryptContext:
    return CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)


def hash_password(password: str, *, rounds: int = BCRYPT_ROUNDS) -> str:
    return _context(rounds).hash(password)


def verify_password(password: str, encoded: str) -> bool:
    """False for a wrong password and for anything that is not a bcrypt hash."""
    try:
        return _context(BCRYPT_ROUNDS).verify(password, encoded)
    except (ValueError, TypeError):
        return False
