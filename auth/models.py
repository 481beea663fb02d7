"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach in
books/models.py -- dataclasses own domain shape; stores and routes do the work.

Layer rule: no imports from api/, web/, or books/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Literal, Optional, Union


class Role(str, Enum):
    """Flat role set. Authorization compares by membership, never by rank."""

    user = "user"
    admin = "admin"


@dataclass
class Account:
    """A stored identity with credentials and a role.

    email is the login identity and is unique across the store (exact,
    case-sensitive match as stored).

    password_hash is None for accounts created by a Google login. Those
    accounts can only sign in through Google -- authenticate() refuses them.
    """

    email: str
    name: str
    role: str = Role.user.value
    id: Optional[int] = None
    password_hash: Optional[str] = None  # None = delegated-only account
    age: Optional[int] = None
    created_at: Optional[str] = None

    @property
    def has_password(self) -> bool:
        return self.password_hash is not None


@dataclass(frozen=True)
class DelegatedIdentity:
    """An (email, name) pair asserted by the identity provider after a successful handshake.

    Trusted as-is. Consumed once per login and never persisted on its own.
    """

    email: str
    name: str


@dataclass(frozen=True)
class TokenClaims:
    """Verified contents of a session token."""

    account_id: int
    role: str
    issued_at: int
    expires_at: int


# ---------------------------------------------------------------------------
# Registration variants
#
# Account creation comes in two shapes. The kind tag decides which rules
# apply; callers never infer the variant from whether a password is present.
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ManualRegistration:
    email: str
    password: str
    name: str
    age: Optional[int] = None
    role: str = Role.user.value
    kind: Literal["manual"] = "manual"


@dataclass(frozen=True)
class DelegatedRegistration:
    email: str
    name: str
    age: Optional[int] = None
    role: str = Role.user.value
    kind: Literal["delegated"] = "delegated"


RegistrationRequest = Union[ManualRegistration, DelegatedRegistration]
