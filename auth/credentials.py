"""
auth/credentials.py -- Password hashing, password login, and account registration.

Security design decisions:
  Passwords: bcrypt, used directly (no passlib wrapper). Its cost factor makes
       offline brute force expensive. BCRYPT_ROUNDS tunes it; tests lower it to
       keep the suite fast.

  Timing equalization: authenticate() always runs one bcrypt check, against
       _DUMMY_HASH when the email is unknown or the account has no password.
       Response time then does not reveal whether an email is registered, and
       the error is the same InvalidCredentials in every failure case.

  Email form: every address is stored and looked up in one canonical form,
       the one pydantic's EmailStr produces (domain lowercased, local part as
       typed). The CLI, the JSON API and Google sign-in all go through
       normalize_email(), so an address saved by one is found by the others.

  Google-only accounts: they are stored with password_hash=None and can never
       pass authenticate(). There is no placeholder password to guess.

Layer rule: no imports from api/, web/, or books/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import bcrypt
from pydantic import EmailStr, TypeAdapter, ValidationError as PydanticValidationError

from auth.errors import InternalError, InvalidCredentials, ValidationFailed
from auth.models import Account, DelegatedRegistration, ManualRegistration, RegistrationRequest, Role
from core.config import get_settings

if TYPE_CHECKING:
    from auth.store import AccountStore

logger = logging.getLogger("libris.auth")

_settings = get_settings()

# bcrypt cannot use input past 72 bytes. The API caps passwords at 72
# characters; multi-byte input that still encodes past the limit is refused here.
_BCRYPT_MAX_BYTES = 72

_VALID_ROLES = {r.value for r in Role}

_EMAIL = TypeAdapter(EmailStr)


def normalize_email(email: str) -> str:
    """Validate an address and return the form it is stored under.

    Raises ValidationFailed if the address is not a valid email.
    """
    try:
        return _EMAIL.validate_python(email)
    except PydanticValidationError as exc:
        raise ValidationFailed(f"Invalid email address: {email!r}") from exc


# ---------------------------------------------------------------------------
# Hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password."""
    encoded = plain.encode("utf-8")
    if len(encoded) > _BCRYPT_MAX_BYTES:
        raise ValidationFailed("Password is too long.")
    return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=_settings.bcrypt_rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    Never raises: a malformed hash or over-long input is just a mismatch.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# Computed once at import so the first failed login is not measurably slower
# than later ones.
_DUMMY_HASH: str = hash_password("libris_timing_dummy")


# ---------------------------------------------------------------------------
# Password login
# ---------------------------------------------------------------------------


def authenticate(store: AccountStore, email: str, password: str) -> Account:
    """Resolve an email/password pair to an Account.

    Raises InvalidCredentials for an unknown email, an account without a
    password, or a wrong password. The three cases are indistinguishable to
    the caller by message and by timing.
    """
    try:
        account = store.get_by_email(normalize_email(email))
    except ValidationFailed:
        account = None
    if account is None or account.password_hash is None:
        verify_password(password, _DUMMY_HASH)
        logger.warning("Password login rejected (no usable password on record)")
        raise InvalidCredentials()
    if not verify_password(password, account.password_hash):
        logger.warning("Password login rejected for account id=%s", account.id)
        raise InvalidCredentials()
    return account


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


def build_account(request: RegistrationRequest) -> Account:
    """Turn a registration variant into an unsaved Account.

    Dispatches on the variant type. A ManualRegistration gets its password
    hashed; a DelegatedRegistration is stored with no password at all.
    """
    if request.role not in _VALID_ROLES:
        raise ValidationFailed(f"Unknown role: {request.role!r}")
    if isinstance(request, ManualRegistration):
        password_hash = hash_password(request.password)
    elif isinstance(request, DelegatedRegistration):
        password_hash = None
    else:
        raise TypeError(f"Unsupported registration type: {type(request).__name__}")
    return Account(
        email=normalize_email(request.email),
        name=request.name,
        age=request.age,
        role=request.role,
        password_hash=password_hash,
    )


def register(store: AccountStore, request: RegistrationRequest) -> Account:
    """Create an account from a registration request and return the stored record.

    Raises Conflict (from the store) if the email is already registered.
    """
    account_id = store.create_account(build_account(request))
    created = store.get_by_id(account_id)
    if created is None:
        raise InternalError(detail=f"Account {account_id} missing after insert")
    return created
