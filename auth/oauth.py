"""
auth/oauth.py -- Google sign-in via Authlib, and the exchange of a Google
identity for a local account.

Google is registered only when both GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET
are configured. web/routes.py checks google_enabled() before starting a flow.

Security notes:
  Email verification is mandatory. identity_from_token() raises ValueError
  unless the id_token says email_verified. An unverified address could belong
  to someone else, and exchange() would hand them that person's account.

  OAuth state (CSRF protection) is handled by authlib through Starlette's
  SessionMiddleware: the state is stored in the session before the redirect
  and checked in the callback.

Find-or-create:
  exchange() looks the email up and creates the account when missing. Lookup
  then insert is not atomic, so two first-time logins for the same email can
  both miss. The store's UNIQUE(email) lets only one insert through; the loser
  gets Conflict and re-reads the winner's row. Either way the caller receives
  the single account for that email.

Layer rule: no imports from api/, web/, or books/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from authlib.integrations.starlette_client import OAuth

from auth.credentials import normalize_email
from auth.errors import Conflict, InternalError, ValidationFailed
from auth.models import Account, DelegatedIdentity, Role
from core.config import get_settings

if TYPE_CHECKING:
    from auth.store import AccountStore

logger = logging.getLogger("libris.auth.oauth")

# ---------------------------------------------------------------------------
# Authlib OAuth registry
# ---------------------------------------------------------------------------

oauth = OAuth()

_cfg = get_settings()

if _cfg.google_client_id and _cfg.google_client_secret:
    oauth.register(
        name="google",
        client_id=_cfg.google_client_id,
        client_secret=_cfg.google_client_secret,
        server_metadata_url="https://accounts.google.com/.well-known/openid-configuration",
        client_kwargs={"scope": "openid email profile"},
    )
    logger.info("Google OAuth provider registered")


def google_enabled() -> bool:
    cfg = get_settings()
    return bool(cfg.google_client_id and cfg.google_client_secret)


# ---------------------------------------------------------------------------
# Profile extraction
# ---------------------------------------------------------------------------


def identity_from_token(token: dict) -> DelegatedIdentity:
    """Extract the verified (email, name) pair from a Google token response.

    The display name falls back to the local part of the email when the
    profile has none.

    The email is stored in the same canonical form as password accounts,
    so a Google login finds an account created through the API or the CLI.

    Raises:
        ValueError: no userinfo, no usable email, or email not verified.
    """
    userinfo = token.get("userinfo")
    if not userinfo:
        raise ValueError("Google OAuth: no userinfo in token response")

    if not userinfo.get("email_verified", False):
        raise ValueError("Google OAuth: email is not verified")

    email = userinfo.get("email")
    if not email:
        raise ValueError("Google OAuth: missing email claim in userinfo")
    try:
        email = normalize_email(email)
    except ValidationFailed as exc:
        raise ValueError(f"Google OAuth: {exc.message}") from exc

    name = userinfo.get("name") or email.split("@", 1)[0]
    return DelegatedIdentity(email=email, name=name)


# ---------------------------------------------------------------------------
# Exchange
# ---------------------------------------------------------------------------


def exchange(store: AccountStore, identity: DelegatedIdentity) -> Account:
    """Return the local account for a provider-verified identity, creating it on first sight.

    An existing account is returned unchanged; a name that differs from the
    provider's current display name is not written back. A new account gets
    the asserted name, role "user", and no password.
    """
    existing = store.get_by_email(identity.email)
    if existing is not None:
        return existing

    try:
        account_id = store.create_account(
            Account(email=identity.email, name=identity.name, role=Role.user.value, password_hash=None)
        )
    except Conflict:
        # Another request created it between our lookup and insert.
        logger.info("Concurrent first login for the same identity; using the existing account")
        winner = store.get_by_email(identity.email)
        if winner is None:
            raise InternalError(detail="Account vanished after a uniqueness conflict") from None
        return winner

    created = store.get_by_id(account_id)
    if created is None:
        raise InternalError(detail=f"Account {account_id} missing after insert")
    return created
