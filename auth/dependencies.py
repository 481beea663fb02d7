"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication and authorization.

Every protected request walks the same short state machine:

  unauthenticated --(valid Bearer token, account still exists)--> authenticated
  authenticated   --(role in the required set, if any)---------> authorized

Failure at either step ends the request: Unauthenticated (401) from
get_current_account(), Forbidden (403) from the require_role() check. Nothing
downstream ever sees a half-authorized request.

get_current_account() is the authentication gate. It also stores the resolved
Account on request.state.account for handlers that prefer reading it there.

require_role(*roles) builds an authorization gate. Matching is plain set
membership -- admin does NOT satisfy require_role(Role.user).

Layer rule: no imports from web/ or books/.
  auth/dependencies.py may import from fastapi (for Request/Depends) because
  this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from fastapi import Request

from auth.errors import Forbidden, InvalidToken, Unauthenticated
from auth.models import Account, Role
from auth.store import AccountStore
from auth.tokens import TokenService

logger = logging.getLogger("libris.auth")

_BEARER_PREFIX = "Bearer "


def _bearer_token(request: Request) -> str:
    header = request.headers.get("Authorization", "")
    if not header.startswith(_BEARER_PREFIX):
        raise Unauthenticated("No bearer token provided.")
    token = header[len(_BEARER_PREFIX) :].strip()
    if not token:
        raise Unauthenticated("No bearer token provided.")
    return token


def get_current_account(request: Request) -> Account:
    """Require a valid bearer token. Raises Unauthenticated (401) otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(account: Account = Depends(get_current_account)): ...
    """
    token = _bearer_token(request)
    tokens: TokenService = request.app.state.tokens
    store: AccountStore = request.app.state.account_store

    try:
        claims = tokens.verify(token)
    except InvalidToken:
        logger.warning("Rejected bearer token on %s %s", request.method, request.url.path)
        raise Unauthenticated("Invalid or expired token.") from None

    # A token outlives a deleted account; the lookup is what catches that.
    account = store.get_by_id(claims.account_id)
    if account is None:
        logger.warning("Bearer token for missing account id=%s", claims.account_id)
        raise Unauthenticated("Invalid or expired token.")

    request.state.account = account
    return account


def require_role(*roles: Role | str) -> Callable[[Request], Account]:
    """Build a dependency that authenticates the request and requires one of `roles`.

    Use as a FastAPI dependency:
        @router.delete("/thing/{id}")
        def route(account: Account = Depends(require_role(Role.admin))): ...
    """
    if not roles:
        raise ValueError("require_role() needs at least one role")
    allowed = frozenset(Role(r).value for r in roles)

    def dependency(request: Request) -> Account:
        account = get_current_account(request)
        if account.role not in allowed:
            logger.warning(
                "Forbidden: account id=%s role=%s needs one of %s", account.id, account.role, sorted(allowed)
            )
            raise Forbidden()
        return account

    return dependency


require_admin = require_role(Role.admin)
