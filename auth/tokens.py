"""
auth/tokens.py -- Signed, time-limited session tokens.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry the account id (sub), role, iat,
       exp and a random jti. Nothing is stored server-side: a token is valid
       exactly when its signature checks out under the active key and exp has
       not passed. Logout is the client discarding its token.

  jti: a per-issue random value. Without it two tokens issued for the same
       account within the same second would be byte-identical.

  Key handling: TokenConfig is an immutable value built once from Settings at
       startup and handed to TokenService. Nothing in this module reads the
       key from global state, so tests can run services with different keys
       side by side. Rotating SECRET_KEY invalidates every outstanding token.

Layer rule: no imports from api/, web/, or books/. Import from core/ is allowed.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from auth.errors import InvalidToken
from auth.models import Account, TokenClaims
from core.config import Settings

_ALGORITHM = "HS256"


@dataclass(frozen=True)
class TokenConfig:
    """Signing configuration for TokenService. Built once, never mutated."""

    secret_key: str
    ttl_seconds: int
    algorithm: str = _ALGORITHM

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenConfig":
        return cls(secret_key=settings.secret_key, ttl_seconds=settings.token_expire_seconds)

    def __repr__(self) -> str:
        # Keep the key out of logs and tracebacks.
        return f"TokenConfig(algorithm={self.algorithm!r}, ttl_seconds={self.ttl_seconds})"


class TokenService:
    """Issues and verifies session tokens.

    Usage:
        tokens = TokenService(TokenConfig.from_settings(get_settings()))
        token = tokens.issue(account)
        claims = tokens.verify(token)   # raises InvalidToken
    """

    def __init__(self, config: TokenConfig) -> None:
        self._config = config

    @property
    def ttl_seconds(self) -> int:
        return self._config.ttl_seconds

    def issue(self, account: Account, now: datetime | None = None) -> str:
        """Encode a signed JWT for the account.

        Args:
            account: Stored account (must have an id).
            now:     Issue time; defaults to the current UTC time. Tests pass
                     a past value to mint already-expired tokens.
        """
        if account.id is None:
            raise ValueError("Cannot issue a token for an unsaved account")
        issued = now or datetime.now(timezone.utc)
        payload = {
            "sub": str(account.id),
            "role": account.role,
            "iat": issued,
            "exp": issued + timedelta(seconds=self._config.ttl_seconds),
            "jti": secrets.token_urlsafe(12),
        }
        return jwt.encode(payload, self._config.secret_key, algorithm=self._config.algorithm)

    def verify(self, token: str) -> TokenClaims:
        """Decode and verify a JWT.

        Raises InvalidToken when the signature does not match, the token is
        expired or malformed, or a required claim is missing.
        """
        try:
            payload = jwt.decode(token, self._config.secret_key, algorithms=[self._config.algorithm])
        except JWTError as exc:
            raise InvalidToken() from exc

        try:
            return TokenClaims(
                account_id=int(payload["sub"]),
                role=str(payload["role"]),
                issued_at=int(payload["iat"]),
                expires_at=int(payload["exp"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidToken(detail="Token payload is incomplete.") from exc
