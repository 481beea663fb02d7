"""
auth/store.py -- SQLAlchemy Core persistence layer for accounts.

Pattern: Repository + Data Mapper (same as books/store.py).
AccountStore is the repository; _row_to_account is the mapper.
Route and dependency code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  UNIQUE(email) is enforced by the database, not by a lookup before insert.
  Two requests racing to create the same email (registration, or a first
  Google login arriving twice) both reach INSERT; exactly one wins and the
  other gets Conflict. auth.oauth.exchange() relies on this to re-fetch the
  winner instead of creating a duplicate.

  update_account() has a fixed whitelist of profile fields. password_hash is
  not on it -- profile edits can never replace a stored secret.

DB path: auth/libris_auth.db unless DATABASE_URL is set.

Layer rule: no imports from api/, web/, or books/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.errors import Conflict
from auth.models import Account

logger = logging.getLogger("libris.auth.store")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'libris_auth.db'}"

# Fields a profile update may change. Anything else is rejected.
_UPDATABLE_FIELDS: frozenset[str] = frozenset({"name", "email", "age", "role"})

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_accounts = Table(
    "accounts",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text),  # NULL for Google-only accounts
    Column("name", String(255), nullable=False),
    Column("age", Integer),
    Column("role", String(30), nullable=False, server_default="user"),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked during writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for Account entities.

    Usage:
        store = AccountStore()
        account_id = store.create_account(Account(email="a@x.com", name="A", password_hash=hash_password("pw")))
        account = store.get_by_email("a@x.com")
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_by_email(self, email: str) -> Account | None:
        """Look up an account by exact email (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.email == email)).fetchone()
        return _row_to_account(row) if row is not None else None

    def get_by_id(self, account_id: int) -> Account | None:
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.id == account_id)).fetchone()
        return _row_to_account(row) if row is not None else None

    def list_accounts(self) -> list[Account]:
        """Return all accounts ordered by id."""
        with self.engine.connect() as conn:
            rows = conn.execute(_accounts.select().order_by(_accounts.c.id)).fetchall()
        return [_row_to_account(r) for r in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_account(self, account: Account) -> int:
        """Insert a new account and return its assigned database ID.

        Raises Conflict if the email already exists. The check is the UNIQUE
        constraint itself, so it holds under concurrent inserts.
        """
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _accounts.insert().values(
                        email=account.email,
                        password_hash=account.password_hash,
                        name=account.name,
                        age=account.age,
                        role=account.role,
                        created_at=_now_iso(),
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise Conflict("An account with that email already exists.") from exc
        account_id = result.inserted_primary_key[0]
        logger.info("Account created (id=%s, role=%s, password=%s)", account_id, account.role, account.has_password)
        return account_id

    def update_account(self, account_id: int, **fields) -> Account | None:
        """Update profile fields on an existing account.

        Accepted fields: name, email, age, role. Any other key -- password_hash
        included -- raises ValueError before SQL is issued.

        Returns the updated Account, or None if account_id was not found.
        Raises Conflict if the new email belongs to another account.
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be updated through the profile path: {sorted(unknown)!r}")
        if fields:
            try:
                with self.engine.connect() as conn:
                    result = conn.execute(_accounts.update().where(_accounts.c.id == account_id).values(**fields))
                    conn.commit()
            except IntegrityError as exc:
                raise Conflict("An account with that email already exists.") from exc
            if result.rowcount == 0:
                return None
        return self.get_by_id(account_id)

    def delete_account(self, account_id: int) -> bool:
        """Permanently delete an account. Returns True if deleted, False if not found.

        Tokens already issued to the account stay cryptographically valid until
        they expire; the authentication gate rejects them because the lookup
        by id now misses.
        """
        with self.engine.connect() as conn:
            result = conn.execute(_accounts.delete().where(_accounts.c.id == account_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row) -> Account:
    return Account(
        id=row.id,
        email=row.email,
        password_hash=row.password_hash,
        name=row.name,
        age=row.age,
        role=row.role,
        created_at=row.created_at,
    )
