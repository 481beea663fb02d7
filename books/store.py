"""
books/store.py -- SQLAlchemy-backed persistence layer for the book catalogue.

Uses SQLAlchemy Core (not ORM) so the Book dataclass in books/models.py
remains the authoritative domain representation. Swapping SQLite for
PostgreSQL is a connection string change, not a rewrite.

Pattern: Repository + Data Mapper. BookStore is the repository;
_row_to_book is the mapper. Route handlers never touch SQL directly.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = BookStore()                               # SQLite default
    store = BookStore("postgresql://user:pw@host/db") # PostgreSQL
    book_id = store.create_book(Book(title="Dune"))
    store.update_book(book_id, author="Frank Herbert")
    store.close()
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine

from books.models import Book

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'libris_books.db'}"

_UPDATABLE_FIELDS = frozenset({"title", "author", "description", "isbn", "published_date"})

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_books = Table(
    "books",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(500), nullable=False),
    Column("author", String(255)),
    Column("description", Text),
    Column("isbn", String(32)),
    Column("published_date", String(10)),  # YYYY-MM-DD
    Column("created_at", String(32), nullable=False),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class BookStore:
    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    def create_book(self, book: Book) -> int:
        """Insert a new book and return its assigned database ID."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _books.insert().values(
                    title=book.title,
                    author=book.author,
                    description=book.description,
                    isbn=book.isbn,
                    published_date=book.published_date,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_book(self, book_id: int) -> Optional[Book]:
        with self.engine.connect() as conn:
            row = conn.execute(_books.select().where(_books.c.id == book_id)).fetchone()
        return _row_to_book(row) if row is not None else None

    def list_books(self) -> list[Book]:
        """Return all books, oldest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(_books.select().order_by(_books.c.id)).fetchall()
        return [_row_to_book(r) for r in rows]

    def update_book(self, book_id: int, **fields) -> Optional[Book]:
        """Update the given fields and return the fresh record, or None if book_id was not found.

        Unknown field names raise ValueError. Passing no fields just re-reads
        the record.
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown book fields: {sorted(unknown)!r}")
        if fields:
            with self.engine.connect() as conn:
                result = conn.execute(_books.update().where(_books.c.id == book_id).values(**fields))
                conn.commit()
            if result.rowcount == 0:
                return None
        return self.get_book(book_id)

    def delete_book(self, book_id: int) -> bool:
        """Delete a book. Returns True if deleted, False if not found."""
        with self.engine.connect() as conn:
            result = conn.execute(_books.delete().where(_books.c.id == book_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


def _row_to_book(row) -> Book:
    return Book(
        id=row.id,
        title=row.title,
        author=row.author,
        description=row.description,
        isbn=row.isbn,
        published_date=row.published_date,
        created_at=row.created_at,
    )
