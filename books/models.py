"""
books/models.py -- Domain dataclass for the book catalogue.

Pure data container with zero logic. Persistence lives in books/store.py.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Book:
    """A catalogue entry.

    id is None before the record is written to the database.
    """

    title: str
    author: Optional[str] = None
    description: Optional[str] = None
    isbn: Optional[str] = None
    published_date: Optional[str] = None  # YYYY-MM-DD
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert
