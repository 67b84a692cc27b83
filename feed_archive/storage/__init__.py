"""
Relational persistence (SQLAlchemy over SQLite).

This package holds the ORM models, engine construction and the
ArchiveStore repository used by every other component.
"""

from .db import create_engine, sqlite_url
from .repository import ArchiveStore, as_utc

__all__ = ["ArchiveStore", "as_utc", "create_engine", "sqlite_url"]
