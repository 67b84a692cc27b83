from __future__ import annotations

from pathlib import Path

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine


def sqlite_url(path: Path | str) -> str:
    return f"sqlite+aiosqlite:///{path}"


def create_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Create the async engine; SQLite connections get foreign keys switched on."""
    engine = create_async_engine(url, echo=echo, future=True)
    if url.startswith("sqlite"):
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()
