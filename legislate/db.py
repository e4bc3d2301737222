from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List

from legislate.schema import get_schema_sql


def _debug(msg: str) -> None:
    print(f"[db] {msg}")


def _normalize_path(db_path: str) -> str:
    p = (db_path or "").strip()
    # Allow sqlite:///path style, but default is a file path.
    if p.lower().startswith("sqlite:///"):
        p = p[len("sqlite:///") :]
    return p


@contextmanager
def connect(db_path: str) -> Iterator[sqlite3.Connection]:
    """Open a SQLite connection for one unit of work.

    Commits on success, rolls back on any exception. Rows behave like dicts
    (sqlite3.Row). WAL + busy_timeout let concurrent requests queue for the
    single writer instead of failing with "database is locked".
    """
    path = _normalize_path(db_path)
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path, timeout=30, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA busy_timeout=5000;")  # 5s
    try:
        conn.execute("PRAGMA foreign_keys = ON;")
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db(db_path: str) -> None:
    """Create all tables and run lightweight migrations."""
    _debug(f"Initializing DB at {db_path}")
    with connect(db_path) as conn:
        conn.executescript(get_schema_sql())
        _migrate(conn)


def _table_columns(conn: Any, table: str) -> List[str]:
    rows = conn.execute(f"PRAGMA table_info({table})").fetchall()
    return [str(r["name"]) for r in rows]


def _has_column(conn: Any, table: str, col: str) -> bool:
    return col in _table_columns(conn, table)


def _migrate(conn: Any) -> None:
    """Lightweight forward-only migrations for existing DBs."""
    # Early databases had no updated_at; backfill from created_at.
    for table in ("users", "requests"):
        if not _has_column(conn, table, "updated_at"):
            conn.execute(f"ALTER TABLE {table} ADD COLUMN updated_at TEXT NOT NULL DEFAULT ''")
            conn.execute(f"UPDATE {table} SET updated_at = created_at WHERE updated_at = ''")
