"""
SQLite key-value storage for one replica.

Each collection is a single row in ``kv`` holding the JSON-serialized
collection under its name. A connection is opened per operation.
"""

import sqlite3
from contextlib import contextmanager
from typing import Generator

from .config import DB_PATH, ensure_db_directory


@contextmanager
def get_db(path: str = DB_PATH) -> Generator[sqlite3.Connection, None, None]:
    """Get a SQLite database connection."""
    conn = sqlite3.connect(path, timeout=10)
    try:
        yield conn
    finally:
        conn.close()


def init_db(path: str = DB_PATH):
    """Initialize the database with required tables."""
    ensure_db_directory(path)
    with get_db(path) as conn:
        cursor = conn.cursor()
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS kv (
                name TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')
        conn.commit()


def health_check(path: str = DB_PATH):
    """Check database health."""
    try:
        with get_db(path) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT name FROM sqlite_master WHERE type='table' AND name='kv';")
            return cursor.fetchone() is not None
    except sqlite3.Error:
        return False
