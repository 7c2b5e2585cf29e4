import os
import sqlite3
import logging
from typing import Optional

from bibliotech.config import settings

logger = logging.getLogger(__name__)

# Default database file.
# Priority:
# 1) LIBRARY_DB_FILE at call time (lets tests and the CLI switch files)
# 2) settings.database_file (read from .env at import)
DATABASE_FILE = settings.database_file


def resolve_database_file(db_file: Optional[str] = None) -> str:
    return db_file or os.environ.get("LIBRARY_DB_FILE") or DATABASE_FILE


def get_db_connection(db_file: Optional[str] = None) -> sqlite3.Connection:
    """Open a connection with row access by column name and foreign keys on."""
    conn = sqlite3.connect(resolve_database_file(db_file))
    conn.row_factory = sqlite3.Row
    # sqlite leaves foreign keys off per connection; ON DELETE CASCADE needs it
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def create_tables(db_file: Optional[str] = None) -> None:
    """Create the users and books tables if they do not exist yet."""
    conn = get_db_connection(db_file)
    try:
        cursor = conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS users (
                id TEXT PRIMARY KEY,
                username TEXT NOT NULL,
                email TEXT NOT NULL UNIQUE,
                password TEXT NOT NULL
            )
        """)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS books (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                author TEXT NOT NULL,
                description TEXT,
                status TEXT NOT NULL CHECK(status IN ('reading', 'completed', 'wishlist')),
                userId TEXT NOT NULL,
                coverUrl TEXT,
                createdAt INTEGER NOT NULL,
                FOREIGN KEY (userId) REFERENCES users(id) ON DELETE CASCADE
            )
        """)
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_user_id ON books(userId)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_created_at ON books(createdAt)")
        conn.commit()
    finally:
        conn.close()


def is_storage_ready(db_file: Optional[str] = None) -> bool:
    """True when the database answers and both tables are provisioned."""
    try:
        conn = get_db_connection(db_file)
    except sqlite3.Error as e:
        logger.error(f"Database connection failed: {e}")
        return False
    try:
        rows = conn.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table' AND name IN ('users', 'books')"
        ).fetchall()
        return len(rows) == 2
    except sqlite3.Error as e:
        logger.error(f"Database check failed: {e}")
        return False
    finally:
        conn.close()


def initialize_database(db_file: Optional[str] = None) -> None:
    """Initialise the database, creating tables when needed."""
    create_tables(db_file)
    logger.info(f"Database ready at {resolve_database_file(db_file)}")
