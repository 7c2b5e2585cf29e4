import time
import sqlite3
import logging
from typing import Any, Dict, List, Optional

from bibliotech.book import Book, User, default_username
from bibliotech.database import get_db_connection, initialize_database, resolve_database_file

logger = logging.getLogger(__name__)

# Fields a client may replace on update; id, createdAt and userId stay server-owned
_UPDATABLE_FIELDS = ("title", "author", "description", "status", "coverUrl")


class DuplicateEmailError(ValueError):
    pass


class Library:
    """Persistent record store for users and their books (server side)."""

    def __init__(self, db_file: Optional[str] = None) -> None:
        self.db_file = resolve_database_file(db_file)
        initialize_database(self.db_file)

    def _connect(self) -> sqlite3.Connection:
        return get_db_connection(self.db_file)

    # ------------------------- Users ------------------------- #
    def register_user(self, user_id: str, email: str, password: str,
                      username: Optional[str] = None) -> User:
        """Create an account. Raises DuplicateEmailError when the email is taken."""
        email = email.strip()
        if not user_id or not email or not password:
            raise ValueError("id, email and password are required.")
        username = (username or "").strip() or default_username(email)

        conn = self._connect()
        try:
            if conn.execute("SELECT 1 FROM users WHERE email = ?", (email,)).fetchone():
                raise DuplicateEmailError(f"Email {email} is already registered.")
            try:
                conn.execute(
                    "INSERT INTO users (id, username, email, password) VALUES (?, ?, ?, ?)",
                    (user_id, username, email, password),
                )
                conn.commit()
            except sqlite3.IntegrityError as e:
                if "email" in str(e):
                    raise DuplicateEmailError(f"Email {email} is already registered.") from e
                raise ValueError(f"User with id {user_id} already exists.") from e
        finally:
            conn.close()
        return User(id=user_id, email=email, username=username)

    def authenticate(self, email: str, password: str) -> Optional[User]:
        """Return the user when email and password match, otherwise None."""
        if not email or not password:
            return None
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT id, username, email FROM users WHERE email = ? AND password = ?",
                (email.strip(), password),
            ).fetchone()
        finally:
            conn.close()
        return User.from_dict(dict(row)) if row else None

    def find_user(self, user_id: str) -> Optional[User]:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT id, username, email FROM users WHERE id = ?", (user_id,)
            ).fetchone()
        finally:
            conn.close()
        return User.from_dict(dict(row)) if row else None

    def remove_user(self, user_id: str) -> bool:
        """Delete a user; their books go with them (ON DELETE CASCADE)."""
        conn = self._connect()
        try:
            cursor = conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
            conn.commit()
            if cursor.rowcount > 0:
                logger.info(f"User {user_id} removed together with their books")
                return True
            return False
        finally:
            conn.close()

    # ------------------------- Books ------------------------- #
    def add_book(self, book: Book) -> Book:
        """Insert a book. Raises ValueError on a duplicate id, LookupError for an unknown owner."""
        if not book.id:
            raise ValueError("Book id is required.")
        if not book.title or not book.author:
            raise ValueError("Title and author are required.")
        if self.find_book(book.id):
            raise ValueError(f"Book with id {book.id} already exists.")
        if not self.find_user(book.user_id):
            raise LookupError(f"User {book.user_id} not found.")
        if not book.created_at:
            book.created_at = int(time.time() * 1000)

        row = book.to_dict()
        conn = self._connect()
        try:
            conn.execute(
                """
                INSERT INTO books (id, title, author, description, status, userId, coverUrl, createdAt)
                VALUES (:id, :title, :author, :description, :status, :userId, :coverUrl, :createdAt)
                """,
                row,
            )
            conn.commit()
        except sqlite3.IntegrityError as e:
            raise ValueError(f"Book with id {book.id} already exists.") from e
        finally:
            conn.close()
        return book

    def find_book(self, book_id: str) -> Optional[Book]:
        conn = self._connect()
        try:
            row = conn.execute("SELECT * FROM books WHERE id = ?", (book_id,)).fetchone()
        finally:
            conn.close()
        return Book.from_dict(dict(row)) if row else None

    def list_books(self) -> List[Book]:
        """All books, oldest first (fresh on every call).

        Raises sqlite3.OperationalError when the books table is not provisioned.
        """
        conn = self._connect()
        try:
            rows = conn.execute("SELECT * FROM books ORDER BY createdAt, rowid").fetchall()
        finally:
            conn.close()
        return [Book.from_dict(dict(row)) for row in rows]

    def update_book(self, book_id: str, changes: Dict[str, Any]) -> Optional[Book]:
        """Replace the updatable fields of a book. Returns None when it does not exist.

        id, createdAt and userId in `changes` are ignored.
        """
        existing = self.find_book(book_id)
        if not existing:
            return None

        merged = existing.to_dict()
        for key in _UPDATABLE_FIELDS:
            if changes.get(key) is not None:
                merged[key] = changes[key]
        updated = Book.from_dict(merged)
        if not updated.title or not updated.author:
            raise ValueError("Title and author are required.")

        conn = self._connect()
        try:
            conn.execute(
                """
                UPDATE books SET title = ?, author = ?, description = ?, status = ?, coverUrl = ?
                WHERE id = ?
                """,
                (updated.title, updated.author, updated.description, updated.status.value,
                 updated.cover_url, book_id),
            )
            conn.commit()
        finally:
            conn.close()
        return updated

    def remove_book(self, book_id: str) -> bool:
        """Delete a book. Returns False when nothing was deleted."""
        conn = self._connect()
        try:
            cursor = conn.execute("DELETE FROM books WHERE id = ?", (book_id,))
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()

    def get_statistics(self) -> Dict[str, Any]:
        """Totals reported by the health endpoint."""
        conn = self._connect()
        try:
            total_books = conn.execute("SELECT COUNT(*) FROM books").fetchone()[0]
            total_users = conn.execute("SELECT COUNT(*) FROM users").fetchone()[0]
        finally:
            conn.close()
        return {"total_books": total_books, "total_users": total_users}

    def close(self) -> None:
        """Connections are opened per operation, so there is nothing to release."""
        return None


__all__ = ["Library", "DuplicateEmailError"]
