from __future__ import annotations

from enum import Enum


class BookStatus(str, Enum):
    """Reading status of a book. The value is the stored machine key."""

    READING = "reading"
    COMPLETED = "completed"
    WISHLIST = "wishlist"

    @classmethod
    def parse(cls, value: "BookStatus | str") -> "BookStatus":
        """Accept a machine key or one of the legacy display labels."""
        if isinstance(value, cls):
            return value
        raw = str(value or "").strip()
        try:
            return cls(raw.lower())
        except ValueError:
            pass
        for status, labels in _LABEL_LOOKUP.items():
            if raw.casefold() in labels:
                return status
        raise ValueError(f"Unknown book status: {value!r}")


STATUS_LABELS: dict[str, dict[BookStatus, str]] = {
    "it": {
        BookStatus.READING: "In Lettura",
        BookStatus.COMPLETED: "Completato",
        BookStatus.WISHLIST: "Lista dei Desideri",
    },
    "en": {
        BookStatus.READING: "Reading",
        BookStatus.COMPLETED: "Completed",
        BookStatus.WISHLIST: "Wishlist",
    },
}

_LABEL_LOOKUP: dict[BookStatus, set[str]] = {
    status: {labels[status].casefold() for labels in STATUS_LABELS.values()}
    for status in BookStatus
}


def status_label(status: BookStatus | str, language: str = "it") -> str:
    """Display text for a status; falls back to English for unknown languages."""
    labels = STATUS_LABELS.get(language, STATUS_LABELS["en"])
    return labels[BookStatus.parse(status)]


class User:
    """Authenticated account as seen by the client. Never carries a password."""

    def __init__(self, id: str, email: str, username: str | None = None) -> None:
        self.id = id
        self.email = email.strip()
        self.username = (username or "").strip() or default_username(self.email)

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"User(id={self.id!r}, email={self.email!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, User):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def to_dict(self) -> dict:
        return {"id": self.id, "username": self.username, "email": self.email}

    @staticmethod
    def from_dict(data: dict) -> "User":
        return User(id=str(data["id"]), email=data["email"], username=data.get("username"))


def default_username(email: str) -> str:
    return email.split("@")[0]


class Book:
    """A single book record in the library."""

    def __init__(self, id: str, title: str, author: str, user_id: str,
                 description: str | None = None,
                 status: BookStatus | str = BookStatus.READING,
                 cover_url: str | None = None, created_at: int | None = None) -> None:
        self.id = id
        self.title = (title or "").strip()
        self.author = (author or "").strip()
        self.user_id = user_id
        self.description = description or ""
        self.status = BookStatus.parse(status)
        self.cover_url = cover_url or ""
        self.created_at = int(created_at or 0)

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} by {self.author} ({self.id})"

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"Book(id={self.id!r}, title={self.title!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Book):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __hash__(self) -> int:
        return hash(self.id)

    def to_dict(self) -> dict:
        """JSON-serialisable wire form (camelCase keys, ms timestamps)."""
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "description": self.description,
            "status": self.status.value,
            "userId": self.user_id,
            "coverUrl": self.cover_url,
            "createdAt": self.created_at,
        }

    @staticmethod
    def from_dict(data: dict) -> "Book":
        # Rows coming from sqlite may store the timestamp as text
        created = data.get("createdAt")
        for key in ("title", "author"):
            if not str(data.get(key) or "").strip():
                raise ValueError(f"Book {data.get('id')!r} has no {key}.")
        return Book(
            id=str(data["id"]),
            title=data["title"],
            author=data["author"],
            user_id=data.get("userId") or "",
            description=data.get("description"),
            status=data.get("status") or BookStatus.READING,
            cover_url=data.get("coverUrl"),
            created_at=int(float(created)) if created not in (None, "") else 0,
        )
