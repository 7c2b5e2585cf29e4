"""Client-side list processing: filter, search and sort the record set.

Everything here is pure. Inputs are never mutated and the output is a new
list that is only meant for display.
"""
from __future__ import annotations

import unicodedata
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from bibliotech.book import Book, BookStatus


class Ownership(str, Enum):
    ALL = "all"
    MINE = "mine"


class SortField(str, Enum):
    TITLE = "title"
    AUTHOR = "author"
    CREATED_AT = "createdAt"


class SortOrder(str, Enum):
    ASCENDING = "ascending"
    DESCENDING = "descending"


STATUS_ALL = "all"

_TEXT_ATTRS = {SortField.TITLE: "title", SortField.AUTHOR: "author"}


@dataclass(frozen=True)
class ViewParams:
    ownership: Ownership = Ownership.ALL
    status: str = STATUS_ALL
    query: str = ""
    sort_field: SortField = SortField.CREATED_AT
    sort_order: SortOrder = SortOrder.DESCENDING

    def __post_init__(self) -> None:
        # Normalise plain strings coming from the CLI or a form
        object.__setattr__(self, "ownership", Ownership(self.ownership))
        object.__setattr__(self, "sort_field", SortField(self.sort_field))
        object.__setattr__(self, "sort_order", SortOrder(self.sort_order))
        status = self.status or STATUS_ALL
        if status != STATUS_ALL:
            status = BookStatus.parse(status).value
        object.__setattr__(self, "status", status)
        object.__setattr__(self, "query", self.query or "")

    def with_changes(self, **changes: Any) -> "ViewParams":
        return replace(self, **changes)

    def toggled_order(self) -> "ViewParams":
        flipped = SortOrder.ASCENDING if self.sort_order is SortOrder.DESCENDING else SortOrder.DESCENDING
        return replace(self, sort_order=flipped)


def fold_text(value: Optional[str]) -> str:
    """Case- and accent-insensitive comparison key ("À" and "a" are equal)."""
    if not value:
        return ""
    decomposed = unicodedata.normalize("NFKD", str(value))
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.casefold()


def matches_ownership(book: Book, ownership: Ownership, user_id: Optional[str]) -> bool:
    if ownership is Ownership.ALL:
        return True
    return user_id is not None and getattr(book, "user_id", None) == user_id


def matches_status(book: Book, status: str) -> bool:
    if status == STATUS_ALL:
        return True
    book_status = getattr(book, "status", None)
    return book_status is not None and BookStatus(book_status).value == status


def matches_query(book: Book, query: str) -> bool:
    """Case-insensitive substring match on title or author."""
    if not query:
        return True
    needle = query.casefold()
    title = (getattr(book, "title", None) or "").casefold()
    author = (getattr(book, "author", None) or "").casefold()
    return needle in title or needle in author


def sort_key(book: Book, field: SortField):
    if field is SortField.CREATED_AT:
        return getattr(book, "created_at", None) or 0
    return fold_text(getattr(book, _TEXT_ATTRS[field], None))


def sort_books(books: Iterable[Book], field: SortField | str,
               order: SortOrder | str = SortOrder.ASCENDING) -> List[Book]:
    """Stable sort. Descending inverts the comparison, so ties keep input order."""
    field = SortField(field)
    descending = SortOrder(order) is SortOrder.DESCENDING
    # sorted() with reverse=True keeps equal elements in their original order
    return sorted(books, key=lambda b: sort_key(b, field), reverse=descending)


def process_books(records: Iterable[Book], params: ViewParams,
                  user_id: Optional[str] = None) -> List[Book]:
    """Filter, then search, then sort; returns the list to render."""
    retained = [
        book for book in records
        if matches_ownership(book, params.ownership, user_id)
        and matches_status(book, params.status)
        and matches_query(book, params.query)
    ]
    return sort_books(retained, params.sort_field, params.sort_order)


def summarize(records: Iterable[Book]) -> Dict[str, int]:
    """Total count plus one count per status key."""
    counts: Dict[str, int] = {"total": 0}
    counts.update({status.value: 0 for status in BookStatus})
    for book in records:
        counts["total"] += 1
        counts[BookStatus(book.status).value] += 1
    return counts
