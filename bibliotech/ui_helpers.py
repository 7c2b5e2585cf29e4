import os
import json
from datetime import datetime
from typing import Dict, List, Optional

from rich.console import Console
from rich.table import Table
from rich.panel import Panel

from bibliotech.book import Book, BookStatus, status_label
from bibliotech.config import settings
from bibliotech.services.storage_service import HealthStatus

# Environment variable to control CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "LIB_CLI_OUTPUT"

_console = Console()

_STATUS_STYLES = {
    BookStatus.READING: "blue",
    BookStatus.COMPLETED: "green",
    BookStatus.WISHLIST: "magenta",
}


def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode


def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()


def _label(book: Book, language: Optional[str]) -> str:
    return status_label(book.status, language or settings.display_language)


def _added_on(book: Book) -> str:
    if not book.created_at:
        return ""
    return datetime.fromtimestamp(book.created_at / 1000).strftime("%Y-%m-%d")


def _short_cover(cover_url: str) -> str:
    # inlined covers are megabytes of base64; show only the header
    if cover_url.startswith("data:"):
        return cover_url.split(",", 1)[0] + ",..."
    return cover_url


def print_list_result(books: List[Book], language: Optional[str] = None) -> None:
    """Print the processed book list in the current output mode.
    - plain: 'ID - Title by Author [Status]' lines, or 'No books in library.'
    - json: JSON array of wire-form books
    - rich: Rich table
    """
    mode = get_output_mode()

    if not books:
        print("No books in library.")
        return

    if mode == "json":
        payload = [dict(b.to_dict(), coverUrl=_short_cover(b.cover_url)) for b in books]
        print(json.dumps(payload, ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="Library", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="dim", no_wrap=True)
        table.add_column("Title", style="white")
        table.add_column("Author", style="white")
        table.add_column("Status")
        table.add_column("Added", no_wrap=True)
        for b in books:
            style = _STATUS_STYLES.get(b.status, "white")
            table.add_row(b.id, b.title, b.author, f"[{style}]{_label(b, language)}[/]", _added_on(b))
        _console.print(table)
    else:
        for b in books:
            print(f"{b.id} - {b.title} by {b.author} [{_label(b, language)}]")


def print_book_detail(book: Book, language: Optional[str] = None) -> None:
    mode = get_output_mode()
    if mode == "json":
        print(json.dumps(dict(book.to_dict(), coverUrl=_short_cover(book.cover_url)), ensure_ascii=False))
        return
    lines = [
        f"Title: {book.title}",
        f"Author: {book.author}",
        f"Status: {_label(book, language)}",
        f"Added: {_added_on(book)}",
        f"Cover: {_short_cover(book.cover_url)}",
        f"ID: {book.id}",
    ]
    if book.description:
        lines.append(f"Description: {book.description}")
    if mode == "rich":
        _console.print(Panel.fit("\n".join(lines), title="Book", border_style="blue"))
    else:
        print("Book Found")
        for line in lines:
            print(line)


def print_stats_result(stats: Dict[str, int], language: Optional[str] = None) -> None:
    mode = get_output_mode()
    language = language or settings.display_language

    if mode == "json":
        print(json.dumps(stats, ensure_ascii=False))
        return

    rows = [f"Total Books: {stats.get('total', 0)}"]
    for status in BookStatus:
        rows.append(f"{status_label(status, language)}: {stats.get(status.value, 0)}")
    if mode == "rich":
        _console.print(Panel.fit("\n".join(rows), title="Stats", border_style="blue"))
    else:
        for row in rows:
            print(row)


def print_health_result(status: HealthStatus) -> None:
    mode = get_output_mode()
    if mode == "json":
        print(json.dumps({"reachable": status.reachable, "storageReady": status.storage_ready}))
        return
    if not status.reachable:
        text = "Server: offline"
    elif not status.storage_ready:
        text = "Server: online (storage not ready)"
    else:
        text = "Server: online"
    if mode == "rich":
        color = "green" if status.online else ("yellow" if status.reachable else "red")
        _console.print(f"[bold {color}]{text}[/]")
    else:
        print(text)
