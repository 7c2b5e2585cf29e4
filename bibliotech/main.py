import sys
import asyncio
import logging
import subprocess
from typing import Awaitable, Callable, Optional, TypeVar

import typer
from rich.console import Console

from bibliotech.config import settings
from bibliotech.controller import LibraryController
from bibliotech.exceptions import BiblioTechError, RegistrationFailure
from bibliotech.pipeline import Ownership, SortField, SortOrder, STATUS_ALL
from bibliotech.services.storage_service import RecordStoreClient
from bibliotech.session import register_session
from bibliotech.ui_helpers import (
    set_output_mode,
    print_list_result,
    print_book_detail,
    print_stats_result,
    print_health_result,
)

APP_NAME = "BiblioTech CLI"

console = Console()

T = TypeVar("T")

_state = {"base_url": None}

EMAIL_OPTION = typer.Option(..., "--email", "-e", envvar="BIBLIOTECH_EMAIL", help="Account email")
PASSWORD_OPTION = typer.Option(
    ..., "--password", "-p", envvar="BIBLIOTECH_PASSWORD", help="Account password", hide_input=True
)


def make_store() -> RecordStoreClient:
    """Record store client for the configured server."""
    return RecordStoreClient(base_url=_state["base_url"])


def _fail(message: str) -> None:
    console.print(f"[bold red]Error:[/] {message}")
    raise typer.Exit(code=1)


def _run(coro_factory: Callable[[], Awaitable[T]]) -> T:
    """Run one async CLI action, turning user-facing errors into a message."""
    try:
        return asyncio.run(coro_factory())
    except BiblioTechError as e:
        _fail(str(e))


def _with_library(email: str, password: str,
                  action: Callable[[LibraryController], Awaitable[T]]) -> T:
    async def runner():
        async with make_store() as store:
            controller = LibraryController(store)
            await controller.sign_in(email, password)
            try:
                return await action(controller)
            finally:
                controller.logout()

    return _run(runner)


# --- Typer CLI application ---
app = typer.Typer(help=APP_NAME)


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None, "--output", "-o", help="Output format: plain | json | rich (default: plain)"
    ),
    base_url: Optional[str] = typer.Option(
        None, "--base-url", envvar="API_BASE_URL", help="Record store URL"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    """Global CLI options."""
    if output:
        set_output_mode(output)
    _state["base_url"] = base_url or settings.api_base_url
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)


@app.command("serve")
def cli_serve(
    host: str = typer.Option(settings.api_host, "--host"),
    port: int = typer.Option(settings.api_port, "--port"),
):
    """Start the record store server with uvicorn."""
    print(f"Starting record store on http://{host}:{port}/")
    args = [
        sys.executable,
        "-m", "uvicorn",
        "bibliotech.api:app",
        "--host", host,
        "--port", str(port),
    ]
    try:
        subprocess.run(args, check=False)
    except FileNotFoundError:
        _fail("`uvicorn` was not found. Make sure it is installed in your environment.")
    except KeyboardInterrupt:
        print("Server stopped.")


@app.command("health")
def cli_health():
    """Check whether the record store is reachable."""
    async def probe():
        async with make_store() as store:
            return await store.check_health()

    status = _run(probe)
    print_health_result(status)
    if not status.reachable:
        raise typer.Exit(code=1)


@app.command("register")
def cli_register(
    email: str = typer.Argument(...),
    password: str = typer.Argument(...),
    username: Optional[str] = typer.Option(None, "--username", "-u"),
):
    """Create an account."""
    async def runner():
        async with make_store() as store:
            session = await register_session(store, email, password, username)
            user = session.user
            session.close()
            return user

    try:
        user = asyncio.run(runner())
    except RegistrationFailure as e:
        _fail(str(e))
    print(f"Registered {user.username} <{user.email}>")


@app.command("list")
def cli_list(
    email: str = EMAIL_OPTION,
    password: str = PASSWORD_OPTION,
    mine: bool = typer.Option(False, "--mine", help="Only books you added"),
    status: str = typer.Option(STATUS_ALL, "--status", "-s", help="all | reading | completed | wishlist"),
    query: str = typer.Option("", "--query", "-q", help="Match title or author"),
    sort: SortField = typer.Option(SortField.CREATED_AT, "--sort"),
    order: SortOrder = typer.Option(SortOrder.DESCENDING, "--order"),
):
    """List books, filtered and sorted."""
    try:
        changes = dict(
            ownership=Ownership.MINE if mine else Ownership.ALL,
            status=status, query=query, sort_field=sort, sort_order=order,
        )

        async def action(controller: LibraryController):
            controller.set_view(**changes)
            return controller.visible_books

        books = _with_library(email, password, action)
    except ValueError as e:
        _fail(str(e))
    print_list_result(books)


@app.command("show")
def cli_show(book_id: str, email: str = EMAIL_OPTION, password: str = PASSWORD_OPTION):
    """Show a single book."""
    async def action(controller: LibraryController):
        return controller.find_book(book_id)

    book = _with_library(email, password, action)
    if not book:
        print(f"Book with id {book_id} not found.")
        return
    print_book_detail(book)


@app.command("add")
def cli_add(
    title: str = typer.Option(..., "--title", "-t"),
    author: str = typer.Option(..., "--author", "-a"),
    description: str = typer.Option("", "--description", "-d"),
    status: Optional[str] = typer.Option(None, "--status", "-s"),
    cover: Optional[str] = typer.Option(None, "--cover", help="Local image file"),
    email: str = EMAIL_OPTION,
    password: str = PASSWORD_OPTION,
):
    """Add a book to the library."""
    async def action(controller: LibraryController):
        form = controller.open_new_form()
        form.title, form.author, form.description = title, author, description
        if status:
            form.set_status(status)
        if cover:
            await form.attach_image(cover)
        return await controller.save_form()

    try:
        ok = _with_library(email, password, action)
    except ValueError as e:
        _fail(str(e))
    if ok:
        print(f"Successfully added: {title} by {author}")
    else:
        _fail("The book could not be saved.")


@app.command("edit")
def cli_edit(
    book_id: str,
    title: Optional[str] = typer.Option(None, "--title", "-t"),
    author: Optional[str] = typer.Option(None, "--author", "-a"),
    description: Optional[str] = typer.Option(None, "--description", "-d"),
    status: Optional[str] = typer.Option(None, "--status", "-s"),
    cover: Optional[str] = typer.Option(None, "--cover", help="Local image file"),
    email: str = EMAIL_OPTION,
    password: str = PASSWORD_OPTION,
):
    """Edit an existing book."""
    async def action(controller: LibraryController):
        book = controller.find_book(book_id)
        if not book:
            return None
        form = controller.open_edit_form(book)
        if title is not None:
            form.title = title
        if author is not None:
            form.author = author
        if description is not None:
            form.description = description
        if status:
            form.set_status(status)
        if cover:
            await form.attach_image(cover)
        return await controller.save_form()

    try:
        ok = _with_library(email, password, action)
    except ValueError as e:
        _fail(str(e))
    if ok is None:
        print(f"Book with id {book_id} not found.")
    elif ok:
        print(f"Book {book_id} updated.")
    else:
        _fail("The book could not be saved.")


@app.command("remove")
def cli_remove(book_id: str, email: str = EMAIL_OPTION, password: str = PASSWORD_OPTION):
    """Remove a book. Removing a missing book is not an error."""
    async def action(controller: LibraryController):
        return await controller.delete_book(book_id)

    if _with_library(email, password, action):
        print(f"Book with id {book_id} has been removed.")
    else:
        _fail("The book could not be removed.")


@app.command("stats")
def cli_stats(email: str = EMAIL_OPTION, password: str = PASSWORD_OPTION):
    """Show library statistics."""
    async def action(controller: LibraryController):
        return controller.stats()

    print_stats_result(_with_library(email, password, action))


if __name__ == "__main__":
    app()
