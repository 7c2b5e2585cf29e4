import json
from unittest.mock import patch

import httpx
import pytest
from typer.testing import CliRunner

from bibliotech import main
from bibliotech.main import app
from bibliotech.services.storage_service import RecordStoreClient

runner = CliRunner()

CREDENTIALS = ["--email", "reader@example.com", "--password", "secret"]


@pytest.fixture(autouse=True)
def cli_store(api_app, monkeypatch):
    """Point every CLI command at the in-process API."""
    def factory():
        return RecordStoreClient(base_url="http://testserver", transport=httpx.ASGITransport(app=api_app))

    monkeypatch.setattr(main, "make_store", factory)
    monkeypatch.setenv("LIB_CLI_OUTPUT", "plain")


def test_list_no_books(reader):
    result = runner.invoke(app, ["list", *CREDENTIALS])
    assert result.exit_code == 0
    assert "No books in library." in result.stdout


def test_wrong_password_is_reported(reader):
    result = runner.invoke(app, ["list", "--email", "reader@example.com", "--password", "nope"])
    assert result.exit_code == 1
    assert "Invalid credentials." in result.stdout


def test_register_command():
    result = runner.invoke(app, ["register", "new@example.com", "pw"])
    assert result.exit_code == 0
    assert "Registered new <new@example.com>" in result.stdout

    again = runner.invoke(app, ["register", "new@example.com", "pw"])
    assert again.exit_code == 1
    assert "already registered" in again.stdout


def test_add_and_list(reader, lib):
    result = runner.invoke(app, ["add", "--title", "Dune", "--author", "Frank Herbert",
                                 "--status", "wishlist", *CREDENTIALS])
    assert result.exit_code == 0
    assert "Successfully added: Dune by Frank Herbert" in result.stdout

    [book] = lib.list_books()
    result = runner.invoke(app, ["list", "--query", "herbert", *CREDENTIALS])
    assert result.exit_code == 0
    assert f"{book.id} - Dune by Frank Herbert [Lista dei Desideri]" in result.stdout


def test_add_without_author_fails_validation(reader, lib):
    result = runner.invoke(app, ["add", "--title", "Dune", "--author", " ", *CREDENTIALS])
    assert result.exit_code == 1
    assert "Author is required." in result.stdout
    assert lib.list_books() == []


def test_list_json_mine_sorted(reader, lib, make_book):
    lib.register_user("u2", "other@example.com", "pw")
    lib.add_book(make_book("Zebra", "Z", id="z", user_id="u1"))
    lib.add_book(make_book("Apple", "A", id="a", user_id="u1"))
    lib.add_book(make_book("Other", "O", id="o", user_id="u2"))

    result = runner.invoke(app, ["--output", "json", "list", "--mine", "--sort", "title",
                                 "--order", "ascending", *CREDENTIALS])
    assert result.exit_code == 0
    assert [b["id"] for b in json.loads(result.stdout)] == ["a", "z"]


def test_list_unknown_status(reader):
    result = runner.invoke(app, ["list", "--status", "borrowed", *CREDENTIALS])
    assert result.exit_code == 1
    assert "Unknown book status" in result.stdout


def test_show_and_edit(reader, lib, make_book):
    lib.add_book(make_book("Old", "Writer", id="b1", created_at=77))

    result = runner.invoke(app, ["edit", "b1", "--title", "New", "--status", "completed", *CREDENTIALS])
    assert result.exit_code == 0
    assert "Book b1 updated." in result.stdout

    stored = lib.find_book("b1")
    assert (stored.title, stored.created_at, stored.status.value) == ("New", 77, "completed")

    result = runner.invoke(app, ["show", "b1", *CREDENTIALS])
    assert "Title: New" in result.stdout
    assert "Status: Completato" in result.stdout


def test_edit_missing_book(reader):
    result = runner.invoke(app, ["edit", "nope", "--title", "X", *CREDENTIALS])
    assert result.exit_code == 0
    assert "Book with id nope not found." in result.stdout


def test_remove_twice(reader, lib, make_book):
    lib.add_book(make_book(id="b1"))
    for _ in range(2):
        result = runner.invoke(app, ["remove", "b1", *CREDENTIALS])
        assert result.exit_code == 0
        assert "Book with id b1 has been removed." in result.stdout
    assert lib.list_books() == []


def test_stats(reader, lib, make_book):
    lib.add_book(make_book(id="b1"))
    lib.add_book(make_book(id="b2", status="completed"))
    result = runner.invoke(app, ["stats", *CREDENTIALS])
    assert result.exit_code == 0
    assert "Total Books: 2" in result.stdout
    assert "Completato: 1" in result.stdout


def test_health_command():
    result = runner.invoke(app, ["health"])
    assert result.exit_code == 0
    assert "Server: online" in result.stdout


@patch("subprocess.run")
def test_serve_command(mock_subprocess_run):
    result = runner.invoke(app, ["serve"])
    assert result.exit_code == 0
    assert "Starting record store on" in result.stdout
    args = mock_subprocess_run.call_args[0][0]
    assert "uvicorn" in args
    assert "bibliotech.api:app" in args
    assert "--host" in args
    assert "--port" in args
