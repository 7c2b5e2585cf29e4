import os
import tempfile

# api.py builds its Library at import time; keep that default store out of the
# working directory. Tests swap in a per-test Library anyway.
os.environ.setdefault(
    "LIBRARY_DB_FILE", os.path.join(tempfile.gettempdir(), f"bibliotech_{os.getpid()}.db")
)

import httpx
import pytest
from fastapi.testclient import TestClient

from bibliotech import api as api_module
from bibliotech.book import Book, BookStatus
from bibliotech.library import Library
from bibliotech.services.storage_service import RecordStoreClient


@pytest.fixture
def lib(tmp_path, request):
    # Create a unique database file for each test
    db_file = str(tmp_path / f"test_{request.node.name}.db")
    lib = Library(db_file=db_file)
    yield lib
    lib.close()


@pytest.fixture
def reader(lib):
    return lib.register_user("u1", "reader@example.com", "secret", "reader")


@pytest.fixture
def api_app(lib, monkeypatch):
    # Routes look up the module-level library at call time
    monkeypatch.setattr(api_module, "library", lib)
    return api_module.app


@pytest.fixture
def client(api_app):
    with TestClient(api_app) as test_client:
        yield test_client


@pytest.fixture
def make_store(api_app):
    """Factory for record store clients wired to the in-process API.

    Build the client inside the coroutine that uses it.
    """
    def factory(**kwargs) -> RecordStoreClient:
        transport = httpx.ASGITransport(app=api_app)
        return RecordStoreClient(base_url="http://testserver", transport=transport, **kwargs)

    return factory


@pytest.fixture
def make_book():
    counter = {"n": 0}

    def factory(title="Dune", author="Frank Herbert", user_id="u1",
                status=BookStatus.READING, created_at=None, **kwargs) -> Book:
        counter["n"] += 1
        return Book(
            id=kwargs.pop("id", f"b{counter['n']}"),
            title=title,
            author=author,
            user_id=user_id,
            status=status,
            created_at=created_at if created_at is not None else 1_700_000_000_000 + counter["n"],
            **kwargs,
        )

    return factory
