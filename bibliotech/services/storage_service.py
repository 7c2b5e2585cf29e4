import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import quote

import httpx

from bibliotech.book import Book, User
from bibliotech.config import settings
from bibliotech.exceptions import AuthFailure, RegistrationFailure
from bibliotech.services.http_client import build_async_client

logger = logging.getLogger(__name__)

_READY_STATES = {"ready", "ok", "connected"}


@dataclass(frozen=True)
class HealthStatus:
    reachable: bool
    storage_ready: bool

    @property
    def online(self) -> bool:
        return self.reachable and self.storage_ready


OFFLINE = HealthStatus(reachable=False, storage_ready=False)


class RecordStoreClient:
    """Async client for the record store HTTP contract.

    Transport failures never escape as raw httpx errors: reads degrade to
    empty results, writes to False, and auth calls raise AuthFailure or
    RegistrationFailure.
    """

    def __init__(self, base_url: Optional[str] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 health_timeout: Optional[float] = None,
                 client: Optional[httpx.AsyncClient] = None) -> None:
        self._client = client or build_async_client(base_url, transport=transport)
        self.health_timeout = health_timeout if health_timeout is not None else settings.health_timeout

    # ------------------------- Health ------------------------- #
    async def check_health(self) -> HealthStatus:
        """Probe /health with a hard timeout. Never raises."""
        try:
            response = await asyncio.wait_for(
                self._client.get("/health", timeout=self.health_timeout),
                timeout=self.health_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Health check timed out after {self.health_timeout}s")
            return OFFLINE
        except httpx.HTTPError as e:
            logger.warning(f"Backend not reachable: {e}")
            return OFFLINE

        if not response.is_success:
            logger.warning(f"Health check returned {response.status_code}")
            return OFFLINE
        try:
            data = response.json()
        except ValueError:
            return HealthStatus(reachable=True, storage_ready=False)
        database = str(data.get("database", "")).lower() if isinstance(data, dict) else ""
        return HealthStatus(reachable=True, storage_ready=database in _READY_STATES)

    # ------------------------- Auth ------------------------- #
    async def login(self, email: str, password: str) -> User:
        if not email or not password:
            raise AuthFailure("Email and password are required.")
        try:
            response = await self._client.post(
                "/auth/login", json={"email": email, "password": password}
            )
        except httpx.HTTPError as e:
            logger.error(f"Login request failed: {e}")
            raise AuthFailure("The library server is not reachable.") from e

        if response.status_code >= 500:
            logger.error(f"Login failed on the server ({response.status_code})")
            raise AuthFailure("The library server is not reachable.")
        if not response.is_success:
            logger.info(f"Login rejected for {email} ({response.status_code})")
            raise AuthFailure()
        return self._parse_user(response, AuthFailure)

    async def register(self, user: User, password: str) -> User:
        payload = dict(user.to_dict(), password=password)
        try:
            response = await self._client.post("/auth/register", json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Registration request failed: {e}")
            raise RegistrationFailure(RegistrationFailure.UNREACHABLE) from e

        if response.is_success:
            return self._parse_user(
                response, lambda: RegistrationFailure(RegistrationFailure.REJECTED)
            )
        if response.status_code >= 500:
            raise RegistrationFailure(RegistrationFailure.UNREACHABLE)
        if _error_code(response) == "email_exists":
            raise RegistrationFailure(RegistrationFailure.EMAIL_TAKEN)
        logger.info(f"Registration rejected ({response.status_code})")
        raise RegistrationFailure(RegistrationFailure.REJECTED)

    @staticmethod
    def _parse_user(response: httpx.Response, failure) -> User:
        try:
            data = response.json()
            # Only the public fields survive, whatever else the server echoes
            return User(id=str(data["id"]), email=data["email"], username=data.get("username"))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.error(f"Malformed user payload: {e}")
            raise failure() from e

    # ------------------------- Books ------------------------- #
    async def list_books(self) -> List[Book]:
        """Full record set, or [] when the store is unreachable or not provisioned."""
        try:
            response = await self._client.get("/books")
        except httpx.HTTPError as e:
            logger.error(f"Could not load books: {e}")
            return []
        if not response.is_success:
            logger.warning(f"Book list unavailable ({response.status_code})")
            return []
        try:
            data = response.json()
        except ValueError:
            logger.error("Book list is not valid JSON")
            return []
        if not isinstance(data, list):
            return []

        books: List[Book] = []
        for item in data:
            try:
                books.append(Book.from_dict(item))
            except (KeyError, ValueError, TypeError) as e:
                logger.warning(f"Skipping malformed book record: {e}")
        return books

    async def create_book(self, book: Book) -> bool:
        """Not idempotent: call once per user action."""
        return await self._send("POST", "/books", book.to_dict())

    async def update_book(self, book: Book) -> bool:
        return await self._send("PUT", f"/books/{quote(book.id, safe='')}", book.to_dict(),
                                missing_ok=True)

    async def delete_book(self, book_id: str) -> bool:
        return await self._send("DELETE", f"/books/{quote(book_id, safe='')}", missing_ok=True)

    async def _send(self, method: str, url: str, payload: Optional[dict] = None,
                    missing_ok: bool = False) -> bool:
        try:
            response = await self._client.request(method, url, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"{method} {url} failed: {e}")
            return False
        if response.is_success:
            return True
        if missing_ok and response.status_code == 404:
            logger.info(f"{method} {url}: record already gone")
            return True
        logger.warning(f"{method} {url} returned {response.status_code}")
        return False

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


def _error_code(response: httpx.Response) -> Optional[str]:
    try:
        detail = response.json().get("detail")
    except (ValueError, AttributeError):
        return None
    if isinstance(detail, dict):
        return detail.get("code")
    return None
