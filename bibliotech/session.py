import uuid
import logging
from typing import Optional

from bibliotech.book import User, default_username
from bibliotech.exceptions import SessionClosedError
from bibliotech.services.storage_service import RecordStoreClient

logger = logging.getLogger(__name__)


class Session:
    """Identity of the logged-in user, passed explicitly to whoever needs it.

    Created by open_session()/register_session(), ended by close().
    """

    def __init__(self, user: User) -> None:
        self._user: Optional[User] = user

    @property
    def active(self) -> bool:
        return self._user is not None

    @property
    def user(self) -> User:
        if self._user is None:
            raise SessionClosedError()
        return self._user

    @property
    def user_id(self) -> str:
        return self.user.id

    def close(self) -> None:
        if self._user is not None:
            logger.info(f"Session closed for {self._user.email}")
        self._user = None


async def open_session(store: RecordStoreClient, email: str, password: str) -> Session:
    """Log in and return a new session. Raises AuthFailure."""
    user = await store.login(email, password)
    logger.info(f"Session opened for {user.email}")
    return Session(user)


async def register_session(store: RecordStoreClient, email: str, password: str,
                           username: Optional[str] = None) -> Session:
    """Create an account and log straight into it. Raises RegistrationFailure."""
    email = email.strip()
    candidate = User(
        id=uuid.uuid4().hex,
        email=email,
        username=(username or "").strip() or default_username(email),
    )
    user = await store.register(candidate, password)
    logger.info(f"Registered and logged in as {user.email}")
    return Session(user)
