import time
import uuid
import base64
import asyncio
import logging
from pathlib import Path
from typing import Optional, Union
from urllib.parse import quote

from bibliotech.book import Book, BookStatus
from bibliotech.config import settings
from bibliotech.exceptions import ImageTooLargeError, ValidationError
from bibliotech.validators import ImageValidator, TextValidator

logger = logging.getLogger(__name__)


def placeholder_cover(title: str) -> str:
    """Deterministic cover URL derived from the title."""
    return settings.placeholder_cover_url.format(seed=quote(title.strip() or "book", safe=""))


def encode_image(raw: bytes, mime: str) -> str:
    """Inline image bytes as a self-contained data URL."""
    return f"data:{mime};base64,{base64.b64encode(raw).decode('ascii')}"


def _read_file(path: Path) -> bytes:
    with open(path, "rb") as f:
        return f.read()


class BookForm:
    """Working state of one create-or-edit operation.

    Field values are plain attributes so a UI can bind to them directly.
    Nothing reaches the store until the controller submits the form.
    """

    def __init__(self, editing: Optional[Book] = None) -> None:
        self.original = editing
        self.title = editing.title if editing else ""
        self.author = editing.author if editing else ""
        self.description = editing.description if editing else ""
        self.status: Optional[BookStatus] = editing.status if editing else None
        self.cover_url = editing.cover_url if editing else ""
        self.uploading = False
        self.submitting = False

    @classmethod
    def new(cls) -> "BookForm":
        return cls()

    @classmethod
    def edit(cls, book: Book) -> "BookForm":
        return cls(editing=book)

    @property
    def is_new(self) -> bool:
        return self.original is None

    @property
    def editing_id(self) -> Optional[str]:
        return self.original.id if self.original else None

    def set_status(self, status: Union[BookStatus, str]) -> None:
        self.status = BookStatus.parse(status)

    async def attach_image(self, path: Union[str, Path], max_bytes: Optional[int] = None) -> str:
        """Read a local image and store it on the form as a data URL.

        Raises ImageTooLargeError or ValidationError; on failure the previous
        cover is kept and the form stays usable.
        """
        limit = max_bytes if max_bytes is not None else settings.max_cover_bytes
        path = Path(path)
        mime = ImageValidator.require_image(path.name)

        self.uploading = True
        try:
            try:
                size = path.stat().st_size
            except OSError as e:
                raise ValidationError("coverUrl", "Could not read the image.") from e
            if size > limit:
                logger.info(f"Cover {path.name} rejected: {size} bytes > {limit}")
                raise ImageTooLargeError(size, limit)
            try:
                raw = await asyncio.to_thread(_read_file, path)
            except OSError as e:
                raise ValidationError("coverUrl", "Could not read the image.") from e
            self.cover_url = await asyncio.to_thread(encode_image, raw, mime)
        finally:
            self.uploading = False
        return self.cover_url

    def validate(self) -> None:
        TextValidator.require("title", self.title, "Title")
        TextValidator.require("author", self.author, "Author")

    def submit(self, owner_id: str, now_ms: Optional[int] = None) -> Book:
        """Build the finished record.

        New books get a fresh id, the current timestamp, the default status and
        a placeholder cover when none was attached. Edited books keep their id,
        createdAt and owner.
        """
        self.validate()
        title = self.title.strip()
        cover = self.cover_url or placeholder_cover(title)
        status = self.status or BookStatus.parse(settings.default_status)

        if self.original is not None:
            return Book(
                id=self.original.id,
                title=title,
                author=self.author.strip(),
                user_id=self.original.user_id,
                description=self.description,
                status=status,
                cover_url=cover,
                created_at=self.original.created_at,
            )
        return Book(
            id=uuid.uuid4().hex,
            title=title,
            author=self.author.strip(),
            user_id=owner_id,
            description=self.description,
            status=status,
            cover_url=cover,
            created_at=now_ms if now_ms is not None else int(time.time() * 1000),
        )
