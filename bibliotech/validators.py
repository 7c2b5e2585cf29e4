import mimetypes
from typing import Optional

from bibliotech.exceptions import ValidationError


class TextValidator:
    """Required-field checks for book forms."""

    @staticmethod
    def is_present(text: Optional[str]) -> bool:
        return bool(text and text.strip())

    @staticmethod
    def require(field: str, text: Optional[str], label: str) -> str:
        if not TextValidator.is_present(text):
            raise ValidationError(field, f"{label} is required.")
        return text.strip()


class ImageValidator:
    ALLOWED_MIME_PREFIX = "image/"

    @staticmethod
    def guess_mime(filename: str) -> Optional[str]:
        mime, _ = mimetypes.guess_type(filename)
        return mime

    @staticmethod
    def require_image(filename: str) -> str:
        mime = ImageValidator.guess_mime(filename)
        if not mime or not mime.startswith(ImageValidator.ALLOWED_MIME_PREFIX):
            raise ValidationError("coverUrl", "Only image files can be used as a cover.")
        return mime
