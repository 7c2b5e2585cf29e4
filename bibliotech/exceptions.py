"""Error types shared by the client-side components.

Messages are short and meant to be shown to the user as-is.
"""


class BiblioTechError(Exception):
    """Base class for every error the UI layer is expected to handle."""


class AuthFailure(BiblioTechError):
    def __init__(self, message: str = "Invalid credentials.") -> None:
        super().__init__(message)


class RegistrationFailure(BiblioTechError):
    EMAIL_TAKEN = "email_taken"
    UNREACHABLE = "unreachable"
    REJECTED = "rejected"

    def __init__(self, kind: str, message: str | None = None) -> None:
        self.kind = kind
        if message is None:
            message = {
                self.EMAIL_TAKEN: "This email is already registered.",
                self.UNREACHABLE: "The library server is not reachable.",
            }.get(kind, "Registration failed.")
        super().__init__(message)


class ValidationError(BiblioTechError):
    """A required field is missing or malformed; raised before any request."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(message)


def _format_size(size: int) -> str:
    if size >= 1024 * 1024 and size % (1024 * 1024) == 0:
        return f"{size // (1024 * 1024)}MB"
    if size >= 1024:
        return f"{size // 1024}KB"
    return f"{size} bytes"


class ImageTooLargeError(ValidationError):
    def __init__(self, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(
            "coverUrl",
            f"The image is too large. Maximum {_format_size(limit)}.",
        )


class SessionClosedError(BiblioTechError):
    def __init__(self) -> None:
        super().__init__("You are not logged in.")
