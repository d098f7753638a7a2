"""
Exception types raised by the console before anything reaches the remote API.

Network and HTTP failures are not wrapped: ``requests`` exceptions propagate
unchanged from the resource services to the view that triggered them.
"""


class GalleryAdminError(Exception):
    """Base class for console-side failures."""


class ValidationError(GalleryAdminError):
    """
    Payload failed validation.

    ``errors`` maps field names to a list of messages so views can render
    them next to the offending input.
    """

    def __init__(self, errors: dict[str, list[str]]):
        self.errors = errors
        summary = "; ".join(
            f"{field}: {', '.join(messages)}" for field, messages in errors.items()
        )
        super().__init__(summary or "Invalid input")


class AuthorizationError(GalleryAdminError):
    """A mutating call was attempted without admin capability."""

    def __init__(self, message: str = "Unauthorized: Admin access required"):
        super().__init__(message)


class AuthenticationError(GalleryAdminError):
    """No usable session exists (never signed in, signed out, or token expired)."""

    def __init__(self, message: str = "No current session"):
        super().__init__(message)
