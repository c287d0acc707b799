"""Error taxonomy shared by services and view-models.

Services raise these; view-models catch them at their boundary and turn
them into a user-facing message. Nothing here is fatal.
"""

from __future__ import annotations


class CraglineError(Exception):
    """Base class for all errors raised by the client core."""

    default_message = "Something went wrong"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class ValidationError(CraglineError):
    """Input rejected locally before any I/O."""

    default_message = "Invalid input"


class NotFoundError(CraglineError):
    """A referenced document (conversation, user, item...) does not exist."""

    default_message = "Not found"


class StoreError(CraglineError):
    """A document-store read or write failed."""

    default_message = "The request could not be completed"


class NotAuthenticatedError(CraglineError):
    default_message = "You must be signed in to do that"


class PermissionDeniedError(CraglineError):
    default_message = "You do not have permission to do that"


def user_message(exc: BaseException) -> str:
    """Localized text for an error surfaced to the presentation layer."""
    if isinstance(exc, CraglineError):
        return exc.message
    return CraglineError.default_message
