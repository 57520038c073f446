from dataclasses import dataclass
from typing import Optional

from unitrack.utils.errors import (
    AuthError,
    EmailNotVerifiedError,
    HttpError,
    NetworkError,
    UniTrackError,
    ValidationError,
)


@dataclass(frozen=True)
class UserMessage:
    """Short title plus optional detail shown to the user for a failure."""

    title: str
    detail: Optional[str] = None


def describe_error(exc: BaseException, fallback: str = "Request failed") -> UserMessage:
    """Map any exception raised by the client core to a user-facing message."""
    if isinstance(exc, ValidationError):
        return UserMessage("Invalid input", exc.message)
    if isinstance(exc, NetworkError):
        return UserMessage(
            "Connection problem",
            "Check your internet connection and try again.",
        )
    if isinstance(exc, EmailNotVerifiedError):
        return UserMessage(
            "Email not verified",
            "Enter the verification code sent to your email to continue.",
        )
    if isinstance(exc, AuthError):
        return UserMessage("Session expired", "Please sign in again.")
    if isinstance(exc, HttpError):
        return UserMessage(fallback, exc.server_message or None)
    if isinstance(exc, UniTrackError):
        return UserMessage(fallback, exc.message)
    return UserMessage(fallback, str(exc) or None)
