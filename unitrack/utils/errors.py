from typing import Any, Dict, Iterable, Optional


class UniTrackError(Exception):
    """Base exception for every error raised by the client core."""

    def __init__(self, message: str, error_code: str = "UNITRACK_ERROR"):
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class ValidationError(UniTrackError):
    """Caller-supplied data rejected locally, before any network call."""

    def __init__(self, message: str, error_code: str = "VALIDATION_ERROR"):
        super().__init__(message, error_code)


class MissingColumnsError(ValidationError):
    """The CSV header lacks one or more required columns."""

    def __init__(self, missing_columns: Iterable[str], expected: Iterable[str]):
        self.missing_columns = list(missing_columns)
        super().__init__(
            f"Missing required columns: {', '.join(self.missing_columns)}. "
            f"Expected format: {','.join(expected)}",
            error_code="CSV_MISSING_COLUMNS",
        )


class NetworkError(UniTrackError):
    """Transport or connectivity failure. Always safe to retry."""

    retryable = True

    def __init__(
        self, message: str = "Network request failed", error_code: str = "NETWORK_ERROR"
    ):
        super().__init__(message, error_code)


class HttpError(UniTrackError):
    """The backend answered with a non-2xx status or an unusable body."""

    def __init__(
        self,
        status: int,
        server_message: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
        error_code: str = "HTTP_ERROR",
    ):
        self.status = status
        self.server_message = server_message
        self.payload = payload or {}
        super().__init__(
            server_message or f"HTTP error! status: {status}", error_code
        )


class AuthError(HttpError):
    """401 responses. Callers should send the user back to sign-in."""

    def __init__(
        self,
        status: int = 401,
        server_message: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(status, server_message, payload, error_code="AUTH_ERROR")


class EmailNotVerifiedError(HttpError):
    """Login refused because the account email has not been verified yet."""

    def __init__(
        self,
        verification_token: str,
        status: int = 403,
        server_message: str = "Email not verified",
        payload: Optional[Dict[str, Any]] = None,
    ):
        self.verification_token = verification_token
        super().__init__(
            status, server_message, payload, error_code="EMAIL_NOT_VERIFIED"
        )


class UnsuccessfulResponseError(HttpError):
    """A 2xx response whose body does not look like a success."""

    def __init__(
        self,
        status: int,
        server_message: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            status, server_message, payload, error_code="UNSUCCESSFUL_RESPONSE"
        )


class ActionInProgressError(UniTrackError):
    """A guarded action was triggered again while still in flight."""

    def __init__(self, action: str):
        self.action = action
        super().__init__(
            f"Action already in progress: {action}", error_code="ACTION_IN_PROGRESS"
        )
