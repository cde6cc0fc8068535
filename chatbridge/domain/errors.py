"""Error taxonomy for backend API calls.

Every failure surfaced by the API client is an `ApiError` subclass carrying
an `ErrorKind`, a `transient` flag that drives the retry loop, and a
user-facing message suitable for display.
"""

from enum import Enum
from typing import Any, Optional, Union

DEFAULT_RETRY_AFTER_SECONDS = 8


class ErrorKind(str, Enum):
    """Categories of API failures."""

    NETWORK = "network_error"
    TIMEOUT = "timeout"
    QUOTA_EXCEEDED = "quota_exceeded"
    HTTP = "http_error"
    AUTH_REQUIRED = "auth_required"
    UNKNOWN = "unknown"


class ApiError(Exception):
    """Base class for all classified API failures."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, message: str, *, endpoint: Optional[str] = None):
        self.endpoint = endpoint
        super().__init__(message)

    @property
    def transient(self) -> bool:
        """Whether a retry has a reasonable chance of succeeding."""
        return False

    @property
    def user_message(self) -> str:
        return "An unexpected error occurred. Please try again."


class NetworkError(ApiError):
    """No connectivity: refused, unreachable or reset connections."""

    kind = ErrorKind.NETWORK

    @property
    def transient(self) -> bool:
        return True

    @property
    def user_message(self) -> str:
        return "Network error. Please check your internet connection."


class RequestTimeout(ApiError):
    """The per-attempt HTTP timeout elapsed."""

    kind = ErrorKind.TIMEOUT

    @property
    def user_message(self) -> str:
        return "Request timed out. Please try again."


class QuotaExceeded(ApiError):
    """HTTP 429 from the backend; never retried automatically."""

    kind = ErrorKind.QUOTA_EXCEEDED

    def __init__(self, message: str, retry_after: Union[int, float] = DEFAULT_RETRY_AFTER_SECONDS, **kwargs: Any):
        self.retry_after = retry_after
        super().__init__(message, **kwargs)

    def __str__(self) -> str:
        return f"{self.args[0]} (retry after {self.retry_after}s)"

    @property
    def user_message(self) -> str:
        return f"API quota exceeded. Please try again in {self.retry_after} seconds."


class HttpError(ApiError):
    """Non-2xx response that is not a quota or auth failure."""

    kind = ErrorKind.HTTP

    def __init__(self, status: int, body: str = "", **kwargs: Any):
        self.status = status
        self.body = body
        super().__init__(f"HTTP {status}: {body}", **kwargs)

    @property
    def transient(self) -> bool:
        return self.status >= 500

    @property
    def user_message(self) -> str:
        if self.status == 404:
            return "Service not found. Please try again later."
        if self.status >= 500:
            return "Server error. Please try again later."
        return f"Request failed with status {self.status}."


class AuthRequired(ApiError):
    """HTTP 401 or 403."""

    kind = ErrorKind.AUTH_REQUIRED

    def __init__(self, status: int, body: str = "", **kwargs: Any):
        self.status = status
        self.body = body
        super().__init__(f"HTTP {status}: {body}", **kwargs)

    @property
    def user_message(self) -> str:
        if self.status == 403:
            return "Access denied. Please check your permissions."
        return "Authentication required. Please log in again."


class UnknownApiError(ApiError):
    """Anything that does not match a known failure signature."""

    kind = ErrorKind.UNKNOWN
