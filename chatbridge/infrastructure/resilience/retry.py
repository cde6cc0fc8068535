"""Failure classification for the API client's retry loop.

Maps transport exceptions and HTTP responses onto the `ApiError` taxonomy.
Transient failures (connection-level errors and 5xx responses) are retried
with exponential backoff by the client; everything else fails fast.
"""

import json
import logging
import math
from typing import Any, Optional, Tuple, Type, Union

import httpx

from chatbridge.domain.errors import (
    DEFAULT_RETRY_AFTER_SECONDS,
    ApiError,
    AuthRequired,
    HttpError,
    NetworkError,
    QuotaExceeded,
    RequestTimeout,
    UnknownApiError,
)

logger = logging.getLogger(__name__)

# Exception types that always mean the connection itself failed
RETRYABLE_EXCEPTIONS: Tuple[Type[BaseException], ...] = (
    httpx.NetworkError,
    OSError,
)

TIMEOUT_EXCEPTIONS: Tuple[Type[BaseException], ...] = (
    httpx.TimeoutException,
    TimeoutError,
)

# Message fragments that identify a transient failure regardless of type
TRANSIENT_ERROR_SIGNATURES = (
    "Connection refused",
    "Network is unreachable",
    "Connection reset",
    "Server disconnected",
    "NetworkError",
    "Failed to fetch",
)


def is_transient_exception(exc: BaseException) -> bool:
    """Checks whether a transport exception should trigger a retry."""
    if isinstance(exc, TIMEOUT_EXCEPTIONS):
        return False
    if isinstance(exc, RETRYABLE_EXCEPTIONS):
        return True
    message = str(exc)
    return any(signature in message for signature in TRANSIENT_ERROR_SIGNATURES)


def classify_exception(exc: BaseException, endpoint: Optional[str] = None) -> ApiError:
    """Converts a transport-level exception into an ApiError."""
    if isinstance(exc, ApiError):
        return exc
    if isinstance(exc, TIMEOUT_EXCEPTIONS):
        return RequestTimeout(f"Request timed out: {exc}", endpoint=endpoint)
    if is_transient_exception(exc):
        return NetworkError(f"{type(exc).__name__}: {exc}", endpoint=endpoint)
    return UnknownApiError(f"{type(exc).__name__}: {exc}", endpoint=endpoint)


def _decode_json(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        return None


def _parse_retry_after(value: Any) -> Union[int, float]:
    """Keeps the server value, collapsing integral numbers to int."""
    if isinstance(value, bool):
        raise TypeError("retryAfter must be a number")
    number = value if isinstance(value, (int, float)) else float(value)
    if not math.isfinite(number) or number < 0:
        raise ValueError(f"retryAfter out of range: {value!r}")
    if isinstance(number, float) and number.is_integer():
        return int(number)
    return number


def parse_quota_error(response: httpx.Response, endpoint: Optional[str] = None) -> QuotaExceeded:
    """Builds QuotaExceeded from a 429 body of the form {error, retryAfter}."""
    data = _decode_json(response.text)
    message = "API quota exceeded"
    retry_after = DEFAULT_RETRY_AFTER_SECONDS
    if isinstance(data, dict):
        message = data.get("error") or message
        raw_retry_after = data.get("retryAfter")
        if raw_retry_after is not None:
            try:
                retry_after = _parse_retry_after(raw_retry_after)
            except (TypeError, ValueError):
                logger.warning(f"Ignoring malformed retryAfter value: {raw_retry_after!r}")
    return QuotaExceeded(message, retry_after=retry_after, endpoint=endpoint)


def classify_response(response: httpx.Response, endpoint: Optional[str] = None) -> Optional[ApiError]:
    """Returns the ApiError for a non-2xx response, or None on success."""
    status = response.status_code
    if 200 <= status < 300:
        return None
    if status == 429:
        return parse_quota_error(response, endpoint)
    if status in (401, 403):
        return AuthRequired(status, response.text, endpoint=endpoint)
    return HttpError(status, response.text, endpoint=endpoint)


def decode_body(response: httpx.Response, endpoint: Optional[str] = None) -> Any:
    """Decodes a successful response body. An empty body decodes to None."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError as e:
        raise UnknownApiError(f"Invalid JSON in response from {endpoint}: {e}", endpoint=endpoint) from e
