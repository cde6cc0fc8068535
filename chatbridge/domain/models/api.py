"""Domain models related to backend API calls.

Includes the request description, the retry policy, the throttle state and
the client's connection state.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional

from chatbridge.domain.errors import ErrorKind
from chatbridge.domain.models.common import Endpoint, JsonValue

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY_MS = 1000
DEFAULT_BACKOFF_EXPONENT = 2
DEFAULT_MIN_INTERVAL_MS = 1000


@dataclass
class ApiRequest:
    """A single attempt at calling a backend endpoint."""
    endpoint: Endpoint
    method: str = "GET"
    headers: Dict[str, str] = field(default_factory=dict)
    body: JsonValue = None
    params: Optional[Dict[str, str]] = None
    attempt: int = 1

    def next_attempt(self) -> "ApiRequest":
        return ApiRequest(
            endpoint=self.endpoint,
            method=self.method,
            headers=dict(self.headers),
            body=self.body,
            params=self.params,
            attempt=self.attempt + 1,
        )


@dataclass(frozen=True)
class RetryPolicy:
    """Value Object representing retry backoff configuration.

    The wait before retrying after attempt ``n`` is
    ``base_delay_ms * n ** backoff_exponent`` milliseconds.
    """
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay_ms: int = DEFAULT_BASE_DELAY_MS
    backoff_exponent: int = DEFAULT_BACKOFF_EXPONENT

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1.")
        if self.base_delay_ms < 0 or self.backoff_exponent < 0:
            raise ValueError("base_delay_ms and backoff_exponent must not be negative.")

    def delay_ms(self, attempt: int) -> int:
        return self.base_delay_ms * attempt ** self.backoff_exponent

    def delay_seconds(self, attempt: int) -> float:
        return self.delay_ms(attempt) / 1000.0

    def should_retry(self, attempt: int) -> bool:
        return attempt < self.max_attempts


@dataclass
class ThrottleState:
    """Start time of the most recent request and the enforced spacing."""
    min_interval_ms: int = DEFAULT_MIN_INTERVAL_MS
    last_request_timestamp: Optional[float] = None  # monotonic seconds


@dataclass
class ClientState:
    """Connection bookkeeping for one client instance. Never persisted."""
    connection_verified: bool = False
    connection_tested: bool = False
    last_error: Optional[ErrorKind] = None
    error_count: int = 0

    def record_success(self) -> None:
        self.connection_verified = True
        self.connection_tested = True

    def record_failure(self, kind: ErrorKind) -> None:
        self.last_error = kind
        self.error_count += 1

    def reset(self) -> None:
        self.connection_verified = False
        self.connection_tested = False
        self.last_error = None
        self.error_count = 0
