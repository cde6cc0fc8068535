"""Domain Events related to API calls and resilience.

Examples include events for when calls are deferred by the throttle,
retried, fail, or succeed.
"""

from dataclasses import dataclass, field
import time
from typing import Optional


@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass


@dataclass
class ApiCallInitiated(DomainEvent):
    """Event triggered when an API call attempt is about to be made."""
    endpoint: str
    method: str
    attempt: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class ApiCallSucceeded(DomainEvent):
    """Event triggered when an API call succeeds."""
    endpoint: str
    status_code: int
    latency_ms: float
    attempt: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class ApiCallFailed(DomainEvent):
    """Event triggered when an API call fails definitively (after retries)."""
    endpoint: str
    error_kind: str
    error_message: str
    attempts: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class ApiCallDeferred(DomainEvent):
    """Event triggered when an API call is delayed by the request throttle."""
    endpoint: str
    wait_time_seconds: float
    timestamp: float = field(default_factory=time.time)


@dataclass
class RetryScheduled(DomainEvent):
    """Event triggered when a retry is scheduled for a failed API call."""
    endpoint: str
    attempt_number: int
    delay_seconds: float
    error_kind: Optional[str] = None
    timestamp: float = field(default_factory=time.time)
