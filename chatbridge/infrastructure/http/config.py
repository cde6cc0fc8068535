"""Configuration object for the backend API client."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict

from chatbridge.domain.models.api import DEFAULT_MIN_INTERVAL_MS, RetryPolicy


@dataclass(frozen=True)
class ClientConfig:
    base_url: str
    timeout_ms: int = 10000
    min_request_interval_ms: int = DEFAULT_MIN_INTERVAL_MS
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    user_agent: str = "chatbridge/1.0.0"
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0


__all__ = ["ClientConfig"]
