import json
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest
from typer.testing import CliRunner

from chatbridge.domain.models.api import RetryPolicy
from chatbridge.infrastructure.config.settings import clear_test_config, set_config_for_testing
from chatbridge.infrastructure.http.api_client import ResilientApiClient
from chatbridge.infrastructure.http.config import ClientConfig

TEST_BASE_URL = "https://backend.test"


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture(autouse=True)
def isolated_config():
    """Pins settings that would otherwise leak in from the developer's machine."""
    set_config_for_testing({
        'backend.api_url': TEST_BASE_URL,
        'auth.token': None,
        'auth.token_file': None,
        'cache.dir': 'none',
        'api.min_request_interval': 0,
        'logging.file': None,
    })
    yield
    clear_test_config()


class FakeSleep:
    """Records requested sleeps instead of waiting."""

    def __init__(self, clock: Optional[List[float]] = None):
        self.delays: List[float] = []
        self._clock = clock

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        if self._clock is not None:
            self._clock[0] += seconds

    @property
    def total(self) -> float:
        return sum(self.delays)


class RecordingBackend:
    """httpx.MockTransport handler that replays scripted responses in order.

    Each scripted item is either an httpx.Response, an exception instance to
    raise, or a callable taking the request.
    """

    def __init__(self, *responses: Any):
        self.responses = list(responses)
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            raise AssertionError(f"Unexpected request: {request.method} {request.url}")
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item(request)
        return item

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def json_body(self, index: int = -1) -> Any:
        return json.loads(self.requests[index].content)


def json_response(status: int, payload: Any = None) -> httpx.Response:
    if payload is None:
        return httpx.Response(status)
    return httpx.Response(status, json=payload)


@pytest.fixture
def fake_sleep():
    return FakeSleep()


@pytest.fixture
def make_client(fake_sleep) -> Callable[..., ResilientApiClient]:
    """Factory for a ResilientApiClient wired to a RecordingBackend."""

    def _make(backend: RecordingBackend, **kwargs: Any) -> ResilientApiClient:
        config_kwargs: Dict[str, Any] = {
            'base_url': TEST_BASE_URL,
            'min_request_interval_ms': 0,
            'retry_policy': kwargs.pop('retry_policy', RetryPolicy()),
        }
        config = ClientConfig(**config_kwargs)
        kwargs.setdefault('sleep', fake_sleep)
        return ResilientApiClient(config, transport=httpx.MockTransport(backend), **kwargs)

    return _make
