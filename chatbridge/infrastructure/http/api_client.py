"""Resilient JSON client for the backend API.

Every call goes through the same pipeline: throttle, resolve the bearer
token, compose headers, send with a per-attempt timeout, then either decode
the JSON body or classify the failure. Transient failures (connection errors
and 5xx responses) are retried with exponential backoff; quota, auth and
other HTTP errors fail immediately.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from chatbridge.domain.errors import ApiError, ErrorKind
from chatbridge.domain.events.api_events import (
    ApiCallDeferred,
    ApiCallFailed,
    ApiCallInitiated,
    ApiCallSucceeded,
    DomainEvent,
    RetryScheduled,
)
from chatbridge.domain.interfaces.cache import CacheService
from chatbridge.domain.interfaces.token_provider import TokenProvider
from chatbridge.domain.models.api import ApiRequest, ClientState, RetryPolicy
from chatbridge.domain.models.common import AuthToken, CacheKey, CachePrefix, Endpoint, JsonValue
from chatbridge.infrastructure.cache.caching_service import make_cache_key
from chatbridge.infrastructure.http.config import ClientConfig
from chatbridge.infrastructure.resilience.retry import classify_exception, classify_response, decode_body
from chatbridge.infrastructure.resilience.throttle import Throttle

logger = logging.getLogger(__name__)

HEALTH_ENDPOINT = Endpoint("/api/health")

EventListener = Callable[[DomainEvent], None]
Sleeper = Callable[[float], Awaitable[None]]


def log_event(event: DomainEvent) -> None:
    logger.debug(f"EVENT: {event}")


class ResilientApiClient:
    """Throttled, retrying JSON client bound to one backend origin.

    Construct one instance at application start and pass it to the services
    that need it.
    """

    DEFAULT_HEADERS: Dict[str, str] = {
        "Content-Type": "application/json",
        "Accept": "application/json",
        "Cache-Control": "no-cache",
    }

    def __init__(
        self,
        config: ClientConfig,
        token_provider: Optional[TokenProvider] = None,
        cache_service: Optional[CacheService] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        throttle: Optional[Throttle] = None,
        sleep: Sleeper = asyncio.sleep,
        event_listener: Optional[EventListener] = None,
    ) -> None:
        self._config = config
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout_seconds,
            transport=transport,
        )
        self.token_provider = token_provider
        self.cache_service = cache_service
        self.retry_policy: RetryPolicy = config.retry_policy
        self.throttle = throttle or Throttle(min_interval_ms=config.min_request_interval_ms, sleep=sleep)
        self.state = ClientState()
        self._sleep = sleep
        self._dispatch = event_listener or log_event
        logger.info(
            f"ResilientApiClient initialized: base_url={config.base_url}, "
            f"timeout={config.timeout_ms}ms, max_attempts={self.retry_policy.max_attempts}"
        )

    async def __aenter__(self) -> "ResilientApiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # --- Connection state ---

    @property
    def base_url(self) -> str:
        return self._config.base_url

    @property
    def is_connected(self) -> bool:
        return self.state.connection_verified

    @property
    def is_connection_tested(self) -> bool:
        return self.state.connection_tested

    @property
    def error_count(self) -> int:
        return self.state.error_count

    @property
    def last_error(self) -> Optional[ErrorKind]:
        return self.state.last_error

    # --- Request pipeline ---

    async def _get_auth_token(self) -> Optional[AuthToken]:
        if self.token_provider is None:
            return None
        try:
            return await self.token_provider.get_token()
        except Exception as e:
            # Token lookup failures downgrade the call to an anonymous one
            logger.warning(f"Error getting auth token: {e}")
            return None

    async def _compose_headers(self, overrides: Dict[str, str]) -> Dict[str, str]:
        headers = dict(self.DEFAULT_HEADERS)
        headers["User-Agent"] = self._config.user_agent
        headers.update(self._config.headers)
        headers.update(overrides)
        token = await self._get_auth_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _send(self, request: ApiRequest) -> Any:
        """Performs one attempt. Returns decoded JSON or raises ApiError."""
        headers = await self._compose_headers(request.headers)
        content = json.dumps(request.body, separators=(",", ":")) if request.body is not None else None

        self._dispatch(ApiCallInitiated(endpoint=request.endpoint, method=request.method, attempt=request.attempt))
        start_time = time.perf_counter()
        try:
            response = await self._client.request(
                request.method,
                request.endpoint,
                content=content,
                params=request.params,
                headers=headers,
            )
        except (httpx.HTTPError, OSError) as e:
            raise classify_exception(e, request.endpoint) from e
        latency_ms = (time.perf_counter() - start_time) * 1000

        error = classify_response(response, request.endpoint)
        if error is not None:
            raise error

        data = decode_body(response, request.endpoint)
        self._dispatch(ApiCallSucceeded(
            endpoint=request.endpoint,
            status_code=response.status_code,
            latency_ms=latency_ms,
            attempt=request.attempt,
        ))
        return data

    async def request(
        self,
        endpoint: str,
        body: JsonValue = None,
        headers: Optional[Dict[str, str]] = None,
        method: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Sends a JSON request with throttling and retries.

        Args:
            endpoint: Path relative to the backend origin.
            body: JSON-serialisable request body.
            headers: Caller overrides applied on top of the default headers.
            method: HTTP method; POST when a body is given, GET otherwise.
            params: Query string parameters.

        Returns:
            The decoded JSON body (None for an empty body).

        Raises:
            ApiError: The classified failure of the last attempt.
        """
        request = ApiRequest(
            endpoint=Endpoint(endpoint),
            method=(method or ("POST" if body is not None else "GET")).upper(),
            headers=dict(headers or {}),
            body=body,
            params={k: str(v) for k, v in params.items()} if params else None,
        )

        while True:
            wait_time = await self.throttle.acquire()
            if wait_time > 0:
                self._dispatch(ApiCallDeferred(endpoint=request.endpoint, wait_time_seconds=wait_time))

            try:
                data = await self._send(request)
            except ApiError as e:
                self.state.record_failure(e.kind)
                if e.transient and self.retry_policy.should_retry(request.attempt):
                    delay = self.retry_policy.delay_seconds(request.attempt)
                    logger.warning(
                        f"Request to {request.endpoint} failed on attempt "
                        f"{request.attempt}/{self.retry_policy.max_attempts}: {e}. "
                        f"Retrying in {delay:.2f}s..."
                    )
                    self._dispatch(RetryScheduled(
                        endpoint=request.endpoint,
                        attempt_number=request.attempt,
                        delay_seconds=delay,
                        error_kind=e.kind.value,
                    ))
                    await self._sleep(delay)
                    request = request.next_attempt()
                    continue

                logger.error(f"Request to {request.endpoint} failed after {request.attempt} attempt(s): {e}")
                self._dispatch(ApiCallFailed(
                    endpoint=request.endpoint,
                    error_kind=e.kind.value,
                    error_message=str(e),
                    attempts=request.attempt,
                ))
                raise

            self.state.record_success()
            return data

    async def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request(endpoint, method="GET", params=params)

    async def post(self, endpoint: str, body: JsonValue = None) -> Any:
        return await self.request(endpoint, body=body, method="POST")

    async def fetch_cached(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        ttl: Optional[int] = None,
        cache_key: Optional[CacheKey] = None,
    ) -> Any:
        """GETs an endpoint through the response cache."""
        if self.cache_service is None:
            return await self.get(endpoint, params=params)

        key = cache_key or make_cache_key(CachePrefix(endpoint), **(params or {}))
        cached = await self.cache_service.get(key)
        if cached is not None:
            logger.debug(f"Returning cached response for {endpoint}")
            return cached

        data = await self.get(endpoint, params=params)
        if data is not None:
            await self.cache_service.set(key, data, ttl=ttl)
        return data

    async def test_connection(self) -> bool:
        """Probes the health endpoint. The failure, if any, stays in `state`."""
        try:
            await self.get(HEALTH_ENDPOINT)
        except ApiError as e:
            logger.info(f"Connection test failed: {e}")
            self.state.connection_verified = False
            self.state.connection_tested = True
            return False
        return True

    async def clear_cache(self, level: str = 'all') -> None:
        """Clears cached responses and resets the connection state."""
        if self.cache_service is not None:
            await self.cache_service.clear(level)
        self.state.reset()


__all__ = ["ResilientApiClient", "HEALTH_ENDPOINT"]
