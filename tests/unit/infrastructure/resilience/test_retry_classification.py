import httpx
import pytest

from chatbridge.domain.errors import (
    AuthRequired,
    ErrorKind,
    HttpError,
    NetworkError,
    QuotaExceeded,
    RequestTimeout,
    UnknownApiError,
)
from chatbridge.domain.models.api import RetryPolicy
from chatbridge.infrastructure.resilience.retry import (
    classify_exception,
    classify_response,
    decode_body,
    is_transient_exception,
)

REQUEST = httpx.Request("GET", "https://backend.test/api/health")


@pytest.mark.parametrize("exc", [
    httpx.ConnectError("Connection refused", request=REQUEST),
    httpx.RemoteProtocolError("Server disconnected without sending a response.", request=REQUEST),
    ConnectionResetError("Connection reset by peer"),
    RuntimeError("Network is unreachable"),
])
def test_transient_exceptions(exc):
    assert is_transient_exception(exc) is True
    assert isinstance(classify_exception(exc, "/api/health"), NetworkError)


@pytest.mark.parametrize("exc", [
    httpx.ReadTimeout("timed out", request=REQUEST),
    TimeoutError("timed out"),
])
def test_timeouts_are_not_transient(exc):
    assert is_transient_exception(exc) is False
    error = classify_exception(exc)
    assert isinstance(error, RequestTimeout)
    assert error.transient is False


def test_unrecognized_exception_is_unknown():
    error = classify_exception(ValueError("bad state"), "/api/files")
    assert isinstance(error, UnknownApiError)
    assert error.kind == ErrorKind.UNKNOWN
    assert error.endpoint == "/api/files"


def test_success_response_is_not_an_error():
    assert classify_response(httpx.Response(200, json={})) is None
    assert classify_response(httpx.Response(204)) is None


def test_quota_response_parses_body():
    error = classify_response(httpx.Response(429, json={"error": "Slow down", "retryAfter": "15"}))
    assert isinstance(error, QuotaExceeded)
    assert error.retry_after == 15
    assert error.args[0] == "Slow down"
    assert error.user_message == "API quota exceeded. Please try again in 15 seconds."


@pytest.mark.parametrize("raw,expected", [(2.5, 2.5), ("0.75", 0.75), (20, 20), (20.0, 20)])
def test_quota_response_keeps_exact_retry_after(raw, expected):
    error = classify_response(httpx.Response(429, json={"error": "q", "retryAfter": raw}))
    assert error.retry_after == expected
    assert type(error.retry_after) is type(expected)


@pytest.mark.parametrize("raw", ["soon", True, -1])
def test_quota_response_ignores_malformed_retry_after(raw):
    error = classify_response(httpx.Response(429, json={"error": "q", "retryAfter": raw}))
    assert error.retry_after == 8


def test_quota_response_with_unparsable_body_uses_defaults():
    error = classify_response(httpx.Response(429, text="rate limited"))
    assert isinstance(error, QuotaExceeded)
    assert error.retry_after == 8
    assert error.args[0] == "API quota exceeded"


def test_auth_responses():
    unauthorized = classify_response(httpx.Response(401, text="no token"))
    forbidden = classify_response(httpx.Response(403, text="nope"))
    assert isinstance(unauthorized, AuthRequired)
    assert unauthorized.user_message.startswith("Authentication required")
    assert isinstance(forbidden, AuthRequired)
    assert forbidden.user_message.startswith("Access denied")


@pytest.mark.parametrize("status,transient", [(400, False), (404, False), (500, True), (502, True), (503, True)])
def test_http_errors(status, transient):
    error = classify_response(httpx.Response(status, text="body"))
    assert isinstance(error, HttpError)
    assert error.status == status
    assert error.transient is transient
    assert str(error) == f"HTTP {status}: body"


def test_decode_body():
    assert decode_body(httpx.Response(200, json={"a": 1})) == {"a": 1}
    assert decode_body(httpx.Response(200)) is None
    with pytest.raises(UnknownApiError):
        decode_body(httpx.Response(200, text="not json"), "/api/health")


def test_retry_policy_delays():
    policy = RetryPolicy()
    assert [policy.delay_ms(n) for n in (1, 2, 3)] == [1000, 4000, 9000]
    assert policy.should_retry(1) and policy.should_retry(2)
    assert not policy.should_retry(3)


def test_retry_policy_validation():
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)
    with pytest.raises(ValueError):
        RetryPolicy(base_delay_ms=-1)
