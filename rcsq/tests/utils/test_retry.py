"""Tests for the retrying call wrapper."""

import pytest

from rcsq.exceptions import (
    MalformedResponseException,
    ProviderException,
    TransientServiceException,
    ValidationException,
)
from rcsq.utils.retry import RetryPolicy, call_with_retry, is_retryable, is_retryable_status


class FlakyCall:
    """Raises the queued errors in order, then returns ``value``."""

    def __init__(self, errors, value="ok"):
        self.errors = list(errors)
        self.value = value
        self.attempts = 0

    async def __call__(self):
        self.attempts += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.value


class TestRetryClassification:
    """Tests for deciding which failures are transient."""

    @pytest.mark.parametrize("status", [429, 500, 502, 503, 599])
    def test_retryable_statuses(self, status: int) -> None:
        assert is_retryable_status(status)

    @pytest.mark.parametrize("status", [None, 200, 400, 401, 404, 422, 600])
    def test_non_retryable_statuses(self, status) -> None:
        assert not is_retryable_status(status)

    def test_transient_exception_is_retryable(self) -> None:
        assert is_retryable(TransientServiceException("slow down", service="svc", status_code=429))

    def test_network_errors_are_retryable(self) -> None:
        assert is_retryable(ConnectionError("reset by peer"))
        assert is_retryable(TimeoutError("read timed out"))

    def test_application_errors_are_not_retryable(self) -> None:
        assert not is_retryable(ValidationException("empty buffer"))
        assert not is_retryable(MalformedResponseException("bad json", service="svc"))
        assert not is_retryable(ProviderException("bad request", service="svc", status_code=400))
        assert not is_retryable(ValueError("boom"))


class TestBackoff:
    """Tests for the exponential backoff schedule."""

    def test_delay_doubles_per_attempt(self) -> None:
        policy = RetryPolicy(initial_backoff=1.0, max_backoff=10.0, jitter=0.3)
        assert policy.compute_delay(0, rand=lambda: 0.0) == 1.0
        assert policy.compute_delay(1, rand=lambda: 0.0) == 2.0
        assert policy.compute_delay(2, rand=lambda: 0.0) == 4.0

    def test_delay_is_capped(self) -> None:
        policy = RetryPolicy(initial_backoff=1.0, max_backoff=10.0, jitter=0.3)
        assert policy.compute_delay(6, rand=lambda: 0.0) == 10.0

    def test_jitter_stays_below_thirty_percent(self) -> None:
        policy = RetryPolicy(initial_backoff=1.0, max_backoff=10.0, jitter=0.3)
        delay = policy.compute_delay(0, rand=lambda: 0.999)
        assert 1.0 <= delay < 1.3


class TestCallWithRetry:
    """Tests for call_with_retry attempt counting and error propagation."""

    @pytest.fixture
    def sleeps(self):
        return []

    @pytest.fixture
    def fake_sleep(self, sleeps):
        async def _sleep(delay: float) -> None:
            sleeps.append(delay)

        return _sleep

    async def test_rate_limited_twice_then_succeeds(self, fake_sleep, sleeps) -> None:
        call = FlakyCall([
            TransientServiceException("rate limited", status_code=429),
            TransientServiceException("rate limited", status_code=429),
        ])

        result = await call_with_retry(call, service="whisper-1", sleep=fake_sleep, rand=lambda: 0.0)

        assert result == "ok"
        assert call.attempts == 3
        assert sleeps == [1.0, 2.0]

    async def test_client_error_is_attempted_once(self, fake_sleep) -> None:
        call = FlakyCall([ProviderException("invalid request", status_code=400)] * 5)

        with pytest.raises(ProviderException) as exc_info:
            await call_with_retry(call, service="gpt-4.1-nano", sleep=fake_sleep)

        assert call.attempts == 1
        assert exc_info.value.service == "gpt-4.1-nano"
        assert exc_info.value.status_code == 400

    async def test_exhausted_retries_raise_last_error(self, fake_sleep, sleeps) -> None:
        errors = [TransientServiceException(f"server error {n}", status_code=503) for n in range(4)]
        call = FlakyCall(errors)

        with pytest.raises(TransientServiceException, match="server error 3"):
            await call_with_retry(call, service="voyage-3-large", sleep=fake_sleep)

        assert call.attempts == 4
        assert len(sleeps) == 3

    async def test_network_error_is_retried(self, fake_sleep) -> None:
        call = FlakyCall([ConnectionError("connection reset")])

        assert await call_with_retry(call, service="svc", sleep=fake_sleep) == "ok"
        assert call.attempts == 2

    async def test_malformed_response_is_not_retried(self, fake_sleep) -> None:
        call = FlakyCall([MalformedResponseException("not json", service="gpt-4.1-nano")])

        with pytest.raises(MalformedResponseException):
            await call_with_retry(call, service="gpt-4.1-nano", sleep=fake_sleep)

        assert call.attempts == 1

    async def test_unknown_error_is_wrapped_with_service(self, fake_sleep) -> None:
        call = FlakyCall([ValueError("unexpected payload")])

        with pytest.raises(ProviderException) as exc_info:
            await call_with_retry(call, service="gpt-5-mini", sleep=fake_sleep)

        assert exc_info.value.service == "gpt-5-mini"
        assert "unexpected payload" in exc_info.value.message
        assert isinstance(exc_info.value.__cause__, ValueError)
