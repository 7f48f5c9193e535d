"""Tests for retry.py — bounded attempts and linear backoff."""

import pytest

from errors import MalformedResponseError, ProviderError, ValidationError
from retry import backoff_delay, is_retryable, with_retry


class Flaky:
    """Callable failing ``failures`` times before returning ``value``."""

    def __init__(self, failures, value="ok", error=None):
        self.failures = failures
        self.value = value
        self.error = error or ProviderError(529, "overloaded", "anthropic")
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.failures is None or self.calls <= self.failures:
            raise self.error
        return self.value


class TestWithRetry:
    @pytest.mark.parametrize("k", [0, 1, 2])
    def test_succeeds_after_k_failures(self, k, sleeps):
        fn = Flaky(k)
        assert with_retry(fn, max_attempts=3, backoff_base=0.5, sleep=sleeps.append) == "ok"
        assert fn.calls == k + 1
        assert len(sleeps) == k

    def test_always_failing_raises_after_max_attempts(self, sleeps):
        fn = Flaky(None)
        with pytest.raises(ProviderError) as exc:
            with_retry(fn, max_attempts=4, backoff_base=1.0, sleep=sleeps.append)
        assert fn.calls == 4
        assert exc.value is fn.error

    def test_waits_are_linear_and_non_decreasing(self, sleeps):
        with pytest.raises(ProviderError):
            with_retry(Flaky(None), max_attempts=5, backoff_base=2.0, sleep=sleeps.append)
        assert sleeps == [2.0, 4.0, 6.0, 8.0]
        assert all(a <= b for a, b in zip(sleeps, sleeps[1:]))

    def test_generic_errors_are_retried(self, sleeps):
        fn = Flaky(2, error=RuntimeError("boom"))
        assert with_retry(fn, max_attempts=3, sleep=sleeps.append) == "ok"
        assert fn.calls == 3

    def test_malformed_response_is_retried(self, sleeps):
        fn = Flaky(1, error=MalformedResponseError("openai", "missing choices"))
        assert with_retry(fn, max_attempts=3, sleep=sleeps.append) == "ok"

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 422])
    def test_non_retryable_status_raises_immediately(self, status, sleeps):
        fn = Flaky(None, error=ProviderError(status, "bad", "openai"))
        with pytest.raises(ProviderError):
            with_retry(fn, max_attempts=3, sleep=sleeps.append)
        assert fn.calls == 1
        assert sleeps == []

    def test_network_failure_is_retried(self, sleeps):
        fn = Flaky(1, error=ProviderError(0, "connection refused", "openai"))
        assert with_retry(fn, max_attempts=2, sleep=sleeps.append) == "ok"

    def test_max_attempts_floor_is_one(self, sleeps):
        fn = Flaky(None)
        with pytest.raises(ProviderError):
            with_retry(fn, max_attempts=0, sleep=sleeps.append)
        assert fn.calls == 1


def test_backoff_delay():
    assert [backoff_delay(i, 1.5) for i in (1, 2, 3)] == [1.5, 3.0, 4.5]


def test_is_retryable():
    assert is_retryable(ProviderError(503, "", "x"))
    assert is_retryable(ProviderError(429, "", "x"))
    assert not is_retryable(ProviderError(401, "", "x"))
    assert not is_retryable(ValidationError("style"))
    assert is_retryable(ValueError("x"))
