"""Tests for the bounded retry policy."""

from dataclasses import dataclass

import pytest

from processor.retry import RetryPolicy


@dataclass
class FakeResult:
    success: bool
    is_timeout: bool = False


class TestRetryPolicy:
    """Test cases for RetryPolicy."""

    def test_success_first_try_does_not_sleep(
        self, no_wait_policy: RetryPolicy, sleeps: list[float]
    ) -> None:
        attempts = []

        result = no_wait_policy.execute(lambda n: attempts.append(n) or FakeResult(True))

        assert result.success
        assert attempts == [1]
        assert sleeps == []

    def test_generic_failures_use_linear_backoff(
        self, no_wait_policy: RetryPolicy, sleeps: list[float]
    ) -> None:
        attempts = []

        result = no_wait_policy.execute(lambda n: attempts.append(n) or FakeResult(False))

        assert not result.success
        assert attempts == [1, 2, 3]
        assert sleeps == [1.0, 2.0]

    def test_timeouts_use_longer_backoff(
        self, no_wait_policy: RetryPolicy, sleeps: list[float]
    ) -> None:
        result = no_wait_policy.execute(lambda n: FakeResult(False, is_timeout=True))

        assert not result.success
        assert sleeps == [2.0, 4.0]

    def test_stops_after_first_success(
        self, no_wait_policy: RetryPolicy, sleeps: list[float]
    ) -> None:
        outcomes = iter([FakeResult(False), FakeResult(True), FakeResult(False)])

        result = no_wait_policy.execute(lambda n: next(outcomes))

        assert result.success
        assert sleeps == [1.0]

    def test_zero_retries_means_one_attempt(self) -> None:
        sleeps: list[float] = []
        policy = RetryPolicy(max_retries=0, sleep=sleeps.append)
        attempts = []

        policy.execute(lambda n: attempts.append(n) or FakeResult(False))

        assert attempts == [1]
        assert sleeps == []
        assert policy.max_attempts == 1

    def test_delay_for(self) -> None:
        policy = RetryPolicy(base_delay=1.5, timeout_base_delay=3.0)
        assert policy.delay_for(1) == 1.5
        assert policy.delay_for(2) == 3.0
        assert policy.delay_for(2, timed_out=True) == 6.0

    def test_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CRAWLER_RETRY_TIMES", "4")
        monkeypatch.setenv("CRAWLER_RETRY_BASE_DELAY", "0.5")
        monkeypatch.setenv("CRAWLER_TIMEOUT_RETRY_BASE_DELAY", "1.25")

        policy = RetryPolicy.from_env()

        assert policy.max_retries == 4
        assert policy.max_attempts == 5
        assert policy.base_delay == 0.5
        assert policy.timeout_base_delay == 1.25

    def test_from_env_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for name in (
            "CRAWLER_RETRY_TIMES",
            "CRAWLER_RETRY_BASE_DELAY",
            "CRAWLER_TIMEOUT_RETRY_BASE_DELAY",
        ):
            monkeypatch.delenv(name, raising=False)

        policy = RetryPolicy.from_env()

        assert (policy.max_retries, policy.base_delay, policy.timeout_base_delay) == (2, 1.0, 2.0)
