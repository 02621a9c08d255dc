"""Tests for retry utilities."""

from unittest.mock import Mock

import pytest

from runstreak.sync.retry import RetryConfig, calculate_delay, retry_with_backoff


class TestCalculateDelay:
    """Tests for calculate_delay."""

    def test_exponential_growth_without_jitter(self):
        assert calculate_delay(0, base_delay=1.0, jitter=False) == 1.0
        assert calculate_delay(1, base_delay=1.0, jitter=False) == 2.0
        assert calculate_delay(2, base_delay=1.0, jitter=False) == 4.0

    def test_capped_at_max_delay(self):
        assert calculate_delay(10, base_delay=1.0, max_delay=30.0, jitter=False) == 30.0

    def test_jitter_stays_within_25_percent(self):
        for _ in range(50):
            delay = calculate_delay(2, base_delay=1.0, jitter=True)
            assert 3.0 <= delay <= 5.0


class TestRetryWithBackoff:
    """Tests for retry_with_backoff."""

    def setup_method(self):
        self.config = RetryConfig(max_retries=3, base_delay=1.0, jitter=False)
        self.sleep = Mock()

    def test_success_first_try(self):
        func = Mock(return_value="ok")

        assert retry_with_backoff(func, self.config, sleep=self.sleep) == "ok"
        assert func.call_count == 1
        self.sleep.assert_not_called()

    def test_retries_until_success(self):
        func = Mock(side_effect=[ValueError("a"), ValueError("b"), "ok"])

        assert retry_with_backoff(func, self.config, sleep=self.sleep) == "ok"
        assert func.call_count == 3
        assert [c.args[0] for c in self.sleep.call_args_list] == [1.0, 2.0]

    def test_exhaustion_reraises_last_error(self):
        errors = [ValueError(str(i)) for i in range(4)]
        func = Mock(side_effect=errors)

        with pytest.raises(ValueError) as exc_info:
            retry_with_backoff(func, self.config, sleep=self.sleep)

        assert exc_info.value is errors[-1]
        assert func.call_count == 4
        assert [c.args[0] for c in self.sleep.call_args_list] == [1.0, 2.0, 4.0]

    def test_zero_retries_makes_one_attempt(self):
        func = Mock(side_effect=ValueError("once"))

        with pytest.raises(ValueError):
            retry_with_backoff(func, RetryConfig(max_retries=0), sleep=self.sleep)

        assert func.call_count == 1
        self.sleep.assert_not_called()

    def test_classifier_rejects_error_immediately(self):
        func = Mock(side_effect=KeyError("fatal"))

        with pytest.raises(KeyError):
            retry_with_backoff(
                func,
                self.config,
                should_retry=lambda e: isinstance(e, ValueError),
                sleep=self.sleep,
            )

        assert func.call_count == 1
        self.sleep.assert_not_called()

    def test_on_retry_callback(self):
        func = Mock(side_effect=[ValueError("a"), "ok"])
        on_retry = Mock()

        retry_with_backoff(func, self.config, on_retry=on_retry, sleep=self.sleep)

        attempt, error, delay = on_retry.call_args.args
        assert attempt == 0
        assert str(error) == "a"
        assert delay == 1.0


class TestRetryConfig:
    """Tests for RetryConfig."""

    def test_max_attempts_counts_initial_attempt(self):
        assert RetryConfig().max_attempts == 4

    def test_delay_for_uses_policy(self):
        config = RetryConfig(base_delay=0.5, max_delay=3.0, jitter=False)
        assert [config.delay_for(n) for n in range(4)] == [0.5, 1.0, 2.0, 3.0]
