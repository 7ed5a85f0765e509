"""Tests for the retry decorator."""
from unittest.mock import patch

import pytest

from pipeseed.core.retry import retry


class Flaky:
    """Callable that fails a fixed number of times before succeeding."""

    def __init__(self, failures, exc=ConnectionError):
        self.failures = failures
        self.exc = exc
        self.calls = 0

    def fetch(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc("transient")
        return "ok"


class TestRetry:
    """Retry behaviour."""

    @patch('pipeseed.core.retry.time.sleep')
    def test_succeeds_after_retries(self, mock_sleep):
        flaky = Flaky(failures=2)
        wrapped = retry(max_attempts=3, delay=1.0, backoff=2.0)(flaky.fetch)

        assert wrapped() == "ok"
        assert flaky.calls == 3
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1.0, 2.0]

    @patch('pipeseed.core.retry.time.sleep')
    def test_gives_up_after_max_attempts(self, mock_sleep):
        flaky = Flaky(failures=5)
        wrapped = retry(max_attempts=3, delay=0.1)(flaky.fetch)

        with pytest.raises(ConnectionError):
            wrapped()
        assert flaky.calls == 3

    @patch('pipeseed.core.retry.time.sleep')
    def test_single_attempt_does_not_retry(self, mock_sleep):
        flaky = Flaky(failures=1)
        wrapped = retry(max_attempts=1)(flaky.fetch)

        with pytest.raises(ConnectionError):
            wrapped()
        assert flaky.calls == 1
        mock_sleep.assert_not_called()

    @patch('pipeseed.core.retry.time.sleep')
    def test_other_exceptions_propagate_immediately(self, mock_sleep):
        flaky = Flaky(failures=1, exc=KeyError)
        wrapped = retry(max_attempts=3, exceptions=(ConnectionError,))(flaky.fetch)

        with pytest.raises(KeyError):
            wrapped()
        assert flaky.calls == 1
