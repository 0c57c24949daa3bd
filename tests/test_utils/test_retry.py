"""Tests for the retry helper."""

import threading
from unittest.mock import MagicMock, patch

import pytest

from lxcompose.errors import (
    NetworkError,
    OperationCancelledError,
    RetryExhaustedError,
    SpecValidationError,
    StorageError,
)
from lxcompose.models.config import RetryConfig
from lxcompose.utils.retry import retry_with_backoff


FAST = RetryConfig(initial_interval=0, max_interval=0)


def test_success_first_try():
    """Test a successful operation runs once."""
    operation = MagicMock(return_value="ok")

    assert retry_with_backoff(operation, FAST) == "ok"
    operation.assert_called_once()


def test_retries_transient_errors():
    """Test transient errors are retried until success."""
    operation = MagicMock(side_effect=[StorageError("disk busy"), NetworkError("reset"), "ok"])

    assert retry_with_backoff(operation, FAST) == "ok"
    assert operation.call_count == 3


def test_exhaustion_chains_last_error():
    """Test giving up after max attempts."""
    last = StorageError("still broken")
    operation = MagicMock(side_effect=[StorageError("broken"), StorageError("broken"), last])

    with pytest.raises(RetryExhaustedError) as exc_info:
        retry_with_backoff(operation, FAST, description="save")

    assert exc_info.value.attempts == 3
    assert exc_info.value.last_error is last
    assert exc_info.value.__cause__ is last
    assert "still broken" in str(exc_info.value)


def test_permanent_error_not_retried():
    """Test non-transient errors propagate immediately."""
    operation = MagicMock(side_effect=SpecValidationError("bad spec"))

    with pytest.raises(SpecValidationError):
        retry_with_backoff(operation, FAST)
    operation.assert_called_once()


def test_backoff_schedule():
    """Test delays grow by the multiplier and are capped."""
    config = RetryConfig(max_attempts=5, initial_interval=1.0, multiplier=2.0, max_interval=3.0)
    operation = MagicMock(side_effect=[NetworkError("x")] * 4 + ["ok"])

    with patch("lxcompose.utils.retry.time.sleep") as mock_sleep:
        assert retry_with_backoff(operation, config) == "ok"

    assert [c.args[0] for c in mock_sleep.call_args_list] == [1.0, 2.0, 3.0, 3.0]


def test_max_elapsed_time():
    """Test the elapsed-time budget stops retries."""
    config = RetryConfig(max_attempts=10, initial_interval=10.0, max_elapsed_time=5.0)
    operation = MagicMock(side_effect=NetworkError("x"))

    with pytest.raises(RetryExhaustedError) as exc_info:
        retry_with_backoff(operation, config)

    assert exc_info.value.attempts == 1


def test_cancelled_before_start():
    """Test a set cancel event prevents any attempt."""
    cancel = threading.Event()
    cancel.set()
    operation = MagicMock()

    with pytest.raises(OperationCancelledError):
        retry_with_backoff(operation, FAST, cancel)
    operation.assert_not_called()


def test_cancel_interrupts_backoff():
    """Test cancellation during the backoff wait."""
    cancel = threading.Event()
    config = RetryConfig(initial_interval=60.0, max_interval=60.0)

    def operation():
        cancel.set()
        raise StorageError("busy")

    with pytest.raises(OperationCancelledError):
        retry_with_backoff(operation, config, cancel)
