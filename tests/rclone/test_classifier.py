"""Tests for the classifier module."""

import socket
import subprocess

import pytest

from rclone_mount_sync.rclone.classifier import (
    DEFAULT_PATTERNS,
    Disposition,
    classify,
    classify_exit_error,
    tag,
)
from rclone_mount_sync.rclone.exceptions import (
    CommandFailedError,
    CommandTimeoutError,
    DeadlineExceededError,
    OperationCancelledError,
    PermanentError,
    RcloneError,
    RetryableError,
    RetryExhaustedError,
)


def _exit_error(stderr: str, returncode: int = 1) -> CommandFailedError:
    return CommandFailedError(
        f"Failed to run rclone: {stderr}",
        command=["rclone", "listremotes"],
        returncode=returncode,
        stderr=stderr,
    )


class _TemporaryNetError(Exception):
    """Transport error exposing a temporary() capability."""

    def temporary(self) -> bool:
        return True


class TestClassify:
    """Test cases for the generic classifier rules."""

    def test_explicit_retryable_tag_wins(self) -> None:
        """Test that an explicit retryable tag is returned unchanged."""
        error = RetryableError(ValueError("config file not found"))
        assert classify(error).disposition is Disposition.RETRYABLE

    def test_explicit_permanent_tag_wins(self) -> None:
        """Test that an explicit permanent tag overrides retryable text."""
        error = PermanentError(ValueError("connection timeout"))
        assert classify(error).disposition is Disposition.PERMANENT

    def test_tag_found_in_cause_chain(self) -> None:
        """Test that a tag wrapped by another error is still honoured."""
        inner = PermanentError(ValueError("boom"))
        outer = RcloneError("listing failed", original_error=inner)
        assert classify(outer).disposition is Disposition.PERMANENT

    def test_cancellation_is_permanent(self) -> None:
        """Test that a deliberate cancellation is never retried."""
        error = OperationCancelledError("operation was cancelled")
        assert classify(error).disposition is Disposition.PERMANENT

    def test_deadline_is_retryable(self) -> None:
        """Test that deadline errors are retryable."""
        assert classify(DeadlineExceededError("late")).retryable
        assert classify(CommandTimeoutError("slow", ["rclone"], 1.0)).retryable
        assert classify(subprocess.TimeoutExpired("rclone", 5)).retryable

    def test_timeout_error_is_retryable(self) -> None:
        """Test that transport timeouts are retryable."""
        assert classify(TimeoutError("read")).retryable
        assert classify(socket.timeout("read")).retryable

    def test_temporary_capability_is_retryable(self) -> None:
        """Test that errors reporting temporariness are retryable."""
        assert classify(_TemporaryNetError("blip")).retryable

    @pytest.mark.parametrize(
        "error",
        [
            ConnectionRefusedError("refused"),
            ConnectionResetError("reset"),
            socket.gaierror("lookup"),
            OSError("dial tcp: connection refused"),
            OSError("lookup example.com: no such host"),
            OSError("temporary failure in name resolution"),
        ],
    )
    def test_connection_failures_are_retryable(self, error: BaseException) -> None:
        """Test that dial and connection failures are retryable."""
        assert classify(error).disposition is Disposition.RETRYABLE

    @pytest.mark.parametrize("pattern", DEFAULT_PATTERNS.retryable_message)
    def test_message_patterns_are_retryable(self, pattern: str) -> None:
        """Test every retryable message pattern, case-insensitively."""
        error = RuntimeError(f"upstream said: {pattern.upper()}")
        assert classify(error).retryable

    def test_unexpected_eof_is_retryable(self) -> None:
        """Test that EOFError counts as an unexpected EOF."""
        assert classify(EOFError()).retryable

    def test_unknown_error_is_unclassified(self) -> None:
        """Test that unmatched errors fail closed."""
        classification = classify(ValueError("something odd"))

        assert classification.disposition is Disposition.UNCLASSIFIED
        assert classification.retryable is False

    def test_cause_is_preserved(self) -> None:
        """Test that the classification carries the original error."""
        error = ValueError("something odd")
        assert classify(error).cause is error

    @pytest.mark.parametrize(
        "error",
        [
            ValueError("something odd"),
            TimeoutError("slow"),
            OperationCancelledError("stop"),
            _exit_error("config file not found"),
            _exit_error("connection refused"),
        ],
    )
    def test_classification_is_idempotent(self, error: BaseException) -> None:
        """Test that classifying a tagged error preserves the disposition."""
        once = classify(error).disposition
        assert classify(tag(error)).disposition is once
        assert classify(tag(tag(error))).disposition is once

    def test_exhausted_retry_keeps_last_cause_disposition(self) -> None:
        """Test that a RetryExhaustedError is classified through its cause."""
        last = RetryableError(ValueError("transient"))
        try:
            raise RetryExhaustedError(4, last) from last
        except RetryExhaustedError as e:
            assert classify(e).retryable


class TestClassifyExitError:
    """Test cases for stderr-based classification of process exits."""

    @pytest.mark.parametrize("pattern", DEFAULT_PATTERNS.permanent_stderr)
    def test_permanent_patterns(self, pattern: str) -> None:
        """Test every permanent stderr pattern."""
        error = _exit_error(f"ERROR : {pattern.upper()}")

        result = classify_exit_error(error)

        assert isinstance(result, PermanentError)
        assert result.original_error is error

    def test_permanent_regardless_of_exit_code(self) -> None:
        """Test that permanent patterns ignore the exit code."""
        result = classify_exit_error(_exit_error("access denied", returncode=7))
        assert isinstance(result, PermanentError)

    @pytest.mark.parametrize("pattern", DEFAULT_PATTERNS.retryable_stderr)
    def test_retryable_patterns(self, pattern: str) -> None:
        """Test every retryable stderr pattern."""
        result = classify_exit_error(_exit_error(f"failed: {pattern}"))
        assert isinstance(result, RetryableError)

    def test_permanent_checked_before_retryable(self) -> None:
        """Test that a permanent match wins over a retryable one."""
        result = classify_exit_error(_exit_error("network: remote not found"))
        assert isinstance(result, PermanentError)

    def test_unmatched_stderr_returns_error_unchanged(self) -> None:
        """Test that unmatched stderr leaves the error untagged."""
        error = _exit_error("something odd happened")
        assert classify_exit_error(error) is error

    def test_called_process_error_supported(self) -> None:
        """Test that CalledProcessError stderr is inspected, bytes included."""
        error = subprocess.CalledProcessError(
            1,
            ["rclone"],
            stderr=b"Failed to create file system: unknown remote",
        )
        assert isinstance(classify_exit_error(error), PermanentError)

    def test_non_exit_errors_pass_through(self) -> None:
        """Test that errors without stderr are returned unchanged."""
        error = ValueError("config file not found")
        assert classify_exit_error(error) is error

    def test_tagged_error_passes_through(self) -> None:
        """Test that already-tagged errors are not re-tagged."""
        error = RetryableError(_exit_error("config file not found"))
        assert classify_exit_error(error) is error

    def test_generic_rules_apply_after_unmatched_exit(self) -> None:
        """Test that untagged exits still go through the message patterns."""
        error = _exit_error("read: unexpected EOF", returncode=3)

        untagged = classify_exit_error(error)

        assert untagged is error
        assert classify(untagged).retryable

    def test_exit_message_arguments_ignored(self) -> None:
        """Test that heuristics read stderr, not the message with its arguments."""
        error = CommandFailedError(
            'Failed to access remote path "gdrive:dns-timeout": directory is empty',
            command=["rclone", "lsf", "gdrive:dns-timeout"],
            returncode=1,
            stderr="Failed to lsf: directory is empty",
        )

        assert classify_exit_error(error) is error
        assert classify(error).disposition is Disposition.UNCLASSIFIED


class TestTag:
    """Test cases for tag()."""

    def test_tag_wraps_retryable(self) -> None:
        """Test that retryable errors get a RetryableError wrapper."""
        error = TimeoutError("slow")
        tagged = tag(error)

        assert isinstance(tagged, RetryableError)
        assert str(tagged) == "slow"

    def test_tag_leaves_unclassified_alone(self) -> None:
        """Test that unclassified errors are returned unchanged."""
        error = ValueError("odd")
        assert tag(error) is error

    def test_tag_leaves_cancellation_alone(self) -> None:
        """Test that cancellations keep their type."""
        error = OperationCancelledError("stop")
        assert tag(error) is error
