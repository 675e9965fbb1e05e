"""Classification of rclone failures into retryable and permanent errors.

Structured checks on the exception type run first; free-text pattern
matching against rclone's diagnostics runs last. The pattern lists live in a
versioned data table so new patterns can be added without touching the rules.
"""

import socket
import subprocess
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum

from rclone_mount_sync.rclone.exceptions import (
    CommandFailedError,
    DeadlineExceededError,
    OperationCancelledError,
    PermanentError,
    RetryableError,
)


class Disposition(Enum):
    """Retry disposition of a failure."""

    RETRYABLE = "retryable"
    PERMANENT = "permanent"
    UNCLASSIFIED = "unclassified"


@dataclass(frozen=True)
class ErrorPatterns:
    """Lower-case substrings used by the text heuristics."""

    version: str
    permanent_stderr: tuple[str, ...]
    retryable_stderr: tuple[str, ...]
    retryable_message: tuple[str, ...]
    network_message: tuple[str, ...]


DEFAULT_PATTERNS = ErrorPatterns(
    version="1",
    permanent_stderr=(
        "config file not found",
        "configuration not found",
        "no config",
        "authentication failed",
        "access denied",
        "permission denied",
        "invalid config",
        "unknown remote",
        "remote not found",
        "invalid credentials",
        "unauthorized",
        "forbidden",
        "not found",
    ),
    retryable_stderr=(
        "timeout",
        "connection refused",
        "network",
        "dns",
        "temporary",
    ),
    retryable_message=(
        "timeout",
        "timed out",
        "connection refused",
        "connection reset",
        "connection closed",
        "no such host",
        "dns",
        "temporary failure",
        "network is unreachable",
        "host is unreachable",
        "i/o timeout",
        "deadline exceeded",
        "unexpected eof",
    ),
    network_message=(
        "connection refused",
        "no such host",
        "temporary failure",
    ),
)


@dataclass(frozen=True)
class Classification:
    """A failure together with its retry disposition."""

    disposition: Disposition
    cause: BaseException

    @property
    def retryable(self) -> bool:
        return self.disposition is Disposition.RETRYABLE


def _error_chain(error: BaseException) -> Iterator[BaseException]:
    """Yield the error followed by the errors it wraps."""
    seen: set[int] = set()
    current: BaseException | None = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = getattr(current, "original_error", None) or current.__cause__


def _has_transient_capability(error: BaseException) -> bool:
    if isinstance(error, TimeoutError):
        return True
    for attribute in ("timeout", "temporary"):
        value = getattr(error, attribute, None)
        if callable(value):
            value = value()
        if value is True:
            return True
    return False


def _stderr_text(error: CommandFailedError | subprocess.CalledProcessError) -> str:
    stderr = error.stderr or ""
    if isinstance(stderr, bytes):
        stderr = stderr.decode(errors="replace")
    return stderr.lower()


def _diagnostic_text(chain: list[BaseException]) -> str:
    """Text the message heuristics run on.

    For process exits this is the captured stderr only; the exception message
    also carries caller-supplied arguments such as remote paths.
    """
    for item in chain:
        if isinstance(item, (CommandFailedError, subprocess.CalledProcessError)):
            return _stderr_text(item)
    return str(chain[0]).lower()


def classify(
    error: BaseException,
    patterns: ErrorPatterns = DEFAULT_PATTERNS,
) -> Classification:
    """Assign a retry disposition to a failure.

    Args:
        error: The failure to classify
        patterns: Pattern table for the text heuristics

    Returns:
        Classification of the error; the cause is always ``error`` itself

    """
    chain = list(_error_chain(error))

    for item in chain:
        if isinstance(item, RetryableError):
            return Classification(Disposition.RETRYABLE, error)
        if isinstance(item, PermanentError):
            return Classification(Disposition.PERMANENT, error)

    if any(isinstance(item, OperationCancelledError) for item in chain):
        return Classification(Disposition.PERMANENT, error)

    if any(
        isinstance(item, (DeadlineExceededError, subprocess.TimeoutExpired))
        for item in chain
    ):
        return Classification(Disposition.RETRYABLE, error)

    if any(_has_transient_capability(item) for item in chain):
        return Classification(Disposition.RETRYABLE, error)

    message = _diagnostic_text(chain)
    if any(isinstance(item, (ConnectionError, socket.gaierror)) for item in chain):
        return Classification(Disposition.RETRYABLE, error)
    if any(pattern in message for pattern in patterns.network_message):
        return Classification(Disposition.RETRYABLE, error)

    if any(pattern in message for pattern in patterns.retryable_message):
        return Classification(Disposition.RETRYABLE, error)
    if any(isinstance(item, EOFError) for item in chain):
        return Classification(Disposition.RETRYABLE, error)

    return Classification(Disposition.UNCLASSIFIED, error)


def classify_exit_error(
    error: BaseException,
    patterns: ErrorPatterns = DEFAULT_PATTERNS,
) -> BaseException:
    """Tag a process-exit failure by inspecting its captured stderr.

    Errors that are not process exits, or are already tagged, come back
    unchanged, as do exits whose stderr matches no known pattern.
    """
    if isinstance(error, (RetryableError, PermanentError)):
        return error
    if not isinstance(error, (CommandFailedError, subprocess.CalledProcessError)):
        return error

    stderr = _stderr_text(error)

    if any(pattern in stderr for pattern in patterns.permanent_stderr):
        return PermanentError(error)
    if any(pattern in stderr for pattern in patterns.retryable_stderr):
        return RetryableError(error)
    return error


def tag(
    error: BaseException,
    patterns: ErrorPatterns = DEFAULT_PATTERNS,
) -> BaseException:
    """Wrap an error in the explicit tag matching its classification."""
    if isinstance(error, (RetryableError, PermanentError, OperationCancelledError)):
        return error
    disposition = classify(error, patterns).disposition
    if disposition is Disposition.RETRYABLE:
        return RetryableError(error)
    if disposition is Disposition.PERMANENT:
        return PermanentError(error)
    return error
