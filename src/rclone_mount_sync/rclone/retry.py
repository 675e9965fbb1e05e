"""Retry with exponential backoff for rclone operations."""

import logging
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any, TypeVar

from rclone_mount_sync.exceptions import ConfigurationError
from rclone_mount_sync.logging import get_logger
from rclone_mount_sync.rclone.cancellation import CancellationToken
from rclone_mount_sync.rclone.classifier import (
    DEFAULT_PATTERNS,
    Disposition,
    ErrorPatterns,
    classify,
    classify_exit_error,
)
from rclone_mount_sync.rclone.exceptions import (
    OperationCancelledError,
    RetryExhaustedError,
)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 3
DEFAULT_INITIAL_DELAY = 0.5
DEFAULT_MAX_DELAY = 30.0
DEFAULT_MULTIPLIER = 2.0


@dataclass(frozen=True)
class RetryConfig:
    """Retry policy parameters. Delays are in seconds."""

    max_retries: int = DEFAULT_MAX_RETRIES
    initial_delay: float = DEFAULT_INITIAL_DELAY
    max_delay: float = DEFAULT_MAX_DELAY
    multiplier: float = DEFAULT_MULTIPLIER

    def __post_init__(self) -> None:
        """Validate the policy after initialization."""
        if self.max_retries < 0:
            error_msg = f"max_retries must be non-negative, got {self.max_retries}"
            raise ConfigurationError(error_msg)
        if self.initial_delay < 0:
            error_msg = f"initial_delay must be non-negative, got {self.initial_delay}"
            raise ConfigurationError(error_msg)
        if self.max_delay < self.initial_delay:
            error_msg = (
                f"max_delay ({self.max_delay}) must not be smaller than "
                f"initial_delay ({self.initial_delay})"
            )
            raise ConfigurationError(error_msg)
        if self.multiplier <= 1.0:
            error_msg = f"multiplier must be greater than 1.0, got {self.multiplier}"
            raise ConfigurationError(error_msg)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "RetryConfig":
        """Build a policy from a settings mapping, using defaults for gaps."""
        data = data or {}
        try:
            return cls(
                max_retries=int(data.get("max_retries", DEFAULT_MAX_RETRIES)),
                initial_delay=float(data.get("initial_delay", DEFAULT_INITIAL_DELAY)),
                max_delay=float(data.get("max_delay", DEFAULT_MAX_DELAY)),
                multiplier=float(data.get("multiplier", DEFAULT_MULTIPLIER)),
            )
        except (TypeError, ValueError) as e:
            error_msg = f"Invalid retry configuration: {e}"
            raise ConfigurationError(error_msg, original_error=e) from e


DEFAULT_RETRY_CONFIG = RetryConfig()


def backoff_delays(config: RetryConfig) -> Iterator[float]:
    """Yield the delays slept between consecutive attempts."""
    delay = min(config.initial_delay, config.max_delay)
    for _ in range(config.max_retries):
        yield delay
        delay = min(delay * config.multiplier, config.max_delay)


class RetryExecutor:
    """Runs fallible operations under a retry policy."""

    def __init__(
        self,
        logger: logging.Logger | None = None,
        patterns: ErrorPatterns = DEFAULT_PATTERNS,
    ) -> None:
        """Initialize the executor with a logger and classifier patterns."""
        self.logger = logger or get_logger(__name__)
        self.patterns = patterns

    def execute(
        self,
        operation: Callable[[], T],
        config: RetryConfig = DEFAULT_RETRY_CONFIG,
        token: CancellationToken | None = None,
    ) -> T:
        """Invoke ``operation`` until it succeeds or retrying stops making sense.

        Args:
            operation: Zero-argument callable to invoke
            config: Retry policy, captured for the whole call
            token: Cancellation scope; a done token stops further attempts

        Returns:
            Whatever the first successful invocation returned

        Raises:
            OperationCancelledError: If the token was cancelled
            DeadlineExceededError: If the token's deadline passed
            RetryExhaustedError: If all ``max_retries + 1`` attempts failed
            Exception: The tagged or unclassified error of a non-retryable failure

        """
        token = token or CancellationToken()
        delays = backoff_delays(config)
        attempts = config.max_retries + 1
        last_error: BaseException | None = None

        for attempt in range(attempts):
            token.raise_if_done()

            self.logger.debug(f"Attempt {attempt + 1}/{attempts}")
            try:
                return operation()
            except OperationCancelledError:
                raise
            except Exception as e:  # noqa: BLE001
                cause: BaseException = e
                last_error = classify_exit_error(e, self.patterns)

            disposition = classify(last_error, self.patterns).disposition
            if disposition is not Disposition.RETRYABLE:
                self.logger.debug(
                    f"Not retrying {disposition.value} error: {last_error}",
                )
                if last_error is cause:
                    raise last_error
                raise last_error from cause

            if attempt == config.max_retries:
                break

            delay = next(delays)
            self.logger.warning(
                f"Attempt {attempt + 1}/{attempts} failed: {last_error}. "
                f"Retrying in {delay:.2f}s",
            )
            if token.wait(delay):
                token.raise_if_done()

        self.logger.error(f"Operation failed after {attempts} attempts: {last_error}")
        raise RetryExhaustedError(attempts, last_error) from last_error
