"""Rclone process execution: classification, retry, client and pre-flight checks."""

from .cancellation import CancellationToken
from .classifier import (
    DEFAULT_PATTERNS,
    Classification,
    Disposition,
    ErrorPatterns,
    classify,
    classify_exit_error,
    tag,
)
from .client import UNKNOWN_REMOTE_TYPE, RcloneClient, Remote
from .exceptions import (
    CommandFailedError,
    CommandTimeoutError,
    ConfigPathNotFoundError,
    DeadlineExceededError,
    OperationCancelledError,
    PermanentError,
    RcloneError,
    RcloneNotFoundError,
    RemoteAccessError,
    RemoteNotFoundError,
    RemoteTypeNotFoundError,
    RemoteValidationError,
    RetryableError,
    RetryExhaustedError,
    VersionParseError,
)
from .preflight import (
    MIN_RCLONE_VERSION,
    CheckResult,
    PreflightValidator,
    VersionTuple,
    all_passed,
    format_results,
    has_critical_failure,
    parse_version,
    run_preflight_checks,
)
from .retry import DEFAULT_RETRY_CONFIG, RetryConfig, RetryExecutor, backoff_delays

__all__ = [
    "DEFAULT_PATTERNS",
    "DEFAULT_RETRY_CONFIG",
    "MIN_RCLONE_VERSION",
    "UNKNOWN_REMOTE_TYPE",
    "CancellationToken",
    "CheckResult",
    "Classification",
    "CommandFailedError",
    "CommandTimeoutError",
    "ConfigPathNotFoundError",
    "DeadlineExceededError",
    "Disposition",
    "ErrorPatterns",
    "OperationCancelledError",
    "PermanentError",
    "PreflightValidator",
    "RcloneClient",
    "RcloneError",
    "RcloneNotFoundError",
    "Remote",
    "RemoteAccessError",
    "RemoteNotFoundError",
    "RemoteTypeNotFoundError",
    "RemoteValidationError",
    "RetryConfig",
    "RetryExecutor",
    "RetryExhaustedError",
    "RetryableError",
    "VersionParseError",
    "VersionTuple",
    "all_passed",
    "backoff_delays",
    "classify",
    "classify_exit_error",
    "format_results",
    "has_critical_failure",
    "parse_version",
    "run_preflight_checks",
    "tag",
]
