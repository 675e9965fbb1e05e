"""Custom exceptions for the rclone module."""

from rclone_mount_sync.exceptions import AppError


class RcloneError(AppError):
    """Base exception for all rclone-related errors."""

    code = "RCLONE_004"
    suggestion = (
        "Check the rclone logs for details. "
        "Verify your remote configuration and network connectivity."
    )


class RcloneNotFoundError(RcloneError):
    """Raised when the rclone binary cannot be executed."""

    code = "RCLONE_001"
    suggestion = (
        "Install rclone using your package manager or from "
        "https://rclone.org/install/"
    )


class CommandFailedError(RcloneError):
    """Raised when an rclone process exits with a non-zero status."""

    def __init__(
        self,
        message: str,
        command: list[str],
        returncode: int,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        """Initialize with the command, its exit status and captured output."""
        super().__init__(message)
        self.command = command
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


class OperationCancelledError(RcloneError):
    """Raised when an operation was deliberately aborted."""


class DeadlineExceededError(RcloneError):
    """Raised when an operation ran out of its time budget."""


class CommandTimeoutError(DeadlineExceededError):
    """Raised when a single rclone invocation exceeds its timeout."""

    def __init__(self, message: str, command: list[str], timeout: float) -> None:
        """Initialize with the command and the timeout that fired."""
        super().__init__(message)
        self.command = command
        self.timeout = timeout


class _TaggedError(RcloneError):
    """Wraps a failure with an explicit retry disposition."""

    def __init__(self, error: BaseException) -> None:
        super().__init__(str(error), original_error=error)

    def __str__(self) -> str:
        return str(self.original_error)


class RetryableError(_TaggedError):
    """A failure explicitly marked as worth retrying."""


class PermanentError(_TaggedError):
    """A failure explicitly marked as never worth retrying."""


class RetryExhaustedError(RcloneError):
    """Raised when every permitted attempt of an operation failed."""

    def __init__(self, attempts: int, last_error: BaseException | None) -> None:
        """Initialize with the attempt count and the last observed cause."""
        super().__init__(
            f"operation failed after {attempts} attempts: {last_error}",
        )
        self.attempts = attempts
        self.last_error = last_error

    def __str__(self) -> str:
        return self.message


class RemoteNotFoundError(RcloneError):
    """Raised when a remote is absent from the rclone configuration."""

    suggestion = "Run 'rclone config' to create the remote, or check its name."


class RemoteTypeNotFoundError(RcloneError):
    """Raised when 'config show' output has no type key."""


class RemoteAccessError(RcloneError):
    """Raised when a remote path cannot be listed."""


class RemoteValidationError(RcloneError):
    """Raised when remote validation could not be carried out."""


class ConfigPathNotFoundError(RcloneError):
    """Raised when the rclone configuration file path cannot be determined."""


class VersionParseError(RcloneError):
    """Raised when a version string cannot be parsed."""
