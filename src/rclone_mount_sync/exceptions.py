"""Common exceptions used across the rclone-mount-sync library."""


class AppError(Exception):
    """Base exception carrying an error code and a remediation hint."""

    code = "GEN_001"
    suggestion = "Check the error details and try again."

    def __init__(
        self,
        message: str,
        original_error: BaseException | None = None,
        suggestion: str | None = None,
    ) -> None:
        """Initialize the exception with message and optional original error."""
        super().__init__(message)
        self.message = message
        self.original_error = original_error
        if suggestion is not None:
            self.suggestion = suggestion

    def __str__(self) -> str:
        text = f"{self.message} (code: {self.code})"
        if self.original_error is not None:
            text += f": {self.original_error}"
        return text

    def format_for_display(self) -> str:
        """Render the error for a terminal, with suggestion and code."""
        lines = [f"⚠ {self.message}", ""]
        if self.suggestion:
            lines.extend([self.suggestion, ""])
        if self.code:
            lines.append(f"Error Code: {self.code}")
        return "\n".join(lines)


class ConfigurationError(AppError):
    """Raised when application settings are missing or invalid."""

    code = "CFG_001"
    suggestion = "Check your configuration file for errors."


def format_error_for_display(error: BaseException | None) -> str:
    """Format any error for terminal display."""
    if error is None:
        return ""
    if isinstance(error, AppError):
        return error.format_for_display()
    return (
        f"⚠ {error}\n\n"
        "An unexpected error occurred. Check the logs for more details."
    )
