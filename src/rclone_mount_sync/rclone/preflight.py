"""Pre-flight checks for the rclone environment."""

import logging
import re
import shutil
import subprocess
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import NamedTuple

from rclone_mount_sync.logging import get_logger
from rclone_mount_sync.rclone.cancellation import CancellationToken
from rclone_mount_sync.rclone.client import RcloneClient, Remote
from rclone_mount_sync.rclone.exceptions import (
    OperationCancelledError,
    RcloneError,
    VersionParseError,
)

CHECK_BINARY = "Rclone Binary"
CHECK_VERSION = "Rclone Version"
CHECK_REMOTES = "Configured Remotes"
CHECK_SYSTEMD = "Systemd User Session"
CHECK_FUSERMOUNT = "Fusermount"

SYSTEMD_BUS_FAILURES = (
    "Failed to connect to bus",
    "No such file or directory",
    "Connection refused",
)
FUSERMOUNT_BINARIES = ("fusermount3", "fusermount")
MAX_LISTED_REMOTES = 5

_VERSION_PATTERN = re.compile(r"(\d+)\.(\d+)\.(\d+)")


class VersionTuple(NamedTuple):
    """A major.minor.patch version, ordered field by field."""

    major: int
    minor: int
    patch: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


MIN_RCLONE_VERSION = VersionTuple(1, 60, 0)


@dataclass(frozen=True)
class CheckResult:
    """Outcome of a single pre-flight check."""

    name: str
    passed: bool
    message: str
    suggestion: str = ""
    critical: bool = True


def parse_version(version_str: str) -> VersionTuple:
    """Extract the first dotted version triple from a version string.

    Handles 'rclone v1.62.0', 'v1.62.0', '1.62.0-beta' and similar.

    Raises:
        VersionParseError: If no triple is present

    """
    match = _VERSION_PATTERN.search(version_str)
    if match is None:
        error_msg = f"Could not find version pattern in {version_str!r}"
        raise VersionParseError(error_msg)
    return VersionTuple(*(int(part) for part in match.groups()))


def compare_versions(a: VersionTuple, b: VersionTuple) -> int:
    """Return -1, 0 or 1 as ``a`` is lower than, equal to or higher than ``b``."""
    return (a > b) - (a < b)


def format_remote_names(remotes: list[Remote]) -> str:
    names = [remote.name for remote in remotes]
    if len(names) > MAX_LISTED_REMOTES:
        extra = len(names) - MAX_LISTED_REMOTES
        return ", ".join(names[:MAX_LISTED_REMOTES]) + f" (and {extra} more)"
    return ", ".join(names)


class PreflightValidator:
    """Runs the ordered environment checks needed before the app can start."""

    def __init__(
        self,
        client: RcloneClient | None,
        logger: logging.Logger | None = None,
        remotes_timeout: float = 30.0,
        systemctl_timeout: float = 10.0,
    ) -> None:
        """Initialize the validator.

        Args:
            client: Rclone client used for the rclone checks
            logger: Logger instance, defaults to the module logger
            remotes_timeout: Overall budget for listing remotes
            systemctl_timeout: Timeout for the systemd session query

        """
        self.client = client
        self.logger = logger or get_logger(__name__)
        self.remotes_timeout = remotes_timeout
        self.systemctl_timeout = systemctl_timeout

    def run_checks(self, token: CancellationToken | None = None) -> list[CheckResult]:
        """Run all checks in order and return their results.

        Args:
            token: Parent scope; cancelling it aborts the rclone checks

        """
        results = [self.check_rclone_binary()]

        if results[0].passed:
            results.append(self.check_rclone_version(self.client, token))
            results.append(self.check_configured_remotes(self.client, token))
        else:
            results.append(
                CheckResult(
                    name=CHECK_VERSION,
                    passed=False,
                    message="Skipped: rclone binary not found",
                    suggestion="Install rclone first to check version",
                ),
            )
            results.append(
                CheckResult(
                    name=CHECK_REMOTES,
                    passed=False,
                    message="Skipped: rclone binary not found",
                    suggestion="Install rclone first to check configured remotes",
                ),
            )

        results.append(self.check_systemd_user_session())
        results.append(self.check_fusermount())

        for result in results:
            status = "passed" if result.passed else "failed"
            self.logger.debug(f"Pre-flight check '{result.name}' {status}: {result.message}")
        return results

    def check_rclone_binary(self) -> CheckResult:
        """Verify the rclone binary exists on PATH or at the configured path."""
        if self.client is None:
            return CheckResult(
                name=CHECK_BINARY,
                passed=False,
                message="Rclone client is not initialized",
                suggestion=(
                    "Ensure the rclone client is properly created before "
                    "running pre-flight checks"
                ),
            )

        resolved = self.client.resolve_binary()
        if resolved is not None:
            return CheckResult(
                name=CHECK_BINARY,
                passed=True,
                message=f"Found rclone binary at: {resolved}",
            )

        if self.client.uses_search_path:
            return CheckResult(
                name=CHECK_BINARY,
                passed=False,
                message="rclone binary not found in PATH",
                suggestion=(
                    "Install rclone using your package manager "
                    "(e.g., 'sudo apt install rclone') or download from "
                    "https://rclone.org/install/"
                ),
            )
        return CheckResult(
            name=CHECK_BINARY,
            passed=False,
            message=(
                "rclone binary not found at configured path: "
                f"{self.client.binary_path}"
            ),
            suggestion="Verify the rclone_binary_path in your settings or install rclone",
        )

    def check_rclone_version(
        self,
        client: RcloneClient,
        token: CancellationToken | None = None,
    ) -> CheckResult:
        """Verify rclone is at least MIN_RCLONE_VERSION."""
        try:
            version_str = client.get_version(token)
        except OperationCancelledError:
            raise
        except RcloneError as e:
            return CheckResult(
                name=CHECK_VERSION,
                passed=False,
                message=f"Failed to get rclone version: {e}",
                suggestion="Ensure rclone is properly installed and accessible",
            )

        try:
            version = parse_version(version_str)
        except VersionParseError as e:
            return CheckResult(
                name=CHECK_VERSION,
                passed=False,
                message=f"Failed to parse rclone version from '{version_str}': {e.message}",
                suggestion="Ensure you have a valid rclone installation",
            )

        if compare_versions(version, MIN_RCLONE_VERSION) >= 0:
            return CheckResult(
                name=CHECK_VERSION,
                passed=True,
                message=(
                    f"Rclone version {version} meets minimum requirement "
                    f"({MIN_RCLONE_VERSION})"
                ),
            )
        return CheckResult(
            name=CHECK_VERSION,
            passed=False,
            message=(
                f"Rclone version {version} is below minimum required version "
                f"{MIN_RCLONE_VERSION}"
            ),
            suggestion=(
                f"Upgrade rclone to version {MIN_RCLONE_VERSION} or later from "
                "https://rclone.org/install/"
            ),
        )

    def check_configured_remotes(
        self,
        client: RcloneClient,
        parent: CancellationToken | None = None,
    ) -> CheckResult:
        """Verify at least one remote is configured, within remotes_timeout.

        The listing runs on a worker thread; if the timeout wins the race the
        worker's token is cancelled, killing rclone, and its result is dropped.
        """
        token = (parent or CancellationToken()).child()
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="preflight")
        future = executor.submit(client.list_remotes, token)
        try:
            remotes = future.result(timeout=self.remotes_timeout)
        except FutureTimeoutError:
            token.cancel()
            self.logger.warning(
                f"Listing rclone remotes timed out after {self.remotes_timeout}s",
            )
            return CheckResult(
                name=CHECK_REMOTES,
                passed=False,
                message="Timeout while listing rclone remotes",
                suggestion="Check your rclone configuration and network connectivity",
            )
        except OperationCancelledError:
            raise
        except RcloneError as e:
            return CheckResult(
                name=CHECK_REMOTES,
                passed=False,
                message=f"Failed to list rclone remotes: {e}",
                suggestion=(
                    "Ensure rclone configuration is accessible. "
                    "Try running 'rclone listremotes' manually"
                ),
            )
        finally:
            token.cancel()
            executor.shutdown(wait=False, cancel_futures=True)

        if not remotes:
            return CheckResult(
                name=CHECK_REMOTES,
                passed=False,
                message="No rclone remotes are configured",
                suggestion="Run 'rclone config' to set up a remote storage provider first",
            )
        return CheckResult(
            name=CHECK_REMOTES,
            passed=True,
            message=(
                f"Found {len(remotes)} configured remote(s): "
                f"{format_remote_names(remotes)}"
            ),
        )

    def check_systemd_user_session(self) -> CheckResult:
        """Verify a systemd user session is reachable.

        A non-zero exit without a recognised bus failure still counts as a
        pass: systemctl exists and answered, even if atypically.
        """
        systemctl = shutil.which("systemctl")
        if systemctl is None:
            return CheckResult(
                name=CHECK_SYSTEMD,
                passed=False,
                message="systemctl command not found",
                suggestion=(
                    "This application requires systemd. Install systemd or use "
                    "a systemd-based Linux distribution"
                ),
            )

        try:
            result = subprocess.run(  # noqa: S603
                [systemctl, "--user", "is-active", "default.target"],
                check=False,
                capture_output=True,
                text=True,
                timeout=self.systemctl_timeout,
            )
        except subprocess.TimeoutExpired:
            self.logger.warning(
                f"systemctl timed out after {self.systemctl_timeout} seconds",
            )
            return CheckResult(
                name=CHECK_SYSTEMD,
                passed=True,
                message="Systemd user session detected (status: timed out)",
            )

        output = (result.stdout + result.stderr).strip()
        if result.returncode != 0:
            if any(failure in output for failure in SYSTEMD_BUS_FAILURES):
                return CheckResult(
                    name=CHECK_SYSTEMD,
                    passed=False,
                    message="Systemd user session is not available",
                    suggestion=(
                        "Ensure your system is running with a systemd user "
                        "session. You may need to log in again or start the user "
                        "session with 'systemctl --user start default.target'"
                    ),
                )
            self.logger.debug(f"systemctl exited {result.returncode}: {output}")
            return CheckResult(
                name=CHECK_SYSTEMD,
                passed=True,
                message=f"Systemd user session detected (status: {output})",
            )

        if output == "active":
            message = "Systemd user session is active and available"
        else:
            message = f"Systemd user session is available (status: {output})"
        return CheckResult(name=CHECK_SYSTEMD, passed=True, message=message)

    def check_fusermount(self) -> CheckResult:
        """Look for fusermount3, then fusermount. Failure does not block startup."""
        for binary in FUSERMOUNT_BINARIES:
            path = shutil.which(binary)
            if path is not None:
                return CheckResult(
                    name=CHECK_FUSERMOUNT,
                    passed=True,
                    message=f"Found {binary} at: {path}",
                    critical=False,
                )

        return CheckResult(
            name=CHECK_FUSERMOUNT,
            passed=False,
            message="Neither fusermount nor fusermount3 found",
            suggestion=(
                "Install FUSE to enable mounting: 'sudo apt install fuse3' or "
                "'sudo apt install fuse'. Sync jobs still work without FUSE, but "
                "mount functionality will be unavailable."
            ),
            critical=False,
        )


def run_preflight_checks(client: RcloneClient | None) -> list[CheckResult]:
    """Run all pre-flight checks with default settings."""
    return PreflightValidator(client).run_checks()


def has_critical_failure(results: list[CheckResult]) -> bool:
    return any(not r.passed and r.critical for r in results)


def all_passed(results: list[CheckResult]) -> bool:
    return all(r.passed for r in results)


def format_results(results: list[CheckResult]) -> str:
    """Render check results as a human-readable report."""
    lines = ["Pre-flight Check Results:", "-" * 60]
    for result in results:
        if result.passed:
            status = "✓ PASS"
        elif result.critical:
            status = "✗ FAIL (critical)"
        else:
            status = "⚠ FAIL (optional)"

        lines.append("")
        lines.append(f"[{status}] {result.name}")
        lines.append(f"  {result.message}")
        if result.suggestion:
            lines.append(f"  Suggestion: {result.suggestion}")
    return "\n".join(lines) + "\n"
