"""Rclone client for executing rclone commands with retry and cancellation."""

import contextlib
import logging
import os
import shutil
import signal
import subprocess
import time
from collections.abc import Mapping
from dataclasses import dataclass, field

from rclone_mount_sync.logging import get_logger
from rclone_mount_sync.rclone.cancellation import CancellationToken
from rclone_mount_sync.rclone.exceptions import (
    CommandFailedError,
    CommandTimeoutError,
    ConfigPathNotFoundError,
    OperationCancelledError,
    RcloneError,
    RcloneNotFoundError,
    RemoteAccessError,
    RemoteNotFoundError,
    RemoteTypeNotFoundError,
    RemoteValidationError,
    VersionParseError,
)
from rclone_mount_sync.rclone.retry import (
    DEFAULT_RETRY_CONFIG,
    RetryConfig,
    RetryExecutor,
)

BINARY_PATH_ENV = "RCLONE_BINARY_PATH"
CONFIG_PATH_ENV = "RCLONE_CONFIG"
DEFAULT_BINARY = "rclone"
UNKNOWN_REMOTE_TYPE = "unknown"
REMOTE_SEPARATOR = ":"
DIRECTORY_MARKER = "/"


@dataclass(frozen=True)
class Remote:
    """A configured rclone remote."""

    name: str
    type: str = UNKNOWN_REMOTE_TYPE
    root_path: str = field(default="")

    def __post_init__(self) -> None:
        """Normalize and validate the remote after initialization."""
        name = self.name.strip()
        if not name:
            error_msg = "Remote name cannot be empty"
            raise ValueError(error_msg)
        object.__setattr__(self, "name", name)
        if not self.root_path:
            object.__setattr__(self, "root_path", name + REMOTE_SEPARATOR)


class RcloneClient:
    """Handles rclone command execution with error handling and logging."""

    VERSION_TIMEOUT = 10.0
    METADATA_TIMEOUT = 10.0
    LIST_REMOTES_TIMEOUT = 30.0
    ACCESS_TIMEOUT = 30.0
    LIST_PATH_TIMEOUT = 60.0
    VALIDATE_TIMEOUT = 120.0
    POLL_INTERVAL = 0.1
    KILL_TIMEOUT = 2.0

    def __init__(
        self,
        binary_path: str | None = None,
        config_path: str | None = None,
        retry_config: RetryConfig | None = None,
        logger: logging.Logger | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            binary_path: Explicit rclone binary; overrides RCLONE_BINARY_PATH
            config_path: Explicit rclone.conf path; overrides RCLONE_CONFIG
            retry_config: Retry policy for operations run with retry
            logger: Logger instance, defaults to the module logger
            env: Environment to read overrides from, defaults to os.environ

        """
        env = os.environ if env is None else env
        self.binary_path = binary_path or env.get(BINARY_PATH_ENV) or DEFAULT_BINARY
        self.config_path = config_path or env.get(CONFIG_PATH_ENV) or None
        self.retry_config = retry_config or DEFAULT_RETRY_CONFIG
        self.logger = logger or get_logger(__name__)
        self.retry_executor = RetryExecutor(self.logger)

    def set_config_path(self, config_path: str | None) -> None:
        """Set a custom rclone configuration file path."""
        self.config_path = config_path or None

    def set_retry_config(self, retry_config: RetryConfig) -> None:
        """Replace the retry policy used by subsequent operations."""
        self.retry_config = retry_config

    @property
    def uses_search_path(self) -> bool:
        """Whether the binary is a bare name looked up on PATH."""
        return os.sep not in self.binary_path

    def resolve_binary(self) -> str | None:
        """Return the absolute path of the rclone binary, if it exists."""
        return shutil.which(self.binary_path)

    def is_installed(self) -> bool:
        return self.resolve_binary() is not None

    def _build_command(self, args: list[str]) -> list[str]:
        command = [self.binary_path]
        if self.config_path:
            command.extend(["--config", self.config_path])
        command.extend(args)
        return command

    def _run_command(
        self,
        args: list[str],
        timeout: float,
        token: CancellationToken | None = None,
        description: str = "run rclone",
    ) -> str:
        """Run rclone once and return its stdout.

        The process is killed as soon as the token is cancelled or the
        timeout fires.

        Raises:
            RcloneNotFoundError: If the binary cannot be executed
            CommandFailedError: If rclone exits non-zero; carries stderr
            CommandTimeoutError: If the command exceeds ``timeout``
            OperationCancelledError: If the token was cancelled
            DeadlineExceededError: If the token's deadline passed

        """
        token = token or CancellationToken()
        token.raise_if_done()
        command = self._build_command(args)
        self.logger.debug(f"Running command: {' '.join(command)}")

        try:
            process = subprocess.Popen(  # noqa: S603
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                start_new_session=True,
            )
        except OSError as e:
            error_msg = f"Failed to {description}: cannot execute {self.binary_path}"
            raise RcloneNotFoundError(error_msg, original_error=e) from e

        deadline = time.monotonic() + timeout
        while True:
            try:
                stdout, stderr = process.communicate(timeout=self.POLL_INTERVAL)
                break
            except subprocess.TimeoutExpired:
                if token.done:
                    self._kill(process)
                    self.logger.debug(f"Command aborted: {' '.join(command)}")
                    token.raise_if_done()
                if time.monotonic() >= deadline:
                    self._kill(process)
                    error_msg = f"Failed to {description}: timed out after {timeout}s"
                    self.logger.warning(error_msg)
                    raise CommandTimeoutError(error_msg, command, timeout) from None

        if process.returncode != 0:
            error_msg = f"Failed to {description}: {stderr.strip() or 'no error output'}"
            self.logger.debug(
                f"Command returned non-zero exit code {process.returncode}: "
                f"{' '.join(command)}",
            )
            raise CommandFailedError(
                error_msg,
                command=command,
                returncode=process.returncode,
                stdout=stdout,
                stderr=stderr,
            )
        return stdout

    def _kill(self, process: subprocess.Popen[str]) -> None:
        """Kill the process group rclone runs in and reap the child."""
        with contextlib.suppress(ProcessLookupError):
            os.killpg(process.pid, signal.SIGKILL)
        with contextlib.suppress(ProcessLookupError):
            process.kill()
        try:
            process.communicate(timeout=self.KILL_TIMEOUT)
        except subprocess.TimeoutExpired:
            # a descendant left the group and still holds the pipes
            self.logger.warning(f"Output pipes of killed process {process.pid} still open")
            for pipe in (process.stdout, process.stderr):
                if pipe is not None:
                    pipe.close()
            process.wait()

    def _run(
        self,
        args: list[str],
        timeout: float,
        token: CancellationToken | None = None,
        description: str = "run rclone",
        *,
        retry: bool = True,
        retry_config: RetryConfig | None = None,
    ) -> str:
        """Run rclone, wrapped in the retry policy unless ``retry`` is False."""
        if not retry:
            return self._run_command(args, timeout, token, description)
        config = retry_config or self.retry_config
        return self.retry_executor.execute(
            lambda: self._run_command(args, timeout, token, description),
            config,
            token,
        )

    def get_version(
        self,
        token: CancellationToken | None = None,
        *,
        retry: bool = True,
        retry_config: RetryConfig | None = None,
    ) -> str:
        """Return the first line of ``rclone version``, e.g. 'rclone v1.62.0'."""
        output = self._run(
            ["version"],
            self.VERSION_TIMEOUT,
            token,
            "get rclone version",
            retry=retry,
            retry_config=retry_config,
        )
        for line in output.splitlines():
            if line.strip():
                return line.strip()
        error_msg = "Could not parse rclone version from empty output"
        raise VersionParseError(error_msg)

    def get_config_path(
        self,
        token: CancellationToken | None = None,
        *,
        retry: bool = True,
        retry_config: RetryConfig | None = None,
    ) -> str:
        """Return the rclone configuration file path.

        The override is returned when set; otherwise rclone is asked and the
        last non-blank line of ``rclone config file`` is used.
        """
        if self.config_path:
            return self.config_path

        output = self._run(
            ["config", "file"],
            self.METADATA_TIMEOUT,
            token,
            "get rclone config path",
            retry=retry,
            retry_config=retry_config,
        )
        lines = [line.strip() for line in output.splitlines() if line.strip()]
        if not lines:
            error_msg = "Could not parse rclone config path from output"
            raise ConfigPathNotFoundError(error_msg)
        return lines[-1]

    def list_remotes(
        self,
        token: CancellationToken | None = None,
        *,
        retry: bool = True,
        retry_config: RetryConfig | None = None,
    ) -> list[Remote]:
        """Return the configured remotes, each with its resolved type."""
        output = self._run(
            ["listremotes"],
            self.LIST_REMOTES_TIMEOUT,
            token,
            "list remotes",
            retry=retry,
            retry_config=retry_config,
        )

        remotes = []
        for raw_line in output.splitlines():
            line = raw_line.strip()
            name = line.removesuffix(REMOTE_SEPARATOR)
            if not name.strip():
                continue

            try:
                remote_type = self.get_remote_type(
                    name,
                    token,
                    retry=retry,
                    retry_config=retry_config,
                )
            except OperationCancelledError:
                raise
            except RcloneError as e:
                if token is not None:
                    token.raise_if_done()
                self.logger.warning(f"Could not determine type of remote {name}: {e}")
                remote_type = UNKNOWN_REMOTE_TYPE

            remotes.append(Remote(name=name, type=remote_type, root_path=line))

        self.logger.debug(f"Found {len(remotes)} remote(s)")
        return remotes

    def get_remote_type(
        self,
        remote: str,
        token: CancellationToken | None = None,
        *,
        retry: bool = True,
        retry_config: RetryConfig | None = None,
    ) -> str:
        """Return the backend type of a remote, e.g. 'drive' or 's3'."""
        output = self._run(
            ["config", "show", remote],
            self.METADATA_TIMEOUT,
            token,
            "get remote type",
            retry=retry,
            retry_config=retry_config,
        )
        for raw_line in output.splitlines():
            key, sep, value = raw_line.strip().partition("=")
            if sep and key.strip() == "type":
                return value.strip()

        error_msg = f"Could not find type for remote {remote}"
        raise RemoteTypeNotFoundError(error_msg)

    def list_remote_path(
        self,
        remote: str,
        path: str = "",
        token: CancellationToken | None = None,
        *,
        retry: bool = True,
        retry_config: RetryConfig | None = None,
    ) -> list[str]:
        """List entries of a remote path; directories keep their trailing '/'."""
        output = self._run(
            ["lsf", f"{remote}{REMOTE_SEPARATOR}{path}"],
            self.LIST_PATH_TIMEOUT,
            token,
            "list remote path",
            retry=retry,
            retry_config=retry_config,
        )
        return [line.strip() for line in output.splitlines() if line.strip()]

    def list_remote_directories(
        self,
        remote: str,
        path: str = "",
        token: CancellationToken | None = None,
        *,
        retry: bool = True,
        retry_config: RetryConfig | None = None,
    ) -> list[str]:
        """List directory names under a remote path, without trailing '/'."""
        output = self._run(
            ["lsf", f"{remote}{REMOTE_SEPARATOR}{path}", "--dirs-only"],
            self.LIST_PATH_TIMEOUT,
            token,
            "list remote directories",
            retry=retry,
            retry_config=retry_config,
        )
        return [
            line.strip().removesuffix(DIRECTORY_MARKER)
            for line in output.splitlines()
            if line.strip()
        ]

    def list_root_directories(
        self,
        remote: str,
        token: CancellationToken | None = None,
    ) -> list[str]:
        """List directories at the root of a remote."""
        return self.list_remote_directories(remote, "", token)

    def validate_remote(
        self,
        remote: str,
        token: CancellationToken | None = None,
        *,
        retry: bool = True,
        retry_config: RetryConfig | None = None,
    ) -> None:
        """Check that a remote exists in the rclone configuration.

        Raises:
            RemoteNotFoundError: If no remote with that name is configured
            RemoteValidationError: If the remotes could not be listed

        """
        scope = (token or CancellationToken()).child(self.VALIDATE_TIMEOUT)
        try:
            remotes = self.list_remotes(
                scope,
                retry=retry,
                retry_config=retry_config,
            )
        except OperationCancelledError:
            raise
        except RcloneError as e:
            error_msg = "Failed to validate remote"
            raise RemoteValidationError(error_msg, original_error=e) from e

        if not any(r.name == remote for r in remotes):
            error_msg = f'Remote "{remote}" not found in rclone configuration'
            raise RemoteNotFoundError(error_msg)

    def test_remote_access(
        self,
        remote: str,
        path: str = "",
        token: CancellationToken | None = None,
        *,
        retry: bool = True,
        retry_config: RetryConfig | None = None,
    ) -> None:
        """Check that a remote path can be listed.

        Raises:
            RemoteAccessError: If the listing fails for any reason

        """
        remote_path = f"{remote}{REMOTE_SEPARATOR}{path}"
        try:
            self._run(
                ["lsf", remote_path, "--max-depth", "1"],
                self.ACCESS_TIMEOUT,
                token,
                f'access remote path "{remote_path}"',
                retry=retry,
                retry_config=retry_config,
            )
        except OperationCancelledError:
            raise
        except RcloneError as e:
            error_msg = f'Failed to access remote path "{remote_path}"'
            raise RemoteAccessError(error_msg, original_error=e) from e
