"""rclone-mount-sync command-line interface."""

import argparse
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from rclone_mount_sync.exceptions import AppError
from rclone_mount_sync.logging import LoggingConfig, configure_logging
from rclone_mount_sync.rclone import (
    CancellationToken,
    PreflightValidator,
    RcloneClient,
    format_results,
    has_critical_failure,
)
from rclone_mount_sync.settings import SettingsManager, create_client, load_environment

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rclone-mount-sync",
        description="Inspect rclone remotes and check the mount/sync environment",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to settings YAML file (default: XDG config location)",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Optional .env file providing RCLONE_BINARY_PATH / RCLONE_CONFIG",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: from settings, else INFO)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("check", help="Run pre-flight environment checks")
    subparsers.add_parser("remotes", help="List configured remotes and their types")
    subparsers.add_parser("version", help="Show the installed rclone version")
    subparsers.add_parser("config-path", help="Show the rclone configuration file path")

    ls_parser = subparsers.add_parser("ls", help="List a path on a remote")
    ls_parser.add_argument("remote", help="Remote name, without the trailing ':'")
    ls_parser.add_argument("path", nargs="?", default="", help="Path on the remote")
    ls_parser.add_argument(
        "--dirs-only",
        action="store_true",
        help="Only list directories",
    )

    access_parser = subparsers.add_parser(
        "test-access",
        help="Check that a remote path is reachable",
    )
    access_parser.add_argument("remote", help="Remote name, without the trailing ':'")
    access_parser.add_argument("path", nargs="?", default="", help="Path on the remote")

    return parser


def run_command(
    args: argparse.Namespace,
    client: RcloneClient,
    token: CancellationToken,
    logger: logging.Logger,
    remotes_timeout: float = 30.0,
) -> int:
    """Execute the selected subcommand and return the exit code."""
    if args.command == "check":
        validator = PreflightValidator(client, logger, remotes_timeout=remotes_timeout)
        results = validator.run_checks(token)
        logger.info(format_results(results))
        return EXIT_FAILURE if has_critical_failure(results) else EXIT_OK

    if args.command == "remotes":
        remotes = client.list_remotes(token)
        if not remotes:
            logger.info("No remotes configured. Run 'rclone config' to add one.")
        for remote in remotes:
            logger.info(f"{remote.root_path:<30} {remote.type}")
        return EXIT_OK

    if args.command == "version":
        logger.info(client.get_version(token))
        return EXIT_OK

    if args.command == "config-path":
        logger.info(client.get_config_path(token))
        return EXIT_OK

    if args.command == "ls":
        if args.dirs_only:
            entries = client.list_remote_directories(args.remote, args.path, token)
        else:
            entries = client.list_remote_path(args.remote, args.path, token)
        for entry in entries:
            logger.info(entry)
        return EXIT_OK

    if args.command == "test-access":
        client.test_remote_access(args.remote, args.path, token)
        logger.info(f"{args.remote}:{args.path} is accessible")
        return EXIT_OK

    error_msg = f"Unknown command: {args.command}"
    raise ValueError(error_msg)


def main(argv: Sequence[str] | None = None) -> None:
    """Execute the main entry point for the command-line interface."""
    args = build_parser().parse_args(argv)

    bootstrap = LoggingConfig(log_level=args.log_level or "INFO")
    logger = configure_logging(bootstrap)

    token = CancellationToken()
    try:
        settings_path = args.config or SettingsManager.default_settings_path()
        settings = SettingsManager.load_settings(settings_path)
        logger = configure_logging(
            LoggingConfig(
                log_level=args.log_level or settings.log_level,
                log_dir=settings.log_dir,
                enable_file=settings.log_file_enabled,
            ),
        )
        env = load_environment(args.env_file)
        client = create_client(settings, env, logger)
        exit_code = run_command(
            args,
            client,
            token,
            logger,
            remotes_timeout=settings.remotes_timeout,
        )
    except KeyboardInterrupt:
        token.cancel()
        logger.warning("Interrupted")
        sys.exit(EXIT_INTERRUPTED)
    except AppError as e:
        logger.debug("Command failed", exc_info=True)
        logger.error(e.format_for_display())  # noqa: TRY400
        sys.exit(EXIT_FAILURE)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
