"""rclone-mount-sync - resilient rclone process execution and environment checks.

Wraps the rclone command-line tool with failure classification, retry with
exponential backoff, cancellation, and the pre-flight checks run before
mounts and sync jobs are managed.
"""

__version__ = "0.1.0"

from . import exceptions, logging

__all__ = ["exceptions", "logging"]
