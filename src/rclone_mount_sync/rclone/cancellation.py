"""Cancellation tokens bounding rclone operations in time."""

import threading
import time
import weakref

from rclone_mount_sync.rclone.exceptions import (
    DeadlineExceededError,
    OperationCancelledError,
    RcloneError,
)


class CancellationToken:
    """A cancellable, optionally time-bounded scope for an operation.

    Tokens form a tree: a token derived with ``child()`` is cancelled when its
    parent is cancelled, and its deadline never outlives the parent's.
    """

    def __init__(
        self,
        timeout: float | None = None,
        parent: "CancellationToken | None" = None,
    ) -> None:
        """Initialize the token.

        Args:
            timeout: Seconds until the token expires, or None for no deadline
            parent: Token whose cancellation and deadline this token inherits

        """
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._children: weakref.WeakSet[CancellationToken] = weakref.WeakSet()
        self._parent = parent

        deadline = None if timeout is None else time.monotonic() + timeout
        if parent is not None:
            parent_deadline = parent.deadline
            if parent_deadline is not None:
                deadline = (
                    parent_deadline
                    if deadline is None
                    else min(deadline, parent_deadline)
                )
            parent._register(self)
        self.deadline = deadline

    def _register(self, child: "CancellationToken") -> None:
        with self._lock:
            self._children.add(child)
        if self.cancelled:
            child.cancel()

    def child(self, timeout: float | None = None) -> "CancellationToken":
        """Derive a token cancelled with this one and bounded by ``timeout``."""
        return CancellationToken(timeout=timeout, parent=self)

    def cancel(self) -> None:
        """Cancel this token and every token derived from it."""
        self._event.set()
        with self._lock:
            children = list(self._children)
        for child in children:
            child.cancel()

    @property
    def cancelled(self) -> bool:
        """Whether this token or an ancestor was explicitly cancelled."""
        return self._event.is_set()

    @property
    def expired(self) -> bool:
        """Whether the effective deadline has passed."""
        return self.deadline is not None and time.monotonic() >= self.deadline

    @property
    def done(self) -> bool:
        return self.cancelled or self.expired

    def remaining(self) -> float | None:
        """Seconds left until the deadline, or None when unbounded."""
        if self.deadline is None:
            return None
        return max(self.deadline - time.monotonic(), 0.0)

    def error(self) -> RcloneError | None:
        """Return the error describing why the token is done, if it is."""
        if self.cancelled:
            return OperationCancelledError("operation was cancelled")
        if self.expired:
            return DeadlineExceededError("operation deadline exceeded")
        return None

    def raise_if_done(self) -> None:
        error = self.error()
        if error is not None:
            raise error

    def wait(self, seconds: float) -> bool:
        """Sleep for ``seconds`` unless the token finishes first.

        Returns:
            True if the token is done when the wait ends, False otherwise

        """
        end = time.monotonic() + seconds
        if self.deadline is not None:
            end = min(end, self.deadline)
        while not self._event.is_set():
            left = end - time.monotonic()
            if left <= 0:
                break
            self._event.wait(left)
        return self.done
