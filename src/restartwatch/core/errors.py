"""Exception hierarchy for restartwatch.

All harness exceptions inherit from HarnessError, so callers can catch broad
(HarnessError) or narrow (e.g., HealthTimeoutError). Every exception carries
the context needed to reproduce the failure without re-running: host, daemon,
timing, and entity keys.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from restartwatch.daemon.types import RestartTarget


class HarnessError(Exception):
    """Base exception for all harness errors."""


class ConfigError(HarnessError):
    """Raised when harness configuration cannot be loaded or validated."""


class TransportError(HarnessError):
    """Raised when a remote command could not be delivered or completed.

    Transient: the health poller absorbs it and retries. Anywhere else it
    propagates to the caller.
    """

    def __init__(self, host: str, command: str, reason: str) -> None:
        self.host = host
        self.command = command
        self.reason = reason
        super().__init__(f"{host}: {reason} (command: {command!r})")


class HealthTimeoutError(HarnessError):
    """Raised when a daemon does not report healthy within its poll timeout."""

    def __init__(self, target: RestartTarget, timeout: float, elapsed: float) -> None:
        self.target = target
        self.timeout = timeout
        self.elapsed = elapsed
        super().__init__(
            f"{target} did not respond with a 200 on port {target.health_port} "
            f"within {timeout:.0f}s (elapsed {elapsed:.1f}s)"
        )


class InvariantViolationError(HarnessError):
    """Raised when a post-restart invariant does not hold.

    ``render`` holds the event tracker's diagnostic dump so the sequence of
    add/update/delete events surrounding the anomaly is visible.
    """

    def __init__(
        self,
        message: str,
        *,
        before: Iterable[str] = (),
        after: Iterable[str] = (),
        render: str = "",
    ) -> None:
        self.before = sorted(before)
        self.after = sorted(after)
        self.render = render
        self.message = message
        text = message
        if render:
            text = f"{message}\n\n{render}"
        super().__init__(text)


class FeedInterruptedError(HarnessError):
    """Raised when a resource feed subscription ended without being stopped."""

    def __init__(self, selector: dict[str, str], cause: BaseException | None = None) -> None:
        self.selector = dict(selector)
        self.cause = cause
        detail = f": {cause!r}" if cause is not None else ": feed closed"
        super().__init__(f"Feed for selector {self.selector} interrupted{detail}")


__all__ = [
    "ConfigError",
    "FeedInterruptedError",
    "HarnessError",
    "HealthTimeoutError",
    "InvariantViolationError",
    "TransportError",
]
