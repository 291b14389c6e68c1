"""Verified restart cycles for remote daemons.

``DaemonRestarter`` checks the daemon is healthy, sends SIGTERM to every
matching process on its host, then waits for it to come back. Checking
health before the kill establishes a known-good baseline, so a later
failure to recover is attributable to the restart itself.

The two phases are exposed separately (``wait_up`` / ``kill``) so callers
can act while the daemon is known to be down.
"""

from __future__ import annotations

from restartwatch.core.logging import get_logger
from restartwatch.daemon.health import HealthPoller
from restartwatch.daemon.types import PROVIDERS_WITH_SSH, RestartCycle, RestartTarget
from restartwatch.remote import RemoteExecutor

_logger = get_logger("daemon.restarter")


def kill_command(daemon: str) -> str:
    """Shell pipeline sending SIGTERM to every process matching ``daemon``."""
    return f"pgrep {daemon} | xargs -I {{}} sudo kill {{}}"


class DaemonRestarter:
    """Restarts one daemon on one host and confirms it recovers."""

    def __init__(
        self,
        target: RestartTarget,
        executor: RemoteExecutor,
        *,
        poller: HealthPoller | None = None,
        provider: str | None = None,
    ) -> None:
        self._target = target
        self._executor = executor
        self._poller = poller or HealthPoller(executor)
        if provider is not None and provider not in PROVIDERS_WITH_SSH:
            _logger.warning(
                "restarter.ssh_may_not_work",
                provider=provider,
                target=str(target),
            )

    @property
    def target(self) -> RestartTarget:
        return self._target

    async def wait_up(self) -> float:
        """Wait until the daemon answers its health probe.

        Raises:
            HealthTimeoutError: The daemon stayed unhealthy for ``poll_timeout``.
        """
        return await self._poller.wait_until_healthy(self._target)

    async def kill(self) -> None:
        """Send SIGTERM to the daemon. Does not wait for it to exit.

        A non-zero exit (no matching process) is logged and ignored; the
        daemon may already be cycling.

        Raises:
            TransportError: The kill command could not be delivered.
        """
        _logger.info("restarter.killing", target=str(self._target))
        command = kill_command(self._target.daemon)
        result = await self._executor.execute(self._target.host, command)
        if not result.ok:
            _logger.warning(
                "restarter.kill_nonzero_exit",
                target=str(self._target),
                exit_code=result.exit_code,
                stdout=result.stdout,
                stderr=result.stderr,
            )

    async def restart(self) -> RestartCycle:
        """Check health, kill, and wait for health again."""
        baseline = await self.wait_up()
        await self.kill()
        recovery = await self.wait_up()
        _logger.info(
            "restarter.restarted",
            target=str(self._target),
            recovery_seconds=round(recovery, 2),
        )
        return RestartCycle(
            target=self._target,
            baseline_seconds=baseline,
            recovery_seconds=recovery,
        )


__all__ = ["DaemonRestarter", "kill_command"]
