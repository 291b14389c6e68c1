"""Health polling for remote daemons.

``HealthPoller`` probes a daemon's ``/healthz`` endpoint from the daemon's
own host (via the remote executor) until it answers with the success status
code or the target's poll timeout elapses.

Probe failures of any kind, including transport errors, mean "not healthy
yet": a restarting daemon is legitimately unreachable for a while. Each
failed attempt is logged with its raw result for post-hoc debugging.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable

from restartwatch.core.errors import HealthTimeoutError, TransportError
from restartwatch.core.logging import get_logger
from restartwatch.daemon.types import ExecResult, RestartTarget
from restartwatch.remote import RemoteExecutor

_logger = get_logger("daemon.health")

HTTP_OK = 200

Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]


def healthz_command(port: int) -> str:
    """Shell command printing only the HTTP status code of localhost /healthz."""
    return (
        'curl -s -o /dev/null -I -w "%{http_code}" '
        f"http://localhost:{port}/healthz"
    )


class HealthPoller:
    """Polls a daemon's health endpoint until success or timeout.

    Parameters
    ----------
    executor:
        Runs the probe command on the target's host.
    success_code:
        HTTP status code that counts as healthy.
    clock, sleep:
        Injectable time source and sleeper; default to ``time.monotonic``
        and ``asyncio.sleep``.
    """

    def __init__(
        self,
        executor: RemoteExecutor,
        *,
        success_code: int = HTTP_OK,
        clock: Clock = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self._executor = executor
        self._success_code = success_code
        self._clock = clock
        self._sleep = sleep

    async def probe(self, target: RestartTarget) -> bool:
        """Issue one health probe. Returns True only on the success code."""
        command = healthz_command(target.health_port)
        try:
            result = await self._executor.execute(target.host, command)
        except TransportError as e:
            _logger.warning(
                "health.probe_transport_error",
                target=str(target),
                command=command,
                error=e.reason,
            )
            return False

        if result.ok:
            try:
                code = int(result.stdout)
            except ValueError:
                _logger.warning(
                    "health.unparseable_status",
                    target=str(target),
                    stdout=result.stdout,
                )
            else:
                if code == self._success_code:
                    return True
        self._log_failed(target, command, result)
        return False

    async def wait_until_healthy(self, target: RestartTarget) -> float:
        """Poll until the daemon reports healthy.

        The first probe is issued immediately, later ones every
        ``target.poll_interval`` seconds. A probe still running at the
        deadline is abandoned and counts as a failure.

        Returns:
            Seconds elapsed until the successful probe.

        Raises:
            HealthTimeoutError: No success within ``target.poll_timeout``.
        """
        _logger.info(
            "health.waiting",
            target=str(target),
            port=target.health_port,
            timeout=target.poll_timeout,
        )
        start = self._clock()
        deadline = start + target.poll_timeout
        attempts = 0
        while True:
            attempts += 1
            if await self._probe_before(target, deadline - self._clock()):
                elapsed = self._clock() - start
                _logger.info(
                    "health.up",
                    target=str(target),
                    attempts=attempts,
                    elapsed_seconds=round(elapsed, 2),
                )
                return elapsed
            now = self._clock()
            if now + target.poll_interval > deadline:
                elapsed = now - start
                _logger.error(
                    "health.timeout",
                    target=str(target),
                    attempts=attempts,
                    elapsed_seconds=round(elapsed, 2),
                )
                raise HealthTimeoutError(target, target.poll_timeout, elapsed)
            await self._sleep(target.poll_interval)

    async def _probe_before(self, target: RestartTarget, remaining: float) -> bool:
        """Probe, abandoning an attempt still running when the deadline passes."""
        try:
            async with asyncio.timeout(max(remaining, 0.0)):
                return await self.probe(target)
        except TimeoutError:
            _logger.warning(
                "health.probe_abandoned",
                target=str(target),
                remaining_seconds=round(remaining, 2),
            )
            return False

    @staticmethod
    def _log_failed(target: RestartTarget, command: str, result: ExecResult) -> None:
        _logger.warning(
            "health.probe_failed",
            target=str(target),
            command=command,
            exit_code=result.exit_code,
            stdout=result.stdout,
            stderr=result.stderr,
        )


__all__ = ["HTTP_OK", "HealthPoller", "healthz_command"]
