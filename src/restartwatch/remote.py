"""Remote command execution over SSH.

``RemoteExecutor`` is the seam the harness calls to run a shell command on a
host. ``SSHExecutor`` implements it by spawning the local ``ssh`` client.

Security Note: Uses asyncio.create_subprocess_exec() so the local side never
goes through a shell. The remote command string itself is interpreted by the
remote login shell, which is what the health probe and kill pipelines need.
"""

from __future__ import annotations

import asyncio
import time
from typing import Protocol, runtime_checkable

from restartwatch.core.config import SSHConfig
from restartwatch.core.errors import TransportError
from restartwatch.core.logging import get_logger
from restartwatch.daemon.types import ExecResult

_logger = get_logger("remote")

# ssh exits with 255 when it could not run the remote command at all
SSH_FAILURE_EXIT_CODE = 255


@runtime_checkable
class RemoteExecutor(Protocol):
    """Runs a shell command on a remote host."""

    async def execute(self, host: str, command: str) -> ExecResult:
        """Run ``command`` on ``host``.

        Raises:
            TransportError: The command could not be delivered or did not finish.
        """
        ...


class SSHExecutor:
    """``RemoteExecutor`` backed by the OpenSSH client."""

    def __init__(self, config: SSHConfig | None = None, *, ssh_binary: str = "ssh") -> None:
        self._config = config or SSHConfig()
        self._ssh_binary = ssh_binary

    def build_argv(self, host: str, command: str) -> list[str]:
        """Build the ssh argument vector for one command."""
        argv = [
            self._ssh_binary,
            "-p", str(self._config.port),
            "-o", f"ConnectTimeout={self._config.connect_timeout}",
        ]
        for option in self._config.options:
            argv.extend(["-o", option])
        if self._config.user:
            argv.extend(["-l", self._config.user])
        argv.extend([host, command])
        return argv

    async def execute(self, host: str, command: str) -> ExecResult:
        argv = self.build_argv(host, command)
        start = time.monotonic()
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise TransportError(host, command, f"cannot spawn ssh: {e}") from e

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                process.communicate(),
                timeout=self._config.command_timeout,
            )
        except TimeoutError:
            await self._reap(process)
            raise TransportError(
                host, command, f"timed out after {self._config.command_timeout}s"
            ) from None
        except asyncio.CancelledError:
            await self._reap(process)
            raise

        returncode = process.returncode if process.returncode is not None else -1
        stdout = stdout_bytes.decode("utf-8", errors="replace").strip()
        stderr = stderr_bytes.decode("utf-8", errors="replace").strip()

        _logger.debug(
            "remote.executed",
            host=host,
            command=command,
            exit_code=returncode,
            duration_seconds=round(time.monotonic() - start, 3),
        )
        if returncode == SSH_FAILURE_EXIT_CODE:
            raise TransportError(host, command, f"ssh failed: {stderr or 'exit 255'}")
        return ExecResult(exit_code=returncode, stdout=stdout, stderr=stderr)

    @staticmethod
    async def _reap(process: asyncio.subprocess.Process) -> None:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass  # exited between the check and the kill
        await process.wait()


__all__ = ["RemoteExecutor", "SSHExecutor", "SSH_FAILURE_EXIT_CODE"]
