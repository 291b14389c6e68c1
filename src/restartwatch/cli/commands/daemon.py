"""Daemon lifecycle commands for the restartwatch CLI.

``restart``, ``wait-up`` and ``kill`` act on one daemon given on the command
line. ``run-config`` restarts every target listed in a YAML config, in order.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from pathlib import Path
from typing import Any, TypeVar

import typer

from restartwatch.core.config import HarnessConfig, SSHConfig
from restartwatch.core.errors import HarnessError
from restartwatch.core.logging import configure_logging
from restartwatch.daemon.restarter import DaemonRestarter
from restartwatch.daemon.types import RestartCycle, RestartTarget
from restartwatch.remote import SSHExecutor

from ..helpers import configure_global_logging
from ..output import console, create_cycles_table, format_duration, output_error

T = TypeVar("T")

_HOST_ARG = typer.Argument(..., help="SSH-reachable host running the daemon")
_DAEMON_ARG = typer.Argument(..., help="Daemon process name (matched with pgrep)")
_PORT_OPT = typer.Option(..., "--port", "-p", help="Port serving /healthz on the host")
_INTERVAL_OPT = typer.Option(5.0, "--interval", help="Seconds between health probes")
_TIMEOUT_OPT = typer.Option(600.0, "--timeout", "-t", help="Seconds to wait for health")
_SSH_PORT_OPT = typer.Option(22, "--ssh-port", help="SSH port on the host")
_SSH_USER_OPT = typer.Option(None, "--ssh-user", help="SSH login user")


def _build_restarter(
    host: str,
    daemon: str,
    port: int,
    interval: float,
    timeout: float,
    ssh_port: int,
    ssh_user: str | None,
) -> DaemonRestarter:
    try:
        target = RestartTarget(
            host=host,
            daemon=daemon,
            health_port=port,
            poll_interval=interval,
            poll_timeout=timeout,
        )
        ssh = SSHConfig(port=ssh_port, user=ssh_user)
    except ValueError as e:
        output_error(str(e))
        raise typer.Exit(2) from None
    return DaemonRestarter(target, SSHExecutor(ssh), provider=ssh.provider)


def _run_or_exit(coro: Coroutine[Any, Any, T]) -> T:
    try:
        return asyncio.run(coro)
    except HarnessError as e:
        output_error(str(e))
        raise typer.Exit(1) from None


def restart(
    host: str = _HOST_ARG,
    daemon: str = _DAEMON_ARG,
    port: int = _PORT_OPT,
    interval: float = _INTERVAL_OPT,
    timeout: float = _TIMEOUT_OPT,
    ssh_port: int = _SSH_PORT_OPT,
    ssh_user: str | None = _SSH_USER_OPT,
) -> None:
    """Check a daemon is healthy, kill it, and wait for it to recover.

    Examples:
        restartwatch restart master-0 kube-controller --port 10252
    """
    configure_global_logging(console)
    restarter = _build_restarter(host, daemon, port, interval, timeout, ssh_port, ssh_user)
    cycle = _run_or_exit(restarter.restart())
    console.print(
        f"[green]✓[/green] {restarter.target} recovered in "
        f"{format_duration(cycle.recovery_seconds)}"
    )


def wait_up(
    host: str = _HOST_ARG,
    daemon: str = _DAEMON_ARG,
    port: int = _PORT_OPT,
    interval: float = _INTERVAL_OPT,
    timeout: float = _TIMEOUT_OPT,
    ssh_port: int = _SSH_PORT_OPT,
    ssh_user: str | None = _SSH_USER_OPT,
) -> None:
    """Wait until a daemon answers its health probe."""
    configure_global_logging(console)
    restarter = _build_restarter(host, daemon, port, interval, timeout, ssh_port, ssh_user)
    elapsed = _run_or_exit(restarter.wait_up())
    console.print(f"[green]✓[/green] {restarter.target} is up ({format_duration(elapsed)})")


def kill(
    host: str = _HOST_ARG,
    daemon: str = _DAEMON_ARG,
    ssh_port: int = _SSH_PORT_OPT,
    ssh_user: str | None = _SSH_USER_OPT,
) -> None:
    """Send SIGTERM to a daemon without waiting for it to come back."""
    configure_global_logging(console)
    # Health bounds are unused by kill; any valid port will do.
    restarter = _build_restarter(host, daemon, 1, 5.0, 600.0, ssh_port, ssh_user)
    _run_or_exit(restarter.kill())
    console.print(f"[yellow]Sent SIGTERM[/yellow] to {restarter.target}")


async def _restart_all(restarters: list[DaemonRestarter]) -> list[RestartCycle]:
    return [await r.restart() for r in restarters]


def run_config(
    config_file: Path = typer.Argument(
        ...,
        help="YAML harness configuration listing targets",
        exists=True,
        dir_okay=False,
        readable=True,
    ),
) -> None:
    """Restart every target in a config file, one after another.

    Logging settings come from the config file.
    """
    try:
        config = HarnessConfig.from_yaml(config_file)
    except HarnessError as e:
        output_error(str(e), hints=["Check the file against the HarnessConfig schema"])
        raise typer.Exit(2) from None
    configure_logging(
        level=config.logging.level,
        format=config.logging.format,
        file_path=config.logging.file,
    )

    targets = config.restart_targets()
    if not targets:
        console.print("[yellow]No targets configured.[/yellow]")
        return
    executor = SSHExecutor(config.ssh)
    restarters = [
        DaemonRestarter(t, executor, provider=config.ssh.provider) for t in targets
    ]
    cycles = _run_or_exit(_restart_all(restarters))
    console.print(create_cycles_table(cycles))
