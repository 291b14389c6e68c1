"""Daemon lifecycle control: health polling and verified restarts."""

from restartwatch.daemon.health import HealthPoller
from restartwatch.daemon.restarter import DaemonRestarter
from restartwatch.daemon.types import ExecResult, RestartCycle, RestartTarget

__all__ = [
    "DaemonRestarter",
    "ExecResult",
    "HealthPoller",
    "RestartCycle",
    "RestartTarget",
]
