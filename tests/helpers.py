"""Fakes shared by restartwatch tests."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable

from restartwatch.core.errors import TransportError
from restartwatch.daemon.types import ExecResult

OK_PROBE = ExecResult(exit_code=0, stdout="200", stderr="")
DOWN_PROBE = ExecResult(exit_code=7, stdout="000", stderr="connection refused")


class FakeClock:
    """Monotonic clock advanced only by the fake sleeper."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class ScriptedExecutor:
    """RemoteExecutor returning scripted results per command prefix.

    Each script entry is an ``ExecResult`` or an exception instance to raise.
    When a script runs out, its last entry repeats.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self._scripts: dict[str, list[ExecResult | Exception]] = {}

    def script(self, prefix: str, results: Iterable[ExecResult | Exception]) -> None:
        self._scripts[prefix] = list(results)

    def commands(self, prefix: str) -> list[str]:
        return [cmd for _, cmd in self.calls if cmd.startswith(prefix)]

    async def execute(self, host: str, command: str) -> ExecResult:
        self.calls.append((host, command))
        for prefix, results in self._scripts.items():
            if command.startswith(prefix):
                item = results.pop(0) if len(results) > 1 else results[0]
                if isinstance(item, Exception):
                    raise item
                return item
        return ExecResult(exit_code=0, stdout="", stderr="")


def transport_error(host: str = "master-0") -> TransportError:
    return TransportError(host, "curl", "connection refused")


class RecordingScaler:
    """WorkloadScaler that records calls and optionally runs a hook."""

    def __init__(self, on_scale=None) -> None:
        self.calls: list[tuple[str, int, bool]] = []
        self._on_scale = on_scale

    async def scale_to(self, name: str, replicas: int, wait: bool) -> None:
        self.calls.append((name, replicas, wait))
        if self._on_scale is not None:
            self._on_scale(name, replicas, wait)
        # Let watchers observe whatever the hook changed.
        await settle()


async def settle(rounds: int = 10) -> None:
    """Yield to the event loop so background tasks drain their queues."""
    for _ in range(rounds):
        await asyncio.sleep(0)
