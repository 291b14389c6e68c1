"""Tests for restartwatch.daemon.restarter module."""

from __future__ import annotations

import pytest

from restartwatch.core.errors import HealthTimeoutError, TransportError
from restartwatch.daemon.health import HealthPoller
from restartwatch.daemon.restarter import DaemonRestarter, kill_command
from restartwatch.daemon.types import ExecResult, RestartCycle
from tests.helpers import DOWN_PROBE, OK_PROBE

CURL = "curl"
PGREP = "pgrep"


@pytest.fixture
def restarter(target, executor, clock) -> DaemonRestarter:
    poller = HealthPoller(executor, clock=clock, sleep=clock.sleep)
    return DaemonRestarter(target, executor, poller=poller)


class TestKillCommand:
    def test_pipes_pgrep_into_kill(self):
        assert kill_command("kubelet") == "pgrep kubelet | xargs -I {} sudo kill {}"


class TestKill:
    @pytest.mark.asyncio
    async def test_sends_kill_to_target_host(self, restarter, executor):
        await restarter.kill()
        assert executor.calls == [("master-0", kill_command("kube-controller"))]

    @pytest.mark.asyncio
    async def test_no_matching_process_is_not_fatal(self, restarter, executor):
        executor.script(PGREP, [ExecResult(exit_code=1, stdout="", stderr="")])
        await restarter.kill()

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self, restarter, executor):
        executor.script(PGREP, [TransportError("master-0", "pgrep", "no route")])
        with pytest.raises(TransportError):
            await restarter.kill()


class TestRestart:
    @pytest.mark.asyncio
    async def test_health_kill_health_order(self, restarter, executor):
        executor.script(CURL, [OK_PROBE])
        await restarter.restart()
        kinds = [cmd.split()[0] for _, cmd in executor.calls]
        assert kinds == ["curl", "pgrep", "curl"]

    @pytest.mark.asyncio
    async def test_returns_cycle_timings(self, restarter, executor, target):
        # Healthy at first, then down for two probes after the kill
        executor.script(CURL, [OK_PROBE, DOWN_PROBE, DOWN_PROBE, OK_PROBE])
        cycle = await restarter.restart()
        assert isinstance(cycle, RestartCycle)
        assert cycle.target == target
        assert cycle.baseline_seconds == 0.0
        assert cycle.recovery_seconds == 10.0

    @pytest.mark.asyncio
    async def test_unhealthy_before_kill_never_kills(self, restarter, executor):
        executor.script(CURL, [DOWN_PROBE])
        with pytest.raises(HealthTimeoutError):
            await restarter.restart()
        assert executor.commands(PGREP) == []

    @pytest.mark.asyncio
    async def test_no_recovery_times_out(self, restarter, executor):
        executor.script(CURL, [OK_PROBE] + [DOWN_PROBE] * 10)
        with pytest.raises(HealthTimeoutError):
            await restarter.restart()
        assert len(executor.commands(PGREP)) == 1


class TestPhases:
    @pytest.mark.asyncio
    async def test_caller_can_interleave_between_kill_and_wait(self, restarter, executor):
        executor.script(CURL, [OK_PROBE])
        await restarter.wait_up()
        await restarter.kill()
        await executor.execute("master-0", "echo while-down")
        await restarter.wait_up()
        commands = [cmd.split()[0] for _, cmd in executor.calls]
        assert commands == ["curl", "pgrep", "echo", "curl"]

    def test_target_property(self, restarter, target):
        assert restarter.target is target

    def test_default_poller_built_from_executor(self, target, executor):
        r = DaemonRestarter(target, executor, provider="gce")
        assert r.target == target

    def test_unknown_provider_still_constructs(self, target, executor):
        r = DaemonRestarter(target, executor, provider="vsphere")
        assert r.target == target
