"""Tests for restartwatch.scenario module."""

from __future__ import annotations

from dataclasses import replace

import pytest

from restartwatch.core.errors import FeedInterruptedError, InvariantViolationError
from restartwatch.core.logging import get_current_context
from restartwatch.daemon.health import HealthPoller
from restartwatch.daemon.restarter import DaemonRestarter
from restartwatch.daemon.types import ExecResult, RestartTarget
from restartwatch.scenario import (
    SCHEDULER_SURGE,
    RestartScenario,
    WorkloadScaler,
    check_controller_manager,
    check_node_agent,
    check_scheduler,
)
from restartwatch.tracking.entity import ContainerState
from restartwatch.tracking.feed import InMemoryFeed
from tests.helpers import OK_PROBE, FakeClock, RecordingScaler, ScriptedExecutor

WEB = {"name": "web"}


def _restarter(target, executor, clock) -> DaemonRestarter:
    poller = HealthPoller(executor, clock=clock, sleep=clock.sleep)
    return DaemonRestarter(target, executor, poller=poller)


class KillHookExecutor(ScriptedExecutor):
    """ScriptedExecutor that runs a callback for every kill on a host."""

    def __init__(self, on_kill) -> None:
        super().__init__()
        self._on_kill = on_kill

    async def execute(self, host: str, command: str) -> ExecResult:
        if command.startswith("pgrep"):
            self._on_kill(host)
        return await super().execute(host, command)


# ─── RestartScenario ──────────────────────────────────────────────────


class TestRestartScenario:
    @pytest.mark.asyncio
    async def test_enter_seeds_baseline_and_starts_mirror(self, pods):
        feed = InMemoryFeed(pods)
        async with RestartScenario("cm", feed, WEB) as sc:
            assert sc.mirror.running
            assert not sc.baseline.running
            assert sc.baseline.keys() == {p.key for p in pods}
            assert sc.mirror.keys() == {p.key for p in pods}
            assert len(sc.tracker) == 3
        assert not sc.mirror.running
        assert feed.watcher_count == 0

    @pytest.mark.asyncio
    async def test_explicit_baseline(self, pods):
        feed = InMemoryFeed(pods)
        async with RestartScenario("cm", feed, WEB, baseline=pods[:2]) as sc:
            assert sc.baseline.keys() == {pods[0].key, pods[1].key}

    @pytest.mark.asyncio
    async def test_context_bound_while_inside(self, pods):
        async with RestartScenario("scheduler", InMemoryFeed(pods), WEB):
            ctx = get_current_context()
            assert ctx is not None
            assert ctx.scenario == "scheduler"
        assert get_current_context() is None

    @pytest.mark.asyncio
    async def test_failed_start_unbinds_context(self):
        class BrokenFeed(InMemoryFeed):
            async def list(self, selector):
                raise ConnectionError("apiserver down")

        with pytest.raises(ConnectionError):
            async with RestartScenario("cm", BrokenFeed(), WEB):
                pass
        assert get_current_context() is None

    def test_recording_scaler_is_workload_scaler(self):
        assert isinstance(RecordingScaler(), WorkloadScaler)


# ─── Controller manager ───────────────────────────────────────────────


class TestCheckControllerManager:
    @pytest.mark.asyncio
    async def test_passes_when_no_replica_changes(self, pods, target, executor, clock):
        executor.script("curl", [OK_PROBE])
        scaler = RecordingScaler()
        feed = InMemoryFeed(pods)
        async with RestartScenario("cm", feed, WEB) as sc:
            cycle = await check_controller_manager(
                sc, _restarter(target, executor, clock), scaler, "web", 3,
            )
        assert cycle.target == target
        assert scaler.calls == [("web", 3, True)]
        assert len(executor.commands("pgrep")) == 1

    @pytest.mark.asyncio
    async def test_in_place_replacement_is_allowed(self, pods, target, executor, clock):
        executor.script("curl", [OK_PROBE])
        feed = InMemoryFeed(pods)

        def replace_pod(name, replicas, wait):
            feed.delete(pods[0].key)
            feed.add(replace(pods[0], host="node-9"))

        async with RestartScenario("cm", feed, WEB) as sc:
            await check_controller_manager(
                sc, _restarter(target, executor, clock), RecordingScaler(replace_pod), "web", 3,
            )
            assert sc.mirror.keys() == sc.baseline.keys()

    @pytest.mark.asyncio
    async def test_deleted_replica_is_violation(self, pods, target, executor, clock):
        executor.script("curl", [OK_PROBE])
        feed = InMemoryFeed(pods)
        scaler = RecordingScaler(lambda *_: feed.delete(pods[1].key))

        with pytest.raises(InvariantViolationError) as exc_info:
            async with RestartScenario("cm", feed, WEB) as sc:
                await check_controller_manager(
                    sc, _restarter(target, executor, clock), scaler, "web", 3,
                )
        err = exc_info.value
        assert "missing ['e2e/web-b']" in err.message
        assert "DEL: e2e/web-b" in err.render
        assert err.after == ["e2e/web-a", "e2e/web-c"]


# ─── Scheduler ────────────────────────────────────────────────────────


class TestCheckScheduler:
    @pytest.fixture
    def scheduler(self) -> RestartTarget:
        return RestartTarget(
            host="master-0", daemon="kube-scheduler", health_port=10251, poll_timeout=30.0,
        )

    @pytest.mark.asyncio
    async def test_scales_while_down_then_waits(self, pods, scheduler, executor, clock):
        executor.script("curl", [OK_PROBE])
        scaler = RecordingScaler()
        async with RestartScenario("scheduler", InMemoryFeed(pods), WEB) as sc:
            await check_scheduler(sc, _restarter(scheduler, executor, clock), scaler, "web", 3)

        surged = 3 + SCHEDULER_SURGE
        assert scaler.calls == [("web", surged, False), ("web", surged, True)]
        commands = [cmd.split()[0] for _, cmd in executor.calls]
        assert commands == ["curl", "pgrep", "curl"]

    @pytest.mark.asyncio
    async def test_feed_lost_during_check(self, pods, scheduler, executor, clock):
        executor.script("curl", [OK_PROBE])
        feed = InMemoryFeed(pods)

        def drop_feed(name, replicas, wait):
            if not wait:
                feed.close()

        with pytest.raises(FeedInterruptedError):
            async with RestartScenario("scheduler", feed, WEB) as sc:
                await check_scheduler(
                    sc, _restarter(scheduler, executor, clock), RecordingScaler(drop_feed), "web", 3,
                )


# ─── Node agent ───────────────────────────────────────────────────────


def _agents(executor, clock) -> list[DaemonRestarter]:
    return [
        _restarter(
            RestartTarget(host=f"node-{i}", daemon="kubelet", health_port=10255),
            executor,
            clock,
        )
        for i in range(1, 4)
    ]


class TestCheckNodeAgent:
    @pytest.mark.asyncio
    async def test_restarts_every_agent(self, pods, executor, clock):
        executor.script("curl", [OK_PROBE])
        async with RestartScenario("kubelet", InMemoryFeed(pods), WEB) as sc:
            counts = await check_node_agent(sc, _agents(executor, clock))
        assert counts.total == 0
        assert [host for host, cmd in executor.calls if cmd.startswith("pgrep")] == [
            "node-1", "node-2", "node-3",
        ]

    @pytest.mark.asyncio
    async def test_preexisting_restarts_are_not_a_violation(self, pods, executor, clock):
        executor.script("curl", [OK_PROBE])
        pods[0] = replace(pods[0], containers=(ContainerState("pause", restart_count=2),))
        async with RestartScenario("kubelet", InMemoryFeed(pods), WEB) as sc:
            counts = await check_node_agent(sc, _agents(executor, clock))
        assert counts.total == 2

    @pytest.mark.asyncio
    async def test_container_restart_names_node(self, pods, clock):
        feed = InMemoryFeed(pods)

        def bump(host: str) -> None:
            if host == "node-2":
                feed.update(replace(pods[1], containers=(ContainerState("pause", 1),)))

        executor = KillHookExecutor(bump)
        executor.script("curl", [OK_PROBE])
        with pytest.raises(InvariantViolationError, match=r"0 -> 1 .*\['node-2'\]"):
            async with RestartScenario("kubelet", feed, WEB) as sc:
                await check_node_agent(sc, _agents(executor, clock))
