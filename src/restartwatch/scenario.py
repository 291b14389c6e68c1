"""Restart scenarios: setup, teardown and the three standard checks.

A ``RestartScenario`` owns one event tracker, one live mirror of the
workload's entities and a baseline store seeded before any daemon is
touched. Entering the scenario starts the mirror; leaving it stops the
mirror and reaps its task.

    async with RestartScenario("controller-manager", feed, {"name": rc}) as sc:
        await check_controller_manager(sc, restarter, scaler, rc, replicas=10)

The checks mirror what a disruptive cluster test verifies:

- ``check_controller_manager``: the replication controller manager neither
  creates nor deletes replicas across its restart.
- ``check_scheduler``: the scheduler keeps placing entities that were
  created while it was down.
- ``check_node_agent``: restarting the node agent on every node does not
  restart any managed container.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from contextlib import ExitStack
from types import TracebackType
from typing import Protocol, runtime_checkable

from restartwatch.core.logging import ScenarioContext, get_logger, with_context
from restartwatch.daemon.restarter import DaemonRestarter
from restartwatch.daemon.types import RestartCycle
from restartwatch.invariants import InvariantChecker, RestartCounts, count_container_restarts
from restartwatch.tracking.entity import Phase, TrackedEntity
from restartwatch.tracking.feed import ResourceFeed, Selector
from restartwatch.tracking.mirror import ResourceMirror
from restartwatch.tracking.tracker import EventTracker

_logger = get_logger("scenario")

# Extra replicas requested while the scheduler is down
SCHEDULER_SURGE = 5


@runtime_checkable
class WorkloadScaler(Protocol):
    """Scales a replicated workload."""

    async def scale_to(self, name: str, replicas: int, wait: bool) -> None:
        """Set the desired replica count.

        With ``wait`` the call returns only once the controller has observed
        and reported the new size.
        """
        ...


class RestartScenario:
    """Per-scenario tracker, live mirror and baseline."""

    def __init__(
        self,
        name: str,
        feed: ResourceFeed,
        selector: Selector,
        *,
        baseline: Iterable[TrackedEntity] | None = None,
        steady_phase: str = Phase.RUNNING.value,
    ) -> None:
        self.name = name
        self._feed = feed
        self._selector = dict(selector)
        self._initial_baseline = list(baseline) if baseline is not None else None
        self.tracker = EventTracker(steady_phase=steady_phase)
        self.mirror = ResourceMirror(feed, self.tracker, self._selector)
        # Never started: holds the pre-restart snapshot only.
        self.baseline = ResourceMirror(feed, self.tracker, self._selector)
        self.checker = InvariantChecker(self.tracker)
        self.context = ScenarioContext(scenario=name)
        self._stack = ExitStack()

    async def list_entities(self) -> list[TrackedEntity]:
        """Fresh listing from the feed, bypassing the mirror."""
        return await self._feed.list(self._selector)

    async def __aenter__(self) -> RestartScenario:
        self._stack.enter_context(with_context(self.context))
        try:
            entities = self._initial_baseline
            if entities is None:
                entities = await self.list_entities()
            self.baseline.replace_with(entities)
            await self.mirror.start()
        except BaseException:
            self._stack.close()
            raise
        _logger.info("scenario.started", baseline=len(self.baseline.keys()))
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        try:
            await self.mirror.__aexit__(exc_type, exc, tb)
        finally:
            _logger.info("scenario.finished", events=len(self.tracker))
            self._stack.close()


async def check_controller_manager(
    scenario: RestartScenario,
    restarter: DaemonRestarter,
    scaler: WorkloadScaler,
    workload: str,
    replicas: int,
) -> RestartCycle:
    """Restart the controller manager and verify no replica was created or deleted.

    Scaling to the same size advances the workload's generation and waits for
    it to be observed, which proves the restarted manager had a chance to act.
    """
    cycle = await restarter.restart()
    await scaler.scale_to(workload, replicas, True)
    scenario.checker.require_no_replicas_changed(
        scenario.baseline.keys(), scenario.mirror.keys(),
    )
    return cycle


async def check_scheduler(
    scenario: RestartScenario,
    restarter: DaemonRestarter,
    scaler: WorkloadScaler,
    workload: str,
    replicas: int,
) -> None:
    """Create entities while the scheduler is down and verify they get placed."""
    await restarter.wait_up()
    await restarter.kill()
    # Best effort: the daemon may already be back when the scale lands.
    await scaler.scale_to(workload, replicas + SCHEDULER_SURGE, False)
    await restarter.wait_up()
    await scaler.scale_to(workload, replicas + SCHEDULER_SURGE, True)
    scenario.mirror.raise_if_interrupted()


async def check_node_agent(
    scenario: RestartScenario,
    restarters: Sequence[DaemonRestarter],
) -> RestartCounts:
    """Restart the agent on every node and verify no container restarted."""
    before = count_container_restarts(await scenario.list_entities())
    if before.total != 0:
        _logger.warning(
            "scenario.nonzero_restart_baseline",
            restarts=before.total,
            hosts=before.hosts,
        )
    for restarter in restarters:
        await restarter.restart()
    after = count_container_restarts(await scenario.list_entities())
    scenario.checker.require_no_unexpected_restarts(before.per_host, after.per_host)
    return after


__all__ = [
    "RestartScenario",
    "SCHEDULER_SURGE",
    "WorkloadScaler",
    "check_controller_manager",
    "check_node_agent",
    "check_scheduler",
]
