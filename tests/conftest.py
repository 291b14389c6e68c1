"""Pytest fixtures for restartwatch tests."""

import logging
from collections.abc import Generator

import pytest
import structlog

from restartwatch.daemon.types import RestartTarget
from restartwatch.tracking.entity import ContainerState, Phase, TrackedEntity
from tests.helpers import FakeClock, ScriptedExecutor


@pytest.fixture(autouse=True)
def reset_logging_state() -> Generator[None, None, None]:
    """Reset logging state before and after each test."""
    from restartwatch.cli import helpers as cli_helpers

    cli_helpers.reset_logging_state()
    structlog.reset_defaults()

    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    for handler in original_handlers:
        root_logger.removeHandler(handler)

    yield

    cli_helpers.reset_logging_state()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in original_handlers:
        root_logger.addHandler(handler)


@pytest.fixture
def target() -> RestartTarget:
    """Controller-manager target with the standard 5s / 30s bounds."""
    return RestartTarget(
        host="master-0",
        daemon="kube-controller",
        health_port=10252,
        poll_interval=5.0,
        poll_timeout=30.0,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def executor() -> ScriptedExecutor:
    return ScriptedExecutor()


@pytest.fixture
def pods() -> list[TrackedEntity]:
    """Three running pods of one workload, one per node."""
    return [
        TrackedEntity(
            name=f"web-{name}",
            namespace="e2e",
            phase=Phase.RUNNING.value,
            host=f"node-{i}",
            labels={"name": "web"},
            containers=(ContainerState(name="pause"),),
        )
        for i, name in enumerate(["a", "b", "c"], start=1)
    ]
