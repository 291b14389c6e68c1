"""Observed entities and the transitions a resource feed delivers.

Entities are produced by the feed, never by the harness. A status change is
a new frozen snapshot under the same key, so snapshots stored in the event
history can never change after they are recorded.

Transitions are an explicit variant, ``Added | Updated | Deleted``, consumed
by a single handler in the mirror.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum


class Phase(str, Enum):
    """Lifecycle phase of an entity."""

    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    UNKNOWN = "Unknown"


class TransitionKind(str, Enum):
    """Kind of change a transition describes."""

    ADDED = "ADD"
    UPDATED = "UPDATE"
    DELETED = "DEL"


@dataclass(frozen=True)
class ContainerState:
    """Restart bookkeeping for one container of an entity."""

    name: str
    restart_count: int = 0
    ready: bool = True


@dataclass(frozen=True)
class TrackedEntity:
    """Snapshot of one observed entity (a pod)."""

    name: str
    namespace: str = ""
    phase: str = Phase.PENDING.value
    host: str = ""
    labels: Mapping[str, str] = field(default_factory=dict)
    containers: tuple[ContainerState, ...] = ()

    @property
    def key(self) -> str:
        """Stable identity: ``namespace/name``, or ``name`` without a namespace."""
        if self.namespace:
            return f"{self.namespace}/{self.name}"
        return self.name

    @property
    def restart_count(self) -> int:
        return sum(c.restart_count for c in self.containers)

    def matches(self, selector: Mapping[str, str]) -> bool:
        """True when every selector label is present with the same value."""
        return all(self.labels.get(k) == v for k, v in selector.items())


@dataclass(frozen=True)
class Added:
    entity: TrackedEntity

    @property
    def kind(self) -> TransitionKind:
        return TransitionKind.ADDED


@dataclass(frozen=True)
class Updated:
    old: TrackedEntity
    new: TrackedEntity

    @property
    def kind(self) -> TransitionKind:
        return TransitionKind.UPDATED

    @property
    def entity(self) -> TrackedEntity:
        return self.new


@dataclass(frozen=True)
class Deleted:
    entity: TrackedEntity

    @property
    def kind(self) -> TransitionKind:
        return TransitionKind.DELETED


Transition = Added | Updated | Deleted


__all__ = [
    "Added",
    "ContainerState",
    "Deleted",
    "Phase",
    "TrackedEntity",
    "Transition",
    "TransitionKind",
    "Updated",
]
