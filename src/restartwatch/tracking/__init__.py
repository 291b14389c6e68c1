"""Entity tracking: event history, feed protocol and the local mirror."""

from restartwatch.tracking.entity import (
    Added,
    ContainerState,
    Deleted,
    Phase,
    TrackedEntity,
    Transition,
    TransitionKind,
    Updated,
)
from restartwatch.tracking.feed import InMemoryFeed, ResourceFeed
from restartwatch.tracking.mirror import ResourceMirror
from restartwatch.tracking.tracker import EventTracker, LifecycleEvent

__all__ = [
    "Added",
    "ContainerState",
    "Deleted",
    "EventTracker",
    "InMemoryFeed",
    "LifecycleEvent",
    "Phase",
    "ResourceFeed",
    "ResourceMirror",
    "TrackedEntity",
    "Transition",
    "TransitionKind",
    "Updated",
]
