"""Serial, thread-safe history of entity lifecycle events.

``EventTracker`` records what the resource feed reported about the tracked
entities so that a failed post-restart check can show the exact sequence of
adds, updates and deletes around the anomaly. It keeps anomalies and
transitions only: an update reporting the steady phase (``Running``) is
routine confirmation traffic and is not recorded.

Every event is stored under a fresh key of the form::

    [2026-10-19T08:15:02.123456789Z] ADD: default/web-0

Keys are strictly increasing within one tracker, so lexical order, insertion
order and temporal order all agree. Events are never overwritten or removed.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from restartwatch.core.logging import get_logger
from restartwatch.tracking.entity import Phase, TrackedEntity, TransitionKind

_logger = get_logger("tracking.tracker")

_NS_PER_SECOND = 1_000_000_000


def format_stamp(ns: int) -> str:
    """Render a UTC epoch nanosecond stamp as sortable ISO-8601."""
    seconds, frac = divmod(ns, _NS_PER_SECOND)
    base = datetime.fromtimestamp(seconds, UTC).strftime("%Y-%m-%dT%H:%M:%S")
    return f"{base}.{frac:09d}Z"


@dataclass(frozen=True)
class LifecycleEvent:
    """One recorded transition of one entity."""

    key: str
    kind: TransitionKind
    entity: TrackedEntity
    recorded_at_ns: int

    def describe(self) -> str:
        return f"{self.key} Phase {self.entity.phase} Host {self.entity.host}"


class EventTracker:
    """Ordered, keyed record of entity lifecycle events.

    One writer (the feed) and any number of concurrent readers. A single
    lock guards key minting, insertion and snapshot copies.
    """

    def __init__(
        self,
        *,
        steady_phase: str = Phase.RUNNING.value,
        clock_ns: Callable[[], int] = time.time_ns,
    ) -> None:
        self._steady_phase = steady_phase
        self._clock_ns = clock_ns
        self._events: dict[str, LifecycleEvent] = {}
        self._last_ns = 0
        self._lock = threading.Lock()

    @property
    def steady_phase(self) -> str:
        return self._steady_phase

    def should_record(self, entity: TrackedEntity, kind: TransitionKind) -> bool:
        """Updates in the steady phase are dropped; everything else is kept."""
        return not (kind is TransitionKind.UPDATED and entity.phase == self._steady_phase)

    def remember(self, entity: TrackedEntity, kind: TransitionKind) -> str | None:
        """Record one transition.

        Returns:
            The new event key, or None when the transition was filtered out.
        """
        if not self.should_record(entity, kind):
            return None
        with self._lock:
            ns = max(self._clock_ns(), self._last_ns + 1)
            self._last_ns = ns
            key = f"[{format_stamp(ns)}] {kind.value}: {entity.key}"
            self._events[key] = LifecycleEvent(
                key=key, kind=kind, entity=entity, recorded_at_ns=ns,
            )
        _logger.debug("tracker.remembered", key=key, phase=entity.phase, host=entity.host)
        return key

    def list_keys(self) -> list[str]:
        """All recorded keys in insertion order."""
        with self._lock:
            return list(self._events)

    def events(self) -> list[LifecycleEvent]:
        """All recorded events in insertion order."""
        with self._lock:
            return list(self._events.values())

    def get(self, key: str) -> LifecycleEvent | None:
        with self._lock:
            return self._events.get(key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def render(self) -> str:
        """Human-readable dump, one line per recorded event. Diagnostics only."""
        return "".join(f"{event.describe()}\n" for event in self.events())

    def __str__(self) -> str:
        return self.render()


__all__ = ["EventTracker", "LifecycleEvent", "format_stamp"]
